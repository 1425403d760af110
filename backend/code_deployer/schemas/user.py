"""
Pydantic schemas for users and the authenticated identity.
"""
from pydantic import BaseModel, ConfigDict
from uuid import UUID


class CurrentUser(BaseModel):
    """Verified owner identity handed to submission and query calls."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    email: str
    name: str

    @classmethod
    def from_user(cls, user) -> "CurrentUser":
        return cls(id=user.id, email=user.email, name=user.name or "")
