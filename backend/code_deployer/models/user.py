"""
User model. Users own deployments and authenticate with an API key.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from code_deployer.core.database import Base


class User(Base):
    """Deployment owner."""

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False, default="")
    api_key_prefix = Column(String(16), nullable=True, unique=True, index=True)
    api_key_hash = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_used_at = Column(DateTime, nullable=True)

    deployments = relationship(
        "Deployment",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
