"""
Deployment model for tracking publications and their lifecycle.
"""
import uuid
from datetime import datetime
from sqlalchemy import CheckConstraint, Column, String, DateTime, ForeignKey, Index, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from code_deployer.core.database import Base


TERMINAL_STATUSES = ("success", "failed")
ACTIVE_STATUSES = ("pending", "in_progress")


class Deployment(Base):
    """
    Deployment record.

    Created by the submission handler with status 'pending' and mutated only
    by the lifecycle driver. preview_url is set iff status is 'success';
    error_message is set iff status is 'failed'.
    """

    __tablename__ = "deployments"
    __table_args__ = (
        CheckConstraint("platform IN ('vercel', 'netlify')", name="ck_deployments_platform"),
        CheckConstraint("source_type IN ('upload', 'repository')", name="ck_deployments_source_type"),
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'success', 'failed')",
            name="ck_deployments_status",
        ),
        CheckConstraint(
            "(preview_url IS NOT NULL) = (status = 'success')",
            name="ck_deployments_preview_url",
        ),
        CheckConstraint(
            "(error_message IS NOT NULL) = (status = 'failed')",
            name="ck_deployments_error_message",
        ),
        Index("ix_deployments_user_created", "user_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    project_name = Column(String(255), nullable=False)
    platform = Column(String(20), nullable=False, index=True)
    source_type = Column(String(20), nullable=False)
    source_url = Column(String(2048), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    preview_url = Column(String(500), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="deployments")

    @property
    def is_terminal(self) -> bool:
        """Check if the deployment reached success or failed."""
        return self.status in TERMINAL_STATUSES
