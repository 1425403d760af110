"""
Pydantic schemas and value types for Deployment.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from uuid import UUID


class Platform(str, Enum):
    """Supported publishing targets."""
    VERCEL = "vercel"
    NETLIFY = "netlify"


class SourceType(str, Enum):
    """Which kind of source a deployment was submitted with."""
    UPLOAD = "upload"
    REPOSITORY = "repository"


class DeploymentStatus(str, Enum):
    """
    Status of a deployment.

    pending -> in_progress -> success | failed. success and failed are terminal.
    """
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentStatus.SUCCESS, DeploymentStatus.FAILED)


@dataclass
class ArtifactUpload:
    """An uploaded source archive, as received from the caller."""

    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class DeploymentSubmission:
    """Raw deployment request, validated by the submission handler."""

    project_name: Optional[str]
    platform: Optional[str]
    repository_url: Optional[str] = None
    upload: Optional[ArtifactUpload] = None


class DeploymentSummary(BaseModel):
    """Echo of a freshly submitted deployment."""
    id: UUID
    project_name: str
    platform: Platform
    status: DeploymentStatus

    @classmethod
    def from_deployment(cls, deployment) -> "DeploymentSummary":
        return cls(
            id=deployment.id,
            project_name=deployment.project_name,
            platform=deployment.platform,
            status=deployment.status,
        )


class DeploymentSubmitResponse(BaseModel):
    """Response for a successful submission."""
    message: str = "Deployment started successfully"
    deployment: DeploymentSummary


class DeploymentResponse(BaseModel):
    """Schema for Deployment response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_name: str
    platform: Platform
    source_type: SourceType
    source_url: str
    status: DeploymentStatus
    preview_url: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_deployment(cls, deployment) -> "DeploymentResponse":
        """Convert a Deployment ORM instance to response schema."""
        return cls(
            id=deployment.id,
            project_name=deployment.project_name,
            platform=deployment.platform,
            source_type=deployment.source_type,
            source_url=deployment.source_url,
            status=deployment.status,
            preview_url=deployment.preview_url,
            error_message=deployment.error_message,
            created_at=deployment.created_at,
            updated_at=deployment.updated_at,
        )


class DeploymentListResponse(BaseModel):
    """Owner-scoped deployment list, newest first."""
    deployments: List[DeploymentResponse]
