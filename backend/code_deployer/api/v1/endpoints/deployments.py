"""
API endpoints for deployments.

Uses the deployment service for orchestration and domain exceptions for error handling.
"""
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from code_deployer.core.config import settings
from code_deployer.core.database import get_db
from code_deployer.core.security import get_current_user
from code_deployer.schemas.deployment import (
    ArtifactUpload,
    DeploymentListResponse,
    DeploymentResponse,
    DeploymentSubmission,
    DeploymentSubmitResponse,
    DeploymentSummary,
)
from code_deployer.schemas.user import CurrentUser
from code_deployer.services.deployment.deployment_service import deployment_service

router = APIRouter()

UPLOAD_CHUNK_SIZE = 8192


async def _read_upload(file: Optional[UploadFile]) -> Optional[ArtifactUpload]:
    """
    Read an uploaded archive into memory.

    Reading stops one byte past the size limit so oversized uploads are
    rejected by validation without buffering the whole body.
    """
    if file is None or not file.filename:
        return None

    limit = settings.MAX_UPLOAD_SIZE + 1
    chunks = []
    received = 0
    while received < limit and (chunk := await file.read(UPLOAD_CHUNK_SIZE)):
        chunks.append(chunk)
        received += len(chunk)

    return ArtifactUpload(filename=file.filename, content=b"".join(chunks)[:limit])


@router.post("", response_model=DeploymentSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_deployment(
    project_name: Optional[str] = Form(None),
    platform: Optional[str] = Form(None),
    repository_url: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DeploymentSubmitResponse:
    """
    Submit a deployment from a .zip archive or a repository URL.

    Returns as soon as the pending record exists; publishing continues in
    the background.

    Raises:
        AuthorizationError: If the caller is not identified (401)
        InvalidFieldError: On the first invalid field (400)
        StorageError: If the archive cannot be stored (500)
        PersistenceError: If the record cannot be saved (500)
    """
    submission = DeploymentSubmission(
        project_name=project_name,
        platform=platform,
        repository_url=repository_url,
        upload=await _read_upload(file),
    )
    deployment = await deployment_service.submit_deployment(db, current_user, submission)
    return DeploymentSubmitResponse(deployment=DeploymentSummary.from_deployment(deployment))


@router.get("", response_model=DeploymentListResponse)
async def list_deployments(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DeploymentListResponse:
    """List the caller's deployments, newest first."""
    deployments = await deployment_service.list_for_owner(db, current_user)
    return DeploymentListResponse(
        deployments=[DeploymentResponse.from_deployment(d) for d in deployments]
    )


@router.get("/{deployment_id}", response_model=DeploymentResponse)
async def get_deployment(
    deployment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DeploymentResponse:
    """
    Get one of the caller's deployments.

    Raises:
        DeploymentNotFoundError: If missing or owned by another user (404)
    """
    deployment = await deployment_service.get_for_owner(db, current_user, deployment_id)
    return DeploymentResponse.from_deployment(deployment)
