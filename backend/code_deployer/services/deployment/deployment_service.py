"""
Deployment orchestration service.

Coordinates between:
- DeploymentRepository for the deployment record
- ArtifactStorage for uploaded archives
- PlatformRegistry / platform adapters for publishing
- The task dispatcher (Celery) for background execution

Submission runs on the request path and returns as soon as the pending record
is persisted and the publish task is queued. execute_deployment() is the
lifecycle driver that runs inside the worker; it never raises.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlparse
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from code_deployer.core.config import settings
from code_deployer.core.events import (
    DeploymentCreatedEvent,
    DeploymentStatusChangedEvent,
    event_dispatcher,
    report_fault,
)
from code_deployer.core.exceptions import (
    AdapterError,
    InvalidFieldError,
    MissingCredentialsError,
    PersistenceError,
)
from code_deployer.models.deployment import Deployment
from code_deployer.repositories.deployment_repository import DeploymentRepository
from code_deployer.schemas.deployment import (
    DeploymentStatus,
    DeploymentSubmission,
    Platform,
    SourceType,
)
from code_deployer.schemas.user import CurrentUser
from code_deployer.services.platforms.adapter_base import PublishRequest
from code_deployer.services.platforms.registry import PlatformRegistry, build_platform_registry
from code_deployer.services.storage_service import ArtifactStorage, artifact_storage

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal deployment error occurred."
DEFAULT_FAILURE_MESSAGE = "Deployment failed. Please check your project configuration."
STUCK_PENDING_MESSAGE = "Deployment task never started (timeout)"
STUCK_IN_PROGRESS_MESSAGE = "Deployment execution timed out"

# The failure transition is retried once; writing the same terminal state twice is safe
FAILURE_WRITE_ATTEMPTS = 2


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_submission(
    submission: DeploymentSubmission,
    max_upload_size: int,
    allowed_extensions: Sequence[str],
) -> Tuple[str, Platform, SourceType]:
    """
    Validate a deployment request, stopping at the first violation.

    Returns:
        Tuple of (normalized project name, platform, source type)

    Raises:
        InvalidFieldError: Naming the first offending field
    """
    project_name = _blank_to_none(submission.project_name)
    if not project_name:
        raise InvalidFieldError("project_name", "Project name is required")

    try:
        platform = Platform((submission.platform or "").strip().lower())
    except ValueError:
        choices = ", ".join(p.value for p in Platform)
        raise InvalidFieldError("platform", f"Platform must be one of: {choices}")

    repository_url = _blank_to_none(submission.repository_url)
    upload = submission.upload

    if upload is None and repository_url is None:
        raise InvalidFieldError("source", "Either file upload or repository URL is required")
    if upload is not None and repository_url is not None:
        raise InvalidFieldError("source", "Provide either a file upload or a repository URL, not both")

    if repository_url is not None:
        parsed = urlparse(repository_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidFieldError("repository_url", "Repository URL must be a valid http(s) URL")
        return project_name, platform, SourceType.REPOSITORY

    filename = (upload.filename or "").strip()
    if not filename:
        raise InvalidFieldError("file", "Uploaded file must have a name")
    if not any(filename.lower().endswith(ext) for ext in allowed_extensions):
        raise InvalidFieldError("file", f"Only {', '.join(allowed_extensions)} archives are accepted")
    if upload.size == 0:
        raise InvalidFieldError("file", "Uploaded file is empty")
    if upload.size > max_upload_size:
        raise InvalidFieldError("file", f"Uploaded file exceeds the {max_upload_size} byte limit")

    return project_name, platform, SourceType.UPLOAD


class DeploymentService:
    """
    Orchestration service for deployments.

    Provides the submission handler, the lifecycle driver, the owner-scoped
    query and the stuck-deployment sweep.
    """

    def __init__(
        self,
        storage: ArtifactStorage,
        platforms: PlatformRegistry,
        publish_timeout: float = 300.0,
        max_upload_size: int = 104857600,
        allowed_extensions: Sequence[str] = (".zip",),
        stuck_pending_minutes: int = 10,
        stuck_in_progress_minutes: int = 15,
        dispatcher=None,
    ):
        """
        Args:
            storage: Object storage for uploaded archives
            platforms: Adapter registry used to publish
            publish_timeout: Seconds a publish may take before it is failed
            max_upload_size: Largest accepted archive in bytes
            allowed_extensions: Accepted archive extensions
            stuck_pending_minutes: Age after which a pending record is failed
            stuck_in_progress_minutes: Idle time after which an in_progress record is failed
            dispatcher: Task dispatcher; defaults to the shared task_dispatcher
        """
        self.storage = storage
        self.platforms = platforms
        self.publish_timeout = publish_timeout
        self.max_upload_size = max_upload_size
        self.allowed_extensions = list(allowed_extensions)
        self.stuck_pending_minutes = stuck_pending_minutes
        self.stuck_in_progress_minutes = stuck_in_progress_minutes
        self._dispatcher = dispatcher

    @property
    def dispatcher(self):
        if self._dispatcher is not None:
            return self._dispatcher
        from code_deployer.services import task_dispatcher as dispatch_module
        return dispatch_module.task_dispatcher

    def _emit_status(self, deployment_id: UUID, old: DeploymentStatus, new: DeploymentStatus) -> None:
        event_dispatcher.dispatch(
            DeploymentStatusChangedEvent(
                deployment_id=deployment_id,
                old_status=old.value,
                new_status=new.value,
            )
        )

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit_deployment(
        self,
        db: AsyncSession,
        owner: CurrentUser,
        submission: DeploymentSubmission,
    ) -> Deployment:
        """
        Validate, persist and schedule a deployment.

        Order: archive upload (if any) -> pending record -> publish task.
        Nothing is persisted if validation or upload fails.

        Args:
            db: Database session
            owner: Verified identity of the submitter
            submission: Raw request fields

        Returns:
            The pending deployment record

        Raises:
            MissingCredentialsError: If no owner is given
            InvalidFieldError: On the first invalid field
            StorageError: If the archive cannot be stored
            PersistenceError: If the record cannot be inserted
        """
        if owner is None:
            raise MissingCredentialsError()

        project_name, platform, source_type = validate_submission(
            submission, self.max_upload_size, self.allowed_extensions
        )

        if source_type == SourceType.UPLOAD:
            upload = submission.upload
            source_url = self.storage.store(upload.content, f"{owner.id}/{upload.filename}")
        else:
            source_url = submission.repository_url.strip()

        repo = DeploymentRepository(db)
        try:
            deployment = await repo.create_deployment(
                user_id=owner.id,
                project_name=project_name,
                platform=platform.value,
                source_type=source_type.value,
                source_url=source_url,
            )
        except PersistenceError:
            if source_type == SourceType.UPLOAD:
                self.storage.delete(source_url)
            raise

        # Fire and forget: the response does not wait for the lifecycle
        task_id = self.dispatcher.dispatch_deployment(deployment.id)
        if task_id is None:
            logger.warning(
                f"Deployment {deployment.id} was persisted but its publish task was not queued"
            )

        event_dispatcher.dispatch(
            DeploymentCreatedEvent(
                deployment_id=deployment.id,
                user_id=owner.id,
                platform=platform.value,
                source_type=source_type.value,
            )
        )
        return deployment

    # =========================================================================
    # Query
    # =========================================================================

    async def list_for_owner(
        self,
        db: AsyncSession,
        owner: Optional[CurrentUser],
    ) -> List[Deployment]:
        """
        List the owner's deployments, newest first.

        Raises:
            MissingCredentialsError: If no owner identity is given
        """
        if owner is None:
            raise MissingCredentialsError()
        return await DeploymentRepository(db).list_for_owner(owner.id)

    async def get_for_owner(
        self,
        db: AsyncSession,
        owner: Optional[CurrentUser],
        deployment_id: UUID,
    ) -> Deployment:
        """
        Get one of the owner's deployments.

        Raises:
            MissingCredentialsError: If no owner identity is given
            DeploymentNotFoundError: If missing or owned by someone else
        """
        if owner is None:
            raise MissingCredentialsError()
        return await DeploymentRepository(db).get_for_owner_or_raise(deployment_id, owner.id)

    # =========================================================================
    # Lifecycle driver
    # =========================================================================

    async def execute_deployment(
        self,
        db: AsyncSession,
        deployment_id: UUID,
    ) -> Optional[DeploymentStatus]:
        """
        Drive a pending deployment to a terminal state.

        This is called by the Celery worker and never raises: every fault is
        reported and expressed through the deployment record.

        Args:
            db: Database session
            deployment_id: ID of the deployment to execute

        Returns:
            The terminal status written, or None if nothing was written
            (duplicate trigger, record finalized elsewhere, or the failure
            write itself failed)
        """
        repo = DeploymentRepository(db)

        try:
            started = await repo.mark_in_progress(deployment_id)
        except Exception as e:
            report_fault(deployment_id, "mark_in_progress", e)
            return await self._fail_safely(
                db, deployment_id, INTERNAL_ERROR_MESSAGE, DeploymentStatus.PENDING
            )

        if not started:
            logger.warning(
                f"Deployment {deployment_id} is missing or no longer pending, "
                f"ignoring duplicate trigger"
            )
            return None

        self._emit_status(deployment_id, DeploymentStatus.PENDING, DeploymentStatus.IN_PROGRESS)

        try:
            deployment = await repo.get_by_id_or_raise(deployment_id)
            adapter = self.platforms.get(deployment.platform)
            request = PublishRequest(
                deployment_id=deployment.id,
                project_name=deployment.project_name,
                source_type=deployment.source_type,
                source_url=deployment.source_url,
            )
            result = await asyncio.wait_for(adapter.publish(request), timeout=self.publish_timeout)
        except asyncio.TimeoutError:
            logger.error(f"Deployment {deployment_id} publish timed out after {self.publish_timeout}s")
            error_message = f"Deployment timed out after {self.publish_timeout:g} seconds."
        except AdapterError as e:
            logger.error(f"Deployment {deployment_id} rejected by {e.platform}: {e.reason}")
            error_message = e.reason
        except Exception as e:
            report_fault(deployment_id, "publish", e)
            error_message = INTERNAL_ERROR_MESSAGE
        else:
            if result.success and result.preview_url:
                try:
                    changed = await repo.finalize(
                        deployment_id,
                        DeploymentStatus.SUCCESS,
                        preview_url=result.preview_url,
                    )
                except Exception as e:
                    report_fault(deployment_id, "mark_success", e)
                    error_message = INTERNAL_ERROR_MESSAGE
                else:
                    if not changed:
                        logger.warning(
                            f"Deployment {deployment_id} was finalized elsewhere during publish, "
                            f"discarding result {result.preview_url}"
                        )
                        return None
                    logger.info(f"Deployment {deployment_id} live at {result.preview_url}")
                    self._emit_status(
                        deployment_id, DeploymentStatus.IN_PROGRESS, DeploymentStatus.SUCCESS
                    )
                    return DeploymentStatus.SUCCESS
            elif result.success:
                logger.error(f"Deployment {deployment_id}: adapter reported success without a preview URL")
                error_message = INTERNAL_ERROR_MESSAGE
            else:
                error_message = result.error_message or DEFAULT_FAILURE_MESSAGE

        return await self._fail_safely(
            db, deployment_id, error_message, DeploymentStatus.IN_PROGRESS
        )

    async def _fail_safely(
        self,
        db: AsyncSession,
        deployment_id: UUID,
        error_message: str,
        from_status: DeploymentStatus,
    ) -> Optional[DeploymentStatus]:
        """
        Write the failed state, containing any fault raised while doing so.

        Returns:
            DeploymentStatus.FAILED if this call failed the record, None if the
            write could not be made or the record was already terminal
        """
        repo = DeploymentRepository(db)
        for attempt in range(1, FAILURE_WRITE_ATTEMPTS + 1):
            try:
                await db.rollback()
                changed = await repo.finalize(
                    deployment_id,
                    DeploymentStatus.FAILED,
                    error_message=error_message,
                )
            except Exception as e:
                logger.warning(
                    f"Attempt {attempt} to mark deployment {deployment_id} as failed did not succeed: {e}"
                )
                if attempt == FAILURE_WRITE_ATTEMPTS:
                    report_fault(deployment_id, "mark_failed", e)
                    return None
                continue

            if not changed:
                logger.warning(f"Deployment {deployment_id} was already finalized, failure not recorded")
                return None

            logger.error(f"Deployment {deployment_id} failed: {error_message}")
            self._emit_status(deployment_id, from_status, DeploymentStatus.FAILED)
            return DeploymentStatus.FAILED
        return None

    # =========================================================================
    # Maintenance
    # =========================================================================

    async def cleanup_stuck_deployments(self, db: AsyncSession) -> int:
        """
        Fail deployments stuck in a non-terminal state.

        - pending longer than stuck_pending_minutes: the task never started
        - in_progress idle longer than stuck_in_progress_minutes: the worker died
          or the adapter hung past its timeout

        Args:
            db: Database session

        Returns:
            Number of deployments failed
        """
        now = datetime.utcnow()
        repo = DeploymentRepository(db)
        cleaned = 0

        sweeps = (
            (DeploymentStatus.PENDING, self.stuck_pending_minutes, STUCK_PENDING_MESSAGE),
            (DeploymentStatus.IN_PROGRESS, self.stuck_in_progress_minutes, STUCK_IN_PROGRESS_MESSAGE),
        )
        for status, minutes, message in sweeps:
            stuck = await repo.find_stuck(status, now - timedelta(minutes=minutes))
            for deployment in stuck:
                logger.warning(f"Deployment {deployment.id} stuck in {status.value}, marking as failed")
                changed = await repo.finalize(
                    deployment.id,
                    DeploymentStatus.FAILED,
                    error_message=message,
                    from_statuses=(status.value,),
                )
                if changed:
                    self._emit_status(deployment.id, status, DeploymentStatus.FAILED)
                    cleaned += 1

        if cleaned > 0:
            logger.info(f"Cleaned up {cleaned} stuck deployments")

        return cleaned


# Singleton instance, configured once at process start
deployment_service = DeploymentService(
    storage=artifact_storage,
    platforms=build_platform_registry(settings),
    publish_timeout=settings.PUBLISH_TIMEOUT_SECONDS,
    max_upload_size=settings.MAX_UPLOAD_SIZE,
    allowed_extensions=settings.get_allowed_archive_extensions(),
    stuck_pending_minutes=settings.STUCK_PENDING_MINUTES,
    stuck_in_progress_minutes=settings.STUCK_IN_PROGRESS_MINUTES,
)
