import logging
from uuid import UUID

from celery import Celery, Task
from celery.signals import worker_ready

from code_deployer.core.config import settings

logger = logging.getLogger(__name__)

GENERIC_TASK_FAILURE_MESSAGE = "Internal deployment error occurred."


class DeploymentTask(Task):
    """
    Base Celery task class for deployment lifecycle tasks.

    Provides automatic failure handling: when a task body raises, the
    deployment is marked failed so it never stays pending or in_progress.

    Usage:
        @celery_app.task(base=DeploymentTask, bind=True, acks_late=True)
        def publish_deployment_task(self, deployment_id: str):
            # Task implementation
            pass
    """

    # Only non-terminal deployments are overwritten
    fail_on_statuses = ("pending", "in_progress")

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """
        Called when the task raises an exception.

        Args:
            exc: The exception raised by the task
            task_id: The unique task ID
            args: The positional arguments passed to the task
            kwargs: The keyword arguments passed to the task
            einfo: The exception info (traceback)
        """
        # The first argument is always deployment_id for deployment tasks
        deployment_id = args[0] if args else kwargs.get("deployment_id")

        if deployment_id:
            logger.error(
                f"Deployment task failed for {deployment_id}: {exc}",
                exc_info=einfo.exc_info if einfo else None
            )
            self._mark_deployment_failed(deployment_id)
        else:
            logger.error(f"Task failed but no deployment_id found: {exc}")

        super().on_failure(exc, task_id, args, kwargs, einfo)

    def _mark_deployment_failed(self, deployment_id: str) -> bool:
        """
        Mark a deployment as failed in the database.

        The stored message is generic; exception details only go to the log.
        Uses a separate event loop since this runs in the Celery worker context.

        Returns:
            True if the deployment was failed by this call, False otherwise
        """
        try:
            from code_deployer.core.async_helpers import run_async_with_db
            from code_deployer.repositories.deployment_repository import DeploymentRepository
            from code_deployer.schemas.deployment import DeploymentStatus

            async def mark_failed(db):
                repo = DeploymentRepository(db)
                changed = await repo.finalize(
                    UUID(str(deployment_id)),
                    DeploymentStatus.FAILED,
                    error_message=GENERIC_TASK_FAILURE_MESSAGE,
                    from_statuses=self.fail_on_statuses,
                )
                if changed:
                    logger.info(f"Marked deployment {deployment_id} as failed due to task error")
                return changed

            return run_async_with_db(mark_failed)
        except Exception as e:
            logger.warning(f"Could not mark deployment {deployment_id} as failed: {e}")
            return False


celery_app = Celery(
    "worker",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["code_deployer.worker"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Tasks queued longer than this are discarded; the sweep fails their deployments
    task_default_expires=settings.TASK_EXPIRY_HOURS * 3600,
    # Result expiration (1 day)
    result_expires=86400,
    beat_schedule={
        'cleanup-stuck-deployments': {
            'task': 'code_deployer.worker.cleanup_stuck_deployments_task',
            'schedule': settings.STUCK_SWEEP_INTERVAL_SECONDS,
        },
    },
)


@worker_ready.connect
def on_worker_ready(sender, **kwargs):
    """
    Handle worker ready signal.

    Registers the event handlers so lifecycle events and faults raised inside
    the worker are logged, then runs one stuck-deployment sweep.
    """
    logger.info("Worker ready - running startup tasks...")

    from code_deployer.core.event_handlers import register_all_handlers
    register_all_handlers()

    try:
        from code_deployer.core.async_helpers import run_async_with_db
        from code_deployer.services.deployment.deployment_service import deployment_service

        cleaned = run_async_with_db(deployment_service.cleanup_stuck_deployments)
        logger.info(f"Startup sweep: {cleaned} stuck deployments marked as failed")
    except Exception as e:
        logger.error(f"Error during worker startup tasks: {e}")
