"""
Task dispatcher service for decoupling the submission path from Celery.

The submission handler schedules the lifecycle driver through this module and
never waits for it. Tests replace the Celery implementation with a no-op.

Usage:
    from code_deployer.services.task_dispatcher import task_dispatcher

    task_dispatcher.dispatch_deployment(deployment_id)

    # In tests:
    with patch('code_deployer.services.task_dispatcher.task_dispatcher') as mock:
        mock.dispatch_deployment.return_value = "task-id"
"""
import logging
from typing import Optional, Protocol
from uuid import UUID

logger = logging.getLogger(__name__)


class TaskDispatcherProtocol(Protocol):
    """Protocol defining the task dispatcher interface."""

    def dispatch_deployment(self, deployment_id: UUID) -> Optional[str]:
        """Dispatch the lifecycle driver for a deployment."""
        ...


class CeleryTaskDispatcher:
    """
    Task dispatcher implementation using Celery.

    Celery imports are deferred to method calls to avoid circular imports.
    Dispatch failures are logged and reported as None; a deployment whose task
    was never queued is failed later by the stuck-deployment sweep.
    """

    def dispatch_deployment(self, deployment_id: UUID) -> Optional[str]:
        """
        Dispatch a publish task.

        Args:
            deployment_id: UUID of the pending deployment

        Returns:
            Task ID if dispatched successfully, None otherwise
        """
        try:
            from code_deployer.worker import publish_deployment_task

            result = publish_deployment_task.delay(str(deployment_id))
            logger.info(f"Dispatched publish task for {deployment_id}: {result.id}")
            return result.id
        except Exception as e:
            logger.error(f"Failed to dispatch publish task for {deployment_id}: {e}")
            return None


class NoOpTaskDispatcher:
    """
    No-op task dispatcher for testing.

    This implementation does nothing, allowing tests to run without Celery.
    """

    def dispatch_deployment(self, deployment_id: UUID) -> Optional[str]:
        logger.debug(f"NoOp: dispatch_deployment({deployment_id})")
        return f"noop-deployment-{deployment_id}"


def _create_dispatcher() -> TaskDispatcherProtocol:
    """
    Create the appropriate task dispatcher based on environment.

    Returns CeleryTaskDispatcher for production, NoOpTaskDispatcher for tests.
    """
    import os

    environment = os.getenv("ENVIRONMENT", "production")

    if environment == "test":
        logger.info("Using NoOpTaskDispatcher for test environment")
        return NoOpTaskDispatcher()

    return CeleryTaskDispatcher()


# Singleton instance for shared use
task_dispatcher: TaskDispatcherProtocol = _create_dispatcher()
