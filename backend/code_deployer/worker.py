"""
Celery tasks for background job execution.

This module contains the Celery tasks that run in the worker process: the
deployment lifecycle driver and the periodic stuck-deployment sweep.

Uses run_async_with_db from async_helpers for clean async/await execution.
Deployment tasks use the DeploymentTask base class for automatic failure handling.
"""
import logging
from uuid import UUID

from code_deployer.core.async_helpers import run_async_with_db
from code_deployer.core.celery_app import celery_app, DeploymentTask

logger = logging.getLogger(__name__)


# =============================================================================
# Deployment Lifecycle Tasks
#
# These tasks use the DeploymentTask base class which marks deployments as
# failed via the on_failure hook when a task raises an exception.
# =============================================================================

@celery_app.task(base=DeploymentTask, bind=True, acks_late=True)
def publish_deployment_task(self, deployment_id: str):
    """
    Celery task to drive a pending deployment to success or failed.

    Args:
        deployment_id: UUID of the deployment
    """
    logger.info(f"Starting publish task for {deployment_id}")

    from code_deployer.services.deployment.deployment_service import deployment_service

    async def run_deployment(db):
        return await deployment_service.execute_deployment(db, UUID(deployment_id))

    status = run_async_with_db(run_deployment)

    if status is None:
        logger.info(f"Publish task for {deployment_id} made no status change")
        return f"Deployment {deployment_id} unchanged"

    logger.info(f"Publish task for {deployment_id} completed: {status.value}")
    return f"Deployment {deployment_id} {status.value}"


@celery_app.task(acks_late=True)
def cleanup_stuck_deployments_task():
    """
    Periodic task that fails deployments stuck in pending or in_progress.
    """
    logger.info("Running stuck deployment cleanup")
    try:
        from code_deployer.services.deployment.deployment_service import deployment_service

        cleaned = run_async_with_db(deployment_service.cleanup_stuck_deployments)

        return f"Stuck deployment cleanup: {cleaned} marked as failed"
    except Exception as e:
        logger.error(f"Stuck deployment cleanup failed: {e}")
        return f"Stuck deployment cleanup failed: {e}"
