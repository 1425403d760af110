"""
Tests for the DeploymentTask Celery base class and the worker tasks.

Tests cover:
- on_failure hook marking deployments as failed
- Status filtering (only non-terminal deployments are overwritten)
- Error handling and logging
- publish / cleanup tasks delegating to the deployment service

Run with: pytest backend/tests/test_deployment_task.py -v
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

# Skip all tests if celery is not installed
celery = pytest.importorskip("celery")


def _run_with(db):
    """Build a run_async_with_db replacement that runs func(db) on a fresh loop."""
    def capture_and_run(func):
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(func(db))
        finally:
            loop.close()
    return capture_and_run


class TestDeploymentTaskOnFailure:
    """Tests for DeploymentTask on_failure hook."""

    def test_on_failure_marks_deployment_failed(self):
        """Test that on_failure marks deployment as failed."""
        from code_deployer.core.celery_app import DeploymentTask

        task = DeploymentTask()
        deployment_id = str(uuid4())

        with patch.object(task, '_mark_deployment_failed', return_value=True) as mock_mark:
            task.on_failure(
                exc=Exception("Test error"),
                task_id="test-task-123",
                args=[deployment_id],
                kwargs={},
                einfo=None
            )

            mock_mark.assert_called_once_with(deployment_id)

    def test_on_failure_handles_no_deployment_id(self):
        """Test that on_failure handles missing deployment_id gracefully."""
        from code_deployer.core.celery_app import DeploymentTask

        task = DeploymentTask()

        with patch.object(task, '_mark_deployment_failed') as mock_mark:
            task.on_failure(
                exc=Exception("Test error"),
                task_id="test-task-123",
                args=[],
                kwargs={},
                einfo=None
            )

            mock_mark.assert_not_called()

    def test_on_failure_with_kwargs_deployment_id(self):
        """Test on_failure when deployment_id is passed as a keyword."""
        from code_deployer.core.celery_app import DeploymentTask

        task = DeploymentTask()
        deployment_id = str(uuid4())

        with patch.object(task, '_mark_deployment_failed') as mock_mark:
            task.on_failure(
                exc=Exception("Test error"),
                task_id="test-task-123",
                args=[],
                kwargs={"deployment_id": deployment_id},
                einfo=None
            )

            mock_mark.assert_called_once_with(deployment_id)


class TestDeploymentTaskMarkFailed:
    """Tests for DeploymentTask._mark_deployment_failed method."""

    def test_mark_deployment_failed_writes_generic_message(self, deployment_store):
        """The stored message never carries exception details."""
        from code_deployer.core.celery_app import DeploymentTask, GENERIC_TASK_FAILURE_MESSAGE

        task = DeploymentTask()
        deployment = deployment_store.add(status="in_progress")

        with patch('code_deployer.core.async_helpers.run_async_with_db', side_effect=_run_with(AsyncMock())), \
             patch('code_deployer.repositories.deployment_repository.DeploymentRepository', deployment_store.repository):
            result = task._mark_deployment_failed(str(deployment.id))

        assert result is True
        assert deployment.status == "failed"
        assert deployment.error_message == GENERIC_TASK_FAILURE_MESSAGE
        assert deployment.preview_url is None

    def test_mark_deployment_failed_only_updates_active_statuses(self, deployment_store):
        """A deployment that already succeeded is left untouched."""
        from code_deployer.core.celery_app import DeploymentTask

        task = DeploymentTask()
        deployment = deployment_store.add(status="success")

        with patch('code_deployer.core.async_helpers.run_async_with_db', side_effect=_run_with(AsyncMock())), \
             patch('code_deployer.repositories.deployment_repository.DeploymentRepository', deployment_store.repository):
            result = task._mark_deployment_failed(str(deployment.id))

        assert result is False
        assert deployment.status == "success"

    def test_mark_deployment_failed_handles_exception(self):
        """Test that _mark_deployment_failed handles database errors."""
        from code_deployer.core.celery_app import DeploymentTask

        task = DeploymentTask()

        with patch('code_deployer.core.async_helpers.run_async_with_db') as mock_run:
            mock_run.side_effect = Exception("Database connection failed")

            result = task._mark_deployment_failed(str(uuid4()))

        assert result is False

    def test_default_fail_on_statuses(self):
        """Test default fail_on_statuses configuration."""
        from code_deployer.core.celery_app import DeploymentTask

        assert DeploymentTask.fail_on_statuses == ("pending", "in_progress")


class TestPublishDeploymentTask:
    """Tests for the worker tasks."""

    def test_publish_task_runs_lifecycle(self):
        from code_deployer.schemas.deployment import DeploymentStatus
        from code_deployer.worker import publish_deployment_task

        deployment_id = uuid4()
        mock_service = MagicMock()
        mock_service.execute_deployment = AsyncMock(return_value=DeploymentStatus.SUCCESS)

        with patch('code_deployer.services.deployment.deployment_service.deployment_service', mock_service), \
             patch('code_deployer.worker.run_async_with_db', side_effect=_run_with(AsyncMock())):
            result = publish_deployment_task.run(str(deployment_id))

        mock_service.execute_deployment.assert_awaited_once()
        assert mock_service.execute_deployment.call_args[0][1] == deployment_id
        assert result == f"Deployment {deployment_id} success"

    def test_publish_task_reports_unchanged(self):
        from code_deployer.worker import publish_deployment_task

        deployment_id = uuid4()
        mock_service = MagicMock()
        mock_service.execute_deployment = AsyncMock(return_value=None)

        with patch('code_deployer.services.deployment.deployment_service.deployment_service', mock_service), \
             patch('code_deployer.worker.run_async_with_db', side_effect=_run_with(AsyncMock())):
            result = publish_deployment_task.run(str(deployment_id))

        assert result == f"Deployment {deployment_id} unchanged"

    def test_cleanup_task_returns_count(self):
        from code_deployer.worker import cleanup_stuck_deployments_task

        mock_service = MagicMock()
        mock_service.cleanup_stuck_deployments = AsyncMock(return_value=3)

        with patch('code_deployer.services.deployment.deployment_service.deployment_service', mock_service), \
             patch('code_deployer.worker.run_async_with_db', side_effect=_run_with(AsyncMock())):
            result = cleanup_stuck_deployments_task.run()

        assert result == "Stuck deployment cleanup: 3 marked as failed"

    def test_cleanup_task_swallows_errors(self):
        from code_deployer.worker import cleanup_stuck_deployments_task

        with patch('code_deployer.worker.run_async_with_db', side_effect=Exception("db down")):
            result = cleanup_stuck_deployments_task.run()

        assert "failed" in result

    def test_beat_schedules_cleanup(self):
        from code_deployer.core.celery_app import celery_app

        schedule = celery_app.conf.beat_schedule['cleanup-stuck-deployments']
        assert schedule['task'] == 'code_deployer.worker.cleanup_stuck_deployments_task'
