"""
Tests for the submission handler.

Tests cover:
- Validation rules and their order
- Side-effect order: archive upload, pending record, task dispatch
- Nothing persisted when validation or upload fails
- Artifact cleanup when the insert fails
- Owner-scoped queries

Run with: pytest backend/tests/test_submission.py -v
"""
from unittest.mock import MagicMock, patch

import pytest

from code_deployer.core.exceptions import (
    AuthorizationError,
    InvalidFieldError,
    PersistenceError,
    StorageError,
)
from code_deployer.schemas.deployment import ArtifactUpload, DeploymentSubmission
from code_deployer.services.deployment.deployment_service import validate_submission


def _submission(**overrides):
    fields = dict(
        project_name="my-site",
        platform="vercel",
        repository_url="https://github.com/acme/my-site",
        upload=None,
    )
    fields.update(overrides)
    return DeploymentSubmission(**fields)


def _zip(name="site.zip", content=b"PK\x03\x04data"):
    return ArtifactUpload(filename=name, content=content)


class TestValidateSubmission:
    """Tests for validate_submission."""

    def _validate(self, submission):
        return validate_submission(submission, max_upload_size=1024, allowed_extensions=[".zip"])

    def test_repository_submission_is_valid(self):
        name, platform, source_type = self._validate(_submission())

        assert name == "my-site"
        assert platform.value == "vercel"
        assert source_type.value == "repository"

    def test_upload_submission_is_valid(self):
        name, platform, source_type = self._validate(
            _submission(platform="netlify", repository_url=None, upload=_zip())
        )

        assert platform.value == "netlify"
        assert source_type.value == "upload"

    def test_project_name_is_trimmed(self):
        name, _, _ = self._validate(_submission(project_name="  spaced  "))
        assert name == "spaced"

    @pytest.mark.parametrize("project_name", [None, "", "   "])
    def test_missing_project_name(self, project_name):
        with pytest.raises(InvalidFieldError) as exc_info:
            self._validate(_submission(project_name=project_name))

        assert exc_info.value.message == "Project name is required"
        assert exc_info.value.details["field"] == "project_name"

    @pytest.mark.parametrize("platform", [None, "", "heroku"])
    def test_invalid_platform(self, platform):
        with pytest.raises(InvalidFieldError) as exc_info:
            self._validate(_submission(platform=platform))

        assert exc_info.value.details["field"] == "platform"

    def test_no_source(self):
        with pytest.raises(InvalidFieldError) as exc_info:
            self._validate(_submission(repository_url=None))

        assert exc_info.value.message == "Either file upload or repository URL is required"

    def test_blank_repository_url_counts_as_missing(self):
        with pytest.raises(InvalidFieldError) as exc_info:
            self._validate(_submission(repository_url="  "))

        assert exc_info.value.message == "Either file upload or repository URL is required"

    def test_both_sources(self):
        with pytest.raises(InvalidFieldError) as exc_info:
            self._validate(_submission(upload=_zip()))

        assert exc_info.value.message == "Provide either a file upload or a repository URL, not both"

    @pytest.mark.parametrize("url", ["not a url", "ftp://example.com/repo", "https://"])
    def test_invalid_repository_url(self, url):
        with pytest.raises(InvalidFieldError) as exc_info:
            self._validate(_submission(repository_url=url))

        assert exc_info.value.details["field"] == "repository_url"

    def test_rejects_non_zip_upload(self):
        with pytest.raises(InvalidFieldError) as exc_info:
            self._validate(_submission(repository_url=None, upload=_zip(name="site.tar.gz")))

        assert exc_info.value.details["field"] == "file"

    def test_accepts_uppercase_zip_extension(self):
        _, _, source_type = self._validate(
            _submission(repository_url=None, upload=_zip(name="SITE.ZIP"))
        )
        assert source_type.value == "upload"

    def test_rejects_empty_upload(self):
        with pytest.raises(InvalidFieldError) as exc_info:
            self._validate(_submission(repository_url=None, upload=_zip(content=b"")))

        assert exc_info.value.message == "Uploaded file is empty"

    def test_rejects_oversized_upload(self):
        with pytest.raises(InvalidFieldError) as exc_info:
            self._validate(_submission(repository_url=None, upload=_zip(content=b"x" * 1025)))

        assert exc_info.value.details["field"] == "file"

    def test_first_violation_wins(self):
        """Missing project name is reported even when platform and source are also bad."""
        with pytest.raises(InvalidFieldError) as exc_info:
            self._validate(_submission(project_name="", platform="heroku", repository_url=None))

        assert exc_info.value.details["field"] == "project_name"


class TestSubmitDeployment:
    """Tests for DeploymentService.submit_deployment."""

    @pytest.mark.asyncio
    async def test_repository_submission_creates_pending_record(
        self, service, deployment_store, owner, mock_db_session, mock_dispatcher
    ):
        deployment = await service.submit_deployment(mock_db_session, owner, _submission())

        assert deployment.status == "pending"
        assert deployment.user_id == owner.id
        assert deployment.source_type == "repository"
        assert deployment.source_url == "https://github.com/acme/my-site"
        assert deployment.preview_url is None
        assert deployment.error_message is None
        assert deployment.id in deployment_store.records
        mock_dispatcher.dispatch_deployment.assert_called_once_with(deployment.id)

    @pytest.mark.asyncio
    async def test_upload_submission_stores_archive_first(
        self, service, deployment_store, owner, mock_db_session, artifact_storage
    ):
        deployment = await service.submit_deployment(
            mock_db_session, owner, _submission(repository_url=None, upload=_zip())
        )

        assert deployment.source_type == "upload"
        assert deployment.source_url.startswith(f"http://files.test/artifacts/{owner.id}/")
        assert deployment.source_url.endswith("_site.zip")
        stored = artifact_storage.url_to_path(deployment.source_url)
        assert stored.read_bytes() == b"PK\x03\x04data"

    @pytest.mark.asyncio
    async def test_submission_emits_created_event(
        self, service, deployment_store, owner, mock_db_session, captured_events
    ):
        deployment = await service.submit_deployment(mock_db_session, owner, _submission())

        created = [e for e in captured_events if e.event_type == "DeploymentCreatedEvent"]
        assert len(created) == 1
        assert created[0].deployment_id == deployment.id
        assert created[0].platform == "vercel"

    @pytest.mark.asyncio
    async def test_validation_failure_persists_nothing(
        self, service, deployment_store, owner, mock_db_session, mock_dispatcher
    ):
        with pytest.raises(InvalidFieldError):
            await service.submit_deployment(mock_db_session, owner, _submission(platform="heroku"))

        assert deployment_store.records == {}
        mock_dispatcher.dispatch_deployment.assert_not_called()

    @pytest.mark.asyncio
    async def test_storage_failure_persists_nothing(
        self, service, deployment_store, owner, mock_db_session, mock_dispatcher
    ):
        with patch.object(service.storage, "store", side_effect=StorageError("artifact upload", "disk full")):
            with pytest.raises(StorageError):
                await service.submit_deployment(
                    mock_db_session, owner, _submission(repository_url=None, upload=_zip())
                )

        assert deployment_store.records == {}
        assert "create_deployment" not in deployment_store.calls
        mock_dispatcher.dispatch_deployment.assert_not_called()

    @pytest.mark.asyncio
    async def test_insert_failure_removes_uploaded_archive(
        self, service, deployment_store, owner, mock_db_session, mock_dispatcher
    ):
        deployment_store.fail_next("create_deployment", PersistenceError("create deployments", "down"))

        with patch.object(service.storage, "delete", wraps=service.storage.delete) as mock_delete:
            with pytest.raises(PersistenceError):
                await service.submit_deployment(
                    mock_db_session, owner, _submission(repository_url=None, upload=_zip())
                )

        mock_delete.assert_called_once()
        stored_url = mock_delete.call_args[0][0]
        assert service.storage.url_to_path(stored_url).exists() is False
        mock_dispatcher.dispatch_deployment.assert_not_called()

    @pytest.mark.asyncio
    async def test_dispatch_failure_still_returns_pending_record(
        self, service, deployment_store, owner, mock_db_session, mock_dispatcher
    ):
        """The sweep fails records whose task was never queued."""
        mock_dispatcher.dispatch_deployment.return_value = None

        deployment = await service.submit_deployment(mock_db_session, owner, _submission())

        assert deployment.status == "pending"

    @pytest.mark.asyncio
    async def test_missing_owner_is_rejected(self, service, deployment_store, mock_db_session):
        with pytest.raises(AuthorizationError):
            await service.submit_deployment(mock_db_session, None, _submission())

        assert deployment_store.records == {}

    @pytest.mark.asyncio
    async def test_default_dispatcher_is_the_shared_instance(self, artifact_storage, deployment_store, owner, mock_db_session):
        from code_deployer.services.deployment.deployment_service import DeploymentService
        from code_deployer.services.platforms.registry import PlatformRegistry

        service = DeploymentService(storage=artifact_storage, platforms=PlatformRegistry())

        with patch("code_deployer.services.task_dispatcher.task_dispatcher") as mock_dispatcher:
            mock_dispatcher.dispatch_deployment = MagicMock(return_value="task-1")
            deployment = await service.submit_deployment(mock_db_session, owner, _submission())

        mock_dispatcher.dispatch_deployment.assert_called_once_with(deployment.id)


class TestOwnerQuery:

    @pytest.mark.asyncio
    async def test_list_returns_only_owned_newest_first(self, service, deployment_store, owner, mock_db_session):
        from datetime import datetime, timedelta
        from uuid import uuid4

        now = datetime.utcnow()
        first = deployment_store.add(user_id=owner.id, created_at=now - timedelta(hours=1))
        second = deployment_store.add(user_id=owner.id, created_at=now)
        deployment_store.add(user_id=uuid4(), created_at=now + timedelta(minutes=1))

        deployments = await service.list_for_owner(mock_db_session, owner)

        assert [d.id for d in deployments] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_list_without_owner_is_rejected(self, service, deployment_store, mock_db_session):
        with pytest.raises(AuthorizationError):
            await service.list_for_owner(mock_db_session, None)

        assert deployment_store.calls == []

    @pytest.mark.asyncio
    async def test_get_someone_elses_deployment_is_not_found(self, service, deployment_store, owner, mock_db_session):
        from uuid import uuid4

        from code_deployer.core.exceptions import DeploymentNotFoundError

        other = deployment_store.add(user_id=uuid4())

        with pytest.raises(DeploymentNotFoundError):
            await service.get_for_owner(mock_db_session, owner, other.id)
