"""
Repository for Deployment entity database operations.

Status writes are conditional on the current status, so a record can only
move forward through pending -> in_progress -> success | failed, and a
second writer racing on the same id becomes a no-op instead of a revert.
"""
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import desc, select, update
from sqlalchemy.exc import SQLAlchemyError

from code_deployer.core.exceptions import DeploymentNotFoundError, PersistenceError
from code_deployer.models.deployment import ACTIVE_STATUSES, Deployment
from code_deployer.repositories.base import BaseRepository
from code_deployer.schemas.deployment import DeploymentStatus


class DeploymentRepository(BaseRepository[Deployment]):
    """Repository for Deployment database operations."""

    model = Deployment

    async def get_by_id_or_raise(self, id: UUID) -> Deployment:
        """Get a deployment by ID, raising exception if not found."""
        deployment = await self.get_by_id(id)
        if not deployment:
            raise DeploymentNotFoundError(str(id))
        return deployment

    async def get_for_owner_or_raise(self, id: UUID, user_id: UUID) -> Deployment:
        """
        Get a deployment owned by user_id.

        Another owner's deployment is reported exactly like a missing one.
        """
        result = await self.db.execute(
            select(Deployment).where(Deployment.id == id, Deployment.user_id == user_id)
        )
        deployment = result.scalar_one_or_none()
        if not deployment:
            raise DeploymentNotFoundError(str(id))
        return deployment

    async def list_for_owner(self, user_id: UUID) -> List[Deployment]:
        """List an owner's deployments, newest first."""
        result = await self.db.execute(
            select(Deployment)
            .where(Deployment.user_id == user_id)
            .order_by(desc(Deployment.created_at), Deployment.id)
        )
        return list(result.scalars().all())

    async def create_deployment(
        self,
        user_id: UUID,
        project_name: str,
        platform: str,
        source_type: str,
        source_url: str,
    ) -> Deployment:
        """Insert a new deployment in the pending state."""
        now = datetime.utcnow()
        deployment = Deployment(
            user_id=user_id,
            project_name=project_name,
            platform=platform,
            source_type=source_type,
            source_url=source_url,
            status=DeploymentStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        return await self.create(deployment)

    async def mark_in_progress(self, deployment_id: UUID) -> bool:
        """
        Move a pending deployment to in_progress.

        Returns:
            True if this call performed the transition, False if the record
            was missing or no longer pending
        """
        stmt = (
            update(Deployment)
            .where(
                Deployment.id == deployment_id,
                Deployment.status == DeploymentStatus.PENDING.value,
            )
            .values(status=DeploymentStatus.IN_PROGRESS.value, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError("mark deployment in_progress", str(e)) from e
        await self._commit("mark deployment in_progress")
        return result.rowcount == 1

    async def finalize(
        self,
        deployment_id: UUID,
        status: DeploymentStatus,
        preview_url: Optional[str] = None,
        error_message: Optional[str] = None,
        from_statuses: Sequence[str] = ACTIVE_STATUSES,
    ) -> bool:
        """
        Write a terminal state.

        All lifecycle fields are overwritten together so preview_url is set
        only on success and error_message only on failure. The write only
        applies while the record is in one of from_statuses, which makes
        re-applying a terminal write a no-op.

        Args:
            deployment_id: Deployment UUID
            status: SUCCESS or FAILED
            preview_url: Required for SUCCESS
            error_message: Required for FAILED
            from_statuses: Statuses the record may currently be in

        Returns:
            True if the record changed, False otherwise

        Raises:
            ValueError: If the status/field combination breaks the invariants
            PersistenceError: If the write fails
        """
        if status == DeploymentStatus.SUCCESS:
            if not preview_url:
                raise ValueError("A successful deployment requires a preview_url")
            error_message = None
        elif status == DeploymentStatus.FAILED:
            if not error_message:
                raise ValueError("A failed deployment requires an error_message")
            preview_url = None
        else:
            raise ValueError(f"Not a terminal status: {status}")

        stmt = (
            update(Deployment)
            .where(
                Deployment.id == deployment_id,
                Deployment.status.in_(list(from_statuses)),
            )
            .values(
                status=status.value,
                preview_url=preview_url,
                error_message=error_message,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        operation = f"mark deployment {status.value}"
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(operation, str(e)) from e
        await self._commit(operation)
        return result.rowcount == 1

    async def find_stuck(self, status: DeploymentStatus, older_than: datetime) -> List[Deployment]:
        """
        Find deployments sitting in a non-terminal status for too long.

        pending is aged from created_at, in_progress from updated_at (the
        moment the driver picked it up).
        """
        if status == DeploymentStatus.PENDING:
            age_column = Deployment.created_at
        elif status == DeploymentStatus.IN_PROGRESS:
            age_column = Deployment.updated_at
        else:
            raise ValueError(f"Terminal deployments cannot be stuck: {status}")

        result = await self.db.execute(
            select(Deployment).where(
                Deployment.status == status.value,
                age_column < older_than,
            )
        )
        return list(result.scalars().all())
