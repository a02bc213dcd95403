"""Sync run and sync error repository."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update

from directory_api.models.domain.sync import SyncRunStatus
from directory_api.models.orm.sync_lock import SyncLockORM
from directory_api.models.orm.sync_run import SyncErrorORM, SyncRunORM
from directory_api.repositories.base import BaseRepository


class SyncRunRepository(BaseRepository[SyncRunORM]):
    """Repository for sync run audit records."""

    model = SyncRunORM

    async def finalize(self, id: UUID, status: SyncRunStatus, **values: Any) -> bool:
        """Move a RUNNING run to a terminal status.

        The status check is part of the UPDATE, so a run can only be
        finalized once even with concurrent writers.

        Returns:
            True if the run was RUNNING and is now finalized
        """
        result = await self.session.execute(
            update(SyncRunORM)
            .where(SyncRunORM.id == id, SyncRunORM.status == SyncRunStatus.RUNNING.value)
            .values(status=status.value, **values)
        )
        return result.rowcount > 0

    async def add_error(
        self,
        sync_run_id: UUID,
        error_type: str,
        error_message: str,
        error_details: dict[str, Any] | None = None,
    ) -> SyncErrorORM:
        """Attach a per-record error to a run."""
        error = SyncErrorORM(
            sync_run_id=sync_run_id,
            error_type=error_type,
            error_message=error_message,
            error_details=error_details,
        )
        self.session.add(error)
        await self.session.flush()
        return error

    async def count_errors(self, sync_run_id: UUID) -> int:
        """Count errors recorded for a run."""
        result = await self.session.execute(
            select(func.count()).select_from(SyncErrorORM).where(SyncErrorORM.sync_run_id == sync_run_id)
        )
        return result.scalar_one()

    async def get_errors(self, sync_run_id: UUID) -> list[SyncErrorORM]:
        """Get errors recorded for a run, oldest first."""
        result = await self.session.execute(
            select(SyncErrorORM)
            .where(SyncErrorORM.sync_run_id == sync_run_id)
            .order_by(SyncErrorORM.created_at)
        )
        return list(result.scalars().all())

    async def get_current_running(self) -> SyncRunORM | None:
        """Get the most recently started RUNNING run, if any."""
        result = await self.session.execute(
            select(SyncRunORM)
            .where(SyncRunORM.status == SyncRunStatus.RUNNING.value)
            .order_by(SyncRunORM.started_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_last_completed(self) -> SyncRunORM | None:
        """Get the most recently completed run."""
        result = await self.session.execute(
            select(SyncRunORM)
            .where(SyncRunORM.status == SyncRunStatus.COMPLETED.value)
            .order_by(SyncRunORM.completed_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_orphaned_running(self, started_before: datetime) -> list[SyncRunORM]:
        """Get RUNNING runs that no lock covers and that started before a cutoff."""
        result = await self.session.execute(
            select(SyncRunORM)
            .outerjoin(SyncLockORM, SyncLockORM.sync_run_id == SyncRunORM.id)
            .where(
                SyncRunORM.status == SyncRunStatus.RUNNING.value,
                SyncRunORM.started_at < started_before,
                SyncLockORM.tenant_id.is_(None),
            )
        )
        return list(result.scalars().all())
