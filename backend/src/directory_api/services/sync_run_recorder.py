"""Sync run audit bookkeeping."""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from directory_api.exceptions import SyncRunAlreadyFinalizedError, SyncRunNotFoundError
from directory_api.models.domain.sync import SyncCounters, SyncRun, SyncRunStatus, SyncTrigger
from directory_api.models.domain.tenant import TenantSyncStatus
from directory_api.repositories.sync_run_repository import SyncRunRepository
from directory_api.repositories.tenant_repository import TenantRepository
from directory_api.utils.secure_logging import sanitize_exception_message

logger = logging.getLogger(__name__)


class SyncRunRecorder:
    """Creates and finalizes sync runs and captures per-record errors.

    Each call commits on its own so the audit trail survives failures in
    the run it describes. The tenant's last sync status mirrors the run.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def create_run(
        self,
        tenant_id: UUID,
        trigger: SyncTrigger,
        triggered_by: str | None = None,
    ) -> SyncRun:
        """Open a RUNNING run for a tenant."""
        async with self.session_maker() as session:
            async with session.begin():
                run = await SyncRunRepository(session).create(
                    tenant_id=tenant_id,
                    trigger=trigger.value,
                    triggered_by=triggered_by,
                    status=SyncRunStatus.RUNNING.value,
                    started_at=datetime.now(UTC),
                )
                await TenantRepository(session).update_sync_status(tenant_id, TenantSyncStatus.IN_PROGRESS)
            return SyncRun.model_validate(run)

    async def complete_run(self, run_id: UUID, counters: SyncCounters, summary: str | None = None) -> SyncRun:
        """Mark a run COMPLETED with its counters.

        Raises:
            SyncRunNotFoundError: If the run does not exist
            SyncRunAlreadyFinalizedError: If the run is not RUNNING
        """
        return await self._finalize(
            run_id,
            SyncRunStatus.COMPLETED,
            TenantSyncStatus.SUCCESS,
            users_processed=counters.processed,
            users_created=counters.created,
            users_updated=counters.updated,
            users_deactivated=counters.deactivated,
            errors_count=counters.errors,
            notes=summary or counters.summary(),
        )

    async def fail_run(self, run_id: UUID, reason: str, counters: SyncCounters | None = None) -> SyncRun:
        """Mark a run FAILED.

        The reason is sanitized before it is stored; the admin UI shows it.

        Raises:
            SyncRunNotFoundError: If the run does not exist
            SyncRunAlreadyFinalizedError: If the run is not RUNNING
        """
        values: dict[str, object] = {"notes": sanitize_exception_message(reason)}
        if counters is not None:
            values.update(
                users_processed=counters.processed,
                users_created=counters.created,
                users_updated=counters.updated,
                users_deactivated=counters.deactivated,
            )
        return await self._finalize(run_id, SyncRunStatus.FAILED, TenantSyncStatus.FAILED, **values)

    async def record_error(
        self,
        run_id: UUID,
        email: str,
        message: str,
        error_type: str = "SYNC_ERROR",
    ) -> None:
        """Attach a per-record failure to a run. Never changes the run status."""
        async with self.session_maker() as session:
            async with session.begin():
                await SyncRunRepository(session).add_error(
                    run_id,
                    error_type=error_type,
                    error_message=message,
                    error_details={"email": email},
                )

    async def get_run(self, run_id: UUID) -> SyncRun:
        """Get a run by ID.

        Raises:
            SyncRunNotFoundError: If the run does not exist
        """
        async with self.session_maker() as session:
            run = await SyncRunRepository(session).get_by_id(run_id)
            if run is None:
                raise SyncRunNotFoundError(run_id)
            return SyncRun.model_validate(run)

    async def _finalize(
        self,
        run_id: UUID,
        status: SyncRunStatus,
        tenant_status: TenantSyncStatus,
        **values: object,
    ) -> SyncRun:
        async with self.session_maker() as session:
            async with session.begin():
                repo = SyncRunRepository(session)
                if "errors_count" not in values:
                    values["errors_count"] = await repo.count_errors(run_id)

                finalized = await repo.finalize(run_id, status, completed_at=datetime.now(UTC), **values)
                run = await repo.get_by_id(run_id)
                if run is None:
                    raise SyncRunNotFoundError(run_id)
                if not finalized:
                    raise SyncRunAlreadyFinalizedError(run_id, run.status)

                await session.refresh(run)
                await TenantRepository(session).mark_synced(run.tenant_id, tenant_status)

        logger.info(f"Sync run {run_id} finalized as {status}")
        return SyncRun.model_validate(run)
