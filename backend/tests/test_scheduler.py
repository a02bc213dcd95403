"""Scheduled sync job tests."""

from sqlalchemy import select

from directory_api import database
from directory_api.models.domain.sync import SyncRunStatus
from directory_api.models.orm import SyncRunORM
from directory_api.tasks import scheduler


class TestSyncDueTenantsJob:
    """Background job behaviour."""

    async def test_job_records_failure_without_raising(self, monkeypatch, session_maker, create_tenant) -> None:
        # No stored credentials, so the real provider fails authentication
        tenant = await create_tenant()
        monkeypatch.setattr(database, "get_session_maker", lambda: session_maker)

        await scheduler.sync_due_tenants_job()

        async with session_maker() as session:
            result = await session.execute(select(SyncRunORM).where(SyncRunORM.tenant_id == tenant.id))
            runs = list(result.scalars().all())
        assert [run.status for run in runs] == [SyncRunStatus.FAILED.value]
        assert "Missing service account key" in runs[0].notes

    async def test_disabled_scheduler_does_not_start(self) -> None:
        await scheduler.start_scheduler()

        assert scheduler._scheduler is None
