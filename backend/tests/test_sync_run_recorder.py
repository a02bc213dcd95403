"""Sync run recorder tests on an in-memory database."""

from uuid import uuid4

import pytest

from directory_api.exceptions import SyncRunAlreadyFinalizedError, SyncRunNotFoundError
from directory_api.models.domain.sync import SyncCounters, SyncRunStatus, SyncTrigger
from directory_api.models.domain.tenant import TenantSyncStatus
from directory_api.repositories.sync_run_repository import SyncRunRepository
from directory_api.services.sync_run_recorder import SyncRunRecorder
from directory_api.services.tenant_registry import TenantRegistry


@pytest.fixture
def recorder(session_maker) -> SyncRunRecorder:
    return SyncRunRecorder(session_maker)


class TestRunLifecycle:
    """RUNNING to exactly one terminal status."""

    async def test_create_run_marks_tenant_in_progress(self, recorder, session_maker, create_tenant) -> None:
        tenant = await create_tenant()

        run = await recorder.create_run(tenant.id, SyncTrigger.MANUAL, "admin@acme.com")

        assert run.status == SyncRunStatus.RUNNING
        assert run.trigger == SyncTrigger.MANUAL
        assert run.triggered_by == "admin@acme.com"
        assert run.completed_at is None
        stored = await TenantRegistry(session_maker).get(tenant.id)
        assert stored.last_sync_status == TenantSyncStatus.IN_PROGRESS

    async def test_complete_run_stores_counters(self, recorder, session_maker, create_tenant) -> None:
        tenant = await create_tenant()
        run = await recorder.create_run(tenant.id, SyncTrigger.SCHEDULED)
        counters = SyncCounters(processed=10, created=2, updated=7, deactivated=1, errors=1)

        completed = await recorder.complete_run(run.id, counters)

        assert completed.status == SyncRunStatus.COMPLETED
        assert completed.completed_at is not None
        assert completed.users_processed == 10
        assert completed.users_created == 2
        assert completed.users_updated == 7
        assert completed.users_deactivated == 1
        assert completed.errors_count == 1
        assert completed.notes == counters.summary()
        stored = await TenantRegistry(session_maker).get(tenant.id)
        assert stored.last_sync_status == TenantSyncStatus.SUCCESS
        assert stored.last_sync_at is not None

    async def test_fail_run_sanitizes_reason(self, recorder, session_maker, create_tenant) -> None:
        tenant = await create_tenant()
        run = await recorder.create_run(tenant.id, SyncTrigger.SCHEDULED)

        failed = await recorder.fail_run(run.id, "Token rejected for admin@acme.com at https://oauth2.googleapis.com/token")

        assert failed.status == SyncRunStatus.FAILED
        assert "admin@acme.com" not in failed.notes
        assert "oauth2.googleapis.com" not in failed.notes
        assert "[EMAIL]" in failed.notes
        stored = await TenantRegistry(session_maker).get(tenant.id)
        assert stored.last_sync_status == TenantSyncStatus.FAILED

    async def test_fail_run_counts_recorded_errors(self, recorder, create_tenant) -> None:
        tenant = await create_tenant()
        run = await recorder.create_run(tenant.id, SyncTrigger.SCHEDULED)
        await recorder.record_error(run.id, "a@acme.com", "bad payload", "VALIDATION_ERROR")
        await recorder.record_error(run.id, "b@acme.com", "constraint violated")

        failed = await recorder.fail_run(run.id, "Directory API denied access")

        assert failed.errors_count == 2

    async def test_fail_run_keeps_partial_counters(self, recorder, create_tenant) -> None:
        tenant = await create_tenant()
        run = await recorder.create_run(tenant.id, SyncTrigger.SCHEDULED)
        counters = SyncCounters(processed=250, created=40, updated=60, deactivated=3)

        failed = await recorder.fail_run(run.id, "Sync failed during applying: lease lost", counters)

        assert failed.users_processed == 250
        assert failed.users_created == 40
        assert failed.users_updated == 60
        assert failed.users_deactivated == 3

    async def test_terminal_status_is_set_once(self, recorder, create_tenant) -> None:
        tenant = await create_tenant()
        run = await recorder.create_run(tenant.id, SyncTrigger.SCHEDULED)
        await recorder.complete_run(run.id, SyncCounters())

        with pytest.raises(SyncRunAlreadyFinalizedError):
            await recorder.fail_run(run.id, "late failure")
        with pytest.raises(SyncRunAlreadyFinalizedError):
            await recorder.complete_run(run.id, SyncCounters())

        assert (await recorder.get_run(run.id)).status == SyncRunStatus.COMPLETED

    async def test_unknown_run(self, recorder) -> None:
        with pytest.raises(SyncRunNotFoundError):
            await recorder.complete_run(uuid4(), SyncCounters())
        with pytest.raises(SyncRunNotFoundError):
            await recorder.get_run(uuid4())


class TestRecordError:
    """Per-record error capture."""

    async def test_error_keyed_by_email(self, recorder, session_maker, create_tenant) -> None:
        tenant = await create_tenant()
        run = await recorder.create_run(tenant.id, SyncTrigger.SCHEDULED)

        await recorder.record_error(run.id, "jane@acme.com", "Invalid directory user: malformed primary email")

        async with session_maker() as session:
            errors = await SyncRunRepository(session).get_errors(run.id)
        assert len(errors) == 1
        assert errors[0].error_type == "SYNC_ERROR"
        assert errors[0].error_details == {"email": "jane@acme.com"}
        # Recording an error never changes the run status
        assert (await recorder.get_run(run.id)).status == SyncRunStatus.RUNNING
