"""Sync service for orchestrating tenant directory synchronization.

Each tenant run holds a lease in the sync_locks table for its whole
lifetime, so two runs for the same tenant never overlap, whether they
start from the API, the scheduler or the CLI.
"""

import asyncio
import logging
import os
import socket
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from directory_api.config import Settings, get_settings
from directory_api.exceptions import (
    DirectoryAPIError,
    FetchTimeoutError,
    SyncAlreadyRunningError,
    SyncRunAlreadyFinalizedError,
    SyncRunNotFoundError,
)
from directory_api.models.domain.sync import (
    RemoteUser,
    SyncCounters,
    SyncPhase,
    SyncResult,
    SyncRun,
    SyncStatusReport,
    SyncTrigger,
)
from directory_api.models.domain.tenant import Tenant
from directory_api.providers.base import DirectoryProvider
from directory_api.providers.google_workspace import GoogleWorkspaceProvider
from directory_api.repositories.sync_lock_repository import SyncLockRepository
from directory_api.repositories.sync_run_repository import SyncRunRepository
from directory_api.services.employee_store import EmployeeStore
from directory_api.services.reconciler import Reconciler
from directory_api.services.sync_run_recorder import SyncRunRecorder
from directory_api.services.tenant_registry import TenantRegistry
from directory_api.utils.secure_logging import log_error, log_warning, sanitize_exception_message

logger = logging.getLogger(__name__)

STALE_RUN_REASON = "Stale run recovered: lock lease expired before the run finished"


class SyncService:
    """Service for synchronizing tenant directories into the employee store."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        provider: DirectoryProvider | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session_maker: Factory for the short-lived sessions each step uses
            provider: Directory provider (defaults to Google Workspace)
            settings: Application settings (defaults to cached settings)
        """
        self.session_maker = session_maker
        self.settings = settings or get_settings()
        self.provider = provider or GoogleWorkspaceProvider(self.settings)
        self.registry = TenantRegistry(session_maker)
        self.store = EmployeeStore(session_maker, self.settings.sync_default_role)
        self.recorder = SyncRunRecorder(session_maker)
        self.reconciler = Reconciler(
            self.store,
            self.recorder,
            max_removal_ratio=self.settings.sync_max_removal_ratio,
            removal_guard_min_population=self.settings.sync_removal_guard_min_population,
        )
        self.holder_prefix = f"{socket.gethostname()}:{os.getpid()}"

    async def sync_all_tenants(
        self,
        triggered_by: str | None = None,
        due_only: bool = False,
    ) -> dict[str, SyncResult]:
        """Sync every active tenant with sync enabled, one after another.

        A failure or a lock conflict for one tenant never stops the others.

        Args:
            triggered_by: Admin who started the sync; None for scheduled runs
            due_only: Only sync tenants whose sync interval has elapsed

        Returns:
            Dict of tenant domain to SyncResult
        """
        tenants = await self.registry.list_sync_candidates()
        if due_only:
            now = datetime.now(UTC)
            tenants = [tenant for tenant in tenants if tenant.is_due(now)]

        results: dict[str, SyncResult] = {}
        for tenant in tenants:
            try:
                results[tenant.domain] = await self.sync_tenant(tenant.id, triggered_by)
            except SyncAlreadyRunningError as e:
                logger.info(f"Skipping tenant {tenant.domain}: sync already in progress")
                results[tenant.domain] = SyncResult(tenant_id=tenant.id, failure_reason=e.message)
            except Exception as e:
                log_error(logger, f"Error syncing tenant {tenant.domain}", e)
                results[tenant.domain] = SyncResult(
                    tenant_id=tenant.id,
                    failure_reason=sanitize_exception_message(e),
                )

        return results

    async def sync_tenant(self, tenant_id: UUID, triggered_by: str | None = None) -> SyncResult:
        """Sync a single tenant.

        Exactly one sync run is recorded once the lock is taken, whatever
        the outcome.

        Args:
            tenant_id: Tenant UUID
            triggered_by: Admin who started the sync; None for scheduled runs

        Returns:
            SyncResult for the run

        Raises:
            TenantNotFoundError: If the tenant does not exist
            SyncAlreadyRunningError: If the tenant is already being synced
        """
        tenant = await self.registry.get(tenant_id)
        holder = f"{self.holder_prefix}:{uuid4().hex[:8]}"

        await self._acquire_lock(tenant.id, holder)
        try:
            trigger = SyncTrigger.MANUAL if triggered_by else SyncTrigger.SCHEDULED
            return await self._run(tenant, holder, trigger, triggered_by)
        finally:
            await self._release_lock(tenant.id, holder)

    async def get_sync_status(self) -> SyncStatusReport:
        """Get sync state of all tenants and the latest runs."""
        tenants = await self.registry.overview()
        now = datetime.now(UTC)

        async with self.session_maker() as session:
            held = await SyncLockRepository(session).get_held(now)
            runs = SyncRunRepository(session)
            current = await runs.get_current_running()
            last_completed = await runs.get_last_completed()

            return SyncStatusReport(
                tenants=tenants,
                is_running=bool(held),
                current_run=SyncRun.model_validate(current) if current else None,
                last_completed_run=SyncRun.model_validate(last_completed) if last_completed else None,
            )

    async def recover_stale_locks(self) -> int:
        """Release expired locks and fail the runs they were covering.

        Also fails RUNNING runs older than the lock TTL that no lock
        covers, which is what a crashed process leaves behind.

        Returns:
            Number of runs marked as failed
        """
        now = datetime.now(UTC)
        stale_run_ids: list[UUID] = []

        async with self.session_maker() as session:
            async with session.begin():
                locks = SyncLockRepository(session)
                for lock in await locks.get_expired(now):
                    if await locks.delete_if_expired(lock.tenant_id, now):
                        logger.warning(f"Released expired sync lock of tenant {lock.tenant_id} held by {lock.holder}")
                        if lock.sync_run_id is not None:
                            stale_run_ids.append(lock.sync_run_id)

                cutoff = now - timedelta(minutes=self.settings.sync_lock_ttl_minutes)
                orphans = await SyncRunRepository(session).get_orphaned_running(cutoff)
                stale_run_ids.extend(run.id for run in orphans)

        recovered = 0
        for run_id in dict.fromkeys(stale_run_ids):
            if await self._fail_stale_run(run_id):
                recovered += 1

        if recovered:
            logger.info(f"Recovered {recovered} stale sync runs")
        return recovered

    async def _run(
        self,
        tenant: Tenant,
        holder: str,
        trigger: SyncTrigger,
        triggered_by: str | None,
    ) -> SyncResult:
        phase = SyncPhase.INIT
        run = await self.recorder.create_run(tenant.id, trigger, triggered_by)
        self._log_phase(tenant, run.id, phase)

        remote_users: list[RemoteUser] | None = None
        counters = SyncCounters()
        try:
            await self._renew_lock(tenant.id, holder, run.id)

            phase = SyncPhase.FETCHING
            self._log_phase(tenant, run.id, phase)
            remote_users = await self._fetch(tenant)

            phase = SyncPhase.DIFFING
            self._log_phase(tenant, run.id, phase)
            now = datetime.now(UTC)
            local_records = await self.store.find_by_domain_set(tenant.domains)
            plan = self.reconciler.diff(tenant, remote_users, local_records, now)

            phase = SyncPhase.APPLYING
            self._log_phase(tenant, run.id, phase)
            result = await self.reconciler.apply(
                plan,
                run.id,
                now,
                heartbeat=lambda: self._renew_lock(tenant.id, holder),
                counters=counters,
            )

            phase = SyncPhase.FINALIZING
            self._log_phase(tenant, run.id, phase)
            await self.recorder.complete_run(run.id, result.counters)
        except Exception as e:
            log_error(logger, f"Sync of tenant {tenant.domain} failed during {phase}", e)
            message = e.message if isinstance(e, DirectoryAPIError) else f"{type(e).__name__}: {e}"
            reason = f"Sync failed during {phase.lower()}: {message}"
            if remote_users is not None:
                counters.processed = len(remote_users)
            try:
                await self.recorder.fail_run(run.id, reason, counters)
            except SyncRunAlreadyFinalizedError:
                log_warning(logger, f"Sync run {run.id} was finalized elsewhere")
            self._log_phase(tenant, run.id, SyncPhase.FAILED)
            return SyncResult(
                run_id=run.id,
                tenant_id=tenant.id,
                counters=counters,
                failure_reason=sanitize_exception_message(reason),
            )

        self._log_phase(tenant, run.id, SyncPhase.COMPLETED)
        logger.info(f"Tenant {tenant.domain}: {result.counters.summary()}")
        result.success = True
        return result

    async def _fetch(self, tenant: Tenant) -> list[RemoteUser]:
        timeout = self.settings.sync_fetch_timeout_seconds
        try:
            return await asyncio.wait_for(self.provider.fetch_users(tenant), timeout=timeout)
        except TimeoutError as e:
            raise FetchTimeoutError(timeout) from e

    async def _acquire_lock(self, tenant_id: UUID, holder: str) -> None:
        """Take the tenant's lock, replacing an expired lease.

        Raises:
            SyncAlreadyRunningError: If a live lease exists
        """
        now = datetime.now(UTC)
        stale_run_id: UUID | None = None

        async with self.session_maker() as session:
            async with session.begin():
                locks = SyncLockRepository(session)
                current = await locks.get_by_id(tenant_id)
                if current is not None and await locks.delete_if_expired(tenant_id, now):
                    logger.warning(f"Taking over expired sync lock of tenant {tenant_id} from {current.holder}")
                    stale_run_id = current.sync_run_id
                held_run_id = current.sync_run_id if current is not None else None

        if stale_run_id is not None:
            await self._fail_stale_run(stale_run_id)

        try:
            async with self.session_maker() as session:
                async with session.begin():
                    await SyncLockRepository(session).insert(
                        tenant_id,
                        holder,
                        acquired_at=now,
                        expires_at=now + timedelta(minutes=self.settings.sync_lock_ttl_minutes),
                    )
        except IntegrityError as e:
            raise SyncAlreadyRunningError(tenant_id, held_run_id) from e

    async def _renew_lock(self, tenant_id: UUID, holder: str, run_id: UUID | None = None) -> None:
        """Extend the lease; raises if another process took the lock over."""
        expires_at = datetime.now(UTC) + timedelta(minutes=self.settings.sync_lock_ttl_minutes)
        async with self.session_maker() as session:
            async with session.begin():
                renewed = await SyncLockRepository(session).refresh(tenant_id, holder, expires_at, run_id)
        if not renewed:
            raise SyncAlreadyRunningError(tenant_id)

    async def _release_lock(self, tenant_id: UUID, holder: str) -> None:
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    released = await SyncLockRepository(session).release(tenant_id, holder)
        except Exception as e:
            # The lease expires on its own; recover_stale_locks cleans it up
            log_error(logger, f"Failed to release sync lock of tenant {tenant_id}", e)
            return
        if not released:
            log_warning(logger, f"Sync lock of tenant {tenant_id} was no longer held by {holder}")

    async def _fail_stale_run(self, run_id: UUID) -> bool:
        try:
            await self.recorder.fail_run(run_id, STALE_RUN_REASON)
        except (SyncRunAlreadyFinalizedError, SyncRunNotFoundError) as e:
            logger.debug(f"Stale run {run_id} needs no recovery: {e.message}")
            return False
        logger.warning(f"Marked stale sync run {run_id} as failed")
        return True

    @staticmethod
    def _log_phase(tenant: Tenant, run_id: UUID, phase: SyncPhase) -> None:
        logger.info(f"Tenant {tenant.domain} run {run_id}: {phase}")
