"""Directory reconciliation.

Planning is pure: diff() turns a fetched directory and the local records
into a list of planned actions without touching the database. apply()
then executes the plan one record at a time, so a failure on one employee
is recorded against the run and never stops the others.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from directory_api.exceptions import DirectoryAPIError, InvalidRemoteUserError, MassRemovalGuardError
from directory_api.models.domain.employee import EmployeeRecord, EmployeeStatus, SyncableField
from directory_api.models.domain.sync import (
    RemoteUser,
    SyncAction,
    SyncCounters,
    SyncRecordError,
    SyncResult,
)
from directory_api.models.domain.tenant import Tenant
from directory_api.services.employee_store import EmployeeStore
from directory_api.services.sync_run_recorder import SyncRunRecorder
from directory_api.utils.secure_logging import log_warning, sanitize_exception_message

logger = logging.getLogger(__name__)

# Renew the run's lock lease every this many applied records
HEARTBEAT_EVERY = 100


@dataclass
class PlannedAction:
    """One write (or non-write) the reconciler intends to make."""

    action: SyncAction
    email: str
    # Record to upsert for CREATED and UPDATED
    record: EmployeeRecord | None = None
    # Employee to terminate for DEACTIVATED
    employee_id: UUID | None = None
    # Per-record rejection found while planning
    error: Exception | None = None
    reason: str | None = None


@dataclass
class ReconcilePlan:
    """Planned actions for one tenant run."""

    tenant_id: UUID
    processed: int = 0
    remote_actions: list[PlannedAction] = field(default_factory=list)
    removals: list[PlannedAction] = field(default_factory=list)

    @property
    def actions(self) -> list[PlannedAction]:
        return [*self.remote_actions, *self.removals]

    def count(self, action: SyncAction) -> int:
        return sum(1 for planned in self.actions if planned.action == action and planned.error is None)


def validate_remote_user(remote: RemoteUser) -> str:
    """Return the normalized email of a directory user.

    Raises:
        InvalidRemoteUserError: If the payload was unusable or the email is malformed
    """
    if remote.invalid_reason:
        raise InvalidRemoteUserError(remote.invalid_reason, remote.id or None)

    email = remote.email
    local_part, sep, domain = email.rpartition("@")
    if not sep or not local_part or not domain or "." not in domain or " " in email:
        raise InvalidRemoteUserError("malformed primary email", remote.id or None)
    return email


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
    return value or None


def merge_fields(local: EmployeeRecord, remote: RemoteUser) -> dict[str, Any]:
    """Compute syncable field changes for an existing employee.

    A field is written only when the administrator has not pinned it and
    the directory has a non-empty value that differs from the local one.

    Returns:
        Mapping of field name to new value
    """
    changes: dict[str, Any] = {}
    for syncable in SyncableField:
        if local.is_overridden(syncable):
            continue
        value = _clean(getattr(remote, syncable.value))
        if value is None:
            continue
        if getattr(local, syncable.value) != value:
            changes[syncable.value] = value
    return changes


def plan_remote_user(
    remote: RemoteUser,
    local: EmployeeRecord | None,
    tenant: Tenant,
    now: datetime,
) -> PlannedAction:
    """Decide what to do with one directory user.

    Raises:
        InvalidRemoteUserError: If the user cannot be reconciled
    """
    email = validate_remote_user(remote)

    if not tenant.owns_email(email):
        return PlannedAction(SyncAction.SKIPPED, email, reason="outside tenant domains")

    if remote.suspended:
        if local is None:
            return PlannedAction(SyncAction.SKIPPED, email, reason="suspended, no local record")
        if local.status == EmployeeStatus.TERMINATED:
            return PlannedAction(SyncAction.SKIPPED, email, reason="suspended, already terminated")
        return PlannedAction(SyncAction.DEACTIVATED, email, employee_id=local.id, reason="suspended")

    if local is None:
        if not tenant.auto_provision:
            return PlannedAction(SyncAction.SKIPPED, email, reason="auto provisioning disabled")
        values = {syncable.value: _clean(getattr(remote, syncable.value)) for syncable in SyncableField}
        full_name = values.pop(SyncableField.FULL_NAME.value) or email.split("@", 1)[0]
        record = EmployeeRecord(
            email=email,
            external_id=remote.id or None,
            full_name=full_name,
            **values,
            status=EmployeeStatus.PENDING,
            is_synced_from_external=True,
            last_synced_at=now,
            tenant_id=tenant.id,
            legal_entity_id=tenant.default_legal_entity_id,
        )
        return PlannedAction(SyncAction.CREATED, email, record=record)

    update: dict[str, Any] = merge_fields(local, remote)
    if local.status == EmployeeStatus.TERMINATED:
        update["status"] = EmployeeStatus.ACTIVE
        update["termination_date"] = None
    if not local.external_id and remote.id:
        update["external_id"] = remote.id
    update.update(is_synced_from_external=True, last_synced_at=now, tenant_id=tenant.id)

    reason = "rehired" if local.status == EmployeeStatus.TERMINATED else None
    return PlannedAction(SyncAction.UPDATED, email, record=local.model_copy(update=update), reason=reason)


def plan_removal(local: EmployeeRecord, remote_emails: set[str]) -> PlannedAction | None:
    """Plan termination of a synced employee that left the directory."""
    if not local.is_synced_from_external or local.status == EmployeeStatus.TERMINATED:
        return None
    if local.email in remote_emails:
        return None
    return PlannedAction(SyncAction.DEACTIVATED, local.email, employee_id=local.id, reason="removed from directory")


class Reconciler:
    """Merges a fetched directory into the local employee store."""

    def __init__(
        self,
        store: EmployeeStore,
        recorder: SyncRunRecorder,
        max_removal_ratio: float = 0.5,
        removal_guard_min_population: int = 10,
    ) -> None:
        """Initialize reconciler.

        Args:
            store: Employee store
            recorder: Sync run recorder for per-record errors
            max_removal_ratio: Largest share of synced employees one run may remove
            removal_guard_min_population: Populations smaller than this are never guarded
        """
        self.store = store
        self.recorder = recorder
        self.max_removal_ratio = max_removal_ratio
        self.removal_guard_min_population = removal_guard_min_population

    def diff(
        self,
        tenant: Tenant,
        remote_users: Iterable[RemoteUser],
        local_records: Iterable[EmployeeRecord],
        now: datetime | None = None,
    ) -> ReconcilePlan:
        """Plan every action for a run without writing anything.

        Raises:
            MassRemovalGuardError: If too many synced employees vanished from the directory
        """
        now = now or datetime.now(UTC)
        local_by_email = {record.email: record for record in local_records if tenant.owns_email(record.email)}
        plan = ReconcilePlan(tenant_id=tenant.id)

        remote_emails: set[str] = set()
        for remote in remote_users:
            plan.processed += 1
            # A fetched user is never a removal candidate, even if its payload is rejected below
            if remote.email:
                remote_emails.add(remote.email)
            try:
                email = validate_remote_user(remote)
                planned = plan_remote_user(remote, local_by_email.get(email), tenant, now)
            except Exception as e:
                planned = PlannedAction(SyncAction.SKIPPED, remote.email or remote.id or "unknown", error=e)
            plan.remote_actions.append(planned)

        for local in local_by_email.values():
            removal = plan_removal(local, remote_emails)
            if removal is not None:
                plan.removals.append(removal)

        self._check_removal_guard(local_by_email.values(), len(plan.removals))
        return plan

    def _check_removal_guard(self, local_records: Iterable[EmployeeRecord], missing: int) -> None:
        population = sum(
            1
            for record in local_records
            if record.is_synced_from_external and record.status != EmployeeStatus.TERMINATED
        )
        if population < self.removal_guard_min_population or population == 0:
            return
        if missing > self.max_removal_ratio * population:
            raise MassRemovalGuardError(missing, population, self.max_removal_ratio)

    async def apply(
        self,
        plan: ReconcilePlan,
        run_id: UUID,
        now: datetime | None = None,
        heartbeat: Callable[[], Awaitable[Any]] | None = None,
        counters: SyncCounters | None = None,
    ) -> SyncResult:
        """Execute a plan, one atomic write per record.

        Args:
            plan: Plan produced by diff()
            run_id: Run that per-record errors are attached to
            now: Sync timestamp
            heartbeat: Called periodically to keep the run's lock alive
            counters: Updated in place; holds partial totals if apply is interrupted

        Returns:
            SyncResult with counters and per-record errors (success is left False)
        """
        now = now or datetime.now(UTC)
        result = SyncResult(run_id=run_id, tenant_id=plan.tenant_id)
        if counters is not None:
            result.counters = counters
        result.counters.processed = plan.processed

        for index, planned in enumerate(plan.actions, start=1):
            if planned.error is not None:
                await self._record_error(result, run_id, planned.email, planned.error)
            else:
                try:
                    action = await self._apply_one(planned, now)
                except Exception as e:
                    await self._record_error(result, run_id, planned.email, e)
                else:
                    result.counters.record(action)

            if heartbeat is not None and index % HEARTBEAT_EVERY == 0:
                await heartbeat()

        return result

    async def reconcile(
        self,
        tenant: Tenant,
        remote_users: list[RemoteUser],
        run_id: UUID,
        heartbeat: Callable[[], Awaitable[Any]] | None = None,
    ) -> SyncResult:
        """Load local records, plan and apply in one call."""
        now = datetime.now(UTC)
        local_records = await self.store.find_by_domain_set(tenant.domains)
        plan = self.diff(tenant, remote_users, local_records, now)
        return await self.apply(plan, run_id, now, heartbeat)

    async def _apply_one(self, planned: PlannedAction, now: datetime) -> SyncAction:
        if planned.action == SyncAction.DEACTIVATED:
            changed = await self.store.deactivate(planned.employee_id, now.date(), now)
            # Already terminated by a concurrent writer
            return SyncAction.DEACTIVATED if changed else SyncAction.SKIPPED

        if planned.action in (SyncAction.CREATED, SyncAction.UPDATED):
            await self.store.upsert(planned.record)
            return planned.action

        return SyncAction.SKIPPED

    async def _record_error(self, result: SyncResult, run_id: UUID, email: str, error: Exception) -> None:
        error_type = "VALIDATION_ERROR" if isinstance(error, InvalidRemoteUserError) else "SYNC_ERROR"
        message = error.message if isinstance(error, DirectoryAPIError) else sanitize_exception_message(error)
        log_warning(logger, f"Failed to sync employee in run {run_id}", error)

        await self.recorder.record_error(run_id, email, message, error_type)
        result.errors.append(SyncRecordError(email=email, error=message, error_type=error_type))
        result.counters.errors += 1
