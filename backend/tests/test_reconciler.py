"""Reconciliation planning and apply tests.

Planning is exercised without a database; apply() runs against mocked
store and recorder collaborators.
"""

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from directory_api.exceptions import MassRemovalGuardError, SyncAlreadyRunningError
from directory_api.models.domain.employee import EmployeeRecord, EmployeeStatus, SyncableField
from directory_api.models.domain.sync import RemoteUser, SyncAction, SyncCounters
from directory_api.models.domain.tenant import Tenant
from directory_api.services import reconciler as reconciler_module
from directory_api.services.reconciler import (
    HEARTBEAT_EVERY,
    Reconciler,
    merge_fields,
    plan_remote_user,
    validate_remote_user,
)

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)


def make_tenant(**overrides) -> Tenant:
    values = {"id": uuid4(), "name": "Acme", "domain": "acme.com", "allowed_domains": ["acme.io"]}
    values.update(overrides)
    return Tenant(**values)


def make_local(email: str, **overrides) -> EmployeeRecord:
    values = {
        "id": uuid4(),
        "email": email,
        "full_name": "Local Name",
        "status": EmployeeStatus.ACTIVE,
        "is_synced_from_external": True,
    }
    values.update(overrides)
    return EmployeeRecord(**values)


def make_remote(email: str, **overrides) -> RemoteUser:
    values = {
        "id": f"g-{email.split('@')[0]}",
        "primary_email": email,
        "full_name": "Remote Name",
        "given_name": "Remote",
        "family_name": "Name",
    }
    values.update(overrides)
    return RemoteUser(**values)


def make_reconciler(**overrides) -> Reconciler:
    store = AsyncMock()
    store.deactivate.return_value = True
    recorder = AsyncMock()
    return Reconciler(store, recorder, **overrides)


class TestMergeFields:
    """Whitelist merge of directory attributes."""

    def test_changed_fields_are_merged(self) -> None:
        local = make_local("jane@acme.com", full_name="Jane Old", phone="+1 555")
        remote = make_remote("jane@acme.com", full_name="Jane New", phone="+1 555", location="Berlin")

        changes = merge_fields(local, remote)

        assert changes == {
            "full_name": "Jane New",
            "first_name": "Remote",
            "last_name": "Name",
            "location": "Berlin",
        }

    def test_overridden_fields_are_never_written(self) -> None:
        """A pinned field keeps its local value whatever the directory says."""
        local = make_local(
            "jane@acme.com",
            full_name="Jane Corrected",
            manual_override_fields=["fullName", "location"],
        )
        remote = make_remote("jane@acme.com", full_name="jane typo", location="Munich")

        changes = merge_fields(local, remote)

        assert "full_name" not in changes
        assert "location" not in changes
        assert changes["first_name"] == "Remote"

    def test_empty_remote_values_do_not_clear_local(self) -> None:
        local = make_local("jane@acme.com", phone="+49 30 1234", avatar_url="https://cdn/x.png")
        remote = make_remote("jane@acme.com", phone="", avatar_url=None)

        changes = merge_fields(local, remote)

        assert "phone" not in changes
        assert "avatar_url" not in changes

    def test_unknown_override_names_are_ignored(self) -> None:
        local = make_local("jane@acme.com", manual_override_fields=["department", "last_name"])

        assert local.manual_override_fields == {SyncableField.LAST_NAME}


class TestPlanRemoteUser:
    """Per-user decisions."""

    def test_new_user_is_created_pending(self) -> None:
        tenant = make_tenant(default_legal_entity_id=uuid4())
        planned = plan_remote_user(make_remote("New.Hire@ACME.com"), None, tenant, NOW)

        assert planned.action == SyncAction.CREATED
        record = planned.record
        assert record.email == "new.hire@acme.com"
        assert record.status == EmployeeStatus.PENDING
        assert record.is_synced_from_external is True
        assert record.tenant_id == tenant.id
        assert record.legal_entity_id == tenant.default_legal_entity_id
        assert record.external_id == "g-New.Hire"

    def test_new_user_without_name_falls_back_to_local_part(self) -> None:
        planned = plan_remote_user(make_remote("sam@acme.com", full_name="  "), None, make_tenant(), NOW)

        assert planned.record.full_name == "sam"

    def test_new_user_skipped_without_auto_provision(self) -> None:
        tenant = make_tenant(auto_provision=False)
        planned = plan_remote_user(make_remote("new@acme.com"), None, tenant, NOW)

        assert planned.action == SyncAction.SKIPPED
        assert planned.record is None

    def test_allowed_domain_is_in_scope(self) -> None:
        planned = plan_remote_user(make_remote("dev@acme.io"), None, make_tenant(), NOW)

        assert planned.action == SyncAction.CREATED

    def test_foreign_domain_is_skipped(self) -> None:
        planned = plan_remote_user(make_remote("spy@other.com"), None, make_tenant(), NOW)

        assert planned.action == SyncAction.SKIPPED

    def test_suspended_user_is_deactivated(self) -> None:
        local = make_local("gone@acme.com")
        planned = plan_remote_user(make_remote("gone@acme.com", suspended=True), local, make_tenant(), NOW)

        assert planned.action == SyncAction.DEACTIVATED
        assert planned.employee_id == local.id

    def test_suspended_user_without_local_record_is_skipped(self) -> None:
        planned = plan_remote_user(make_remote("gone@acme.com", suspended=True), None, make_tenant(), NOW)

        assert planned.action == SyncAction.SKIPPED

    def test_suspended_user_already_terminated_is_skipped(self) -> None:
        local = make_local("gone@acme.com", status=EmployeeStatus.TERMINATED)
        planned = plan_remote_user(make_remote("gone@acme.com", suspended=True), local, make_tenant(), NOW)

        assert planned.action == SyncAction.SKIPPED

    def test_terminated_user_active_again_is_rehired(self) -> None:
        local = make_local(
            "back@acme.com",
            status=EmployeeStatus.TERMINATED,
            termination_date=date(2025, 12, 31),
        )
        planned = plan_remote_user(make_remote("back@acme.com"), local, make_tenant(), NOW)

        assert planned.action == SyncAction.UPDATED
        assert planned.record.status == EmployeeStatus.ACTIVE
        assert planned.record.termination_date is None

    def test_matched_user_keeps_status_and_gets_sync_metadata(self) -> None:
        tenant = make_tenant()
        local = make_local("jane@acme.com", status=EmployeeStatus.ON_LEAVE, is_synced_from_external=False)
        planned = plan_remote_user(make_remote("jane@acme.com"), local, tenant, NOW)

        assert planned.action == SyncAction.UPDATED
        assert planned.record.id == local.id
        assert planned.record.status == EmployeeStatus.ON_LEAVE
        assert planned.record.is_synced_from_external is True
        assert planned.record.last_synced_at == NOW
        assert planned.record.tenant_id == tenant.id
        assert planned.record.external_id == "g-jane"


class TestValidateRemoteUser:
    """Rejection of unusable directory payloads."""

    @pytest.mark.parametrize("email", ["", "no-at-sign", "@acme.com", "jane@", "jane@localhost", "ja ne@acme.com"])
    def test_malformed_email_is_rejected(self, email: str) -> None:
        from directory_api.exceptions import InvalidRemoteUserError

        with pytest.raises(InvalidRemoteUserError):
            validate_remote_user(make_remote("x@acme.com", primary_email=email))

    def test_invalid_payload_is_rejected(self) -> None:
        from directory_api.exceptions import InvalidRemoteUserError

        with pytest.raises(InvalidRemoteUserError, match="malformed user payload"):
            validate_remote_user(make_remote("x@acme.com", invalid_reason="malformed user payload (TypeError)"))

    def test_email_is_lowercased(self) -> None:
        assert validate_remote_user(make_remote(" Jane@Acme.COM ")) == "jane@acme.com"


class TestDiff:
    """Whole-run planning."""

    def test_missing_synced_employee_is_deactivated(self) -> None:
        reconciler = make_reconciler()
        stays = make_local("stays@acme.com")
        left = make_local("left@acme.com")
        manual = make_local("manual@acme.com", is_synced_from_external=False)

        plan = reconciler.diff(make_tenant(), [make_remote("stays@acme.com")], [stays, left, manual], NOW)

        assert [(p.action, p.email) for p in plan.removals] == [(SyncAction.DEACTIVATED, "left@acme.com")]
        assert plan.count(SyncAction.UPDATED) == 1

    def test_suspended_user_is_not_also_removed(self) -> None:
        reconciler = make_reconciler()
        local = make_local("gone@acme.com")

        plan = reconciler.diff(make_tenant(), [make_remote("gone@acme.com", suspended=True)], [local], NOW)

        assert plan.removals == []
        assert plan.count(SyncAction.DEACTIVATED) == 1

    def test_invalid_users_become_planned_errors(self) -> None:
        reconciler = make_reconciler()
        remotes = [
            make_remote("ok@acme.com"),
            make_remote("x@acme.com", primary_email=""),
            make_remote("y@acme.com", invalid_reason="user payload is not an object"),
        ]

        plan = reconciler.diff(make_tenant(), remotes, [], NOW)

        assert plan.processed == 3
        assert len([p for p in plan.actions if p.error is not None]) == 2
        assert plan.count(SyncAction.CREATED) == 1

    def test_rejected_payload_does_not_remove_its_employee(self) -> None:
        reconciler = make_reconciler()
        local = make_local("weird@acme.com")
        remote = make_remote("weird@acme.com", invalid_reason="malformed user payload (AttributeError)")

        plan = reconciler.diff(make_tenant(), [remote], [local], NOW)

        assert plan.removals == []
        [planned] = plan.actions
        assert planned.action == SyncAction.SKIPPED
        assert planned.email == "weird@acme.com"
        assert planned.error is not None

    def test_unexpected_planning_error_is_isolated(self, monkeypatch) -> None:
        reconciler = make_reconciler()
        real_plan = reconciler_module.plan_remote_user

        def plan_remote_user(remote, local, tenant, now):
            if remote.email == "odd@acme.com":
                raise TypeError("unexpected attribute type")
            return real_plan(remote, local, tenant, now)

        monkeypatch.setattr(reconciler_module, "plan_remote_user", plan_remote_user)
        local = make_local("odd@acme.com")
        remotes = [make_remote("odd@acme.com"), make_remote("ok@acme.com")]

        plan = reconciler.diff(make_tenant(), remotes, [local], NOW)

        assert plan.removals == []
        assert plan.count(SyncAction.CREATED) == 1
        assert isinstance(plan.remote_actions[0].error, TypeError)

    def test_records_outside_tenant_domains_are_ignored(self) -> None:
        reconciler = make_reconciler()
        foreign = make_local("someone@other.com")

        plan = reconciler.diff(make_tenant(), [], [foreign], NOW)

        assert plan.removals == []

    def test_mass_removal_guard_trips_before_any_write(self) -> None:
        reconciler = make_reconciler(max_removal_ratio=0.5, removal_guard_min_population=10)
        locals_ = [make_local(f"user{i}@acme.com") for i in range(12)]
        # Directory suddenly only knows two of twelve employees
        remotes = [make_remote("user0@acme.com"), make_remote("user1@acme.com")]

        with pytest.raises(MassRemovalGuardError) as exc_info:
            reconciler.diff(make_tenant(), remotes, locals_, NOW)

        assert exc_info.value.missing == 10
        assert exc_info.value.population == 12
        reconciler.store.upsert.assert_not_called()
        reconciler.store.deactivate.assert_not_called()

    def test_mass_removal_guard_allows_removal_within_ratio(self) -> None:
        reconciler = make_reconciler(max_removal_ratio=0.5, removal_guard_min_population=10)
        locals_ = [make_local(f"user{i}@acme.com") for i in range(12)]
        remotes = [make_remote(f"user{i}@acme.com") for i in range(6)]

        plan = reconciler.diff(make_tenant(), remotes, locals_, NOW)

        assert len(plan.removals) == 6

    def test_mass_removal_guard_ignores_small_populations(self) -> None:
        reconciler = make_reconciler(max_removal_ratio=0.5, removal_guard_min_population=10)
        locals_ = [make_local(f"user{i}@acme.com") for i in range(3)]

        plan = reconciler.diff(make_tenant(), [], locals_, NOW)

        assert len(plan.removals) == 3


class TestApply:
    """Executing a plan against the store."""

    async def test_counters_follow_actions(self) -> None:
        reconciler = make_reconciler()
        existing = make_local("jane@acme.com")
        left = make_local("left@acme.com")
        remotes = [
            make_remote("jane@acme.com"),
            make_remote("new@acme.com"),
            make_remote("spy@other.com"),
        ]
        plan = reconciler.diff(make_tenant(), remotes, [existing, left], NOW)

        result = await reconciler.apply(plan, uuid4(), NOW)

        assert result.counters.processed == 3
        assert result.counters.created == 1
        assert result.counters.updated == 1
        assert result.counters.deactivated == 1
        assert result.counters.errors == 0
        assert reconciler.store.upsert.await_count == 2
        reconciler.store.deactivate.assert_awaited_once_with(left.id, NOW.date(), NOW)

    async def test_store_failure_is_isolated_to_one_record(self) -> None:
        reconciler = make_reconciler()
        run_id = uuid4()

        async def upsert(record: EmployeeRecord) -> EmployeeRecord:
            if record.email == "broken@acme.com":
                raise RuntimeError("constraint violated")
            return record

        reconciler.store.upsert.side_effect = upsert
        remotes = [make_remote("a@acme.com"), make_remote("broken@acme.com"), make_remote("b@acme.com")]
        plan = reconciler.diff(make_tenant(), remotes, [], NOW)

        result = await reconciler.apply(plan, run_id, NOW)

        assert result.counters.created == 2
        assert result.counters.errors == 1
        assert [e.email for e in result.errors] == ["broken@acme.com"]
        reconciler.recorder.record_error.assert_awaited_once_with(
            run_id, "broken@acme.com", "constraint violated", "SYNC_ERROR"
        )

    async def test_planned_errors_are_recorded_as_validation_errors(self) -> None:
        reconciler = make_reconciler()
        run_id = uuid4()
        plan = reconciler.diff(make_tenant(), [make_remote("x@acme.com", id="g-x", primary_email="bad")], [], NOW)

        result = await reconciler.apply(plan, run_id, NOW)

        assert result.counters.errors == 1
        assert result.errors[0].error_type == "VALIDATION_ERROR"
        reconciler.store.upsert.assert_not_called()

    async def test_concurrent_termination_counts_as_skipped(self) -> None:
        reconciler = make_reconciler()
        reconciler.store.deactivate.return_value = False
        plan = reconciler.diff(make_tenant(), [], [make_local("left@acme.com")], NOW)

        result = await reconciler.apply(plan, uuid4(), NOW)

        assert result.counters.deactivated == 0
        assert result.counters.errors == 0

    async def test_heartbeat_runs_periodically(self) -> None:
        reconciler = make_reconciler()
        heartbeat = AsyncMock()
        remotes = [make_remote(f"user{i}@acme.com") for i in range(HEARTBEAT_EVERY * 2 + 1)]
        plan = reconciler.diff(make_tenant(), remotes, [], NOW)

        await reconciler.apply(plan, uuid4(), NOW, heartbeat=heartbeat)

        assert heartbeat.await_count == 2

    async def test_caller_counters_keep_partial_totals(self) -> None:
        reconciler = make_reconciler()
        heartbeat = AsyncMock(side_effect=SyncAlreadyRunningError(uuid4()))
        remotes = [make_remote(f"user{i}@acme.com") for i in range(HEARTBEAT_EVERY + 5)]
        plan = reconciler.diff(make_tenant(), remotes, [], NOW)
        counters = SyncCounters()

        with pytest.raises(SyncAlreadyRunningError):
            await reconciler.apply(plan, uuid4(), NOW, heartbeat=heartbeat, counters=counters)

        assert counters.processed == HEARTBEAT_EVERY + 5
        assert counters.created == HEARTBEAT_EVERY
