"""Employee store tests on an in-memory database."""

from datetime import UTC, date, datetime

import pytest

from directory_api.models.domain.employee import EmployeeRecord, EmployeeStatus
from directory_api.repositories.employee_repository import EmployeeRepository
from directory_api.services.employee_store import EmployeeStore


@pytest.fixture
def store(session_maker) -> EmployeeStore:
    return EmployeeStore(session_maker, default_role="EMPLOYEE")


class TestFindByDomainSet:
    """Domain scoping of local records."""

    async def test_matches_primary_and_allowed_domains(self, store, create_employee) -> None:
        await create_employee("a@acme.com")
        await create_employee("b@acme.io")
        await create_employee("c@other.com")
        # Suffix match must not leak across look-alike domains
        await create_employee("d@notacme.com")

        records = await store.find_by_domain_set({"acme.com", "acme.io"})

        assert sorted(r.email for r in records) == ["a@acme.com", "b@acme.io"]

    async def test_empty_domain_set(self, store, create_employee) -> None:
        await create_employee("a@acme.com")

        assert await store.find_by_domain_set(set()) == []

    async def test_override_names_are_parsed(self, store, create_employee) -> None:
        await create_employee("a@acme.com", manual_override_fields=["fullName", "avatarUrl", "department"])

        [record] = await store.find_by_domain_set({"acme.com"})

        assert {f.value for f in record.manual_override_fields} == {"full_name", "avatar_url"}


class TestUpsert:
    """Atomic create and update."""

    async def test_create_assigns_default_role(self, store, session_maker) -> None:
        record = EmployeeRecord(email="New@Acme.com", full_name="New Hire", is_synced_from_external=True)

        created = await store.upsert(record)

        assert created.id is not None
        assert created.email == "new@acme.com"
        assert created.status == EmployeeStatus.PENDING
        async with session_maker() as session:
            assert await EmployeeRepository(session).get_roles(created.id) == ["EMPLOYEE"]

    async def test_update_respects_overrides_stored_in_database(self, store, create_employee) -> None:
        """A field pinned after the record was loaded is still protected."""
        existing = await create_employee("a@acme.com", full_name="Pinned Name", manual_override_fields=["full_name"])
        stale = existing.model_copy(update={"manual_override_fields": set(), "full_name": "Directory Name", "phone": "+1"})

        updated = await store.upsert(stale)

        assert updated.full_name == "Pinned Name"
        assert updated.phone == "+1"
        assert updated.manual_override_fields == existing.manual_override_fields


class TestDeactivate:
    """Conditional termination."""

    async def test_terminates_once(self, store, create_employee) -> None:
        employee = await create_employee("a@acme.com")
        today = date(2026, 5, 4)
        now = datetime(2026, 5, 4, 12, tzinfo=UTC)

        assert await store.deactivate(employee.id, today, now) is True
        assert await store.deactivate(employee.id, today, now) is False

        [record] = await store.find_by_domain_set({"acme.com"})
        assert record.status == EmployeeStatus.TERMINATED
        assert record.termination_date == today
