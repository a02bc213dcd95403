"""Employee repository."""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import func, or_, select, update

from directory_api.models.domain.employee import (
    EmployeeRecord,
    EmployeeStatus,
    parse_override_fields,
)
from directory_api.models.orm.employee import EmployeeORM, EmployeeRoleAssignmentORM
from directory_api.repositories.base import BaseRepository

# Columns written from an EmployeeRecord; id and audit timestamps are managed here
WRITABLE_COLUMNS = (
    "email",
    "external_id",
    "full_name",
    "first_name",
    "last_name",
    "avatar_url",
    "phone",
    "location",
    "status",
    "termination_date",
    "is_synced_from_external",
    "last_synced_at",
    "tenant_id",
    "legal_entity_id",
)


class EmployeeRepository(BaseRepository[EmployeeORM]):
    """Repository for employee operations."""

    model = EmployeeORM

    async def get_by_email(self, email: str) -> EmployeeORM | None:
        """Get employee by email (case-insensitive)."""
        result = await self.session.execute(
            select(EmployeeORM).where(func.lower(EmployeeORM.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_by_domains(self, domains: set[str] | list[str]) -> list[EmployeeORM]:
        """Get employees whose email belongs to any of the given domains.

        Args:
            domains: Lowercase email domains (without "@")

        Returns:
            List of matching employees
        """
        if not domains:
            return []

        email = func.lower(EmployeeORM.email)
        result = await self.session.execute(
            select(EmployeeORM)
            .where(or_(*(email.endswith(f"@{domain.lower()}", autoescape=True) for domain in domains)))
            .order_by(EmployeeORM.email)
        )
        return list(result.scalars().all())

    async def upsert(self, record: EmployeeRecord, default_role: str | None = None) -> EmployeeORM:
        """Create or update an employee from a record.

        New employees receive default_role. The override list is only
        written on insert; it belongs to administrators.

        Args:
            record: Employee record (id set for existing employees)
            default_role: Role assigned to newly created employees

        Returns:
            Created or updated EmployeeORM
        """
        values = {column: getattr(record, column) for column in WRITABLE_COLUMNS}
        values["status"] = str(record.status)

        existing = await self.get_by_id(record.id) if record.id else None
        if existing is not None:
            # Re-read overrides: an administrator may have pinned a field since the record was loaded
            for field in parse_override_fields(existing.manual_override_fields):
                values.pop(field.value, None)
            for column, value in values.items():
                setattr(existing, column, value)
            await self.session.flush()
            return existing

        employee = await self.create(
            **values,
            manual_override_fields=sorted(str(f) for f in record.manual_override_fields),
        )
        if default_role:
            self.session.add(EmployeeRoleAssignmentORM(employee_id=employee.id, role=default_role))
            await self.session.flush()
        return employee

    async def deactivate(self, id: UUID, termination_date: date, synced_at: datetime) -> bool:
        """Terminate an employee unless already terminated.

        Returns:
            True if a row changed
        """
        result = await self.session.execute(
            update(EmployeeORM)
            .where(EmployeeORM.id == id, EmployeeORM.status != EmployeeStatus.TERMINATED.value)
            .values(
                status=EmployeeStatus.TERMINATED.value,
                termination_date=termination_date,
                last_synced_at=synced_at,
            )
        )
        return result.rowcount > 0

    async def get_roles(self, employee_id: UUID) -> list[str]:
        """Get roles assigned to an employee."""
        result = await self.session.execute(
            select(EmployeeRoleAssignmentORM.role)
            .where(EmployeeRoleAssignmentORM.employee_id == employee_id)
            .order_by(EmployeeRoleAssignmentORM.role)
        )
        return list(result.scalars().all())
