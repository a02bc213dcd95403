"""Employee store used by the reconciliation engine.

Every call runs in its own transaction, so a crash mid-run leaves each
already-written employee in a committed, consistent state.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from directory_api.models.domain.employee import EmployeeRecord
from directory_api.repositories.employee_repository import EmployeeRepository


class EmployeeStore:
    """Transactional employee reads and writes."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        default_role: str | None = None,
    ) -> None:
        """Initialize store.

        Args:
            session_maker: Factory for short-lived sessions
            default_role: Role given to employees created by sync
        """
        self.session_maker = session_maker
        self.default_role = default_role

    async def find_by_domain_set(self, domains: set[str] | list[str]) -> list[EmployeeRecord]:
        """Load every employee whose email belongs to one of the domains."""
        async with self.session_maker() as session:
            employees = await EmployeeRepository(session).get_by_domains(domains)
            return [EmployeeRecord.model_validate(employee) for employee in employees]

    async def upsert(self, record: EmployeeRecord) -> EmployeeRecord:
        """Create or update one employee atomically."""
        async with self.session_maker() as session:
            async with session.begin():
                employee = await EmployeeRepository(session).upsert(record, self.default_role)
            return EmployeeRecord.model_validate(employee)

    async def deactivate(self, employee_id: UUID, termination_date: date, synced_at: datetime) -> bool:
        """Terminate one employee atomically.

        Returns:
            True if the employee was not already terminated
        """
        async with self.session_maker() as session:
            async with session.begin():
                return await EmployeeRepository(session).deactivate(employee_id, termination_date, synced_at)
