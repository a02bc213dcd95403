"""Tenant repository."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select

from directory_api.models.orm.employee import EmployeeORM
from directory_api.models.orm.sync_run import SyncRunORM
from directory_api.models.orm.tenant import TenantORM
from directory_api.repositories.base import BaseRepository


class TenantRepository(BaseRepository[TenantORM]):
    """Repository for tenant operations."""

    model = TenantORM

    async def get_by_domain(self, domain: str) -> TenantORM | None:
        """Get tenant by primary domain."""
        result = await self.session.execute(
            select(TenantORM).where(TenantORM.domain == domain.lower())
        )
        return result.scalar_one_or_none()

    async def get_sync_candidates(self) -> list[TenantORM]:
        """Get active tenants with sync enabled, oldest sync first."""
        result = await self.session.execute(
            select(TenantORM)
            .where(TenantORM.is_active.is_(True), TenantORM.sync_enabled.is_(True))
            .order_by(TenantORM.last_sync_at.asc().nulls_first(), TenantORM.domain)
        )
        return list(result.scalars().all())

    async def get_active_with_counts(self) -> list[tuple[TenantORM, int, int]]:
        """Get active tenants with their employee and sync run counts.

        Returns:
            List of (tenant, employee_count, sync_run_count) tuples
        """
        employee_counts = (
            select(EmployeeORM.tenant_id, func.count(EmployeeORM.id).label("employee_count"))
            .group_by(EmployeeORM.tenant_id)
            .subquery()
        )
        run_counts = (
            select(SyncRunORM.tenant_id, func.count(SyncRunORM.id).label("run_count"))
            .group_by(SyncRunORM.tenant_id)
            .subquery()
        )
        result = await self.session.execute(
            select(
                TenantORM,
                func.coalesce(employee_counts.c.employee_count, 0),
                func.coalesce(run_counts.c.run_count, 0),
            )
            .outerjoin(employee_counts, TenantORM.id == employee_counts.c.tenant_id)
            .outerjoin(run_counts, TenantORM.id == run_counts.c.tenant_id)
            .where(TenantORM.is_active.is_(True))
            .order_by(TenantORM.name)
        )
        return [(tenant, int(employees), int(runs)) for tenant, employees, runs in result.all()]

    async def update_sync_status(
        self,
        id: UUID,
        status: str,
        sync_time: datetime | None = None,
    ) -> TenantORM | None:
        """Update tenant sync status.

        Args:
            id: Tenant UUID
            status: Sync status
            sync_time: Sync timestamp (left unchanged when None)

        Returns:
            Updated tenant or None if not found
        """
        tenant = await self.get_by_id(id)
        if tenant is None:
            return None

        tenant.last_sync_status = status
        if sync_time is not None:
            tenant.last_sync_at = sync_time
        await self.session.flush()
        return tenant

    async def mark_synced(self, id: UUID, status: str) -> TenantORM | None:
        """Record a finished sync attempt at the current time."""
        return await self.update_sync_status(id, status, datetime.now(UTC))
