"""Read access to tenant configuration for the sync engine."""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from directory_api.exceptions import TenantNotFoundError
from directory_api.models.domain.sync import TenantSyncOverview
from directory_api.models.domain.tenant import Tenant
from directory_api.repositories.tenant_repository import TenantRepository


class TenantRegistry:
    """Tenant lookups. The admin UI owns tenant configuration."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def get(self, tenant_id: UUID) -> Tenant:
        """Get a tenant by ID.

        Raises:
            TenantNotFoundError: If no tenant has this ID
        """
        async with self.session_maker() as session:
            tenant = await TenantRepository(session).get_by_id(tenant_id)
            if tenant is None:
                raise TenantNotFoundError(tenant_id)
            return Tenant.model_validate(tenant)

    async def list_sync_candidates(self) -> list[Tenant]:
        """Get tenants that are active and have sync enabled."""
        async with self.session_maker() as session:
            tenants = await TenantRepository(session).get_sync_candidates()
            return [Tenant.model_validate(tenant) for tenant in tenants]

    async def overview(self) -> list[TenantSyncOverview]:
        """Get sync state of every active tenant."""
        async with self.session_maker() as session:
            rows = await TenantRepository(session).get_active_with_counts()
            return [
                TenantSyncOverview(
                    id=tenant.id,
                    name=tenant.name,
                    domain=tenant.domain,
                    sync_enabled=tenant.sync_enabled,
                    last_sync_at=tenant.last_sync_at,
                    last_sync_status=tenant.last_sync_status,
                    employee_count=employee_count,
                    sync_run_count=run_count,
                )
                for tenant, employee_count, run_count in rows
            ]
