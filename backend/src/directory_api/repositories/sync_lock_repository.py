"""Per-tenant sync lock repository."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select, update

from directory_api.models.orm.sync_lock import SyncLockORM
from directory_api.repositories.base import BaseRepository


class SyncLockRepository(BaseRepository[SyncLockORM]):
    """Repository for sync lock leases."""

    model = SyncLockORM

    async def insert(
        self,
        tenant_id: UUID,
        holder: str,
        acquired_at: datetime,
        expires_at: datetime,
    ) -> SyncLockORM:
        """Insert a lock row.

        Raises:
            IntegrityError: If another holder already has the tenant locked
        """
        lock = SyncLockORM(
            tenant_id=tenant_id,
            holder=holder,
            acquired_at=acquired_at,
            expires_at=expires_at,
        )
        self.session.add(lock)
        await self.session.flush()
        return lock

    async def delete_if_expired(self, tenant_id: UUID, now: datetime) -> bool:
        """Remove a tenant's lock only if its lease ran out."""
        result = await self.session.execute(
            delete(SyncLockORM).where(SyncLockORM.tenant_id == tenant_id, SyncLockORM.expires_at < now)
        )
        return result.rowcount > 0

    async def get_expired(self, now: datetime) -> list[SyncLockORM]:
        """Get all locks whose lease ran out."""
        result = await self.session.execute(select(SyncLockORM).where(SyncLockORM.expires_at < now))
        return list(result.scalars().all())

    async def get_held(self, now: datetime) -> list[SyncLockORM]:
        """Get all locks with a live lease."""
        result = await self.session.execute(select(SyncLockORM).where(SyncLockORM.expires_at >= now))
        return list(result.scalars().all())

    async def refresh(
        self,
        tenant_id: UUID,
        holder: str,
        expires_at: datetime,
        sync_run_id: UUID | None = None,
    ) -> bool:
        """Extend a held lease and optionally attach the run it covers."""
        values: dict[str, object] = {"expires_at": expires_at}
        if sync_run_id is not None:
            values["sync_run_id"] = sync_run_id
        result = await self.session.execute(
            update(SyncLockORM)
            .where(SyncLockORM.tenant_id == tenant_id, SyncLockORM.holder == holder)
            .values(**values)
        )
        return result.rowcount > 0

    async def release(self, tenant_id: UUID, holder: str) -> bool:
        """Release a lock held by this holder."""
        result = await self.session.execute(
            delete(SyncLockORM).where(SyncLockORM.tenant_id == tenant_id, SyncLockORM.holder == holder)
        )
        return result.rowcount > 0
