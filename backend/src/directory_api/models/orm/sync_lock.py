"""Per-tenant sync lock ORM model."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from directory_api.models.orm.base import Base


class SyncLockORM(Base):
    """Lease held by the process currently syncing a tenant.

    The primary key on tenant_id makes acquisition an atomic insert.
    """

    __tablename__ = "sync_locks"

    tenant_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        primary_key=True,
    )
    sync_run_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    holder: Mapped[str] = mapped_column(String(255), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
