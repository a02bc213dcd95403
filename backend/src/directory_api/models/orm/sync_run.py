"""Sync run audit ORM models."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from directory_api.models.orm.base import Base, JSONType, UUIDMixin


class SyncRunORM(Base, UUIDMixin):
    """One reconciliation execution for one tenant."""

    __tablename__ = "sync_runs"

    tenant_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )
    trigger: Mapped[str] = mapped_column(String(20), nullable=False)
    triggered_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    users_processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    users_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    users_updated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    users_deactivated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    tenant: Mapped["TenantORM"] = relationship("TenantORM", back_populates="sync_runs", lazy="select")
    errors: Mapped[list["SyncErrorORM"]] = relationship(
        "SyncErrorORM", back_populates="sync_run", lazy="select", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_sync_runs_tenant_started", "tenant_id", "started_at"),
        Index("idx_sync_runs_status", "status"),
    )


class SyncErrorORM(Base, UUIDMixin):
    """Per-record failure captured during a sync run."""

    __tablename__ = "sync_errors"

    sync_run_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("sync_runs.id", ondelete="CASCADE"),
        nullable=False,
    )
    error_type: Mapped[str] = mapped_column(String(50), nullable=False)
    error_message: Mapped[str] = mapped_column(Text, nullable=False)
    error_details: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    sync_run: Mapped["SyncRunORM"] = relationship("SyncRunORM", back_populates="errors", lazy="select")

    __table_args__ = (
        Index("idx_sync_errors_run_id", "sync_run_id"),
    )


# Import here to avoid circular import
from directory_api.models.orm.tenant import TenantORM  # noqa: E402, F401
