"""Tenant ORM model."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Integer, LargeBinary, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from directory_api.models.orm.base import Base, JSONType, TimestampMixin, UUIDMixin


class TenantORM(Base, UUIDMixin, TimestampMixin):
    """Google Workspace organization synced into the directory."""

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    allowed_domains: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    customer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    admin_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    credentials_encrypted: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    sync_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sync_interval_minutes: Mapped[int] = mapped_column(Integer, default=1440, nullable=False)
    auto_provision: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_sync_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    default_legal_entity_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships - lazy="select" for collections, load explicitly when needed
    employees: Mapped[list["EmployeeORM"]] = relationship(
        "EmployeeORM", back_populates="tenant", lazy="select"
    )
    sync_runs: Mapped[list["SyncRunORM"]] = relationship(
        "SyncRunORM", back_populates="tenant", lazy="select", cascade="all, delete-orphan"
    )


# Import here to avoid circular import
from directory_api.models.orm.employee import EmployeeORM  # noqa: E402, F401
from directory_api.models.orm.sync_run import SyncRunORM  # noqa: E402, F401
