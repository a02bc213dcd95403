"""Employee ORM models."""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from directory_api.models.orm.base import Base, JSONType, TimestampMixin, UUIDMixin


class EmployeeORM(Base, UUIDMixin, TimestampMixin):
    """Employee database model."""

    __tablename__ = "employees"

    # Stored lowercase; join key to directory users
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_synced_from_external: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    manual_override_fields: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    legal_entity_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    tenant_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tenants.id", ondelete="SET NULL"),
        nullable=True,
    )

    tenant: Mapped["TenantORM | None"] = relationship(
        "TenantORM", back_populates="employees", lazy="select"
    )
    role_assignments: Mapped[list["EmployeeRoleAssignmentORM"]] = relationship(
        "EmployeeRoleAssignmentORM",
        back_populates="employee",
        lazy="select",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_employees_status", "status"),
        Index("idx_employees_tenant_id", "tenant_id"),
    )


class EmployeeRoleAssignmentORM(Base, UUIDMixin, TimestampMixin):
    """Role granted to an employee."""

    __tablename__ = "employee_role_assignments"

    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(50), nullable=False)

    employee: Mapped["EmployeeORM"] = relationship(
        "EmployeeORM", back_populates="role_assignments", lazy="select"
    )

    __table_args__ = (
        UniqueConstraint("employee_id", "role", name="uq_employee_role"),
    )


# Import here to avoid circular import
from directory_api.models.orm.tenant import TenantORM  # noqa: E402, F401
