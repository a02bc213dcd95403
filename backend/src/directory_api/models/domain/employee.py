"""Employee domain model."""

from datetime import date, datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class EmployeeStatus(StrEnum):
    """Employee status enum."""

    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    ON_LEAVE = "ON_LEAVE"
    MATERNITY = "MATERNITY"
    TERMINATED = "TERMINATED"


class SyncableField(StrEnum):
    """Employee fields the directory sync is allowed to write.

    Each value is the attribute name on both EmployeeRecord and RemoteUser,
    so every member can be protected through manual_override_fields.
    """

    FULL_NAME = "full_name"
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    AVATAR_URL = "avatar_url"
    PHONE = "phone"
    LOCATION = "location"

    @classmethod
    def _missing_(cls, value: object) -> "SyncableField | None":
        # Admin UI stores camelCase names (fullName, avatarUrl)
        if isinstance(value, str):
            snake = "".join(f"_{c.lower()}" if c.isupper() else c for c in value)
            for member in cls:
                if member.value == snake:
                    return member
        return None


def parse_override_fields(values: Any) -> set[SyncableField]:
    """Parse stored override names, ignoring names sync never writes."""
    fields: set[SyncableField] = set()
    for value in values or ():
        try:
            fields.add(SyncableField(value))
        except ValueError:
            continue
    return fields


class EmployeeRecord(BaseModel):
    """Employee as seen by the reconciliation engine."""

    id: UUID | None = None
    email: str
    external_id: str | None = None
    full_name: str
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    phone: str | None = None
    location: str | None = None
    status: EmployeeStatus = EmployeeStatus.PENDING
    termination_date: date | None = None
    is_synced_from_external: bool = False
    last_synced_at: datetime | None = None
    tenant_id: UUID | None = None
    legal_entity_id: UUID | None = None
    manual_override_fields: set[SyncableField] = Field(default_factory=set)

    class Config:
        """Pydantic config."""

        from_attributes = True

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("manual_override_fields", mode="before")
    @classmethod
    def parse_overrides(cls, value: Any) -> set[SyncableField]:
        return parse_override_fields(value)

    def is_overridden(self, field: SyncableField) -> bool:
        """Check whether an administrator pinned this field."""
        return field in self.manual_override_fields
