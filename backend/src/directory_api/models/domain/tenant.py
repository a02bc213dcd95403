"""Tenant domain model."""

from datetime import UTC, datetime, timedelta
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class TenantSyncStatus(StrEnum):
    """Last sync status mirrored on the tenant."""

    SUCCESS = "success"
    FAILED = "failed"
    IN_PROGRESS = "in_progress"


class Tenant(BaseModel):
    """Tenant configuration consumed by the sync engine."""

    id: UUID
    name: str
    domain: str
    allowed_domains: list[str] = Field(default_factory=list)
    customer_id: str | None = None
    admin_email: str | None = None
    credentials_encrypted: bytes | None = Field(default=None, repr=False)
    sync_enabled: bool = True
    sync_interval_minutes: int = 1440
    auto_provision: bool = True
    last_sync_at: datetime | None = None
    last_sync_status: TenantSyncStatus | None = None
    default_legal_entity_id: UUID | None = None
    is_active: bool = True

    class Config:
        """Pydantic config."""

        from_attributes = True

    @field_validator("domain")
    @classmethod
    def normalize_domain(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("allowed_domains", mode="before")
    @classmethod
    def normalize_allowed_domains(cls, value: list[str] | None) -> list[str]:
        return [d.strip().lower() for d in value or [] if d and d.strip()]

    @property
    def domains(self) -> set[str]:
        """Primary domain plus every allowed domain."""
        return {self.domain, *self.allowed_domains}

    def owns_email(self, email: str) -> bool:
        """Check whether an email belongs to one of the tenant's domains."""
        _, sep, domain = email.lower().rpartition("@")
        return bool(sep) and domain in self.domains

    def is_due(self, now: datetime | None = None) -> bool:
        """Check whether the tenant's sync interval has elapsed."""
        if self.last_sync_at is None:
            return True
        now = now or datetime.now(UTC)
        last = self.last_sync_at
        if last.tzinfo is None:
            last = last.replace(tzinfo=UTC)
        return last + timedelta(minutes=self.sync_interval_minutes) <= now
