"""Sync run domain models."""

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from directory_api.models.domain.tenant import TenantSyncStatus


class SyncTrigger(StrEnum):
    """What started a sync run."""

    MANUAL = "MANUAL"
    SCHEDULED = "SCHEDULED"


class SyncRunStatus(StrEnum):
    """Sync run status enum."""

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class SyncPhase(StrEnum):
    """Phases a tenant run passes through."""

    INIT = "INIT"
    FETCHING = "FETCHING"
    DIFFING = "DIFFING"
    APPLYING = "APPLYING"
    FINALIZING = "FINALIZING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class SyncAction(StrEnum):
    """Outcome of reconciling one directory user or local record."""

    CREATED = "created"
    UPDATED = "updated"
    DEACTIVATED = "deactivated"
    SKIPPED = "skipped"


class RemoteUser(BaseModel):
    """Directory user normalized for one fetch. Never persisted."""

    id: str
    primary_email: str
    full_name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    avatar_url: str | None = None
    suspended: bool = False
    phone: str | None = None
    location: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    # Set by the provider when the payload could not be mapped
    invalid_reason: str | None = None

    @property
    def email(self) -> str:
        """Lowercased primary email, the join key to local records."""
        return self.primary_email.strip().lower()

    @property
    def first_name(self) -> str | None:
        return self.given_name

    @property
    def last_name(self) -> str | None:
        return self.family_name


class SyncCounters(BaseModel):
    """Per-run counters."""

    processed: int = 0
    created: int = 0
    updated: int = 0
    deactivated: int = 0
    errors: int = 0

    def record(self, action: SyncAction) -> None:
        """Count one reconciliation action."""
        if action == SyncAction.CREATED:
            self.created += 1
        elif action == SyncAction.UPDATED:
            self.updated += 1
        elif action == SyncAction.DEACTIVATED:
            self.deactivated += 1

    def summary(self) -> str:
        return (
            f"Sync completed: {self.processed} processed, {self.created} created, "
            f"{self.updated} updated, {self.deactivated} deactivated, {self.errors} errors"
        )


class SyncRecordError(BaseModel):
    """Failure captured for one record."""

    email: str
    error: str
    error_type: str = "SYNC_ERROR"


class SyncRun(BaseModel):
    """Sync run audit record."""

    id: UUID
    tenant_id: UUID
    trigger: SyncTrigger
    triggered_by: str | None = None
    status: SyncRunStatus
    started_at: datetime
    completed_at: datetime | None = None
    users_processed: int = 0
    users_created: int = 0
    users_updated: int = 0
    users_deactivated: int = 0
    errors_count: int = 0
    notes: str | None = None

    class Config:
        """Pydantic config."""

        from_attributes = True


class SyncResult(BaseModel):
    """Result of syncing one tenant."""

    success: bool = False
    run_id: UUID | None = None
    tenant_id: UUID | None = None
    counters: SyncCounters = Field(default_factory=SyncCounters)
    errors: list[SyncRecordError] = Field(default_factory=list)
    failure_reason: str | None = None


class TenantSyncOverview(BaseModel):
    """Tenant row of the sync status report."""

    id: UUID
    name: str
    domain: str
    sync_enabled: bool
    last_sync_at: datetime | None = None
    last_sync_status: TenantSyncStatus | None = None
    employee_count: int = 0
    sync_run_count: int = 0


class SyncStatusReport(BaseModel):
    """Read-only projection of sync state for the admin UI."""

    tenants: list[TenantSyncOverview] = Field(default_factory=list)
    is_running: bool = False
    current_run: SyncRun | None = None
    last_completed_run: SyncRun | None = None
