"""Sync DTOs."""

from uuid import UUID

from pydantic import BaseModel, Field

from directory_api.models.domain.sync import SyncResult


class SyncRequest(BaseModel):
    """Manual sync request."""

    # All sync-enabled tenants when omitted
    tenant_id: UUID | None = None
    # Admin identity, set by the authentication layer in front of this API
    triggered_by: str | None = Field(default=None, max_length=255)


class SyncResponse(BaseModel):
    """Response from sync operation."""

    success: bool
    # Keyed by tenant domain
    results: dict[str, SyncResult]
