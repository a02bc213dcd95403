"""Directory sync router."""

from typing import Annotated

from fastapi import APIRouter, Depends

from directory_api.dependencies import get_sync_service
from directory_api.models.domain.sync import SyncStatusReport
from directory_api.models.dto.sync import SyncRequest, SyncResponse
from directory_api.services.sync_service import SyncService

router = APIRouter()


@router.post("", response_model=SyncResponse)
async def trigger_sync(
    sync_service: Annotated[SyncService, Depends(get_sync_service)],
    body: SyncRequest | None = None,
) -> SyncResponse:
    """Sync one tenant, or every sync-enabled tenant when no tenant is given.

    Returns 404 for an unknown tenant and 409 while that tenant is already syncing.
    """
    body = body or SyncRequest()
    if body.tenant_id is not None:
        tenant = await sync_service.registry.get(body.tenant_id)
        result = await sync_service.sync_tenant(tenant.id, body.triggered_by)
        return SyncResponse(success=result.success, results={tenant.domain: result})

    results = await sync_service.sync_all_tenants(body.triggered_by)
    return SyncResponse(
        success=all(result.success for result in results.values()),
        results=results,
    )


@router.get("", response_model=SyncStatusReport)
async def get_sync_status(
    sync_service: Annotated[SyncService, Depends(get_sync_service)],
) -> SyncStatusReport:
    """Get sync state of all tenants."""
    return await sync_service.get_sync_status()
