#!/usr/bin/env python
"""Run a directory sync from the command line."""

import asyncio
import logging
import sys
from uuid import UUID

from directory_api.database import get_engine, get_session_maker
from directory_api.exceptions import SyncAlreadyRunningError, TenantNotFoundError
from directory_api.models.domain.sync import SyncResult
from directory_api.services.sync_service import SyncService


def print_result(name: str, result: SyncResult) -> None:
    if result.success:
        print(f"{name}: {result.counters.summary()}")
    else:
        print(f"{name}: FAILED - {result.failure_reason}")
    for error in result.errors:
        print(f"  {error.email}: {error.error}")


async def run_sync(
    tenant_id: UUID | None,
    triggered_by: str | None,
    due_only: bool,
    recover: bool,
) -> bool:
    """Run the sync and print a summary per tenant."""
    service = SyncService(get_session_maker())
    try:
        if recover:
            recovered = await service.recover_stale_locks()
            print(f"Recovered {recovered} stale sync runs")

        if tenant_id is not None:
            try:
                tenant = await service.registry.get(tenant_id)
                result = await service.sync_tenant(tenant.id, triggered_by)
            except (TenantNotFoundError, SyncAlreadyRunningError) as e:
                print(f"{tenant_id}: {e.message}")
                return False
            print_result(tenant.domain, result)
            return result.success

        results = await service.sync_all_tenants(triggered_by, due_only=due_only)
        if not results:
            print("No tenants to sync")
        for domain, result in results.items():
            print_result(domain, result)
        return all(result.success for result in results.values())
    finally:
        await get_engine().dispose()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Sync tenant directories into the employee store")
    parser.add_argument("--tenant", type=UUID, help="Tenant ID (all sync-enabled tenants if omitted)")
    parser.add_argument("--triggered-by", help="Admin running the sync; runs are recorded as manual")
    parser.add_argument("--due-only", action="store_true", help="Only sync tenants whose interval elapsed")
    parser.add_argument("--recover", action="store_true", help="Fail stale runs before syncing")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log sync phases")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ok = asyncio.run(run_sync(args.tenant, args.triggered_by, args.due_only, args.recover))
    sys.exit(0 if ok else 1)
