"""Services package."""

from directory_api.services.employee_store import EmployeeStore
from directory_api.services.reconciler import Reconciler
from directory_api.services.sync_run_recorder import SyncRunRecorder
from directory_api.services.sync_service import SyncService
from directory_api.services.tenant_registry import TenantRegistry

__all__ = [
    "EmployeeStore",
    "Reconciler",
    "SyncRunRecorder",
    "SyncService",
    "TenantRegistry",
]
