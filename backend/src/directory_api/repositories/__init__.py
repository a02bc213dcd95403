"""Data access repositories."""

from directory_api.repositories.employee_repository import EmployeeRepository
from directory_api.repositories.sync_lock_repository import SyncLockRepository
from directory_api.repositories.sync_run_repository import SyncRunRepository
from directory_api.repositories.tenant_repository import TenantRepository

__all__ = [
    "EmployeeRepository",
    "SyncLockRepository",
    "SyncRunRepository",
    "TenantRepository",
]
