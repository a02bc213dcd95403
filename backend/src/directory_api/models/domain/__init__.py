"""Domain models package."""

from directory_api.models.domain.employee import EmployeeRecord, EmployeeStatus, SyncableField
from directory_api.models.domain.sync import (
    RemoteUser,
    SyncAction,
    SyncCounters,
    SyncPhase,
    SyncRecordError,
    SyncResult,
    SyncRun,
    SyncRunStatus,
    SyncStatusReport,
    SyncTrigger,
    TenantSyncOverview,
)
from directory_api.models.domain.tenant import Tenant, TenantSyncStatus

__all__ = [
    "EmployeeRecord",
    "EmployeeStatus",
    "RemoteUser",
    "SyncAction",
    "SyncCounters",
    "SyncPhase",
    "SyncRecordError",
    "SyncResult",
    "SyncRun",
    "SyncRunStatus",
    "SyncStatusReport",
    "SyncTrigger",
    "SyncableField",
    "Tenant",
    "TenantSyncOverview",
    "TenantSyncStatus",
]
