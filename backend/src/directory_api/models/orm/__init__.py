"""SQLAlchemy ORM models package."""

from directory_api.models.orm.base import Base
from directory_api.models.orm.employee import EmployeeORM, EmployeeRoleAssignmentORM
from directory_api.models.orm.sync_lock import SyncLockORM
from directory_api.models.orm.sync_run import SyncErrorORM, SyncRunORM
from directory_api.models.orm.tenant import TenantORM

__all__ = [
    "Base",
    "EmployeeORM",
    "EmployeeRoleAssignmentORM",
    "SyncErrorORM",
    "SyncLockORM",
    "SyncRunORM",
    "TenantORM",
]
