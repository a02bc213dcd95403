"""Dependency injection factories for FastAPI."""

from directory_api.database import get_session_maker
from directory_api.services.sync_service import SyncService


def get_sync_service() -> SyncService:
    """Get SyncService instance bound to the application session factory."""
    return SyncService(get_session_maker())
