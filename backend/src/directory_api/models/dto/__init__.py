"""Data Transfer Objects package."""

from directory_api.models.dto.sync import SyncRequest, SyncResponse

__all__ = [
    "SyncRequest",
    "SyncResponse",
]
