"""Directory provider integrations package."""

from directory_api.providers.base import DirectoryClient, DirectoryProvider
from directory_api.providers.google_workspace import GoogleWorkspaceProvider

__all__ = [
    "DirectoryClient",
    "DirectoryProvider",
    "GoogleWorkspaceProvider",
]
