"""Security package."""

from directory_api.security.encryption import EncryptionService, get_encryption_service

__all__ = [
    "EncryptionService",
    "get_encryption_service",
]
