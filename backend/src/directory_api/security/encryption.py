"""AES-256-GCM encryption for tenant credential blobs, with key versioning."""

import base64
import json
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from directory_api.config import get_settings


class EncryptionService:
    """Encrypts and decrypts tenant credentials using AES-256-GCM.

    Data format: magic (2 bytes) + key version (1 byte) + nonce (12 bytes) + ciphertext.
    New data is encrypted with the current key; data written under a legacy
    key stays readable as long as that key is configured.
    """

    MAGIC_BYTES = b"\xEC\x01"
    MAGIC_SIZE = 2
    VERSION_SIZE = 1
    NONCE_SIZE = 12  # 96 bits for GCM

    def __init__(
        self,
        current_key: str | None = None,
        legacy_keys: list[str] | None = None,
    ) -> None:
        """Initialize with the current key and optional legacy keys (oldest first)."""
        if current_key is None or legacy_keys is None:
            settings = get_settings()
            if current_key is None:
                current_key = settings.encryption_key
            if legacy_keys is None:
                legacy_keys = settings.encryption_key_legacy_list

        self._key_chain: list[bytes] = [self._decode_key(key) for key in legacy_keys]
        self._key_chain.append(self._decode_key(current_key))

    @staticmethod
    def _decode_key(key: str) -> bytes:
        """Decode and validate a base64 URL-safe encoded 32-byte key."""
        try:
            decoded = base64.urlsafe_b64decode(key + "=" * (-len(key) % 4))
        except ValueError as e:
            raise ValueError(f"Invalid base64-encoded encryption key: {type(e).__name__}") from e

        if len(decoded) != 32:
            raise ValueError("Encryption key must be 32 bytes (256 bits)")
        return decoded

    def encrypt(self, data: dict[str, Any]) -> bytes:
        """Encrypt a dictionary with the current key."""
        plaintext = json.dumps(data).encode("utf-8")
        nonce = os.urandom(self.NONCE_SIZE)
        version = len(self._key_chain) - 1
        ciphertext = AESGCM(self._key_chain[version]).encrypt(nonce, plaintext, None)
        return self.MAGIC_BYTES + bytes([version]) + nonce + ciphertext

    def decrypt(self, encrypted_data: bytes) -> dict[str, Any]:
        """Decrypt bytes to a dictionary.

        Raises:
            ValueError: If the data is malformed or no configured key fits
        """
        header_size = self.MAGIC_SIZE + self.VERSION_SIZE
        if (
            len(encrypted_data) < header_size + self.NONCE_SIZE + 1
            or encrypted_data[: self.MAGIC_SIZE] != self.MAGIC_BYTES
        ):
            raise ValueError("Invalid encrypted data")

        version = encrypted_data[self.MAGIC_SIZE]
        nonce = encrypted_data[header_size : header_size + self.NONCE_SIZE]
        ciphertext = encrypted_data[header_size + self.NONCE_SIZE :]

        # Stated version first, then the rest of the chain newest to oldest
        candidates = list(reversed(self._key_chain))
        if version < len(self._key_chain):
            candidates.insert(0, self._key_chain[version])

        for key in candidates:
            try:
                plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
                return json.loads(plaintext.decode("utf-8"))
            except (InvalidTag, ValueError):
                continue

        raise ValueError("Decryption failed: no valid key found")


# Global instance
_encryption_service: EncryptionService | None = None


def get_encryption_service() -> EncryptionService:
    """Get or create the encryption service singleton."""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = EncryptionService()
    return _encryption_service


def reset_encryption_service() -> None:
    """Reset the encryption service singleton (for testing or key rotation)."""
    global _encryption_service
    _encryption_service = None
