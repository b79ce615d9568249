"""Symmetric encryption for the on-disk token cache."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


class TokenCacheCipher:
    """Encrypt and decrypt the token cache payload using a derived Fernet key."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token cache encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, payload: bytes) -> bytes:
        return self._fernet.encrypt(payload)

    def decrypt(self, token: bytes) -> bytes:
        """Decrypt a cache payload; a wrong secret or a plaintext file is a ValueError."""
        try:
            return self._fernet.decrypt(token)
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt token cache; wrong secret or unencrypted file."
            ) from exc


__all__ = ["TokenCacheCipher"]
