"""File-backed cache of OAuth token sets keyed by service hostname."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from datasphere_client.core.logging import get_logger
from datasphere_client.schemas.auth import OAuthTokenSet

if TYPE_CHECKING:
    from datasphere_client.services.token_cipher import TokenCacheCipher

_ENTRIES = TypeAdapter(Dict[str, OAuthTokenSet])


class TokenStore:
    """Whole-file JSON store mapping hostnames to token sets.

    Reads and writes are read-modify-write of the entire file without
    locking; two processes sharing one cache file may race.
    """

    def __init__(
        self,
        path: Path,
        *,
        cipher: Optional[TokenCacheCipher] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._path = Path(path).expanduser()
        self._cipher = cipher
        self._logger = get_logger(__name__, logger)

    @property
    def path(self) -> Path:
        return self._path

    @staticmethod
    def host_key(host: str) -> str:
        hostname = httpx.URL(host).host
        if not hostname:
            raise ValueError(f"Cannot derive a hostname from {host!r}")
        return hostname

    def load(self, host: str) -> Optional[OAuthTokenSet]:
        key = self.host_key(host)
        entry = self._read().get(key)
        if entry is None:
            self._logger.debug("No cached tokens for %s", key)
            return None
        self._logger.debug("Loaded cached tokens for %s", key)
        return entry

    def save(self, host: str, tokens: OAuthTokenSet) -> None:
        key = self.host_key(host)
        entries = self._read()
        entries[key] = tokens
        self._write(entries)
        self._logger.debug("Saved tokens to cache for %s", key)

    def delete(self, host: str) -> bool:
        key = self.host_key(host)
        entries = self._read()
        if entries.pop(key, None) is None:
            return False
        self._write(entries)
        self._logger.debug("Removed cached tokens for %s", key)
        return True

    def _read(self) -> Dict[str, OAuthTokenSet]:
        if not self._path.exists():
            return {}
        raw = self._path.read_bytes()
        try:
            if self._cipher is not None:
                raw = self._cipher.decrypt(raw)
            return _ENTRIES.validate_json(raw)
        except (ValueError, ValidationError) as exc:
            # An unreadable cache behaves like an empty one; the next save overwrites it.
            self._logger.warning("Failed to parse token cache %s: %s", self._path, exc)
            return {}

    def _write(self, entries: Dict[str, OAuthTokenSet]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = _ENTRIES.dump_json(entries, by_alias=True, indent=2)
        if self._cipher is not None:
            payload = self._cipher.encrypt(payload)

        # The file is owner-only from creation; readers never see a partial write.
        staging = self._path.with_name(self._path.name + ".tmp")
        fd = os.open(staging, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            with os.fdopen(fd, "wb") as handle:
                os.fchmod(handle.fileno(), 0o600)
                handle.write(payload)
        except OSError:
            staging.unlink(missing_ok=True)
            raise
        os.replace(staging, self._path)


__all__ = ["TokenStore"]
