"""
Client configuration models and helpers.

Centralizes settings management so the library, the CLI and the tests share a
consistent configuration surface. Values come from keyword arguments, the
environment (``DATASPHERE_`` prefix) or a ``.env`` file.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import (
    AliasChoices,
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from datasphere_client.core.errors import ConfigurationError
from datasphere_client.schemas.auth import OAuthTokenSet

DEFAULT_TOKEN_CACHE_PATH = Path.home() / ".datasphere-client" / "tokens.json"

# Datasphere CLI convention: "sb-" client ids are custom OAuth clients.
CUSTOM_CLIENT_PREFIX = "sb-"
CUSTOM_CLIENT_PORT = 8080
PREDELIVERED_CLIENT_PORT = 65000


class OAuthSettings(BaseModel):
    """OAuth client credentials used for the authorization-code flow."""

    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1)
    authorization_url: AnyHttpUrl
    token_url: AnyHttpUrl


class OAuthOptionsFile(BaseModel):
    """On-disk OAuth options file as written by the Datasphere CLI."""

    model_config = ConfigDict(populate_by_name=True)

    client_id: str = Field(..., alias="client-id", min_length=1)
    client_secret: str = Field(..., alias="client-secret", min_length=1)
    authorization_url: AnyHttpUrl = Field(..., alias="authorization-url")
    token_url: AnyHttpUrl = Field(..., alias="token-url")

    def to_settings(self) -> OAuthSettings:
        return OAuthSettings(
            client_id=self.client_id,
            client_secret=self.client_secret,
            authorization_url=self.authorization_url,
            token_url=self.token_url,
        )


def load_oauth_options_file(path: Path) -> OAuthSettings:
    """Read and validate an OAuth options file."""
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        raise ConfigurationError(f"OAuth options file not found: {resolved}")
    try:
        raw = json.loads(resolved.read_text(encoding="utf-8"))
        return OAuthOptionsFile.model_validate(raw).to_settings()
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"OAuth options file {resolved} is not valid JSON: {exc}") from exc
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid OAuth options file {resolved}: {exc}") from exc


def resolve_callback_port(client_id: str, override: Optional[int] = None) -> int:
    """Return the localhost port the OAuth redirect listener binds to."""
    if override:
        return override
    if client_id.startswith(CUSTOM_CLIENT_PREFIX):
        return CUSTOM_CLIENT_PORT
    return PREDELIVERED_CLIENT_PORT


class ClientSettings(BaseSettings):
    """Root settings object for a Datasphere client."""

    model_config = SettingsConfigDict(
        env_prefix="DATASPHERE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    host: AnyHttpUrl
    space: str = Field(..., min_length=1)
    log_level: str = Field("INFO")
    verbose: bool = Field(False, description="Shortcut for DEBUG logging in the CLI.")
    oauth: Optional[OAuthSettings] = None
    oauth_options_file: Optional[Path] = Field(
        None,
        description="Path to a JSON options file with client-id/client-secret/urls.",
    )
    tokens: Optional[OAuthTokenSet] = Field(
        None,
        description="Pre-supplied token set; skips interactive login entirely.",
    )
    callback_port: Optional[int] = Field(
        None,
        validation_alias=AliasChoices("callback_port", "DATASPHERE_CALLBACK_PORT", "CLI_HTTP_PORT"),
    )
    callback_timeout_seconds: float = Field(300.0, gt=0)
    request_timeout_seconds: float = Field(30.0, gt=0)
    token_cache_path: Path = Field(default_factory=lambda: DEFAULT_TOKEN_CACHE_PATH)
    token_encryption_secret: Optional[str] = Field(
        None,
        description="When set, the token cache file is encrypted at rest.",
    )

    @field_validator("space")
    @classmethod
    def _strip_space(cls, value: str) -> str:
        return value.strip()

    @property
    def base_url(self) -> str:
        return str(self.host).rstrip("/")

    def resolve_oauth(self) -> OAuthSettings:
        """Return inline OAuth settings or load them from the options file."""
        if self.oauth is not None:
            return self.oauth
        if self.oauth_options_file is not None:
            return load_oauth_options_file(self.oauth_options_file)
        raise ConfigurationError(
            "OAuth configuration required: provide oauth credentials or an options file."
        )


@lru_cache()
def get_settings() -> ClientSettings:
    """Return a cached settings object built from the environment."""
    try:
        return ClientSettings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid Datasphere configuration: {exc}") from exc


__all__ = [
    "ClientSettings",
    "OAuthOptionsFile",
    "OAuthSettings",
    "get_settings",
    "load_oauth_options_file",
    "resolve_callback_port",
]
