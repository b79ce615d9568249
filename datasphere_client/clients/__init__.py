"""Expose constructed client wrappers."""

from .callback_server import OAuthCallbackListener, build_callback_app
from .csrf import CsrfClient
from .oauth import DatasphereOAuthClient
from .token_store import TokenStore

__all__ = [
    "CsrfClient",
    "DatasphereOAuthClient",
    "OAuthCallbackListener",
    "TokenStore",
    "build_callback_app",
]
