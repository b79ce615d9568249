"""Service layer exports."""

from .documents import extract_object, load_document, resolve_dependencies, validate_document
from .login import LoginFlow, LoginResult
from .reconciliation import ReplicationFlowEngine, ResourceEngine
from .session import SessionManager
from .token_cipher import TokenCacheCipher

__all__ = [
    "LoginFlow",
    "LoginResult",
    "ReplicationFlowEngine",
    "ResourceEngine",
    "SessionManager",
    "TokenCacheCipher",
    "extract_object",
    "load_document",
    "resolve_dependencies",
    "validate_document",
]
