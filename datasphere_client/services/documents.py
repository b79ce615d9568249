"""
Helpers for CSN documents: loading, validation, single-object extraction and
dependency resolution.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from datasphere_client.core.errors import DocumentError
from datasphere_client.models.resource_kinds import ResourceKind

# Document-level metadata carried over verbatim into every extracted payload.
METADATA_KEYS = ("version", "meta", "$version")


class _CsnVersion(BaseModel):
    csn: str


class _CsnMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    creator: str


class _CsnDocument(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    definitions: Optional[Dict[str, Any]] = None
    replicationflows: Optional[Dict[str, Any]] = None
    version: Optional[_CsnVersion] = None
    meta: Optional[_CsnMeta] = None
    format_version: Optional[str] = Field(None, alias="$version")


def validate_document(data: Any) -> Dict[str, Any]:
    """Check the top-level shape of a CSN document and return it unchanged."""
    try:
        parsed = _CsnDocument.model_validate(data)
    except ValidationError as exc:
        raise DocumentError(f"Invalid CSN structure: {exc}") from exc

    if not parsed.definitions and not parsed.replicationflows:
        raise DocumentError(
            'CSN file must contain at least one "definitions" or "replicationflows" entry'
        )
    return data


def load_document(path: Path) -> Dict[str, Any]:
    """Read a CSN document from disk."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise DocumentError(f"CSN file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise DocumentError(f"CSN file {path} is not valid JSON: {exc}") from exc
    return validate_document(raw)


def extract_object(document: Mapping[str, Any], key: str, object_name: str) -> Dict[str, Any]:
    """Return a copy of ``document`` holding exactly one object under ``key``.

    The service accepts one object per request.
    """
    collection = document.get(key)
    if not isinstance(collection, Mapping):
        raise DocumentError(
            f'Key "{key}" not found in CSN file. '
            f"Available keys: {', '.join(document.keys())}"
        )

    definition = collection.get(object_name)
    if not definition:
        raise DocumentError(
            f'Object "{object_name}" not found under "{key}". '
            f"Available: {', '.join(collection.keys())}"
        )

    extracted: Dict[str, Any] = {key: {object_name: definition}}
    for meta_key in METADATA_KEYS:
        if meta_key in document:
            extracted[meta_key] = document[meta_key]
    return extracted


def resolve_dependencies(
    document: Mapping[str, Any], object_name: str, kind: ResourceKind
) -> List[str]:
    """Names of the objects that must exist before ``object_name`` is sent."""
    return kind.resolve_dependencies(document, object_name)


__all__ = [
    "METADATA_KEYS",
    "extract_object",
    "load_document",
    "resolve_dependencies",
    "validate_document",
]
