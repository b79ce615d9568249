"""
Resource kinds managed through the Datasphere object API.

Each kind is a small frozen variant knowing its endpoint, the CSN key its
definitions live under, and which other kind (if any) must exist before it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class ResourceKind:
    """A kind without pre-dependencies (views, local tables)."""

    name: str
    label: str
    endpoint: str
    schema_key: str

    @property
    def pre_dependency(self) -> Optional["ResourceKind"]:
        return None

    def resolve_dependencies(self, document: Mapping[str, Any], object_name: str) -> List[str]:
        return []


@dataclass(frozen=True)
class ReplicationFlowKind(ResourceKind):
    """Replication flows depend on the local tables named in their targets."""

    @property
    def pre_dependency(self) -> Optional[ResourceKind]:
        return LOCAL_TABLE

    def resolve_dependencies(self, document: Mapping[str, Any], object_name: str) -> List[str]:
        flows = document.get(self.schema_key) or {}
        flow = flows.get(object_name) if isinstance(flows, Mapping) else None
        if not isinstance(flow, Mapping):
            return []
        targets = flow.get("targets")
        if not isinstance(targets, Mapping):
            return []
        # Document order; JSON objects decode into insertion-ordered dicts.
        return list(targets.keys())


VIEW = ResourceKind(name="view", label="view", endpoint="views", schema_key="definitions")
LOCAL_TABLE = ResourceKind(
    name="local-table", label="local table", endpoint="localTable", schema_key="definitions"
)
REPLICATION_FLOW = ReplicationFlowKind(
    name="replication-flow",
    label="replication flow",
    endpoint="replicationflows",
    schema_key="replicationflows",
)

RESOURCE_KINDS: Dict[str, ResourceKind] = {
    kind.name: kind for kind in (VIEW, LOCAL_TABLE, REPLICATION_FLOW)
}


def get_resource_kind(name: str) -> ResourceKind:
    try:
        return RESOURCE_KINDS[name]
    except KeyError as exc:
        raise ValueError(
            f"Unknown resource kind {name!r}. Expected one of: {', '.join(RESOURCE_KINDS)}"
        ) from exc


__all__ = [
    "LOCAL_TABLE",
    "REPLICATION_FLOW",
    "RESOURCE_KINDS",
    "ReplicationFlowKind",
    "ResourceKind",
    "VIEW",
    "get_resource_kind",
]
