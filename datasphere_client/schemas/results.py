"""
Pydantic models describing the outcome of reconciliation operations.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class UpsertAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


class ExistenceState(str, Enum):
    """Result of probing for a remote object."""

    PRESENT = "present"
    ABSENT = "absent"
    UNKNOWN = "unknown"


class UpsertResult(BaseModel):
    """Outcome of a create-or-update decision for one object."""

    name: str = Field(..., description="Technical name of the object.")
    kind: str = Field(..., description="Resource kind name, e.g. local-table.")
    action: UpsertAction
    output: str = Field("", description="Raw response body returned by the service.")
    dependencies: List["UpsertResult"] = Field(
        default_factory=list,
        description="Results for pre-dependencies upserted before this object.",
    )
    run: Optional["RunResult"] = None


class RunResult(BaseModel):
    """Outcome of asking the service to start a replication flow."""

    status_code: int
    run_status: Optional[str] = None
    already_running: bool = Field(
        False, description="True when the service answered 409 Conflict."
    )


class RunResponsePayload(BaseModel):
    runStatus: str


UpsertResult.model_rebuild()

__all__ = [
    "ExistenceState",
    "RunResponsePayload",
    "RunResult",
    "UpsertAction",
    "UpsertResult",
]
