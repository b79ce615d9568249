"""
Create/read/update/delete/upsert for Datasphere objects.

``upsert`` is the only operation that inspects remote state before acting;
the others assume a state and surface the service's error when it is wrong.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

import httpx
from pydantic import ValidationError

from datasphere_client.core.errors import (
    AuthenticationError,
    DatasphereError,
    DatasphereHTTPError,
    ExistenceProbeError,
    RunReplicationFlowError,
    SessionExpiredError,
)
from datasphere_client.core.logging import get_logger
from datasphere_client.models.resource_kinds import ResourceKind
from datasphere_client.schemas.results import (
    ExistenceState,
    RunResponsePayload,
    RunResult,
    UpsertAction,
    UpsertResult,
)
from datasphere_client.services.documents import extract_object, resolve_dependencies
from datasphere_client.services.session import SessionManager
from datasphere_client.utils.http import check_response

SAVE_FLAGS = {"saveAnyway": "true", "allowMissingDependencies": "true", "deploy": "true"}
DELETE_FLAGS = {"deleteAnyway": "true"}
_JSON_HEADERS = {"Content-Type": "application/json"}


class ResourceEngine:
    """Reconcile objects of one resource kind inside one space."""

    API_ROOT = "/dwaas-core/api/v1/spaces"
    # The service answers 400 or 404 for unknown technical names.
    ABSENT_STATUSES = frozenset({httpx.codes.BAD_REQUEST, httpx.codes.NOT_FOUND})

    def __init__(
        self,
        session: SessionManager,
        *,
        space: str,
        kind: ResourceKind,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._session = session
        self._space = space
        self.kind = kind
        self._logger = get_logger(__name__, logger)

    @property
    def collection_path(self) -> str:
        return f"{self.API_ROOT}/{self._space}/{self.kind.endpoint}"

    def object_path(self, name: str) -> str:
        return f"{self.collection_path}/{name}"

    def _operation(self, verb: str, name: str) -> str:
        return f'{verb} {self.kind.label} "{name}"'

    async def create(self, document: Mapping[str, Any], name: str) -> str:
        payload = extract_object(document, self.kind.schema_key, name)
        self._logger.debug("Creating %s %r...", self.kind.label, name)
        response = await self._session.request(
            "POST",
            self.collection_path,
            params=SAVE_FLAGS,
            headers=_JSON_HEADERS,
            json=payload,
        )
        return check_response(response, self._operation("Create", name))

    async def read(self, name: str) -> str:
        self._logger.debug("Reading %s %r...", self.kind.label, name)
        response = await self._session.request("GET", self.object_path(name))
        return check_response(response, self._operation("Read", name))

    async def update(self, document: Mapping[str, Any], name: str) -> str:
        payload = extract_object(document, self.kind.schema_key, name)
        self._logger.debug("Updating %s %r...", self.kind.label, name)
        response = await self._session.request(
            "PUT",
            self.object_path(name),
            params=SAVE_FLAGS,
            headers=_JSON_HEADERS,
            json=payload,
        )
        return check_response(response, self._operation("Update", name))

    async def delete(self, name: str) -> str:
        self._logger.debug("Deleting %s %r...", self.kind.label, name)
        response = await self._session.request(
            "DELETE", self.object_path(name), params=DELETE_FLAGS
        )
        return check_response(response, self._operation("Delete", name))

    async def probe(self, name: str) -> ExistenceState:
        """Tri-state existence check; never raises."""
        try:
            return await self._probe(name)
        except AuthenticationError as exc:
            self._logger.warning("Could not confirm %s %r: %s", self.kind.label, name, exc)
            return ExistenceState.UNKNOWN

    async def exists(self, name: str) -> bool:
        return await self.probe(name) is ExistenceState.PRESENT

    async def _probe(self, name: str) -> ExistenceState:
        """Like ``probe``, but authentication failures propagate."""
        try:
            await self.read(name)
        except DatasphereHTTPError as exc:
            if exc.status_code == httpx.codes.UNAUTHORIZED:
                raise SessionExpiredError(
                    f"Authentication failed (401) reading {self.kind.label} \"{name}\" - "
                    "OAuth session may need to be re-established via login"
                ) from exc
            if exc.status_code in self.ABSENT_STATUSES:
                self._logger.debug("%s %r does not exist", self.kind.label, name)
                return ExistenceState.ABSENT
            self._logger.warning("Could not confirm %s %r: %s", self.kind.label, name, exc)
            return ExistenceState.UNKNOWN
        except AuthenticationError:
            raise
        except DatasphereError as exc:
            self._logger.warning("Could not confirm %s %r: %s", self.kind.label, name, exc)
            return ExistenceState.UNKNOWN
        self._logger.debug("%s %r exists", self.kind.label, name)
        return ExistenceState.PRESENT

    async def upsert(
        self,
        document: Mapping[str, Any],
        name: str,
        *,
        unknown_as_absent: bool = False,
    ) -> UpsertResult:
        """Update ``name`` when present, create it when absent.

        An unknown probe result blocks the decision unless ``unknown_as_absent``.
        Authentication failures are raised as-is so the caller can log in again.
        """
        # Fail on a bad document before touching the network.
        extract_object(document, self.kind.schema_key, name)

        state = await self._probe(name)
        if state is ExistenceState.UNKNOWN and not unknown_as_absent:
            raise ExistenceProbeError(
                f"Cannot decide create vs. update for {self.kind.label} \"{name}\": "
                "existence check failed"
            )

        if state is ExistenceState.PRESENT:
            output = await self.update(document, name)
            action = UpsertAction.UPDATED
        else:
            output = await self.create(document, name)
            action = UpsertAction.CREATED

        self._logger.info("%s %r %s", self.kind.label, name, action.value)
        return UpsertResult(name=name, kind=self.kind.name, action=action, output=output)


class ReplicationFlowEngine(ResourceEngine):
    """Replication flows: upsert target tables first, and start runs."""

    RUN_PATH = "/dwaas-core/replicationflow/space/{space}/flows/{name}/run"

    def __init__(
        self,
        session: SessionManager,
        *,
        space: str,
        kind: ResourceKind,
        dependency_engine: ResourceEngine,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(session, space=space, kind=kind, logger=logger)
        self._dependencies = dependency_engine

    async def upsert(
        self,
        document: Mapping[str, Any],
        name: str,
        *,
        unknown_as_absent: bool = False,
        run_after: bool = False,
    ) -> UpsertResult:
        extract_object(document, self.kind.schema_key, name)

        dependency_results: List[UpsertResult] = []
        for dependency in resolve_dependencies(document, name, self.kind):
            self._logger.debug(
                "Upserting dependency %s %r...", self._dependencies.kind.label, dependency
            )
            dependency_results.append(
                await self._dependencies.upsert(
                    document, dependency, unknown_as_absent=unknown_as_absent
                )
            )

        result = await super().upsert(document, name, unknown_as_absent=unknown_as_absent)
        result = result.model_copy(update={"dependencies": dependency_results})

        if run_after:
            result = result.model_copy(update={"run": await self.run(name)})
        return result

    async def run(self, name: str) -> RunResult:
        """Start a flow run; an already running flow is reported, not raised."""
        self._logger.debug("Running replication flow %r...", name)
        response = await self._session.request(
            "POST",
            self.RUN_PATH.format(space=self._space, name=name),
            headers=_JSON_HEADERS,
            json={"isDirect": True},
        )
        body = response.text
        self._logger.debug("Run response: %s %s", response.status_code, body)

        if response.is_success:
            try:
                payload = RunResponsePayload.model_validate_json(body)
            except ValidationError as exc:
                raise RunReplicationFlowError(
                    f'Run replication flow "{name}" returned an unexpected payload',
                    response.status_code,
                    body,
                ) from exc
            return RunResult(status_code=response.status_code, run_status=payload.runStatus)

        if response.status_code == httpx.codes.CONFLICT:
            self._logger.info("Replication flow %r is already running", name)
            return RunResult(status_code=response.status_code, already_running=True)

        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise SessionExpiredError(
                "Authentication failed (401) - OAuth session may need to be "
                "re-established via login"
            )

        raise RunReplicationFlowError(
            f'Run replication flow "{name}"', response.status_code, body
        )


__all__ = ["DELETE_FLAGS", "ReplicationFlowEngine", "ResourceEngine", "SAVE_FLAGS"]
