"""Command-line front end for the Datasphere client.

Settings come from the environment (``DATASPHERE_HOST``, ``DATASPHERE_SPACE``,
``DATASPHERE_OAUTH_OPTIONS_FILE`` ...) or a ``.env`` file in the working
directory.

Example usages::

    # Log in once; tokens are cached per host for later runs.
    python -m scripts.datasphere_cli login

    # Create or update a replication flow and its target tables, then run it.
    python -m scripts.datasphere_cli upsert --kind replication-flow \
        --file flows.json --name RF_SALES --run

    python -m scripts.datasphere_cli delete --kind local-table --name ZTEST_001
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional

from datasphere_client import (
    DatasphereClient,
    DatasphereError,
    ExistenceState,
    create_client,
)
from datasphere_client.core.config import get_settings
from datasphere_client.core.errors import ConfigurationError
from datasphere_client.core.logging import configure_logging
from datasphere_client.models.resource_kinds import RESOURCE_KINDS
from datasphere_client.services.documents import load_document

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_CONFIG_ERROR = 2
EXIT_OPERATION_ERROR = 3


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Manage Datasphere views, local tables and replication flows."
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("login", help="Authenticate and cache tokens for the host.")
    subparsers.add_parser("logout", help="Remove cached tokens for the host.")

    def add_kind_and_name(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--kind",
            required=True,
            choices=sorted(RESOURCE_KINDS),
            help="Resource kind to operate on.",
        )
        subparser.add_argument("--name", required=True, help="Technical name of the object.")

    upsert_parser = subparsers.add_parser(
        "upsert", help="Create the object if absent, otherwise update it."
    )
    add_kind_and_name(upsert_parser)
    upsert_parser.add_argument(
        "--file", required=True, type=Path, help="CSN document containing the object."
    )
    upsert_parser.add_argument(
        "--run",
        action="store_true",
        help="Start the replication flow after a successful upsert.",
    )
    upsert_parser.add_argument(
        "--unknown-as-absent",
        action="store_true",
        help="Create the object when its existence cannot be confirmed.",
    )

    delete_parser = subparsers.add_parser("delete", help="Delete an object.")
    add_kind_and_name(delete_parser)

    exists_parser = subparsers.add_parser(
        "exists", help="Exit 0 when the object exists, 1 otherwise."
    )
    add_kind_and_name(exists_parser)

    run_parser = subparsers.add_parser("run", help="Start a replication flow run.")
    run_parser.add_argument("--name", required=True, help="Replication flow name.")

    return parser


async def _login(client: DatasphereClient, args: argparse.Namespace) -> int:
    await client.login()
    print(f"Logged in to {client.settings.base_url}")
    return EXIT_OK


async def _logout(client: DatasphereClient, args: argparse.Namespace) -> int:
    removed = client.logout()
    print("Cached tokens removed." if removed else "No cached tokens for this host.")
    return EXIT_OK


async def _upsert(client: DatasphereClient, args: argparse.Namespace) -> int:
    document = load_document(args.file)
    if client.session.tokens is None:
        await client.login()

    if args.kind == "replication-flow":
        result = await client.replication_flows.upsert(
            document,
            args.name,
            unknown_as_absent=args.unknown_as_absent,
            run_after=args.run,
        )
    else:
        result = await client.engine(args.kind).upsert(
            document, args.name, unknown_as_absent=args.unknown_as_absent
        )

    for dependency in result.dependencies:
        print(f"{dependency.kind} {dependency.name}: {dependency.action.value}")
    print(f"{result.kind} {result.name}: {result.action.value}")
    if result.run is not None:
        if result.run.already_running:
            print("Replication flow is already running.")
        else:
            print(f"Run status: {result.run.run_status}")
    return EXIT_OK


async def _delete(client: DatasphereClient, args: argparse.Namespace) -> int:
    if client.session.tokens is None:
        await client.login()
    await client.engine(args.kind).delete(args.name)
    print(f"Deleted {args.kind} {args.name}")
    return EXIT_OK


async def _exists(client: DatasphereClient, args: argparse.Namespace) -> int:
    if client.session.tokens is None:
        await client.login()
    state = await client.engine(args.kind).probe(args.name)
    print(state.value)
    return EXIT_OK if state is ExistenceState.PRESENT else EXIT_NOT_FOUND


async def _run(client: DatasphereClient, args: argparse.Namespace) -> int:
    if client.session.tokens is None:
        await client.login()
    result = await client.replication_flows.run(args.name)
    if result.already_running:
        print(f"Replication flow {args.name} is already running.")
    else:
        print(f"Run status: {result.run_status}")
    return EXIT_OK


_HANDLERS: dict[str, Callable[[DatasphereClient, argparse.Namespace], Awaitable[int]]] = {
    "login": _login,
    "logout": _logout,
    "upsert": _upsert,
    "delete": _delete,
    "exists": _exists,
    "run": _run,
}


async def _dispatch(args: argparse.Namespace, client: DatasphereClient) -> int:
    async with client:
        return await _HANDLERS[args.command](client, args)


def main(argv: list[str] | None = None, client: Optional[DatasphereClient] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        if client is None:
            settings = get_settings()
            configure_logging("DEBUG" if args.verbose or settings.verbose else settings.log_level)
            client = create_client(settings)
        return asyncio.run(_dispatch(args, client))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except DatasphereError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_OPERATION_ERROR


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
