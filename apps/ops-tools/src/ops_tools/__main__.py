from __future__ import annotations

import argparse
import asyncio
import csv
import logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

import httpx
from devkit.observability import configure_logging, configure_otel
from pydantic import ValidationError

from ops_tools.admin_setup import ReconcileOutcome, reconcile_admin_account
from ops_tools.auth_admin_client import AuthAdminClient
from ops_tools.errors import OpsToolError
from ops_tools.materials import seed_raw_materials
from ops_tools.rest_client import RestTableClient
from ops_tools.settings import (
    SERVICE_NAME,
    OpsSettings,
    ServiceConfig,
    load_ops_settings,
    resolve_admin_credentials,
    resolve_service_config,
)

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], httpx.AsyncClient]

DEFAULT_MATERIALS_CSV = "backend/materials.csv"


def _load(env_file: str | Path | None) -> OpsSettings | None:
    try:
        settings = load_ops_settings(env_file)
    except ValidationError as exc:
        logger.error("invalid settings: %s", exc, extra={"component": "cli"})
        return None
    configure_logging(settings.OPS_LOG_LEVEL)
    return settings


def _build_clients(
    config: ServiceConfig,
    client_factory: ClientFactory | None,
) -> tuple[AuthAdminClient, RestTableClient]:
    auth_client = AuthAdminClient(
        base_url=config.base_url,
        service_key=config.service_key,
        timeout_seconds=config.timeout_seconds,
        client_factory=client_factory,
    )
    store = RestTableClient(
        base_url=config.base_url,
        service_key=config.service_key,
        timeout_seconds=config.timeout_seconds,
        client_factory=client_factory,
    )
    return auth_client, store


async def run_setup_admin(
    env_file: str | Path | None = ".env",
    *,
    client_factory: ClientFactory | None = None,
) -> int:
    settings = _load(env_file)
    if settings is None:
        return 1
    try:
        config = resolve_service_config(settings)
        credentials = resolve_admin_credentials(settings)
    except OpsToolError as exc:
        logger.error("configuration error: %s", exc, extra={"component": "cli"})
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    auth_client, store = _build_clients(config, client_factory)
    try:
        result = await reconcile_admin_account(
            credentials,
            auth_client=auth_client,
            user_table=store,
            users_table_name=config.users_table,
        )
    except OpsToolError as exc:
        logger.exception("admin setup failed: %s", exc, extra={"component": "cli"})
        print(f"Setup failed: {exc}", file=sys.stderr)
        return 1

    if result.outcome is ReconcileOutcome.SUCCESS_WITH_WARNING:
        print(f"Warning: {result.warning}", file=sys.stderr)
    if result.created:
        print(f"Auth user id: {result.auth_user_id}")
    print("")
    print("Admin user setup complete!")
    print("You can now login with:")
    print(f"  Email: {credentials.email}")
    print(f"  Password: {credentials.password}")
    return 0


async def run_seed_materials(
    env_file: str | Path | None = ".env",
    csv_path: str | Path = DEFAULT_MATERIALS_CSV,
    *,
    client_factory: ClientFactory | None = None,
) -> int:
    settings = _load(env_file)
    if settings is None:
        return 1
    try:
        config = resolve_service_config(settings)
    except OpsToolError as exc:
        logger.error("configuration error: %s", exc, extra={"component": "cli"})
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    _, store = _build_clients(config, client_factory)
    try:
        report = await seed_raw_materials(csv_path, store=store)
    except FileNotFoundError:
        logger.error("materials csv not found: %s", csv_path, extra={"component": "cli"})
        print(f"Fatal error: {csv_path} does not exist", file=sys.stderr)
        return 1
    except (UnicodeDecodeError, csv.Error) as exc:
        logger.error("materials csv unreadable: %s: %s", csv_path, exc, extra={"component": "cli"})
        print(f"Fatal error: {csv_path} is not a readable utf-8 csv: {exc}", file=sys.stderr)
        return 1
    except OpsToolError as exc:
        logger.exception("seeding failed: %s", exc, extra={"component": "cli"})
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1

    print("=" * 60)
    print("Seeding complete!")
    print(f"Success: {report.succeeded}")
    print(f"Failed: {report.failed}")
    print(f"Total: {report.total}")
    print("=" * 60)
    return 0


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ops-tools", description="Kitchen ops operator commands")
    subcommands = parser.add_subparsers(dest="command", required=True)

    setup_admin = subcommands.add_parser("setup-admin", help="create or repair the admin auth account")
    setup_admin.add_argument("--env-file", default=".env", help="settings file read before the environment")

    seed = subcommands.add_parser("seed-materials", help="insert raw materials from a csv file")
    seed.add_argument("--env-file", default=".env", help="settings file read before the environment")
    seed.add_argument("--csv", default=DEFAULT_MATERIALS_CSV, help="materials csv path")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    configure_otel(service_name=SERVICE_NAME)
    if args.command == "setup-admin":
        return asyncio.run(run_setup_admin(args.env_file))
    return asyncio.run(run_seed_materials(args.env_file, args.csv))


if __name__ == "__main__":
    raise SystemExit(main())
