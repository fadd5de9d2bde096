#!/usr/bin/env python3
"""CLI for Stagehand API management tasks.

Usage:
    python -m cli <command>

Commands:
    migrate              Run database migrations (upgrade/downgrade/current)
    create-organization  Create an organization with its first admin
    dashboard            Print an organization's dashboard as JSON
"""

import argparse
import asyncio
import sys
from pathlib import Path

from alembic.config import Config

from core import DomainError, get_logger, tenant_context
from core.database import create_engine, create_session_maker, dispose_engine, session_scope
from core.logger import configure_logging

logger = get_logger(__name__)


def _get_alembic_config() -> Config:
    api_dir = Path(__file__).resolve().parent
    cfg = Config(str(api_dir / "alembic.ini"))
    # Make script_location absolute so it works from any working directory.
    cfg.set_main_option("script_location", str(api_dir / "alembic"))
    return cfg


def cmd_migrate(action: str, target: str | None) -> int:
    """Run database migrations."""
    from alembic import command

    cfg = _get_alembic_config()
    logger.info("migrations.started", action=action, target=target)
    match action:
        case "upgrade":
            command.upgrade(cfg, target or "head")
        case "downgrade":
            command.downgrade(cfg, target or "-1")
        case "current":
            command.current(cfg)
        case _:
            raise ValueError(f"Unknown migrate action: {action}")
    logger.info("migrations.completed", action=action)
    return 0


async def _create_organization(name: str, slug: str, creator: str) -> str:
    from schemas import OrganizationCreate
    from services.organization_service import create_organization

    engine = create_engine()
    try:
        async with session_scope(create_session_maker(engine)) as db:
            organization = await create_organization(
                db, OrganizationCreate(name=name, slug=slug), creator_user_id=creator
            )
            return organization.id
    finally:
        await dispose_engine(engine)


def cmd_create_organization(name: str, slug: str, creator: str) -> int:
    try:
        organization_id = asyncio.run(_create_organization(name, slug, creator))
    except DomainError as e:
        logger.error("organization.create_failed", error_kind=e.kind.value, error=e.message)
        return 1
    print(organization_id)
    return 0


async def _dashboard(organization_id: str) -> str:
    from services.dashboard_service import get_dashboard_data

    engine = create_engine()
    try:
        with tenant_context(organization_id, command="dashboard"):
            async with session_scope(create_session_maker(engine)) as db:
                data = await get_dashboard_data(db, organization_id)
                return data.model_dump_json(indent=2)
    finally:
        await dispose_engine(engine)


def cmd_dashboard(organization_id: str) -> int:
    print(asyncio.run(_dashboard(organization_id)))
    return 0


def main() -> int:
    configure_logging()

    parser = argparse.ArgumentParser(
        description="Stagehand API CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    migrate = subparsers.add_parser("migrate", help="Run database migrations")
    migrate.add_argument(
        "action",
        nargs="?",
        default="upgrade",
        choices=["upgrade", "downgrade", "current"],
    )
    migrate.add_argument("target", nargs="?", default=None, help="Target revision")

    create_org = subparsers.add_parser(
        "create-organization",
        help="Create an organization with its first admin",
    )
    create_org.add_argument("--name", required=True)
    create_org.add_argument("--slug", required=True)
    create_org.add_argument("--creator", required=True, help="User id of the first admin")

    dashboard = subparsers.add_parser("dashboard", help="Print dashboard JSON")
    dashboard.add_argument("organization_id")

    args = parser.parse_args()

    if args.command == "migrate":
        return cmd_migrate(args.action, args.target)
    elif args.command == "create-organization":
        return cmd_create_organization(args.name, args.slug, args.creator)
    elif args.command == "dashboard":
        return cmd_dashboard(args.organization_id)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
