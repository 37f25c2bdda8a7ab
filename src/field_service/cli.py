#!/usr/bin/env python3
"""Maintenance CLI for the lifecycle database.

Usage:
    python -m field_service.cli init-db                  # Create tables
    python -m field_service.cli purge-stale-photos       # Drop stale pending uploads
    python -m field_service.cli purge-stale-photos --older-than-minutes 60
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from field_service.config import get_settings
from field_service.core.logging import correlation_context, get_logger, setup_logging

log = get_logger(__name__)


async def _init_db() -> None:
    from field_service.db.session import close_db, init_db

    try:
        await init_db()
    finally:
        await close_db()


def init_database(args: argparse.Namespace) -> int:
    """Create all tables."""
    settings = get_settings()
    print(f"Initializing database: {settings.database.url}")

    asyncio.run(_init_db())

    print("[OK] Tables created")
    return 0


async def _purge_stale_photos(older_than_minutes: int | None) -> int:
    from field_service.db.repositories import AuditEventRepository, VisitPhotoRepository, VisitRepository
    from field_service.db.session import close_db, get_db_context
    from field_service.integrations.storage.factory import get_file_storage
    from field_service.services.audit_trail import AuditTrail
    from field_service.services.visit_photos import VisitPhotoService

    try:
        with correlation_context():
            async with get_db_context() as db:
                service = VisitPhotoService(
                    VisitRepository(db),
                    VisitPhotoRepository(db),
                    get_file_storage(),
                    AuditTrail(AuditEventRepository(db)),
                    get_settings().photos,
                )
                return await service.purge_stale_uploads(older_than_minutes)
    finally:
        await close_db()


def purge_stale_photos(args: argparse.Namespace) -> int:
    """Remove pending photo uploads that were never confirmed."""
    removed = asyncio.run(_purge_stale_photos(args.older_than_minutes))
    print(f"[OK] Removed {removed} stale pending photo(s)")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Field Service maintenance tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # init-db
    subparsers.add_parser("init-db", help="Create database tables")

    # purge-stale-photos
    purge_parser = subparsers.add_parser(
        "purge-stale-photos", help="Delete stale pending photo uploads"
    )
    purge_parser.add_argument(
        "--older-than-minutes",
        type=int,
        default=None,
        help="Staleness window (default: photos.stale_pending_minutes)",
    )

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    settings = get_settings()
    setup_logging(level=settings.log_level, json_output=settings.log_json, service_name="field-service")

    commands = {
        "init-db": init_database,
        "purge-stale-photos": purge_stale_photos,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
