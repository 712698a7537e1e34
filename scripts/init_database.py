#!/usr/bin/env python3
"""
Database Initialization Script

Creates the partner program schema (admins, partners, pre_registrations,
operations) on the database configured through DB_* environment variables,
and optionally registers the first administrator.

Usage:
    python scripts/init_database.py
    python scripts/init_database.py --admin-email ana@parceiros.com.br --admin-name "Ana"
    python scripts/init_database.py --check  # Only test connectivity
"""

import argparse
import asyncio
import getpass
import os
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config.settings import get_settings
from database.async_engine import (
    check_database_connection,
    close_database,
    get_async_engine,
    init_database,
)
from domain.errors import ConflictError, PartnerProgramError
from services import AdminService, ServiceContext, configure_logging


async def bootstrap_admin(name: str, email: str, password: str) -> None:
    """Register the first administrator, skipping an existing email."""
    admins = AdminService(ServiceContext.from_settings())
    try:
        admin = await admins.register({"nome": name, "email": email, "senha": password})
    except ConflictError:
        print(f"⚠️  Administrator '{email}' already exists")
        return
    print(f"✓ Created administrator: {admin.email} (id {admin.id})")


async def main(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = get_async_engine(settings.database)

    try:
        if not await check_database_connection(engine):
            print("✗ Database is not reachable")
            return 1
        print("✓ Database connection OK")

        if args.check:
            return 0

        await init_database(engine)
        print("✓ Schema created/verified")

        if args.admin_email:
            password = os.environ.get("ADMIN_PASSWORD") or getpass.getpass("Administrator password: ")
            await bootstrap_admin(args.admin_name, args.admin_email, password)
    except PartnerProgramError as e:
        print(f"✗ {e.message}")
        return 1
    finally:
        await close_database()

    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Initialize the partner program database")
    parser.add_argument("--check", action="store_true", help="Only test connectivity")
    parser.add_argument("--admin-email", help="Register an administrator with this email")
    parser.add_argument("--admin-name", default="Administrador", help="Administrator display name")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args()

    log_settings = get_settings().logging
    configure_logging(level=(args.log_level or log_settings.level).upper(), json_output=log_settings.json_output)

    sys.exit(asyncio.run(main(args)))
