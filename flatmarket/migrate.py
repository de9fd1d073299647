"""
Database schema management.
Creates, checks and resets the schema and seeds the first admin account.

Usage:
    python -m flatmarket.migrate create
    python -m flatmarket.migrate seed-admin --email admin@example.com --password '...'
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from flatmarket.config import Settings, get_settings
from flatmarket.database import Base, build_engine, create_tables
from flatmarket.models.user import User, UserRole
from flatmarket.repositories.user import UserRepository
from flatmarket.utils.auth import PasswordHasher

logger = logging.getLogger(__name__)


class MigrationManager:
    """Manages the database schema for one configured database."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = build_engine(settings.database_url)
        self.session_factory = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    async def check_connection(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Database connection successful")
            return True
        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            return False

    async def create_schema(self) -> None:
        """Create any missing tables. Existing tables are left untouched."""
        await create_tables(self.engine)

    async def list_tables(self) -> List[str]:
        async with self.engine.connect() as conn:
            return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    async def reset_schema(self) -> None:
        """Drop and recreate all tables. Refused in production."""
        if self.settings.is_production:
            raise RuntimeError("Database reset is not allowed in production")

        logger.warning("Resetting database - all data will be lost!")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            logger.info("All tables dropped")
        await create_tables(self.engine)

    async def seed_admin(
        self,
        email: str,
        password: str,
        name: str = "Site Admin",
        phone: str = "0000000000",
        address: str = "-",
        postal_code: str = "-"
    ) -> User:
        """
        Create the admin account, or promote an existing account with this email.

        Registration always creates regular users, so this is the way the
        first admin (and the account behind the break-glass login) is created.
        """
        async with self.session_factory() as session:
            repo = UserRepository(session)
            existing = await repo.get_by_email(email)

            if existing:
                if existing.role == UserRole.ADMIN:
                    logger.info(f"Admin user already exists, skipping seed: {email}")
                    return existing
                promoted = await repo.update(existing.id, {"role": UserRole.ADMIN})
                logger.info(f"Promoted existing user to admin: {email}")
                return promoted

            hasher = PasswordHasher(self.settings.bcrypt_rounds)
            hashed_password = await asyncio.to_thread(hasher.hash, password)
            admin = await repo.create_user({
                "name": name,
                "email": email,
                "hashed_password": hashed_password,
                "phone": phone,
                "address": address,
                "postal_code": postal_code,
                "role": UserRole.ADMIN,
            })
            logger.info(f"Admin user created: {email}")
            return admin

    async def dispose(self) -> None:
        await self.engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Flat Market database management")
    parser.add_argument("--database-url", help="Override DATABASE_URL")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("check", help="Check database connectivity")
    subparsers.add_parser("create", help="Create missing tables")

    reset_parser = subparsers.add_parser("reset", help="Drop and recreate all tables (not in production)")
    reset_parser.add_argument("--confirm", action="store_true", help="Confirm database reset")

    seed_parser = subparsers.add_parser("seed-admin", help="Create or promote the admin account")
    seed_parser.add_argument("--email", help="Admin email (defaults to ADMIN_EMAIL)")
    seed_parser.add_argument("--password", help="Admin password (defaults to ADMIN_PASSWORD)")
    seed_parser.add_argument("--name", default="Site Admin", help="Admin display name")

    return parser


async def run_command(args: argparse.Namespace, settings: Settings) -> int:
    """Execute one parsed command and return the process exit code."""
    manager = MigrationManager(settings)
    try:
        if args.command == "check":
            return 0 if await manager.check_connection() else 1

        if args.command == "create":
            await manager.create_schema()
            logger.info(f"Tables: {', '.join(await manager.list_tables())}")
            return 0

        if args.command == "reset":
            if not args.confirm:
                logger.error("Database reset requires --confirm flag")
                return 2
            await manager.reset_schema()
            return 0

        if args.command == "seed-admin":
            email = args.email or settings.admin_email
            password = args.password or settings.admin_password
            if not email or not password:
                logger.error("seed-admin needs --email and --password (or ADMIN_EMAIL and ADMIN_PASSWORD)")
                return 2
            await manager.create_schema()
            await manager.seed_admin(email, password, name=args.name)
            return 0

        return 2
    finally:
        await manager.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for schema management."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    settings = get_settings()
    if args.database_url:
        settings = settings.model_copy(update={"database_url": args.database_url})

    try:
        return asyncio.run(run_command(args, settings))
    except Exception as e:
        logger.error(f"Command failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
