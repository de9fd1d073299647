"""
Tests for the schema management commands.
"""

import pytest

from flatmarket.config import Settings
from flatmarket.migrate import MigrationManager, build_parser, run_command
from flatmarket.models.user import UserRole
from flatmarket.repositories.user import UserRepository
from flatmarket.utils.auth import PasswordHasher


@pytest.fixture
def migrate_settings(test_settings: Settings, tmp_path) -> Settings:
    """Settings pointing at an empty database file."""
    return test_settings.model_copy(update={"database_url": f"sqlite+aiosqlite:///{tmp_path / 'migrate.db'}"})


@pytest.fixture
async def manager(migrate_settings: Settings):
    manager = MigrationManager(migrate_settings)
    yield manager
    await manager.dispose()


class TestMigrationManager:
    """Test schema creation and admin seeding."""

    @pytest.mark.asyncio
    async def test_create_schema(self, manager: MigrationManager):
        assert await manager.list_tables() == []

        await manager.create_schema()

        assert {"users", "flats"} <= set(await manager.list_tables())

    @pytest.mark.asyncio
    async def test_create_schema_is_idempotent(self, manager: MigrationManager):
        await manager.create_schema()
        await manager.create_schema()

        assert {"users", "flats"} <= set(await manager.list_tables())

    @pytest.mark.asyncio
    async def test_check_connection(self, manager: MigrationManager):
        assert await manager.check_connection() is True

    @pytest.mark.asyncio
    async def test_seed_admin(self, manager: MigrationManager, hasher: PasswordHasher):
        await manager.create_schema()

        admin = await manager.seed_admin("root@example.com", "s3cret")

        assert admin.role == UserRole.ADMIN
        assert hasher.verify("s3cret", admin.hashed_password)

    @pytest.mark.asyncio
    async def test_seed_admin_twice_keeps_one_account(self, manager: MigrationManager):
        await manager.create_schema()

        first = await manager.seed_admin("root@example.com", "s3cret")
        second = await manager.seed_admin("root@example.com", "other")

        assert second.id == first.id

    @pytest.mark.asyncio
    async def test_seed_admin_promotes_existing_user(self, manager: MigrationManager, hasher: PasswordHasher):
        await manager.create_schema()
        async with manager.session_factory() as session:
            user = await UserRepository(session).create_user({
                "name": "Regular",
                "email": "promote@example.com",
                "hashed_password": hasher.hash("p1"),
                "phone": "9876543210",
                "address": "1 Road",
                "postal_code": "400001",
                "role": UserRole.USER,
            })

        promoted = await manager.seed_admin("promote@example.com", "ignored")

        assert promoted.id == user.id
        assert promoted.role == UserRole.ADMIN
        assert hasher.verify("p1", promoted.hashed_password)

    @pytest.mark.asyncio
    async def test_reset_refused_in_production(self, migrate_settings: Settings):
        manager = MigrationManager(migrate_settings.model_copy(update={"environment": "production"}))
        try:
            with pytest.raises(RuntimeError):
                await manager.reset_schema()
        finally:
            await manager.dispose()


class TestMigrateCommands:
    """Test the command-line entry points."""

    @pytest.mark.asyncio
    async def test_create_command(self, migrate_settings: Settings, manager: MigrationManager):
        args = build_parser().parse_args(["create"])

        assert await run_command(args, migrate_settings) == 0
        assert "users" in await manager.list_tables()

    @pytest.mark.asyncio
    async def test_seed_admin_command_uses_configured_pair(self, migrate_settings: Settings, manager: MigrationManager):
        """Without flags the break-glass pair from settings is seeded."""
        args = build_parser().parse_args(["seed-admin"])

        assert await run_command(args, migrate_settings) == 0

        async with manager.session_factory() as session:
            admin = await UserRepository(session).get_by_email(migrate_settings.admin_email)
        assert admin.role == UserRole.ADMIN

    @pytest.mark.asyncio
    async def test_reset_requires_confirm(self, migrate_settings: Settings):
        args = build_parser().parse_args(["reset"])

        assert await run_command(args, migrate_settings) == 2
