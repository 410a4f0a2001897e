"""
Migration tests — the alembic chain builds the same schema as the models.
"""

import asyncio
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from changeover import attributes
from core import config as config_module
from db.session import Base
from optimization import scenarios
from optimization.settings import get_settings_or_default, update_optimizer_settings

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "db" / "migrations"


@pytest.fixture
def migrated_db(tmp_path, monkeypatch):
    """Run ``alembic upgrade head`` against a fresh SQLite file; yields its path."""
    db_path = tmp_path / "migrated.db"
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    config_module.get_settings.cache_clear()

    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    command.upgrade(alembic_cfg, "head")
    yield db_path, alembic_cfg

    config_module.get_settings.cache_clear()


def _table_columns(db_path) -> dict[str, set[str]]:
    engine = create_engine(f"sqlite:///{db_path}")
    try:
        inspector = inspect(engine)
        return {
            table: {column["name"] for column in inspector.get_columns(table)}
            for table in inspector.get_table_names()
            if table != "alembic_version"
        }
    finally:
        engine.dispose()


def test_upgrade_creates_every_model_table(migrated_db):
    db_path, _ = migrated_db

    migrated = _table_columns(db_path)

    assert set(migrated) == set(Base.metadata.tables)
    for name, table in Base.metadata.tables.items():
        assert migrated[name] == {column.name for column in table.columns}, name


def test_downgrade_removes_every_table(migrated_db):
    db_path, alembic_cfg = migrated_db

    command.downgrade(alembic_cfg, "base")

    assert _table_columns(db_path) == {}


async def _exercise_services(db_path) -> None:
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_factory() as db:
            assert (await get_settings_or_default(db)).persisted is False
            saved = await update_optimizer_settings(db, {"gravity": False})
            assert saved.persisted is True

            await scenarios.create_scenario(db, {"name": "Night"}, is_default=True)
            await scenarios.create_scenario(db, {"name": "Day"}, is_default=True)
            assert [s.name for s in await scenarios.list_scenarios(db) if s.is_default] == ["Day"]

            color = await attributes.create_attribute(db, "Color")
            await attributes.create_parameter(db, color.id, "Red")
    finally:
        await engine.dispose()


def test_services_work_on_migrated_schema(migrated_db):
    db_path, _ = migrated_db
    asyncio.run(_exercise_services(db_path))
