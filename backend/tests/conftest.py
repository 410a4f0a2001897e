"""
Test Configuration — Fixtures for async DB, test client, fake optimizer and seed data.

Each test gets its own SQLite file under tmp_path, so tests never share rows
and concurrent sessions in one test see the same database.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from api.deps import get_db, get_optimizer_runner
from api.main import app
from db.session import Base
from optimization.runner import ProcessResult


class FakeOptimizerRunner:
    """Records every launch and answers with a canned ProcessResult."""

    def __init__(self, result: ProcessResult | None = None, error: Exception | None = None):
        self.result = result or ProcessResult(exit_code=0, stdout="PROCESSED_COUNT: 0\n", stderr="")
        self.error = error
        self.calls = []

    async def run(self, params):
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
async def test_engine(tmp_path):
    """Create a throwaway SQLite database with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'optiplan.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def runner_factory():
    """Build a FakeOptimizerRunner with a custom result or error."""
    return FakeOptimizerRunner


@pytest.fixture
def fake_runner():
    return FakeOptimizerRunner(
        ProcessResult(exit_code=0, stdout="loading orders\nPROCESSED_COUNT: 42\n", stderr="")
    )


@pytest.fixture
async def client(test_db, fake_runner):
    """Create an async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_optimizer_runner] = lambda: fake_runner

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def seeded_db(test_db):
    """Seed a changeover group, a parameterized color attribute and a free-text attribute."""
    from db.models import Attribute, AttributeParameter, ChangeoverGroup

    group = ChangeoverGroup(name="Extruders")
    color = Attribute(name="Color", is_param=True)
    note = Attribute(name="Operator Note", is_param=False)
    test_db.add_all([group, color, note])
    await test_db.flush()

    red = AttributeParameter(attribute_id=color.id, value="Red")
    blue = AttributeParameter(attribute_id=color.id, value="Blue")
    white = AttributeParameter(attribute_id=color.id, value="White")
    test_db.add_all([red, blue, white])
    await test_db.flush()

    material = Attribute(name="Material", is_param=True)
    test_db.add(material)
    await test_db.flush()
    steel = AttributeParameter(attribute_id=material.id, value="Steel")
    test_db.add(steel)
    await test_db.flush()

    await test_db.commit()

    return {
        "group": group,
        "color": color,
        "note": note,
        "material": material,
        "red": red,
        "blue": blue,
        "white": white,
        "steel": steel,
    }
