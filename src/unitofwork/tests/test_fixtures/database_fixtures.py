"""Fixtures for tests that need a real database (aiosqlite file under tmp_path)."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import insert

from unitofwork.bundle import SessionBundle
from unitofwork.config.settings import Settings
from unitofwork.database.base import Base
from unitofwork.database.session import SessionFactoryRegistry
from .fakes import FakeSessionMaker
from .models import Dog, Person

# NOTE: every bundle gets its own database file, so tests never share rows.


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """
    Settings pointing at a fresh SQLite database; `.env` files are ignored so the
    developer's environment cannot leak into the tests.
    """
    return Settings(
        _env_file=None,
        ENV="testing",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test_database.db'}",
        SQLALCHEMY_ECHO=False,
    )


async def seed(bundle: SessionBundle) -> None:
    """
    Create the schema and insert Coda (a person) and Raf (Coda's dog).
    """
    engine = bundle.session_factory.engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(
            insert(Person.__table__).values(
                name="Coda",
                email="coda@example.com",
                birthday=datetime(1979, 1, 2, 0, 22, tzinfo=timezone.utc),
            )
        )
        # table-level insert: the column is "owner", the mapped attribute "owner_name"
        await conn.execute(insert(Dog.__table__).values(name="Raf", owner="Coda"))


@pytest.fixture
async def make_bundle(test_settings, tmp_path):
    """
    Factory building seeded bundles; each one is disposed after the test.

    Usage:
        bundle = await make_bundle(lazy_loading_enabled=False)
    """
    built: list[SessionBundle] = []

    async def _make(*, lazy_loading_enabled: bool = True, name: str = "default") -> SessionBundle:
        database = tmp_path / f"{name}_{len(built)}.db"
        settings = test_settings.model_copy(update={"DATABASE_URL": f"sqlite+aiosqlite:///{database}"})
        bundle = SessionBundle(
            settings,
            name=name,
            lazy_loading_enabled=lazy_loading_enabled,
            registry=SessionFactoryRegistry(),
        )
        bundle.build()
        await seed(bundle)
        built.append(bundle)
        return bundle

    yield _make

    for bundle in built:
        await bundle.dispose()


@pytest.fixture
async def bundle(make_bundle) -> SessionBundle:
    """A seeded bundle with lazy loading enabled (the default)."""
    return await make_bundle()


@pytest.fixture
def fake_maker() -> FakeSessionMaker:
    return FakeSessionMaker()
