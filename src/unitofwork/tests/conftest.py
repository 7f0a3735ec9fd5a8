"""
Core pytest configuration for the entire test suite.

Shared fixtures live in tests/test_fixtures/ and are imported at the bottom of this
module so every test file can use them without importing:
- tests/test_fixtures/database_fixtures.py  (settings, seeded bundles, fake session makers)
- tests/test_fixtures/app_fixtures.py       (dog application + httpx client)
"""

from __future__ import annotations

import logging

# -------------------------------
# Early logging tuning (IMPORTANT)
# -------------------------------
# Silence noisy third-party loggers before anything imports them.
NOISY_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.engine.Engine",
    "aiosqlite",
    "asyncio",
    "httpx",
)
for _name in NOISY_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)

import pytest
from pytest import FixtureRequest

from unitofwork.config.settings import Settings
from unitofwork.core.logging.builder import setup_logging


@pytest.fixture(scope="session", autouse=True)
def configure_logging(request: FixtureRequest):
    """
    Install the application's logging configuration once for the whole session.

    dictConfig replaces the root handlers, which drops pytest's capture handler, so it
    is re-attached afterwards for tests that assert on `caplog.records`.
    """
    setup_logging(Settings(_env_file=None, ENV="testing", LOG_LEVEL="DEBUG", LOG_FORMAT="text"))

    caplog_plugin = request.config.pluginmanager.getplugin("logging-plugin")
    handler = getattr(caplog_plugin, "caplog_handler", None)
    if handler is not None:
        logging.getLogger().addHandler(handler)

    yield


# Shared fixtures
from .test_fixtures.database_fixtures import (  # noqa: E402
    test_settings,
    make_bundle,
    bundle,
    fake_maker,
)
from .test_fixtures.app_fixtures import make_client  # noqa: E402
