"""Pytest configuration and shared fixtures."""

import logging
from collections.abc import AsyncIterator

import pytest

from src.core import db_client


logger = logging.getLogger(__name__)


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch) -> AsyncIterator[str]:
    """Point the app at a fresh SQLite file with the schema applied.

    Yields the database path. The cached connection is closed on teardown.
    """
    db_path = str(tmp_path / "foodshare.db")
    monkeypatch.setattr("src.core.config.settings.sqlite_db_path", db_path)

    await db_client.init_db()
    logger.debug("Initialized test database at %s", db_path)

    yield db_path

    await db_client.close_connection()
