"""Tests for the Database lifecycle handle."""

import pytest

from devcore.db.session import Database


@pytest.mark.asyncio
async def test_schema_calls_require_connect():
    database = Database("sqlite+aiosqlite:///:memory:")
    with pytest.raises(RuntimeError, match="not connected"):
        await database.create_all()
    with pytest.raises(RuntimeError, match="not connected"):
        await database.drop_all()
    with pytest.raises(RuntimeError, match="not connected"):
        database.session()
    assert await database.ping() is False


@pytest.mark.asyncio
async def test_connect_is_idempotent_and_disconnect_resets():
    database = Database("sqlite+aiosqlite:///:memory:")
    database.connect()
    engine = database.engine
    database.connect()
    assert database.engine is engine
    assert await database.ping() is True

    await database.disconnect()
    assert database.engine is None
    assert database.session_factory is None
