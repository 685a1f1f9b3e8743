"""
Visitas API: Connection Holder and Startup Tests
================================================

What:  Tests for ConnectionHolder, connect_database and the lifespan handshake.
How:   build_engine is patched to return a mock engine; no MySQL needed.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from visitas_api.config import Settings
from visitas_api.database import ConnectionHolder, connect_database, dispose_holder
from visitas_api.exceptions import DatabaseUnavailableError
from visitas_api.main import lifespan


def make_engine(probe_error=None):
    conn = MagicMock()
    conn.execute = AsyncMock(side_effect=probe_error)
    engine = MagicMock()
    engine.connect.return_value.__aenter__.return_value = conn
    engine.connect.return_value.__aexit__.return_value = False
    engine.dispose = AsyncMock()
    return engine


class TestConnectionHolder:

    def test_starts_empty(self):
        holder = ConnectionHolder()

        assert holder.is_ready is False
        with pytest.raises(DatabaseUnavailableError, match="no establecida"):
            holder.engine

    def test_set_publishes_engine(self):
        holder = ConnectionHolder()
        engine = MagicMock()

        holder.set(engine)

        assert holder.is_ready is True
        assert holder.engine is engine

    @pytest.mark.asyncio
    async def test_dispose_clears_holder(self):
        holder = ConnectionHolder()
        engine = make_engine()
        holder.set(engine)

        await dispose_holder(holder)

        engine.dispose.assert_awaited_once()
        assert holder.is_ready is False

    @pytest.mark.asyncio
    async def test_dispose_empty_holder_is_noop(self):
        await dispose_holder(ConnectionHolder())


class TestConnectDatabase:

    @pytest.mark.asyncio
    async def test_successful_probe_sets_holder(self):
        holder = ConnectionHolder()
        engine = make_engine()

        with patch("visitas_api.database.build_engine", return_value=engine):
            connected = await connect_database(holder, Settings(db_connect_attempts=1))

        assert connected is True
        assert holder.engine is engine

    @pytest.mark.asyncio
    async def test_failed_probe_leaves_holder_empty(self):
        holder = ConnectionHolder()
        engine = make_engine(
            probe_error=OperationalError("SELECT 1", {}, Exception("connection refused"))
        )

        with patch("visitas_api.database.build_engine", return_value=engine):
            connected = await connect_database(holder, Settings(db_connect_attempts=1))

        assert connected is False
        assert holder.is_ready is False
        engine.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unloadable_dialect_is_logged_not_raised(self, caplog):
        holder = ConnectionHolder()
        settings = Settings(
            database_url="mysql+nosuchdriver://u:p@h/db",
            db_connect_attempts=1,
        )

        connected = await connect_database(holder, settings)

        assert connected is False
        assert holder.is_ready is False
        assert "Could not connect to the database" in caplog.text

    @pytest.mark.asyncio
    async def test_missing_driver_is_logged_not_raised(self, caplog):
        holder = ConnectionHolder()

        with patch(
            "visitas_api.database.build_engine",
            side_effect=ModuleNotFoundError("No module named 'aiomysql'"),
        ):
            connected = await connect_database(holder, Settings(db_connect_attempts=1))

        assert connected is False
        assert holder.is_ready is False
        assert "Database handshake failed" in caplog.text
        assert "aiomysql" in caplog.text


class TestLifespan:

    @pytest.mark.asyncio
    async def test_handshake_runs_in_background(self, app):
        engine = make_engine()

        async def fake_connect(holder, settings):
            holder.set(engine)
            return True

        with patch("visitas_api.main.connect_database", side_effect=fake_connect):
            async with lifespan(app):
                await app.state.db_connect_task
                assert app.state.db.is_ready

        engine.dispose.assert_awaited_once()
        assert app.state.db.is_ready is False

    @pytest.mark.asyncio
    async def test_pending_handshake_cancelled_on_shutdown(self, app):
        never = asyncio.Event()

        async def slow_connect(holder, settings):
            await never.wait()

        with patch("visitas_api.main.connect_database", side_effect=slow_connect):
            async with lifespan(app):
                assert app.state.db.is_ready is False

        assert app.state.db_connect_task.cancelled()

    @pytest.mark.asyncio
    async def test_lifespan_logs_crashed_handshake(self, app, caplog):
        async def crashing_connect(holder, settings):
            raise RuntimeError("driver exploded")

        with patch("visitas_api.main.connect_database", side_effect=crashing_connect), \
                patch("visitas_api.main.setup_logging"):
            async with lifespan(app):
                with pytest.raises(RuntimeError):
                    await app.state.db_connect_task
                await asyncio.sleep(0)

        assert "Database handshake task crashed" in caplog.text
        assert "driver exploded" in caplog.text
