"""
Tests for syncforge.database.connection module.

SQLite runs against real temporary files; the server drivers are mocked.
"""

import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from syncforge.config import ConnectionTarget
from syncforge.database.connection import (
    MySQLConnection,
    PostgreSQLConnection,
    SQLiteConnection,
    SQLServerConnection,
    create_connection,
    open_connection,
)
from syncforge.exceptions import DatabaseConnectionError
from syncforge.statements import Dialect


@pytest.fixture
def pg_target():
    return ConnectionTarget(
        dialect="postgresql", host="db", user="app", password="pw", database="app"
    )


def make_cursor(description, rows):
    cursor = MagicMock()
    cursor.description = description
    cursor.fetchall.return_value = rows
    return cursor


class TestCreateConnection:
    """Test connection class selection."""

    @pytest.mark.parametrize(
        "target,expected",
        [
            (ConnectionTarget(dialect="mysql"), MySQLConnection),
            (ConnectionTarget(dialect="postgresql"), PostgreSQLConnection),
            (ConnectionTarget(dialect="sqlite", file_path="x.db"), SQLiteConnection),
            (ConnectionTarget(dialect="sqlserver"), SQLServerConnection),
        ],
    )
    def test_class_per_dialect(self, target, expected):
        connection = create_connection(target)
        assert isinstance(connection, expected)
        assert connection.dialect == target.dialect
        assert not connection.is_connected


class TestSQLiteConnection:
    """Test the SQLite connection against a real file."""

    @pytest.mark.asyncio
    async def test_fetch(self, source_target):
        connection = await open_connection(source_target)
        try:
            rows = await connection.fetch("SELECT id, name FROM users ORDER BY id")
            assert rows[0] == {"id": 1, "name": "Alice"}
            assert len(rows) == 3
        finally:
            await connection.close()
        assert not connection.is_connected

    @pytest.mark.asyncio
    async def test_parameters(self, source_target):
        async with create_connection(source_target) as connection:
            row = await connection.fetchrow("SELECT name FROM users WHERE id = ?", 3)
            assert row == {"name": "O'Brien"}

    @pytest.mark.asyncio
    async def test_fetchval_and_version(self, source_target):
        async with create_connection(source_target) as connection:
            assert await connection.fetchval("SELECT COUNT(*) FROM users") == 3
            assert await connection.fetchval("SELECT 1 WHERE 0") is None
            assert (await connection.server_version()).startswith("3.")

    @pytest.mark.asyncio
    async def test_fetch_requires_open_connection(self, source_target):
        connection = create_connection(source_target)
        with pytest.raises(DatabaseConnectionError) as exc_info:
            await connection.fetch("SELECT 1")
        assert "Connection is not open" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, source_target):
        connection = create_connection(source_target)
        await connection.connect()
        first = connection._conn
        await connection.connect()
        assert connection._conn is first
        await connection.close()
        await connection.close()

    @pytest.mark.asyncio
    async def test_connect_failure_wrapped(self, tmp_path):
        target = ConnectionTarget(
            dialect="sqlite", file_path=str(tmp_path / "missing" / "dir" / "x.db")
        )
        with pytest.raises(DatabaseConnectionError) as exc_info:
            await open_connection(target)
        assert exc_info.value.cause is not None


class TestPostgreSQLConnection:
    """Test the asyncpg-backed connection."""

    @pytest.mark.asyncio
    async def test_connect_and_fetch(self, pg_target):
        mock_conn = MagicMock()
        mock_conn.fetch = AsyncMock(return_value=[{"tablename": "users"}])
        mock_conn.close = AsyncMock()

        with patch(
            "syncforge.database.connection.asyncpg.connect",
            new=AsyncMock(return_value=mock_conn),
        ) as mock_connect:
            connection = await open_connection(pg_target)
            rows = await connection.fetch("SELECT tablename FROM pg_tables WHERE schemaname = $1", "public")
            await connection.close()

        mock_connect.assert_awaited_once()
        kwargs = mock_connect.call_args.kwargs
        assert kwargs["host"] == "db"
        assert kwargs["port"] == 5432
        assert kwargs["database"] == "app"
        assert kwargs["timeout"] == 10.0
        mock_conn.fetch.assert_awaited_once_with(
            "SELECT tablename FROM pg_tables WHERE schemaname = $1", "public"
        )
        assert rows == [{"tablename": "users"}]
        mock_conn.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connect_failure_wrapped(self, pg_target):
        with patch(
            "syncforge.database.connection.asyncpg.connect",
            new=AsyncMock(side_effect=OSError("refused")),
        ):
            with pytest.raises(DatabaseConnectionError) as exc_info:
                await open_connection(pg_target)

        assert "postgresql://db:5432/app" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, OSError)

    @pytest.mark.asyncio
    async def test_server_version(self, pg_target):
        mock_conn = MagicMock()
        mock_conn.fetch = AsyncMock(return_value=[{"version": "PostgreSQL 16.2"}])
        mock_conn.close = AsyncMock()

        with patch(
            "syncforge.database.connection.asyncpg.connect",
            new=AsyncMock(return_value=mock_conn),
        ):
            async with PostgreSQLConnection(pg_target) as connection:
                assert await connection.server_version() == "PostgreSQL 16.2"


class TestThreadedDrivers:
    """Test the DB-API drivers run through worker threads."""

    @pytest.mark.asyncio
    async def test_mysql(self):
        cursor = make_cursor((("id",), ("name",)), [(1, "Alice")])
        mock_conn = MagicMock()
        mock_conn.cursor.return_value = cursor
        target = ConnectionTarget(dialect="mysql", host="db", user="app", database="shop")

        with patch("pymysql.connect", return_value=mock_conn) as mock_connect:
            async with create_connection(target) as connection:
                rows = await connection.fetch("SELECT id, name FROM users WHERE id = %s", 1)

        assert mock_connect.call_args.kwargs["port"] == 3306
        assert mock_connect.call_args.kwargs["database"] == "shop"
        assert mock_connect.call_args.kwargs["charset"] == "utf8mb4"
        cursor.execute.assert_called_once_with("SELECT id, name FROM users WHERE id = %s", (1,))
        assert rows == [{"id": 1, "name": "Alice"}]
        mock_conn.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_statement_without_result_set(self):
        cursor = make_cursor(None, [])
        mock_conn = MagicMock()
        mock_conn.cursor.return_value = cursor

        with patch("pymysql.connect", return_value=mock_conn):
            async with create_connection(ConnectionTarget(dialect="mysql")) as connection:
                assert await connection.fetch("SET NAMES utf8mb4") == []
        cursor.execute.assert_called_once_with("SET NAMES utf8mb4")

    @pytest.mark.asyncio
    async def test_sqlserver_connection_string(self):
        mock_pyodbc = MagicMock()
        mock_pyodbc.connect.return_value = MagicMock()
        target = ConnectionTarget(
            dialect=Dialect.SQLSERVER, host="sql.internal", user="sa", password="pw",
            database="app",
        )

        with patch.dict(sys.modules, {"pyodbc": mock_pyodbc}):
            connection = await open_connection(target)
            await connection.close()

        connection_string = mock_pyodbc.connect.call_args.args[0]
        assert "DRIVER={ODBC Driver 18 for SQL Server}" in connection_string
        assert "SERVER=sql.internal,1433" in connection_string
        assert "DATABASE=app" in connection_string
        assert "UID=sa" in connection_string
