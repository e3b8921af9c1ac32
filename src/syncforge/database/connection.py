"""
Database connection management for syncforge.

Provides one async connection wrapper per supported dialect. PostgreSQL
uses asyncpg directly; MySQL, SQLite and SQL Server use their DB-API
drivers with blocking calls moved to a worker thread.
"""

import asyncio
import logging
import sqlite3
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Type

import asyncpg

from ..config import ConnectionTarget
from ..exceptions import DatabaseConnectionError, UnsupportedDialectError
from ..statements import Dialect, resolve_dialect


logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class DialectConnection(ABC):
    """Async connection to one database."""

    dialect: Dialect
    version_query: str = "SELECT version()"

    def __init__(self, target: ConnectionTarget):
        self.target = target
        self._lock = asyncio.Lock()

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection."""

    @abstractmethod
    async def close(self) -> None:
        """Close the connection."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the connection is open."""

    @abstractmethod
    async def fetch(self, query: str, *args) -> List[Row]:
        """Fetch all results of a query as dicts keyed by column name."""

    async def fetchrow(self, query: str, *args) -> Optional[Row]:
        """Fetch the first row of a query."""
        rows = await self.fetch(query, *args)
        return rows[0] if rows else None

    async def fetchval(self, query: str, *args, column: int = 0) -> Any:
        """Fetch a single value from a query."""
        row = await self.fetchrow(query, *args)
        if row is None:
            return None
        return list(row.values())[column]

    async def server_version(self) -> str:
        return str(await self.fetchval(self.version_query))

    async def __aenter__(self) -> "DialectConnection":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class PostgreSQLConnection(DialectConnection):
    """PostgreSQL connection over asyncpg."""

    dialect = Dialect.POSTGRESQL

    def __init__(self, target: ConnectionTarget):
        super().__init__(target)
        self._conn: Optional[asyncpg.Connection] = None

    async def connect(self) -> None:
        async with self._lock:
            if self._conn is not None:
                return
            try:
                logger.info(f"Connecting to {self.target.display_name}")
                self._conn = await asyncpg.connect(
                    host=self.target.host,
                    port=self.target.port,
                    user=self.target.user,
                    password=self.target.password,
                    database=self.target.database,
                    timeout=self.target.connect_timeout,
                )
            except Exception as e:
                logger.error(f"Failed to connect to {self.target.display_name}: {e}")
                raise DatabaseConnectionError(
                    f"Failed to connect to {self.target.display_name}", cause=e
                ) from e

    async def close(self) -> None:
        async with self._lock:
            if self._conn is not None:
                await self._conn.close()
                self._conn = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    async def fetch(self, query: str, *args) -> List[Row]:
        if self._conn is None:
            raise DatabaseConnectionError("Connection is not open")
        async with self._lock:
            records = await self._conn.fetch(query, *args)
        return [dict(record) for record in records]


class ThreadedConnection(DialectConnection):
    """Base for DB-API drivers whose calls block."""

    def __init__(self, target: ConnectionTarget):
        super().__init__(target)
        self._conn: Any = None

    @abstractmethod
    def _connect_sync(self) -> Any:
        """Open a DB-API connection."""

    async def connect(self) -> None:
        async with self._lock:
            if self._conn is not None:
                return
            try:
                logger.info(f"Connecting to {self.target.display_name}")
                self._conn = await asyncio.to_thread(self._connect_sync)
            except Exception as e:
                logger.error(f"Failed to connect to {self.target.display_name}: {e}")
                raise DatabaseConnectionError(
                    f"Failed to connect to {self.target.display_name}", cause=e
                ) from e

    async def close(self) -> None:
        async with self._lock:
            if self._conn is not None:
                await asyncio.to_thread(self._conn.close)
                self._conn = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def _fetch_sync(self, query: str, args: Sequence[Any]) -> List[Row]:
        cursor = self._conn.cursor()
        try:
            if args:
                cursor.execute(query, tuple(args))
            else:
                cursor.execute(query)
            if cursor.description is None:
                return []
            names = [column[0] for column in cursor.description]
            return [dict(zip(names, row)) for row in cursor.fetchall()]
        finally:
            cursor.close()

    async def fetch(self, query: str, *args) -> List[Row]:
        if self._conn is None:
            raise DatabaseConnectionError("Connection is not open")
        async with self._lock:
            return await asyncio.to_thread(self._fetch_sync, query, args)


class MySQLConnection(ThreadedConnection):
    """MySQL connection over PyMySQL."""

    dialect = Dialect.MYSQL
    version_query = "SELECT VERSION()"

    def _connect_sync(self) -> Any:
        import pymysql

        return pymysql.connect(
            host=self.target.host,
            port=self.target.port,
            user=self.target.user,
            password=self.target.password,
            database=self.target.database or None,
            connect_timeout=int(self.target.connect_timeout),
            charset="utf8mb4",
            autocommit=True,
        )


class SQLiteConnection(ThreadedConnection):
    """SQLite connection over the standard library driver."""

    dialect = Dialect.SQLITE
    version_query = "SELECT sqlite_version()"

    def _connect_sync(self) -> Any:
        # worker threads vary between calls; the lock serializes access
        return sqlite3.connect(
            self.target.file_path,
            timeout=self.target.connect_timeout,
            check_same_thread=False,
        )


class SQLServerConnection(ThreadedConnection):
    """SQL Server connection over pyodbc."""

    dialect = Dialect.SQLSERVER
    version_query = "SELECT @@VERSION"

    def _connect_sync(self) -> Any:
        import pyodbc

        parts = {
            "DRIVER": "{" + self.target.odbc_driver + "}",
            "SERVER": f"{self.target.host},{self.target.port}",
            "DATABASE": self.target.database,
            "UID": self.target.user,
            "PWD": self.target.password,
            "TrustServerCertificate": "yes",
        }
        connection_string = ";".join(f"{k}={v}" for k, v in parts.items() if v)
        return pyodbc.connect(
            connection_string, timeout=int(self.target.connect_timeout), autocommit=True
        )


CONNECTION_CLASSES: Dict[Dialect, Type[DialectConnection]] = {
    Dialect.MYSQL: MySQLConnection,
    Dialect.POSTGRESQL: PostgreSQLConnection,
    Dialect.SQLITE: SQLiteConnection,
    Dialect.SQLSERVER: SQLServerConnection,
}


def create_connection(target: ConnectionTarget) -> DialectConnection:
    """Create (but do not open) a connection for a target's dialect."""
    dialect = resolve_dialect(target.dialect)
    connection_class = CONNECTION_CLASSES.get(dialect)
    if connection_class is None:
        raise UnsupportedDialectError(dialect)
    return connection_class(target)


async def open_connection(target: ConnectionTarget) -> DialectConnection:
    """Create and open a connection for a target."""
    connection = create_connection(target)
    await connection.connect()
    return connection
