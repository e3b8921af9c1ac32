"""
Database schema introspection for syncforge.

Each supported dialect has one adapter that reads table lists, column
metadata, indexes, primary keys and raw rows, and reports them in the
dialect-independent snapshot model. Queries are class attributes; the
shared behaviour lives in :class:`DialectAdapter`.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Type

from ..data.keying import normalize_row
from ..data.models import RowRecord
from ..exceptions import SchemaError, SyncForgeError, UnsupportedDialectError
from ..schema.models import (
    ColumnDescriptor,
    IndexDescriptor,
    SchemaSnapshot,
    TableSnapshot,
    PRIMARY_INDEX_NAME,
    PRIMARY_KEY_ROLE,
)
from ..statements import Dialect, quote_identifier, resolve_dialect
from .connection import DialectConnection, Row


logger = logging.getLogger(__name__)


def _is_yes(value: Any) -> bool:
    return str(value).upper() in ("YES", "1", "TRUE")


class DialectAdapter(ABC):
    """Reads structure and rows of one database."""

    dialect: Dialect
    list_tables_query: str = ""
    list_databases_query: str = ""
    system_databases: Sequence[str] = ()

    def __init__(self, connection: DialectConnection, database: str = ""):
        self.connection = connection
        self.database = database

    def quote(self, name: str) -> str:
        return quote_identifier(name, self.dialect)

    async def _fetch(self, query: str, *args) -> List[Row]:
        """Run a metadata or data query, wrapping driver failures."""
        try:
            return await self.connection.fetch(query, *args)
        except SyncForgeError:
            raise
        except Exception as e:
            logger.error(f"Query failed on {self.dialect.value}: {e}")
            raise SchemaError(f"Query failed: {e}", {"dialect": self.dialect.value}, e) from e

    @staticmethod
    def _first_values(rows: List[Row]) -> List[Any]:
        return [next(iter(row.values())) for row in rows]

    async def list_tables(self) -> List[str]:
        """List base tables in the database."""
        return [str(name) for name in self._first_values(await self._fetch(self.list_tables_query))]

    async def list_databases(self) -> List[str]:
        """List user databases on the server, skipping system ones."""
        rows = await self._fetch(self.list_databases_query)
        return [
            str(name) for name in self._first_values(rows)
            if name not in self.system_databases
        ]

    @abstractmethod
    async def get_column_descriptors(self, table: str) -> List[ColumnDescriptor]:
        """Column metadata in ordinal order."""

    @abstractmethod
    async def get_indexes(self, table: str) -> List[IndexDescriptor]:
        """Index entries; the primary key index is named PRIMARY."""

    @abstractmethod
    async def get_primary_key_columns(self, table: str) -> List[str]:
        """Primary key column names in key order; empty if there is none."""

    async def get_create_sql(self, table: str, columns: List[ColumnDescriptor]) -> str:
        """
        CREATE TABLE text for a table.

        Dialects without a native "show create" build it from column metadata.
        Catalog defaults are already SQL expressions and are emitted as-is.
        """
        parts = []
        for column in columns:
            definition = f"{self.quote(column.name)} {column.data_type}"
            if not column.is_nullable:
                definition += " NOT NULL"
            if column.default is not None:
                definition += f" DEFAULT {column.default}"
            parts.append(definition)
        body = ",\n  ".join(parts)
        return f"CREATE TABLE {self.quote(table)} (\n  {body}\n);"

    async def get_columns(self, table: str) -> List[str]:
        """Column names in ordinal order."""
        return [column.name for column in await self.get_column_descriptors(table)]

    async def get_table_snapshot(self, table: str) -> TableSnapshot:
        """Read the full structure of one table."""
        columns = await self.get_column_descriptors(table)
        primary_key = set(await self.get_primary_key_columns(table))
        for column in columns:
            if column.name in primary_key and not column.key:
                column.key = PRIMARY_KEY_ROLE

        return TableSnapshot(
            name=table,
            create_sql=await self.get_create_sql(table, columns),
            columns=columns,
            indexes=await self.get_indexes(table),
        )

    async def get_schema_snapshot(self) -> SchemaSnapshot:
        """Read the structure of every table."""
        snapshot = SchemaSnapshot(database=self.database)
        for table in await self.list_tables():
            snapshot.add_table(await self.get_table_snapshot(table))
        logger.info(
            f"Read {len(snapshot.tables)} tables from {self.dialect.value} "
            f"database '{self.database}'"
        )
        return snapshot

    async def fetch_all_rows(self, table: str, columns: Sequence[str]) -> List[RowRecord]:
        """
        Read every row of a table.

        The full extent is loaded into memory; there is no pagination.
        """
        column_list = ", ".join(self.quote(column) for column in columns)
        rows = await self._fetch(f"SELECT {column_list} FROM {self.quote(table)}")
        logger.debug(f"Fetched {len(rows)} rows from {table}")
        return [normalize_row(row, columns) for row in rows]

    async def count_rows(self, table: str) -> int:
        rows = await self._fetch(f"SELECT COUNT(*) AS row_count FROM {self.quote(table)}")
        return int(self._first_values(rows)[0]) if rows else 0


class MySQLAdapter(DialectAdapter):
    """MySQL / MariaDB."""

    dialect = Dialect.MYSQL
    list_tables_query = "SHOW TABLES"
    list_databases_query = "SHOW DATABASES"
    system_databases = ("information_schema", "mysql", "performance_schema", "sys")

    columns_query = """
        SELECT COLUMN_NAME AS name, COLUMN_TYPE AS data_type,
               IS_NULLABLE AS is_nullable, COLUMN_KEY AS column_key,
               COLUMN_DEFAULT AS column_default, EXTRA AS extra,
               ORDINAL_POSITION AS position
        FROM INFORMATION_SCHEMA.COLUMNS
        WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s
        ORDER BY ORDINAL_POSITION
    """

    primary_key_query = """
        SELECT COLUMN_NAME AS name
        FROM INFORMATION_SCHEMA.KEY_COLUMN_USAGE
        WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s
        AND CONSTRAINT_NAME = 'PRIMARY'
        ORDER BY ORDINAL_POSITION
    """

    async def get_column_descriptors(self, table: str) -> List[ColumnDescriptor]:
        rows = await self._fetch(self.columns_query, table)
        return [
            ColumnDescriptor(
                name=row["name"],
                data_type=row["data_type"],
                is_nullable=_is_yes(row["is_nullable"]),
                key=row["column_key"] or "",
                default=row["column_default"],
                extra=row["extra"] or "",
                position=int(row["position"]),
            )
            for row in rows
        ]

    async def get_indexes(self, table: str) -> List[IndexDescriptor]:
        rows = await self._fetch(f"SHOW INDEX FROM {self.quote(table)}")
        return [
            IndexDescriptor(
                name=row["Key_name"],
                column=row["Column_name"],
                non_unique=bool(int(row["Non_unique"])),
                seq_in_index=int(row["Seq_in_index"]),
            )
            for row in rows
        ]

    async def get_primary_key_columns(self, table: str) -> List[str]:
        return [row["name"] for row in await self._fetch(self.primary_key_query, table)]

    async def get_create_sql(self, table: str, columns: List[ColumnDescriptor]) -> str:
        rows = await self._fetch(f"SHOW CREATE TABLE {self.quote(table)}")
        if not rows:
            raise SchemaError(f"Table {table} does not exist")
        return rows[0].get("Create Table") or list(rows[0].values())[1]


class PostgreSQLAdapter(DialectAdapter):
    """PostgreSQL, tables of one schema (``public`` by default)."""

    dialect = Dialect.POSTGRESQL
    list_tables_query = (
        "SELECT tablename FROM pg_tables WHERE schemaname = $1 ORDER BY tablename"
    )
    list_databases_query = (
        "SELECT datname FROM pg_database WHERE datistemplate = false ORDER BY datname"
    )
    system_databases = ("postgres",)

    columns_query = """
        SELECT column_name AS name, data_type, is_nullable,
               column_default, ordinal_position AS position
        FROM information_schema.columns
        WHERE table_schema = $1 AND table_name = $2
        ORDER BY ordinal_position
    """

    indexes_query = """
        SELECT i.relname AS index_name,
               a.attname AS column_name,
               NOT ix.indisunique AS non_unique,
               ix.indisprimary AS is_primary,
               array_position(ix.indkey::int2[], a.attnum)
                   - array_lower(ix.indkey::int2[], 1) + 1 AS seq_in_index
        FROM pg_index ix
        JOIN pg_class t ON t.oid = ix.indrelid
        JOIN pg_class i ON i.oid = ix.indexrelid
        JOIN pg_namespace n ON n.oid = t.relnamespace
        JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = ANY(ix.indkey)
        WHERE n.nspname = $1 AND t.relname = $2
        ORDER BY i.relname, seq_in_index
    """

    primary_key_query = """
        SELECT a.attname AS name
        FROM pg_index ix
        JOIN pg_class t ON t.oid = ix.indrelid
        JOIN pg_namespace n ON n.oid = t.relnamespace
        JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = ANY(ix.indkey)
        WHERE n.nspname = $1 AND t.relname = $2 AND ix.indisprimary
        ORDER BY array_position(ix.indkey::int2[], a.attnum)
    """

    def __init__(self, connection: DialectConnection, database: str = "", schema: str = "public"):
        super().__init__(connection, database)
        self.schema = schema

    async def list_tables(self) -> List[str]:
        rows = await self._fetch(self.list_tables_query, self.schema)
        return [str(name) for name in self._first_values(rows)]

    async def get_column_descriptors(self, table: str) -> List[ColumnDescriptor]:
        rows = await self._fetch(self.columns_query, self.schema, table)
        return [
            ColumnDescriptor(
                name=row["name"],
                data_type=row["data_type"],
                is_nullable=_is_yes(row["is_nullable"]),
                default=row["column_default"],
                position=int(row["position"]),
            )
            for row in rows
        ]

    async def get_indexes(self, table: str) -> List[IndexDescriptor]:
        rows = await self._fetch(self.indexes_query, self.schema, table)
        return [
            IndexDescriptor(
                name=PRIMARY_INDEX_NAME if row["is_primary"] else row["index_name"],
                column=row["column_name"],
                non_unique=bool(row["non_unique"]),
                seq_in_index=int(row["seq_in_index"]),
            )
            for row in rows
        ]

    async def get_primary_key_columns(self, table: str) -> List[str]:
        rows = await self._fetch(self.primary_key_query, self.schema, table)
        return [row["name"] for row in rows]


class SQLiteAdapter(DialectAdapter):
    """SQLite; a file holds a single database named ``main``."""

    dialect = Dialect.SQLITE
    list_tables_query = (
        "SELECT name FROM sqlite_master "
        "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    )
    create_sql_query = "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?"

    def __init__(self, connection: DialectConnection, database: str = "main"):
        super().__init__(connection, database or "main")

    async def list_databases(self) -> List[str]:
        return ["main"]

    async def _table_info(self, table: str) -> List[Row]:
        return await self._fetch(f"PRAGMA table_info({self.quote(table)})")

    async def get_column_descriptors(self, table: str) -> List[ColumnDescriptor]:
        return [
            ColumnDescriptor(
                name=row["name"],
                data_type=row["type"],
                is_nullable=not row["notnull"],
                key=PRIMARY_KEY_ROLE if row["pk"] else "",
                default=None if row["dflt_value"] is None else str(row["dflt_value"]),
                position=int(row["cid"]) + 1,
            )
            for row in await self._table_info(table)
        ]

    async def get_indexes(self, table: str) -> List[IndexDescriptor]:
        indexes = []
        for entry in await self._fetch(f"PRAGMA index_list({self.quote(table)})"):
            name = entry["name"]
            reported_name = PRIMARY_INDEX_NAME if entry.get("origin") == "pk" else name
            for column in await self._fetch(f"PRAGMA index_info({self.quote(name)})"):
                indexes.append(IndexDescriptor(
                    name=reported_name,
                    column=column["name"],
                    non_unique=not entry["unique"],
                    seq_in_index=int(column["seqno"]) + 1,
                ))
        return indexes

    async def get_primary_key_columns(self, table: str) -> List[str]:
        rows = [row for row in await self._table_info(table) if row["pk"]]
        return [row["name"] for row in sorted(rows, key=lambda row: row["pk"])]

    async def get_create_sql(self, table: str, columns: List[ColumnDescriptor]) -> str:
        rows = await self._fetch(self.create_sql_query, table)
        if not rows:
            raise SchemaError(f"Table {table} does not exist")
        return rows[0]["sql"]


class SQLServerAdapter(DialectAdapter):
    """Microsoft SQL Server / Azure SQL."""

    dialect = Dialect.SQLSERVER
    list_tables_query = (
        "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
        "WHERE TABLE_TYPE = 'BASE TABLE' ORDER BY TABLE_NAME"
    )
    list_databases_query = "SELECT name FROM sys.databases ORDER BY name"
    system_databases = ("master", "tempdb", "model", "msdb")

    columns_query = """
        SELECT COLUMN_NAME AS name, DATA_TYPE AS data_type, IS_NULLABLE AS is_nullable,
               COLUMN_DEFAULT AS column_default, ORDINAL_POSITION AS position
        FROM INFORMATION_SCHEMA.COLUMNS
        WHERE TABLE_NAME = ?
        ORDER BY ORDINAL_POSITION
    """

    indexes_query = """
        SELECT i.name AS index_name, c.name AS column_name, i.is_unique,
               i.is_primary_key, ic.key_ordinal AS seq_in_index
        FROM sys.indexes i
        JOIN sys.index_columns ic ON i.object_id = ic.object_id AND i.index_id = ic.index_id
        JOIN sys.columns c ON ic.object_id = c.object_id AND ic.column_id = c.column_id
        WHERE i.object_id = OBJECT_ID(?) AND i.name IS NOT NULL
        ORDER BY i.name, ic.key_ordinal
    """

    primary_key_query = """
        SELECT c.COLUMN_NAME AS name
        FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
        JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE c ON tc.CONSTRAINT_NAME = c.CONSTRAINT_NAME
        WHERE tc.TABLE_NAME = ? AND tc.CONSTRAINT_TYPE = 'PRIMARY KEY'
        ORDER BY c.ORDINAL_POSITION
    """

    async def get_column_descriptors(self, table: str) -> List[ColumnDescriptor]:
        rows = await self._fetch(self.columns_query, table)
        return [
            ColumnDescriptor(
                name=row["name"],
                data_type=row["data_type"],
                is_nullable=_is_yes(row["is_nullable"]),
                default=row["column_default"],
                position=int(row["position"]),
            )
            for row in rows
        ]

    async def get_indexes(self, table: str) -> List[IndexDescriptor]:
        rows = await self._fetch(self.indexes_query, table)
        return [
            IndexDescriptor(
                name=PRIMARY_INDEX_NAME if row["is_primary_key"] else row["index_name"],
                column=row["column_name"],
                non_unique=not row["is_unique"],
                seq_in_index=int(row["seq_in_index"]),
            )
            for row in rows
        ]

    async def get_primary_key_columns(self, table: str) -> List[str]:
        return [row["name"] for row in await self._fetch(self.primary_key_query, table)]


ADAPTERS: Dict[Dialect, Type[DialectAdapter]] = {
    Dialect.MYSQL: MySQLAdapter,
    Dialect.POSTGRESQL: PostgreSQLAdapter,
    Dialect.SQLITE: SQLiteAdapter,
    Dialect.SQLSERVER: SQLServerAdapter,
}


def get_adapter(connection: DialectConnection, database: Optional[str] = None) -> DialectAdapter:
    """Select the adapter for a connection's dialect."""
    dialect = resolve_dialect(connection.dialect)
    adapter_class = ADAPTERS.get(dialect)
    if adapter_class is None:
        raise UnsupportedDialectError(dialect)
    if database is None:
        database = connection.target.database
    return adapter_class(connection, database)
