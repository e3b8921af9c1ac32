"""
Comparison orchestration for syncforge.

Opens one connection per side, reads what the comparators need through
the dialect adapters, and hands the materialized data to the schema or
data comparator. Source and target are read independently; there is no
shared transaction, so a table under concurrent writes is compared as of
two slightly different moments.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from .config import ConnectionTarget, DiffSettings
from .data.comparator import compare_table_data, sort_data_diff
from .data.keying import key_columns_present
from .data.models import DataDiffEntry, DataSyncOptions, RowRecord, TableDataInfo
from .database.connection import DialectConnection, open_connection
from .database.introspection import DialectAdapter, get_adapter
from .exceptions import MissingPrimaryKeyError, SchemaError
from .schema.comparator import compare_schemas
from .schema.models import DiffEntry, SchemaSnapshot


logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[ConnectionTarget], Awaitable[DialectConnection]]


@dataclass
class TableDataComparison:
    """Everything read and produced while comparing one table's rows."""

    table_name: str
    primary_keys: List[str]
    columns: List[str]
    source_rows: List[RowRecord] = field(default_factory=list)
    target_rows: List[RowRecord] = field(default_factory=list)
    entries: List[DataDiffEntry] = field(default_factory=list)

    def to_info(self) -> TableDataInfo:
        info = TableDataInfo(
            table_name=self.table_name,
            primary_keys=self.primary_keys,
            columns=self.columns,
            source_count=len(self.source_rows),
            target_count=len(self.target_rows),
        )
        info.record(self.entries)
        return info


class SyncService:
    """
    Entry point for comparing two databases.

    Statements are generated for the target's dialect, since that is where
    they will run.
    """

    def __init__(
        self,
        settings: Optional[DiffSettings] = None,
        connection_factory: Optional[ConnectionFactory] = None,
    ):
        self.settings = settings or DiffSettings()
        self.connection_factory = connection_factory or open_connection

    @asynccontextmanager
    async def open_adapter(self, target: ConnectionTarget) -> AsyncIterator[DialectAdapter]:
        """Connect to a target and yield its adapter; the connection is closed on exit."""
        connection = await self.connection_factory(target)
        try:
            yield get_adapter(connection)
        finally:
            await connection.close()

    def default_options(self) -> DataSyncOptions:
        return DataSyncOptions(
            sync_insert=self.settings.sync_insert,
            sync_update=self.settings.sync_update,
            sync_delete=self.settings.sync_delete,
        )

    async def get_schema(self, target: ConnectionTarget) -> SchemaSnapshot:
        """Read the structure of every table of a database."""
        async with self.open_adapter(target) as adapter:
            return await adapter.get_schema_snapshot()

    async def list_databases(self, target: ConnectionTarget) -> List[str]:
        async with self.open_adapter(target) as adapter:
            return await adapter.list_databases()

    async def compare_schemas(
        self, source: ConnectionTarget, target: ConnectionTarget
    ) -> List[DiffEntry]:
        """Structural differences turning the target into the source."""
        logger.info(f"Comparing schema {source.display_name} -> {target.display_name}")
        source_schema, target_schema = await asyncio.gather(
            self.get_schema(source), self.get_schema(target)
        )
        entries = compare_schemas(source_schema, target_schema, target.dialect)
        logger.info(f"Found {len(entries)} schema differences")
        return entries

    async def compare_table_data(
        self,
        source: ConnectionTarget,
        target: ConnectionTarget,
        table_name: str,
        options: Optional[DataSyncOptions] = None,
    ) -> List[DataDiffEntry]:
        """
        Row differences of one table.

        Raises:
            MissingPrimaryKeyError: if the source table has no primary key;
                raised before any row is read
        """
        comparison = await self._compare_rows(source, target, table_name, options)
        return comparison.entries

    async def get_data_sync_summary(
        self, source: ConnectionTarget, target: ConnectionTarget, table_name: str
    ) -> TableDataInfo:
        """Row counts on both sides and pending insert/update/delete counts."""
        comparison = await self._compare_rows(
            source, target, table_name, DataSyncOptions()
        )
        return comparison.to_info()

    async def _compare_rows(
        self,
        source: ConnectionTarget,
        target: ConnectionTarget,
        table_name: str,
        options: Optional[DataSyncOptions],
    ) -> TableDataComparison:
        start_time = time.monotonic()
        options = options or self.default_options()

        async with self.open_adapter(source) as source_adapter, \
                self.open_adapter(target) as target_adapter:
            primary_keys = await source_adapter.get_primary_key_columns(table_name)
            if not primary_keys:
                raise MissingPrimaryKeyError(table_name)

            columns = await source_adapter.get_columns(table_name)
            if not key_columns_present(columns, primary_keys):
                raise SchemaError(
                    f"Primary key of {table_name} references unknown columns",
                    {"primary_key": primary_keys, "columns": columns},
                )

            source_rows, target_rows = await asyncio.gather(
                source_adapter.fetch_all_rows(table_name, columns),
                target_adapter.fetch_all_rows(table_name, columns),
            )

        entries = compare_table_data(
            source_rows,
            target_rows,
            primary_keys,
            columns,
            table_name=table_name,
            dialect=target.dialect,
            options=options,
        )
        if self.settings.sort_data_diff:
            entries = sort_data_diff(entries)

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            f"Compared {table_name}: {len(source_rows)} source rows, "
            f"{len(target_rows)} target rows, {len(entries)} differences "
            f"({elapsed_ms:.1f}ms)"
        )
        return TableDataComparison(
            table_name=table_name,
            primary_keys=primary_keys,
            columns=columns,
            source_rows=source_rows,
            target_rows=target_rows,
            entries=entries,
        )

    async def get_tables_for_sync(self, target: ConnectionTarget) -> List[TableDataInfo]:
        """Tables of a database with their primary keys, columns and row counts."""
        tables = []
        async with self.open_adapter(target) as adapter:
            for table_name in await adapter.list_tables():
                tables.append(TableDataInfo(
                    table_name=table_name,
                    primary_keys=await adapter.get_primary_key_columns(table_name),
                    columns=await adapter.get_columns(table_name),
                    source_count=await adapter.count_rows(table_name),
                ))
        return tables

    async def test_connection(self, target: ConnectionTarget) -> Dict[str, Any]:
        """Connect to a target and report the server version."""
        start_time = time.monotonic()
        try:
            connection = await self.connection_factory(target)
            try:
                version = await connection.server_version()
            finally:
                await connection.close()
        except Exception as e:
            logger.error(f"Connection test failed for {target.display_name}: {e}")
            return {"status": "failed", "target": target.display_name, "error": str(e)}

        return {
            "status": "connected",
            "target": target.display_name,
            "version": version,
            "response_time_ms": (time.monotonic() - start_time) * 1000,
        }
