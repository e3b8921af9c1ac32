"""
Schema comparison for syncforge.

Compares two structural snapshots and produces the ordered list of
differences, each carrying the DDL statement that brings the target in
line with the source.
"""

import logging
from typing import Dict, List, Optional, Union

from ..statements import Dialect, quote_identifier, render_default, resolve_dialect
from .models import (
    ColumnDescriptor,
    DiffEntry,
    DiffKind,
    SchemaSnapshot,
    TableSnapshot,
    PRIMARY_INDEX_NAME,
)


logger = logging.getLogger(__name__)


def build_column_definition(column: ColumnDescriptor) -> str:
    """Render the type, nullability, default and extra attributes of a column."""
    definition = column.data_type
    if not column.is_nullable:
        definition += " NOT NULL"
    if column.default is not None:
        definition += f" DEFAULT {render_default(column.default)}"
    if column.extra:
        definition += f" {column.extra}"
    return definition


def columns_equal(a: ColumnDescriptor, b: ColumnDescriptor) -> bool:
    """
    Check if two columns have the same definition.

    Name, key role and position are not part of the definition. Defaults
    are equal when both are absent or both are present with the same text.
    """
    return (
        a.data_type == b.data_type
        and a.is_nullable == b.is_nullable
        and a.extra == b.extra
        and a.default == b.default
    )


class SchemaComparator:
    """
    Structural diff between a source and a target snapshot.

    The comparator is stateless apart from the dialect used to quote
    identifiers in generated statements; one instance can be reused for
    any number of snapshot pairs.
    """

    def __init__(self, dialect: Union[Dialect, str, None] = None):
        self.dialect = resolve_dialect(dialect)

    def quote(self, name: str) -> str:
        return quote_identifier(name, self.dialect)

    def compare(self, source: SchemaSnapshot, target: SchemaSnapshot) -> List[DiffEntry]:
        """
        Compare two snapshots.

        Returns:
            Entries sorted by kind (added, modified, removed) then table name.
        """
        results: List[DiffEntry] = []

        for table_name in source.table_names:
            if not target.has_table(table_name):
                results.append(self._table_added(source.tables[table_name]))

        for table_name in target.table_names:
            if not source.has_table(table_name):
                results.append(self._table_removed(table_name))

        for table_name in source.table_names:
            target_table = target.tables.get(table_name)
            if target_table is not None:
                results.extend(
                    self.compare_tables(source.tables[table_name], target_table)
                )

        # sorted() is stable, so per-table emission order survives
        results = sorted(results, key=lambda entry: entry.sort_key)

        logger.debug(
            f"Schema comparison {source.database} -> {target.database}: "
            f"{len(results)} differences"
        )
        return results

    def compare_tables(self, source: TableSnapshot, target: TableSnapshot) -> List[DiffEntry]:
        """Compare columns and indexes of a table present on both sides."""
        return self._compare_columns(source, target) + self._compare_indexes(source, target)

    def _table_added(self, table: TableSnapshot) -> DiffEntry:
        create_sql = table.create_sql.rstrip()
        if not create_sql.endswith(";"):
            create_sql += ";"
        return DiffEntry(
            kind=DiffKind.ADDED,
            table_name=table.name,
            detail="Table exists in source but not in target",
            sql=create_sql,
        )

    def _table_removed(self, table_name: str) -> DiffEntry:
        return DiffEntry(
            kind=DiffKind.REMOVED,
            table_name=table_name,
            detail="Table exists in target but not in source",
            sql=f"DROP TABLE {self.quote(table_name)};",
        )

    def _compare_columns(self, source: TableSnapshot, target: TableSnapshot) -> List[DiffEntry]:
        results = []
        table = self.quote(source.name)
        source_columns = source.column_map()
        target_columns = target.column_map()

        for column in source.columns:
            if column.name not in target_columns:
                position = self._position_clause(source, column)
                results.append(self._modified(
                    source.name,
                    f"Add column: {column.name}",
                    f"ALTER TABLE {table} ADD COLUMN {self.quote(column.name)} "
                    f"{build_column_definition(column)}{position};",
                ))

        for column in target.columns:
            if column.name not in source_columns:
                results.append(self._modified(
                    source.name,
                    f"Drop column: {column.name}",
                    f"ALTER TABLE {table} DROP COLUMN {self.quote(column.name)};",
                ))

        for column in source.columns:
            target_column = target_columns.get(column.name)
            if target_column is not None and not columns_equal(column, target_column):
                results.append(self._modified(
                    source.name,
                    f"Modify column: {column.name} "
                    f"({target_column.data_type} -> {column.data_type})",
                    f"ALTER TABLE {table} MODIFY COLUMN {self.quote(column.name)} "
                    f"{build_column_definition(column)};",
                ))

        return results

    def _position_clause(self, source: TableSnapshot, column: ColumnDescriptor) -> str:
        """Place a new column where it sits in the source ordering."""
        if column.position <= 1:
            return " FIRST"
        previous: Optional[ColumnDescriptor] = source.column_at(column.position - 1)
        if previous is None:
            return ""
        return f" AFTER {self.quote(previous.name)}"

    def _index_map(self, table: TableSnapshot) -> Dict[str, List[str]]:
        return {
            name: [self.quote(col) for col in columns]
            for name, columns in table.index_columns().items()
            if name != PRIMARY_INDEX_NAME
        }

    def _compare_indexes(self, source: TableSnapshot, target: TableSnapshot) -> List[DiffEntry]:
        results = []
        table = self.quote(source.name)
        source_indexes = self._index_map(source)
        target_indexes = self._index_map(target)

        for index_name in sorted(source_indexes):
            columns = source_indexes[index_name]
            index = self.quote(index_name)
            column_list = ", ".join(columns)
            if index_name not in target_indexes:
                results.append(self._modified(
                    source.name,
                    f"Add index: {index_name}",
                    f"ALTER TABLE {table} ADD INDEX {index} ({column_list});",
                ))
            elif columns != target_indexes[index_name]:
                results.append(self._modified(
                    source.name,
                    f"Recreate index: {index_name}",
                    f"ALTER TABLE {table} DROP INDEX {index}, "
                    f"ADD INDEX {index} ({column_list});",
                ))

        for index_name in sorted(target_indexes):
            if index_name not in source_indexes:
                results.append(self._modified(
                    source.name,
                    f"Drop index: {index_name}",
                    f"ALTER TABLE {table} DROP INDEX {self.quote(index_name)};",
                ))

        return results

    @staticmethod
    def _modified(table_name: str, detail: str, sql: str) -> DiffEntry:
        return DiffEntry(
            kind=DiffKind.MODIFIED,
            table_name=table_name,
            detail=detail,
            sql=sql,
        )


def compare_schemas(
    source: SchemaSnapshot,
    target: SchemaSnapshot,
    dialect: Union[Dialect, str, None] = None,
) -> List[DiffEntry]:
    """Compare two schema snapshots; see :class:`SchemaComparator`."""
    return SchemaComparator(dialect).compare(source, target)
