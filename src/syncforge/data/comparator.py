"""
Row-level data comparison for syncforge.

Compares the full row sets of one table on two databases and produces
INSERT, UPDATE and DELETE statements keyed by primary key.

Both row sets are held in memory in full; there is no streaming or
windowed comparison, so the largest comparable table is bounded by
available memory.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from ..exceptions import MissingPrimaryKeyError
from ..statements import Dialect, escape_value, quote_identifier, render_text, resolve_dialect
from .keying import build_keyed_rows, extract_primary_key
from .models import (
    DataDiffEntry,
    DataDiffKind,
    DataSyncOptions,
    KeyedRowSet,
    RowRecord,
)


logger = logging.getLogger(__name__)

RowSource = Union[KeyedRowSet, Iterable[Mapping[str, Any]]]


def values_equal(a: Any, b: Any) -> bool:
    """NULL equals only NULL; anything else compares by text form."""
    if a is None or b is None:
        return a is None and b is None
    return render_text(a) == render_text(b)


def rows_equal(a: Mapping[str, Any], b: Mapping[str, Any]) -> bool:
    """Check if two rows hold the same columns with the same text values."""
    if len(a) != len(b):
        return False
    for column, value in a.items():
        if column not in b or not values_equal(value, b[column]):
            return False
    return True


class DataComparator:
    """
    Row diff between a source and a target table.

    Output order is source-row order for inserts and updates, followed by
    target-row order for deletes. Use :func:`sort_data_diff` for the
    canonical order.
    """

    def __init__(self, dialect: Union[Dialect, str, None] = None):
        self.dialect = resolve_dialect(dialect)

    def quote(self, name: str) -> str:
        return quote_identifier(name, self.dialect)

    def compare(
        self,
        table_name: str,
        source_rows: RowSource,
        target_rows: RowSource,
        primary_key_columns: Sequence[str],
        all_columns: Sequence[str],
        options: Optional[DataSyncOptions] = None,
    ) -> List[DataDiffEntry]:
        """
        Compare two row sets of the same table.

        Raises:
            MissingPrimaryKeyError: if ``primary_key_columns`` is empty
        """
        if not primary_key_columns:
            raise MissingPrimaryKeyError(table_name)

        options = options or DataSyncOptions()
        source = self._keyed(source_rows, primary_key_columns, all_columns, table_name)
        target = self._keyed(target_rows, primary_key_columns, all_columns, table_name)

        results: List[DataDiffEntry] = []

        for key, source_row in source.items():
            target_row = target.get(key)
            if target_row is None:
                if options.allows(DataDiffKind.INSERT):
                    results.append(DataDiffEntry(
                        kind=DataDiffKind.INSERT,
                        table_name=table_name,
                        primary_key=extract_primary_key(source_row, primary_key_columns),
                        new_values=source_row,
                        sql=self.insert_sql(table_name, source_row, all_columns),
                    ))
            elif options.allows(DataDiffKind.UPDATE) and not rows_equal(source_row, target_row):
                sql = self.update_sql(table_name, source_row, primary_key_columns, all_columns)
                if sql is None:
                    logger.warning(
                        f"Row {key} of {table_name} differs but has no non-key "
                        f"columns to update"
                    )
                    continue
                results.append(DataDiffEntry(
                    kind=DataDiffKind.UPDATE,
                    table_name=table_name,
                    primary_key=extract_primary_key(source_row, primary_key_columns),
                    old_values=target_row,
                    new_values=source_row,
                    sql=sql,
                ))

        if options.allows(DataDiffKind.DELETE):
            for key, target_row in target.items():
                if key not in source:
                    primary_key = extract_primary_key(target_row, primary_key_columns)
                    results.append(DataDiffEntry(
                        kind=DataDiffKind.DELETE,
                        table_name=table_name,
                        primary_key=primary_key,
                        old_values=target_row,
                        sql=self.delete_sql(table_name, primary_key_columns, target_row),
                    ))

        logger.debug(
            f"Data comparison for {table_name}: {len(source)} source rows, "
            f"{len(target)} target rows, {len(results)} differences"
        )
        return results

    @staticmethod
    def _keyed(
        rows: RowSource,
        primary_key_columns: Sequence[str],
        all_columns: Sequence[str],
        table_name: str,
    ) -> KeyedRowSet:
        if isinstance(rows, KeyedRowSet):
            return rows
        return build_keyed_rows(rows, primary_key_columns, all_columns, table_name)

    def insert_sql(self, table_name: str, row: RowRecord, columns: Sequence[str]) -> str:
        """INSERT listing every column of ``columns`` present in the row."""
        present = [column for column in columns if column in row]
        column_list = ", ".join(self.quote(column) for column in present)
        value_list = ", ".join(escape_value(row[column]) for column in present)
        return f"INSERT INTO {self.quote(table_name)} ({column_list}) VALUES ({value_list});"

    def update_sql(
        self,
        table_name: str,
        row: RowRecord,
        primary_key_columns: Sequence[str],
        columns: Sequence[str],
    ) -> Optional[str]:
        """
        UPDATE setting every non-key column to its source value.

        Returns None when the table has no non-key columns.
        """
        assignments = [
            f"{self.quote(column)} = {escape_value(row[column])}"
            for column in columns
            if column in row and column not in primary_key_columns
        ]
        if not assignments:
            return None
        return (
            f"UPDATE {self.quote(table_name)} SET {', '.join(assignments)} "
            f"WHERE {self._key_condition(primary_key_columns, row)};"
        )

    def delete_sql(self, table_name: str, primary_key_columns: Sequence[str], row: RowRecord) -> str:
        return (
            f"DELETE FROM {self.quote(table_name)} "
            f"WHERE {self._key_condition(primary_key_columns, row)};"
        )

    def _key_condition(self, primary_key_columns: Sequence[str], row: Mapping[str, Any]) -> str:
        return " AND ".join(
            f"{self.quote(column)} = {escape_value(row.get(column))}"
            for column in primary_key_columns
        )


def compare_table_data(
    source_rows: RowSource,
    target_rows: RowSource,
    primary_key_columns: Sequence[str],
    all_columns: Sequence[str],
    table_name: str = "",
    dialect: Union[Dialect, str, None] = None,
    options: Optional[DataSyncOptions] = None,
) -> List[DataDiffEntry]:
    """Compare two row sets of one table; see :class:`DataComparator`."""
    return DataComparator(dialect).compare(
        table_name, source_rows, target_rows, primary_key_columns, all_columns, options
    )


def sort_data_diff(entries: Iterable[DataDiffEntry]) -> List[DataDiffEntry]:
    """Canonical order: inserts, updates, deletes, each by composite key."""
    return sorted(entries, key=lambda entry: entry.sort_key)
