"""
Row keying for the data comparator.

Rows coming out of a dialect adapter are normalized (binary payloads
decoded to text) and indexed by a composite string built from their
primary-key values.
"""

from typing import Any, Iterable, List, Mapping, Optional, Sequence

from ..exceptions import MissingPrimaryKeyError
from ..statements import render_text
from .models import KEY_DELIMITER, KeyedRowSet, PrimaryKeyValue, RowRecord


def normalize_value(value: Any) -> Any:
    """Decode binary payloads to text; leave every other value untouched."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def normalize_row(row: Mapping[str, Any], columns: Optional[Sequence[str]] = None) -> RowRecord:
    """
    Build a RowRecord from a driver row.

    When ``columns`` is given the record holds exactly those columns in that
    order; columns missing from the driver row are NULL.
    """
    if columns is None:
        return {name: normalize_value(value) for name, value in row.items()}
    return {name: normalize_value(row.get(name)) for name in columns}


def composite_key(row: Mapping[str, Any], primary_key_columns: Sequence[str]) -> str:
    """Join the text form of the primary-key values with the key delimiter."""
    return KEY_DELIMITER.join(render_text(row.get(column)) for column in primary_key_columns)


def extract_primary_key(row: Mapping[str, Any], primary_key_columns: Sequence[str]) -> PrimaryKeyValue:
    """Pick the primary-key values out of a row."""
    return PrimaryKeyValue(
        pairs=tuple((column, row.get(column)) for column in primary_key_columns),
        composite=composite_key(row, primary_key_columns),
    )


def build_keyed_rows(
    rows: Iterable[Mapping[str, Any]],
    primary_key_columns: Sequence[str],
    columns: Optional[Sequence[str]] = None,
    table_name: str = "",
) -> KeyedRowSet:
    """
    Index a full table extent by primary key.

    Raises:
        MissingPrimaryKeyError: if no primary-key columns are given
    """
    if not primary_key_columns:
        raise MissingPrimaryKeyError(table_name or "<unnamed>")

    keyed = KeyedRowSet(
        primary_key_columns=list(primary_key_columns),
        columns=list(columns) if columns is not None else [],
    )
    for row in rows:
        record = normalize_row(row, columns)
        keyed.rows[composite_key(record, primary_key_columns)] = record
    return keyed


def key_columns_present(columns: List[str], primary_key_columns: Sequence[str]) -> bool:
    """Check that every primary-key column is among the fetched columns."""
    return all(column in columns for column in primary_key_columns)
