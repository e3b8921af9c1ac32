"""
Row-level model used by the data comparator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple


RowRecord = Dict[str, Any]

KEY_DELIMITER = "|"


class DataDiffKind(str, Enum):
    """Kinds of row difference."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def precedence(self) -> int:
        return _DATA_KIND_ORDER[self]


_DATA_KIND_ORDER = {DataDiffKind.INSERT: 0, DataDiffKind.UPDATE: 1, DataDiffKind.DELETE: 2}


@dataclass(frozen=True)
class PrimaryKeyValue:
    """Primary-key columns of a row with their values, in key order."""

    pairs: Tuple[Tuple[str, Any], ...]
    composite: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.pairs)

    def __str__(self) -> str:
        return self.composite


@dataclass
class KeyedRowSet:
    """
    Rows of one table indexed by composite primary key.

    Keys keep row-fetch order. A later row with the same key replaces the
    earlier one.
    """

    primary_key_columns: List[str]
    columns: List[str] = field(default_factory=list)
    rows: Dict[str, RowRecord] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.rows)

    def __contains__(self, key: str) -> bool:
        return key in self.rows

    def __iter__(self) -> Iterator[str]:
        return iter(self.rows)

    def get(self, key: str) -> Optional[RowRecord]:
        return self.rows.get(key)

    def items(self) -> Iterable[Tuple[str, RowRecord]]:
        return self.rows.items()


@dataclass(frozen=True)
class DataDiffEntry:
    """A row difference and the statement that resolves it."""

    kind: DataDiffKind
    table_name: str
    primary_key: PrimaryKeyValue
    sql: str
    old_values: Optional[RowRecord] = None
    new_values: Optional[RowRecord] = None

    @property
    def sort_key(self):
        return (self.kind.precedence, self.primary_key.composite)


@dataclass
class DataSyncOptions:
    """Which kinds of row difference a comparison reports."""

    sync_insert: bool = True
    sync_update: bool = True
    sync_delete: bool = True

    def allows(self, kind: DataDiffKind) -> bool:
        if kind == DataDiffKind.INSERT:
            return self.sync_insert
        if kind == DataDiffKind.UPDATE:
            return self.sync_update
        return self.sync_delete


@dataclass
class TableDataInfo:
    """Row counts and pending changes for one table."""

    table_name: str
    primary_keys: List[str] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    source_count: int = 0
    target_count: int = 0
    insert_count: int = 0
    update_count: int = 0
    delete_count: int = 0

    @property
    def is_eligible(self) -> bool:
        """Tables without a primary key cannot be compared row by row."""
        return bool(self.primary_keys)

    @property
    def total_changes(self) -> int:
        return self.insert_count + self.update_count + self.delete_count

    def record(self, entries: Iterable[DataDiffEntry]) -> None:
        """Count entries by kind."""
        for entry in entries:
            if entry.kind == DataDiffKind.INSERT:
                self.insert_count += 1
            elif entry.kind == DataDiffKind.UPDATE:
                self.update_count += 1
            elif entry.kind == DataDiffKind.DELETE:
                self.delete_count += 1
