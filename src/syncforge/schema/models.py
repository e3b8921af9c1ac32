"""
Structural snapshot model used by the schema comparator.

A snapshot is what a dialect adapter reports about a database: tables,
their columns in ordinal order, and their index entries.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


PRIMARY_INDEX_NAME = "PRIMARY"
PRIMARY_KEY_ROLE = "PRI"


@dataclass
class ColumnDescriptor:
    """Information about a table column."""

    name: str
    data_type: str
    is_nullable: bool = True
    key: str = ""
    default: Optional[str] = None
    extra: str = ""
    position: int = 0

    @property
    def is_primary_key(self) -> bool:
        """Check if the column is part of the primary key."""
        return self.key == PRIMARY_KEY_ROLE


@dataclass
class IndexDescriptor:
    """One column entry of an index; composite indexes have several."""

    name: str
    column: str
    non_unique: bool = True
    seq_in_index: int = 1


@dataclass
class TableSnapshot:
    """Information about a database table."""

    name: str
    create_sql: str = ""
    columns: List[ColumnDescriptor] = field(default_factory=list)
    indexes: List[IndexDescriptor] = field(default_factory=list)

    def column_map(self) -> Dict[str, ColumnDescriptor]:
        """Get columns by name."""
        return {col.name: col for col in self.columns}

    def column_at(self, position: int) -> Optional[ColumnDescriptor]:
        """Get the column at a 1-based ordinal position."""
        for col in self.columns:
            if col.position == position:
                return col
        return None

    @property
    def primary_key(self) -> List[str]:
        """Primary key column names, in ordinal order."""
        return [col.name for col in self.columns if col.is_primary_key]

    def index_columns(self) -> Dict[str, List[str]]:
        """
        Group index entries by index name.

        Column lists are ordered by sequence-in-index; the sort is stable so
        entries reported without a sequence keep their reported order.
        """
        grouped: Dict[str, List[IndexDescriptor]] = {}
        for entry in self.indexes:
            grouped.setdefault(entry.name, []).append(entry)
        return {
            name: [e.column for e in sorted(entries, key=lambda e: e.seq_in_index)]
            for name, entries in grouped.items()
        }


@dataclass
class SchemaSnapshot:
    """Complete structure of one database."""

    database: str
    tables: Dict[str, TableSnapshot] = field(default_factory=dict)

    def add_table(self, table: TableSnapshot) -> None:
        self.tables[table.name] = table

    def has_table(self, table_name: str) -> bool:
        return table_name in self.tables

    @property
    def table_names(self) -> List[str]:
        return sorted(self.tables)


class DiffKind(str, Enum):
    """Kinds of structural difference, in reporting order."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"

    @property
    def precedence(self) -> int:
        return _DIFF_KIND_ORDER[self]


_DIFF_KIND_ORDER = {DiffKind.ADDED: 0, DiffKind.MODIFIED: 1, DiffKind.REMOVED: 2}


@dataclass(frozen=True)
class DiffEntry:
    """A structural difference and the statement that resolves it."""

    kind: DiffKind
    table_name: str
    detail: str
    sql: str

    @property
    def sort_key(self):
        return (self.kind.precedence, self.table_name)
