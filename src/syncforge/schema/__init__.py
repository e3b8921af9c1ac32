"""
Schema comparison package for syncforge.

This package provides:
- The structural snapshot model (tables, columns, indexes)
- The schema comparator producing ordered DDL differences
"""

from .models import (
    ColumnDescriptor,
    IndexDescriptor,
    TableSnapshot,
    SchemaSnapshot,
    DiffEntry,
    DiffKind,
)
from .comparator import SchemaComparator, compare_schemas, build_column_definition

__all__ = [
    "ColumnDescriptor",
    "IndexDescriptor",
    "TableSnapshot",
    "SchemaSnapshot",
    "DiffEntry",
    "DiffKind",
    "SchemaComparator",
    "compare_schemas",
    "build_column_definition",
]
