"""
Data comparison package for syncforge.

This package provides:
- Primary-key indexing of full table extents
- The row comparator producing INSERT/UPDATE/DELETE statements
"""

from .models import (
    DataDiffEntry,
    DataDiffKind,
    DataSyncOptions,
    KeyedRowSet,
    PrimaryKeyValue,
    RowRecord,
    TableDataInfo,
)
from .keying import build_keyed_rows, composite_key, extract_primary_key, normalize_row
from .comparator import DataComparator, compare_table_data, sort_data_diff

__all__ = [
    "DataDiffEntry",
    "DataDiffKind",
    "DataSyncOptions",
    "KeyedRowSet",
    "PrimaryKeyValue",
    "RowRecord",
    "TableDataInfo",
    "build_keyed_rows",
    "composite_key",
    "extract_primary_key",
    "normalize_row",
    "DataComparator",
    "compare_table_data",
    "sort_data_diff",
]
