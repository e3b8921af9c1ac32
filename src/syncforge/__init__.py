"""
syncforge: schema and data comparison across database environments.

syncforge compares a source and a target database (MySQL, PostgreSQL,
SQLite or SQL Server) and generates the DDL and DML statements that make
the target match the source.
"""

__version__ = "0.1.0"

from .config import SyncForgeConfig, ConnectionTarget
from .exceptions import (
    SyncForgeError,
    ConfigurationError,
    DatabaseError,
    MissingPrimaryKeyError,
    UnsupportedDialectError,
)
from .schema import compare_schemas
from .data import compare_table_data, sort_data_diff
from .service import SyncService

__all__ = [
    "__version__",
    "SyncForgeConfig",
    "ConnectionTarget",
    "SyncForgeError",
    "ConfigurationError",
    "DatabaseError",
    "MissingPrimaryKeyError",
    "UnsupportedDialectError",
    "compare_schemas",
    "compare_table_data",
    "sort_data_diff",
    "SyncService",
]
