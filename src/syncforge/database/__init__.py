"""
Database integration package for syncforge.

This package provides:
- Async connections for MySQL, PostgreSQL, SQLite and SQL Server
- One introspection adapter per dialect reporting the snapshot model
"""

from .connection import DialectConnection, create_connection, open_connection
from .introspection import DialectAdapter, get_adapter

__all__ = [
    "DialectConnection",
    "create_connection",
    "open_connection",
    "DialectAdapter",
    "get_adapter",
]
