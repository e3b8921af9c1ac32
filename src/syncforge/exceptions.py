"""
Exception classes for syncforge.
"""

from typing import Any, Dict, Optional


class SyncForgeError(Exception):
    """Base exception for all syncforge errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(SyncForgeError):
    """Raised when there's an error in configuration."""

    pass


class PreconditionError(SyncForgeError):
    """Raised when a comparison cannot start because its inputs are ineligible."""

    pass


class MissingPrimaryKeyError(PreconditionError):
    """Raised when a table without a primary key is offered for data comparison."""

    def __init__(self, table_name: str) -> None:
        super().__init__(
            f"Table {table_name} has no primary key",
            {"table": table_name},
        )
        self.table_name = table_name


class UnsupportedDialectError(PreconditionError):
    """Raised when a dialect tag has no adapter."""

    def __init__(self, dialect: Any) -> None:
        super().__init__(f"Unsupported database type: {dialect}")
        self.dialect = dialect


class DatabaseError(SyncForgeError):
    """Raised when there's an error with database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when there's an error establishing a database connection."""

    pass


class SchemaError(DatabaseError):
    """Raised when table metadata or rows cannot be read."""

    pass
