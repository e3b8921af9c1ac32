"""
Tests for syncforge.logging_setup and syncforge.exceptions.
"""

import logging
from logging.handlers import RotatingFileHandler

from syncforge.config import LoggingConfig
from syncforge.exceptions import (
    ConfigurationError,
    DatabaseConnectionError,
    DatabaseError,
    MissingPrimaryKeyError,
    PreconditionError,
    SchemaError,
    SyncForgeError,
    UnsupportedDialectError,
)
from syncforge.logging_setup import setup_logging


class TestSetupLogging:
    """Test logger configuration."""

    def test_level_from_config(self):
        logger = setup_logging(LoggingConfig(level="WARNING"))
        assert logger.name == "syncforge"
        assert logger.level == logging.WARNING

    def test_debug_overrides_level(self):
        logger = setup_logging(LoggingConfig(level="ERROR"), debug=True)
        assert logger.level == logging.DEBUG

    def test_handlers_replaced_on_second_call(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "syncforge.log"
        logger = setup_logging(LoggingConfig(file=str(log_file), max_size=1024, backup_count=2))

        file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 1024
        assert file_handlers[0].backupCount == 2

        logging.getLogger("syncforge.service").info("hello")
        file_handlers[0].flush()
        assert "hello" in log_file.read_text()


class TestExceptions:
    """Test the exception hierarchy and messages."""

    def test_hierarchy(self):
        assert issubclass(ConfigurationError, SyncForgeError)
        assert issubclass(MissingPrimaryKeyError, PreconditionError)
        assert issubclass(UnsupportedDialectError, PreconditionError)
        assert issubclass(DatabaseConnectionError, DatabaseError)
        assert issubclass(SchemaError, DatabaseError)

    def test_str_with_details_and_cause(self):
        error = SchemaError("Query failed", {"dialect": "mysql"}, ValueError("boom"))
        assert str(error) == "Query failed [dialect=mysql] (caused by: boom)"

    def test_plain_message(self):
        assert str(ConfigurationError("bad")) == "bad"

    def test_missing_primary_key(self):
        error = MissingPrimaryKeyError("event_log")
        assert error.table_name == "event_log"
        assert error.message == "Table event_log has no primary key"
        assert error.details == {"table": "event_log"}

    def test_unsupported_dialect(self):
        error = UnsupportedDialectError("oracle")
        assert error.dialect == "oracle"
        assert str(error) == "Unsupported database type: oracle"
