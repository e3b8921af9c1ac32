"""
Pytest configuration and shared fixtures for syncforge tests.
"""

import logging
import os
import socket
import sqlite3
from pathlib import Path
from typing import Dict, List

import pytest

from syncforge.config import ConnectionTarget, SyncForgeConfig
from syncforge.schema.models import (
    ColumnDescriptor,
    IndexDescriptor,
    SchemaSnapshot,
    TableSnapshot,
)
from syncforge.statements import Dialect


# ============================================================================
# Schema Snapshot Fixtures
# ============================================================================

def make_orders_table(with_status: bool = True) -> TableSnapshot:
    """Build the orders table used across the schema tests."""
    columns = [
        ColumnDescriptor("id", "int", is_nullable=False, key="PRI",
                         extra="auto_increment", position=1),
        ColumnDescriptor("customer", "varchar(100)", is_nullable=False, position=2),
        ColumnDescriptor("total", "decimal(10,2)", default="0.00", position=3),
    ]
    if with_status:
        columns.append(
            ColumnDescriptor("status", "varchar(20)", is_nullable=False,
                             default="new", position=4)
        )
    return TableSnapshot(
        name="orders",
        create_sql="CREATE TABLE `orders` (`id` int NOT NULL AUTO_INCREMENT)",
        columns=columns,
        indexes=[
            IndexDescriptor("PRIMARY", "id", non_unique=False),
            IndexDescriptor("idx_customer", "customer"),
        ],
    )


@pytest.fixture
def orders_factory():
    """Factory building fresh orders tables."""
    return make_orders_table


@pytest.fixture
def orders_table() -> TableSnapshot:
    """Orders table with a status column."""
    return make_orders_table()


@pytest.fixture
def source_schema() -> SchemaSnapshot:
    """Source database: orders with status, plus a customers table."""
    snapshot = SchemaSnapshot(database="app_dev")
    snapshot.add_table(make_orders_table(with_status=True))
    snapshot.add_table(TableSnapshot(
        name="customers",
        create_sql="CREATE TABLE `customers` (`id` int NOT NULL)",
        columns=[ColumnDescriptor("id", "int", is_nullable=False, key="PRI", position=1)],
        indexes=[IndexDescriptor("PRIMARY", "id", non_unique=False)],
    ))
    return snapshot


@pytest.fixture
def target_schema() -> SchemaSnapshot:
    """Target database: orders without status, plus a legacy table."""
    snapshot = SchemaSnapshot(database="app")
    snapshot.add_table(make_orders_table(with_status=False))
    snapshot.add_table(TableSnapshot(
        name="legacy_audit",
        create_sql="CREATE TABLE `legacy_audit` (`id` int)",
        columns=[ColumnDescriptor("id", "int", position=1)],
    ))
    return snapshot


# ============================================================================
# Row Fixtures
# ============================================================================

@pytest.fixture
def user_columns() -> List[str]:
    return ["id", "name", "email"]


@pytest.fixture
def source_users() -> List[Dict]:
    """Source rows of a users table."""
    return [
        {"id": 1, "name": "Alice", "email": "alice@example.com"},
        {"id": 2, "name": "Bob", "email": "bob@example.com"},
        {"id": 3, "name": "Carol", "email": "carol@example.com"},
    ]


@pytest.fixture
def target_users() -> List[Dict]:
    """Target rows: Bob's email is stale, Carol is missing, Dave is extra."""
    return [
        {"id": 1, "name": "Alice", "email": "alice@example.com"},
        {"id": 2, "name": "Bob", "email": "bob@old.example.com"},
        {"id": 4, "name": "Dave", "email": "dave@example.com"},
    ]


# ============================================================================
# SQLite Database Fixtures
# ============================================================================

SOURCE_DDL = [
    """CREATE TABLE users (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT,
        status TEXT DEFAULT 'active'
    )""",
    "CREATE INDEX idx_users_email ON users (email)",
    """CREATE TABLE order_items (
        order_id INTEGER NOT NULL,
        line_no INTEGER NOT NULL,
        sku TEXT,
        PRIMARY KEY (order_id, line_no)
    )""",
    "CREATE TABLE event_log (message TEXT)",
]

TARGET_DDL = [
    """CREATE TABLE users (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT,
        status TEXT DEFAULT 'active',
        legacy_flag INTEGER
    )""",
    "CREATE TABLE old_sessions (token TEXT PRIMARY KEY)",
    "CREATE TABLE event_log (message TEXT)",
]


def _create_database(path: Path, statements: List[str], rows: Dict[str, List[tuple]]) -> str:
    conn = sqlite3.connect(path)
    try:
        for statement in statements:
            conn.execute(statement)
        for table, values in rows.items():
            placeholders = ", ".join("?" for _ in values[0])
            conn.executemany(f"INSERT INTO {table} VALUES ({placeholders})", values)
        conn.commit()
    finally:
        conn.close()
    return str(path)


@pytest.fixture
def source_db(tmp_path) -> str:
    """SQLite file standing in for the source database."""
    return _create_database(
        tmp_path / "source.db",
        SOURCE_DDL,
        {
            "users": [
                (1, "Alice", "alice@example.com", "active"),
                (2, "Bob", "bob@example.com", "active"),
                (3, "O'Brien", "obrien@example.com", "active"),
            ],
            "order_items": [(10, 1, "SKU-1"), (10, 2, "SKU-2")],
        },
    )


@pytest.fixture
def target_db(tmp_path) -> str:
    """SQLite file standing in for the target database."""
    return _create_database(
        tmp_path / "target.db",
        TARGET_DDL,
        {
            "users": [
                (1, "Alice", "alice@example.com", "active", 0),
                (2, "Bob", "bob@old.example.com", "active", 0),
                (4, "Dave", "dave@example.com", "active", 1),
            ],
        },
    )


@pytest.fixture
def source_target(source_db) -> ConnectionTarget:
    return ConnectionTarget(dialect=Dialect.SQLITE, file_path=source_db)


@pytest.fixture
def target_target(target_db) -> ConnectionTarget:
    return ConnectionTarget(dialect=Dialect.SQLITE, file_path=target_db)


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def config_file(tmp_path, source_db, target_db) -> str:
    """Configuration file with two SQLite profiles and one MySQL profile."""
    config = SyncForgeConfig(
        connections={
            "source": ConnectionTarget(dialect=Dialect.SQLITE, file_path=source_db),
            "target": ConnectionTarget(dialect=Dialect.SQLITE, file_path=target_db),
            "remote": ConnectionTarget(
                dialect=Dialect.MYSQL, host="db.internal", user="app", database="app"
            ),
        }
    )
    path = tmp_path / "config.yaml"
    config.to_yaml(path)
    return str(path)


# ============================================================================
# Environment Setup
# ============================================================================

@pytest.fixture(autouse=True)
def setup_test_environment():
    """Keep SYNCFORGE_* variables from the host out of the tests."""
    original_env = dict(os.environ)
    for key in list(os.environ):
        if key.startswith("SYNCFORGE_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def reset_syncforge_logger():
    """Drop handlers installed by CLI invocations; their streams die with the runner."""
    yield
    logger = logging.getLogger("syncforge")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


# ============================================================================
# Docker Compose Integration Test Fixtures
# ============================================================================

def is_port_open(host: str, port: int) -> bool:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(1)
            return sock.connect_ex((host, port)) == 0
    except OSError:
        return False


@pytest.fixture
def live_postgres() -> ConnectionTarget:
    """PostgreSQL from docker-compose.test.yml; skipped when it is not running."""
    if not is_port_open("localhost", 15432):
        pytest.skip("PostgreSQL test server not running on port 15432")
    return ConnectionTarget(
        dialect=Dialect.POSTGRESQL,
        host="localhost",
        port=15432,
        user="syncforge_test",
        password="test_password_123",
        database="syncforge_test_db",
    )


@pytest.fixture
def live_mysql() -> ConnectionTarget:
    """MySQL from docker-compose.test.yml; skipped when it is not running."""
    if not is_port_open("localhost", 13306):
        pytest.skip("MySQL test server not running on port 13306")
    return ConnectionTarget(
        dialect=Dialect.MYSQL,
        host="127.0.0.1",
        port=13306,
        user="syncforge_test",
        password="test_password_123",
        database="syncforge_test_db",
    )


@pytest.fixture(autouse=True)
def mark_integration_tests(request):
    """
    Automatically mark tests in integration directory.
    """
    if "integration" in str(request.fspath):
        request.node.add_marker(pytest.mark.integration)
