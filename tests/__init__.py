"""
Test suite for syncforge.

This package contains tests for all syncforge components:
- Unit tests for the comparators, statement rendering and configuration
- SQLite-backed tests for the adapters, service and CLI
- Integration tests against live MySQL and PostgreSQL servers
"""
