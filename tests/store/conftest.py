"""Shared fixtures for package store tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from chisme.store import DatabaseConnection, PackageStore


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path."""
    return tmp_path / "test_packages.duckdb"


@pytest.fixture
def db_connection(temp_db_path: Path) -> Generator[DatabaseConnection, None, None]:
    """Provide a database connection with initialized schema.

    Yields:
        A connected DatabaseConnection, closed after the test.
    """
    db = DatabaseConnection(temp_db_path)
    db.connect()
    yield db
    db.close()


@pytest.fixture
def store(db_connection: DatabaseConnection) -> PackageStore:
    """Provide a package store on the temporary database."""
    return PackageStore(db_connection.connect())
