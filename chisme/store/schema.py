"""Schema definitions for the package database.

Schema changes are tracked in the ``schema_version`` table; bump
SCHEMA_VERSION and add the new statements when the layout changes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import duckdb
import structlog

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

logger = structlog.get_logger(__name__)

SCHEMA_VERSION = 1


def get_schema_version(conn: DuckDBPyConnection) -> int:
    """Get the current schema version from the database.

    Args:
        conn: DuckDB connection.

    Returns:
        The current schema version, or 0 for an uninitialized database.
    """
    try:
        result = conn.execute(
            "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
        ).fetchone()
    except duckdb.CatalogException:
        # Table doesn't exist
        return 0
    return result[0] if result else 0


def initialize_schema(conn: DuckDBPyConnection) -> None:
    """Create the package tables if they don't exist.

    Idempotent: safe to call on every connection.

    Args:
        conn: DuckDB connection.
    """
    current_version = get_schema_version(conn)
    if current_version >= SCHEMA_VERSION:
        return

    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            description VARCHAR
        )
    """)

    conn.execute("CREATE SEQUENCE IF NOT EXISTS packages_id_seq START 1")

    # last_updated holds naive UTC timestamps
    conn.execute("""
        CREATE TABLE IF NOT EXISTS packages (
            id BIGINT PRIMARY KEY DEFAULT nextval('packages_id_seq'),
            name VARCHAR NOT NULL UNIQUE,
            installed_version VARCHAR NOT NULL DEFAULT '',
            candidate_version VARCHAR NOT NULL,
            installed BOOLEAN NOT NULL DEFAULT FALSE,
            last_updated TIMESTAMP
        )
    """)

    if current_version == 0:
        conn.execute(
            "INSERT INTO schema_version (version, description) VALUES (?, ?)",
            [SCHEMA_VERSION, "Initial schema creation"],
        )
    logger.debug("schema_initialized", version=SCHEMA_VERSION)
