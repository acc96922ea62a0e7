"""Opening the package database."""

from __future__ import annotations

import os
from pathlib import Path

import duckdb
import structlog

from chisme.store.schema import initialize_schema

logger = structlog.get_logger(__name__)

DB_FILENAME = "packages.duckdb"


def get_default_db_path() -> Path:
    """Get the default database path following the XDG Base Directory spec.

    Uses ``$XDG_DATA_HOME/chisme/packages.duckdb``, falling back to
    ``~/.local/share`` when the variable is unset.
    """
    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    base_dir = Path(xdg_data_home) if xdg_data_home else Path.home() / ".local" / "share"
    return base_dir / "chisme" / DB_FILENAME


class DatabaseConnection:
    """Owns the DuckDB connection behind a PackageStore.

    The database file and its parent directory are created on first
    connect, and the package schema is brought up to date.

    Example:
        >>> with DatabaseConnection(Path("/tmp/packages.duckdb")) as conn:
        ...     PackageStore(conn).get_all()
        []
    """

    def __init__(self, db_path: Path | None = None) -> None:
        """Initialize the connection manager.

        Args:
            db_path: Database file. Defaults to the XDG data directory.
        """
        self.db_path = db_path or get_default_db_path()
        self._connection: duckdb.DuckDBPyConnection | None = None

    def connect(self) -> duckdb.DuckDBPyConnection:
        """Open the database, or return the connection already open."""
        if self._connection is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = duckdb.connect(str(self.db_path))
            initialize_schema(self._connection)
            logger.debug("package_database_opened", path=str(self.db_path))
        return self._connection

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._connection is None:
            return
        self._connection.close()
        self._connection = None
        logger.debug("package_database_closed", path=str(self.db_path))

    def __enter__(self) -> duckdb.DuckDBPyConnection:
        return self.connect()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()
