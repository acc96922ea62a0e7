"""Repository for package records."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import duckdb
import structlog

from chisme.core.errors import PackageNotFoundError, StoreError
from chisme.core.models import StoredPackage

if TYPE_CHECKING:
    from collections.abc import Iterator

    from chisme.core.models import Package

logger = structlog.get_logger(__name__)

_COLUMNS = "id, name, installed_version, candidate_version, installed, last_updated"


def _to_db_time(when: datetime | None) -> datetime | None:
    if when is None:
        return None
    if when.tzinfo is None:
        return when
    return when.astimezone(UTC).replace(tzinfo=None)


def _from_db_time(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=UTC)


def _row_to_package(row: tuple) -> StoredPackage:
    return StoredPackage(
        id=row[0],
        name=row[1],
        installed_version=row[2],
        candidate_version=row[3],
        installed=row[4],
        last_updated=_from_db_time(row[5]),
    )


class PackageStore:
    """Persists packages reported by a backend, keyed by name.

    Example:
        >>> store = PackageStore(connection)
        >>> package_id = store.save(Package(name="vim", candidate_version="9.0"))
        >>> store.get(package_id).name
        'vim'
    """

    def __init__(self, connection: duckdb.DuckDBPyConnection) -> None:
        """Initialize the store.

        Args:
            connection: DuckDB connection with the package schema.
        """
        self._conn = connection

    def save(self, package: Package) -> int:
        """Insert a new package record.

        Args:
            package: Package to insert.

        Returns:
            The id assigned to the record.

        Raises:
            StoreError: If a package with the same name already exists.
        """
        last_updated = getattr(package, "last_updated", None)
        try:
            row = self._conn.execute(
                """
                INSERT INTO packages (name, installed_version, candidate_version,
                                      installed, last_updated)
                VALUES (?, ?, ?, ?, ?)
                RETURNING id
                """,
                [
                    package.name,
                    package.installed_version,
                    package.candidate_version,
                    package.installed,
                    _to_db_time(last_updated),
                ],
            ).fetchone()
        except duckdb.ConstraintException as e:
            raise StoreError(f"Package {package.name!r} already exists") from e

        package_id = int(row[0])
        logger.debug("package_saved", package=package.name, id=package_id)
        return package_id

    def update(self, package: Package) -> None:
        """Update the versions and installed flag of a record, by name.

        Raises:
            PackageNotFoundError: If no record has the package's name.
        """
        row = self._conn.execute(
            """
            UPDATE packages SET
                installed_version = ?,
                candidate_version = ?,
                installed = ?
            WHERE name = ?
            RETURNING id
            """,
            [package.installed_version, package.candidate_version, package.installed, package.name],
        ).fetchone()
        if row is None:
            raise PackageNotFoundError(f"Package {package.name!r} not found")
        logger.debug("package_updated", package=package.name)

    def update_last_updated(self, package: Package, when: datetime | None = None) -> None:
        """Stamp the time a package was last updated.

        Args:
            package: Package whose record to stamp, looked up by name.
            when: Update time (default: now, UTC).

        Raises:
            PackageNotFoundError: If no record has the package's name.
        """
        when = when or datetime.now(tz=UTC)
        row = self._conn.execute(
            "UPDATE packages SET last_updated = ? WHERE name = ? RETURNING id",
            [_to_db_time(when), package.name],
        ).fetchone()
        if row is None:
            raise PackageNotFoundError(f"Package {package.name!r} not found")
        logger.debug("package_last_updated_set", package=package.name, when=when.isoformat())

    def get(self, package_id: int) -> StoredPackage:
        """Get a record by id.

        Raises:
            PackageNotFoundError: If no record has this id.
        """
        row = self._conn.execute(
            f"SELECT {_COLUMNS} FROM packages WHERE id = ?", [package_id]
        ).fetchone()
        if row is None:
            raise PackageNotFoundError(f"Package with id {package_id} not found")
        return _row_to_package(row)

    def get_by_name(self, name: str) -> StoredPackage:
        """Get a record by package name.

        Raises:
            PackageNotFoundError: If no record has this name.
        """
        row = self._conn.execute(
            f"SELECT {_COLUMNS} FROM packages WHERE name = ?", [name]
        ).fetchone()
        if row is None:
            raise PackageNotFoundError(f"Package {name!r} not found")
        return _row_to_package(row)

    def get_all(self) -> list[StoredPackage]:
        """Get every record, ordered by name."""
        rows = self._conn.execute(f"SELECT {_COLUMNS} FROM packages ORDER BY name").fetchall()
        return [_row_to_package(row) for row in rows]

    def save_or_update(self, package: Package) -> int:
        """Insert the package, or update the existing record with its name.

        The lookup and the write run in one transaction.

        Returns:
            The id of the inserted or updated record.
        """
        with self._transaction():
            try:
                existing = self.get_by_name(package.name)
            except PackageNotFoundError:
                return self.save(package)

            if existing != package:
                self.update(package)
            return existing.id  # type: ignore[return-value]

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        self._conn.begin()
        try:
            yield
        except BaseException:
            self._conn.rollback()
            raise
        self._conn.commit()
