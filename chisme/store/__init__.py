"""duckdb persistence for package records."""

from chisme.store.connection import DatabaseConnection, get_default_db_path
from chisme.store.packages import PackageStore
from chisme.store.schema import SCHEMA_VERSION, get_schema_version, initialize_schema

__all__ = [
    "SCHEMA_VERSION",
    "DatabaseConnection",
    "PackageStore",
    "get_default_db_path",
    "get_schema_version",
    "initialize_schema",
]
