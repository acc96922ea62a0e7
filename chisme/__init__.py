"""Chisme: list and update OS packages on the local host or over SSH.

Subpackages:
    core: models, interfaces, channels, configuration and errors
    runners: local subprocess, remote SSH and mock command runners
    backends: package manager adapters (apt) and their output parsers
    store: duckdb persistence of package records
    cli: typer command line interface
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("chisme")
except PackageNotFoundError:
    __version__ = "0.0.0"
