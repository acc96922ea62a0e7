"""Command line interface for chisme."""

from chisme.cli.main import app

__all__ = ["app"]
