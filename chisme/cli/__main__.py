"""Allow running the CLI with ``python -m chisme.cli``."""

from chisme.cli.main import app

app()
