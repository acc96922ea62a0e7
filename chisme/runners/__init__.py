"""Command runners: local subprocesses, remote SSH sessions and a mock."""

from chisme.runners.local import LocalCommandRunner
from chisme.runners.mock import MockCommandRunner
from chisme.runners.remote import RemoteCommandRunner

__all__ = [
    "LocalCommandRunner",
    "MockCommandRunner",
    "RemoteCommandRunner",
]
