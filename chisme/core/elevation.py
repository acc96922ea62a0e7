"""Privilege elevation for commands that must run as root.

Two strategies are supported:

- ask-pass helper: ``SUDO_ASKPASS=<path> sudo -A <command>``. sudo runs
  the helper to obtain the password, no terminal interaction needed.
- stdin: ``sudo -S <command>``. sudo reads the password from standard
  input, which the request supplies through its ``input`` field.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ExecutionRequest

ASKPASS_ENV = "SUDO_ASKPASS"


def apply_elevation(command: str, askpass_path: str | None = None) -> str:
    """Rewrite a command to run through sudo.

    Args:
        command: Command line to elevate.
        askpass_path: Path to an ask-pass helper. When empty, sudo reads
            the password from stdin instead.

    Returns:
        The elevated command line.
    """
    if askpass_path:
        return f"{ASKPASS_ENV}={askpass_path} sudo -A {command}"
    return f"sudo -S {command}"


def elevate_request(
    request: ExecutionRequest, askpass_path: str | None = None
) -> ExecutionRequest:
    """Return the request to dispatch, elevated if it asks for it.

    Non-elevated requests are returned unchanged.
    """
    if not request.elevated:
        return request
    return request.elevate(askpass_path)
