"""Tests for privilege elevation."""

from __future__ import annotations

import pytest

from chisme.core.elevation import apply_elevation, elevate_request
from chisme.core.models import ExecutionRequest


class TestApplyElevation:
    """Tests for apply_elevation."""

    @pytest.mark.parametrize(
        ("askpass", "command", "expected"),
        [
            ("/p", "ls", "SUDO_ASKPASS=/p sudo -A ls"),
            (
                "/usr/bin/ssh-askpass",
                "apt update",
                "SUDO_ASKPASS=/usr/bin/ssh-askpass sudo -A apt update",
            ),
            (None, "ls", "sudo -S ls"),
            ("", "apt upgrade -y", "sudo -S apt upgrade -y"),
        ],
    )
    def test_rewrite(self, askpass: str | None, command: str, expected: str) -> None:
        """Test the askpass and stdin strategies."""
        assert apply_elevation(command, askpass) == expected


class TestElevateRequest:
    """Tests for elevate_request."""

    def test_not_elevated_unchanged(self) -> None:
        """Test a non-elevated request is returned as is."""
        request = ExecutionRequest(command="ls")
        assert elevate_request(request, "/p") is request

    def test_elevated_rewritten(self) -> None:
        """Test an elevated request gets a sudo command and keeps its input."""
        request = ExecutionRequest(command="ls", elevated=True, input=b"pw\n")
        elevated = elevate_request(request, None)

        assert elevated.command == "sudo -S ls"
        assert elevated.input == b"pw\n"
        assert request.command == "ls"

    def test_deterministic(self) -> None:
        """Test the same inputs always produce the same command."""
        request = ExecutionRequest(command="ls", elevated=True)
        assert elevate_request(request, "/p") == elevate_request(request, "/p")
