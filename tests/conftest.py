"""Shared test fixtures."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest
import structlog

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path

_ENV_VARS = (
    "SSH_HOST",
    "SSH_PORT",
    "SSH_USER",
    "SSH_PRIVATE_KEY_PATH",
    "SSH_PRIVATE_KEY_PASSWORD",
    "SSH_KNOWN_HOSTS",
    "SUDO_ASKPASS",
    "CHISME_ASKPASS",
    "CHISME_BACKEND",
    "CHISME_TARGET",
    "CHISME_DATABASE",
    "CHISME_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Path, None, None]:
    """Isolate tests from the user's config, data directory and SSH variables.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to temporary directories so
    that tests never read ~/.config/chisme or write ~/.local/share/chisme.
    """
    config_home = tmp_path / "xdg_config"
    data_home = tmp_path / "xdg_data"
    config_home.mkdir()
    data_home.mkdir()

    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("XDG_DATA_HOME", str(data_home))
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    yield tmp_path

    # The CLI points structlog and the root logger at its captured stderr
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
