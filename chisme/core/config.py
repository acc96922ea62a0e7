"""Configuration management for chisme.

Settings come from a YAML file in the XDG config directory, overridden by
environment variables. The SSH variables (``SSH_HOST``, ``SSH_PORT``,
``SSH_USER``, ``SSH_PRIVATE_KEY_PATH``, ``SSH_PRIVATE_KEY_PASSWORD``)
keep the names used by existing deployments.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigValidationError
from .models import DEFAULT_CONNECT_TIMEOUT, RemoteConnectionConfig

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .interfaces import CommandRunner

logger = structlog.get_logger(__name__)

APP_NAME = "chisme"
DEFAULT_SSH_PORT = 22


class LogLevel(str, Enum):
    """Log level for structlog output."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Target(str, Enum):
    """Where commands run."""

    LOCAL = "local"
    SSH = "ssh"


class SSHSettings(BaseModel):
    """Settings for reaching a remote host over SSH."""

    host: str | None = Field(default=None, description="Remote host name or address")
    port: int = Field(default=DEFAULT_SSH_PORT, description="Remote SSH port")
    user: str | None = Field(default=None, description="Login user")
    private_key_path: Path | None = Field(default=None, description="Path to the private key")
    private_key_password: str | None = Field(
        default=None, description="Passphrase of an encrypted private key"
    )
    known_hosts: Path | None = Field(
        default=None,
        description="known_hosts file used to verify the host key. None = accept any key.",
    )
    connect_timeout: float = Field(
        default=DEFAULT_CONNECT_TIMEOUT, description="Connection timeout in seconds"
    )

    def to_connection_config(self) -> RemoteConnectionConfig:
        """Build a validated connection config, reading the private key file.

        Raises:
            ConfigValidationError: If a required setting is missing or the
                key file cannot be read.
        """
        private_key = b""
        if self.private_key_path is not None:
            try:
                private_key = self.private_key_path.expanduser().read_bytes()
            except OSError as e:
                raise ConfigValidationError(
                    f"cannot read private key {self.private_key_path}: {e}"
                ) from e

        return RemoteConnectionConfig(
            host=self.host or "",
            port=self.port,
            user=self.user or "",
            private_key=private_key,
            private_key_password=self.private_key_password,
            known_hosts=str(self.known_hosts.expanduser()) if self.known_hosts else None,
            connect_timeout=self.connect_timeout,
        )


class Settings(BaseModel):
    """Top-level chisme settings."""

    backend: str = Field(default="apt", description="Package manager backend")
    backend_cli: str | None = Field(
        default=None, description="Executable used by the backend. None = backend default."
    )
    target: Target = Field(default=Target.LOCAL, description="Run commands locally or over SSH")
    askpass_path: str | None = Field(
        default=None, description="SUDO_ASKPASS helper; without it sudo reads stdin"
    )
    use_sudo: bool = Field(default=False, description="Elevate update commands with sudo")
    log_level: LogLevel = Field(default=LogLevel.WARNING, description="Log level")
    database_path: Path | None = Field(
        default=None, description="Package database. None = XDG data directory."
    )
    ssh: SSHSettings = Field(default_factory=SSHSettings)


def get_config_dir() -> Path:
    """Get the configuration directory following the XDG spec.

    Returns:
        Path to the configuration directory.
    """
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg_config_home) if xdg_config_home else Path.home() / ".config"
    return base / APP_NAME


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    return get_config_dir() / "config.yaml"


class YamlConfigLoader:
    """Loads and saves configuration dictionaries as YAML files."""

    def load(self, path: str) -> dict[str, Any]:
        """Load configuration from a YAML file.

        Args:
            path: Path to the configuration file.

        Returns:
            Configuration dictionary, empty for an empty file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            yaml.YAMLError: If the file is not valid YAML.
        """
        config_path = Path(path)

        if not config_path.exists():
            logger.debug("config_file_not_found", path=path)
            raise FileNotFoundError(f"Configuration file not found: {path}")

        data = yaml.safe_load(config_path.read_text())
        if data is None:
            return {}

        return data  # type: ignore[no-any-return]

    def save(self, config: dict[str, Any], path: str) -> None:
        """Save configuration to a YAML file.

        Args:
            config: Configuration dictionary.
            path: Path to save the configuration.
        """
        config_path = Path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        content = yaml.dump(config, default_flow_style=False, sort_keys=False)
        config_path.write_text(content)

        logger.info("config_saved", path=path)


def apply_env_overrides(settings: Settings, environ: Mapping[str, str] | None = None) -> Settings:
    """Return a copy of ``settings`` with environment overrides applied.

    Args:
        settings: Settings loaded from the config file.
        environ: Environment mapping (default: os.environ).

    Raises:
        ConfigValidationError: If an override has an invalid value.
    """
    env = os.environ if environ is None else environ
    data = settings.model_dump()
    ssh = data["ssh"]

    for var, key in (
        ("SSH_HOST", "host"),
        ("SSH_USER", "user"),
        ("SSH_PRIVATE_KEY_PATH", "private_key_path"),
        ("SSH_PRIVATE_KEY_PASSWORD", "private_key_password"),
        ("SSH_KNOWN_HOSTS", "known_hosts"),
    ):
        if env.get(var):
            ssh[key] = env[var]

    port = env.get("SSH_PORT")
    if port:
        try:
            ssh["port"] = int(port)
        except ValueError:
            logger.warning("invalid_ssh_port_ignored", value=port)

    askpass = env.get("CHISME_ASKPASS") or env.get("SUDO_ASKPASS")
    if askpass:
        data["askpass_path"] = askpass

    for var, key in (
        ("CHISME_BACKEND", "backend"),
        ("CHISME_TARGET", "target"),
        ("CHISME_DATABASE", "database_path"),
        ("CHISME_LOG_LEVEL", "log_level"),
    ):
        if env.get(var):
            data[key] = env[var].lower() if key in ("target", "log_level") else env[var]

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid environment override: {e}") from e


class ConfigManager:
    """Manages application configuration.

    Loads the YAML file (falling back to defaults when it is absent) and
    applies environment overrides on top.
    """

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize the configuration manager.

        Args:
            config_path: Optional path to configuration file.
                        Uses default path if not provided.
        """
        self.config_path = config_path or get_default_config_path()
        self._loader = YamlConfigLoader()
        self._settings: Settings | None = None

    def load(self, *, use_env: bool = True) -> Settings:
        """Load settings from the config file and the environment.

        Args:
            use_env: Apply environment overrides after the file.

        Returns:
            Loaded Settings, defaults if the file doesn't exist.

        Raises:
            ConfigValidationError: If the file or an override is invalid.
        """
        try:
            data = self._loader.load(str(self.config_path))
            settings = self._parse(data)
        except FileNotFoundError:
            logger.debug("using_default_config")
            settings = Settings()
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Invalid YAML in {self.config_path}: {e}") from e

        if use_env:
            settings = apply_env_overrides(settings)

        self._settings = settings
        return settings

    def get_settings(self) -> Settings:
        """Get the current settings, loading them if needed."""
        if self._settings is None:
            return self.load()
        return self._settings

    def save(self, settings: Settings | None = None) -> None:
        """Save settings to the config file.

        Args:
            settings: Settings to save. Uses current settings if not provided.
        """
        if settings is not None:
            self._settings = settings
        if self._settings is None:
            self._settings = Settings()

        data = self._settings.model_dump(mode="json", exclude_none=True)
        self._loader.save(data, str(self.config_path))

    def init_config(self, force: bool = False) -> bool:
        """Initialize a new configuration file with defaults.

        Args:
            force: If True, overwrite existing configuration.

        Returns:
            True if configuration was created, False if it already exists.
        """
        if self.config_path.exists() and not force:
            logger.info("config_exists", path=str(self.config_path))
            return False

        self.save(Settings())
        logger.info("config_initialized", path=str(self.config_path))
        return True

    def _parse(self, data: dict[str, Any]) -> Settings:
        if not isinstance(data, dict):
            raise ConfigValidationError(
                f"Invalid configuration in {self.config_path}: not a mapping"
            )
        try:
            return Settings.model_validate(data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration in {self.config_path}: {e}") from e


def build_runner(settings: Settings) -> CommandRunner:
    """Create the command runner for the configured target.

    Raises:
        ConfigValidationError: If the SSH settings are incomplete.
    """
    from chisme.runners import LocalCommandRunner, RemoteCommandRunner

    if settings.target is Target.SSH:
        config = settings.ssh.to_connection_config()
        logger.debug("using_remote_runner", host=config.host, port=config.port)
        return RemoteCommandRunner(config, askpass_path=settings.askpass_path)

    return LocalCommandRunner(askpass_path=settings.askpass_path)
