"""Chisme core library.

Models, interfaces and utilities shared by the runners, backends, store
and CLI.

Module Overview:
    channel: Bounded, closable async channels for streamed output
    config: YAML/environment configuration (XDG spec compliant)
    elevation: sudo command rewriting for elevated requests
    errors: Exception hierarchy
    interfaces: Abstract base classes for command runners and package managers
    models: Execution requests, connection settings and package records
"""

from chisme.core.channel import DEFAULT_CHANNEL_SIZE, Channel
from chisme.core.config import (
    ConfigManager,
    LogLevel,
    Settings,
    SSHSettings,
    Target,
    YamlConfigLoader,
    apply_env_overrides,
    build_runner,
    get_config_dir,
    get_default_config_path,
)
from chisme.core.elevation import ASKPASS_ENV, apply_elevation, elevate_request
from chisme.core.errors import (
    BackendError,
    ChannelClosedError,
    ChismeError,
    CommandError,
    CommandSpawnError,
    ConfigValidationError,
    ConnectionError,
    ExecutionError,
    PackageNotFoundError,
    ParseError,
    SessionError,
    StoreError,
    StreamReadError,
)
from chisme.core.interfaces import CommandRunner, CommandStream, PackageManager
from chisme.core.models import (
    DEFAULT_CONNECT_TIMEOUT,
    ExecutionRequest,
    Package,
    RemoteConnectionConfig,
    StoredPackage,
)

__all__ = [
    "ASKPASS_ENV",
    "DEFAULT_CHANNEL_SIZE",
    "DEFAULT_CONNECT_TIMEOUT",
    "BackendError",
    "Channel",
    "ChannelClosedError",
    "ChismeError",
    "CommandError",
    "CommandRunner",
    "CommandSpawnError",
    "CommandStream",
    "ConfigManager",
    "ConfigValidationError",
    "ConnectionError",
    "ExecutionError",
    "ExecutionRequest",
    "LogLevel",
    "Package",
    "PackageManager",
    "PackageNotFoundError",
    "ParseError",
    "RemoteConnectionConfig",
    "SSHSettings",
    "SessionError",
    "Settings",
    "StoreError",
    "StoredPackage",
    "StreamReadError",
    "Target",
    "YamlConfigLoader",
    "apply_elevation",
    "apply_env_overrides",
    "build_runner",
    "elevate_request",
    "get_config_dir",
    "get_default_config_path",
]
