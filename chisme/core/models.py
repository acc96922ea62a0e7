"""Core data models for chisme.

Execution requests and connection settings are frozen dataclasses that
are validated on construction. Package records are Pydantic models so
they can be dumped to JSON by the CLI and round-tripped through the
package store.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime  # noqa: TC003 - needed at runtime by Pydantic
from typing import Any, BinaryIO

from pydantic import BaseModel, Field

from .elevation import apply_elevation
from .errors import ConfigValidationError

DEFAULT_CONNECT_TIMEOUT = 10.0


@dataclass(frozen=True)
class ExecutionRequest:
    """A command to run through a command runner.

    Attributes:
        command: Shell-interpretable command line.
        elevated: Whether the command must run with superuser privileges.
        input: Optional data fed to the command's standard input, either
            raw bytes or a readable binary stream (e.g. a sudo password).
    """

    command: str
    elevated: bool = False
    input: bytes | BinaryIO | None = None

    def __post_init__(self) -> None:
        """Validate the request."""
        if not self.command or not self.command.strip():
            raise ValueError("command cannot be empty")

    def with_command(self, command: str) -> ExecutionRequest:
        """Return a copy of this request running a different command."""
        return dataclasses.replace(self, command=command)

    def elevate(self, askpass_path: str | None = None) -> ExecutionRequest:
        """Return a copy of this request whose command runs through sudo.

        See ``apply_elevation`` for the two rewrite strategies.
        """
        return self.with_command(apply_elevation(self.command, askpass_path))

    def read_input(self) -> bytes | None:
        """Return the request input as bytes.

        Streams are read to the end, so a stream-backed request can only
        supply its input once.
        """
        if self.input is None:
            return None
        if isinstance(self.input, bytes | bytearray):
            return bytes(self.input)
        return self.input.read()


@dataclass(frozen=True)
class RemoteConnectionConfig:
    """Connection settings for a remote host reached over SSH.

    Attributes:
        host: Host name or address.
        port: SSH port.
        user: Login user.
        private_key: Raw private key bytes (PEM or OpenSSH format).
        private_key_password: Optional passphrase protecting the key.
        known_hosts: Path to a known_hosts file. None disables host key
            verification and accepts any key the server presents.
        connect_timeout: Seconds allowed for establishing the connection.
    """

    host: str
    port: int
    user: str
    private_key: bytes = dataclasses.field(repr=False)
    private_key_password: str | None = dataclasses.field(default=None, repr=False)
    known_hosts: str | None = None
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT

    def __post_init__(self) -> None:
        """Validate that every required field is present."""
        if not self.host:
            raise ConfigValidationError("host is required")
        if not self.port:
            raise ConfigValidationError("port is required")
        if not 0 < self.port < 65536:
            raise ConfigValidationError(f"port must be between 1 and 65535, got {self.port}")
        if not self.user:
            raise ConfigValidationError("user is required")
        if not self.private_key:
            raise ConfigValidationError("private key is required")
        if self.connect_timeout <= 0:
            raise ConfigValidationError(
                f"connect_timeout must be > 0, got {self.connect_timeout}"
            )
        if isinstance(self.private_key, str):
            object.__setattr__(self, "private_key", self.private_key.encode())

    @property
    def address(self) -> str:
        """Return ``host:port`` for log and error messages."""
        return f"{self.host}:{self.port}"


_IDENTITY_FIELDS = ("name", "installed_version", "candidate_version", "installed")


class Package(BaseModel):
    """A package as reported by a package backend.

    Two packages are equal when their name, versions and installed flag
    match, regardless of any persistence fields.
    """

    name: str = Field(..., description="Package name")
    installed_version: str = Field(default="", description="Installed version, empty if absent")
    candidate_version: str = Field(..., description="Version the backend offers")
    installed: bool = Field(default=False, description="Whether the package is installed")

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Package):
            return NotImplemented
        return all(getattr(self, f) == getattr(other, f) for f in _IDENTITY_FIELDS)

    @property
    def is_upgradable(self) -> bool:
        """Whether the candidate version differs from the installed one."""
        return self.installed and self.installed_version != self.candidate_version

    def __str__(self) -> str:
        return (
            f"Package(name={self.name!r}, installed_version={self.installed_version!r}, "
            f"candidate_version={self.candidate_version!r}, installed={self.installed})"
        )


class StoredPackage(Package):
    """A package record owned by the package store."""

    id: int | None = Field(default=None, description="Store primary key")
    last_updated: datetime | None = Field(default=None, description="Last update time")

    @classmethod
    def from_package(cls, package: Package, **kwargs: Any) -> StoredPackage:
        """Create a stored record from a backend package."""
        data = {f: getattr(package, f) for f in _IDENTITY_FIELDS}
        data.update(kwargs)
        return cls(**data)

    def deep_equals(self, other: StoredPackage) -> bool:
        """Compare every field, including id and last_updated."""
        return self == other and self.id == other.id and self.last_updated == other.last_updated
