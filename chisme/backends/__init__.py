"""Package manager backends and their output parsers."""

from __future__ import annotations

from chisme.backends.apt import AptBackend
from chisme.backends.parser import SkipLine, parse_output, parse_package_line
from chisme.backends.registry import (
    BackendRegistry,
    available_backends,
    get_backend,
    register_builtin_backends,
)

__all__ = [
    "AptBackend",
    "BackendRegistry",
    "SkipLine",
    "available_backends",
    "get_backend",
    "parse_output",
    "parse_package_line",
    "register_builtin_backends",
]
