"""Parsers for ``apt list`` output.

Typical lines look like::

    Listing...
    libc6/now 2.27-3ubuntu1.2 amd64 [installed]
    vim/focal-updates 2:8.1.2269-1ubuntu5.23 amd64 [upgradable from: 2:8.1.2269-1ubuntu5.22]
    zsh/focal 5.8-3ubuntu1 amd64

Banner and warning lines are skipped; anything else that does not match
the ``name/suite version arch [state]`` shape is a parse error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

import structlog

from chisme.core.errors import ParseError
from chisme.core.models import Package

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Lines apt prints around the actual listing
NOISE_PREFIXES = ("WARNING", "Listing...")

MIN_FIELDS = 3
UPGRADABLE_FIELDS = 6


class SkipLine(Exception):  # noqa: N818
    """Raised by line parsers for lines that carry no record."""


def parse_output(lines: Iterable[str], parse_line: Callable[[str], T]) -> list[T]:
    """Parse every line of a command's output.

    Args:
        lines: Output lines.
        parse_line: Parser for one line. It raises SkipLine for lines to
            ignore and ParseError for malformed ones.

    Returns:
        Parsed records in output order.

    Raises:
        ParseError: On the first malformed line.
    """
    records: list[T] = []
    for line in lines:
        try:
            records.append(parse_line(line))
        except SkipLine:
            continue
    return records


def should_skip_line(line: str) -> bool:
    """Check whether a line is empty or an apt banner/warning."""
    return not line or line.startswith(NOISE_PREFIXES)


def is_installed(line: str) -> bool:
    """Check whether the line describes an installed package."""
    return "installed" in line or "upgradable" in line


def extract_name(fields: list[str], line: str) -> str:
    """Extract the package name from the ``name/suite`` field."""
    parts = fields[0].split("/")
    if len(parts) < 2:
        raise ParseError("failed to extract package name from line", line)
    return parts[0]


def extract_candidate_version(fields: list[str], line: str) -> str:
    """Return the version the backend offers (second field)."""
    if len(fields) < 2 or not fields[1]:
        raise ParseError("version field is missing", line)
    return fields[1]


def extract_installed_version(fields: list[str], candidate_version: str, line: str) -> str:
    """Return the installed version of an installed package.

    Upgradable lines carry it in an ``[upgradable from: X]`` annotation;
    for plain ``[installed]`` lines it equals the candidate version.
    """
    if len(fields) == UPGRADABLE_FIELDS:
        version = fields[5].split("]")[0]
        if version:
            return version
    if candidate_version:
        return candidate_version
    raise ParseError("cannot find the installed version", line)


def parse_package_line(line: str) -> Package:
    """Parse one line of ``apt list`` output into a Package.

    Raises:
        SkipLine: For empty, banner and warning lines.
        ParseError: For malformed lines.
    """
    if should_skip_line(line):
        logger.debug("skipping_line", line=line)
        raise SkipLine(line)

    fields = line.split()
    if len(fields) < MIN_FIELDS:
        raise ParseError("unexpected number of fields in line", line)

    name = extract_name(fields, line)
    candidate_version = extract_candidate_version(fields, line)

    installed = is_installed(line)
    installed_version = ""
    if installed:
        installed_version = extract_installed_version(fields, candidate_version, line)

    return Package(
        name=name,
        candidate_version=candidate_version,
        installed_version=installed_version,
        installed=installed,
    )
