"""Tests for the apt output parser."""

from __future__ import annotations

import pytest

from chisme.backends.parser import (
    SkipLine,
    extract_installed_version,
    parse_output,
    parse_package_line,
    should_skip_line,
)
from chisme.core.errors import ParseError
from chisme.core.models import Package


class TestParsePackageLine:
    """Tests for parse_package_line."""

    def test_installed_line(self) -> None:
        """Test an installed package uses its version for both fields."""
        pkg = parse_package_line("libc6/now 2.27-3ubuntu1.2 amd64 [installed]")

        assert pkg == Package(
            name="libc6",
            installed_version="2.27-3ubuntu1.2",
            candidate_version="2.27-3ubuntu1.2",
            installed=True,
        )

    def test_installed_local_line(self) -> None:
        """Test the ``[installed,local]`` form."""
        pkg = parse_package_line("mypkg/now 1.0 all [installed,local]")

        assert pkg.installed
        assert pkg.installed_version == "1.0"

    def test_upgradable_line(self) -> None:
        """Test an upgradable package takes the installed version from the annotation."""
        pkg = parse_package_line(
            "libc6/now 2.27-3ubuntu1.2 amd64 [upgradable from: 2.27-3ubuntu1.1]"
        )

        assert pkg == Package(
            name="libc6",
            installed_version="2.27-3ubuntu1.1",
            candidate_version="2.27-3ubuntu1.2",
            installed=True,
        )
        assert pkg.is_upgradable

    def test_upgradable_with_epoch(self) -> None:
        """Test versions with an epoch are kept verbatim."""
        pkg = parse_package_line(
            "vim/focal-updates 2:8.1.2269-1ubuntu5.23 amd64 "
            "[upgradable from: 2:8.1.2269-1ubuntu5.22]"
        )

        assert pkg.name == "vim"
        assert pkg.candidate_version == "2:8.1.2269-1ubuntu5.23"
        assert pkg.installed_version == "2:8.1.2269-1ubuntu5.22"

    def test_not_installed_line(self) -> None:
        """Test a package that is only available."""
        pkg = parse_package_line("zsh/focal 5.8-3ubuntu1 amd64")

        assert pkg == Package(name="zsh", candidate_version="5.8-3ubuntu1")
        assert not pkg.installed
        assert pkg.installed_version == ""

    @pytest.mark.parametrize(
        "line",
        [
            "",
            "Listing...",
            "Listing... Done",
            "WARNING: apt does not have a stable CLI interface. Use with caution in scripts.",
        ],
    )
    def test_skipped_lines(self, line: str) -> None:
        """Test blank and banner lines are skipped, not errors."""
        assert should_skip_line(line)
        with pytest.raises(SkipLine):
            parse_package_line(line)

    @pytest.mark.parametrize("line", ["foo", "foo bar", "libc6/now 2.27"])
    def test_too_few_fields(self, line: str) -> None:
        """Test fewer than three fields is a parse error naming the line."""
        with pytest.raises(ParseError, match="unexpected number of fields") as exc_info:
            parse_package_line(line)

        assert exc_info.value.line == line

    def test_missing_suite(self) -> None:
        """Test a name field without a slash is a parse error."""
        with pytest.raises(ParseError, match="package name"):
            parse_package_line("libc6 2.27 amd64 [installed]")

    def test_installed_version_fallback(self) -> None:
        """Test the candidate version is used when the annotation is absent."""
        fields = ["a/b", "1.0", "amd64", "[installed]"]
        assert extract_installed_version(fields, "1.0", "line") == "1.0"

    def test_installed_version_missing(self) -> None:
        """Test neither source of the installed version is a parse error."""
        fields = ["a/b", "", "amd64", "[installed]", "x", "]"]
        with pytest.raises(ParseError, match="installed version"):
            extract_installed_version(fields, "", "line")


class TestParseOutput:
    """Tests for the generic parse_output driver."""

    def test_full_listing(self) -> None:
        """Test a realistic apt list output."""
        lines = [
            "",
            "WARNING: apt does not have a stable CLI interface. Use with caution in scripts.",
            "",
            "Listing...",
            "libc6/now 2.27-3ubuntu1.2 amd64 [upgradable from: 2.27-3ubuntu1.1]",
            "vim/focal 2:8.1 amd64 [installed]",
            "zsh/focal 5.8-3ubuntu1 amd64",
        ]

        packages = parse_output(lines, parse_package_line)

        assert [pkg.name for pkg in packages] == ["libc6", "vim", "zsh"]

    def test_first_failure_raises(self) -> None:
        """Test the first malformed line aborts parsing."""
        lines = ["vim/focal 2:8.1 amd64 [installed]", "bad line", "also bad"]

        with pytest.raises(ParseError) as exc_info:
            parse_output(lines, parse_package_line)

        assert exc_info.value.line == "bad line"

    def test_empty_output(self) -> None:
        """Test no lines gives no records."""
        assert parse_output([], parse_package_line) == []

    def test_custom_line_parser(self) -> None:
        """Test the driver works with any line parser."""

        def parse(line: str) -> int:
            if line.startswith("#"):
                raise SkipLine(line)
            return int(line)

        assert parse_output(["1", "# comment", "2"], parse) == [1, 2]
