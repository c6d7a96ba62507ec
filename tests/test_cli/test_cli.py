"""Tests for syncache.cli.

Exercises the Typer CLI app via CliRunner, covering the version flag,
the info command and the simulate command's success and failure paths.
"""

from __future__ import annotations

import sys

from typer.testing import CliRunner

from syncache import __version__
from syncache.cli import app

runner = CliRunner()

# ---------------------------------------------------------------------------
# main callback (--version)
# ---------------------------------------------------------------------------


class TestMainCallback:
    """The root callback with --version flag.

    ``--version`` must be paired with a subcommand for the callback to run;
    invoking with no subcommand results in exit code 2.
    """

    def test_version_flag_prints_version_and_exits(self) -> None:
        result = runner.invoke(app, ["--version", "info"])
        assert result.exit_code == 0
        assert "syncache" in result.output
        assert __version__ in result.output

    def test_short_version_flag(self) -> None:
        result = runner.invoke(app, ["-v", "info"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_no_subcommand_exits_with_error(self) -> None:
        result = runner.invoke(app, [])
        assert result.exit_code == 2

    def test_help_flag(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "info" in result.output
        assert "simulate" in result.output


# ---------------------------------------------------------------------------
# info command
# ---------------------------------------------------------------------------


class TestInfoCommand:
    """The ``info`` subcommand."""

    def test_info_runs_successfully(self) -> None:
        result = runner.invoke(app, ["info"])
        assert result.exit_code == 0

    def test_info_shows_version(self) -> None:
        result = runner.invoke(app, ["info"])
        assert __version__ in result.output

    def test_info_shows_python_version(self) -> None:
        result = runner.invoke(app, ["info"])
        assert sys.version.split()[0] in result.output

    def test_info_shows_dependencies_and_defaults(self) -> None:
        result = runner.invoke(app, ["info"])
        assert "pydantic" in result.output
        assert "300s" in result.output


# ---------------------------------------------------------------------------
# simulate command
# ---------------------------------------------------------------------------


class TestSimulateCommand:
    """The ``simulate`` subcommand."""

    def test_success_without_failures(self) -> None:
        result = runner.invoke(app, ["simulate", "--base-delay", "0"])
        assert result.exit_code == 0
        assert "value after 1 attempt(s)" in result.output

    def test_recovers_within_retry_budget(self) -> None:
        result = runner.invoke(
            app, ["simulate", "--failures", "1", "--max-retries", "3", "--base-delay", "0"]
        )
        assert result.exit_code == 0
        assert "value after 2 attempt(s)" in result.output

    def test_exhausted_retries_exit_with_error(self) -> None:
        result = runner.invoke(app, ["simulate", "-f", "5", "-r", "2", "-d", "0"])
        assert result.exit_code == 1
        assert "error" in result.output

    def test_custom_key_in_title(self) -> None:
        result = runner.invoke(app, ["simulate", "--key", "clients", "--base-delay", "0"])
        assert result.exit_code == 0
        assert "clients" in result.output

    def test_invalid_max_retries_rejected(self) -> None:
        result = runner.invoke(app, ["simulate", "--max-retries", "0"])
        assert result.exit_code == 2

    def test_non_positive_ttl_exits_with_error(self) -> None:
        result = runner.invoke(app, ["simulate", "--ttl", "0", "--base-delay", "0"])
        assert result.exit_code == 1
        assert "invalid options" in result.output
