"""Tests for CLI commands."""

import tempfile
from pathlib import Path
from typing import Iterator

import pytest  # type: ignore[import-not-found]
from click.testing import CliRunner  # type: ignore[import-not-found]

from timeboard import __version__
from timeboard.cli.main import cli, parse_when
from timeboard.core.config import ConfigManager
from timeboard.core.storage import StorageManager


@pytest.fixture  # type: ignore[misc]
def runner() -> CliRunner:
    """Create CLI test runner wide enough that table cells never wrap."""
    return CliRunner(env={"COLUMNS": "200"})


@pytest.fixture  # type: ignore[misc]
def temp_dir() -> Iterator[Path]:
    """Create temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture  # type: ignore[misc]
def base_args(temp_dir: Path) -> list[str]:
    """Global options pointing at a temporary config and data directory."""
    config_path = temp_dir / "config.yml"
    config = ConfigManager(config_path)
    config.set("team.members", ["Rehman", "Ana"])
    return ["--config", str(config_path), "--data-dir", str(temp_dir / "data")]


class TestCLIBasics:
    """Test group-level options."""

    def test_version(self, runner: CliRunner) -> None:
        """Test --version flag."""
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help(self, runner: CliRunner) -> None:
        """Test --help flag."""
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Timeboard" in result.output
        assert "rank" in result.output

    def test_members(self, runner: CliRunner, base_args: list[str]) -> None:
        result = runner.invoke(cli, base_args + ["members"])
        assert result.exit_code == 0
        assert "Rehman" in result.output
        assert "Ana" in result.output


class TestTimerCommands:
    """Test start / stop / status / backdate."""

    def test_start_command(self, runner: CliRunner, base_args: list[str]) -> None:
        """Test start command."""
        result = runner.invoke(cli, base_args + ["start", "Review", "-m", "Rehman", "-p", "Ops"])

        assert result.exit_code == 0
        assert "Started tracking: Review" in result.output
        assert "Project: Ops" in result.output

    def test_start_when_already_running(self, runner: CliRunner, base_args: list[str]) -> None:
        """Test a second start reports the running timer instead of failing."""
        runner.invoke(cli, base_args + ["start", "First", "-m", "Rehman"])
        result = runner.invoke(cli, base_args + ["start", "Second", "-m", "rahman"])

        assert result.exit_code == 0
        assert "Already running" in result.output
        assert "First" in result.output

    def test_start_uses_default_member(self, runner: CliRunner, base_args: list[str]) -> None:
        ConfigManager(Path(base_args[1])).set("general.default_member", "Ana")
        result = runner.invoke(cli, base_args + ["start", "Focus"])
        assert result.exit_code == 0
        assert "Started tracking: Focus" in result.output

    def test_start_without_member_fails(self, runner: CliRunner, base_args: list[str]) -> None:
        result = runner.invoke(cli, base_args + ["start", "Focus"])
        assert result.exit_code == 1
        assert "Missing member" in result.output

    def test_unknown_member_fails(self, runner: CliRunner, base_args: list[str]) -> None:
        result = runner.invoke(cli, base_args + ["start", "Focus", "-m", "Zed"])
        assert result.exit_code == 1
        assert "Unknown member" in result.output

    def test_stop_command(self, runner: CliRunner, base_args: list[str]) -> None:
        runner.invoke(cli, base_args + ["start", "Review", "-m", "Rehman"])
        result = runner.invoke(cli, base_args + ["stop", "-m", "Rehman"])

        assert result.exit_code == 0
        assert "Stopped tracking: Review" in result.output

    def test_stop_when_not_running(self, runner: CliRunner, base_args: list[str]) -> None:
        result = runner.invoke(cli, base_args + ["stop", "-m", "Rehman"])
        assert result.exit_code == 1
        assert "No running timer" in result.output

    def test_status(self, runner: CliRunner, base_args: list[str]) -> None:
        idle = runner.invoke(cli, base_args + ["status", "-m", "Ana"])
        assert idle.exit_code == 0
        assert "No timer running for Ana" in idle.output

        runner.invoke(cli, base_args + ["start", "Review", "-m", "Ana"])
        running = runner.invoke(cli, base_args + ["status", "-m", "Ana"])
        assert running.exit_code == 0
        assert "Review" in running.output

    def test_backdate(self, runner: CliRunner, base_args: list[str]) -> None:
        runner.invoke(cli, base_args + ["start", "Review", "-m", "Ana"])
        result = runner.invoke(cli, base_args + ["backdate", "30", "-m", "Ana"])
        assert result.exit_code == 0
        assert "0h 30m" in result.output


class TestEntryCommands:
    """Test add / edit / delete and the read views."""

    def _add(self, runner: CliRunner, base_args: list[str]) -> None:
        result = runner.invoke(
            cli,
            base_args
            + [
                "add",
                "Standup",
                "-m",
                "Ana",
                "--start",
                "2024-01-01T09:00:00Z",
                "--minutes",
                "15",
                "--tz-offset",
                "0",
            ],
        )
        assert result.exit_code == 0
        assert "Added entry 1" in result.output

    def test_day_view(self, runner: CliRunner, base_args: list[str]) -> None:
        self._add(runner, base_args)
        result = runner.invoke(
            cli, base_args + ["day", "-m", "Ana", "--date", "2024-01-01", "--tz-offset", "0"]
        )

        assert result.exit_code == 0
        assert "Standup" in result.output
        assert "09:00" in result.output
        assert "Total:" in result.output

    def test_rank_and_week(self, runner: CliRunner, base_args: list[str]) -> None:
        self._add(runner, base_args)

        rank = runner.invoke(cli, base_args + ["rank", "--date", "2024-01-01", "--tz-offset", "0"])
        assert rank.exit_code == 0
        assert "Ana" in rank.output
        assert "0h 15m" in rank.output

        week = runner.invoke(cli, base_args + ["week", "--date", "2024-01-01"])
        assert week.exit_code == 0
        assert "Ana" in week.output
        assert "0h 15m" in week.output

    def test_edit(self, runner: CliRunner, base_args: list[str]) -> None:
        self._add(runner, base_args)
        result = runner.invoke(
            cli,
            base_args
            + [
                "edit",
                "1",
                "-m",
                "Ana",
                "--start",
                "2024-01-01T09:00:00Z",
                "--stop",
                "2024-01-01T10:00:00Z",
            ],
        )

        assert result.exit_code == 0
        assert "Updated entry 1" in result.output
        entry = StorageManager(Path(base_args[3])).get_entry(1)
        assert entry is not None
        assert entry.duration_seconds == 3600

    def test_edit_other_members_entry_fails(self, runner: CliRunner, base_args: list[str]) -> None:
        self._add(runner, base_args)
        result = runner.invoke(
            cli,
            base_args
            + [
                "edit",
                "1",
                "-m",
                "Rehman",
                "--start",
                "2024-01-01T09:00:00Z",
                "--stop",
                "2024-01-01T10:00:00Z",
            ],
        )
        assert result.exit_code == 1

    def test_delete(self, runner: CliRunner, base_args: list[str]) -> None:
        self._add(runner, base_args)
        result = runner.invoke(cli, base_args + ["delete", "1", "-m", "Ana"])
        assert result.exit_code == 0
        assert "Deleted entry 1" in result.output

    def test_add_rejects_zero_minutes(self, runner: CliRunner, base_args: list[str]) -> None:
        result = runner.invoke(
            cli,
            base_args + ["add", "-m", "Ana", "--start", "09:00", "--minutes", "0"],
        )
        assert result.exit_code == 1
        assert "duration must be > 0" in result.output


class TestApiCommands:
    """Test the api subcommands."""

    def test_token(self, runner: CliRunner, base_args: list[str]) -> None:
        result = runner.invoke(cli, base_args + ["api", "token"])
        assert result.exit_code == 0
        assert "Token created successfully" in result.output
        assert "Authorization: Bearer" in result.output

    def test_serve_requires_enabled_api(self, runner: CliRunner, base_args: list[str]) -> None:
        result = runner.invoke(cli, base_args + ["api", "serve"])
        assert result.exit_code == 1


class TestParseWhen:
    """Test CLI time parsing."""

    def test_clock_time_is_local(self) -> None:
        from datetime import date, datetime, timezone

        parsed = parse_when("09:30", "start", -120, date(2024, 1, 2))
        assert parsed == datetime(2024, 1, 2, 7, 30, tzinfo=timezone.utc)

    def test_local_datetime(self) -> None:
        from datetime import date, datetime, timezone

        parsed = parse_when("2024-01-01 23:00", "start", 300, date(2024, 1, 5))
        assert parsed == datetime(2024, 1, 2, 4, 0, tzinfo=timezone.utc)

    def test_iso_instant(self) -> None:
        from datetime import date, datetime, timezone

        parsed = parse_when("2024-01-01T09:00:00Z", "start", 300, date(2024, 1, 5))
        assert parsed == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class TestBackupCommand:
    def test_backup(self, runner: CliRunner, base_args: list[str], temp_dir: Path) -> None:
        runner.invoke(cli, base_args + ["start", "Review", "-m", "Ana"])
        result = runner.invoke(cli, base_args + ["backup", "--label", "before-cleanup"])

        assert result.exit_code == 0
        assert "Backup written to" in result.output
        assert (temp_dir / "backups" / "before-cleanup" / "entries.csv").exists()
