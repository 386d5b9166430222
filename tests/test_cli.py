"""CLI integration tests for lockrun."""

import fcntl
import os
import signal
import sys
import threading
import time
from collections.abc import Callable
from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from lockrun.cli import CLICK_USAGE_ERROR, app


class TestVersionCommand:
    """Tests for --version flag."""

    def test_version_shows_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "lockrun" in result.stdout
        assert "0.1.0" in result.stdout

    def test_version_short_flag(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert "lockrun" in result.stdout


class TestHelpCommand:
    """Tests for --help flag."""

    def test_help_shows_options(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for option in ("--shared", "--unlock", "--nonblock"):
            assert option in result.stdout

    def test_short_help_flag(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["-h"])
        assert result.exit_code == 0
        assert "Usage:" in result.stdout


class TestUsageErrors:
    """Argument errors exit with EX_USAGE (64)."""

    def test_missing_target(self, runner: CliRunner) -> None:
        assert runner.invoke(app, []).exit_code == 64

    def test_unknown_option(self, runner: CliRunner, lock_file: Path) -> None:
        assert runner.invoke(app, ["--bogus", str(lock_file), "true"]).exit_code == 64

    def test_zero_timeout(self, runner: CliRunner, lock_file: Path) -> None:
        result = runner.invoke(app, ["-w", "0", str(lock_file), "true"])
        assert result.exit_code == 64

    def test_non_numeric_timeout(self, runner: CliRunner, lock_file: Path) -> None:
        assert runner.invoke(app, ["-w", "soon", str(lock_file), "true"]).exit_code == 64

    def test_conflict_code_out_of_range(self, runner: CliRunner, lock_file: Path) -> None:
        assert runner.invoke(app, ["-E", "256", str(lock_file), "true"]).exit_code == 64

    def test_parse_errors_use_typers_click(self, lock_file: Path) -> None:
        """Usage errors are caught as the exception class Typer raises."""
        command = typer.main.get_command(app)
        assert issubclass(typer.BadParameter, CLICK_USAGE_ERROR)
        with pytest.raises(CLICK_USAGE_ERROR) as exc_info:
            command.main(["--bogus", str(lock_file), "true"], standalone_mode=False)
        assert exc_info.value.exit_code == 64  # type: ignore[attr-defined]

    def test_non_numeric_target_without_command(
        self, runner: CliRunner, lock_file: Path
    ) -> None:
        result = runner.invoke(app, [str(lock_file)])
        assert result.exit_code == 64
        assert "requires a file path" in result.output

    def test_conflicting_modes(self, runner: CliRunner, lock_file: Path) -> None:
        assert runner.invoke(app, ["-s", "-u", str(lock_file), "true"]).exit_code == 64

    def test_command_string_and_vector(self, runner: CliRunner, lock_file: Path) -> None:
        result = runner.invoke(app, ["-c", "true", str(lock_file), "true"])
        assert result.exit_code == 64


class TestRunCommand:
    """Tests for running a command under the lock."""

    def test_exit_code_fidelity(self, runner: CliRunner, lock_file: Path) -> None:
        result = runner.invoke(app, [str(lock_file), "sh", "-c", "exit 7"])
        assert result.exit_code == 7

    def test_killed_command_exits_signal_plus_128(
        self, runner: CliRunner, lock_file: Path
    ) -> None:
        result = runner.invoke(app, [str(lock_file), "sh", "-c", "kill -9 $$"])
        assert result.exit_code == 128 + signal.SIGKILL

    def test_command_options_are_not_parsed(
        self, runner: CliRunner, lock_file: Path, tmp_path: Path
    ) -> None:
        """Everything after the target belongs to the command."""
        marker = tmp_path / "marker"
        result = runner.invoke(
            app, [str(lock_file), "sh", "-c", 'printf "%s\\n" "$1" > "$2"', "sh", "-n", str(marker)]
        )
        assert result.exit_code == 0
        assert marker.read_text() == "-n\n"

    def test_creates_lock_file(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "created.lock"
        result = runner.invoke(app, [str(path), "true"])
        assert result.exit_code == 0
        assert path.exists()

    def test_lock_held_while_command_runs(
        self,
        runner: CliRunner,
        lock_file: Path,
        tmp_path: Path,
        can_lock: Callable[[Path], bool],
    ) -> None:
        """The lock is held during the command and released afterwards."""
        marker = tmp_path / "marker"
        checker = (
            "import fcntl, os, sys\n"
            "fd = os.open(sys.argv[1], os.O_RDONLY)\n"
            "try:\n"
            "    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)\n"
            "except BlockingIOError:\n"
            "    open(sys.argv[2], 'w').write('held')\n"
        )
        result = runner.invoke(
            app, ["-o", str(lock_file), sys.executable, "-c", checker, str(lock_file), str(marker)]
        )
        assert result.exit_code == 0
        assert marker.read_text() == "held"
        assert can_lock(lock_file) is True

    def test_command_string_after_target(
        self, runner: CliRunner, lock_file: Path, tmp_path: Path
    ) -> None:
        marker = tmp_path / "marker"
        result = runner.invoke(
            app,
            [str(lock_file), "-c", f"echo ran > {marker}"],
            env={"SHELL": "/bin/sh"},
        )
        assert result.exit_code == 0
        assert marker.read_text() == "ran\n"

    def test_command_string_before_target(
        self, runner: CliRunner, lock_file: Path, tmp_path: Path
    ) -> None:
        marker = tmp_path / "marker"
        result = runner.invoke(
            app,
            ["-c", f"echo ran > {marker}; exit 4", str(lock_file)],
            env={"SHELL": ""},
        )
        assert result.exit_code == 4
        assert marker.read_text() == "ran\n"

    def test_missing_command_exits_no_input(self, runner: CliRunner, lock_file: Path) -> None:
        result = runner.invoke(app, [str(lock_file), "lockrun-no-such-command-xyz"])
        assert result.exit_code == 66
        assert "failed to execute command" in result.output

    def test_unopenable_target(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(app, [str(tmp_path / "missing" / "lock"), "true"])
        assert result.exit_code == 66
        assert "cannot open lock file" in result.output

    def test_directory_target(self, runner: CliRunner, tmp_path: Path) -> None:
        assert runner.invoke(app, [str(tmp_path), "true"]).exit_code == 0


class TestContention:
    """Tests for conflicting lock holders."""

    def test_nonblocking_conflict_exits_configured_code(
        self, runner: CliRunner, lock_file: Path, held_lock: int, tmp_path: Path
    ) -> None:
        """-n -E 3 on a held lock exits 3 and never runs the command."""
        marker = tmp_path / "marker"
        start = time.monotonic()
        result = runner.invoke(
            app, ["-n", "-E", "3", str(lock_file), "sh", "-c", f"touch {marker}"]
        )
        assert result.exit_code == 3
        assert not marker.exists()
        assert time.monotonic() - start < 2

    def test_nonblocking_conflict_defaults_to_one(
        self, runner: CliRunner, lock_file: Path, held_lock: int
    ) -> None:
        result = runner.invoke(app, ["-n", str(lock_file), "true"])
        assert result.exit_code == 1
        assert result.output == ""

    def test_shared_locks_do_not_conflict(self, runner: CliRunner, lock_file: Path) -> None:
        fd = os.open(lock_file, os.O_RDONLY)
        fcntl.flock(fd, fcntl.LOCK_SH)
        try:
            result = runner.invoke(app, ["-s", "-n", str(lock_file), "true"])
        finally:
            os.close(fd)
        assert result.exit_code == 0

    def test_microsecond_timeout_on_held_lock(
        self, runner: CliRunner, lock_file: Path, held_lock: int
    ) -> None:
        """A timeout shorter than the setup before the wait still ends it."""
        start = time.monotonic()
        result = runner.invoke(app, ["-w", "0.000001", "-E", "5", str(lock_file), "true"])
        assert result.exit_code == 5
        assert time.monotonic() - start < 3

    def test_timeout_on_held_lock(
        self, runner: CliRunner, lock_file: Path, held_lock: int, tmp_path: Path
    ) -> None:
        """The wait gives up at about the timeout and leaves no timer armed."""
        marker = tmp_path / "marker"
        start = time.monotonic()
        result = runner.invoke(
            app, ["-w", "0.3", "-E", "5", str(lock_file), "sh", "-c", f"touch {marker}"]
        )
        elapsed = time.monotonic() - start
        assert result.exit_code == 5
        assert not marker.exists()
        assert 0.25 <= elapsed < 3
        assert signal.getitimer(signal.ITIMER_REAL) == (0.0, 0.0)

    def test_timeout_reported_in_verbose_mode(
        self, runner: CliRunner, lock_file: Path, held_lock: int
    ) -> None:
        result = runner.invoke(app, ["-v", "-w", "0.2", str(lock_file), "true"])
        assert result.exit_code == 1
        assert "timeout while waiting to get lock" in result.output

    def test_acquires_when_released_in_time(
        self, runner: CliRunner, lock_file: Path, held_lock: int
    ) -> None:
        release = threading.Timer(0.3, fcntl.flock, args=(held_lock, fcntl.LOCK_UN))
        release.start()
        try:
            start = time.monotonic()
            result = runner.invoke(app, ["-w", "5", str(lock_file), "sh", "-c", "exit 0"])
            elapsed = time.monotonic() - start
        finally:
            release.join()
        assert result.exit_code == 0
        assert elapsed < 4
        assert signal.getitimer(signal.ITIMER_REAL) == (0.0, 0.0)

    def test_config_conflict_code(
        self, runner: CliRunner, lock_file: Path, held_lock: int, tmp_path: Path
    ) -> None:
        config = tmp_path / "config.toml"
        config.write_text("[lock]\nconflict_exit_code = 9\n")
        result = runner.invoke(app, ["--config", str(config), "-n", str(lock_file), "true"])
        assert result.exit_code == 9

    def test_option_overrides_config_conflict_code(
        self, runner: CliRunner, lock_file: Path, held_lock: int, tmp_path: Path
    ) -> None:
        config = tmp_path / "config.toml"
        config.write_text("[lock]\nconflict_exit_code = 9\n")
        result = runner.invoke(
            app, ["--config", str(config), "-n", "-E", "2", str(lock_file), "true"]
        )
        assert result.exit_code == 2

    def test_missing_config_file_is_usage_error(
        self, runner: CliRunner, lock_file: Path, tmp_path: Path
    ) -> None:
        result = runner.invoke(
            app, ["--config", str(tmp_path / "absent.toml"), str(lock_file), "true"]
        )
        assert result.exit_code == 64


class TestDescriptorTarget:
    """Tests for locking an already-open descriptor."""

    def test_locks_descriptor_and_exits_zero(
        self, runner: CliRunner, lock_file: Path, can_lock: Callable[[Path], bool]
    ) -> None:
        """The lock stays with the caller's open file after lockrun returns."""
        fd = os.open(lock_file, os.O_RDONLY)
        try:
            result = runner.invoke(app, [str(fd)])
            assert result.exit_code == 0
            assert can_lock(lock_file) is False
            os.fstat(fd)  # still open
        finally:
            os.close(fd)
        assert can_lock(lock_file) is True

    def test_unlock_descriptor(
        self, runner: CliRunner, lock_file: Path, can_lock: Callable[[Path], bool]
    ) -> None:
        fd = os.open(lock_file, os.O_RDONLY)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            result = runner.invoke(app, ["-u", str(fd)])
            assert result.exit_code == 0
            assert can_lock(lock_file) is True
        finally:
            os.close(fd)

    def test_nonblocking_descriptor_conflict(
        self, runner: CliRunner, lock_file: Path, held_lock: int
    ) -> None:
        fd = os.open(lock_file, os.O_RDONLY)
        try:
            result = runner.invoke(app, ["-n", "-E", "3", str(fd)])
        finally:
            os.close(fd)
        assert result.exit_code == 3

    def test_bad_descriptor_is_data_error(self, runner: CliRunner, tmp_path: Path) -> None:
        fd = os.open(tmp_path / "f", os.O_RDONLY | os.O_CREAT)
        os.close(fd)
        result = runner.invoke(app, [str(fd)])
        assert result.exit_code == 65
        assert "data error" in result.output


class TestVerbose:
    """Tests for verbose timing output."""

    def test_reports_lock_and_command_timing(self, runner: CliRunner, lock_file: Path) -> None:
        result = runner.invoke(app, ["-v", "--no-color", str(lock_file), "true"])
        assert result.exit_code == 0
        assert "getting lock took" in result.output
        assert "executing true" in result.output

    def test_silent_by_default(self, runner: CliRunner, lock_file: Path) -> None:
        result = runner.invoke(app, [str(lock_file), "true"])
        assert result.exit_code == 0
        assert result.output == ""
