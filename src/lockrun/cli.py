"""lockrun CLI: run a command while holding an advisory file lock."""

import logging
import os
import time
from pathlib import Path

import typer
from typer.core import TyperCommand

from lockrun import __version__

from .config import LockrunConfig, config_path, load_config
from .constants import EX_USAGE, EXIT_OK
from .core import acquire_lock, resolve_target, select_primitive
from .errors import LockConflict, LockrunError, UsageError
from .logging import configure_logging
from .models import LockMode, LockRequest, TargetKind, Timing
from .output import OutputContext, set_output_context
from .services import run_command, shell_command

logger = logging.getLogger(__name__)


# UsageError of the click that Typer is built on, which may be a bundled copy
# rather than the standalone click package.
CLICK_USAGE_ERROR: type[Exception] = next(
    cls for cls in typer.BadParameter.__mro__ if cls.__name__ == "UsageError"
)


class LockrunCommand(TyperCommand):
    """Command class reporting argument errors with EX_USAGE."""

    def parse_args(self, ctx: typer.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except CLICK_USAGE_ERROR as e:
            e.exit_code = EX_USAGE  # type: ignore[attr-defined]
            raise


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"lockrun {__version__}")
        raise typer.Exit()


def _timeout_callback(value: float | None) -> float | None:
    if value is not None and not value > 0:
        raise typer.BadParameter(f"timeout must be greater than 0, was {value:f}")
    return value


app = typer.Typer(
    name="lockrun",
    help="Run a command while holding an advisory lock on a file",
    add_completion=False,
)


def resolve_mode(shared: bool, exclusive: bool, unlock: bool) -> LockMode:
    """Pick the lock mode from the -s/-x/-u flags (exclusive by default)."""
    chosen = [
        mode
        for mode, flag in (
            (LockMode.SHARED, shared),
            (LockMode.EXCLUSIVE, exclusive),
            (LockMode.UNLOCK, unlock),
        )
        if flag
    ]
    if len(chosen) > 1:
        raise UsageError("options --shared, --exclusive and --unlock are mutually exclusive")
    return chosen[0] if chosen else LockMode.EXCLUSIVE


def build_argv(
    command: list[str],
    command_string: str | None,
    config: LockrunConfig,
) -> list[str]:
    """Assemble the command vector.

    ``-c STRING`` may be given before the target or right after it
    (``lockrun FILE -c STRING``); either way STRING runs through the shell.
    """
    if command_string is None and len(command) == 2 and command[0] in ("-c", "--command"):
        command_string = command[1]
        command = []
    if command_string is not None:
        if command:
            raise UsageError("--command cannot be combined with a command vector")
        return shell_command(command_string, config.command.resolve_shell())
    return command


def execute(
    target: str,
    argv: list[str],
    request: LockRequest,
    config: LockrunConfig,
    conflict_exit_code: int,
    close_before_exec: bool = False,
) -> int:
    """Lock the target, run argv if given, and return the exit status.

    Raises:
        LockrunError: On any failure; the error carries the exit code
    """
    primitive = select_primitive(config.lock.backend)
    lock_target = resolve_target(target, request.mode, with_command=bool(argv))
    timing = Timing()
    try:
        start = time.monotonic()
        acquire_lock(
            lock_target.fd,
            request,
            primitive,
            conflict_exit_code=conflict_exit_code,
        )
        timing.lock_wait_ms = Timing.elapsed_ms(start, time.monotonic())
        logger.info("getting lock took %.6f seconds", timing.lock_wait_ms / 1000)

        if not argv:
            return EXIT_OK

        logger.info("executing %s", argv[0])
        start = time.monotonic()
        status = run_command(argv, lock_target.fd, close_before_exec=close_before_exec)
        timing.command_ms = Timing.elapsed_ms(start, time.monotonic())
        logger.info(
            "%s: exit status %d, ran %.6f seconds (%.6f total)",
            argv[0],
            status,
            timing.command_ms / 1000,
            timing.total_ms / 1000,
        )
        return status
    finally:
        # Only descriptors we opened; an inherited one keeps its lock for the caller
        if lock_target.kind is TargetKind.PATH:
            os.close(lock_target.fd)


@app.command(
    cls=LockrunCommand,
    context_settings={
        "help_option_names": ["-h", "--help"],
        "allow_interspersed_args": False,
    },
)
def main(
    target: str = typer.Argument(
        ...,
        metavar="TARGET",
        help="Lock file or directory (with a command), or a file descriptor number",
        show_default=False,
    ),
    command: list[str] | None = typer.Argument(
        None,
        metavar="[COMMAND [ARGS]...]",
        help="Command to run while holding the lock",
        show_default=False,
    ),
    shared: bool = typer.Option(False, "--shared", "-s", help="Get a shared lock"),
    exclusive: bool = typer.Option(
        False, "--exclusive", "-x", "-e", help="Get an exclusive lock (default)"
    ),
    unlock: bool = typer.Option(False, "--unlock", "-u", help="Remove a lock"),
    nonblock: bool = typer.Option(
        False, "--nonblock", "-n", help="Fail rather than wait if the lock is held"
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "--wait",
        "-w",
        metavar="SECS",
        callback=_timeout_callback,
        help="Wait at most SECS (fractional) for the lock",
    ),
    close: bool = typer.Option(
        False, "--close", "-o", help="Close the lock descriptor before running the command"
    ),
    conflict_exit_code: int | None = typer.Option(
        None,
        "--conflict-exit-code",
        "-E",
        min=0,
        max=255,
        metavar="N",
        help="Exit code when the lock is held elsewhere or the wait times out [default: 1]",
    ),
    command_string: str | None = typer.Option(
        None, "--command", "-c", metavar="STRING", help="Run STRING through $SHELL -c"
    ),
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Report lock and command timing (-v, -vv)"
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
    config_file: Path | None = typer.Option(
        None, "--config", metavar="PATH", help="Configuration file"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Run COMMAND while holding a lock on TARGET, or lock descriptor TARGET."""
    console = configure_logging(verbosity=verbose, no_color=no_color)
    out = OutputContext(console=console)
    set_output_context(out)

    try:
        config = load_config(config_path(config_file), required=config_file is not None)
        request = LockRequest(
            mode=resolve_mode(shared, exclusive, unlock),
            blocking=not nonblock,
            timeout=timeout,
        )
        argv = build_argv(list(command or []), command_string, config)
        exit_code = (
            conflict_exit_code
            if conflict_exit_code is not None
            else config.lock.conflict_exit_code
        )
        status = execute(target, argv, request, config, exit_code, close_before_exec=close)
    except LockConflict as e:
        logger.info(e.describe())
        raise typer.Exit(e.exit_code) from None
    except LockrunError as e:
        out.report(e)
        raise typer.Exit(e.exit_code) from None

    raise typer.Exit(status)
