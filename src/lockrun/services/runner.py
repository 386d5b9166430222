"""Command runner for lockrun.

Runs the wrapped command as a child process while the parent keeps the
lock, and turns the way the child ended into lockrun's exit status.
"""

import errno
import logging
import os
import signal
import subprocess
from collections.abc import Sequence

from ..constants import EX_NOINPUT, EX_OSERR, SIGNAL_EXIT_OFFSET
from ..errors import SpawnError, UsageError, WaitError
from ..output import get_output_context

logger = logging.getLogger(__name__)

# Exec failures reported as an OS error rather than a bad command
_EXEC_OS_ERRNOS = frozenset({errno.EIO, errno.ENOMEM})


def shell_command(command: str, shell: str) -> list[str]:
    """Wrap a command string as ``shell -c command``."""
    return [shell, "-c", command]


def translate_returncode(returncode: int | None) -> int:
    """Map a Popen returncode to lockrun's exit status.

    Args:
        returncode: Exit code, or minus the signal number for a child
            killed by a signal

    Returns:
        The exit code unchanged, signal + 128, or EX_OSERR otherwise
    """
    if returncode is None:
        return EX_OSERR
    if returncode >= 0:
        return returncode
    return -returncode + SIGNAL_EXIT_OFFSET


def exec_failure_status(error: OSError) -> int:
    """Exit status for a command that could not be executed.

    The status stands in for the command's own exit code, the same code
    a forked child exits with when exec fails.
    """
    if error.errno in _EXEC_OS_ERRNOS:
        return EX_OSERR
    return EX_NOINPUT


def _is_spawn_failure(error: OSError) -> bool:
    # Exec errors come back from the child tagged with the executable name;
    # fork errors are raised in the parent without one.
    return error.filename is None and error.errno in (errno.EAGAIN, errno.ENOMEM)


def run_command(
    argv: Sequence[str],
    lock_fd: int,
    close_before_exec: bool = False,
) -> int:
    """Run argv to completion and return the translated exit status.

    Args:
        argv: Command and arguments, passed without shell interpretation
        lock_fd: Lock descriptor held by this process
        close_before_exec: Do not let the command inherit lock_fd

    Returns:
        The command's exit code, signal + 128, or the exec failure status

    Raises:
        UsageError: If argv is empty
        SpawnError: If the child process cannot be created
        WaitError: If waiting for the child fails
    """
    if not argv:
        raise UsageError("no command given")

    # An inherited SIGCHLD handler would interfere with waiting on the child
    signal.signal(signal.SIGCHLD, signal.SIG_DFL)

    os.set_inheritable(lock_fd, not close_before_exec)
    try:
        proc = subprocess.Popen(list(argv), close_fds=False)
    except OSError as e:
        if _is_spawn_failure(e):
            raise SpawnError("fork failed", cause=e) from e
        get_output_context().warn(f"failed to execute command: {argv[0]}: {e.strerror}")
        return exec_failure_status(e)

    logger.debug("Started %s as pid %d", argv[0], proc.pid)
    try:
        returncode = proc.wait()
    except OSError as e:
        raise WaitError("waitpid failed", cause=e) from e
    logger.debug("pid %d ended with returncode %d", proc.pid, returncode)
    return translate_returncode(returncode)
