"""lockrun errors.

Every error carries the process exit code the CLI terminates with, so the
mapping from failure category to exit status lives in one place.
"""

from .constants import (
    DEFAULT_CONFLICT_EXIT_CODE,
    EX_CANTCREAT,
    EX_DATAERR,
    EX_NOINPUT,
    EX_OSERR,
    EX_USAGE,
    EXIT_FAILURE,
)


class LockrunError(Exception):
    """Base exception for lockrun errors."""

    exit_code = EXIT_FAILURE

    def __init__(self, message: str, cause: OSError | None = None) -> None:
        super().__init__(message)
        self.cause = cause

    def describe(self) -> str:
        """Return the diagnostic line: cause followed by the OS error text."""
        message = str(self)
        if self.cause is not None and self.cause.strerror:
            return f"{message}: {self.cause.strerror}"
        return message


class UsageError(LockrunError):
    """Raised for malformed arguments or configuration."""

    exit_code = EX_USAGE


class DataError(LockrunError):
    """Raised when the lock call rejects the descriptor or operation."""

    exit_code = EX_DATAERR


class AccessError(LockrunError):
    """Raised when the lock target cannot be opened."""

    exit_code = EX_NOINPUT


class CreationError(LockrunError):
    """Raised when the lock target cannot be created."""

    exit_code = EX_CANTCREAT


class ResourceError(LockrunError):
    """Raised on descriptor, memory or lock table exhaustion."""

    exit_code = EX_OSERR


class TimerError(ResourceError):
    """Raised when the timeout timer or its handler cannot be set or restored."""


class SpawnError(ResourceError):
    """Raised when the child process cannot be created."""


class WaitError(LockrunError):
    """Raised when waiting for the child process fails."""

    exit_code = EXIT_FAILURE


class LockConflict(LockrunError):
    """Raised when the lock is held elsewhere (non-blocking or timed out)."""

    def __init__(
        self,
        message: str,
        exit_code: int = DEFAULT_CONFLICT_EXIT_CODE,
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.timed_out = timed_out
