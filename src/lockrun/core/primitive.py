"""Advisory whole-file lock primitives.

Two implementations of one interface:

- FlockPrimitive wraps the native whole-file lock (flock(2)).
- LockfPrimitive emulates it with a POSIX record lock covering the whole
  file (offset 0, length 0 = to end of file). Shared maps to a read lock,
  exclusive to a write lock. A read lock needs a descriptor open for
  reading and a write lock one open for writing.

Which one is used is decided once from configuration (select_primitive),
not per call. acquire() never raises for lock failures; it classifies
them into a LockOutcome so the acquisition loop owns the policy.
"""

import errno
import fcntl
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from ..config import LockBackend
from ..models import LockMode
from .timeout import TimeoutState

logger = logging.getLogger(__name__)

# Errors from the lock subsystem itself, as opposed to contention
_IO_ERRNOS = frozenset({errno.EIO, errno.ENOLCK})


class LockOutcome(str, Enum):
    """Result of a single lock attempt."""

    SUCCESS = "success"
    WOULD_BLOCK = "would_block"
    INTERRUPTED = "interrupted"
    IO_ERROR = "io_error"
    INVALID = "invalid"


@dataclass(frozen=True)
class LockResult:
    """Outcome of a lock attempt plus the OS error behind it, if any."""

    outcome: LockOutcome
    error: OSError | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is LockOutcome.SUCCESS


class LockPrimitive(ABC):
    """Apply shared, exclusive or unlock operations to a descriptor."""

    name: str = ""

    # errno values meaning "held by someone else" for this backend
    would_block_errnos: frozenset[int] = frozenset({errno.EWOULDBLOCK, errno.EAGAIN})

    _MODES = {
        LockMode.SHARED: fcntl.LOCK_SH,
        LockMode.EXCLUSIVE: fcntl.LOCK_EX,
        LockMode.UNLOCK: fcntl.LOCK_UN,
    }

    def operation(self, mode: LockMode, blocking: bool) -> int:
        """Translate a mode into a LOCK_* operation code.

        Raises:
            ValueError: If the mode is not supported
        """
        try:
            op = self._MODES[LockMode(mode)]
        except (KeyError, ValueError):
            raise ValueError(f"unsupported lock mode: {mode!r}") from None
        if not blocking and op != fcntl.LOCK_UN:
            op |= fcntl.LOCK_NB
        return op

    @abstractmethod
    def call(self, fd: int, operation: int) -> None:
        """Perform the lock syscall."""

    def acquire(
        self,
        fd: int,
        mode: LockMode,
        blocking: bool,
        window: TimeoutState | None = None,
    ) -> LockResult:
        """Attempt one lock operation on fd.

        When window is given, its waiting flag is raised only around the
        syscall itself, so a timer firing on either side of it is seen
        through the expired flag instead of an interruption. An attempt
        is not started at all once the window has expired.

        Args:
            fd: Open descriptor to lock
            mode: Shared, exclusive or unlock
            blocking: Wait for a conflicting lock instead of failing
            window: Timeout state of an armed timer, if any

        Returns:
            LockResult classifying the attempt
        """
        try:
            op = self.operation(mode, blocking)
        except ValueError as e:
            return LockResult(LockOutcome.INVALID, OSError(errno.EINVAL, str(e)))

        try:
            if window is not None:
                window.waiting = blocking
                if window.expired:
                    raise InterruptedError(errno.EINTR, "lock wait timed out before it started")
            try:
                self.call(fd, op)
            finally:
                if window is not None:
                    window.waiting = False
        except InterruptedError as e:
            return LockResult(LockOutcome.INTERRUPTED, e)
        except OSError as e:
            return LockResult(self.classify(e), e)
        return LockResult(LockOutcome.SUCCESS)

    def classify(self, error: OSError) -> LockOutcome:
        """Map an OS error from the lock call to an outcome."""
        if error.errno in self.would_block_errnos:
            return LockOutcome.WOULD_BLOCK
        if error.errno == errno.EINTR:
            return LockOutcome.INTERRUPTED
        if error.errno in _IO_ERRNOS:
            return LockOutcome.IO_ERROR
        return LockOutcome.INVALID


class FlockPrimitive(LockPrimitive):
    """Native whole-file lock."""

    name = "flock"

    def call(self, fd: int, operation: int) -> None:
        fcntl.flock(fd, operation)


class LockfPrimitive(LockPrimitive):
    """Whole-file record lock emulating flock."""

    name = "lockf"

    # Record locks report a conflicting holder as "access denied" on some systems
    would_block_errnos = frozenset({errno.EWOULDBLOCK, errno.EAGAIN, errno.EACCES})

    def call(self, fd: int, operation: int) -> None:
        # len=0, start=0, whence=SEEK_SET: from the start of the file to its end
        fcntl.lockf(fd, operation, 0, 0, 0)


def native_flock_available() -> bool:
    """True if the platform provides flock(2)."""
    return hasattr(fcntl, "flock")


def select_primitive(backend: LockBackend = LockBackend.AUTO) -> LockPrimitive:
    """Return the lock primitive for a configured backend.

    Args:
        backend: Configured backend; AUTO prefers the native lock

    Returns:
        Lock primitive instance
    """
    backend = LockBackend(backend)
    if backend is LockBackend.AUTO:
        backend = LockBackend.FLOCK if native_flock_available() else LockBackend.LOCKF

    primitive: LockPrimitive
    if backend is LockBackend.FLOCK:
        primitive = FlockPrimitive()
    else:
        primitive = LockfPrimitive()
    logger.debug("Using %s lock backend", primitive.name)
    return primitive
