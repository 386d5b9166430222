"""Lock acquisition loop.

Drives a LockPrimitive until the lock is acquired, the lock is reported
busy, the timeout fires, or the lock call fails. Interruptions that are
not the timeout are retried without limit; the timeout is the only bound.
"""

import logging
from enum import Enum

from ..constants import DEFAULT_CONFLICT_EXIT_CODE
from ..errors import DataError, LockConflict, LockrunError, ResourceError
from ..models import LockRequest
from .primitive import LockOutcome, LockPrimitive
from .timeout import TimeoutController, TimeoutState

logger = logging.getLogger(__name__)


class AcquireState(str, Enum):
    """States of the acquisition loop."""

    ATTEMPTING = "attempting"
    ACQUIRED = "acquired"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


def acquire_lock(
    fd: int,
    request: LockRequest,
    primitive: LockPrimitive,
    conflict_exit_code: int = DEFAULT_CONFLICT_EXIT_CODE,
    controller: TimeoutController | None = None,
) -> AcquireState:
    """Apply the requested lock operation to fd.

    When the request is blocking and has a timeout, the timer is armed
    right before the first attempt and disarmed on every exit path, so
    nothing after this call can be hit by a late SIGALRM.

    Args:
        fd: Descriptor to lock
        request: Lock mode, blocking flag and timeout
        primitive: Lock backend
        conflict_exit_code: Exit code carried by LockConflict
        controller: Timeout controller (defaults to the process-wide one)

    Returns:
        AcquireState.ACQUIRED

    Raises:
        LockConflict: Lock held elsewhere (non-blocking) or the wait timed out
        ResourceError: The lock subsystem failed (EIO, ENOLCK)
        DataError: The descriptor or operation was rejected
        TimerError: The timer could not be armed or restored
    """
    if controller is None:
        controller = TimeoutController()

    handle = None
    if request.blocking and request.timeout is not None:
        handle = controller.arm(request.timeout)
    try:
        return _run_state_machine(
            fd,
            request,
            primitive,
            conflict_exit_code,
            controller.state,
            timed=handle is not None,
        )
    finally:
        if handle is not None:
            controller.disarm(handle)


def _run_state_machine(
    fd: int,
    request: LockRequest,
    primitive: LockPrimitive,
    conflict_exit_code: int,
    state: TimeoutState,
    timed: bool,
) -> AcquireState:
    window = state if timed else None
    current = AcquireState.ATTEMPTING
    failure: LockrunError | None = None
    attempts = 0
    while current is AcquireState.ATTEMPTING:
        if timed and state.expired:
            current = AcquireState.TIMED_OUT
            break
        attempts += 1
        result = primitive.acquire(fd, request.mode, request.blocking, window)
        outcome = result.outcome

        if outcome is LockOutcome.SUCCESS:
            current = AcquireState.ACQUIRED
        elif outcome is LockOutcome.WOULD_BLOCK:
            logger.debug("Lock on fd %d is held elsewhere", fd)
            current = AcquireState.FAILED
            failure = LockConflict("failed to get lock", exit_code=conflict_exit_code)
        elif outcome is LockOutcome.INTERRUPTED:
            if not (timed and state.expired):
                logger.debug("Lock wait on fd %d interrupted, retrying", fd)
        elif outcome is LockOutcome.IO_ERROR:
            current = AcquireState.FAILED
            failure = ResourceError("OS error", cause=result.error)
        else:
            current = AcquireState.FAILED
            failure = DataError("data error", cause=result.error)

    if current is AcquireState.TIMED_OUT:
        logger.debug("Lock wait on fd %d timed out after %d attempts", fd, attempts)
        raise LockConflict(
            "timeout while waiting to get lock",
            exit_code=conflict_exit_code,
            timed_out=True,
        )
    if failure is not None:
        raise failure

    logger.debug("Acquired %s lock on fd %d", request.mode.value, fd)
    return current
