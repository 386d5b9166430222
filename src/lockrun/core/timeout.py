"""Timeout timer bounding a blocking lock wait.

A one-shot ITIMER_REAL timer delivers SIGALRM when the wait has gone on
too long. The handler records the expiry in a TimeoutState. Python
retries syscalls interrupted by a signal whose handler returns normally,
so while a lock wait is in flight the handler also raises
InterruptedError to abandon it. Outside that window it only sets the flag.
"""

import errno
import logging
import signal
from dataclasses import dataclass
from types import FrameType
from typing import Any

from ..errors import TimerError, UsageError

logger = logging.getLogger(__name__)

USEC_PER_SEC = 1_000_000


class TimeoutState:
    """Expiry flag shared between the SIGALRM handler and the lock loop.

    The handler is the only writer of ``expired``; the loop is the only
    writer of ``waiting``. Both are plain attribute stores.
    """

    def __init__(self) -> None:
        self.expired = False
        self.waiting = False

    def reset(self) -> None:
        self.expired = False
        self.waiting = False

    def handle_alarm(self, signum: int, frame: FrameType | None) -> None:
        self.expired = True
        if self.waiting:
            raise InterruptedError(errno.EINTR, "lock wait interrupted by timeout")


# Process-wide state: there is one ITIMER_REAL per process
TIMEOUT_STATE = TimeoutState()


@dataclass(frozen=True)
class TimerHandle:
    """What arm() replaced, for disarm() to put back."""

    previous_handler: Any
    previous_timer: tuple[float, float]


def split_duration(seconds: float) -> tuple[int, int]:
    """Split fractional seconds into whole seconds and microseconds.

    Durations below one microsecond round up to one microsecond: a zero
    timer value would cancel the timer instead of arming it.

    Args:
        seconds: Duration, must be > 0

    Returns:
        Tuple of (seconds, microseconds)
    """
    whole = int(seconds)
    usec = int((seconds - whole) * USEC_PER_SEC)
    if whole == 0 and usec == 0:
        usec = 1
    return whole, usec


class TimeoutController:
    """Arms and disarms the lock timeout timer."""

    def __init__(self, state: TimeoutState | None = None) -> None:
        self.state = state if state is not None else TIMEOUT_STATE

    def arm(self, duration: float) -> TimerHandle:
        """Install the SIGALRM handler and start the one-shot timer.

        Args:
            duration: Timeout in seconds

        Returns:
            Handle holding the previous handler and timer value

        Raises:
            UsageError: If duration is not greater than zero
            TimerError: If the handler or timer cannot be installed
        """
        if not duration > 0:
            raise UsageError(f"timeout must be greater than 0, was {duration:f}")

        whole, usec = split_duration(duration)
        value = whole + usec / USEC_PER_SEC

        self.state.reset()
        try:
            previous_handler = signal.signal(signal.SIGALRM, self.state.handle_alarm)
        except (OSError, ValueError) as e:
            raise _timer_error("could not attach timeout handler", e) from e
        try:
            previous_timer = signal.setitimer(signal.ITIMER_REAL, value, 0.0)
        except (OSError, ValueError) as e:
            signal.signal(signal.SIGALRM, _restorable(previous_handler))
            raise _timer_error("could not set interval timer", e) from e

        logger.debug("Armed lock timeout: %ds %dus", whole, usec)
        return TimerHandle(previous_handler=previous_handler, previous_timer=previous_timer)

    def disarm(self, handle: TimerHandle) -> None:
        """Restore the timer value and handler that arm() replaced.

        Raises:
            TimerError: If either cannot be restored
        """
        self.state.waiting = False
        delay, interval = handle.previous_timer
        try:
            signal.setitimer(signal.ITIMER_REAL, delay, interval)
        except (OSError, ValueError) as e:
            raise _timer_error("could not reset old interval timer", e) from e
        try:
            signal.signal(signal.SIGALRM, _restorable(handle.previous_handler))
        except (OSError, ValueError, TypeError) as e:
            raise _timer_error("could not reattach old timeout handler", e) from e
        logger.debug("Disarmed lock timeout")


def _restorable(handler: Any) -> Any:
    # getsignal() reports None for handlers installed outside Python
    return signal.SIG_DFL if handler is None else handler


def _timer_error(message: str, exc: Exception) -> TimerError:
    return TimerError(message, cause=exc if isinstance(exc, OSError) else None)
