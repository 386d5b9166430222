"""Core locking logic for lockrun.

- primitive: flock and lockf backends behind one interface
- timeout: SIGALRM timer bounding a blocking wait
- acquire: acquisition loop tying the two together
- target: opening the lock file or parsing a descriptor number
"""

from .acquire import AcquireState, acquire_lock
from .primitive import (
    FlockPrimitive,
    LockfPrimitive,
    LockOutcome,
    LockPrimitive,
    LockResult,
    select_primitive,
)
from .target import open_lock_file, parse_descriptor, resolve_target
from .timeout import TIMEOUT_STATE, TimeoutController, TimeoutState, TimerHandle, split_duration

__all__ = [
    "TIMEOUT_STATE",
    "AcquireState",
    "FlockPrimitive",
    "LockOutcome",
    "LockPrimitive",
    "LockResult",
    "LockfPrimitive",
    "TimeoutController",
    "TimeoutState",
    "TimerHandle",
    "acquire_lock",
    "open_lock_file",
    "parse_descriptor",
    "resolve_target",
    "select_primitive",
    "split_duration",
]
