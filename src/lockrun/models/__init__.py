"""Pydantic data models for lockrun.

This package defines the data structures passed between the CLI and
the core:
- Lock requests (LockMode, LockRequest)
- Resolved lock targets (LockTarget)
- Timing reports (Timing)
"""

from .request import LockMode, LockRequest
from .target import LockTarget, TargetKind
from .timing import Timing

__all__ = [
    "LockMode",
    "LockRequest",
    "LockTarget",
    "TargetKind",
    "Timing",
]
