"""Lock target model."""

from dataclasses import dataclass
from enum import Enum


class TargetKind(str, Enum):
    """Where the lock descriptor came from."""

    PATH = "path"
    DESCRIPTOR = "descriptor"


@dataclass(frozen=True)
class LockTarget:
    """Open descriptor the lock is applied to.

    Attributes:
        fd: The descriptor. Owned by this process until it exits.
        kind: Whether lockrun opened the descriptor or inherited it.
        name: Path or descriptor number as given on the command line.
    """

    fd: int
    kind: TargetKind
    name: str
