"""Lock request model.

Describes what to do with the lock descriptor: which lock type to take,
whether to wait for it and for how long.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LockMode(str, Enum):
    """Lock operations supported by every lock backend."""

    SHARED = "shared"
    EXCLUSIVE = "exclusive"
    UNLOCK = "unlock"


class LockRequest(BaseModel):
    """A single lock operation requested on the command line.

    Attributes:
        mode: Lock type to apply to the descriptor.
        blocking: Wait for a conflicting lock to go away.
        timeout: Upper bound on the wait in seconds. Only used when blocking.
    """

    model_config = ConfigDict(frozen=True)

    mode: LockMode = Field(default=LockMode.EXCLUSIVE, description="Lock type")
    blocking: bool = Field(default=True, description="Wait for the lock")
    timeout: float | None = Field(default=None, description="Maximum wait in seconds")

    @field_validator("timeout")
    @classmethod
    def _timeout_positive(cls, value: float | None) -> float | None:
        if value is not None and not value > 0:
            raise ValueError(f"timeout must be greater than 0, was {value:f}")
        return value
