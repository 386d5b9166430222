"""Timing model for verbose reports."""

from pydantic import BaseModel, Field


class Timing(BaseModel):
    """Time spent in each phase of a lockrun invocation.

    Attributes:
        lock_wait_ms: Time spent acquiring the lock
        command_ms: Time spent running the command
        total_ms: Lock wait plus command time
    """

    lock_wait_ms: float = Field(default=0.0, description="Lock acquisition time in ms")
    command_ms: float = Field(default=0.0, description="Command run time in ms")

    @property
    def total_ms(self) -> float:
        """Total time across both phases."""
        return self.lock_wait_ms + self.command_ms

    @staticmethod
    def elapsed_ms(start: float, end: float) -> float:
        """Convert a pair of monotonic timestamps into milliseconds."""
        return (end - start) * 1000.0
