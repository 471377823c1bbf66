"""Shared reconcile plumbing."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Action:
    """What the control loop should do after a reconcile pass."""

    requeue_after: Optional[float] = None

    @classmethod
    def await_change(cls) -> "Action":
        """Nothing to do until a watched object changes."""
        return cls()

    @classmethod
    def requeue(cls, seconds: float) -> "Action":
        return cls(requeue_after=seconds)
