from __future__ import annotations

"""Boundaries to the outside world: perception (observe) and execution (perform)."""

from dataclasses import dataclass
from typing import Optional, Protocol

from .knowledge import ActionType, Snapshot


@dataclass(frozen=True)
class ActionOutcome:
    """Result reported by the execution collaborator."""

    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "ActionOutcome":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> "ActionOutcome":
        return cls(success=False, error=error)


class Perception(Protocol):
    """Produces a snapshot of whatever is currently on screen."""

    def observe(self) -> Snapshot:
        """Raise `PerceptionUnavailableError` when the target surface is not visible."""
        ...


class Execution(Protocol):
    """Performs one UI action and waits for it to settle."""

    def perform(self, action_type: ActionType, target: str) -> ActionOutcome:
        """Never raises for a missing target; returns a failed outcome instead."""
        ...
