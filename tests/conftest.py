"""Shared fixtures: element factories, a scripted fake app and a controllable clock."""

from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import pytest

from screen_explorer.errors import PerceptionUnavailableError
from screen_explorer.interfaces import ActionOutcome
from screen_explorer.knowledge import ActionType, Element, ElementRole, Snapshot
from screen_explorer.session import ExplorationSession


def make_elements(
    texts: Sequence[str],
    start_y: float = 120.0,
    step: float = 80.0,
    x: float = 205.0,
    role: ElementRole = ElementRole.UNKNOWN,
) -> List[Element]:
    return [
        Element(text=t, x=x, y=start_y + i * step, confidence=0.95, role=role)
        for i, t in enumerate(texts)
    ]


def make_snapshot(texts: Sequence[str], hints: Iterable[str] = (), **kwargs) -> Snapshot:
    return Snapshot(elements=make_elements(texts, **kwargs), hints=tuple(hints))


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedApp:
    """Perception and Execution over a fixed map of screens.

    `transitions[(screen, text)]` names the screen a tap on `text` leads to;
    taps without an entry leave the screen unchanged. "back" pops the history,
    "home" returns to the first screen.
    """

    def __init__(
        self,
        screens: Dict[str, Snapshot],
        transitions: Dict[Tuple[str, str], str],
        start: str,
    ) -> None:
        self.screens = screens
        self.transitions = transitions
        self.history = [start]
        self.performed: List[Tuple[ActionType, str]] = []
        self.failing: Set[str] = set()
        self.unavailable = False
        self.back_works = True
        # snapshot returned by the next observe() after a swipe on that screen
        self.on_swipe: Dict[str, Snapshot] = {}
        self._pending: Optional[Snapshot] = None

    @property
    def current(self) -> str:
        return self.history[-1]

    def observe(self) -> Snapshot:
        if self.unavailable:
            raise PerceptionUnavailableError("mirroring window not visible")
        if self._pending is not None:
            snapshot, self._pending = self._pending, None
            return snapshot
        return self.screens[self.current]

    def perform(self, action_type: ActionType, target: str) -> ActionOutcome:
        self.performed.append((action_type, target))
        if target in self.failing:
            return ActionOutcome.failed(f"element {target!r} not found")
        if action_type == ActionType.PRESS_KEY:
            if not self.back_works:
                return ActionOutcome.ok()
            if target == "back" and len(self.history) > 1:
                self.history.pop()
            elif target == "home":
                del self.history[1:]
            return ActionOutcome.ok()
        if action_type == ActionType.SWIPE:
            self._pending = self.on_swipe.get(self.current)
            return ActionOutcome.ok()
        nxt = self.transitions.get((self.current, target))
        if nxt is not None:
            self.history.append(nxt)
        return ActionOutcome.ok()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session() -> ExplorationSession:
    return ExplorationSession()
