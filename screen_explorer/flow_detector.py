from __future__ import annotations

"""Flow boundary and cycle detection over capture history. Pure functions only."""

from typing import Optional, Sequence

from .knowledge import Element, ExplorationAction, ExploredScreen
from .state_matcher import StateMatcher

# A single observation cannot establish that the flow came back to its start.
MIN_SCREENS_FOR_FLOW_BOUNDARY = 2

# Consecutive no-effect actions after which the agent is considered stuck.
STUCK_THRESHOLD = 3

_default_matcher = StateMatcher()


def is_back_at_start(
    current_elements: Sequence[Element],
    start_elements: Sequence[Element],
    screen_count: int,
    matcher: Optional[StateMatcher] = None,
) -> bool:
    if screen_count < MIN_SCREENS_FOR_FLOW_BOUNDARY:
        return False
    return (matcher or _default_matcher).are_equal(current_elements, start_elements)


def consecutive_duplicates(action_log: Sequence[ExplorationAction]) -> int:
    """Count trailing duplicate entries, stopping at the first accepted action."""
    count = 0
    for action in reversed(action_log):
        if not action.was_duplicate:
            break
        count += 1
    return count


def is_stuck(action_log: Sequence[ExplorationAction]) -> bool:
    return consecutive_duplicates(action_log) >= STUCK_THRESHOLD


def visit_count(
    current_elements: Sequence[Element],
    captured_screens: Sequence[ExploredScreen],
    matcher: Optional[StateMatcher] = None,
) -> int:
    """Number of captured screens that are fingerprint-equal to `current_elements`."""
    m = matcher or _default_matcher
    return sum(1 for screen in captured_screens if m.are_equal(screen.elements, current_elements))
