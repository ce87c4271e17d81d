from __future__ import annotations

"""Next-step suggestions for manually driven (capture-by-capture) explorations."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from . import flow_detector
from .knowledge import Element, ExplorationAction
from .state_matcher import StateMatcher

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "is", "are", "was", "were", "be", "been",
        "to", "of", "in", "for", "on", "with", "at", "by", "from",
        "and", "or", "not", "no", "do", "does", "did",
        "this", "that", "it", "its", "my", "your",
        "how", "what", "where", "when", "which", "who",
        "check", "find", "look", "see", "get", "go",
    }
)


class ExplorationMode(str, Enum):
    GOAL_DRIVEN = "goalDriven"
    DISCOVERY = "discovery"


@dataclass(frozen=True)
class Guidance:
    suggestions: List[str] = field(default_factory=list)
    goal_progress: Optional[str] = None
    warning: Optional[str] = None
    is_flow_complete: bool = False

    def format(self) -> str:
        lines: List[str] = []
        if self.goal_progress:
            lines.append(f"Exploration guidance: {self.goal_progress}")
        if self.warning:
            lines.append(f"Warning: {self.warning}")
        if self.suggestions:
            lines.append("Suggested next actions:")
            lines.extend(f"- {s}" for s in self.suggestions)
        return "\n".join(lines)


def extract_keywords(goal: str) -> List[str]:
    """Lowercase goal words of two or more characters, stop words removed."""
    words = (w.strip(".,;:!?\"'()") for w in goal.lower().split())
    return [w for w in words if len(w) >= 2 and w not in STOP_WORDS]


def navigable_elements(elements: Sequence[Element], matcher: Optional[StateMatcher] = None) -> List[Element]:
    """Landmark-quality elements sorted top to bottom."""
    m = matcher or StateMatcher()
    return sorted((el for el in elements if m.is_landmark_candidate(el)), key=lambda el: el.y)


def rank_by_goal_relevance(candidates: Sequence[Element], keywords: Sequence[str]) -> List[Element]:
    if not keywords:
        return list(candidates)

    def score(el: Element) -> int:
        text = el.text.lower()
        return sum(1 for kw in keywords if kw in text)

    # sorted() is stable, so equally relevant elements keep their vertical order
    return sorted(candidates, key=score, reverse=True)


def analyze(
    mode: ExplorationMode,
    goal: str,
    elements: Sequence[Element],
    hints: Sequence[str],
    start_elements: Optional[Sequence[Element]],
    action_log: Sequence[ExplorationAction],
    screen_count: int,
    matcher: Optional[StateMatcher] = None,
) -> Guidance:
    """Analyse the current screen against the goal and the capture history."""
    matcher = matcher or StateMatcher()
    back_at_start = start_elements is not None and flow_detector.is_back_at_start(
        elements, start_elements, screen_count, matcher
    )

    warning = None
    streak = flow_detector.consecutive_duplicates(action_log)
    if streak >= flow_detector.STUCK_THRESHOLD:
        warning = (
            f"Exploration appears stuck: the last {streak} captures were duplicates. "
            "Try a different element or scroll to reveal new content."
        )

    candidates = navigable_elements(elements, matcher)
    if mode == ExplorationMode.GOAL_DRIVEN:
        return _goal_driven(goal, candidates, back_at_start, warning)
    return _discovery(candidates, back_at_start, warning, screen_count)


def _goal_driven(
    goal: str, candidates: List[Element], back_at_start: bool, warning: Optional[str]
) -> Guidance:
    keywords = extract_keywords(goal)
    matches = [el for el in candidates if any(kw in el.text.lower() for kw in keywords)]
    suggestions: List[str] = []

    if matches:
        shown = ", ".join(f'"{el.text}"' for el in matches)
        progress = f"Goal-relevant content visible: {shown}. Note the information, then finish."
        suggestions.extend(
            [
                "Remember: note the relevant information on screen",
                "Screenshot: capture this screen for reference",
                "Finish: complete the exploration",
            ]
        )
    else:
        progress = f'Goal "{goal}" is not yet visible on this screen.'
        ranked = rank_by_goal_relevance(candidates, keywords)
        for i, el in enumerate(ranked[:MAX_SUGGESTIONS]):
            if i == 0 and keywords:
                suggestions.append(f'Tap "{el.text}": may lead toward "{goal}"')
            else:
                suggestions.append(f'Tap "{el.text}"')
        if len(candidates) > MAX_SUGGESTIONS:
            suggestions.append("Scroll down: more content may be below")

    if back_at_start:
        suggestions.append("Back at start screen: consider finishing exploration")
    return Guidance(suggestions, progress, warning, back_at_start)


def _discovery(
    candidates: List[Element], back_at_start: bool, warning: Optional[str], screen_count: int
) -> Guidance:
    suggestions: List[str] = []
    progress: Optional[str] = None
    top = candidates[:MAX_SUGGESTIONS]

    if screen_count <= 1:
        progress = "Discovery mode: explore the flows available on this screen."
        suggestions.extend(f'Tap "{el.text}": explore this flow' for el in top)
        if len(candidates) > MAX_SUGGESTIONS:
            suggestions.append(f"Scroll down: {len(candidates) - MAX_SUGGESTIONS} more elements below")
    elif back_at_start:
        progress = "Back at start screen: pick another flow to explore, or finish."
        suggestions.extend(f'Tap "{el.text}": explore this flow' for el in top)
    else:
        suggestions.extend(f'Tap "{el.text}"' for el in top)
        suggestions.append("Press back: return to the previous screen")

    return Guidance(suggestions, progress, warning, back_at_start)
