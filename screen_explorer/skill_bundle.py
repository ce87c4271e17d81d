from __future__ import annotations

"""Compile a finalized exploration into human-readable automation scripts ("skills").

A graph without branching becomes one script that follows the screens in
capture order. A branching graph becomes one script per root-to-leaf flow,
each named after the point where it diverges from the others.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .knowledge import ActionType, Element, ElementRole, ExploredScreen
from .path_finder import PathFinder
from .session import FinalizedSession
from .state_matcher import StateMatcher

logger = logging.getLogger(__name__)

# Landmarks are taken from the header when possible: it names the screen.
HEADER_ZONE_FRACTION = 0.28

_ACTION_VERBS: Dict[ActionType, str] = {
    ActionType.TAP: "Tap",
    ActionType.SWIPE: "Swipe",
    ActionType.TYPE: "Type",
    ActionType.PRESS_KEY: "Press key",
    ActionType.SCROLL_TO: "Scroll to",
    ActionType.LONG_PRESS: "Long press",
    ActionType.OTHER: "Go to",
}


@dataclass(frozen=True)
class SkillStep:
    """One step of a script. `action` is None for the launch step."""

    action: Optional[ActionType]
    target: str
    wait_for: Optional[str] = None

    def describe(self) -> str:
        if self.action is None:
            return f"Launch **{self.target}**"
        if not self.target:
            return "Continue to the next screen"
        return f'{_ACTION_VERBS.get(self.action, "Go to")} "{self.target}"'


@dataclass(frozen=True)
class SkillDocument:
    name: str
    slug: str
    app_name: str
    goal: str
    steps: Tuple[SkillStep, ...]

    @property
    def landmarks(self) -> List[str]:
        return [s.wait_for for s in self.steps if s.wait_for]

    def render(self) -> str:
        """Markdown with a small front matter block and a numbered step list."""
        lines = [
            "---",
            f"name: {self.name}",
            f"app: {self.app_name}",
        ]
        if self.goal:
            lines.append(f"description: {self.goal}")
        lines += ["---", "", f"# {self.name}", ""]
        if self.goal:
            lines += [f"Goal: {self.goal}", ""]
        lines += ["## Steps", ""]
        for i, step in enumerate(self.steps, start=1):
            lines.append(f"{i}. {step.describe()}")
            if step.wait_for:
                lines.append(f'   - Wait for "{step.wait_for}" to appear')
        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class SkillBundle:
    app_name: str
    skills: Tuple[SkillDocument, ...]

    def __len__(self) -> int:
        return len(self.skills)

    def get(self, slug: str) -> Optional[SkillDocument]:
        return next((s for s in self.skills if s.slug == slug), None)


# ---------------------------------------------------------------------------
# landmarks

def pick_landmark(
    elements: Sequence[Element],
    matcher: Optional[StateMatcher] = None,
    screen_height: Optional[float] = None,
) -> Optional[str]:
    """Choose a stable element text that identifies the screen.

    Never picks volatile text (status bar, clocks, counters). Header-zone
    elements are preferred, decoration last, then top-to-bottom.
    """
    m = matcher or StateMatcher()
    header_max_y = (screen_height or m.screen_height) * HEADER_ZONE_FRACTION
    candidates = [
        (i, el) for i, el in enumerate(elements) if m.is_landmark_candidate(el, screen_height)
    ]
    if not candidates:
        return None
    _, best = min(
        candidates,
        key=lambda item: (
            item[1].role == ElementRole.DECORATION,
            item[1].y >= header_max_y,
            item[1].y,
            item[1].x,
            item[0],
        ),
    )
    return m.normalize(best.text)


def build_steps(
    app_name: str,
    screens: Sequence[ExploredScreen],
    matcher: Optional[StateMatcher] = None,
) -> Tuple[SkillStep, ...]:
    """Launch step for the first screen, then one step per arrival.

    A landmark already waited for earlier in the same script is not repeated.
    """
    seen: Set[str] = set()

    def landmark_once(screen: ExploredScreen) -> Optional[str]:
        landmark = pick_landmark(screen.elements, matcher)
        if landmark is None or landmark in seen:
            return None
        seen.add(landmark)
        return landmark

    if not screens:
        return (SkillStep(action=None, target=app_name),)
    steps = [SkillStep(action=None, target=app_name, wait_for=landmark_once(screens[0]))]
    for screen in screens[1:]:
        steps.append(
            SkillStep(
                action=screen.action_type or ActionType.OTHER,
                target=screen.arrived_via or "",
                wait_for=landmark_once(screen),
            )
        )
    return tuple(steps)


# ---------------------------------------------------------------------------
# naming

def title_for(app_name: str, goal: str) -> str:
    text = goal.strip() or f"{app_name} exploration"
    return " ".join(word[:1].upper() + word[1:] for word in text.split())


def slugify(*parts: str) -> str:
    joined = " ".join(p for p in parts if p).lower()
    return re.sub(r"[^a-z0-9]+", "-", joined).strip("-") or "skill"


def _unique(slug: str, taken: Set[str]) -> str:
    candidate, n = slug, 2
    while candidate in taken:
        candidate = f"{slug}-{n}"
        n += 1
    taken.add(candidate)
    return candidate


# ---------------------------------------------------------------------------
# generation

def generate(
    finalized: FinalizedSession,
    matcher: Optional[StateMatcher] = None,
    path_finder: Optional[PathFinder] = None,
) -> SkillBundle:
    """Compile the finalized session into a bundle of one or more skills."""
    finder = path_finder or PathFinder()
    snapshot = finalized.graph_snapshot
    app = finalized.app_name
    taken: Set[str] = set()

    def document(goal: str, screens: Sequence[ExploredScreen]) -> SkillDocument:
        name = title_for(app, goal)
        return SkillDocument(
            name=name,
            slug=_unique(slugify(app, name), taken),
            app_name=app,
            goal=goal,
            steps=build_steps(app, screens, matcher),
        )

    paths = finder.find_interesting_paths(snapshot) if finder.is_branching(snapshot) else []
    skills = [
        document(path.name, screens)
        for path in paths
        for screens in [finder.path_to_screens(path.edges, snapshot)]
        if screens
    ]
    if not skills:
        skills = [document(finalized.goal, finalized.screens)]

    logger.info("Generated %d skill(s) for %s", len(skills), app)
    return SkillBundle(app_name=app, skills=tuple(skills))
