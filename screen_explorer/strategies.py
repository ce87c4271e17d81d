from __future__ import annotations

"""Per-app-category exploration policies.

The DFS control loop is generic; everything that depends on the kind of app
(which screens are lists, which elements are worth tapping, when to stop, how
to get back) lives behind the `ExplorationStrategy` capability set.
`MobileAppStrategy` is the default. `SocialAppStrategy` and
`DesktopAppStrategy` wrap another strategy, call it first and add their own
filtering on top. Strategies hold only immutable configuration, so a single
instance can be shared across runs.
"""

import logging
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Protocol, Sequence, Set

from .budget import ExplorationBudget
from .knowledge import BacktrackAction, Element, ElementRole, NonTextDetection, ScreenType
from .state_matcher import StateMatcher

logger = logging.getLogger(__name__)

_DEFAULT_BUDGET = ExplorationBudget()

# Lower sorts first.
_ROLE_PRIORITY: Dict[ElementRole, int] = {
    ElementRole.NAVIGATION: 0,
    ElementRole.UNKNOWN: 1,
    ElementRole.STATE_CHANGE: 2,
    ElementRole.INFO: 3,
    ElementRole.DECORATION: 4,
}

BACK_HINT_MARKERS = ("back navigation", "back button")
NO_BACK_HINT_MARKERS = ("no back navigation", "no back button")


class ExplorationStrategy(Protocol):
    """Capability set every exploration policy provides."""

    def classify_screen(self, elements: Sequence[Element], hints: Sequence[str]) -> ScreenType:
        ...

    def rank_elements(
        self,
        elements: Sequence[Element],
        icons: Sequence[NonTextDetection],
        visited: Set[str],
        depth: int,
        screen_type: ScreenType,
        budget: Optional[ExplorationBudget] = None,
    ) -> List[Element]:
        ...

    def should_skip(self, text: str, budget: Optional[ExplorationBudget] = None) -> bool:
        ...

    def is_terminal(
        self,
        elements: Sequence[Element],
        depth: int,
        budget: ExplorationBudget,
        screen_type: ScreenType,
    ) -> bool:
        ...

    def backtrack_method(self, hints: Sequence[str], depth: int) -> BacktrackAction:
        ...

    def extract_fingerprint(
        self, elements: Sequence[Element], icons: Sequence[NonTextDetection]
    ) -> str:
        ...


def _has_hint(hints: Sequence[str], markers: Sequence[str]) -> bool:
    lowered = [h.lower() for h in hints]
    return any(marker in h for h in lowered for marker in markers)


class MobileAppStrategy:
    """Default policy for standard mobile apps (settings, productivity, utilities).

    Recognises tab bars, lists, detail screens and modals, prefers untried
    navigation targets top-to-bottom and never promotes destructive actions.
    """

    modal_dismiss_patterns: FrozenSet[str] = frozenset({"close", "done", "cancel", "dismiss", "ok"})
    # navigable rows needed before a screen counts as a list
    list_row_threshold = 4
    # tab bars sit in the bottom 12% of the occupied area
    tab_bar_zone_fraction = 0.88
    tab_label_max_length = 20
    # header zone ends at roughly 28% of the screen height
    header_zone_fraction = 0.28
    navigable_max_length = 40

    def __init__(self, matcher: Optional[StateMatcher] = None) -> None:
        self.matcher = matcher or StateMatcher()

    # ------------------------------------------------------------------
    def navigable_elements(self, elements: Sequence[Element]) -> List[Element]:
        return [
            el
            for el in elements
            if not self.matcher.is_volatile(el)
            and el.role not in (ElementRole.DECORATION, ElementRole.INFO)
            and len(el.text.strip()) <= self.navigable_max_length
        ]

    def tab_bar_y(self, elements: Sequence[Element]) -> Optional[float]:
        if not elements:
            return None
        return max(el.y for el in elements) * self.tab_bar_zone_fraction

    def has_tab_bar(self, elements: Sequence[Element]) -> bool:
        threshold = self.tab_bar_y(elements)
        if threshold is None:
            return False
        bottom = [
            el
            for el in elements
            if el.y >= threshold and len(el.text.strip()) <= self.tab_label_max_length
        ]
        return len(bottom) >= 3

    # ------------------------------------------------------------------
    def classify_screen(self, elements: Sequence[Element], hints: Sequence[str]) -> ScreenType:
        has_back = _has_hint(hints, BACK_HINT_MARKERS) and not _has_hint(hints, NO_BACK_HINT_MARKERS)
        header_max_y = self.matcher.screen_height * self.header_zone_fraction
        has_modal_dismiss = any(
            el.y < header_max_y and el.text.strip().lower() in self.modal_dismiss_patterns
            for el in elements
        )
        if has_modal_dismiss:
            return ScreenType.MODAL
        if self.has_tab_bar(elements) and not has_back:
            return ScreenType.TAB_ROOT

        navigable = self.navigable_elements(elements)
        if len(navigable) >= self.list_row_threshold:
            return ScreenType.LIST if has_back else ScreenType.SETTINGS
        if has_back:
            return ScreenType.DETAIL
        return ScreenType.UNKNOWN

    def rank_elements(
        self,
        elements: Sequence[Element],
        icons: Sequence[NonTextDetection],
        visited: Set[str],
        depth: int,
        screen_type: ScreenType,
        budget: Optional[ExplorationBudget] = None,
    ) -> List[Element]:
        """Order candidates so the ones most likely to reveal new state come first.

        Sort keys, in order: already tried from this node, matches a skip
        pattern, role priority (navigation first, decoration last), tab bar
        zone on tab-root screens, then top-to-bottom, left-to-right and the
        original element order.
        """
        budget = budget or _DEFAULT_BUDGET
        tab_y = self.tab_bar_y(elements) if screen_type == ScreenType.TAB_ROOT else None

        def sort_key(item):
            idx, el = item
            in_tab_bar = tab_y is not None and el.y >= tab_y
            return (
                self.matcher.normalize(el.text) in visited,
                self.should_skip(el.text, budget),
                _ROLE_PRIORITY.get(el.role, 1),
                0 if in_tab_bar or tab_y is None else 1,
                el.y,
                el.x,
                idx,
            )

        candidates = [(i, el) for i, el in enumerate(elements) if not self.matcher.is_volatile(el)]
        ranked = [el for _, el in sorted(candidates, key=sort_key)]
        logger.debug(
            "Ranked %d/%d elements on %s screen at depth %d",
            len(ranked), len(elements), screen_type.value, depth,
        )
        return ranked

    def should_skip(self, text: str, budget: Optional[ExplorationBudget] = None) -> bool:
        return (budget or _DEFAULT_BUDGET).should_skip_element(text)

    def is_terminal(
        self,
        elements: Sequence[Element],
        depth: int,
        budget: ExplorationBudget,
        screen_type: ScreenType,
    ) -> bool:
        if depth >= budget.max_depth:
            return True
        return not any(not self.matcher.is_volatile(el) for el in elements)

    def backtrack_method(self, hints: Sequence[str], depth: int) -> BacktrackAction:
        if depth <= 0:
            return BacktrackAction.NONE
        if _has_hint(hints, NO_BACK_HINT_MARKERS):
            return BacktrackAction.RETURN_HOME
        return BacktrackAction.NAVIGATE_BACK

    def extract_fingerprint(
        self, elements: Sequence[Element], icons: Sequence[NonTextDetection]
    ) -> str:
        return self.matcher.signature(self.matcher.extract(elements).texts, icons)


class SocialAppStrategy:
    """Policy for social/feed apps (Reddit, Instagram, TikTok).

    Delegates to a base strategy and additionally drops sponsored content and
    engagement affordances, and stops expanding profile/thread pages early:
    feeds are deep but repetitive.
    """

    social_skip_patterns: FrozenSet[str] = frozenset(
        {
            "sponsored", "promoted", "story", "stories",
            "follow", "unfollow", "share", "repost",
            "upvote", "downvote", "like", "comment",
        }
    )

    def __init__(
        self,
        base: Optional[ExplorationStrategy] = None,
        depth_caps: Optional[Mapping[ScreenType, int]] = None,
    ) -> None:
        self.base = base or MobileAppStrategy()
        # deepest depth at which a screen of the given type is still expanded
        self.depth_caps: Mapping[ScreenType, int] = dict(depth_caps or {ScreenType.DETAIL: 3})

    def is_social_noise(self, text: str) -> bool:
        words = text.lower().split()
        lowered = text.lower()
        for pattern in self.social_skip_patterns:
            # single-word patterns match whole words so "Likes & Favorites" survives "like"
            if " " in pattern and pattern in lowered:
                return True
            if pattern in words:
                return True
        return False

    def classify_screen(self, elements: Sequence[Element], hints: Sequence[str]) -> ScreenType:
        return self.base.classify_screen(elements, hints)

    def rank_elements(
        self,
        elements: Sequence[Element],
        icons: Sequence[NonTextDetection],
        visited: Set[str],
        depth: int,
        screen_type: ScreenType,
        budget: Optional[ExplorationBudget] = None,
    ) -> List[Element]:
        ranked = self.base.rank_elements(elements, icons, visited, depth, screen_type, budget)
        return [el for el in ranked if not self.is_social_noise(el.text)]

    def should_skip(self, text: str, budget: Optional[ExplorationBudget] = None) -> bool:
        return self.base.should_skip(text, budget) or self.is_social_noise(text)

    def is_terminal(
        self,
        elements: Sequence[Element],
        depth: int,
        budget: ExplorationBudget,
        screen_type: ScreenType,
    ) -> bool:
        if self.base.is_terminal(elements, depth, budget, screen_type):
            return True
        cap = self.depth_caps.get(screen_type)
        return cap is not None and depth > cap

    def backtrack_method(self, hints: Sequence[str], depth: int) -> BacktrackAction:
        return self.base.backtrack_method(hints, depth)

    def extract_fingerprint(
        self, elements: Sequence[Element], icons: Sequence[NonTextDetection]
    ) -> str:
        return self.base.extract_fingerprint(elements, icons)


class DesktopAppStrategy:
    """Policy for desktop windows: sidebar layouts, dialogs, key-press back navigation."""

    sidebar_max_x = 200.0
    sidebar_min_elements = 3
    list_min_elements = 4
    dialog_max_elements = 8
    modal_dismiss_patterns: FrozenSet[str] = frozenset({"ok", "cancel", "close", "done", "dismiss"})
    desktop_skip_patterns: FrozenSet[str] = frozenset({"quit", "force quit", "format", "uninstall"})

    def __init__(self, base: Optional[MobileAppStrategy] = None) -> None:
        self.base = base or MobileAppStrategy()

    def classify_screen(self, elements: Sequence[Element], hints: Sequence[str]) -> ScreenType:
        navigable = self.base.navigable_elements(elements)
        has_dismiss = any(el.text.strip().lower() in self.modal_dismiss_patterns for el in navigable)
        if has_dismiss and len(navigable) <= self.dialog_max_elements:
            return ScreenType.MODAL
        if sum(1 for el in navigable if el.x < self.sidebar_max_x) >= self.sidebar_min_elements:
            return ScreenType.SETTINGS
        if len(navigable) >= self.list_min_elements:
            return ScreenType.LIST
        if navigable:
            return ScreenType.DETAIL
        return ScreenType.UNKNOWN

    def rank_elements(
        self,
        elements: Sequence[Element],
        icons: Sequence[NonTextDetection],
        visited: Set[str],
        depth: int,
        screen_type: ScreenType,
        budget: Optional[ExplorationBudget] = None,
    ) -> List[Element]:
        ranked = self.base.rank_elements(elements, icons, visited, depth, screen_type, budget)
        normalize = self.base.matcher.normalize
        untried = [el for el in ranked if normalize(el.text) not in visited]
        tried = [el for el in ranked if normalize(el.text) in visited]
        # stable partition: sidebar entries before content, base order otherwise kept
        sidebar = [el for el in untried if el.x < self.sidebar_max_x]
        content = [el for el in untried if el.x >= self.sidebar_max_x]
        return sidebar + content + tried

    def should_skip(self, text: str, budget: Optional[ExplorationBudget] = None) -> bool:
        if self.base.should_skip(text, budget):
            return True
        lowered = text.lower()
        return any(pattern in lowered for pattern in self.desktop_skip_patterns)

    def is_terminal(
        self,
        elements: Sequence[Element],
        depth: int,
        budget: ExplorationBudget,
        screen_type: ScreenType,
    ) -> bool:
        if self.base.is_terminal(elements, depth, budget, screen_type):
            return True
        return screen_type == ScreenType.MODAL

    def backtrack_method(self, hints: Sequence[str], depth: int) -> BacktrackAction:
        return BacktrackAction.NAVIGATE_BACK if depth > 0 else BacktrackAction.NONE

    def extract_fingerprint(
        self, elements: Sequence[Element], icons: Sequence[NonTextDetection]
    ) -> str:
        return self.base.extract_fingerprint(elements, icons)


# ---------------------------------------------------------------------------
# strategy detection

STRATEGIES: Dict[str, Callable[[], ExplorationStrategy]] = {
    "mobile": MobileAppStrategy,
    "social": SocialAppStrategy,
    "desktop": DesktopAppStrategy,
}

SOCIAL_BUNDLE_PREFIXES = (
    "com.reddit.",
    "com.facebook.",
    "com.instagram.",
    "com.atebits.tweetie2",
    "com.zhiliaoapp.musically",
    "com.toyopagroup.picaboo",
)

SOCIAL_APP_NAMES = frozenset(
    {"reddit", "instagram", "facebook", "twitter", "x", "tiktok", "snapchat"}
)


def detect_strategy_name(
    app_name: str,
    bundle_id: Optional[str] = None,
    target_type: Optional[str] = None,
    explicit: Optional[str] = None,
) -> str:
    """Explicit override, then target type, then bundle id, then app name, else mobile."""
    if explicit and explicit in STRATEGIES:
        return explicit
    if explicit:
        logger.warning("Unknown strategy %r, falling back to detection", explicit)
    if target_type == "generic-window":
        return "desktop"
    if bundle_id and bundle_id.lower().startswith(SOCIAL_BUNDLE_PREFIXES):
        return "social"
    if app_name.strip().lower() in SOCIAL_APP_NAMES:
        return "social"
    return "mobile"


def detect_strategy(
    app_name: str,
    bundle_id: Optional[str] = None,
    target_type: Optional[str] = None,
    explicit: Optional[str] = None,
) -> ExplorationStrategy:
    name = detect_strategy_name(app_name, bundle_id, target_type, explicit)
    logger.info("Using %s strategy for %s", name, app_name)
    return STRATEGIES[name]()
