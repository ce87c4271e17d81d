from __future__ import annotations

"""Capture/dedup front end of an exploration run.

A session owns the exploration graph. Snapshots arrive one at a time, either
from an operator driving the app by hand or from the DFS explorer, and each
one is classified as the start screen, a genuinely new screen, a return to a
known screen (cycle closure) or a duplicate of the current screen.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from .errors import NothingCapturedError, SessionAlreadyActiveError, SessionNotActiveError
from .guidance import ExplorationMode, Guidance, analyze
from .knowledge import (
    ActionRecord,
    ActionType,
    Element,
    ExplorationAction,
    ExplorationGraph,
    ExploredScreen,
    GraphSnapshot,
    NonTextDetection,
    ScreenNode,
    Snapshot,
    as_elements,
)
from .state_matcher import StateMatcher
from .strategies import ExplorationStrategy, MobileAppStrategy

logger = logging.getLogger(__name__)


class TransitionKind(str, Enum):
    """What the most recent capture did to the graph."""

    START = "start"
    NEW_SCREEN = "newScreen"
    REVISITED = "revisited"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class FinalizedSession:
    app_name: str
    goal: str
    screens: Tuple[ExploredScreen, ...]
    graph_snapshot: GraphSnapshot


class ExplorationSession:
    """Single-owner session: one per exploration run, threaded through every call."""

    def __init__(
        self,
        matcher: Optional[StateMatcher] = None,
        classifier: Optional[ExplorationStrategy] = None,
    ) -> None:
        self._matcher = matcher or StateMatcher()
        # used only to label nodes with a screen type
        self._classifier = classifier or MobileAppStrategy(self._matcher)
        self._active = False
        self._app_name = ""
        self._goal = ""
        self._goals_queue: List[str] = []
        self._goal_index = 0
        self._reset_goal_state()

    def _reset_goal_state(self) -> None:
        self._screens: List[ExploredScreen] = []
        self._action_log: List[ExplorationAction] = []
        self._graph = ExplorationGraph()
        self._start_elements: Optional[Tuple[Element, ...]] = None
        self._last_transition: Optional[TransitionKind] = None

    def _require_active(self, operation: str) -> None:
        if not self._active:
            raise SessionNotActiveError(f"cannot {operation}: no exploration session is active")

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def start(self, app_name: str, goal: str = "", goals: Optional[Sequence[str]] = None) -> None:
        """Begin a new run. `goals[0]` becomes the current goal, the rest are queued."""
        if self._active:
            raise SessionAlreadyActiveError(
                f"an exploration of {self._app_name!r} is already active; finalize it first"
            )
        self._reset_goal_state()
        self._app_name = app_name
        if goals:
            self._goals_queue = list(goals)
        else:
            self._goals_queue = [goal] if goal else []
        self._goal_index = 0
        self._goal = self._goals_queue[0] if self._goals_queue else ""
        self._active = True
        logger.info("Exploration session started for %s (goal: %r)", app_name, self._goal)

    def capture(
        self,
        elements: Sequence[Any],
        hints: Sequence[str] = (),
        icons: Sequence[NonTextDetection] = (),
        action_type: Any = None,
        arrived_via: Optional[str] = None,
        screenshot_ref: Any = None,
        screen_height: Optional[float] = None,
    ) -> bool:
        """Record one observed screen. Returns False when it duplicates the current screen."""
        snapshot = Snapshot(
            elements=as_elements(elements),
            hints=tuple(hints),
            non_text_detections=tuple(icons),
            raw_image_ref=screenshot_ref,
            screen_height=screen_height,
        )
        return self.capture_snapshot(snapshot, action_type=action_type, arrived_via=arrived_via)

    def capture_snapshot(
        self,
        snapshot: Snapshot,
        action_type: Any = None,
        arrived_via: Optional[str] = None,
    ) -> bool:
        self._require_active("capture")
        act = ActionType.coerce(action_type) if action_type is not None else None
        fingerprint = self._matcher.extract(snapshot)
        current = self._graph.current_node

        # 1. first capture: the start screen ---------------------------------
        if current is None:
            node = self._new_node(snapshot, fingerprint, depth=0)
            self._graph.add_node(node)
            self._start_elements = snapshot.elements
            self._append_screen(snapshot, act, arrived_via, node.node_id)
            self._log(act, arrived_via, duplicate=False)
            self._last_transition = TransitionKind.START
            logger.info("Start screen %s captured (%d texts)", node.node_id[:8], len(fingerprint))
            return True

        # 2. unchanged screen: the action had no effect ------------------------
        if self._matcher.are_equal(current.fingerprint, fingerprint):
            self._log(act, arrived_via, duplicate=True)
            self._last_transition = TransitionKind.DUPLICATE
            logger.debug("Duplicate capture after %s %r", act, arrived_via)
            return False

        record = ActionRecord(type=act or ActionType.OTHER, target=arrived_via or "")

        # 3. known screen elsewhere in the graph: cycle closure ----------------
        existing = self._matcher.match_state(self._graph, fingerprint, exclude=current.node_id)
        if existing is not None:
            existing.visit_count += 1
            self._graph.add_edge(current.node_id, existing.node_id, replace(record, was_duplicate=True))
            self._graph.set_current(existing.node_id)
            self._append_screen(snapshot, act, arrived_via, existing.node_id, revisit=True)
            self._log(act, arrived_via, duplicate=False)
            self._last_transition = TransitionKind.REVISITED
            logger.info(
                "Returned to screen %s (visit %d) via %r",
                existing.node_id[:8], existing.visit_count, arrived_via,
            )
            return True

        # 4. new screen --------------------------------------------------------
        node = self._new_node(snapshot, fingerprint, depth=current.depth + 1)
        self._graph.add_node(node)
        self._graph.add_edge(current.node_id, node.node_id, record)
        self._append_screen(snapshot, act, arrived_via, node.node_id)
        self._log(act, arrived_via, duplicate=False)
        self._last_transition = TransitionKind.NEW_SCREEN
        logger.info(
            "New screen %s at depth %d via %r (%d total)",
            node.node_id[:8], node.depth, arrived_via, self._graph.node_count,
        )
        return True

    def finalize(self) -> FinalizedSession:
        """Hand over the captured data for the current goal and advance the goal queue."""
        self._require_active("finalize")
        if not self._screens:
            raise NothingCapturedError(
                f"no screens were captured for {self._app_name!r}; nothing to finalize"
            )
        result = FinalizedSession(
            app_name=self._app_name,
            goal=self._goal,
            screens=tuple(self._screens),
            graph_snapshot=self._graph.snapshot(),
        )

        if self._goal_index + 1 < len(self._goals_queue):
            self._goal_index += 1
            self._goal = self._goals_queue[self._goal_index]
            self._reset_goal_state()
            logger.info("Advancing to goal %d/%d: %r", self._goal_index + 1, len(self._goals_queue), self._goal)
        else:
            self._reset_goal_state()
            self._app_name = ""
            self._goal = ""
            self._goals_queue = []
            self._goal_index = 0
            self._active = False
            logger.info("Exploration session finalized")
        return result

    # ------------------------------------------------------------------
    # explorer support
    # ------------------------------------------------------------------
    def mark_tried(self, node_id: str, text: str) -> None:
        node = self._node_or_raise(node_id)
        node.tried.add(self._matcher.normalize(text))

    def record_action(self, action_type: Any, target: Optional[str], had_effect: bool) -> None:
        """Log an action that produced no capture (failed tap, backtrack).

        Actions without effect count toward the stuck streak like duplicate captures.
        """
        self._require_active("record an action")
        self._log(ActionType.coerce(action_type), target, duplicate=not had_effect)

    def relocate(self, node_id: str) -> None:
        """Sync the current node after a backtrack moved the app to a known screen."""
        self._node_or_raise(node_id)
        self._graph.set_current(node_id)

    def merge_scrolled_elements(self, node_id: str, elements: Sequence[Element]) -> int:
        """Add elements revealed by scrolling; returns how many texts were novel."""
        node = self._node_or_raise(node_id)
        known = {self._matcher.normalize(el.text) for el in node.elements}
        novel: List[Element] = []
        for el in elements:
            text = self._matcher.normalize(el.text)
            if text in known or self._matcher.is_volatile(el):
                continue
            known.add(text)
            novel.append(el)
        node.scrolled_elements.extend(novel)
        node.scroll_count += 1
        return len(novel)

    def exhaust_scrolling(self, node_id: str, limit: int) -> None:
        node = self._node_or_raise(node_id)
        node.scroll_count = max(node.scroll_count, limit)

    def guidance(self) -> Guidance:
        """Suggest what to do next on the most recently captured screen."""
        self._require_active("produce guidance")
        last = self._screens[-1] if self._screens else None
        return analyze(
            mode=self.mode,
            goal=self._goal,
            elements=last.elements if last else (),
            hints=last.hints if last else (),
            start_elements=self._start_elements,
            action_log=self._action_log,
            screen_count=len(self._screens),
            matcher=self._matcher,
        )

    # ------------------------------------------------------------------
    # read-only accessors
    # ------------------------------------------------------------------
    @property
    def active(self) -> bool:
        return self._active

    @property
    def app_name(self) -> str:
        return self._app_name

    @property
    def goal(self) -> str:
        return self._goal

    @property
    def mode(self) -> ExplorationMode:
        return ExplorationMode.GOAL_DRIVEN if self._goal else ExplorationMode.DISCOVERY

    @property
    def goals_queue(self) -> Tuple[str, ...]:
        return tuple(self._goals_queue)

    @property
    def current_goal_index(self) -> int:
        return self._goal_index

    @property
    def total_goals(self) -> int:
        return len(self._goals_queue)

    @property
    def has_more_goals(self) -> bool:
        return self._goal_index + 1 < len(self._goals_queue)

    @property
    def remaining_goals(self) -> Tuple[str, ...]:
        return tuple(self._goals_queue[self._goal_index + 1:])

    @property
    def screens(self) -> Tuple[ExploredScreen, ...]:
        return tuple(self._screens)

    @property
    def screen_count(self) -> int:
        return len(self._screens)

    @property
    def action_log(self) -> Tuple[ExplorationAction, ...]:
        return tuple(self._action_log)

    @property
    def start_elements(self) -> Optional[Tuple[Element, ...]]:
        return self._start_elements

    @property
    def last_transition(self) -> Optional[TransitionKind]:
        return self._last_transition

    @property
    def graph(self) -> ExplorationGraph:
        """The live graph. Readers must not mutate it; use `snapshot()` for a safe copy."""
        return self._graph

    @property
    def matcher(self) -> StateMatcher:
        return self._matcher

    # ------------------------------------------------------------------
    def _new_node(self, snapshot: Snapshot, fingerprint, depth: int) -> ScreenNode:
        return ScreenNode(
            node_id=fingerprint.hash,
            snapshot=snapshot,
            fingerprint=fingerprint,
            depth=depth,
            screen_type=self._classifier.classify_screen(snapshot.elements, snapshot.hints),
        )

    def _node_or_raise(self, node_id: str) -> ScreenNode:
        node = self._graph.node(node_id)
        if node is None:
            raise KeyError(f"unknown node {node_id}")
        return node

    def _append_screen(
        self,
        snapshot: Snapshot,
        action_type: Optional[ActionType],
        arrived_via: Optional[str],
        node_id: str,
        revisit: bool = False,
    ) -> None:
        self._screens.append(
            ExploredScreen(
                index=len(self._screens),
                elements=snapshot.elements,
                hints=snapshot.hints,
                action_type=action_type,
                arrived_via=arrived_via,
                screenshot_ref=snapshot.raw_image_ref,
                node_id=node_id,
                revisit=revisit,
            )
        )

    def _log(self, action_type: Optional[ActionType], arrived_via: Optional[str], duplicate: bool) -> None:
        self._action_log.append(
            ExplorationAction(action_type=action_type, arrived_via=arrived_via, was_duplicate=duplicate)
        )
