from __future__ import annotations

"""Autonomous depth-first exploration driver.

Each `step()` performs at most one external action followed by one
observation: tap the best untried element, scroll to reveal more, or
navigate back. The explorer never sleeps; settling after an action is the
execution collaborator's job.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from . import flow_detector, skill_bundle
from .budget import ExplorationBudget
from .errors import ExplorerStateError, PerceptionUnavailableError
from .interfaces import Execution, Perception
from .knowledge import ActionType, BacktrackAction, Element, GraphSnapshot, ScreenNode, ScreenType, Snapshot
from .session import ExplorationSession, TransitionKind
from .skill_bundle import SkillBundle
from .strategies import ExplorationStrategy

logger = logging.getLogger(__name__)

BACK_KEY = "back"
HOME_KEY = "home"
SCROLL_DIRECTION = "down"


class ExplorerState(str, Enum):
    NOT_STARTED = "notStarted"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"


class PauseReason(str, Enum):
    STUCK = "stuck"
    PERCEPTION_UNAVAILABLE = "perceptionUnavailable"


# ---- step results ----------------------------------------------------------

@dataclass(frozen=True)
class Continue:
    description: str


@dataclass(frozen=True)
class Backtracked:
    from_id: str
    to_id: str


@dataclass(frozen=True)
class Paused:
    reason: PauseReason


@dataclass(frozen=True)
class Finished:
    bundle: SkillBundle


StepResult = Union[Continue, Backtracked, Paused, Finished]


@dataclass(frozen=True)
class ExplorationStats:
    node_count: int
    edge_count: int
    action_count: int
    elapsed_seconds: float


class DFSExplorer:
    """Depth-first explorer over the screens of one app.

    Owns the backtrack stack; the graph itself is owned by the session and is
    only changed through it. The session must already hold the start screen
    when `mark_started()` is called.
    """

    def __init__(
        self,
        session: ExplorationSession,
        strategy: ExplorationStrategy,
        perception: Perception,
        executor: Execution,
        budget: Optional[ExplorationBudget] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.strategy = strategy
        self.perception = perception
        self.executor = executor
        self.budget = budget or ExplorationBudget()
        self._clock = clock

        self._state = ExplorerState.NOT_STARTED
        self._pause_reason: Optional[PauseReason] = None
        self._stack: List[str] = []
        self._start_time = 0.0
        self._finished_at: Optional[float] = None
        self._action_count = 0
        self._actions_from: Dict[str, int] = {}
        self._needs_backtrack = False
        # action whose outcome could not be observed; recorded on the next step
        self._unobserved: Optional[Tuple[ActionType, str]] = None
        self._result: Optional[Finished] = None
        self._final_snapshot: Optional[GraphSnapshot] = None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def mark_started(self) -> None:
        """Start the clock and make the current screen the backtracking home."""
        if self._state != ExplorerState.NOT_STARTED:
            raise ExplorerStateError(f"explorer already {self._state.value}")
        graph = self.session.graph
        if not graph.started:
            raise ExplorerStateError("capture the start screen before starting exploration")
        self._start_time = self._clock()
        self._stack = [graph.current_id]
        self._state = ExplorerState.RUNNING
        logger.info("DFS exploration of %s started", self.session.app_name)

    def resume(self) -> None:
        """Continue after a pause.

        The no-effect streak that caused a stuck pause is kept in the action
        log, so the next action must change the screen or the explorer pauses
        again.
        """
        if self._state != ExplorerState.PAUSED:
            raise ExplorerStateError(f"cannot resume an explorer that is {self._state.value}")
        logger.info("Resuming exploration after %s", self._pause_reason)
        self._state = ExplorerState.RUNNING
        self._pause_reason = None

    @property
    def state(self) -> ExplorerState:
        return self._state

    @property
    def completed(self) -> bool:
        return self._state == ExplorerState.FINISHED

    @property
    def pause_reason(self) -> Optional[PauseReason]:
        return self._pause_reason

    @property
    def backtrack_stack(self) -> List[str]:
        return list(self._stack)

    @property
    def final_snapshot(self) -> Optional[GraphSnapshot]:
        """Graph as it was when the run finished; None while still exploring."""
        return self._final_snapshot

    @property
    def stats(self) -> ExplorationStats:
        if self._final_snapshot is not None:
            nodes, edges = self._final_snapshot.node_count, self._final_snapshot.edge_count
        else:
            nodes, edges = self.session.graph.node_count, self.session.graph.edge_count
        return ExplorationStats(
            node_count=nodes,
            edge_count=edges,
            action_count=self._action_count,
            elapsed_seconds=self._elapsed(),
        )

    def _elapsed(self) -> float:
        if self._state == ExplorerState.NOT_STARTED:
            return 0.0
        end = self._finished_at if self._finished_at is not None else self._clock()
        return end - self._start_time

    # ------------------------------------------------------------------
    # main loop
    # ------------------------------------------------------------------
    def step(self) -> StepResult:
        """Perform one exploration action and report what happened."""
        if self._state == ExplorerState.NOT_STARTED:
            raise ExplorerStateError("call mark_started() before step()")
        if self._result is not None:
            return self._result
        if self._state == ExplorerState.PAUSED:
            return Paused(self._pause_reason)

        if self._unobserved is not None:
            return self._observe_pending()

        graph = self.session.graph
        elapsed = self._elapsed()
        # depth is enforced per screen through the strategy, not as a run limit
        if self.budget.is_exhausted(0, graph.node_count, elapsed):
            return self._finish(
                f"budget reached after {elapsed:.0f}s and {graph.node_count} screens"
            )

        node = graph.current_node
        depth = len(self._stack) - 1
        if self._needs_backtrack:
            self._needs_backtrack = False
            return self._backtrack(node, depth)

        screen_type = self.strategy.classify_screen(node.elements, node.hints)
        if self.strategy.is_terminal(node.elements, depth, self.budget, screen_type):
            logger.debug("Screen %s is terminal at depth %d", node.node_id[:8], depth)
            return self._backtrack(node, depth)

        candidates = self._candidates(node, depth, screen_type)
        if candidates:
            if self._actions_from.get(node.node_id, 0) < self.budget.max_actions_per_screen:
                return self._tap(node, candidates[0])
            logger.info("Action cap reached on %s, backtracking", node.node_id[:8])
            return self._backtrack(node, depth)

        scrolled = self._scroll(node)
        if scrolled is not None:
            return scrolled
        return self._backtrack(node, depth)

    def run(self, max_steps: Optional[int] = None) -> StepResult:
        """Step until finished or paused (or `max_steps` steps were taken)."""
        result: StepResult = Continue("not stepped")
        taken = 0
        while max_steps is None or taken < max_steps:
            result = self.step()
            taken += 1
            if isinstance(result, (Finished, Paused)):
                break
        return result

    # ------------------------------------------------------------------
    # actions
    # ------------------------------------------------------------------
    def _candidates(self, node: ScreenNode, depth: int, screen_type: ScreenType) -> List[Element]:
        normalize = self.session.matcher.normalize
        ranked = self.strategy.rank_elements(
            node.elements,
            node.snapshot.non_text_detections,
            node.tried,
            depth,
            screen_type,
            self.budget,
        )
        return [
            el
            for el in ranked
            if normalize(el.text) not in node.tried and not self.strategy.should_skip(el.text, self.budget)
        ]

    def _tap(self, node: ScreenNode, target: Element) -> StepResult:
        self.session.mark_tried(node.node_id, target.text)
        self._actions_from[node.node_id] = self._actions_from.get(node.node_id, 0) + 1
        self._action_count += 1

        outcome = self.executor.perform(ActionType.TAP, target.text)
        if not outcome.success:
            logger.warning("Tap on %r failed: %s", target.text, outcome.error)
            self.session.record_action(ActionType.TAP, target.text, had_effect=False)
            if flow_detector.is_stuck(self.session.action_log):
                return self._pause(PauseReason.STUCK)
            return Continue(f'Could not tap "{target.text}": {outcome.error}')

        snapshot = self._observe()
        if snapshot is None:
            self._unobserved = (ActionType.TAP, target.text)
            return Paused(PauseReason.PERCEPTION_UNAVAILABLE)
        return self._record_tap(target.text, snapshot)

    def _record_tap(self, text: str, snapshot: Snapshot) -> StepResult:
        if not self.session.capture_snapshot(snapshot, action_type=ActionType.TAP, arrived_via=text):
            if flow_detector.is_stuck(self.session.action_log):
                return self._pause(PauseReason.STUCK)
            return Continue(f'Tapped "{text}": no screen change')

        arrived = self.session.graph.current_id
        if self.session.last_transition == TransitionKind.NEW_SCREEN:
            self._stack.append(arrived)
            return Continue(
                f'Tapped "{text}": new screen ({self.session.graph.node_count} total)'
            )

        # cycle closure onto a known screen
        if arrived in self._stack:
            del self._stack[self._stack.index(arrived) + 1:]
        else:
            # known screen off the current path: leave it again on the next step
            self._stack.append(arrived)
            self._needs_backtrack = True
        return Continue(f'Tapped "{text}": revisited screen')

    def _scroll(self, node: ScreenNode) -> Optional[StepResult]:
        """Swipe to reveal hidden elements; None once scrolling is exhausted."""
        if node.scroll_count >= self.budget.scroll_limit:
            return None
        self._action_count += 1
        outcome = self.executor.perform(ActionType.SWIPE, SCROLL_DIRECTION)
        if not outcome.success:
            logger.warning("Scroll on %s failed: %s", node.node_id[:8], outcome.error)
            self.session.exhaust_scrolling(node.node_id, self.budget.scroll_limit)
            return None

        snapshot = self._observe()
        if snapshot is None:
            self._unobserved = (ActionType.SWIPE, SCROLL_DIRECTION)
            return Paused(PauseReason.PERCEPTION_UNAVAILABLE)
        return self._record_scroll(node, snapshot)

    def _record_scroll(self, node: ScreenNode, snapshot: Snapshot) -> Optional[StepResult]:
        novel = self.session.merge_scrolled_elements(node.node_id, snapshot.elements)
        logger.debug("Scroll %d on %s revealed %d elements", node.scroll_count, node.node_id[:8], novel)
        if novel:
            return Continue(f"Scrolled, found {novel} new elements")
        self.session.exhaust_scrolling(node.node_id, self.budget.scroll_limit)
        return None

    def _backtrack(self, node: ScreenNode, depth: int) -> StepResult:
        if len(self._stack) <= 1:
            return self._finish("all reachable screens explored")

        if len(self._stack) > 2 and self._root_has_work():
            logger.info("Fast backtrack to tab root from depth %d", depth)
            return self._navigate(HOME_KEY, node, self._stack[:1])

        method = self.strategy.backtrack_method(node.hints, depth)
        if method == BacktrackAction.NONE:
            return self._finish("no way back from the current screen")
        if method == BacktrackAction.RETURN_HOME:
            return self._navigate(HOME_KEY, node, self._stack[:1])
        return self._navigate(BACK_KEY, node, self._stack[:-1])

    def _root_has_work(self) -> bool:
        root = self.session.graph.root_node
        if root is None:
            return False
        screen_type = self.strategy.classify_screen(root.elements, root.hints)
        if screen_type != ScreenType.TAB_ROOT:
            return False
        return bool(self._candidates(root, 0, screen_type))

    def _navigate(self, key: str, node: ScreenNode, stack: List[str]) -> StepResult:
        """Leave `node` with a key press and resync the graph with where the app landed."""
        self._action_count += 1
        outcome = self.executor.perform(ActionType.PRESS_KEY, key)
        if not outcome.success:
            logger.warning("Backtrack (%s) failed: %s", key, outcome.error)
            self.session.record_action(ActionType.PRESS_KEY, key, had_effect=False)
            if flow_detector.is_stuck(self.session.action_log):
                return self._pause(PauseReason.STUCK)
            return Continue(f"Backtrack failed: {outcome.error}")

        target = stack[-1]
        graph = self.session.graph
        matcher = self.session.matcher
        try:
            snapshot: Optional[Snapshot] = self.perception.observe()
        except PerceptionUnavailableError as exc:
            logger.warning("Could not verify backtrack, assuming %s: %s", target[:8], exc)
            snapshot = None

        if snapshot is not None:
            landed = matcher.extract(snapshot)
            if matcher.are_equal(node.fingerprint, landed):
                self.session.record_action(ActionType.PRESS_KEY, key, had_effect=False)
                if flow_detector.is_stuck(self.session.action_log):
                    return self._pause(PauseReason.STUCK)
                return Continue(f"Backtrack ({key}) had no effect")
            if not matcher.are_equal(graph.node(target).fingerprint, landed):
                for i in range(len(stack) - 1, -1, -1):
                    if matcher.are_equal(graph.node(stack[i]).fingerprint, landed):
                        stack = stack[: i + 1]
                        target = stack[-1]
                        break
                else:
                    logger.warning("Backtrack landed on an unexpected screen, assuming %s", target[:8])

        self.session.record_action(ActionType.PRESS_KEY, key, had_effect=True)
        self._stack = stack
        self.session.relocate(target)
        logger.info("Backtracked from %s to %s", node.node_id[:8], target[:8])
        return Backtracked(from_id=node.node_id, to_id=target)

    # ------------------------------------------------------------------
    def _observe_pending(self) -> StepResult:
        """Record the screen reached by an action whose result was not seen yet."""
        snapshot = self._observe()
        if snapshot is None:
            return Paused(PauseReason.PERCEPTION_UNAVAILABLE)
        action_type, target = self._unobserved
        self._unobserved = None
        logger.info("Screen visible again, recording result of %s %r", action_type.value, target)
        if action_type == ActionType.TAP:
            return self._record_tap(target, snapshot)
        result = self._record_scroll(self.session.graph.current_node, snapshot)
        if result is None:
            return Continue("Scrolled, no new elements")
        return result

    def _observe(self) -> Optional[Snapshot]:
        try:
            return self.perception.observe()
        except PerceptionUnavailableError as exc:
            logger.warning("Screen unavailable: %s", exc)
            return None

    def _pause(self, reason: PauseReason) -> Paused:
        self._state = ExplorerState.PAUSED
        self._pause_reason = reason
        logger.info("Exploration paused: %s", reason.value)
        return Paused(reason)

    def _finish(self, why: str) -> Finished:
        self._finished_at = self._clock()
        self._state = ExplorerState.FINISHED
        finalized = self.session.finalize()
        self._final_snapshot = finalized.graph_snapshot
        bundle = skill_bundle.generate(finalized, matcher=self.session.matcher)
        logger.info(
            "Exploration finished (%s): %d screens, %d actions, %d skill(s)",
            why, self._final_snapshot.node_count, self._action_count, len(bundle),
        )
        self._result = Finished(bundle)
        return self._result
