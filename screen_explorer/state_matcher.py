from __future__ import annotations

"""Utilities for determining if two observed screens are the same screen.

Screens are compared by a *fingerprint*: the set of their element texts after
volatile noise is stripped (status bar band, clock readings, bare counters).
Equality is Jaccard similarity over those sets rather than exact set equality,
which tolerates OCR jitter and partially scrolled lists.
"""

import hashlib
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

from .knowledge import Element, ExplorationGraph, NonTextDetection, ScreenNode, Snapshot

# Jaccard index at or above which two screens are the same screen. Scrolled list
# views keep 60-80% of their items, real navigation changes the header. This is
# the single most sensitive constant of the engine.
SCREEN_SIMILARITY_THRESHOLD = 0.8

# Top band of the screen occupied by the status bar (clock, battery, carrier).
STATUS_BAR_FRACTION = 0.09
DEFAULT_SCREEN_HEIGHT = 890.0

# Landmark candidates: long enough to be meaningful, short enough to be a label.
LANDMARK_MIN_LENGTH = 3
LANDMARK_MAX_LENGTH = 40
LANDMARK_MIN_CONFIDENCE = 0.5

_TIME_PATTERN = re.compile(r"^\d{1,2}:\d{2}$")
_BARE_NUMBER_PATTERN = re.compile(r"^\d+(?:[.,]\d+)*$")


@dataclass(frozen=True)
class Fingerprint:
    """Filtered, order-independent summary of a screen's text content."""

    texts: frozenset
    hash: str

    def __len__(self) -> int:
        return len(self.texts)


Comparable = Union[Fingerprint, Snapshot, Sequence[Element]]


class StateMatcher:
    """Fingerprint engine: extraction, similarity and graph-wide matching."""

    def __init__(
        self,
        threshold: float = SCREEN_SIMILARITY_THRESHOLD,
        status_bar_fraction: float = STATUS_BAR_FRACTION,
        screen_height: float = DEFAULT_SCREEN_HEIGHT,
        casefold: bool = False,
    ) -> None:
        if not 0.0 < threshold <= 1.0:
            raise ValueError(f"similarity threshold must be in (0, 1], got {threshold}")
        self.threshold = threshold
        self.status_bar_fraction = status_bar_fraction
        self.screen_height = screen_height
        self.casefold = casefold

    # ------------------------------------------------------------------
    def normalize(self, text: str) -> str:
        text = " ".join(text.split())
        return text.casefold() if self.casefold else text

    def status_bar_max_y(self, screen_height: Optional[float] = None) -> float:
        return (screen_height or self.screen_height) * self.status_bar_fraction

    def is_volatile(self, element: Element, screen_height: Optional[float] = None) -> bool:
        """True for elements that must never take part in screen identity."""
        text = self.normalize(element.text)
        if not text:
            return True
        if element.y < self.status_bar_max_y(screen_height):
            return True
        return is_time_pattern(text) or is_bare_number(text)

    def is_landmark_candidate(self, element: Element, screen_height: Optional[float] = None) -> bool:
        """Stable, label-sized, confidently recognised text."""
        if self.is_volatile(element, screen_height):
            return False
        text = self.normalize(element.text)
        return (
            LANDMARK_MIN_LENGTH <= len(text) <= LANDMARK_MAX_LENGTH
            and element.confidence >= LANDMARK_MIN_CONFIDENCE
        )

    def extract(self, screen: Comparable, screen_height: Optional[float] = None) -> Fingerprint:
        """Return the fingerprint of a snapshot or element list."""
        if isinstance(screen, Fingerprint):
            return screen
        if isinstance(screen, Snapshot):
            screen_height = screen_height or screen.screen_height
            elements: Iterable[Element] = screen.elements
        else:
            elements = screen
        texts = frozenset(
            self.normalize(el.text) for el in elements if not self.is_volatile(el, screen_height)
        )
        return Fingerprint(texts=texts, hash=self.signature(texts))

    def signature(self, texts: Iterable[str], icons: Sequence[NonTextDetection] = ()) -> str:
        """Return a stable sha256 signature over sorted texts (and icon count when given)."""
        payload = sorted(texts)
        if icons:
            # icon positions jitter between captures, their count does not
            payload.append(f"icons:{len(icons)}")
        return hashlib.sha256("\n".join(payload).encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------
    def similarity(self, a: Comparable, b: Comparable) -> float:
        """Jaccard index of the two fingerprints; two blank screens are identical."""
        left = self.extract(a).texts
        right = self.extract(b).texts
        union = left | right
        if not union:
            return 1.0
        return len(left & right) / len(union)

    def are_equal(self, a: Comparable, b: Comparable) -> bool:
        return self.similarity(a, b) >= self.threshold

    def match_state(
        self,
        graph: ExplorationGraph,
        fingerprint: Fingerprint,
        exclude: Optional[str] = None,
    ) -> Optional[ScreenNode]:
        """Find the known node that best matches `fingerprint`, skipping `exclude`."""
        # 1) quick hash match ------------------------------------------------
        quick = graph.node(fingerprint.hash)
        if quick is not None and quick.node_id != exclude:
            return quick

        # 2) similarity scan, best score wins, creation order breaks ties ----
        best: Optional[ScreenNode] = None
        best_score = -1.0
        for node in graph.nodes():
            if node.node_id == exclude:
                continue
            score = self.similarity(node.fingerprint, fingerprint)
            if score >= self.threshold and score > best_score:
                best, best_score = node, score
        return best


def is_time_pattern(text: str) -> bool:
    """`H:MM` or `HH:MM` clock readings."""
    return bool(_TIME_PATTERN.match(text.strip()))


def is_bare_number(text: str) -> bool:
    """Counters and badges such as `3`, `12`, `1,024`."""
    return bool(_BARE_NUMBER_PATTERN.match(text.strip()))
