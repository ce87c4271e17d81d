from __future__ import annotations

"""Data structures that form the *knowledge* backbone of Screen-Explorer.

Everything observed during a run ends up here: the snapshots handed over by the
perception collaborator, the actions that were attempted, and the directed
graph of screens (nodes) connected by the actions that moved between them
(edges). Nodes are addressed by their fingerprint hash, never by object
identity, so the graph can be copied and serialised freely.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Tuple

import networkx as nx

if TYPE_CHECKING:  # pragma: no cover
    from .state_matcher import Fingerprint


class ElementRole(str, Enum):
    """Role assigned to a text element by an external classifier."""

    DECORATION = "decoration"
    INFO = "info"
    NAVIGATION = "navigation"
    STATE_CHANGE = "stateChange"
    UNKNOWN = "unknown"


class ActionType(str, Enum):
    """Interaction primitives understood by the execution collaborator."""

    TAP = "tap"
    SWIPE = "swipe"
    TYPE = "type"
    PRESS_KEY = "pressKey"
    SCROLL_TO = "scrollTo"
    LONG_PRESS = "longPress"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Any) -> "ActionType":
        """Map free-form action names ("tap", "press_key", "longPress") onto a member."""
        if isinstance(value, cls):
            return value
        wanted = str(value or "").replace("_", "").replace("-", "").lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return cls.OTHER


class ScreenType(str, Enum):
    """Classification of a screen's role in the app navigation hierarchy."""

    TAB_ROOT = "tabRoot"
    LIST = "list"
    DETAIL = "detail"
    MODAL = "modal"
    SETTINGS = "settings"
    UNKNOWN = "unknown"


class BacktrackAction(str, Enum):
    """How the explorer should leave the current screen."""

    NAVIGATE_BACK = "navigateBack"
    RETURN_HOME = "returnHome"
    NONE = "none"


@dataclass(frozen=True)
class Element:
    """A recognised text element and its tap position."""

    text: str
    x: float
    y: float
    confidence: float = 1.0
    role: ElementRole = ElementRole.UNKNOWN


@dataclass(frozen=True)
class NonTextDetection:
    """An icon or other non-text UI detection (tab bar glyph, toolbar button)."""

    label: str
    x: float
    y: float
    confidence: float = 1.0


@dataclass(frozen=True)
class Snapshot:
    """One observed screen, exactly as produced by the perception collaborator."""

    elements: Tuple[Element, ...] = ()
    hints: Tuple[str, ...] = ()
    non_text_detections: Tuple[NonTextDetection, ...] = ()
    raw_image_ref: Any = None
    # Height of the observed surface in the same unit as element y positions.
    screen_height: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "elements", tuple(self.elements))
        object.__setattr__(self, "hints", tuple(self.hints))
        object.__setattr__(self, "non_text_detections", tuple(self.non_text_detections))


@dataclass(frozen=True)
class ActionRecord:
    """The action attached to a graph edge."""

    type: ActionType
    target: str
    # True when the resulting screen matched an already-known node (cycle closure).
    was_duplicate: bool = False


@dataclass(frozen=True)
class ExplorationAction:
    """One entry of the session action log, including rejected duplicate captures."""

    action_type: Optional[ActionType]
    arrived_via: Optional[str]
    # True when the action produced no screen change.
    was_duplicate: bool


@dataclass(frozen=True)
class ExploredScreen:
    """A screen in the flattened, capture-ordered list used for skill generation."""

    index: int
    elements: Tuple[Element, ...]
    hints: Tuple[str, ...]
    action_type: Optional[ActionType] = None
    arrived_via: Optional[str] = None
    screenshot_ref: Any = None
    node_id: str = ""
    revisit: bool = False


@dataclass
class ScreenNode:
    """A live node of the exploration graph. Only the owning session mutates it."""

    node_id: str
    snapshot: Snapshot
    fingerprint: "Fingerprint"
    depth: int
    visit_count: int = 1
    screen_type: ScreenType = ScreenType.UNKNOWN
    # Normalised texts of elements already attempted from this node.
    tried: set = field(default_factory=set)
    scrolled_elements: List[Element] = field(default_factory=list)
    scroll_count: int = 0

    @property
    def elements(self) -> Tuple[Element, ...]:
        return self.snapshot.elements + tuple(self.scrolled_elements)

    @property
    def hints(self) -> Tuple[str, ...]:
        return self.snapshot.hints

    def freeze(self) -> "NodeSnapshot":
        return NodeSnapshot(
            node_id=self.node_id,
            snapshot=self.snapshot,
            fingerprint=self.fingerprint,
            depth=self.depth,
            visit_count=self.visit_count,
            screen_type=self.screen_type,
            tried=frozenset(self.tried),
            scrolled_elements=tuple(self.scrolled_elements),
            scroll_count=self.scroll_count,
        )


@dataclass(frozen=True)
class NodeSnapshot:
    """Immutable copy of a `ScreenNode` handed out by `GraphSnapshot`."""

    node_id: str
    snapshot: Snapshot
    fingerprint: "Fingerprint"
    depth: int
    visit_count: int
    screen_type: ScreenType
    tried: frozenset
    scrolled_elements: Tuple[Element, ...]
    scroll_count: int

    @property
    def elements(self) -> Tuple[Element, ...]:
        return self.snapshot.elements + self.scrolled_elements

    @property
    def hints(self) -> Tuple[str, ...]:
        return self.snapshot.hints


@dataclass(frozen=True)
class NavigationEdge:
    """Directed transition between two nodes, in discovery order."""

    index: int
    from_node_id: str
    to_node_id: str
    action: ActionRecord


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable export of an `ExplorationGraph`."""

    nodes: Mapping[str, NodeSnapshot]
    edges: Tuple[NavigationEdge, ...]
    root_id: Optional[str]
    current_id: Optional[str]

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def outgoing(self, node_id: str) -> List[NavigationEdge]:
        return [e for e in self.edges if e.from_node_id == node_id]

    def to_networkx(self) -> nx.MultiDiGraph:
        """Return a fresh MultiDiGraph; edge keys are the edge discovery indices."""
        g = nx.MultiDiGraph()
        for nid, node in self.nodes.items():
            g.add_node(nid, depth=node.depth, visit_count=node.visit_count)
        for e in self.edges:
            g.add_edge(
                e.from_node_id,
                e.to_node_id,
                key=e.index,
                action_type=e.action.type.value,
                target=e.action.target,
                was_duplicate=e.action.was_duplicate,
            )
        return g

    def to_json(self) -> Dict[str, Any]:
        """Serialise into a JSON-compatible structure."""
        return {
            "root": self.root_id,
            "current": self.current_id,
            "nodes": {
                nid: {
                    "texts": sorted(node.fingerprint.texts),
                    "depth": node.depth,
                    "visit_count": node.visit_count,
                    "screen_type": node.screen_type.value,
                    "tried": sorted(node.tried),
                    "hints": list(node.hints),
                }
                for nid, node in self.nodes.items()
            },
            "edges": [
                {
                    "from": e.from_node_id,
                    "to": e.to_node_id,
                    "action_type": e.action.type.value,
                    "target": e.action.target,
                    "was_duplicate": e.action.was_duplicate,
                }
                for e in self.edges
            ],
        }


class ExplorationGraph:
    """Directed multigraph connecting screen nodes via the actions taken between them.

    Nodes live in an arena keyed by fingerprint hash; the networkx graph only
    carries ids. Node ids are never reassigned and nodes are never removed, so
    readers interleaved between exploration steps always see a monotonically
    growing graph.
    """

    def __init__(self) -> None:
        self._g: nx.MultiDiGraph = nx.MultiDiGraph()
        self._nodes: Dict[str, ScreenNode] = {}
        self._edges: List[NavigationEdge] = []
        self._root_id: Optional[str] = None
        self._current_id: Optional[str] = None

    # --- state helpers ----------------------------------------------------
    @property
    def started(self) -> bool:
        return self._root_id is not None

    @property
    def root_id(self) -> Optional[str]:
        return self._root_id

    @property
    def current_id(self) -> Optional[str]:
        return self._current_id

    @property
    def current_node(self) -> Optional[ScreenNode]:
        return self._nodes.get(self._current_id) if self._current_id else None

    @property
    def root_node(self) -> Optional[ScreenNode]:
        return self._nodes.get(self._root_id) if self._root_id else None

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def node(self, node_id: str) -> Optional[ScreenNode]:
        return self._nodes.get(node_id)

    def nodes(self) -> List[ScreenNode]:
        """All nodes in creation order."""
        return list(self._nodes.values())

    def edges(self) -> List[NavigationEdge]:
        """All edges in discovery order."""
        return list(self._edges)

    # --- mutation (session only) -----------------------------------------
    def add_node(self, node: ScreenNode) -> None:
        if node.node_id in self._nodes:
            raise ValueError(f"node {node.node_id} already exists")
        self._nodes[node.node_id] = node
        self._g.add_node(node.node_id)
        if self._root_id is None:
            self._root_id = node.node_id
        self._current_id = node.node_id

    def add_edge(self, src_id: str, dst_id: str, action: ActionRecord) -> NavigationEdge:
        edge = NavigationEdge(
            index=len(self._edges), from_node_id=src_id, to_node_id=dst_id, action=action
        )
        self._edges.append(edge)
        self._g.add_edge(src_id, dst_id, key=edge.index, obj=edge)
        return edge

    def set_current(self, node_id: str) -> None:
        if node_id not in self._nodes:
            raise KeyError(node_id)
        self._current_id = node_id

    # --- queries -----------------------------------------------------------
    def successors(self, node_id: str) -> List[NavigationEdge]:
        res: List[NavigationEdge] = []
        if node_id not in self._g:
            return res
        for _, _, key in self._g.out_edges(node_id, keys=True):
            res.append(self._edges[key])
        return sorted(res, key=lambda e: e.index)

    def shortest_path(self, src_id: str, dst_id: str) -> List[NavigationEdge]:
        """Return the edges along the shortest path, or [] when unreachable."""
        try:
            path_nodes = nx.shortest_path(self._g, src_id, dst_id)
        except (nx.NetworkXNoPath, nx.NodeNotFound):
            return []
        edges: List[NavigationEdge] = []
        for i in range(len(path_nodes) - 1):
            edge_data = self._g.get_edge_data(path_nodes[i], path_nodes[i + 1])
            # choose the earliest-discovered edge deterministically
            first_key = min(edge_data.keys())
            edges.append(self._edges[first_key])
        return edges

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            nodes=MappingProxyType({nid: n.freeze() for nid, n in self._nodes.items()}),
            edges=tuple(self._edges),
            root_id=self._root_id,
            current_id=self._current_id,
        )


def as_elements(items: Sequence[Any]) -> Tuple[Element, ...]:
    """Accept `Element`s or plain dicts (`{"text", "x", "y", ...}`) and return Elements."""
    out: List[Element] = []
    for item in items:
        if isinstance(item, Element):
            out.append(item)
            continue
        out.append(
            Element(
                text=str(item.get("text", "")),
                x=float(item.get("x", 0.0)),
                y=float(item.get("y", 0.0)),
                confidence=float(item.get("confidence", 1.0)),
                role=ElementRole(item.get("role", ElementRole.UNKNOWN.value)),
            )
        )
    return tuple(out)
