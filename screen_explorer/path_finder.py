from __future__ import annotations

"""Interesting-path discovery over a finalized exploration graph."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

import networkx as nx

from .knowledge import ExploredScreen, GraphSnapshot, NavigationEdge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NamedPath:
    """A root-to-leaf flow through the app, named after where it diverges."""

    name: str
    edges: Tuple[NavigationEdge, ...]


class PathFinder:
    def discovery_tree(self, snapshot: GraphSnapshot) -> nx.DiGraph:
        """Return the tree formed by the edges that discovered each node.

        Cycle-closing edges (`was_duplicate`) point back into the known graph and
        are left out, so every non-root node has exactly one parent.
        """
        tree = nx.DiGraph()
        tree.add_nodes_from(snapshot.nodes)
        for edge in snapshot.edges:
            if edge.action.was_duplicate or tree.has_edge(edge.from_node_id, edge.to_node_id):
                continue
            tree.add_edge(edge.from_node_id, edge.to_node_id, edge=edge)
        return tree

    def leaves(self, snapshot: GraphSnapshot) -> List[str]:
        """Non-root nodes without forward edges, deepest first, creation order second."""
        if snapshot.root_id is None:
            return []
        tree = self.discovery_tree(snapshot)
        order = {nid: i for i, nid in enumerate(snapshot.nodes)}
        found = [
            nid
            for nid in tree.nodes
            if nid != snapshot.root_id and tree.out_degree(nid) == 0 and tree.in_degree(nid) > 0
        ]
        return sorted(found, key=lambda nid: (-snapshot.nodes[nid].depth, order[nid]))

    def is_branching(self, snapshot: GraphSnapshot) -> bool:
        return len(self.leaves(snapshot)) >= 2

    def find_interesting_paths(self, snapshot: GraphSnapshot) -> List[NamedPath]:
        """Return one named path per leaf of the discovery tree."""
        if snapshot.root_id is None:
            return []
        tree = self.discovery_tree(snapshot)
        raw: List[Tuple[NavigationEdge, ...]] = []
        for leaf in self.leaves(snapshot):
            try:
                nodes = nx.shortest_path(tree, snapshot.root_id, leaf)
            except nx.NetworkXNoPath:
                logger.debug("Leaf %s is unreachable from the root", leaf[:8])
                continue
            raw.append(tuple(tree.edges[u, v]["edge"] for u, v in zip(nodes, nodes[1:])))

        if not raw and snapshot.edges:
            longest = self.longest_path(snapshot)
            if longest:
                raw.append(longest)

        named: List[NamedPath] = []
        for i, edges in enumerate(raw):
            others = raw[:i] + raw[i + 1:]
            fork = max((_common_prefix(edges, other) for other in others), default=0)
            named.append(NamedPath(name=self.derive_name(edges[fork:] or edges), edges=edges))
        return named

    def longest_path(self, snapshot: GraphSnapshot) -> Tuple[NavigationEdge, ...]:
        """Longest simple path from the root, following edges in discovery order."""
        adjacency: Dict[str, List[NavigationEdge]] = {}
        for edge in snapshot.edges:
            adjacency.setdefault(edge.from_node_id, []).append(edge)

        best: Tuple[NavigationEdge, ...] = ()
        stack = [(snapshot.root_id, (), frozenset([snapshot.root_id]))]
        while stack:
            node_id, path, seen = stack.pop()
            if len(path) > len(best):
                best = path
            for edge in reversed(adjacency.get(node_id, [])):
                if edge.to_node_id not in seen:
                    stack.append((edge.to_node_id, path + (edge,), seen | {edge.to_node_id}))
        return best

    @staticmethod
    def derive_name(edges: Tuple[NavigationEdge, ...]) -> str:
        labels = [e.action.target for e in edges if e.action.target]
        if not labels:
            return "exploration"
        if len(labels) <= 2:
            return " > ".join(labels).lower()
        return f"{labels[0]} to {labels[-1]}".lower()

    @staticmethod
    def path_to_screens(edges: Tuple[NavigationEdge, ...], snapshot: GraphSnapshot) -> List[ExploredScreen]:
        """Flatten a path into capture-ordered screens: the start screen, then one per edge."""
        if not edges:
            return []
        root = snapshot.nodes[edges[0].from_node_id]
        screens = [
            ExploredScreen(
                index=0,
                elements=root.snapshot.elements,
                hints=root.hints,
                screenshot_ref=root.snapshot.raw_image_ref,
                node_id=root.node_id,
            )
        ]
        for i, edge in enumerate(edges, start=1):
            node = snapshot.nodes[edge.to_node_id]
            screens.append(
                ExploredScreen(
                    index=i,
                    elements=node.snapshot.elements,
                    hints=node.hints,
                    action_type=edge.action.type,
                    arrived_via=edge.action.target,
                    screenshot_ref=node.snapshot.raw_image_ref,
                    node_id=node.node_id,
                    revisit=edge.action.was_duplicate,
                )
            )
        return screens


def _common_prefix(a: Tuple[NavigationEdge, ...], b: Tuple[NavigationEdge, ...]) -> int:
    n = 0
    for x, y in zip(a, b):
        if x.index != y.index:
            break
        n += 1
    return n
