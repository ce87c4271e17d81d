import json

import networkx as nx
import pytest

from conftest import make_elements
from screen_explorer.knowledge import ActionType


def _three_screens(session):
    session.start("Settings")
    root = make_elements(["Settings", "General"])
    session.capture(root)
    session.capture(make_elements(["About", "Keyboard"]), action_type="tap", arrived_via="General")
    session.capture(make_elements(["Name", "iOS Version"]), action_type="tap", arrived_via="About")
    session.capture(root, action_type="press_key", arrived_via="home")
    return session.graph


def test_action_type_coerce():
    assert ActionType.coerce("tap") == ActionType.TAP
    assert ActionType.coerce(ActionType.SWIPE) == ActionType.SWIPE


def test_shortest_path_and_successors(session):
    graph = _three_screens(session)
    nodes = graph.nodes()
    path = graph.shortest_path(nodes[0].node_id, nodes[2].node_id)
    assert [e.action.target for e in path] == ["General", "About"]
    assert graph.shortest_path(nodes[2].node_id, "missing") == []
    assert [e.to_node_id for e in graph.successors(nodes[2].node_id)] == [nodes[0].node_id]


def test_set_current_unknown_node(session):
    graph = _three_screens(session)
    with pytest.raises(KeyError):
        graph.set_current("nope")


def test_snapshot_exports(session):
    snapshot = _three_screens(session).snapshot()
    g = snapshot.to_networkx()
    assert isinstance(g, nx.MultiDiGraph)
    assert g.number_of_nodes() == 3
    assert g.number_of_edges() == 3

    data = json.loads(json.dumps(snapshot.to_json()))
    assert data["root"] == snapshot.root_id
    assert [e["was_duplicate"] for e in data["edges"]] == [False, False, True]
    assert data["nodes"][snapshot.root_id]["visit_count"] == 2
    assert len(snapshot.outgoing(snapshot.root_id)) == 1
