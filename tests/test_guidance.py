from conftest import make_elements
from screen_explorer.guidance import ExplorationMode, analyze, extract_keywords, rank_by_goal_relevance
from screen_explorer.knowledge import ActionType, ExplorationAction


def test_extract_keywords_drops_stop_words():
    assert extract_keywords("Check the software version!") == ["software", "version"]


def test_rank_by_goal_relevance_keeps_vertical_order_on_ties():
    elements = make_elements(["General", "Privacy", "Software Update"])
    ranked = rank_by_goal_relevance(elements, ["software"])
    assert [el.text for el in ranked] == ["Software Update", "General", "Privacy"]


class TestGoalDriven:
    def test_goal_visible(self):
        g = analyze(
            mode=ExplorationMode.GOAL_DRIVEN,
            goal="check software version",
            elements=make_elements(["About", "Software Version"]),
            hints=(),
            start_elements=make_elements(["Settings", "General"]),
            action_log=[],
            screen_count=3,
        )
        assert "Software Version" in g.goal_progress
        assert g.suggestions[-1].startswith("Finish")
        assert g.warning is None

    def test_goal_not_visible_points_toward_goal(self):
        g = analyze(
            mode=ExplorationMode.GOAL_DRIVEN,
            goal="dark mode",
            elements=make_elements(["General", "Privacy", "Display"]),
            hints=(),
            start_elements=None,
            action_log=[],
            screen_count=1,
        )
        assert g.suggestions[0] == 'Tap "General": may lead toward "dark mode"'
        assert g.suggestions[1] == 'Tap "Privacy"'
        assert "not yet visible" in g.goal_progress


class TestDiscovery:
    def test_stuck_warning(self):
        log = [ExplorationAction(ActionType.TAP, "x", True)] * 3
        g = analyze(
            mode=ExplorationMode.DISCOVERY,
            goal="",
            elements=make_elements(["General"]),
            hints=(),
            start_elements=make_elements(["Settings"]),
            action_log=log,
            screen_count=4,
        )
        assert g.warning is not None
        assert "3" in g.warning

    def test_back_at_start_completes_flow(self):
        start = make_elements(["Settings", "General"])
        g = analyze(
            mode=ExplorationMode.DISCOVERY,
            goal="",
            elements=start,
            hints=(),
            start_elements=start,
            action_log=[],
            screen_count=3,
        )
        assert g.is_flow_complete
        assert g.goal_progress.startswith("Back at start screen")
        assert "Exploration guidance" in g.format()

    def test_mid_flow_suggests_back(self):
        g = analyze(
            mode=ExplorationMode.DISCOVERY,
            goal="",
            elements=make_elements(["About", "Model Name"]),
            hints=(),
            start_elements=make_elements(["Settings"]),
            action_log=[],
            screen_count=2,
        )
        assert g.suggestions[-1].startswith("Press back")
