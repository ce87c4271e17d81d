from conftest import make_elements
from screen_explorer import flow_detector
from screen_explorer.knowledge import ActionType, ExplorationAction, ExploredScreen


def _log(*duplicates):
    return [ExplorationAction(ActionType.TAP, f"el{i}", dup) for i, dup in enumerate(duplicates)]


class TestStuckDetection:
    def test_two_trailing_duplicates_is_not_stuck(self):
        log = _log(False, True, True)
        assert flow_detector.consecutive_duplicates(log) == 2
        assert not flow_detector.is_stuck(log)

    def test_three_trailing_duplicates_is_stuck(self):
        log = _log(False, True, True, True)
        assert flow_detector.consecutive_duplicates(log) == 3
        assert flow_detector.is_stuck(log)

    def test_streak_stops_at_first_accepted_action(self):
        log = _log(True, True, True, False, True)
        assert flow_detector.consecutive_duplicates(log) == 1

    def test_empty_log(self):
        assert flow_detector.consecutive_duplicates([]) == 0
        assert not flow_detector.is_stuck([])


class TestBackAtStart:
    def test_requires_two_screens(self):
        start = make_elements(["Settings", "General"])
        assert not flow_detector.is_back_at_start(start, start, screen_count=1)
        assert not flow_detector.is_back_at_start(start, start, screen_count=0)

    def test_detects_return(self):
        start = make_elements(["Settings", "General"])
        assert flow_detector.is_back_at_start(make_elements(["General", "Settings"]), start, screen_count=3)
        assert not flow_detector.is_back_at_start(make_elements(["About"]), start, screen_count=3)


def test_visit_count():
    screens = [
        ExploredScreen(0, tuple(make_elements(["Settings", "General"])), ()),
        ExploredScreen(1, tuple(make_elements(["About", "iOS Version"])), ()),
        ExploredScreen(2, tuple(make_elements(["General", "Settings"])), ()),
    ]
    assert flow_detector.visit_count(make_elements(["Settings", "General"]), screens) == 2
    assert flow_detector.visit_count(make_elements(["Keyboard"]), screens) == 0
