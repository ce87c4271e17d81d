from conftest import make_elements
from screen_explorer import skill_bundle
from screen_explorer.knowledge import ActionType, Element, ElementRole
from screen_explorer.path_finder import PathFinder
from screen_explorer.session import ExplorationSession


def _wait_lines(doc, text):
    return [line for line in doc.render().splitlines() if f'Wait for "{text}" to appear' in line]


class TestLandmarks:
    def test_never_picks_clock_or_counter(self):
        elements = [
            Element("9:41", 200, 150),
            Element("12", 300, 160),
            Element("Battery", 200, 30),
            Element("Storage", 205, 200),
        ]
        assert skill_bundle.pick_landmark(elements) == "Storage"

    def test_prefers_header_over_decoration(self):
        elements = [
            Element("Banner Art", 205, 130, role=ElementRole.DECORATION),
            Element("Wallpaper", 205, 180),
            Element("Choose a New Wallpaper", 205, 500),
        ]
        assert skill_bundle.pick_landmark(elements) == "Wallpaper"

    def test_none_when_nothing_stable(self):
        assert skill_bundle.pick_landmark([Element("9:41", 200, 150), Element("OK", 200, 300)]) is None


class TestLinearBundle:
    def test_settings_cycle_scenario(self, session):
        session.start("Settings")
        session.capture(make_elements(["Settings", "General"]))
        assert session.capture(make_elements(["General", "Settings"])) is False
        session.capture(make_elements(["About", "iOS Version"]), action_type="tap", arrived_via="General")
        session.capture(make_elements(["Settings", "General"]), action_type="press_key", arrived_via="back")
        finalized = session.finalize()

        assert finalized.graph_snapshot.node_count == 2
        bundle = skill_bundle.generate(finalized)
        assert len(bundle) == 1
        doc = bundle.skills[0]
        assert len(_wait_lines(doc, "Settings")) == 1
        assert doc.landmarks == ["Settings", "About"]

    def test_step_count_is_edges_plus_launch(self, session):
        session.start("Settings", goal="check version")
        session.capture(make_elements(["Settings", "General"]))
        session.capture(make_elements(["About", "Software Update"]), action_type="tap", arrived_via="General")
        session.capture(make_elements(["Name", "iOS Version"]), action_type="tap", arrived_via="About")
        finalized = session.finalize()

        bundle = skill_bundle.generate(finalized)
        doc = bundle.skills[0]
        assert len(doc.steps) == finalized.graph_snapshot.edge_count + 1 == 3
        assert doc.steps[0].action is None
        assert doc.steps[0].target == "Settings"
        assert doc.steps[1].action == ActionType.TAP
        assert doc.steps[2].target == "About"
        assert doc.name == "Check Version"
        assert doc.slug == "settings-check-version"

    def test_render(self, session):
        session.start("Settings", goal="check version")
        session.capture(make_elements(["Settings", "General"]))
        session.capture(make_elements(["About", "Software Update"]), action_type="tap", arrived_via="General")
        text = skill_bundle.generate(session.finalize()).skills[0].render()
        assert text.startswith("---\nname: Check Version\napp: Settings\n")
        assert "## Steps" in text
        assert "1. Launch **Settings**" in text
        assert '2. Tap "General"' in text
        assert '   - Wait for "About" to appear' in text

    def test_single_screen_bundle(self, session):
        session.start("Settings")
        session.capture(make_elements(["Settings", "General"]))
        bundle = skill_bundle.generate(session.finalize())
        assert len(bundle) == 1
        assert len(bundle.skills[0].steps) == 1
        assert bundle.skills[0].name == "Settings Exploration"


def _branching_session() -> ExplorationSession:
    session = ExplorationSession()
    session.start("Settings")
    root = make_elements(["Settings", "General", "Privacy"])
    session.capture(root)
    session.capture(make_elements(["About", "Name", "Version"]), action_type="tap", arrived_via="General")
    session.capture(root, action_type="press_key", arrived_via="back")
    session.capture(make_elements(["Location Services", "Analytics"]), action_type="tap", arrived_via="Privacy")
    return session


class TestBranchingBundle:
    def test_one_skill_per_branch(self):
        bundle = skill_bundle.generate(_branching_session().finalize())
        assert [s.name for s in bundle.skills] == ["General", "Privacy"]
        assert [s.slug for s in bundle.skills] == ["settings-general", "settings-privacy"]
        for doc in bundle.skills:
            assert len(doc.steps) == 2
            assert "## Steps" in doc.render()

    def test_duplicate_names_get_suffix(self):
        session = ExplorationSession()
        session.start("Shop")
        root = make_elements(["Shop", "Deals", "Cart"])
        session.capture(root)
        session.capture(make_elements(["Deal List", "Filter"]), action_type="tap", arrived_via="Open")
        session.capture(root, action_type="press_key", arrived_via="back")
        session.capture(make_elements(["Cart Items", "Checkout"]), action_type="tap", arrived_via="Open")
        bundle = skill_bundle.generate(session.finalize())
        assert [s.slug for s in bundle.skills] == ["shop-open", "shop-open-2"]


class TestPathFinder:
    def test_branching_detection(self):
        snapshot = _branching_session().finalize().graph_snapshot
        finder = PathFinder()
        assert finder.is_branching(snapshot)
        paths = finder.find_interesting_paths(snapshot)
        assert [p.name for p in paths] == ["general", "privacy"]

    def test_names_come_from_labels_after_divergence(self):
        session = ExplorationSession()
        session.start("Settings")
        root = make_elements(["Settings", "General"])
        general = make_elements(["Keyboard", "Fonts", "Language"])
        session.capture(root)
        session.capture(general, action_type="tap", arrived_via="General")
        session.capture(make_elements(["Keyboards", "Text Replacement"]), action_type="tap", arrived_via="Keyboard")
        session.capture(make_elements(["English", "Emoji"]), action_type="tap", arrived_via="Keyboards")
        session.capture(make_elements(["Add New Keyboard", "Edit"]), action_type="tap", arrived_via="Add")
        session.capture(general, action_type="press_key", arrived_via="home")
        session.capture(make_elements(["System Fonts", "My Fonts"]), action_type="tap", arrived_via="Fonts")

        paths = PathFinder().find_interesting_paths(session.finalize().graph_snapshot)
        assert [p.name for p in paths] == ["keyboard to add", "fonts"]
        assert len(paths[0].edges) == 4

    def test_derive_name(self):
        assert PathFinder.derive_name(()) == "exploration"
