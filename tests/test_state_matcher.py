import pytest

from conftest import make_elements, make_snapshot
from screen_explorer.knowledge import Element, Snapshot
from screen_explorer.state_matcher import (
    SCREEN_SIMILARITY_THRESHOLD,
    StateMatcher,
    is_bare_number,
    is_time_pattern,
)


class TestExtract:
    def test_status_bar_and_clock_are_filtered(self):
        matcher = StateMatcher()
        elements = [
            Element("Carrier", 40, 20, confidence=0.99),
            Element("9:41", 200, 300, confidence=0.99),
            Element("12:05", 200, 380, confidence=0.99),
            Element("General", 205, 120),
        ]
        fp = matcher.extract(elements)
        assert fp.texts == frozenset({"General"})

    def test_bare_numbers_and_blank_text_are_filtered(self):
        fp = StateMatcher().extract(make_elements(["Inbox", "42", "1,024", "  "]))
        assert fp.texts == frozenset({"Inbox"})

    def test_status_bar_band_follows_snapshot_height(self):
        snap = Snapshot(elements=[Element("Header", 100, 150)], screen_height=2000)
        # 9% of 2000 is 180, so y=150 falls inside the band
        assert len(StateMatcher().extract(snap)) == 0

    def test_hash_is_order_independent(self):
        m = StateMatcher()
        a = m.extract(make_elements(["Settings", "General"]))
        b = m.extract(make_elements(["General", "Settings"]))
        assert a.hash == b.hash

    def test_single_element_screen_fingerprints(self):
        fp = StateMatcher().extract(make_elements(["Welcome"]))
        assert len(fp) == 1


class TestSimilarity:
    def test_identity(self):
        m = StateMatcher()
        snap = make_snapshot(["Settings", "General", "Privacy"])
        assert m.similarity(snap, snap) == 1.0

    def test_both_empty_is_one(self):
        assert StateMatcher().similarity([], []) == 1.0

    def test_symmetry(self):
        m = StateMatcher()
        a = make_snapshot(["Settings", "General", "Privacy"])
        b = make_snapshot(["General", "Privacy", "About", "Display"])
        assert m.similarity(a, b) == m.similarity(b, a)
        assert m.similarity(a, b) == pytest.approx(2 / 5)

    def test_threshold_is_inclusive(self):
        m = StateMatcher()
        a = make_elements(["a1", "a2", "a3", "a4"])
        b = make_elements(["a1", "a2", "a3", "a4", "a5"])
        # 4/5 == 0.8 sits exactly on the threshold
        assert m.similarity(a, b) == pytest.approx(SCREEN_SIMILARITY_THRESHOLD)
        assert m.are_equal(a, b)

    def test_scrolled_list_below_threshold_is_a_different_screen(self):
        m = StateMatcher()
        a = make_elements(["Wi-Fi", "Bluetooth", "Cellular", "Hotspot"])
        b = make_elements(["Bluetooth", "Cellular", "Hotspot", "Battery"])
        assert not m.are_equal(a, b)

    def test_threshold_is_configurable(self):
        a = make_elements(["Wi-Fi", "Bluetooth", "Cellular", "Hotspot"])
        b = make_elements(["Bluetooth", "Cellular", "Hotspot", "Battery"])
        assert StateMatcher(threshold=0.6).are_equal(a, b)

    @pytest.mark.parametrize("threshold", [0.0, 1.5, -0.1])
    def test_invalid_threshold_rejected(self, threshold):
        with pytest.raises(ValueError):
            StateMatcher(threshold=threshold)


class TestLandmarkCandidate:
    def test_rejects_short_and_low_confidence_text(self):
        m = StateMatcher()
        assert not m.is_landmark_candidate(Element("Go", 100, 200))
        assert not m.is_landmark_candidate(Element("General", 100, 200, confidence=0.2))
        assert m.is_landmark_candidate(Element("General", 100, 200))


def test_pattern_helpers():
    assert is_time_pattern("9:41")
    assert is_time_pattern("23:59")
    assert not is_time_pattern("Version 9:41 beta")
    assert is_bare_number("128")
    assert not is_bare_number("iOS 17")
