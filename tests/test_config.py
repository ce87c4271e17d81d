import pytest

from screen_explorer.budget import BUILT_IN_SKIP_PATTERNS, ExplorationBudget
from screen_explorer.config import load_settings


def test_defaults():
    settings = load_settings(env={}, dotenv=False)
    assert settings.budget == ExplorationBudget()
    assert settings.similarity_threshold == 0.8
    assert settings.strategy is None
    assert settings.log_level == "INFO"
    assert settings.output_dir == "run_artifacts"


def test_overrides():
    settings = load_settings(
        env={
            "EXPLORER_MAX_DEPTH": "3",
            "EXPLORER_MAX_SCREENS": "12",
            "EXPLORER_MAX_TIME_SECONDS": "90.5",
            "EXPLORER_STRATEGY": "social",
            "EXPLORER_LOG_LEVEL": "debug",
            "EXPLORER_SIMILARITY_THRESHOLD": "0.75",
        },
        dotenv=False,
    )
    assert settings.budget.max_depth == 3
    assert settings.budget.max_screens == 12
    assert settings.budget.max_time_seconds == 90.5
    assert settings.strategy == "social"
    assert settings.log_level == "DEBUG"
    assert settings.similarity_threshold == 0.75


def test_skip_patterns_extend_built_ins():
    settings = load_settings(env={"EXPLORER_SKIP_PATTERNS": "Archive, Mute ,"}, dotenv=False)
    patterns = settings.budget.skip_patterns
    assert {"archive", "mute"} <= patterns
    assert BUILT_IN_SKIP_PATTERNS <= patterns
    assert settings.budget.should_skip_element("Archive Chat")


def test_blank_values_fall_back_to_defaults():
    settings = load_settings(env={"EXPLORER_MAX_DEPTH": "  "}, dotenv=False)
    assert settings.budget.max_depth == 6


def test_invalid_value_names_the_variable():
    with pytest.raises(ValueError, match="EXPLORER_SCROLL_LIMIT"):
        load_settings(env={"EXPLORER_SCROLL_LIMIT": "lots"}, dotenv=False)


def test_negative_budget_rejected():
    with pytest.raises(ValueError):
        ExplorationBudget(max_screens=-1)


def test_budget_exhaustion():
    budget = ExplorationBudget(max_depth=3, max_screens=10, max_time_seconds=60)
    assert not budget.is_exhausted(2, 9, 59.9)
    assert budget.is_exhausted(3, 1, 0)
    assert budget.is_exhausted(0, 10, 0)
    assert budget.is_exhausted(0, 1, 60)
