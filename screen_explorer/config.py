from __future__ import annotations

"""Environment configuration (`EXPLORER_*` variables, optionally from a `.env` file)."""

import os
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, TypeVar

from dotenv import load_dotenv

from .budget import ExplorationBudget
from .state_matcher import SCREEN_SIMILARITY_THRESHOLD

T = TypeVar("T")

ENV_PREFIX = "EXPLORER_"


@dataclass(frozen=True)
class ExplorerSettings:
    budget: ExplorationBudget = field(default_factory=ExplorationBudget)
    similarity_threshold: float = SCREEN_SIMILARITY_THRESHOLD
    # None means "detect from the app name"
    strategy: Optional[str] = None
    settle_seconds: float = 1.0
    log_level: str = "INFO"
    output_dir: str = "run_artifacts"


def _read(env: Mapping[str, str], name: str, parse: Callable[[str], T], default: T) -> T:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return parse(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name}: invalid value {raw!r} ({exc})") from exc


def load_settings(env: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> ExplorerSettings:
    """Build settings from `env` (default: the process environment after loading `.env`)."""
    if env is None:
        if dotenv:
            load_dotenv()
        env = os.environ

    defaults = ExplorationBudget()
    budget = ExplorationBudget(
        max_depth=_read(env, "MAX_DEPTH", int, defaults.max_depth),
        max_screens=_read(env, "MAX_SCREENS", int, defaults.max_screens),
        max_time_seconds=_read(env, "MAX_TIME_SECONDS", float, defaults.max_time_seconds),
        max_actions_per_screen=_read(env, "MAX_ACTIONS_PER_SCREEN", int, defaults.max_actions_per_screen),
        scroll_limit=_read(env, "SCROLL_LIMIT", int, defaults.scroll_limit),
    )
    extra = env.get(ENV_PREFIX + "SKIP_PATTERNS", "")
    budget = budget.merged_with(p.strip() for p in extra.split(","))

    return ExplorerSettings(
        budget=budget,
        similarity_threshold=_read(env, "SIMILARITY_THRESHOLD", float, SCREEN_SIMILARITY_THRESHOLD),
        strategy=env.get(ENV_PREFIX + "STRATEGY") or None,
        settle_seconds=_read(env, "SETTLE_SECONDS", float, 1.0),
        log_level=(env.get(ENV_PREFIX + "LOG_LEVEL") or "INFO").upper(),
        output_dir=env.get(ENV_PREFIX + "OUTPUT_DIR") or "run_artifacts",
    )
