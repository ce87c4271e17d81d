"""Screen Explorer: autonomous exploration of screen-based apps, compiled into automation skills.

The engine observes the visible UI through an injected perception capability, acts through an
injected execution capability, and records every screen it reaches in a navigation graph that is
finally turned into one or more human-readable scripts.

Key sub-modules:

knowledge.py      – Core data models: elements, snapshots, screen nodes and the navigation graph.
state_matcher.py  – Fingerprint extraction and Jaccard similarity between screens.
session.py        – Capture/dedup session that owns the graph for one exploration run.
budget.py         – Resource ceiling (depth, screens, time, actions per screen, scrolls).
strategies.py     – Per-app-category exploration policies (mobile, social, desktop).
flow_detector.py  – Pure cycle and stuck detection over capture history.
guidance.py       – Next-step suggestions for manually driven explorations.
explorer.py       – Depth-first exploration state machine, one action per step.
path_finder.py    – Root-to-leaf flow discovery over a finalized graph.
skill_bundle.py   – Skill generation with landmark selection.
browser_driver.py – Playwright-backed perception and execution for web apps.
config.py         – `EXPLORER_*` environment settings, optionally loaded from a .env file.
"""

from .budget import ExplorationBudget
from .errors import (
    ExplorationError,
    ExplorerStateError,
    NothingCapturedError,
    PerceptionUnavailableError,
    SessionAlreadyActiveError,
    SessionNotActiveError,
)
from .explorer import Backtracked, Continue, DFSExplorer, ExplorerState, Finished, PauseReason, Paused
from .knowledge import ActionType, Element, ElementRole, NonTextDetection, ScreenType, Snapshot
from .session import ExplorationSession, FinalizedSession
from .skill_bundle import SkillBundle, SkillDocument, SkillStep
from .state_matcher import SCREEN_SIMILARITY_THRESHOLD, StateMatcher
from .strategies import DesktopAppStrategy, MobileAppStrategy, SocialAppStrategy, detect_strategy

__all__ = [
    "ActionType",
    "Backtracked",
    "Continue",
    "DFSExplorer",
    "DesktopAppStrategy",
    "Element",
    "ElementRole",
    "ExplorationBudget",
    "ExplorationError",
    "ExplorationSession",
    "ExplorerState",
    "ExplorerStateError",
    "FinalizedSession",
    "Finished",
    "MobileAppStrategy",
    "NonTextDetection",
    "NothingCapturedError",
    "PauseReason",
    "Paused",
    "PerceptionUnavailableError",
    "SCREEN_SIMILARITY_THRESHOLD",
    "ScreenType",
    "SessionAlreadyActiveError",
    "SessionNotActiveError",
    "SkillBundle",
    "SkillDocument",
    "SkillStep",
    "Snapshot",
    "SocialAppStrategy",
    "StateMatcher",
    "detect_strategy",
]
