from __future__ import annotations

"""Resource ceiling for one autonomous exploration run."""

from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable

# Always present regardless of configuration: destructive actions, network
# toggles, ad/sponsored content and purchase flows in several languages.
BUILT_IN_SKIP_PATTERNS: FrozenSet[str] = frozenset(
    {
        # destructive
        "delete", "sign out", "log out", "reset all", "erase all", "remove all",
        "supprimer", "déconnexion", "déconnecter", "réinitialiser", "effacer",
        "eliminar", "cerrar sesión", "restablecer", "borrar",
        # network toggles
        "airplane mode", "mode avion", "modo avión", "flugmodus",
        # ads
        "sponsored", "promoted", "advertisement", "order now", "buy now", "install now",
        # purchases
        "subscribe", "purchase", "s'abonner", "acheter",
    }
)


@dataclass(frozen=True)
class ExplorationBudget:
    """Limits consulted (never mutated) by the DFS explorer."""

    max_depth: int = 6
    max_screens: int = 30
    max_time_seconds: float = 300
    max_actions_per_screen: int = 5
    scroll_limit: int = 3
    skip_patterns: FrozenSet[str] = field(default=BUILT_IN_SKIP_PATTERNS)

    def __post_init__(self) -> None:
        for name in ("max_depth", "max_screens", "max_actions_per_screen", "scroll_limit"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.max_time_seconds < 0:
            raise ValueError("max_time_seconds must be >= 0")
        object.__setattr__(
            self, "skip_patterns", frozenset(p.lower() for p in self.skip_patterns if p)
        )

    def merged_with(self, patterns: Iterable[str]) -> "ExplorationBudget":
        """Return a copy whose skip patterns also include `patterns`."""
        extra = [p for p in patterns if p]
        if not extra:
            return self
        return replace(self, skip_patterns=self.skip_patterns | frozenset(extra))

    def is_exhausted(self, depth: int, screen_count: int, elapsed_seconds: float) -> bool:
        return (
            depth >= self.max_depth
            or screen_count >= self.max_screens
            or elapsed_seconds >= self.max_time_seconds
        )

    def should_skip_element(self, text: str) -> bool:
        """Case-insensitive containment test against the skip patterns."""
        lowered = text.lower()
        return any(pattern in lowered for pattern in self.skip_patterns)
