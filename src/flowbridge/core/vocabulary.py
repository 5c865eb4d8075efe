"""Variant vocabulary: breakpoints, pseudo-states, and the combo marker"""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class Breakpoint(BaseModel):
    """A destination breakpoint; `max` applies at or below width, `min` at or above."""
    kind:  Literal["base", "max", "min"]
    width: int = 0


DEFAULT_BREAKPOINTS: dict[str, Breakpoint] = {
    "main":   Breakpoint(kind="base"),
    "medium": Breakpoint(kind="max", width=991),
    "small":  Breakpoint(kind="max", width=767),
    "tiny":   Breakpoint(kind="max", width=479),
    "xl":     Breakpoint(kind="min", width=1280),
    "xxl":    Breakpoint(kind="min", width=1440),
}

# CSS pseudo-class -> variant key
DEFAULT_PSEUDO_STATES: dict[str, str] = {
    "hover":         "hover",
    "focus":         "focus",
    "active":        "active",
    "visited":       "visited",
    "focus-visible": "focus-visible",
    "focus-within":  "focus-within",
    "checked":       "checked",
    "disabled":      "disabled",
    "placeholder":   "placeholder",
    "selection":     "selection",
}


class Vocabulary(BaseModel):
    """Closed set of variant keys accepted by the destination format.

    Keys are a breakpoint name, a pseudo-state name, or `<breakpoint>_<state>`.
    """
    breakpoints:   dict[str, Breakpoint] = Field(default_factory=lambda: dict(DEFAULT_BREAKPOINTS))
    pseudo_states: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_PSEUDO_STATES))
    combo_marker:  str = "&"

    def state_for(self, pseudo: str) -> Optional[str]:
        return self.pseudo_states.get(pseudo.lower())

    def is_valid_key(self, key: str) -> bool:
        states = set(self.pseudo_states.values())
        if key in self.breakpoints or key in states:
            return True
        bp, sep, state = key.partition("_")
        return bool(sep) and bp in self.breakpoints and state in states

    def variant_key(self, breakpoint: Optional[str], state: Optional[str]) -> Optional[str]:
        """Compose a variant key; None when the rule belongs to the base style."""
        if breakpoint in (None, "main") and not state:
            return None
        if breakpoint in (None, "main"):
            return state
        return f"{breakpoint}_{state}" if state else breakpoint

    def map_width(self, kind: str, width: int) -> Optional[tuple[str, int]]:
        """Nearest supported breakpoint for a max-/min-width query, or None."""
        candidates = [(name, bp.width) for name, bp in self.breakpoints.items() if bp.kind == kind]
        if kind == "max":
            fitting = [c for c in candidates if c[1] >= width]
            return min(fitting, key=lambda c: c[1]) if fitting else None
        if kind == "min":
            fitting = [c for c in candidates if c[1] <= width]
            return max(fitting, key=lambda c: c[1]) if fitting else None
        return None


DEFAULT_VOCABULARY = Vocabulary()
