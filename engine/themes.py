"""
engine/themes.py

Theme-derived values the core needs: connection line styles and the
decorations assigned to freshly created blocks.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional, Tuple

from models import StyleHints


class Theme:
    """Theme name constants."""
    LIGHT = "light"
    DARK = "dark"
    DETECTIVE = "detective"
    CYBERPUNK = "cyberpunk"
    WORLDBUILDING = "worldbuilding"


THEMES = (Theme.LIGHT, Theme.DARK, Theme.DETECTIVE, Theme.CYBERPUNK, Theme.WORLDBUILDING)
DEFAULT_THEME = Theme.LIGHT

NEON_COLORS = ("#0ff", "#f0f", "#adff2f", "#f90", "#ff0080")
DRAWING_COLORS = ("#e74c3c", "#f1c40f", "#2ecc71", "#3498db")

# Detective notes are pinned slightly askew
MAX_TILT_DEGREES = 3.0


@dataclass(frozen=True)
class LineStyle:
    """How connection lines are stroked. Recomputed per draw, never stored."""
    color: str
    width: float
    glow_color: Optional[str] = None
    glow_blur: float = 0.0
    dash: Tuple[float, ...] = ()


_CYBERPUNK_LINE = LineStyle(color="#0ff", width=2, glow_color="#0ff", glow_blur=10, dash=(5, 10))
_STRING_LINE = LineStyle(color="#c0392b", width=3)


def normalize_theme(name: Optional[str]) -> str:
    """Map unknown or empty theme names to the default theme."""
    return name if name in THEMES else DEFAULT_THEME


def line_style_for(theme: str) -> LineStyle:
    """Connection line style for a theme."""
    if theme == Theme.CYBERPUNK:
        return _CYBERPUNK_LINE
    return _STRING_LINE


def default_style_hints(theme: str, rng: random.Random) -> StyleHints:
    """Decorations for a brand-new block under ``theme``."""
    if theme == Theme.DETECTIVE:
        return StyleHints(rotation=rng.random() * 2 * MAX_TILT_DEGREES - MAX_TILT_DEGREES)
    if theme == Theme.CYBERPUNK:
        return StyleHints(color=rng.choice(NEON_COLORS))
    return StyleHints()
