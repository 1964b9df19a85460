"""
models.py

Data models and constants for the CyberWeaver workspace.
"""

from __future__ import annotations

import itertools
import secrets
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Iterator, Optional


# ----------------------------
# Geometry primitives
# ----------------------------

@dataclass
class Point:
    """2D point used for screen pixels and logical workspace units alike."""
    x: float
    y: float

    def __iter__(self) -> Iterator[float]:
        """Allow tuple unpacking: x, y = point"""
        return iter((self.x, self.y))

    def __add__(self, other: "Point") -> "Point":
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Point") -> "Point":
        return Point(self.x - other.x, self.y - other.y)


@dataclass
class Size:
    """Width/height pair in logical units."""
    width: float
    height: float

    def __iter__(self) -> Iterator[float]:
        return iter((self.width, self.height))


@dataclass
class Rect:
    """Axis-aligned rectangle anchored at its top-left corner."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, p: Point) -> bool:
        return self.x <= p.x <= self.right and self.y <= p.y <= self.bottom

    def united(self, other: "Rect") -> "Rect":
        left = min(self.x, other.x)
        top = min(self.y, other.y)
        return Rect(left, top, max(self.right, other.right) - left, max(self.bottom, other.bottom) - top)

    @classmethod
    def from_parts(cls, position: Point, size: Size) -> "Rect":
        return cls(position.x, position.y, size.width, size.height)


# ----------------------------
# Block model
# ----------------------------

class BlockKind(str, Enum):
    """The two block variants a workspace can hold."""
    TEXT = "text"
    IMAGE = "image"


DEFAULT_TITLES: Dict[BlockKind, str] = {
    BlockKind.TEXT: "Text Note",
    BlockKind.IMAGE: "Image",
}

DEFAULT_TEXT_PAYLOAD = "New text note. Start typing!"


class TextFormat:
    """How a text block's payload is interpreted."""
    PLAIN = "plain"
    HTML = "html"


TEXT_FORMATS = (TextFormat.PLAIN, TextFormat.HTML)


@dataclass
class StyleHints:
    """Theme decorations carried by a block.

    The core never interprets these values; it only assigns defaults at
    creation time, persists them and hands them back to the renderer.
    Unknown keys are preserved in ``extras`` so they survive the
    storage → workspace → storage round-trip.
    """
    rotation: Optional[float] = None   # degrees, detective theme
    color: Optional[str] = None        # neon accent, cyberpunk theme
    extras: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "StyleHints":
        """Create StyleHints from a dict, preserving unknown keys in ``extras``."""
        if not isinstance(d, dict):
            return cls()
        known_names = {f.name for f in fields(cls) if f.name != "extras"}
        known = {}
        extras = {}
        for k, v in d.items():
            if k in known_names:
                known[k] = v
            else:
                extras[k] = v
        hints = cls(**known, extras=extras)
        if hints.rotation is not None:
            hints.rotation = float(hints.rotation)
        return hints

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a plain dict; unset hints are omitted."""
        d = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "extras" and getattr(self, f.name) is not None
        }
        d.update(self.extras)
        return d

    def merged(self, changes: Dict[str, Any]) -> "StyleHints":
        """Return a copy with ``changes`` applied on top of the current hints."""
        d = self.to_dict()
        d.update(changes)
        return StyleHints.from_dict({k: v for k, v in d.items() if v is not None})


@dataclass
class SpatialObject:
    """A positioned, sized, typed block in logical workspace space."""
    id: str
    kind: BlockKind
    position: Point
    size: Size
    title: str
    payload: str
    style: StyleHints = field(default_factory=StyleHints)
    text_format: str = TextFormat.PLAIN

    @property
    def is_rich_text(self) -> bool:
        return self.kind == BlockKind.TEXT and self.text_format == TextFormat.HTML

    @property
    def rect(self) -> Rect:
        return Rect.from_parts(self.position, self.size)

    @property
    def center(self) -> Point:
        return self.rect.center

    def to_record(self) -> Dict[str, Any]:
        """Flat, JSON-ready record in canonical key order.

        ``format`` is only written for rich-text blocks; plain is implied.
        """
        record = {
            "id": self.id,
            "kind": self.kind.value,
            "position": {"x": self.position.x, "y": self.position.y},
            "size": {"width": self.size.width, "height": self.size.height},
            "title": self.title,
            "payload": self.payload,
            "style": self.style.to_dict(),
        }
        if self.is_rich_text:
            record["format"] = TextFormat.HTML
        return record


# ----------------------------
# Interaction mode constants
# ----------------------------

class Mode:
    """Pointer modes for the workspace."""
    SELECT = "select"
    DRAW = "draw"


class BlockPart(str, Enum):
    """Regions of a rendered block that a pointer can land on."""
    HEADER = "header"
    TITLE = "title"
    CONTENT = "content"
    FOOTER = "footer"
    BODY = "body"
    RESIZE_HANDLE = "resize"
    CONNECT_BUTTON = "connect"
    COLOR_SWATCH = "swatch"
    DELETE_BUTTON = "delete"


# ----------------------------
# Identifiers
# ----------------------------

class IdFactory:
    """Generates block ids unique within a session and across sessions.

    A random token is drawn once per factory and combined with a
    monotonic counter, so rapid programmatic creation never collides.
    """

    def __init__(self, prefix: str = "block"):
        self.prefix = prefix
        self._token = secrets.token_hex(4)
        self._counter = itertools.count(1)

    def next_id(self) -> str:
        return f"{self.prefix}-{self._token}-{next(self._counter):05d}"
