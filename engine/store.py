"""
engine/store.py

Block registry: creation with default placement, partial updates,
deletion and ordered iteration.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional

from debug_trace import trace
from engine.themes import default_style_hints
from models import (
    DEFAULT_TEXT_PAYLOAD,
    DEFAULT_TITLES,
    BlockKind,
    Point,
    Rect,
    Size,
    SpatialObject,
    TEXT_FORMATS,
    StyleHints,
    TextFormat,
)
from utils import strip_html

if TYPE_CHECKING:
    from engine.session import WorkspaceSession


_UPDATABLE_FIELDS = frozenset({"position", "size", "title", "payload", "style", "text_format"})


class ObjectStore:
    """
    Mapping of block ids to SpatialObject records, kept in insertion order.

    Args:
        session: The owning workspace session (viewport, theme, settings).
    """

    def __init__(self, session: "WorkspaceSession"):
        self.session = session
        self._objects: Dict[str, SpatialObject] = {}

    # ---- queries ----

    def get(self, object_id: str) -> Optional[SpatialObject]:
        return self._objects.get(object_id)

    def all(self) -> List[SpatialObject]:
        """All blocks in insertion order (a fresh list on every call)."""
        return list(self._objects.values())

    def ids(self) -> List[str]:
        return list(self._objects)

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._objects

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self) -> Iterator[SpatialObject]:
        return iter(self.all())

    def matching(self, query: str) -> List[str]:
        """
        Ids of text blocks whose title or content contains ``query``.

        Matching is case-insensitive. Markup is ignored in rich-text
        payloads only; plain notes are searched exactly as written.
        """
        needle = (query or "").strip().lower()
        if not needle:
            return []
        hits = []
        for obj in self._objects.values():
            if obj.kind != BlockKind.TEXT:
                continue
            text = strip_html(obj.payload) if obj.is_rich_text else obj.payload
            if needle in obj.title.lower() or needle in text.lower():
                hits.append(obj.id)
        return hits

    # ---- creation ----

    def default_geometry(self) -> Rect:
        """Default-size rectangle centered on the viewport's visible center."""
        blocks = self.session.settings.blocks
        c = self.session.viewport.visible_center()
        return Rect(c.x - blocks.default_width / 2, c.y - blocks.default_height / 2,
                    blocks.default_width, blocks.default_height)

    def create(self, kind: BlockKind, geometry: Optional[Rect] = None, payload: Optional[str] = None,
               *, title: Optional[str] = None, style: Optional[StyleHints] = None,
               object_id: Optional[str] = None, text_format: str = TextFormat.PLAIN) -> str:
        """
        Create a block and return its id.

        A block restored from storage passes explicit geometry, payload and
        style; only a brand-new block gets default placement and theme
        decorations.

        Args:
            kind: Text or image.
            geometry: Logical rectangle; defaults to the viewport center.
            payload: Text content or image data URI.
            title: Display title; defaults per kind.
            style: Explicit style hints; ``None`` draws theme defaults.
            object_id: Explicit id (reconstruction); generated if omitted.
            text_format: Whether a text payload is plain text or HTML.

        Raises:
            ValueError: If ``object_id`` is already in use or
                ``text_format`` is unknown.
        """
        kind = BlockKind(kind)
        if text_format not in TEXT_FORMATS:
            raise ValueError(f"Unknown text format: {text_format}")
        if object_id is None:
            object_id = self.session.ids.next_id()
            while object_id in self._objects:
                object_id = self.session.ids.next_id()
        elif object_id in self._objects:
            raise ValueError(f"Duplicate block id: {object_id}")

        if geometry is None:
            geometry = self.default_geometry()

        if payload is None:
            if kind == BlockKind.TEXT:
                payload = DEFAULT_TEXT_PAYLOAD
            else:
                payload = ""

        if title is None:
            title = DEFAULT_TITLES[kind]

        if style is None:
            style = default_style_hints(self.session.theme, self.session.rng)
        else:
            style = copy.deepcopy(style)

        obj = SpatialObject(
            id=object_id,
            kind=kind,
            position=Point(float(geometry.x), float(geometry.y)),
            size=self._clamp_size(Size(float(geometry.width), float(geometry.height))),
            title=title,
            payload=payload,
            style=style,
            text_format=text_format,
        )
        self._objects[object_id] = obj
        trace(f"create {kind.value} id={object_id} at ({obj.position.x:.1f}, {obj.position.y:.1f})", "STORE")
        return object_id

    # ---- mutation ----

    def update(self, object_id: str, **changes: Any) -> bool:
        """
        Merge field changes into a block.

        Accepted fields: ``position`` (Point), ``size`` (Size, clamped to the
        minimum), ``title``, ``payload``, ``style`` (StyleHints to replace,
        or a dict merged into the current hints), ``text_format``.

        Returns:
            False (and changes nothing) if the block no longer exists.

        Raises:
            ValueError: For field names that cannot be updated.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if changes.get("text_format", TextFormat.PLAIN) not in TEXT_FORMATS:
            raise ValueError(f"Unknown text format: {changes['text_format']}")
        obj = self._objects.get(object_id)
        if obj is None:
            return False
        if "position" in changes:
            p = changes["position"]
            obj.position = Point(float(p.x), float(p.y))
        if "size" in changes:
            s = changes["size"]
            obj.size = self._clamp_size(Size(float(s.width), float(s.height)))
        if "title" in changes:
            obj.title = str(changes["title"])
        if "payload" in changes:
            obj.payload = str(changes["payload"])
        if "text_format" in changes:
            obj.text_format = changes["text_format"]
        if "style" in changes:
            st = changes["style"]
            obj.style = obj.style.merged(st) if isinstance(st, dict) else copy.deepcopy(st)
        return True

    def delete(self, object_id: str) -> bool:
        """Remove a block. Edges are cascaded by the caller."""
        removed = self._objects.pop(object_id, None) is not None
        if removed:
            trace(f"delete id={object_id}", "STORE")
        return removed

    def clear(self):
        self._objects.clear()

    def _clamp_size(self, size: Size) -> Size:
        blocks = self.session.settings.blocks
        return Size(max(size.width, blocks.min_width), max(size.height, blocks.min_height))
