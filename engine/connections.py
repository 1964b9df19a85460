"""
engine/connections.py

Undirected connections between blocks and the border-clipping geometry
used to draw them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, FrozenSet, List, Optional, Set, Tuple

from debug_trace import trace
from models import Point, Rect

if TYPE_CHECKING:
    from engine.session import WorkspaceSession


@dataclass(frozen=True)
class Edge:
    """A connection between two blocks. ``start``/``end`` only record creation order."""
    start: str
    end: str

    @property
    def key(self) -> FrozenSet[str]:
        """Orientation-free identity of the edge."""
        return frozenset((self.start, self.end))

    def touches(self, object_id: str) -> bool:
        return object_id == self.start or object_id == self.end

    def other(self, object_id: str) -> str:
        return self.end if object_id == self.start else self.start

    def to_record(self) -> dict:
        return {"start": self.start, "end": self.end}


# ----------------------------
# Geometry
# ----------------------------

def border_point(rect: Rect, toward: Point) -> Optional[Point]:
    """
    Point where the ray from ``rect``'s center toward ``toward`` leaves the rectangle.

    The ray is scaled by whichever half-extent it exhausts first, which
    lands exactly on the limiting edge without testing edges one by one.

    Returns:
        None if ``toward`` is the center itself or the rectangle is empty.
    """
    half_w = rect.width / 2
    half_h = rect.height / 2
    if half_w <= 0 or half_h <= 0:
        return None
    c = rect.center
    dx = toward.x - c.x
    dy = toward.y - c.y
    ratio = max(abs(dx) / half_w, abs(dy) / half_h)
    if ratio == 0:
        return None
    return Point(c.x + dx / ratio, c.y + dy / ratio)


def clip_to_border(a: Rect, b: Rect) -> Optional[Tuple[Point, Point]]:
    """
    Endpoints of the center-to-center line between two rectangles, clipped to their borders.

    Returns:
        ``(point_on_a, point_on_b)``, or None when the centers coincide and
        there is no direction to draw in.
    """
    start = border_point(a, b.center)
    end = border_point(b, a.center)
    if start is None or end is None:
        return None
    return start, end


# ----------------------------
# Graph
# ----------------------------

class ConnectionGraph:
    """
    Edge set over block ids with no self-loops and no duplicates in either direction.

    Args:
        session: Owning session; when given, edges may only join blocks that
            exist in its store.
    """

    def __init__(self, session: Optional["WorkspaceSession"] = None):
        self.session = session
        self._edges: List[Edge] = []
        self._keys: Set[FrozenSet[str]] = set()

    def _exists(self, object_id: str) -> bool:
        if self.session is None:
            return True
        return object_id in self.session.store

    def has_edge(self, a: str, b: str) -> bool:
        return frozenset((a, b)) in self._keys

    def connect(self, a: str, b: str) -> bool:
        """
        Add an edge between ``a`` and ``b``.

        Returns:
            True if an edge was added; False for self-connections, existing
            edges (either orientation) and unknown blocks.
        """
        if a == b:
            return False
        key = frozenset((a, b))
        if key in self._keys:
            return False
        if not (self._exists(a) and self._exists(b)):
            trace(f"connect skipped, missing block: {a} -> {b}", "GRAPH")
            return False
        self._edges.append(Edge(a, b))
        self._keys.add(key)
        trace(f"connect {a} -> {b}", "GRAPH")
        return True

    def disconnect_all(self, object_id: str) -> int:
        """Drop every edge touching ``object_id``. Returns the number removed."""
        kept = [e for e in self._edges if not e.touches(object_id)]
        removed = len(self._edges) - len(kept)
        if removed:
            self._edges = kept
            self._keys = {e.key for e in kept}
        return removed

    def edges(self) -> List[Edge]:
        return list(self._edges)

    def neighbours(self, object_id: str) -> List[str]:
        return [e.other(object_id) for e in self._edges if e.touches(object_id)]

    def clear(self):
        self._edges.clear()
        self._keys.clear()

    def __len__(self) -> int:
        return len(self._edges)

    def segments(self) -> List[Tuple[Edge, Point, Point]]:
        """
        Border-clipped line for every drawable edge.

        Edges whose blocks are missing or whose centers coincide are left out.
        """
        if self.session is None:
            return []
        store = self.session.store
        out = []
        for e in self._edges:
            a = store.get(e.start)
            b = store.get(e.end)
            if a is None or b is None:
                continue
            clipped = clip_to_border(a.rect, b.rect)
            if clipped is None:
                continue
            out.append((e, clipped[0], clipped[1]))
        return out
