"""Tests for ConnectionGraph and border clipping."""
from __future__ import annotations

import pytest

from engine.connections import ConnectionGraph, Edge, border_point, clip_to_border
from models import BlockKind, Point, Rect

EPS = 1e-9


def on_boundary(rect: Rect, p: Point) -> bool:
    inside_x = rect.x - EPS <= p.x <= rect.right + EPS
    inside_y = rect.y - EPS <= p.y <= rect.bottom + EPS
    on_vertical = abs(p.x - rect.x) < 1e-6 or abs(p.x - rect.right) < 1e-6
    on_horizontal = abs(p.y - rect.y) < 1e-6 or abs(p.y - rect.bottom) < 1e-6
    return inside_x and inside_y and (on_vertical or on_horizontal)


# ─────────────────────────────────────────────────────────
# Geometry
# ─────────────────────────────────────────────────────────


class TestBorderClipping:
    def test_horizontal_neighbours(self):
        a = Rect(0, 0, 100, 100)
        b = Rect(300, 0, 100, 100)
        assert clip_to_border(a, b) == (Point(100, 50), Point(300, 50))

    def test_diagonal_hits_limiting_edge(self):
        r = Rect(0, 0, 200, 100)
        p = border_point(r, Point(400, 350))
        assert p == Point(150, 100)

    @pytest.mark.parametrize("target", [
        Point(1000, 0), Point(-1000, 20), Point(40, 900), Point(33, -77),
        Point(-500, -500), Point(121, 76), Point(60.5, 40.25),
    ])
    def test_points_lie_on_boundary(self, target):
        r = Rect(10, 20, 120, 80)
        p = border_point(r, target)
        assert p is not None
        assert on_boundary(r, p)

    def test_overlapping_boxes_still_clip(self):
        a = Rect(0, 0, 100, 100)
        b = Rect(20, 10, 100, 100)
        pa, pb = clip_to_border(a, b)
        assert on_boundary(a, pa)
        assert on_boundary(b, pb)

    def test_coincident_centers(self):
        a = Rect(0, 0, 100, 100)
        b = Rect(25, 25, 50, 50)
        assert clip_to_border(a, b) is None

    def test_empty_rect(self):
        assert border_point(Rect(0, 0, 0, 10), Point(50, 50)) is None


# ─────────────────────────────────────────────────────────
# Graph
# ─────────────────────────────────────────────────────────


class TestGraph:
    def test_connect_is_idempotent_in_both_directions(self, session):
        a = session.store.create(BlockKind.TEXT)
        b = session.store.create(BlockKind.TEXT)
        assert session.graph.connect(a, b) is True
        assert session.graph.connect(a, b) is False
        assert session.graph.connect(b, a) is False
        assert len(session.graph) == 1
        assert session.graph.has_edge(b, a)

    def test_self_connection_rejected(self, session):
        a = session.store.create(BlockKind.TEXT)
        assert session.graph.connect(a, a) is False
        assert len(session.graph) == 0

    def test_missing_object_rejected(self, session):
        a = session.store.create(BlockKind.TEXT)
        assert session.graph.connect(a, "ghost") is False
        assert len(session.graph) == 0

    def test_detached_graph_accepts_any_ids(self):
        g = ConnectionGraph()
        assert g.connect("x", "y")
        assert g.edges() == [Edge("x", "y")]

    def test_disconnect_all(self, session):
        a, b, c = (session.store.create(BlockKind.TEXT) for _ in range(3))
        session.graph.connect(a, b)
        session.graph.connect(c, a)
        session.graph.connect(b, c)
        assert session.graph.disconnect_all(a) == 2
        assert session.graph.edges() == [Edge(b, c)]
        assert session.graph.neighbours(b) == [c]

    def test_delete_cascades(self, session):
        a = session.store.create(BlockKind.TEXT)
        b = session.store.create(BlockKind.TEXT)
        session.graph.connect(a, b)
        assert session.delete_object(a)
        assert len(session.graph) == 0
        assert b in session.store
        for e in session.graph.edges():
            assert e.start in session.store and e.end in session.store

    def test_edge_key_ignores_orientation(self):
        assert Edge("a", "b").key == Edge("b", "a").key
        assert Edge("a", "b").to_record() == {"start": "a", "end": "b"}

    def test_segments_follow_geometry(self, session):
        a = session.store.create(BlockKind.TEXT, Rect(0, 0, 100, 100))
        b = session.store.create(BlockKind.TEXT, Rect(300, 0, 100, 100))
        session.graph.connect(a, b)
        (edge, p0, p1), = session.graph.segments()
        assert (p0, p1) == (Point(100, 50), Point(300, 50))

    def test_segments_skip_coincident(self, session):
        a = session.store.create(BlockKind.TEXT, Rect(0, 0, 100, 100))
        b = session.store.create(BlockKind.TEXT, Rect(0, 0, 100, 100))
        session.graph.connect(a, b)
        assert session.graph.segments() == []
        assert len(session.graph) == 1
