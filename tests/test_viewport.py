"""Tests for the pan/zoom ViewportTransform."""
from __future__ import annotations

import pytest

from engine.viewport import ViewportTransform
from models import Point, Rect


# ─────────────────────────────────────────────────────────
# Coordinate conversion
# ─────────────────────────────────────────────────────────


class TestConversion:
    def test_identity_by_default(self):
        vp = ViewportTransform()
        assert vp.to_logical(Point(120, 80)) == Point(120, 80)
        assert vp.to_screen(Point(120, 80)) == Point(120, 80)

    def test_round_trip_after_pan_and_zoom(self):
        vp = ViewportTransform()
        vp.pan_by(37, -12)
        vp.zoom_at(Point(200, 150), 4)
        p = Point(321.5, 99.25)
        back = vp.to_screen(vp.to_logical(p))
        assert back.x == pytest.approx(p.x)
        assert back.y == pytest.approx(p.y)

    def test_visible_center_default_viewport(self):
        vp = ViewportTransform(width=800, height=600)
        assert vp.visible_center() == Point(400, 300)

    def test_visible_center_follows_pan(self):
        vp = ViewportTransform(width=800, height=600)
        vp.pan_by(100, 50)
        assert vp.visible_center() == Point(300, 250)

    def test_visible_rect_scales(self):
        vp = ViewportTransform(width=800, height=600)
        vp.zoom_to(Point(0, 0), 2.0)
        r = vp.visible_rect()
        assert (r.x, r.y, r.width, r.height) == (0, 0, 400, 300)

    def test_matrix(self):
        vp = ViewportTransform()
        vp.pan_by(10, 20)
        assert vp.matrix() == (1.0, 0.0, 0.0, 1.0, 10.0, 20.0)


# ─────────────────────────────────────────────────────────
# Zoom
# ─────────────────────────────────────────────────────────


class TestZoom:
    def test_zoom_is_multiplicative(self):
        vp = ViewportTransform(zoom_intensity=0.08)
        vp.zoom_at(Point(0, 0), 1)
        assert vp.scale == pytest.approx(1.08)
        vp.zoom_at(Point(0, 0), 1)
        assert vp.scale == pytest.approx(1.08 * 1.08)

    @pytest.mark.parametrize("delta", [1, -1, 5, -5])
    def test_scale_stays_in_bounds(self, delta):
        vp = ViewportTransform(min_scale=0.2, max_scale=3.0)
        for _ in range(200):
            vp.zoom_at(Point(400, 300), delta)
            assert 0.2 <= vp.scale <= 3.0

    def test_clamps_to_exact_bounds(self):
        vp = ViewportTransform()
        for _ in range(100):
            vp.zoom_at(Point(0, 0), 3)
        assert vp.scale == 3.0
        for _ in range(100):
            vp.zoom_at(Point(0, 0), -3)
        assert vp.scale == 0.2

    def test_anchor_point_is_fixed(self):
        vp = ViewportTransform()
        vp.pan_by(-40, 25)
        anchor = Point(512, 233)
        for delta in (1, 2, -1, 3, -4, 0.5):
            before = vp.to_logical(anchor)
            vp.zoom_at(anchor, delta)
            after = vp.to_logical(anchor)
            assert after.x == pytest.approx(before.x)
            assert after.y == pytest.approx(before.y)

    def test_anchor_fixed_when_clamped(self):
        vp = ViewportTransform()
        vp.zoom_to(Point(0, 0), 2.95)
        anchor = Point(300, 300)
        before = vp.to_logical(anchor)
        vp.zoom_at(anchor, 10)
        assert vp.scale == 3.0
        assert vp.to_logical(anchor).x == pytest.approx(before.x)

    def test_on_changed_fires(self):
        vp = ViewportTransform()
        calls = []
        vp.on_changed = lambda: calls.append(vp.scale)
        vp.zoom_at(Point(0, 0), 1)
        vp.pan_by(1, 1)
        vp.reset()
        assert len(calls) == 3


# ─────────────────────────────────────────────────────────
# Pan, reset, fit
# ─────────────────────────────────────────────────────────


class TestPanAndFit:
    def test_pan_is_additive_and_unbounded(self):
        vp = ViewportTransform()
        vp.pan_by(1e6, -1e6)
        vp.pan_by(5, 5)
        assert vp.pan == Point(1e6 + 5, -1e6 + 5)

    def test_reset(self):
        vp = ViewportTransform()
        vp.pan_by(50, 50)
        vp.zoom_at(Point(10, 10), 3)
        vp.reset()
        assert vp.scale == 1.0
        assert vp.pan == Point(0, 0)

    def test_fit_centers_content(self):
        vp = ViewportTransform(width=800, height=600)
        ok = vp.fit([Rect(0, 0, 100, 100), Rect(300, 200, 100, 100)])
        assert ok
        assert vp.scale == pytest.approx(2.0)
        center = vp.to_screen(Point(200, 150))
        assert center.x == pytest.approx(400)
        assert center.y == pytest.approx(300)

    def test_fit_respects_scale_bounds(self):
        vp = ViewportTransform(width=800, height=600)
        vp.fit([Rect(0, 0, 1, 1)])
        assert vp.scale == 3.0

    def test_fit_nothing(self):
        vp = ViewportTransform()
        assert vp.fit([]) is False
        assert vp.scale == 1.0
