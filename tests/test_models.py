"""Tests for geometry primitives, style hints and id generation."""
from __future__ import annotations

from models import BlockKind, IdFactory, Point, Rect, Size, SpatialObject, StyleHints, TextFormat


class TestGeometry:
    def test_point_arithmetic(self):
        assert Point(1, 2) + Point(3, 4) == Point(4, 6)
        assert Point(1, 2) - Point(3, 4) == Point(-2, -2)
        x, y = Point(5, 6)
        assert (x, y) == (5, 6)

    def test_rect(self):
        r = Rect(10, 20, 100, 50)
        assert (r.right, r.bottom) == (110, 70)
        assert r.center == Point(60, 45)
        assert r.contains(Point(10, 70))
        assert not r.contains(Point(9, 30))

    def test_united(self):
        u = Rect(0, 0, 10, 10).united(Rect(-5, 20, 5, 5))
        assert u == Rect(-5, 0, 15, 25)

    def test_from_parts(self):
        assert Rect.from_parts(Point(1, 2), Size(3, 4)) == Rect(1, 2, 3, 4)


class TestStyleHints:
    def test_unset_hints_are_omitted(self):
        assert StyleHints().to_dict() == {}
        assert StyleHints(rotation=1.5).to_dict() == {"rotation": 1.5}

    def test_extras_survive(self):
        hints = StyleHints.from_dict({"color": "#0ff", "pin": "brass"})
        assert hints.color == "#0ff"
        assert hints.extras == {"pin": "brass"}
        assert hints.to_dict() == {"color": "#0ff", "pin": "brass"}

    def test_from_non_dict(self):
        assert StyleHints.from_dict(None) == StyleHints()
        assert StyleHints.from_dict(["x"]) == StyleHints()

    def test_rotation_coerced(self):
        assert StyleHints.from_dict({"rotation": 2}).rotation == 2.0

    def test_merged(self):
        base = StyleHints(rotation=1.0, color="#f0f")
        merged = base.merged({"color": None, "glow": True})
        assert merged.to_dict() == {"rotation": 1.0, "glow": True}
        assert base.color == "#f0f"


class TestSpatialObject:
    def test_record(self):
        obj = SpatialObject("b1", BlockKind.IMAGE, Point(1, 2), Size(3, 4), "Image", "data:,x")
        assert obj.rect == Rect(1, 2, 3, 4)
        assert obj.to_record() == {
            "id": "b1",
            "kind": "image",
            "position": {"x": 1, "y": 2},
            "size": {"width": 3, "height": 4},
            "title": "Image",
            "payload": "data:,x",
            "style": {},
        }

    def test_rich_text_record_carries_format(self):
        obj = SpatialObject("b1", BlockKind.TEXT, Point(0, 0), Size(3, 4), "Note", "<p>x</p>",
                            text_format=TextFormat.HTML)
        assert obj.is_rich_text
        assert obj.to_record()["format"] == "html"
        obj.text_format = TextFormat.PLAIN
        assert "format" not in obj.to_record()


class TestIdFactory:
    def test_unique_and_prefixed(self):
        ids = IdFactory()
        generated = [ids.next_id() for _ in range(500)]
        assert len(set(generated)) == 500
        assert all(i.startswith("block-") for i in generated)

    def test_factories_do_not_collide(self):
        assert IdFactory().next_id() != IdFactory().next_id()
