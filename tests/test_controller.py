"""Tests for InteractionController gestures, connect mode and commands."""
from __future__ import annotations

import io
import json
import logging

import pytest
from PIL import Image

from engine.codec import KEY_DRAWING, KEY_LAYOUT, KEY_THEME
from engine.controller import (
    Cursor,
    Gesture,
    HitTarget,
    InteractionController,
    PointerButton,
    Redraw,
)
from models import BlockKind, BlockPart, Mode, Point, Rect, Size
from utils import encode_data_uri


def png_bytes(size=(4, 4), color=(255, 0, 0, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


def stored_layout(storage):
    return json.loads(storage.get(KEY_LAYOUT))


def stored_block(storage, oid):
    for rec in stored_layout(storage)["layout"]:
        if rec["id"] == oid:
            return rec
    return None


# ─────────────────────────────────────────────────────────
# Place, connect, delete
# ─────────────────────────────────────────────────────────


class TestScenario:
    def test_place_connect_delete(self, controller, session, storage):
        a = controller.create_text_block()
        assert session.store.get(a).center == Point(400, 300)
        b = controller.create_block(BlockKind.TEXT, Rect(700, 100, 200, 150))

        controller.connect_clicked(a)
        controller.connect_clicked(b)
        controller.connect_clicked(b)
        controller.connect_clicked(a)
        assert len(session.graph) == 1

        assert controller.delete_object(a)
        assert len(session.graph) == 0
        assert b in session.store
        layout = stored_layout(storage)
        assert [r["id"] for r in layout["layout"]] == [b]
        assert layout["connections"] == []


# ─────────────────────────────────────────────────────────
# Dragging and resizing
# ─────────────────────────────────────────────────────────


class TestDrag:
    def test_drag_from_header(self, controller, session, storage):
        a = controller.create_text_block()
        assert controller.pointer_down(Point(350, 240), target=HitTarget(a, BlockPart.HEADER))
        assert controller.gesture == Gesture.DRAGGING
        assert controller.cursor == Cursor.GRABBING
        controller.pointer_move(Point(450, 340))
        assert session.store.get(a).position == Point(400, 325)
        controller.pointer_up()
        assert controller.gesture == Gesture.IDLE
        assert stored_block(storage, a)["position"] == {"x": 400, "y": 325}

    def test_drag_under_zoom(self, controller, session):
        a = controller.create_block(BlockKind.TEXT, Rect(300, 225, 200, 150))
        session.viewport.zoom_to(Point(0, 0), 2.0)
        controller.pointer_down(Point(610, 460), target=HitTarget(a, BlockPart.BODY))
        controller.pointer_move(Point(710, 460))
        controller.pointer_up()
        assert session.store.get(a).position == Point(350, 225)

    def test_text_content_is_left_to_editor(self, controller):
        a = controller.create_text_block()
        assert controller.pointer_down(Point(400, 300), target=HitTarget(a, BlockPart.CONTENT)) is False
        assert controller.pointer_down(Point(320, 230), target=HitTarget(a, BlockPart.TITLE)) is False
        assert controller.gesture == Gesture.IDLE

    def test_image_drags_by_content_only(self, controller):
        payload = encode_data_uri(png_bytes(), "image/png")
        img = controller.image_loaded(payload)
        assert controller.pointer_down(Point(310, 230), target=HitTarget(img, BlockPart.HEADER)) is False
        assert controller.pointer_down(Point(400, 300), target=HitTarget(img, BlockPart.CONTENT)) is True
        assert controller.gesture == Gesture.DRAGGING

    def test_drag_handle_selection(self, controller):
        assert controller.is_drag_handle(BlockKind.TEXT, BlockPart.FOOTER)
        assert not controller.is_drag_handle(BlockKind.TEXT, BlockPart.CONTENT)
        assert controller.is_drag_handle(BlockKind.IMAGE, BlockPart.CONTENT)
        assert not controller.is_drag_handle(BlockKind.IMAGE, BlockPart.BODY)

    def test_resize(self, controller, session, storage):
        a = controller.create_text_block()
        controller.pointer_down(Point(495, 370), target=HitTarget(a, BlockPart.RESIZE_HANDLE))
        assert controller.gesture == Gesture.RESIZING
        controller.pointer_move(Point(545, 400))
        controller.pointer_up()
        assert session.store.get(a).size == Size(250, 180)
        assert stored_block(storage, a)["size"] == {"width": 250, "height": 180}

    def test_resize_divides_by_scale(self, controller, session):
        a = controller.create_text_block()
        session.viewport.zoom_to(Point(0, 0), 2.0)
        controller.pointer_down(Point(100, 100), target=HitTarget(a, BlockPart.RESIZE_HANDLE))
        controller.pointer_move(Point(200, 140))
        controller.pointer_up()
        assert session.store.get(a).size == Size(250, 170)

    def test_resize_respects_minimum(self, controller, session):
        a = controller.create_text_block()
        controller.pointer_down(Point(495, 370), target=HitTarget(a, BlockPart.RESIZE_HANDLE))
        controller.pointer_move(Point(-2000, -2000))
        controller.pointer_up()
        assert session.store.get(a).size == Size(40, 30)

    def test_escape_reverts_without_saving(self, controller, session, storage):
        a = controller.create_text_block()
        saved = storage.get(KEY_LAYOUT)
        controller.pointer_down(Point(350, 240), target=HitTarget(a, BlockPart.HEADER))
        controller.pointer_move(Point(900, 900))
        controller.escape()
        assert controller.gesture == Gesture.IDLE
        assert session.store.get(a).position == Point(300, 225)
        assert storage.get(KEY_LAYOUT) == saved

    def test_escape_reverts_resize(self, controller, session):
        a = controller.create_text_block()
        controller.pointer_down(Point(495, 370), target=HitTarget(a, BlockPart.RESIZE_HANDLE))
        controller.pointer_move(Point(700, 700))
        controller.escape()
        assert session.store.get(a).size == Size(200, 150)

    def test_lost_pointer_up_commits(self, controller, session, storage):
        a = controller.create_text_block()
        controller.pointer_down(Point(350, 240), target=HitTarget(a, BlockPart.HEADER))
        controller.pointer_move(Point(360, 250))
        controller.pointer_lost()
        assert controller.gesture == Gesture.IDLE
        assert stored_block(storage, a)["position"] == {"x": 310, "y": 235}

    def test_new_press_finishes_stale_gesture(self, controller, session):
        a = controller.create_text_block()
        controller.pointer_down(Point(350, 240), target=HitTarget(a, BlockPart.HEADER))
        controller.pointer_move(Point(360, 240))
        controller.pointer_down(Point(10, 10))
        assert controller.gesture == Gesture.PANNING
        assert session.store.get(a).position == Point(310, 225)

    def test_delete_during_drag(self, controller, session):
        a = controller.create_text_block()
        controller.pointer_down(Point(350, 240), target=HitTarget(a, BlockPart.HEADER))
        controller.delete_object(a)
        assert controller.gesture == Gesture.IDLE
        controller.pointer_move(Point(500, 500))
        controller.pointer_up()
        assert a not in session.store


# ─────────────────────────────────────────────────────────
# Panning and zoom
# ─────────────────────────────────────────────────────────


class TestViewportInput:
    def test_background_drag_pans(self, controller, session, renders):
        controller.pointer_down(Point(10, 10))
        assert controller.gesture == Gesture.PANNING
        controller.pointer_move(Point(30, 50))
        controller.pointer_move(Point(40, 60))
        controller.pointer_up()
        assert session.viewport.pan == Point(30, 50)
        assert (Redraw.VIEWPORT, None) in renders

    def test_middle_button_pans_over_blocks(self, controller, session):
        a = controller.create_text_block()
        controller.pointer_down(Point(400, 300), PointerButton.MIDDLE, HitTarget(a, BlockPart.HEADER))
        controller.pointer_move(Point(410, 300))
        controller.pointer_up()
        assert session.viewport.pan == Point(10, 0)
        assert session.store.get(a).position == Point(300, 225)

    def test_secondary_button_ignored(self, controller):
        assert controller.pointer_down(Point(0, 0), PointerButton.SECONDARY) is False

    def test_wheel_zooms_around_pointer(self, controller, session):
        anchor = Point(123, 456)
        before = session.viewport.to_logical(anchor)
        controller.wheel(anchor, 1)
        assert session.viewport.scale == pytest.approx(1.08)
        after = session.viewport.to_logical(anchor)
        assert after.x == pytest.approx(before.x)
        assert after.y == pytest.approx(before.y)

    def test_zoom_buttons(self, controller, session):
        controller.zoom_in()
        assert session.viewport.scale == pytest.approx(1.2)
        assert session.viewport.visible_center().x == pytest.approx(400)
        controller.zoom_out()
        controller.zoom_out()
        assert session.viewport.scale == pytest.approx(1 / 1.2)
        controller.zoom_reset()
        assert session.viewport.scale == 1.0

    def test_zoom_fit(self, controller, session):
        assert controller.zoom_fit() is False
        controller.create_block(BlockKind.TEXT, Rect(-1000, -1000, 200, 150))
        controller.create_block(BlockKind.TEXT, Rect(1000, 1000, 200, 150))
        assert controller.zoom_fit() is True
        visible = session.viewport.visible_rect()
        assert visible.x <= -1000 and visible.right >= 1200


# ─────────────────────────────────────────────────────────
# Connect mode
# ─────────────────────────────────────────────────────────


class TestConnectMode:
    def test_pending_then_same_block_cancels(self, controller, session):
        a = controller.create_text_block()
        controller.connect_clicked(a)
        assert controller.pending_connection_start == a
        assert controller.cursor == Cursor.CROSSHAIR
        controller.connect_clicked(a)
        assert controller.pending_connection_start is None
        assert len(session.graph) == 0

    def test_connect_via_pointer(self, controller, session):
        a = controller.create_text_block()
        b = controller.create_block(BlockKind.TEXT, Rect(0, 0, 100, 100))
        controller.pointer_down(Point(0, 0), target=HitTarget(a, BlockPart.CONNECT_BUTTON))
        controller.pointer_up()
        controller.pointer_down(Point(0, 0), target=HitTarget(b, BlockPart.CONTENT))
        controller.pointer_up()
        assert session.graph.has_edge(a, b)
        assert controller.pending_connection_start is None
        assert controller.gesture == Gesture.IDLE

    def test_escape_cancels(self, controller, session):
        a = controller.create_text_block()
        controller.connect_clicked(a)
        controller.escape()
        assert controller.pending_connection_start is None
        assert controller.cursor == Cursor.DEFAULT

    def test_background_keeps_pending(self, controller):
        a = controller.create_text_block()
        controller.connect_clicked(a)
        controller.pointer_down(Point(5, 5))
        controller.pointer_up()
        assert controller.pending_connection_start == a

    def test_deleting_pending_start_clears(self, controller):
        a = controller.create_text_block()
        controller.connect_clicked(a)
        controller.delete_object(a)
        assert controller.pending_connection_start is None

    def test_connection_is_saved(self, controller, storage):
        a = controller.create_text_block()
        b = controller.create_text_block()
        controller.connect_clicked(a)
        controller.connect_clicked(b)
        assert stored_layout(storage)["connections"] == [{"start": a, "end": b}]


# ─────────────────────────────────────────────────────────
# Block commands
# ─────────────────────────────────────────────────────────


class TestCommands:
    def test_create_renders_and_saves(self, controller, storage, renders):
        a = controller.create_text_block("hi")
        assert (Redraw.OBJECT_ADDED, a) in renders
        assert stored_block(storage, a)["payload"] == "hi"

    def test_delete_button_with_confirmation(self, session, codec):
        answers = []
        controller = InteractionController(session, codec, confirm_delete=lambda oid: bool(answers))
        a = controller.create_text_block()
        controller.pointer_down(Point(0, 0), target=HitTarget(a, BlockPart.DELETE_BUTTON))
        assert a in session.store
        answers.append(True)
        controller.pointer_down(Point(0, 0), target=HitTarget(a, BlockPart.DELETE_BUTTON))
        assert a not in session.store

    def test_delete_missing_is_noop(self, controller):
        assert controller.delete_object("nope") is False

    def test_rename_saves(self, controller, storage):
        a = controller.create_text_block()
        assert controller.update_object(a, title="Evidence")
        assert stored_block(storage, a)["title"] == "Evidence"

    def test_update_missing(self, controller):
        assert controller.update_object("nope", title="x") is False

    def test_set_block_color(self, controller, session, storage):
        a = controller.create_text_block()
        controller.set_block_color(a, "#ff0080")
        assert session.store.get(a).style.color == "#ff0080"
        assert stored_block(storage, a)["style"] == {"color": "#ff0080"}

    def test_swatch_click_sets_color(self, controller, session, storage):
        a = controller.create_text_block()
        assert controller.pointer_down(Point(0, 0), target=HitTarget(a, BlockPart.COLOR_SWATCH, color="#0ff"))
        assert session.store.get(a).style.color == "#0ff"
        assert stored_block(storage, a)["style"] == {"color": "#0ff"}
        assert controller.gesture == Gesture.IDLE

    def test_swatch_without_color_is_ignored(self, controller, session):
        a = controller.create_text_block()
        assert controller.pointer_down(Point(0, 0), target=HitTarget(a, BlockPart.COLOR_SWATCH))
        assert session.store.get(a).style.color is None

    def test_search(self, controller):
        a = controller.create_text_block("Meet at the docks")
        controller.create_text_block("Unrelated")
        assert controller.search("DOCKS") == [a]

    def test_reset_workspace(self, controller, session, storage):
        a = controller.create_text_block()
        b = controller.create_text_block()
        controller.connect_clicked(a)
        controller.connect_clicked(b)
        session.raster.stroke(Point(1, 1), Point(20, 20), "#000000", 3)
        controller.request_save()
        controller.reset_workspace()
        assert len(session.store) == 0
        assert len(session.graph) == 0
        assert session.raster.is_blank()
        assert stored_layout(storage) == {"layout": [], "connections": []}
        assert storage.get(KEY_DRAWING) is None

    def test_set_theme(self, controller, session, storage, renders):
        controller.set_theme("cyberpunk")
        assert session.theme == "cyberpunk"
        assert storage.get(KEY_THEME) == "cyberpunk"
        assert (Redraw.THEME, None) in renders
        assert (Redraw.CONNECTIONS, None) in renders
        controller.set_theme("unknown")
        assert session.theme == "light"

    def test_load_workspace(self, controller, session, codec):
        a = controller.create_text_block()
        session.store.clear()
        controller.load_workspace()
        assert a in session.store


# ─────────────────────────────────────────────────────────
# Images
# ─────────────────────────────────────────────────────────


class TestImages:
    def test_drop_file_centers_on_drop_point(self, controller, session, tmp_path):
        path = tmp_path / "clue.png"
        path.write_bytes(png_bytes())
        oid = controller.drop_file(path, at=Point(100, 100))
        obj = session.store.get(oid)
        assert obj.kind == BlockKind.IMAGE
        assert obj.center == Point(100, 100)
        assert obj.payload.startswith("data:image/png;base64,")

    def test_drop_without_point_uses_default_placement(self, controller, session, tmp_path):
        path = tmp_path / "clue.png"
        path.write_bytes(png_bytes())
        obj = session.store.get(controller.drop_file(path))
        assert obj.center == Point(400, 300)

    def test_invalid_drop_is_ignored(self, controller, session, tmp_path, caplog):
        path = tmp_path / "fake.png"
        path.write_bytes(b"not a png at all")
        with caplog.at_level(logging.WARNING):
            assert controller.drop_file(path) is None
        assert len(session.store) == 0
        assert "Image could not be loaded" in caplog.text

    def test_non_image_file_is_ignored(self, controller, session, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        assert controller.drop_file(path) is None
        assert len(session.store) == 0

    def test_non_image_payload_rejected(self, controller, session):
        assert controller.image_loaded("data:text/plain,hello") is None
        assert len(session.store) == 0


# ─────────────────────────────────────────────────────────
# Drawing
# ─────────────────────────────────────────────────────────


class TestDrawing:
    def test_stroke_snapshot_and_save(self, controller, session, storage):
        controller.set_mode(Mode.DRAW)
        assert controller.cursor == Cursor.CROSSHAIR
        controller.pointer_down(Point(10, 10))
        assert controller.gesture == Gesture.DRAWING
        assert len(session.raster_history) == 1
        controller.pointer_move(Point(40, 10))
        controller.pointer_up()
        assert not session.raster.is_blank()
        assert storage.get(KEY_DRAWING).startswith("data:image/png")

    def test_drawing_goes_through_viewport(self, controller, session):
        session.viewport.zoom_to(Point(0, 0), 2.0)
        session.settings.raster.pen_width = 5
        controller.set_draw_color("#3498db")
        controller.set_mode(Mode.DRAW)
        controller.pointer_down(Point(100, 100))
        controller.pointer_up()
        px = session.raster.pixels()
        assert tuple(px[50, 50]) == (0x34, 0x98, 0xDB, 255)

    def test_drawing_ignores_blocks(self, controller, session):
        a = controller.create_text_block()
        controller.set_mode(Mode.DRAW)
        controller.pointer_down(Point(350, 240), target=HitTarget(a, BlockPart.HEADER))
        assert controller.gesture == Gesture.DRAWING

    def test_undo_drawing(self, controller, session, storage):
        controller.set_mode(Mode.DRAW)
        controller.pointer_down(Point(10, 10))
        controller.pointer_up()
        assert controller.undo_drawing() is True
        assert session.raster.is_blank()
        assert storage.get(KEY_DRAWING) is None
        assert controller.undo_drawing() is False

    def test_clear_drawing_is_undoable(self, controller, session, storage):
        controller.set_mode(Mode.DRAW)
        controller.pointer_down(Point(10, 10))
        controller.pointer_up()
        controller.clear_drawing()
        assert session.raster.is_blank()
        assert storage.get(KEY_DRAWING) is None
        controller.undo_drawing()
        assert not session.raster.is_blank()

    def test_toggle(self, controller, session):
        assert controller.toggle_drawing() is True
        assert session.mode == Mode.DRAW
        assert controller.toggle_drawing() is False
        assert session.mode == Mode.SELECT
