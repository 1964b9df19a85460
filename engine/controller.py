"""
engine/controller.py

Pointer, keyboard and command handling for the workspace.

The controller consumes toolkit-neutral pointer events (screen pixels plus
the block part under the pointer), mutates the session, asks the
renderer to redraw and triggers persistence. Renderers never mutate the
session themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from debug_trace import trace
from engine.codec import PersistenceCodec, Preferences
from engine.errors import InvalidDropError
from engine.images import read_image_payload
from engine.session import WorkspaceSession
from engine.themes import normalize_theme
from models import BlockKind, BlockPart, Mode, Point, Rect, Size
from utils import is_image_data_uri

log = logging.getLogger(__name__)


class PointerButton(Enum):
    PRIMARY = "primary"
    MIDDLE = "middle"
    SECONDARY = "secondary"


class Gesture(Enum):
    """What the pointer is currently doing."""
    IDLE = "idle"
    DRAGGING = "dragging"
    RESIZING = "resizing"
    PANNING = "panning"
    DRAWING = "drawing"


class Redraw:
    """Reasons passed to the render callback."""
    ALL = "all"
    VIEWPORT = "viewport"
    OBJECT_ADDED = "object_added"
    OBJECT_CHANGED = "object_changed"
    OBJECT_REMOVED = "object_removed"
    CONNECTIONS = "connections"
    RASTER = "raster"
    STATE = "state"        # cursor, mode, pending connection
    THEME = "theme"


class Cursor:
    DEFAULT = "default"
    GRAB = "grab"
    GRABBING = "grabbing"
    RESIZE = "resize"
    CROSSHAIR = "crosshair"


@dataclass(frozen=True)
class HitTarget:
    """The block and block part under the pointer; empty for the background.

    ``color`` names the accent swatch for ``BlockPart.COLOR_SWATCH`` hits.
    """
    object_id: Optional[str] = None
    part: Optional[BlockPart] = None
    color: Optional[str] = None

    @property
    def is_background(self) -> bool:
        return self.object_id is None


BACKGROUND = HitTarget()

# Parts a block can be dragged by, per kind. Text content and titles are
# left to the text editor.
_DRAG_PARTS = {
    BlockKind.TEXT: frozenset({BlockPart.HEADER, BlockPart.FOOTER, BlockPart.BODY}),
    BlockKind.IMAGE: frozenset({BlockPart.CONTENT}),
}

# Zoom buttons scale by this factor around the viewport center
ZOOM_STEP_FACTOR = 1.2

RenderCallback = Callable[[str, Optional[str]], None]


class InteractionController:
    """
    State machine for block dragging/resizing, panning, drawing and
    two-click connect mode.

    Args:
        session: The workspace session to operate on.
        codec: Persistence codec used to save after each committed change.
        on_render: Called as ``on_render(reason, object_id)`` after state changes.
        confirm_delete: Optional predicate asked before a block is deleted.
    """

    def __init__(self, session: WorkspaceSession, codec: PersistenceCodec,
                 on_render: Optional[RenderCallback] = None,
                 confirm_delete: Optional[Callable[[str], bool]] = None):
        self.session = session
        self.codec = codec
        self.on_render = on_render
        self.confirm_delete = confirm_delete
        self.preferences: Preferences = codec.load_preferences()

        self.gesture = Gesture.IDLE
        self.active_id: Optional[str] = None
        self.pending_connection_start: Optional[str] = None
        self.draw_color = session.settings.raster.default_color

        # Gesture start state
        self._drag_offset = Point(0.0, 0.0)
        self._resize_start = Point(0.0, 0.0)
        self._start_position: Optional[Point] = None
        self._start_size: Optional[Size] = None
        self._last_screen = Point(0.0, 0.0)
        self._last_logical = Point(0.0, 0.0)

        session.viewport.on_changed = self._on_viewport_changed

    # ---- plumbing ----

    def set_render_callback(self, callback: Optional[RenderCallback]):
        self.on_render = callback

    def _render(self, reason: str, object_id: Optional[str] = None):
        if self.on_render:
            self.on_render(reason, object_id)

    def _on_viewport_changed(self):
        self._render(Redraw.VIEWPORT)

    def request_save(self) -> bool:
        """Persist the whole workspace now."""
        return self.codec.save_session(self.session)

    def redraw_connections(self):
        self._render(Redraw.CONNECTIONS)

    def load_workspace(self):
        """Replace the session contents with the stored workspace."""
        self._reset_transient()
        self.codec.load_into(self.session)
        self._render(Redraw.ALL)

    # ---- queries ----

    @property
    def cursor(self) -> str:
        if self.gesture in (Gesture.DRAGGING, Gesture.PANNING):
            return Cursor.GRABBING
        if self.gesture == Gesture.RESIZING:
            return Cursor.RESIZE
        if self.pending_connection_start is not None or self.session.mode == Mode.DRAW:
            return Cursor.CROSSHAIR
        return Cursor.DEFAULT

    def is_drag_handle(self, kind: BlockKind, part: Optional[BlockPart]) -> bool:
        """Whether pressing on ``part`` of a ``kind`` block starts a drag."""
        return part in _DRAG_PARTS[BlockKind(kind)]

    def search(self, query: str) -> List[str]:
        return self.session.store.matching(query)

    # ---- pointer events ----

    def pointer_down(self, screen: Point, button: PointerButton = PointerButton.PRIMARY,
                     target: HitTarget = BACKGROUND) -> bool:
        """
        Handle a pointer press.

        Returns:
            True if the press was consumed; False lets the renderer forward
            it (for example to a text editor).
        """
        if self.gesture != Gesture.IDLE:
            # A release was lost somewhere; commit what we had
            self._finish_gesture(commit=True)

        if button == PointerButton.MIDDLE:
            self._begin_pan(screen)
            return True
        if button != PointerButton.PRIMARY:
            return False

        if self.session.mode == Mode.DRAW:
            self._begin_stroke(screen)
            return True

        obj = None if target.is_background else self.session.store.get(target.object_id)
        if obj is None:
            self._begin_pan(screen)
            return True

        part = target.part
        if part == BlockPart.DELETE_BUTTON:
            self.delete_object(obj.id)
            return True
        if part == BlockPart.CONNECT_BUTTON or self.pending_connection_start is not None:
            self.connect_clicked(obj.id)
            return True
        if part == BlockPart.COLOR_SWATCH:
            if target.color:
                self.set_block_color(obj.id, target.color)
            return True
        if part == BlockPart.RESIZE_HANDLE:
            self._begin_resize(obj.id, screen)
            return True
        if self.is_drag_handle(obj.kind, part):
            self._begin_drag(obj.id, screen)
            return True
        return False

    def pointer_move(self, screen: Point):
        vp = self.session.viewport
        g = self.gesture
        if g == Gesture.DRAGGING:
            logical = vp.to_logical(screen - self._drag_offset)
            trace(f"drag {self.active_id} -> ({logical.x:.1f}, {logical.y:.1f})", "MOVE")
            if not self.session.store.update(self.active_id, position=logical):
                self._reset_transient()
                return
            self._render(Redraw.OBJECT_CHANGED, self.active_id)
            self._render(Redraw.CONNECTIONS)
        elif g == Gesture.RESIZING:
            d = screen - self._resize_start
            size = Size(self._start_size.width + d.x / vp.scale, self._start_size.height + d.y / vp.scale)
            if not self.session.store.update(self.active_id, size=size):
                self._reset_transient()
                return
            self._render(Redraw.OBJECT_CHANGED, self.active_id)
            self._render(Redraw.CONNECTIONS)
        elif g == Gesture.PANNING:
            d = screen - self._last_screen
            self._last_screen = screen
            vp.pan_by(d.x, d.y)
        elif g == Gesture.DRAWING:
            logical = vp.to_logical(screen)
            self.session.raster.stroke(self._last_logical, logical, self.draw_color,
                                       self.session.settings.raster.pen_width)
            self._last_logical = logical
            self._render(Redraw.RASTER)

    def pointer_up(self, screen: Optional[Point] = None):
        if screen is not None and self.gesture != Gesture.IDLE:
            self.pointer_move(screen)
        self._finish_gesture(commit=True)

    def pointer_lost(self):
        """The release never arrived (window lost focus, grab broken)."""
        self._finish_gesture(commit=True)

    def wheel(self, screen: Point, delta: float):
        """Zoom around ``screen``; positive ``delta`` zooms in."""
        self.session.viewport.zoom_at(screen, delta)

    def escape(self):
        """
        Abort whatever is in progress.

        A drag or resize snaps back to where it started without saving, a
        pending connection is dropped and an in-progress stroke is kept.
        """
        if self.gesture in (Gesture.DRAGGING, Gesture.RESIZING):
            self._finish_gesture(commit=False)
        elif self.gesture != Gesture.IDLE:
            self._finish_gesture(commit=True)
        self.cancel_connection()

    cancel = escape

    # ---- gesture internals ----

    def _begin_pan(self, screen: Point):
        self.gesture = Gesture.PANNING
        self._last_screen = screen
        self._render(Redraw.STATE)

    def _begin_drag(self, object_id: str, screen: Point):
        obj = self.session.store.get(object_id)
        self.gesture = Gesture.DRAGGING
        self.active_id = object_id
        self._start_position = Point(obj.position.x, obj.position.y)
        self._drag_offset = screen - self.session.viewport.to_screen(obj.position)
        trace(f"drag start {object_id}", "INPUT")
        self._render(Redraw.STATE)

    def _begin_resize(self, object_id: str, screen: Point):
        obj = self.session.store.get(object_id)
        self.gesture = Gesture.RESIZING
        self.active_id = object_id
        self._start_position = Point(obj.position.x, obj.position.y)
        self._start_size = Size(obj.size.width, obj.size.height)
        self._resize_start = screen
        trace(f"resize start {object_id}", "INPUT")
        self._render(Redraw.STATE)

    def _begin_stroke(self, screen: Point):
        self.session.raster_history.snapshot(self.session.raster)
        self.gesture = Gesture.DRAWING
        logical = self.session.viewport.to_logical(screen)
        self._last_logical = logical
        self.session.raster.stroke(logical, logical, self.draw_color, self.session.settings.raster.pen_width)
        self._render(Redraw.RASTER)

    def _finish_gesture(self, commit: bool):
        g = self.gesture
        object_id = self.active_id
        if g == Gesture.IDLE:
            return
        if not commit and g in (Gesture.DRAGGING, Gesture.RESIZING) and object_id in self.session.store:
            changes = {"position": self._start_position}
            if g == Gesture.RESIZING:
                changes["size"] = self._start_size
            self.session.store.update(object_id, **changes)
            self._render(Redraw.OBJECT_CHANGED, object_id)
            self._render(Redraw.CONNECTIONS)
        self._reset_transient()
        trace(f"{g.value} finished commit={commit}", "INPUT")
        if commit and g in (Gesture.DRAGGING, Gesture.RESIZING, Gesture.DRAWING):
            self.request_save()

    def _reset_transient(self):
        self.gesture = Gesture.IDLE
        self.active_id = None
        self._start_position = None
        self._start_size = None
        self._render(Redraw.STATE)

    # ---- connect mode ----

    def connect_clicked(self, object_id: str):
        """
        Connect-button click on a block.

        The first click arms connect mode on the block; a click on another
        block connects the two; a second click on the same block cancels.
        """
        if object_id not in self.session.store:
            return
        start = self.pending_connection_start
        if start is None:
            self.pending_connection_start = object_id
            trace(f"connection pending from {object_id}", "INPUT")
            self._render(Redraw.STATE)
            return
        self.pending_connection_start = None
        if start != object_id and self.session.graph.connect(start, object_id):
            self._render(Redraw.CONNECTIONS)
            self.request_save()
        self._render(Redraw.STATE)

    def cancel_connection(self):
        if self.pending_connection_start is not None:
            self.pending_connection_start = None
            self._render(Redraw.STATE)

    # ---- block commands ----

    def create_block(self, kind: BlockKind, geometry: Optional[Rect] = None,
                     payload: Optional[str] = None, title: Optional[str] = None) -> str:
        object_id = self.session.store.create(kind, geometry, payload, title=title)
        self._render(Redraw.OBJECT_ADDED, object_id)
        self.request_save()
        return object_id

    def create_text_block(self, text: Optional[str] = None) -> str:
        return self.create_block(BlockKind.TEXT, payload=text)

    def _geometry_centered_at(self, screen: Point) -> Rect:
        blocks = self.session.settings.blocks
        c = self.session.viewport.to_logical(screen)
        return Rect(c.x - blocks.default_width / 2, c.y - blocks.default_height / 2,
                    blocks.default_width, blocks.default_height)

    def image_loaded(self, payload: str, at: Optional[Point] = None) -> Optional[str]:
        """
        Completion of an image read: create an image block.

        Args:
            payload: Image data URI.
            at: Screen point to center the block on; default placement if None.
        """
        if not is_image_data_uri(payload):
            log.warning("Ignoring image payload that is not an image data URI")
            return None
        geometry = self._geometry_centered_at(at) if at is not None else None
        return self.create_block(BlockKind.IMAGE, geometry, payload)

    def image_failed(self, message: str):
        log.warning("Image could not be loaded: %s", message)

    def drop_file(self, path: Union[str, Path], at: Optional[Point] = None) -> Optional[str]:
        """Read an image file synchronously and create a block; invalid files are ignored."""
        try:
            payload = read_image_payload(path)
        except InvalidDropError as e:
            self.image_failed(str(e))
            return None
        return self.image_loaded(payload, at)

    def update_object(self, object_id: str, **changes) -> bool:
        """Apply field changes (rename, content edit, style) and save."""
        if not self.session.store.update(object_id, **changes):
            return False
        self._render(Redraw.OBJECT_CHANGED, object_id)
        if "position" in changes or "size" in changes:
            self._render(Redraw.CONNECTIONS)
        self.request_save()
        return True

    def set_block_color(self, object_id: str, color: str) -> bool:
        return self.update_object(object_id, style={"color": color})

    def delete_object(self, object_id: str) -> bool:
        """Delete a block and its connections, then save."""
        if object_id not in self.session.store:
            return False
        if self.confirm_delete is not None and not self.confirm_delete(object_id):
            return False
        if self.active_id == object_id:
            self._reset_transient()
        if self.pending_connection_start == object_id:
            self.pending_connection_start = None
        self.session.delete_object(object_id)
        self._render(Redraw.OBJECT_REMOVED, object_id)
        self._render(Redraw.CONNECTIONS)
        self._render(Redraw.STATE)
        self.request_save()
        return True

    def reset_workspace(self):
        """Remove every block, connection and drawing, then save."""
        self._reset_transient()
        self.pending_connection_start = None
        self.session.reset()
        self._render(Redraw.ALL)
        self.request_save()

    # ---- preferences ----

    def set_theme(self, theme: str):
        theme = normalize_theme(theme)
        self.session.theme = theme
        self.preferences.theme = theme
        self.codec.save_preferences(self.preferences)
        self._render(Redraw.THEME)
        self.redraw_connections()

    def set_search_glow(self, enabled: bool):
        self.preferences.search_glow_enabled = bool(enabled)
        self.codec.save_preferences(self.preferences)

    def mark_tutorial_completed(self):
        self.preferences.tutorial_completed = True
        self.codec.save_preferences(self.preferences)

    # ---- drawing ----

    def set_mode(self, mode: str):
        if mode == self.session.mode:
            return
        if self.gesture != Gesture.IDLE:
            self._finish_gesture(commit=True)
        self.session.mode = mode
        self.cancel_connection()
        self._render(Redraw.STATE)

    def toggle_drawing(self) -> bool:
        """Switch between drawing and select mode. Returns True if now drawing."""
        self.set_mode(Mode.SELECT if self.session.mode == Mode.DRAW else Mode.DRAW)
        return self.session.mode == Mode.DRAW

    def set_draw_color(self, color: str):
        self.draw_color = color

    def undo_drawing(self) -> bool:
        if not self.session.raster_history.restore(self.session.raster):
            return False
        self._render(Redraw.RASTER)
        self.request_save()
        return True

    def clear_drawing(self):
        """Wipe the drawing (undoable) and drop the stored copy."""
        if not self.session.raster.is_blank():
            self.session.raster_history.snapshot(self.session.raster)
        self.session.raster.clear()
        self._render(Redraw.RASTER)
        self.request_save()

    # ---- zoom helpers ----

    def _viewport_center(self) -> Point:
        vp = self.session.viewport
        return Point(vp.width / 2, vp.height / 2)

    def zoom_in(self):
        vp = self.session.viewport
        vp.zoom_to(self._viewport_center(), vp.scale * ZOOM_STEP_FACTOR)

    def zoom_out(self):
        vp = self.session.viewport
        vp.zoom_to(self._viewport_center(), vp.scale / ZOOM_STEP_FACTOR)

    def zoom_reset(self):
        self.session.viewport.reset()

    def zoom_fit(self) -> bool:
        rects = [obj.rect for obj in self.session.store.all()]
        return self.session.viewport.fit(rects, self.session.settings.viewport.fit_margin)
