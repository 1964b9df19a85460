"""
canvas/scene.py

QGraphicsScene that mirrors a WorkspaceSession and redraws on controller
notifications.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from PyQt6.QtGui import QBrush, QColor
from PyQt6.QtWidgets import QGraphicsScene

from canvas.items import BlockItem, ConnectionLayer, RasterItem, TransformerItem, palette_for
from debug_trace import trace
from engine.controller import InteractionController, Redraw
from engine.session import WorkspaceSession


class WorkspaceScene(QGraphicsScene):
    """
    Scene holding one transformer item with every workspace visual under it.

    Scene coordinates are view pixels; logical units only exist below the
    transformer.
    """

    def __init__(self, session: WorkspaceSession, controller: InteractionController, parent=None):
        super().__init__(parent)
        self.session = session
        self.controller = controller
        self.blocks: Dict[str, BlockItem] = {}
        self._on_cursor_changed: Optional[Callable[[str], None]] = None
        self._search_query = ""

        self.transformer = TransformerItem()
        self.addItem(self.transformer)
        self.connections = ConnectionLayer(self.session.graph.segments)
        self.connections.setParentItem(self.transformer)
        self.raster_item = RasterItem(self.session.raster)
        self.raster_item.setParentItem(self.transformer)

        controller.set_render_callback(self.handle_render)
        self.rebuild()

    def set_cursor_callback(self, callback: Optional[Callable[[str], None]]):
        """Set callback for cursor changes (the view owns the cursor)."""
        self._on_cursor_changed = callback

    # ---- render dispatch ----

    def handle_render(self, reason: str, object_id: Optional[str] = None):
        if reason in (Redraw.ALL, Redraw.THEME):
            self.rebuild()
        elif reason == Redraw.VIEWPORT:
            self.refresh_viewport()
        elif reason == Redraw.OBJECT_ADDED:
            self._add_block(object_id)
            self._apply_search()
        elif reason == Redraw.OBJECT_CHANGED:
            self.sync_block(object_id)
            self._apply_search()
        elif reason == Redraw.OBJECT_REMOVED:
            self._remove_block(object_id)
        elif reason == Redraw.CONNECTIONS:
            self.connections.refresh()
        elif reason == Redraw.RASTER:
            self.raster_item.refresh()
        elif reason == Redraw.STATE:
            self.refresh_state()

    def rebuild(self):
        """Recreate every block item and restyle for the current theme."""
        for object_id in list(self.blocks):
            self._remove_block(object_id)
        theme = self.session.theme
        self.setBackgroundBrush(QBrush(QColor(palette_for(theme).background)))
        self.connections.set_theme(theme)
        for obj in self.session.store.all():
            self._add_block(obj.id)
        self.connections.refresh()
        self.raster_item.refresh()
        self.refresh_viewport()
        self.refresh_state()
        self._apply_search()
        trace(f"scene rebuilt with {len(self.blocks)} blocks", "CANVAS")

    def refresh_viewport(self):
        self.transformer.set_matrix(self.session.viewport.matrix())

    def refresh_state(self):
        pending = self.controller.pending_connection_start
        for object_id, item in self.blocks.items():
            item.set_highlighted(object_id == pending)
        if self._on_cursor_changed:
            self._on_cursor_changed(self.controller.cursor)

    # ---- blocks ----

    def _add_block(self, object_id: Optional[str]):
        obj = self.session.store.get(object_id) if object_id else None
        if obj is None or object_id in self.blocks:
            return
        item = BlockItem(obj, self.session.settings.blocks, self.session.theme,
                         on_payload_edited=self._payload_edited)
        item.setParentItem(self.transformer)
        self.blocks[object_id] = item

    def _remove_block(self, object_id: Optional[str]):
        item = self.blocks.pop(object_id, None)
        if item is not None:
            item.setParentItem(None)
            self.removeItem(item)

    def sync_block(self, object_id: Optional[str]):
        obj = self.session.store.get(object_id) if object_id else None
        item = self.blocks.get(object_id)
        if obj is None or item is None:
            return
        item.sync_from(obj)

    def _payload_edited(self, object_id: str, text: str):
        obj = self.session.store.get(object_id)
        if obj is not None and obj.payload != text:
            self.controller.update_object(object_id, payload=text)

    def set_search_query(self, query: str) -> List[str]:
        """Highlight blocks matching ``query`` and keep doing so as blocks change.

        Returns:
            Ids of the matching blocks.
        """
        self._search_query = query or ""
        return self._apply_search()

    def _apply_search(self) -> List[str]:
        hits = self.controller.search(self._search_query)
        glowing = set(hits) if self.controller.preferences.search_glow_enabled else set()
        for object_id, item in self.blocks.items():
            item.set_search_hit(object_id in glowing)
        return hits

    def clear_text_focus(self):
        for item in self.blocks.values():
            item.clear_text_focus()
