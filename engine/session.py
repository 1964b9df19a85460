"""
engine/session.py

The single explicit workspace context shared by every engine component.
"""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Optional

from debug_trace import trace
from engine.connections import ConnectionGraph
from engine.raster import RasterHistory, RasterLayer
from engine.store import ObjectStore
from engine.themes import DEFAULT_THEME, normalize_theme
from engine.viewport import ViewportTransform
from models import IdFactory, Mode, Rect
from settings import AppSettings, get_settings

if TYPE_CHECKING:
    from engine.codec import WorkspaceSnapshot

log = logging.getLogger(__name__)


class WorkspaceSession:
    """
    Owns the viewport, block store, connection graph and drawing layer.

    Args:
        settings: Application settings; defaults to the global settings.
        theme: Active theme name (unknown names fall back to the default).
        rng: Random source for theme decorations.
    """

    def __init__(self, settings: Optional[AppSettings] = None, theme: str = DEFAULT_THEME,
                 rng: Optional[random.Random] = None):
        self.settings = settings if settings is not None else get_settings().settings
        self.theme = normalize_theme(theme)
        self.rng = rng if rng is not None else random.Random()
        self.mode = Mode.SELECT
        self.ids = IdFactory()

        vp = self.settings.viewport
        self.viewport = ViewportTransform(
            min_scale=vp.min_scale,
            max_scale=vp.max_scale,
            zoom_intensity=vp.zoom_intensity,
            width=vp.width,
            height=vp.height,
        )
        self.store = ObjectStore(self)
        self.graph = ConnectionGraph(self)

        ra = self.settings.raster
        self.raster = RasterLayer(ra.width, ra.height)
        self.raster_history = RasterHistory(ra.history_limit)

    def delete_object(self, object_id: str) -> bool:
        """Remove a block together with every connection touching it."""
        if object_id not in self.store:
            return False
        removed = self.graph.disconnect_all(object_id)
        self.store.delete(object_id)
        trace(f"deleted {object_id} with {removed} connections", "SESSION")
        return True

    def content_bounds(self) -> Optional[Rect]:
        bounds = None
        for obj in self.store.all():
            bounds = obj.rect if bounds is None else bounds.united(obj.rect)
        return bounds

    def reset(self):
        """Drop all blocks, connections and drawing state."""
        self.graph.clear()
        self.store.clear()
        self.raster.clear()
        self.raster_history.clear()

    def restore(self, snapshot: "WorkspaceSnapshot"):
        """
        Rebuild the workspace from a decoded snapshot.

        Blocks go through ``ObjectStore.create`` with their stored geometry,
        payload and style, so nothing is re-randomized.
        """
        self.reset()
        for obj in snapshot.objects:
            try:
                self.store.create(
                    obj.kind,
                    obj.rect,
                    obj.payload,
                    title=obj.title,
                    style=obj.style,
                    object_id=obj.id,
                    text_format=obj.text_format,
                )
            except ValueError as e:
                log.warning("Skipping block during restore: %s", e)
        for edge in snapshot.edges:
            self.graph.connect(edge.start, edge.end)
        if snapshot.raster:
            try:
                self.raster.load_data_uri(snapshot.raster)
            except ValueError as e:
                log.warning("Stored drawing could not be decoded: %s", e)
                self.raster.clear()
        trace(f"restored {len(self.store)} blocks, {len(self.graph)} connections", "SESSION")
