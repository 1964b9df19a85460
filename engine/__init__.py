"""
engine package

Headless workspace core: viewport transform, block store, connection
graph, persistence codec, raster layer and the interaction controller.
Nothing in this package imports Qt.
"""

from engine.connections import ConnectionGraph, Edge, border_point, clip_to_border
from engine.controller import Gesture, HitTarget, InteractionController, PointerButton
from engine.codec import PersistenceCodec, Preferences, WorkspaceSnapshot
from engine.raster import RasterHistory, RasterLayer
from engine.session import WorkspaceSession
from engine.storage import FileStorage, KeyValueStorage, MemoryStorage
from engine.store import ObjectStore
from engine.viewport import ViewportTransform

__all__ = [
    "ConnectionGraph",
    "Edge",
    "border_point",
    "clip_to_border",
    "Gesture",
    "HitTarget",
    "InteractionController",
    "PointerButton",
    "PersistenceCodec",
    "Preferences",
    "WorkspaceSnapshot",
    "RasterHistory",
    "RasterLayer",
    "WorkspaceSession",
    "FileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "ObjectStore",
    "ViewportTransform",
]
