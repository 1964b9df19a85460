"""
canvas package

PyQt6 rendering of a workspace session: graphics items, scene, view and
the background image loader.
"""

from canvas.items import BlockItem, ConnectionLayer, RasterItem, TransformerItem
from canvas.scene import WorkspaceScene
from canvas.view import WorkspaceView
from canvas.image_worker import ImageLoadWorker

__all__ = [
    "BlockItem",
    "ConnectionLayer",
    "RasterItem",
    "TransformerItem",
    "WorkspaceScene",
    "WorkspaceView",
    "ImageLoadWorker",
]
