"""
engine/raster.py

Freehand drawing surface that shares the workspace's logical
coordinates, plus its bounded undo history.
"""

from __future__ import annotations

import io
from typing import List, Optional

import numpy as np
from PIL import Image, ImageDraw, UnidentifiedImageError

from debug_trace import trace
from models import Point
from utils import decode_data_uri, encode_data_uri, hex_to_rgba

_FALLBACK_RGBA = (231, 76, 60, 255)


class RasterLayer:
    """
    Transparent RGBA surface anchored at the logical origin.

    Strokes are given in logical units; the renderer draws the surface
    through the same pan/zoom transform as the blocks.

    Args:
        width: Surface width in logical units.
        height: Surface height in logical units.
    """

    def __init__(self, width: int = 2000, height: int = 1500):
        self.width = int(width)
        self.height = int(height)
        self._image = self._blank_image()
        # Bumped on every change so renderers can cache their pixmap
        self.revision = 0

    def _blank_image(self) -> Image.Image:
        return Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))

    def _touch(self):
        self.revision += 1

    @property
    def image(self) -> Image.Image:
        return self._image

    def is_blank(self) -> bool:
        """True when every channel of every pixel is zero."""
        return not np.asarray(self._image).any()

    def pixels(self) -> np.ndarray:
        """Copy of the surface as an (height, width, 4) uint8 array."""
        return np.array(self._image, dtype=np.uint8)

    def clear(self):
        self._image = self._blank_image()
        self._touch()

    def stroke(self, p0: Point, p1: Point, color: str, width: float = 3):
        """Draw a round-capped segment from ``p0`` to ``p1``."""
        rgba = hex_to_rgba(color, _FALLBACK_RGBA)
        w = max(1, int(round(width)))
        draw = ImageDraw.Draw(self._image)
        draw.line([(p0.x, p0.y), (p1.x, p1.y)], fill=rgba, width=w)
        r = w / 2
        for p in (p0, p1):
            draw.ellipse([p.x - r, p.y - r, p.x + r, p.y + r], fill=rgba)
        self._touch()

    def to_data_uri(self) -> str:
        buf = io.BytesIO()
        self._image.save(buf, format="PNG")
        return encode_data_uri(buf.getvalue(), "image/png")

    def load_data_uri(self, uri: str):
        """
        Replace the surface with an encoded image.

        Images of a different size are placed at the origin of a blank
        surface and cropped to it.

        Raises:
            ValueError: If ``uri`` is not a decodable image data URI.
        """
        _mime, data = decode_data_uri(uri)
        try:
            with Image.open(io.BytesIO(data)) as src:
                loaded = src.convert("RGBA")
        except (UnidentifiedImageError, OSError) as e:
            raise ValueError(f"Undecodable drawing: {e}") from e
        if loaded.size != (self.width, self.height):
            canvas = self._blank_image()
            canvas.paste(loaded.crop((0, 0, self.width, self.height)), (0, 0))
            loaded = canvas
        self._image = loaded
        self._touch()
        trace(f"raster loaded {len(uri)} chars", "RASTER")


class RasterHistory:
    """
    Bounded undo stack of encoded raster snapshots.

    Args:
        limit: Maximum number of snapshots kept; 0 or None keeps all.
    """

    def __init__(self, limit: Optional[int] = 50):
        self.limit = limit or 0
        self._stack: List[str] = []

    def snapshot(self, layer: RasterLayer):
        self._stack.append(layer.to_data_uri())
        if self.limit and len(self._stack) > self.limit:
            del self._stack[0]

    def restore(self, layer: RasterLayer) -> bool:
        """Pop the latest snapshot into ``layer``. False if there is nothing to undo."""
        if not self._stack:
            return False
        layer.load_data_uri(self._stack.pop())
        return True

    def clear(self):
        self._stack.clear()

    def __len__(self) -> int:
        return len(self._stack)
