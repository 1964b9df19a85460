"""
engine/viewport.py

Pan/zoom transform between screen pixels and logical workspace units.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional, Tuple

from models import Point, Rect


class ViewportTransform:
    """
    Maps the infinite logical canvas onto the finite viewport.

    ``screen = logical * scale + pan`` and its inverse. The scale is always
    clamped to ``[min_scale, max_scale]`` and never reaches zero, so the
    transform is invertible at all times.

    Args:
        min_scale: Lower zoom bound.
        max_scale: Upper zoom bound.
        zoom_intensity: Relative scale change per unit of zoom delta.
        width: Viewport width in screen pixels.
        height: Viewport height in screen pixels.
    """

    def __init__(self, min_scale: float = 0.2, max_scale: float = 3.0,
                 zoom_intensity: float = 0.08, width: float = 800, height: float = 600):
        self.min_scale = min_scale
        self.max_scale = max_scale
        self.zoom_intensity = zoom_intensity
        self.width = float(width)
        self.height = float(height)
        self.scale = self._clamp(1.0)
        self.pan = Point(0.0, 0.0)
        self.on_changed: Optional[Callable[[], None]] = None

    def _clamp(self, scale: float) -> float:
        return max(self.min_scale, min(scale, self.max_scale))

    def _notify_changed(self):
        if self.on_changed:
            self.on_changed()

    # ---- coordinate conversion ----

    def to_logical(self, screen: Point) -> Point:
        """Convert a screen point to logical workspace units."""
        return Point((screen.x - self.pan.x) / self.scale, (screen.y - self.pan.y) / self.scale)

    def to_screen(self, logical: Point) -> Point:
        """Convert a logical point to screen pixels."""
        return Point(logical.x * self.scale + self.pan.x, logical.y * self.scale + self.pan.y)

    def visible_center(self) -> Point:
        """Logical point currently under the middle of the viewport."""
        return self.to_logical(Point(self.width / 2, self.height / 2))

    def visible_rect(self) -> Rect:
        """Logical rectangle currently covered by the viewport."""
        tl = self.to_logical(Point(0.0, 0.0))
        return Rect(tl.x, tl.y, self.width / self.scale, self.height / self.scale)

    def matrix(self) -> Tuple[float, float, float, float, float, float]:
        """Affine matrix (m11, m12, m21, m22, dx, dy) for renderers."""
        return (self.scale, 0.0, 0.0, self.scale, self.pan.x, self.pan.y)

    # ---- mutation ----

    def set_viewport_size(self, width: float, height: float):
        """Record the viewport size in pixels (used for default placement)."""
        self.width = float(width)
        self.height = float(height)

    def zoom_at(self, screen: Point, delta: float):
        """
        Zoom by ``delta`` steps keeping ``screen`` fixed over the same logical point.

        The scale is multiplied by ``1 + delta * zoom_intensity`` and clamped,
        then the pan is recomputed so ``to_logical(screen)`` is unchanged.
        """
        old_scale = self.scale
        new_scale = self._clamp(old_scale * (1 + delta * self.zoom_intensity))
        self._apply_scale(screen, new_scale)

    def zoom_to(self, screen: Point, scale: float):
        """Set an absolute scale anchored at ``screen``."""
        self._apply_scale(screen, self._clamp(scale))

    def _apply_scale(self, screen: Point, new_scale: float):
        ratio = new_scale / self.scale
        self.pan = Point(
            screen.x - (screen.x - self.pan.x) * ratio,
            screen.y - (screen.y - self.pan.y) * ratio,
        )
        self.scale = new_scale
        self._notify_changed()

    def pan_by(self, dx: float, dy: float):
        """Translate the view by a screen-pixel offset. Unbounded."""
        self.pan = Point(self.pan.x + dx, self.pan.y + dy)
        self._notify_changed()

    def reset(self):
        """Back to 100% with the logical origin at the viewport's top-left."""
        self.scale = self._clamp(1.0)
        self.pan = Point(0.0, 0.0)
        self._notify_changed()

    def fit(self, rects: Iterable[Rect], margin: float = 0.0) -> bool:
        """
        Zoom and pan so every rectangle is visible.

        Returns:
            False if there is nothing to fit.
        """
        bounds: Optional[Rect] = None
        for r in rects:
            bounds = r if bounds is None else bounds.united(r)
        if bounds is None:
            return False
        w = bounds.width + 2 * margin
        h = bounds.height + 2 * margin
        if w <= 0 or h <= 0:
            return False
        self.scale = self._clamp(min(self.width / w, self.height / h))
        c = bounds.center
        self.pan = Point(self.width / 2 - c.x * self.scale, self.height / 2 - c.y * self.scale)
        self._notify_changed()
        return True
