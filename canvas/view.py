"""
canvas/view.py

QGraphicsView that translates Qt input into controller events and
accepts image file drops.
"""

from __future__ import annotations

from typing import Callable, Optional

from PyQt6.QtCore import Qt, QPointF, QRectF
from PyQt6.QtGui import QPainter
from PyQt6.QtWidgets import QGraphicsView

from canvas.items import BlockItem
from canvas.scene import WorkspaceScene
from engine.controller import BACKGROUND, Cursor, Gesture, HitTarget, PointerButton
from engine.images import is_image_file
from models import BlockPart, Point

_BUTTONS = {
    Qt.MouseButton.LeftButton: PointerButton.PRIMARY,
    Qt.MouseButton.MiddleButton: PointerButton.MIDDLE,
    Qt.MouseButton.RightButton: PointerButton.SECONDARY,
}

_CURSORS = {
    Cursor.DEFAULT: Qt.CursorShape.ArrowCursor,
    Cursor.GRAB: Qt.CursorShape.OpenHandCursor,
    Cursor.GRABBING: Qt.CursorShape.ClosedHandCursor,
    Cursor.RESIZE: Qt.CursorShape.SizeFDiagCursor,
    Cursor.CROSSHAIR: Qt.CursorShape.CrossCursor,
}


def _point(p: QPointF) -> Point:
    return Point(p.x(), p.y())


class WorkspaceView(QGraphicsView):
    """
    Fixed view onto the workspace scene.

    The view itself never scrolls or scales: panning and zooming are the
    transformer item's job, so scene coordinates always equal view pixels.

    Args:
        scene: The workspace scene.
        on_drop_file_cb: Called with (path, drop point) for each dropped image file.
        on_rename_cb: Called with a block id when its title is double-clicked.
    """

    def __init__(self, scene: WorkspaceScene,
                 on_drop_file_cb: Callable[[str, Point], None],
                 on_rename_cb: Optional[Callable[[str], None]] = None,
                 parent=None):
        super().__init__(scene, parent)
        self.controller = scene.controller
        self.on_drop_file_cb = on_drop_file_cb
        self.on_rename_cb = on_rename_cb

        self.setAcceptDrops(True)
        self.setMouseTracking(True)
        self.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        self.setDragMode(QGraphicsView.DragMode.NoDrag)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setAlignment(Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop)
        self.setTransformationAnchor(QGraphicsView.ViewportAnchor.NoAnchor)
        self.setViewportUpdateMode(QGraphicsView.ViewportUpdateMode.FullViewportUpdate)

        scene.set_cursor_callback(self.apply_cursor)

    # ---- helpers ----

    def hit_target(self, pos: QPointF) -> HitTarget:
        """Block and block part under a view position."""
        for item in self.items(pos.toPoint()):
            block = item
            while block is not None and not isinstance(block, BlockItem):
                block = block.parentItem()
            if block is None:
                continue
            local = block.mapFromScene(self.mapToScene(pos.toPoint()))
            part = block.part_at(local)
            if part is None:
                continue
            color = block.swatch_at(local) if part == BlockPart.COLOR_SWATCH else None
            return HitTarget(block.object_id, part, color)
        return BACKGROUND

    def apply_cursor(self, cursor: str):
        self.viewport().setCursor(_CURSORS.get(cursor, Qt.CursorShape.ArrowCursor))

    # ---- geometry ----

    def resizeEvent(self, event):
        super().resizeEvent(event)
        size = self.viewport().size()
        self.setSceneRect(QRectF(0, 0, size.width(), size.height()))
        self.controller.session.viewport.set_viewport_size(size.width(), size.height())

    # ---- pointer input ----

    def mousePressEvent(self, event):
        button = _BUTTONS.get(event.button())
        if button is None:
            super().mousePressEvent(event)
            return
        target = self.hit_target(event.position())
        if target.is_background or target.part != BlockPart.CONTENT:
            self.scene().clear_text_focus()
        if self.controller.pointer_down(_point(event.position()), button, target):
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        if self.controller.gesture != Gesture.IDLE:
            self.controller.pointer_move(_point(event.position()))
            event.accept()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):
        if self.controller.gesture != Gesture.IDLE:
            self.controller.pointer_up(_point(event.position()))
            event.accept()
            return
        super().mouseReleaseEvent(event)

    def mouseDoubleClickEvent(self, event):
        target = self.hit_target(event.position())
        if target.part == BlockPart.TITLE and self.on_rename_cb:
            self.on_rename_cb(target.object_id)
            event.accept()
            return
        super().mouseDoubleClickEvent(event)

    def wheelEvent(self, event):
        """Zoom around the pointer, one step per wheel notch."""
        steps = event.angleDelta().y() / 120.0
        if steps:
            self.controller.wheel(_point(event.position()), steps)
        event.accept()

    def focusOutEvent(self, event):
        # The release will never reach us now
        if self.controller.gesture != Gesture.IDLE:
            self.controller.pointer_lost()
        super().focusOutEvent(event)

    def keyPressEvent(self, event):
        """Escape aborts gestures and connect mode."""
        if event.key() == Qt.Key.Key_Escape:
            self.scene().clear_text_focus()
            self.controller.escape()
            event.accept()
            return
        super().keyPressEvent(event)

    # ---- file drops ----

    def _image_paths(self, event):
        if not event.mimeData().hasUrls():
            return []
        paths = []
        for u in event.mimeData().urls():
            path = u.toLocalFile()
            if path and is_image_file(path):
                paths.append(path)
        return paths

    def dragEnterEvent(self, event):
        """Accept drags carrying at least one image file."""
        if self._image_paths(event):
            event.acceptProposedAction()
            return
        event.ignore()

    def dragMoveEvent(self, event):
        event.acceptProposedAction()

    def dropEvent(self, event):
        paths = self._image_paths(event)
        if not paths:
            event.ignore()
            return
        at = _point(event.position())
        for path in paths:
            self.on_drop_file_cb(path, at)
        event.acceptProposedAction()
