"""
canvas/items.py

Graphics items that render a workspace session: the pan/zoom transformer,
block items, the connection layer and the drawing layer.

All items except the transformer live in logical workspace units; the
transformer carries the viewport matrix, so scene coordinates equal view
pixels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from PyQt6.QtCore import Qt, QPointF, QRectF, QLineF
from PyQt6.QtGui import (
    QBrush,
    QColor,
    QFont,
    QFontMetricsF,
    QImage,
    QPainter,
    QPen,
    QPixmap,
    QTransform,
)
from PyQt6.QtWidgets import (
    QGraphicsDropShadowEffect,
    QGraphicsItem,
    QGraphicsPixmapItem,
    QGraphicsTextItem,
)

from debug_trace import trace
from engine.raster import RasterLayer
from engine.themes import NEON_COLORS, Theme, line_style_for
from models import BlockKind, BlockPart, SpatialObject
from settings import BlockSettings
from utils import decode_data_uri

# Z values inside the transformer
Z_CONNECTIONS = -10.0
Z_BLOCKS = 0.0
Z_RASTER = 1000.0

TEXT_PADDING = 6.0


# =============================================================================
# Theme palettes
# =============================================================================

@dataclass(frozen=True)
class Palette:
    """Block and background colors for one theme."""
    background: str
    block: str
    header: str
    text: str
    border: str
    accent: str


THEME_PALETTES: Dict[str, Palette] = {
    Theme.LIGHT: Palette("#f5f5f5", "#ffffff", "#e8e8e8", "#222222", "#cccccc", "#3498db"),
    Theme.DARK: Palette("#1e1e1e", "#2d2d2d", "#3a3a3a", "#eeeeee", "#555555", "#5dade2"),
    Theme.DETECTIVE: Palette("#6b4f3a", "#fdf6e3", "#f4e4bc", "#333333", "#c9b38a", "#c0392b"),
    Theme.CYBERPUNK: Palette("#0a0a12", "#12121f", "#1b1b2f", "#e0e0ff", "#00ffff", "#ff00ff"),
    Theme.WORLDBUILDING: Palette("#e8dcc4", "#fbf4e6", "#d9c7a0", "#3b2f1e", "#a68a5b", "#2e7d32"),
}


def palette_for(theme: str) -> Palette:
    return THEME_PALETTES.get(theme, THEME_PALETTES[Theme.LIGHT])


# =============================================================================
# Transformer
# =============================================================================

class TransformerItem(QGraphicsItem):
    """Invisible parent whose transform is the viewport's pan/zoom matrix."""

    def __init__(self):
        super().__init__()
        self.setFlag(QGraphicsItem.GraphicsItemFlag.ItemHasNoContents, True)

    def set_matrix(self, m: Tuple[float, float, float, float, float, float]):
        self.setTransform(QTransform(m[0], m[1], m[2], m[3], m[4], m[5]))

    def boundingRect(self) -> QRectF:
        return QRectF()

    def paint(self, painter: QPainter, option, widget=None):
        pass


# =============================================================================
# Blocks
# =============================================================================

class BlockItem(QGraphicsItem):
    """
    Renders one SpatialObject: header with title and buttons, content
    (editable text or an image) and a footer with the resize handle.

    The item does not handle pointer input itself; the view asks
    ``part_at`` which region was hit and forwards it to the controller.
    Only the text editor child takes mouse and keyboard input directly.
    """

    def __init__(self, obj: SpatialObject, blocks: BlockSettings, theme: str,
                 on_payload_edited: Optional[Callable[[str, str], None]] = None):
        super().__init__()
        self.object_id = obj.id
        self.kind = obj.kind
        self.blocks = blocks
        self._palette = palette_for(theme)
        self._theme = theme
        self._width = obj.size.width
        self._height = obj.size.height
        self._title = obj.title
        self._accent: Optional[str] = None
        self._highlighted = False
        self._search_hit = False
        self._syncing = False
        self._pixmap: Optional[QPixmap] = None
        self._pixmap_payload: Optional[str] = None
        self._text_payload: Optional[str] = None
        self._rich_text = obj.is_rich_text
        self._on_payload_edited = on_payload_edited

        self.setAcceptedMouseButtons(Qt.MouseButton.NoButton)
        self.setZValue(Z_BLOCKS)

        self._text: Optional[QGraphicsTextItem] = None
        if self.kind == BlockKind.TEXT:
            self._text = QGraphicsTextItem(self)
            self._text.setTextInteractionFlags(Qt.TextInteractionFlag.TextEditorInteraction)
            self._text.document().contentsChanged.connect(self._text_changed)

        self.sync_from(obj)

    # ---- geometry ----

    def _header_rect(self) -> QRectF:
        return QRectF(0, 0, self._width, self.blocks.header_height)

    def _button_rect(self, index: int) -> QRectF:
        """Header button ``index`` counted from the right edge (0 = delete)."""
        s = self.blocks.header_height
        return QRectF(self._width - s * (index + 1), 0, s, s)

    def _footer_rect(self) -> QRectF:
        s = self.blocks.handle_size
        return QRectF(0, self._height - s, self._width, s)

    def _handle_rect(self) -> QRectF:
        s = self.blocks.handle_size
        return QRectF(self._width - s, self._height - s, s, s)

    def _content_rect(self) -> QRectF:
        top = self.blocks.header_height + TEXT_PADDING
        bottom = self._height - self.blocks.handle_size
        return QRectF(TEXT_PADDING, top, max(0.0, self._width - 2 * TEXT_PADDING), max(0.0, bottom - top))

    def _title_rect(self) -> QRectF:
        fm = QFontMetricsF(self._title_font())
        avail = max(0.0, self._width - 2 * self.blocks.header_height - TEXT_PADDING)
        w = min(fm.horizontalAdvance(self._title) + 2, avail)
        return QRectF(TEXT_PADDING, 0, w, self.blocks.header_height)

    def _swatch_rects(self) -> List[Tuple[str, QRectF]]:
        """Accent color swatches along the footer; cyberpunk theme only."""
        if self._theme != Theme.CYBERPUNK:
            return []
        s = self.blocks.handle_size
        side = max(4.0, s - 4)
        top = self._height - s + (s - side) / 2
        rects = []
        for i, color in enumerate(NEON_COLORS):
            r = QRectF(TEXT_PADDING + i * (side + 4), top, side, side)
            if r.right() > self._width - s:
                break
            rects.append((color, r))
        return rects

    def swatch_at(self, local: QPointF) -> Optional[str]:
        """Accent color of the footer swatch under ``local``, if any."""
        for color, r in self._swatch_rects():
            if r.contains(local):
                return color
        return None

    def _title_font(self) -> QFont:
        f = QFont()
        f.setBold(True)
        f.setPointSizeF(10)
        return f

    def part_at(self, local: QPointF) -> Optional[BlockPart]:
        """Which region of the block contains ``local`` (item coordinates)."""
        if not QRectF(0, 0, self._width, self._height).contains(local):
            return None
        if self._button_rect(0).contains(local):
            return BlockPart.DELETE_BUTTON
        if self._button_rect(1).contains(local):
            return BlockPart.CONNECT_BUTTON
        if self._handle_rect().contains(local):
            return BlockPart.RESIZE_HANDLE
        if self.swatch_at(local) is not None:
            return BlockPart.COLOR_SWATCH
        if self._title_rect().contains(local):
            return BlockPart.TITLE
        if self._header_rect().contains(local):
            return BlockPart.HEADER
        if self._footer_rect().contains(local):
            return BlockPart.FOOTER
        if self._content_rect().contains(local):
            return BlockPart.CONTENT
        return BlockPart.BODY

    # ---- state ----

    def sync_from(self, obj: SpatialObject):
        """Copy geometry, title, payload and style hints from the model."""
        if obj.size.width != self._width or obj.size.height != self._height:
            self.prepareGeometryChange()
            self._width = obj.size.width
            self._height = obj.size.height
        self.setPos(obj.position.x, obj.position.y)
        self._title = obj.title
        self._rich_text = obj.is_rich_text

        self.setTransformOriginPoint(self._width / 2, self._height / 2)
        self.setRotation(obj.style.rotation or 0.0)
        self._accent = obj.style.color

        if self._text is not None:
            cr = self._content_rect()
            self._text.setPos(cr.topLeft())
            self._text.setTextWidth(cr.width())
            self._text.setDefaultTextColor(QColor(self._palette.text))
            # Never overwrite what the user is typing
            if not self._text.hasFocus() and obj.payload != self._text_payload:
                self._text_payload = obj.payload
                self._syncing = True
                try:
                    if self._rich_text:
                        self._text.setHtml(obj.payload)
                    else:
                        self._text.setPlainText(obj.payload)
                finally:
                    self._syncing = False
        elif obj.payload != self._pixmap_payload:
            self._pixmap_payload = obj.payload
            self._pixmap = self._load_pixmap(obj.payload)
        self.update()

    def _load_pixmap(self, payload: str) -> Optional[QPixmap]:
        try:
            _mime, data = decode_data_uri(payload)
        except ValueError:
            trace(f"image payload for {self.object_id} is not a data URI", "CANVAS")
            return None
        pm = QPixmap()
        if not pm.loadFromData(data):
            return None
        return pm

    def _text_changed(self):
        if self._syncing or self._on_payload_edited is None:
            return
        doc = self._text.document()
        self._text_payload = doc.toHtml() if self._rich_text else doc.toPlainText()
        self._on_payload_edited(self.object_id, self._text_payload)

    def set_theme(self, theme: str):
        self._theme = theme
        self._palette = palette_for(theme)
        if self._text is not None:
            self._text.setDefaultTextColor(QColor(self._palette.text))
        self.update()

    def set_highlighted(self, on: bool):
        if on != self._highlighted:
            self._highlighted = on
            self.update()

    def set_search_hit(self, on: bool):
        if on != self._search_hit:
            self._search_hit = on
            self.update()

    def clear_text_focus(self):
        if self._text is not None and self._text.hasFocus():
            self._text.clearFocus()

    # ---- painting ----

    def boundingRect(self) -> QRectF:
        m = 4.0
        return QRectF(-m, -m, self._width + 2 * m, self._height + 2 * m)

    def _border_color(self) -> QColor:
        if self._highlighted:
            return QColor(self._palette.accent)
        if self._theme == Theme.CYBERPUNK and self._accent:
            return QColor(self._accent)
        return QColor(self._palette.border)

    def paint(self, painter: QPainter, option, widget=None):
        p = self._palette
        rect = QRectF(0, 0, self._width, self._height)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)

        if self._search_hit:
            glow = QColor(p.accent)
            glow.setAlpha(110)
            painter.setPen(QPen(glow, 6))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRoundedRect(rect, 4, 4)

        painter.setPen(QPen(self._border_color(), 3 if self._highlighted else 1))
        painter.setBrush(QBrush(QColor(p.block)))
        painter.drawRoundedRect(rect, 4, 4)

        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(QColor(p.header)))
        painter.drawRect(self._header_rect().adjusted(1, 1, -1, 0))

        painter.setPen(QColor(p.text))
        painter.setFont(self._title_font())
        fm = QFontMetricsF(self._title_font())
        title_rect = self._title_rect()
        elided = fm.elidedText(self._title, Qt.TextElideMode.ElideRight, title_rect.width())
        painter.drawText(title_rect, int(Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignLeft), elided)

        painter.drawText(self._button_rect(1), int(Qt.AlignmentFlag.AlignCenter), "↔")
        painter.drawText(self._button_rect(0), int(Qt.AlignmentFlag.AlignCenter), "×")

        if self.kind == BlockKind.IMAGE:
            cr = self._content_rect()
            if self._pixmap is not None and not self._pixmap.isNull():
                scaled = self._pixmap.size().scaled(int(cr.width()), int(cr.height()),
                                                    Qt.AspectRatioMode.KeepAspectRatio)
                target = QRectF(0, 0, scaled.width(), scaled.height())
                target.moveCenter(cr.center())
                painter.drawPixmap(target, self._pixmap, QRectF(self._pixmap.rect()))
            else:
                painter.drawText(cr, int(Qt.AlignmentFlag.AlignCenter), "(image unavailable)")

        for color, r in self._swatch_rects():
            painter.setPen(QPen(QColor(p.border), 1))
            painter.setBrush(QBrush(QColor(color)))
            painter.drawRect(r)

        hr = self._handle_rect()
        painter.setPen(QPen(QColor(p.border), 1))
        for i in (1, 2, 3):
            off = hr.width() * i / 4
            painter.drawLine(QLineF(hr.right() - off, hr.bottom() - 1, hr.right() - 1, hr.bottom() - off))


# =============================================================================
# Connections
# =============================================================================

class ConnectionLayer(QGraphicsItem):
    """Paints every connection as a border-clipped line in the theme's style."""

    def __init__(self, segments: Callable[[], List[Tuple[object, object, object]]]):
        super().__init__()
        self._segments_fn = segments
        self._lines: List[QLineF] = []
        self._bounds = QRectF()
        self._theme = Theme.LIGHT
        self.setZValue(Z_CONNECTIONS)
        self.setAcceptedMouseButtons(Qt.MouseButton.NoButton)

    def set_theme(self, theme: str):
        self._theme = theme
        style = line_style_for(theme)
        if style.glow_color:
            effect = QGraphicsDropShadowEffect()
            effect.setColor(QColor(style.glow_color))
            effect.setBlurRadius(style.glow_blur)
            effect.setOffset(0, 0)
            self.setGraphicsEffect(effect)
        else:
            self.setGraphicsEffect(None)
        self.update()

    def refresh(self):
        """Recompute line endpoints from the current block geometry."""
        self.prepareGeometryChange()
        self._lines = [QLineF(a.x, a.y, b.x, b.y) for _edge, a, b in self._segments_fn()]
        bounds = QRectF()
        for line in self._lines:
            bounds = bounds.united(QRectF(line.p1(), line.p2()).normalized())
        m = line_style_for(self._theme).width + 2
        self._bounds = bounds.adjusted(-m, -m, m, m) if self._lines else QRectF()
        self.update()

    def line_count(self) -> int:
        return len(self._lines)

    def boundingRect(self) -> QRectF:
        return self._bounds

    def paint(self, painter: QPainter, option, widget=None):
        if not self._lines:
            return
        style = line_style_for(self._theme)
        pen = QPen(QColor(style.color), style.width)
        pen.setCapStyle(Qt.PenCapStyle.RoundCap)
        if style.dash:
            # Qt dash patterns are in units of the pen width
            pen.setDashPattern([d / style.width for d in style.dash])
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        painter.setPen(pen)
        for line in self._lines:
            painter.drawLine(line)


# =============================================================================
# Drawing layer
# =============================================================================

class RasterItem(QGraphicsPixmapItem):
    """Shows the session's RasterLayer at the logical origin."""

    def __init__(self, raster: RasterLayer):
        super().__init__()
        self.raster = raster
        self._revision = -1
        self.setZValue(Z_RASTER)
        self.setAcceptedMouseButtons(Qt.MouseButton.NoButton)
        self.setTransformationMode(Qt.TransformationMode.SmoothTransformation)
        self.refresh()

    def refresh(self):
        if self.raster.revision == self._revision:
            return
        self._revision = self.raster.revision
        img = self.raster.image
        data = img.tobytes("raw", "RGBA")
        qimg = QImage(data, img.width, img.height, 4 * img.width, QImage.Format.Format_RGBA8888).copy()
        self.setPixmap(QPixmap.fromImage(qimg))
