"""
main.py

CyberWeaver - spatial workspace for notes, images and connections

PyQt6 application with:
- Infinite pan/zoom canvas of text and image blocks
- Two-click connections drawn between block borders
- Freehand drawing layer with undo
- Themes and automatic persistence

Usage:
    python main.py

Dependencies:
    pip install PyQt6 pillow numpy jsonschema platformdirs tomli_w

Environment:
    CYBERWEAVER_TRACE=1 (optional verbose tracing to stderr)
"""

from __future__ import annotations

import logging
import sys
from typing import Dict, List, Optional, Tuple

from PyQt6.QtCore import QThread
from PyQt6.QtGui import QAction, QActionGroup, QKeySequence
from PyQt6.QtWidgets import (
    QApplication,
    QFileDialog,
    QInputDialog,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QToolBar,
)

from canvas.image_worker import ImageLoadWorker
from canvas.items import Palette, palette_for
from canvas.scene import WorkspaceScene
from canvas.view import WorkspaceView
from debug_trace import close_log, trace, trace_exception
from engine.codec import PersistenceCodec
from engine.controller import InteractionController
from engine.session import WorkspaceSession
from engine.storage import FileStorage
from engine.themes import DRAWING_COLORS, THEMES
from models import Mode, Point
from settings import SettingsManager, get_settings


def stylesheet_for(p: Palette) -> str:
    """Minimal application stylesheet matching a canvas palette."""
    return f"""
QMainWindow, QToolBar, QMenuBar, QMenu, QStatusBar {{
    background-color: {p.header};
    color: {p.text};
}}
QMenu::item:selected, QMenuBar::item:selected {{
    background-color: {p.accent};
}}
QLineEdit {{
    background-color: {p.block};
    color: {p.text};
    border: 1px solid {p.border};
    border-radius: 4px;
    padding: 2px 6px;
}}
"""


class MainWindow(QMainWindow):
    """Main application window."""

    def __init__(self, settings_manager: SettingsManager):
        super().__init__()
        self.settings_manager = settings_manager
        self.setWindowTitle("CyberWeaver")

        storage_settings = settings_manager.settings.storage
        self.storage = FileStorage(settings_manager.get_storage_path(), storage_settings.quota_chars)
        self.codec = PersistenceCodec(self.storage)
        prefs = self.codec.load_preferences()

        self.session = WorkspaceSession(settings_manager.settings, theme=prefs.theme)
        self.controller = InteractionController(self.session, self.codec, confirm_delete=self._confirm_delete)
        self.codec.load_into(self.session)

        self.scene = WorkspaceScene(self.session, self.controller, self)
        self.view = WorkspaceView(self.scene, self.load_image_file, on_rename_cb=self.rename_block)
        self.setCentralWidget(self.view)

        # Pending image loads: worker -> (thread, drop point)
        self._image_jobs: Dict[ImageLoadWorker, Tuple[QThread, Optional[Point]]] = {}

        self._build_menus()
        self._build_toolbar()
        self._apply_theme_stylesheet()

        self.statusBar().showMessage("Drop images or add a text note. Drag the background to pan, wheel to zoom.")
        if not prefs.tutorial_completed:
            self.statusBar().showMessage("Tip: click ↔ on two blocks to connect them. Double-click a title to rename.")
            self.controller.mark_tutorial_completed()

    # ---- menus ----

    def _build_menus(self):
        """Build the application menu bar."""
        menubar = self.menuBar()

        # File menu
        file_menu = menubar.addMenu("&File")

        add_text = QAction("New Text Note", self)
        add_text.setShortcut(QKeySequence.StandardKey.New)
        add_text.triggered.connect(lambda: self.controller.create_text_block())
        file_menu.addAction(add_text)

        add_image = QAction("Add Image...", self)
        add_image.setShortcut(QKeySequence.StandardKey.Open)
        add_image.triggered.connect(self.open_image_dialog)
        file_menu.addAction(add_image)

        file_menu.addSeparator()

        reset_act = QAction("Reset Workspace...", self)
        reset_act.triggered.connect(self.reset_workspace)
        file_menu.addAction(reset_act)

        file_menu.addSeparator()

        exit_act = QAction("E&xit", self)
        exit_act.triggered.connect(self.close)
        file_menu.addAction(exit_act)

        # Draw menu
        draw_menu = menubar.addMenu("&Draw")

        self.draw_act = QAction("Drawing Mode", self)
        self.draw_act.setShortcut("Ctrl+D")
        self.draw_act.setCheckable(True)
        self.draw_act.triggered.connect(self._on_draw_toggled)
        draw_menu.addAction(self.draw_act)

        color_group = QActionGroup(self)
        for color in DRAWING_COLORS:
            act = QAction(f"Pen {color}", self)
            act.setCheckable(True)
            act.setChecked(color == self.controller.draw_color)
            act.triggered.connect(lambda checked, c=color: self.controller.set_draw_color(c))
            color_group.addAction(act)
            draw_menu.addAction(act)

        draw_menu.addSeparator()

        undo_draw = QAction("Undo Drawing", self)
        undo_draw.setShortcut("Ctrl+Alt+Z")
        undo_draw.triggered.connect(lambda: self.controller.undo_drawing())
        draw_menu.addAction(undo_draw)

        clear_draw = QAction("Clear Drawing", self)
        clear_draw.triggered.connect(lambda: self.controller.clear_drawing())
        draw_menu.addAction(clear_draw)

        # View menu
        view_menu = menubar.addMenu("&View")

        zoom_in_act = QAction("Zoom In", self)
        zoom_in_act.setShortcut(QKeySequence.StandardKey.ZoomIn)
        zoom_in_act.triggered.connect(lambda: self.controller.zoom_in())
        view_menu.addAction(zoom_in_act)

        zoom_out_act = QAction("Zoom Out", self)
        zoom_out_act.setShortcut(QKeySequence.StandardKey.ZoomOut)
        zoom_out_act.triggered.connect(lambda: self.controller.zoom_out())
        view_menu.addAction(zoom_out_act)

        view_menu.addSeparator()

        zoom_fit_act = QAction("Zoom to Fit", self)
        zoom_fit_act.setShortcut("Ctrl+Shift+F")
        zoom_fit_act.triggered.connect(lambda: self.controller.zoom_fit())
        view_menu.addAction(zoom_fit_act)

        zoom_reset_act = QAction("Zoom 100%", self)
        zoom_reset_act.setShortcut("Ctrl+0")
        zoom_reset_act.triggered.connect(lambda: self.controller.zoom_reset())
        view_menu.addAction(zoom_reset_act)

        view_menu.addSeparator()

        theme_menu = view_menu.addMenu("Theme")
        theme_group = QActionGroup(self)
        for theme in THEMES:
            act = QAction(theme.capitalize(), self)
            act.setCheckable(True)
            act.setChecked(theme == self.session.theme)
            act.triggered.connect(lambda checked, t=theme: self.set_theme(t))
            theme_group.addAction(act)
            theme_menu.addAction(act)

        self.glow_act = QAction("Highlight Search Matches", self)
        self.glow_act.setCheckable(True)
        self.glow_act.setChecked(self.controller.preferences.search_glow_enabled)
        self.glow_act.triggered.connect(self._on_glow_toggled)
        view_menu.addAction(self.glow_act)

    def _build_toolbar(self):
        """Build the toolbar with quick actions and the search box."""
        tb = QToolBar("Tools")
        self.addToolBar(tb)

        text_act = QAction("Text", self)
        text_act.setToolTip("Add a text note")
        text_act.triggered.connect(lambda: self.controller.create_text_block())
        tb.addAction(text_act)

        image_act = QAction("Image", self)
        image_act.setToolTip("Add an image block")
        image_act.triggered.connect(self.open_image_dialog)
        tb.addAction(image_act)

        tb.addAction(self.draw_act)
        tb.addSeparator()

        self.search_box = QLineEdit(self)
        self.search_box.setPlaceholderText("Search notes...")
        self.search_box.setClearButtonEnabled(True)
        self.search_box.setMaximumWidth(240)
        self.search_box.textChanged.connect(self._on_search_changed)
        tb.addWidget(self.search_box)

    # ---- commands ----

    def _apply_theme_stylesheet(self):
        self.setStyleSheet(stylesheet_for(palette_for(self.session.theme)))

    def set_theme(self, theme: str):
        self.controller.set_theme(theme)
        self._apply_theme_stylesheet()
        self._on_search_changed(self.search_box.text())

    def _on_draw_toggled(self, checked: bool):
        self.controller.set_mode(Mode.DRAW if checked else Mode.SELECT)

    def _on_glow_toggled(self, checked: bool):
        self.controller.set_search_glow(checked)
        self._on_search_changed(self.search_box.text())

    def _on_search_changed(self, text: str):
        hits: List[str] = self.scene.set_search_query(text)
        if text.strip():
            self.statusBar().showMessage(f"{len(hits)} matching note(s)")

    def _confirm_delete(self, object_id: str) -> bool:
        obj = self.session.store.get(object_id)
        title = obj.title if obj is not None else object_id
        res = QMessageBox.question(self, "Delete block", f"Delete '{title}' and its connections?")
        return res == QMessageBox.StandardButton.Yes

    def rename_block(self, object_id: str):
        obj = self.session.store.get(object_id)
        if obj is None:
            return
        title, ok = QInputDialog.getText(self, "Rename", "Title:", text=obj.title)
        if ok:
            self.controller.update_object(object_id, title=title)

    def reset_workspace(self):
        res = QMessageBox.question(self, "Reset workspace",
                                   "Remove every block, connection and drawing?")
        if res == QMessageBox.StandardButton.Yes:
            self.controller.reset_workspace()
            self.statusBar().showMessage("Workspace cleared.")

    # ---- image loading ----

    def open_image_dialog(self):
        path, _ = QFileDialog.getOpenFileName(
            self, "Add Image", "", "Images (*.png *.jpg *.jpeg *.gif *.bmp *.webp)")
        if path:
            self.load_image_file(path, None)

    def load_image_file(self, path: str, at: Optional[Point]):
        """Read an image on a worker thread; the block appears when it completes."""
        trace(f"loading image {path}", "MAIN")
        thread = QThread()
        worker = ImageLoadWorker(path)
        worker.moveToThread(thread)
        self._image_jobs[worker] = (thread, at)

        thread.started.connect(worker.run)
        worker.finished.connect(lambda payload, w=worker: self.on_image_loaded(w, payload))
        worker.failed.connect(lambda err, w=worker: self.on_image_failed(w, err))

        worker.finished.connect(thread.quit)
        worker.failed.connect(thread.quit)
        thread.finished.connect(lambda w=worker: self._image_jobs.pop(w, None))
        thread.finished.connect(thread.deleteLater)

        self.statusBar().showMessage(f"Loading {path} ...")
        thread.start()

    def on_image_loaded(self, worker: ImageLoadWorker, payload: str):
        _thread, at = self._image_jobs.get(worker, (None, None))
        if worker.cancelled:
            return
        self.controller.image_loaded(payload, at)
        self.statusBar().showMessage("Image added.")

    def on_image_failed(self, worker: ImageLoadWorker, error: str):
        if worker.cancelled:
            return
        self.controller.image_failed(error)
        self.statusBar().showMessage("Could not load image.")

    def _cancel_image_jobs(self):
        for worker, (thread, _at) in list(self._image_jobs.items()):
            worker.cancel()
            thread.quit()
            thread.wait(2000)
        self._image_jobs.clear()

    def closeEvent(self, event):
        self._cancel_image_jobs()
        self.controller.pointer_lost()
        self.controller.request_save()
        super().closeEvent(event)


def main():
    """Application entry point."""
    trace("Application starting", "MAIN")
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    app = QApplication(sys.argv)

    # Load settings (use singleton to ensure single instance)
    trace("Loading settings", "MAIN")
    settings_manager = get_settings()

    # Ensure settings file has all sections
    settings_manager.ensure_file_complete()

    # Save settings on application quit
    def save_on_quit():
        trace("Saving settings on quit", "MAIN")
        settings_manager.save()
        close_log()

    app.aboutToQuit.connect(save_on_quit)

    trace("Creating MainWindow", "MAIN")
    w = MainWindow(settings_manager)
    w.resize(1280, 860)
    trace("Showing MainWindow", "MAIN")
    w.show()
    trace("Entering event loop", "MAIN")
    sys.exit(app.exec())


if __name__ == "__main__":
    # Set up global exception handler to catch crashes
    def excepthook(exc_type, exc_value, exc_tb):
        import traceback
        trace("UNCAUGHT EXCEPTION:", "CRASH")
        trace("".join(traceback.format_exception(exc_type, exc_value, exc_tb)), "CRASH")
        close_log()
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = excepthook

    try:
        main()
    except Exception as e:
        trace(f"FATAL: {type(e).__name__}: {e}", "CRASH")
        trace_exception("Fatal exception")
        close_log()
        raise
