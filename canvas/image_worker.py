"""
canvas/image_worker.py

Background worker that reads a dropped or chosen image file into a data
URI payload, so large files never block the UI thread.
"""

from __future__ import annotations

import traceback

from PyQt6.QtCore import QObject, pyqtSignal

from engine.errors import InvalidDropError
from engine.images import read_image_payload


class ImageLoadWorker(QObject):
    """
    Reads one image file off the UI thread.

    Signals:
        finished(str): Emitted with the image data URI on success
        failed(str): Emitted with an error message on failure or cancellation
    """

    finished = pyqtSignal(str)
    failed = pyqtSignal(str)

    def __init__(self, path: str):
        super().__init__()
        self.path = path
        self._cancelled = False

    def cancel(self):
        """Drop the result; the thread still finishes and quits normally."""
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def run(self):
        """Read and verify the image file."""
        try:
            payload = read_image_payload(self.path)
        except InvalidDropError as e:
            self.failed.emit(str(e))
            return
        except Exception as e:
            self.failed.emit(f"{e}\n\n{traceback.format_exc()}")
            return
        if self._cancelled:
            self.failed.emit("cancelled")
            return
        self.finished.emit(payload)
