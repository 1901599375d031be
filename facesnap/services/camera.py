# ===== FILE: facesnap/services/camera.py =====
from __future__ import annotations
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import cv2
import numpy as np
from PySide6 import QtCore

from ..utils.images import write_jpeg


class PermissionService(QtCore.QObject):
    """Asks the OS for camera access through Qt's permission API."""

    resolved = QtCore.Signal(bool)

    def request(self) -> None:
        app = QtCore.QCoreApplication.instance()
        status = app.checkPermission(QtCore.QCameraPermission())
        if status == QtCore.Qt.PermissionStatus.Undetermined:
            # suspends until the user answers the OS dialog
            app.requestPermission(QtCore.QCameraPermission(), self, self._on_answered)
            return
        self.resolved.emit(status == QtCore.Qt.PermissionStatus.Granted)

    def _on_answered(self, permission) -> None:
        status = permission.status()
        self.resolved.emit(status == QtCore.Qt.PermissionStatus.Granted)


class CameraCapture:
    """
    OpenCV camera. The preview polls read_frame() from the UI thread;
    capture() may run on a worker thread and reuses the latest preview frame.
    """

    def __init__(self, index: int, photo_dir: Path):
        self.index = index
        self.photo_dir = Path(photo_dir)
        self._cap: Optional[cv2.VideoCapture] = None
        self._last_frame: Optional[np.ndarray] = None
        self.lock = threading.Lock()

    def open(self) -> bool:
        if self._cap is not None and self._cap.isOpened():
            return True
        self._cap = cv2.VideoCapture(self.index)
        return self._cap.isOpened()

    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def read_frame(self) -> Optional[np.ndarray]:
        if not self.is_open():
            return None
        with self.lock:
            ret, frame = self._cap.read()
            if not ret:
                return None
            self._last_frame = frame
        return frame

    def capture(self) -> Dict[str, str]:
        with self.lock:
            frame = None if self._last_frame is None else self._last_frame.copy()
        if frame is None:
            frame = self.read_frame()
        if frame is None:
            raise RuntimeError(f"camera {self.index} did not produce a frame")
        self.photo_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        out = self.photo_dir / f"photo_{stamp}.jpg"
        write_jpeg(str(out), frame)
        return {"uri": str(out)}

    def release(self) -> None:
        with self.lock:
            if self._cap is not None:
                self._cap.release()
            self._cap = None
            self._last_frame = None
