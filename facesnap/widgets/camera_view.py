# ===== FILE: facesnap/widgets/camera_view.py =====
from __future__ import annotations
from typing import Optional

import cv2
import numpy as np
from PySide6 import QtCore, QtGui, QtWidgets


def frame_to_qimage(frame: np.ndarray) -> QtGui.QImage:
    rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
    h, w = rgb.shape[:2]
    # copy: QImage does not own the numpy buffer
    return QtGui.QImage(rgb.data, w, h, 3 * w, QtGui.QImage.Format_RGB888).copy()


class CameraView(QtWidgets.QWidget):
    """Live preview polled from a CameraCapture, with a Take Photo button."""

    takePhotoRequested = QtCore.Signal()

    def __init__(self, interval_ms: int = 33, parent=None):
        super().__init__(parent)
        self.camera = None
        self.timer = QtCore.QTimer(self)
        self.timer.setInterval(interval_ms)
        self.timer.timeout.connect(self._tick)

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self.preview = QtWidgets.QLabel("Starting camera…")
        self.preview.setAlignment(QtCore.Qt.AlignCenter)
        self.preview.setMinimumSize(320, 240)
        self.preview.setSizePolicy(QtWidgets.QSizePolicy.Expanding,
                                   QtWidgets.QSizePolicy.Expanding)
        self.preview.setStyleSheet("background:#000; color:#aaa;")

        self.take_btn = QtWidgets.QPushButton("Take Photo")
        self.take_btn.setStyleSheet(
            "background:#f08; color:white; font-size:18px; padding:10px; border-radius:5px;")
        self.take_btn.clicked.connect(self.takePhotoRequested)

        bar = QtWidgets.QHBoxLayout()
        bar.setContentsMargins(20, 20, 20, 20)
        bar.addWidget(self.take_btn)
        bar.addStretch(1)

        layout.addWidget(self.preview, 1)
        layout.addLayout(bar)

    def start(self, camera) -> None:
        if self.timer.isActive() and camera is self.camera:
            return
        self.camera = camera
        if not camera.open():
            self.preview.setText("Camera unavailable")
            self.take_btn.setEnabled(False)
            return
        self.take_btn.setEnabled(True)
        self.timer.start()

    def stop(self) -> None:
        self.timer.stop()

    def set_busy(self, busy: bool) -> None:
        self.take_btn.setEnabled(not busy and self.camera is not None and self.camera.is_open())

    def _tick(self) -> None:
        if self.camera is None:
            return
        frame: Optional[np.ndarray] = self.camera.read_frame()
        if frame is None:
            return
        pm = QtGui.QPixmap.fromImage(frame_to_qimage(frame))
        self.preview.setPixmap(pm.scaled(self.preview.size(), QtCore.Qt.KeepAspectRatio,
                                         QtCore.Qt.SmoothTransformation))
