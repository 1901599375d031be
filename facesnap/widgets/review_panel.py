from __future__ import annotations
from typing import Iterable, Optional

from PySide6 import QtCore, QtWidgets
from PySide6.QtCore import QPointF, QRectF, QSize, Qt
from PySide6.QtGui import QColor, QImage, QImageReader, QPainter, QPixmap

from ..state import (
    Detection, ResultsView, ScreenState, NO_FACE_TEXT,
    can_detect, format_detection, format_landmark, results_view,
)
from ..utils.images import uri_to_path


# ---------- Rendering ----------

def fit_rect(image_size: QSize, canvas_size: QSize) -> QRectF:
    """Image scaled-to-fit and centred inside the canvas."""
    iw, ih = image_size.width(), image_size.height()
    cw, ch = canvas_size.width(), canvas_size.height()
    if iw <= 0 or ih <= 0 or cw <= 0 or ch <= 0:
        return QRectF(0, 0, cw, ch)
    scale = min(cw / iw, ch / ih)
    dw, dh = iw * scale, ih * scale
    return QRectF((cw - dw) / 2.0, (ch - dh) / 2.0, dw, dh)


def paint_landmarks(p: QPainter, detections: Iterable[Detection], draw_rect: QRectF,
                    image_size: QSize, radius: float = 5, color: str = "red") -> None:
    iw, ih = image_size.width(), image_size.height()
    if iw <= 0 or ih <= 0:
        return
    sx, sy = draw_rect.width() / iw, draw_rect.height() / ih
    p.setPen(Qt.NoPen)
    p.setBrush(QColor(color))
    for d in detections:
        for lm in d.landmarks:
            center = QPointF(draw_rect.x() + lm.x * sx, draw_rect.y() + lm.y * sy)
            p.drawEllipse(center, radius, radius)


def render_overlay(detections: Iterable[Detection], canvas_size: QSize, image_size: QSize,
                   radius: float = 5, color: str = "red") -> QImage:
    overlay = QImage(canvas_size, QImage.Format_ARGB32_Premultiplied)
    overlay.fill(Qt.transparent)
    p = QPainter(overlay)
    p.setRenderHint(QPainter.Antialiasing, True)
    paint_landmarks(p, detections, fit_rect(image_size, canvas_size),
                    image_size, radius, color)
    p.end()
    return overlay


def load_pixmap(uri: str) -> QPixmap:
    reader = QImageReader(uri_to_path(uri))
    reader.setAutoTransform(True)
    img = reader.read()
    if img.isNull():
        return QPixmap()
    return QPixmap.fromImage(img)


class PreviewCanvas(QtWidgets.QWidget):
    """Fixed-size photo preview with the landmark overlay drawn on top."""

    def __init__(self, size: int = 300, radius: float = 5, color: str = "red", parent=None):
        super().__init__(parent)
        self.setFixedSize(QSize(size, size))
        self.radius = radius
        self.color = color
        self._pixmap: Optional[QPixmap] = None
        self._detections: tuple[Detection, ...] = ()
        self._overlay = QImage()

    def set_image(self, pm: Optional[QPixmap]):
        self._pixmap = pm if pm and not pm.isNull() else None
        self._redraw_overlay()

    def set_detections(self, detections: Iterable[Detection]):
        self._detections = tuple(detections)
        self._redraw_overlay()

    def image_size(self) -> QSize:
        return self._pixmap.size() if self._pixmap else QSize(0, 0)

    def overlay(self) -> QImage:
        return self._overlay

    def _redraw_overlay(self):
        self._overlay = render_overlay(self._detections, self.size(), self.image_size(),
                                       self.radius, self.color)
        self.update()

    def paintEvent(self, e):
        p = QPainter(self)
        p.fillRect(self.rect(), QColor("#eee"))
        if not self._pixmap:
            p.setPen(QColor("#999"))
            p.drawText(self.rect(), Qt.AlignCenter, "No photo")
            return
        p.setRenderHint(QPainter.SmoothPixmapTransform, True)
        src = QRectF(0, 0, self._pixmap.width(), self._pixmap.height())
        p.drawPixmap(fit_rect(self.image_size(), self.size()), self._pixmap, src)
        p.drawImage(0, 0, self._overlay)


# ---------- Review panel ----------

class ReviewPanel(QtWidgets.QWidget):
    detectRequested = QtCore.Signal()
    resetRequested = QtCore.Signal()

    def __init__(self, canvas_size: int = 300, radius: float = 5, color: str = "red", parent=None):
        super().__init__(parent)
        self._uri: Optional[str] = None

        layout = QtWidgets.QVBoxLayout(self)
        layout.setAlignment(Qt.AlignHCenter | Qt.AlignTop)

        self.canvas = PreviewCanvas(canvas_size, radius, color)
        layout.addWidget(self.canvas, 0, Qt.AlignHCenter)

        action_style = "background:#2196F3; color:white; font-size:18px; padding:10px; border-radius:5px;"
        self.detect_btn = QtWidgets.QPushButton("Detect Faces")
        self.reset_btn = QtWidgets.QPushButton("Capture Another Photo")
        for b in (self.detect_btn, self.reset_btn):
            b.setStyleSheet(action_style)
        self.detect_btn.clicked.connect(self.detectRequested)
        self.reset_btn.clicked.connect(self.resetRequested)
        bar = QtWidgets.QHBoxLayout()
        bar.addWidget(self.detect_btn)
        bar.addWidget(self.reset_btn)
        layout.addLayout(bar)

        # indeterminate progress bar as activity indicator
        self.busy = QtWidgets.QProgressBar()
        self.busy.setRange(0, 0)
        self.busy.setTextVisible(False)
        layout.addWidget(self.busy)

        self.hint = QtWidgets.QLabel("Press “Detect Faces” to analyse this photo.")
        self.no_face = QtWidgets.QLabel(NO_FACE_TEXT)
        self.no_face.setStyleSheet("color:red; font-size:16px; margin-top:20px;")
        self.results = QtWidgets.QLabel()
        self.results.setTextInteractionFlags(Qt.TextSelectableByMouse)
        self.results.setStyleSheet(
            "background:#f0f0f0; border-radius:10px; padding:10px; margin-top:20px;")
        for w in (self.hint, self.no_face, self.results):
            w.setWordWrap(True)
            layout.addWidget(w)
        layout.addStretch(1)

    def show_state(self, state: ScreenState) -> None:
        if state.image_uri != self._uri:
            self._uri = state.image_uri
            self.canvas.set_image(load_pixmap(self._uri) if self._uri else None)
        self.canvas.set_detections(state.detections)

        self.detect_btn.setEnabled(can_detect(state))
        view = results_view(state)
        self.busy.setHidden(view is not ResultsView.LOADING)
        self.hint.setHidden(view is not ResultsView.PROMPT)
        self.no_face.setHidden(view is not ResultsView.NO_FACE)
        self.results.setHidden(view is not ResultsView.DETECTIONS)
        self.results.setText(self.results_text(state) if view is ResultsView.DETECTIONS else "")

    @staticmethod
    def results_text(state: ScreenState) -> str:
        lines = ["Detected Face:"]
        for d in state.detections:
            lines.append(format_detection(d))
            lines.append("Landmarks:")
            lines.extend(f"    {format_landmark(lm)}" for lm in d.landmarks)
        return "\n".join(lines)
