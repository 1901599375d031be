# facesnap/ui.py
from __future__ import annotations

from PySide6.QtCore import Qt, QThread, Signal, Slot
from PySide6.QtWidgets import (
    QMainWindow,
    QWidget,
    QVBoxLayout,
    QHBoxLayout,
    QPushButton,
    QLabel,
    QTabWidget,
    QStackedWidget,
    QPlainTextEdit,
)

from .utils.logger import app_logger
from .state import (
    AppSettings, ScreenState, ScreenView, DENIED_TEXT,
    PermissionResolved, ModelLoaded, PhotoCaptured, ResetRequested,
    DetectStarted, DetectSucceeded, DetectFailed,
    can_detect, screen_view, transition,
)
from .pipelines.face import InferenceRuntime, detect_faces
from .services.camera import CameraCapture, PermissionService
from .widgets.camera_view import CameraView
from .widgets.review_panel import ReviewPanel


class LifetimeScope:
    """Cancellation token tied to the window: closed results are dropped."""

    def __init__(self):
        self._alive = True

    @property
    def alive(self) -> bool:
        return self._alive

    def close(self) -> None:
        self._alive = False


# ----------------- Workers -----------------

class ModelLoadThread(QThread):
    runtimeReady = Signal()
    loaded = Signal(object)
    failed = Signal(str, object)

    def __init__(self, runtime: InferenceRuntime):
        super().__init__()
        self.runtime = runtime

    def run(self):
        try:
            self.runtime.ready()
            self.runtimeReady.emit()
            model = self.runtime.load_model()
        except Exception as e:
            self.failed.emit(f"Model load failed: {e}", e)
            return
        self.loaded.emit(model)


class CaptureThread(QThread):
    captured = Signal(str)
    failed = Signal(str, object)

    def __init__(self, camera):
        super().__init__()
        self.camera = camera

    def run(self):
        try:
            photo = self.camera.capture()
        except Exception as e:
            self.failed.emit(f"Capture failed: {e}", e)
            return
        self.captured.emit(photo["uri"])


class DetectThread(QThread):
    done = Signal(str, object)
    failed = Signal(str, str, object)

    def __init__(self, uri: str, model, runtime: InferenceRuntime):
        super().__init__()
        self.uri = uri
        self.model = model
        self.runtime = runtime

    def run(self):
        try:
            detections = detect_faces(self.uri, self.model, self.runtime)
        except Exception as e:
            self.failed.emit(self.uri, str(e), e)
            return
        self.done.emit(self.uri, detections)


# ----------------- Window -----------------

class FaceSnapWindow(QMainWindow):
    def __init__(self, settings: AppSettings | None = None,
                 permission=None, camera=None, runtime=None):
        super().__init__()
        self.setWindowTitle("FaceSnap")
        self.resize(900, 760)

        self.settings = settings or AppSettings.from_env()
        self.permission = permission or PermissionService(self)
        self.camera = camera or CameraCapture(
            self.settings.camera_index, self.settings.photo_dir)
        self.runtime = runtime or InferenceRuntime(self.settings)

        self.state = ScreenState()
        self.model = None  # shared read-only once loaded
        self.scope = LifetimeScope()
        self._workers: set[QThread] = set()
        self._capturing = False
        self._started = False

        self.tabs = QTabWidget()
        self.setCentralWidget(self.tabs)
        self._build_camera_tab()
        self._build_logs_tab()

        self.permission.resolved.connect(self._on_permission)
        self._render()

    # ----------------- Camera Tab -----------------
    def _build_camera_tab(self):
        self.stack = QStackedWidget()

        self.blank_page = QWidget()
        self.denied_page = QLabel(DENIED_TEXT)
        self.denied_page.setAlignment(Qt.AlignCenter)
        self.camera_view = CameraView(self.settings.frame_interval_ms)
        self.review = ReviewPanel(self.settings.canvas_size,
                                  self.settings.marker_radius,
                                  self.settings.marker_color)

        self._pages = {
            ScreenView.BLANK: self.blank_page,
            ScreenView.DENIED: self.denied_page,
            ScreenView.CAMERA: self.camera_view,
            ScreenView.REVIEW: self.review,
        }
        for page in self._pages.values():
            self.stack.addWidget(page)

        self.camera_view.takePhotoRequested.connect(self.take_picture)
        self.review.detectRequested.connect(self.detect_faces)
        self.review.resetRequested.connect(self.reset)

        self.tabs.addTab(self.stack, "Camera")

    # ----------------- Lifecycle -----------------
    def showEvent(self, e):
        super().showEvent(e)
        self.start()

    def closeEvent(self, e):
        self.shutdown()
        super().closeEvent(e)

    def start(self):
        """Runs once: ask for the camera and load the model, independently."""
        if self._started:
            return
        self._started = True
        self._log("Requesting camera permission…")
        self.permission.request()

        loader = ModelLoadThread(self.runtime)
        loader.runtimeReady.connect(self._on_runtime_ready)
        loader.loaded.connect(self._on_model_loaded)
        loader.failed.connect(self._on_worker_failed)
        self._spawn(loader)

    def shutdown(self):
        if not self.scope.alive:
            return
        self.scope.close()
        self.camera_view.stop()
        self.camera.release()

    def wait_for_workers(self, msecs: int = -1) -> bool:
        ok = True
        for w in list(self._workers):
            ok = (w.wait() if msecs < 0 else w.wait(msecs)) and ok
        self._prune_workers()
        return ok

    def _spawn(self, worker: QThread):
        self._prune_workers()
        self._workers.add(worker)
        worker.start()

    def _prune_workers(self):
        self._workers = {w for w in self._workers if not w.isFinished()}

    def dispatch(self, event):
        self.state = transition(self.state, event)
        self._render()

    # ----------------- Operations -----------------
    def take_picture(self):
        if screen_view(self.state) is not ScreenView.CAMERA or self._capturing:
            return
        self._capturing = True
        self.camera_view.set_busy(True)
        worker = CaptureThread(self.camera)
        worker.captured.connect(self._on_captured)
        worker.failed.connect(self._on_capture_failed)
        self._spawn(worker)

    def reset(self):
        self.dispatch(ResetRequested())

    def detect_faces(self):
        # ignore while this image is loading
        if not can_detect(self.state) or self.model is None:
            return
        self.dispatch(DetectStarted())
        worker = DetectThread(self.state.image_uri, self.model, self.runtime)
        worker.done.connect(self._on_detect_done)
        worker.failed.connect(self._on_detect_failed)
        self._spawn(worker)

    # ----------------- Slots -----------------
    @Slot(bool)
    def _on_permission(self, granted: bool):
        if not self.scope.alive:
            return
        self._log(f"Camera permission {'granted' if granted else 'denied'}.")
        self.dispatch(PermissionResolved(granted))

    @Slot()
    def _on_runtime_ready(self):
        if self.scope.alive:
            self._log(f"Inference runtime ready ({', '.join(self.runtime.providers)}).")

    @Slot(object)
    def _on_model_loaded(self, model):
        if not self.scope.alive:
            return
        self.model = model
        self._log("Face detection model loaded.")
        self.dispatch(ModelLoaded())

    @Slot(str, object)
    def _on_worker_failed(self, msg: str, exc):
        if self.scope.alive:
            app_logger.error(msg, exc)

    @Slot(str)
    def _on_captured(self, uri: str):
        self._capturing = False
        if not self.scope.alive:
            return
        self._log(f"Photo saved: {uri}")
        self.dispatch(PhotoCaptured(uri))

    @Slot(str, object)
    def _on_capture_failed(self, msg: str, exc):
        self._capturing = False
        if not self.scope.alive:
            return
        app_logger.error(msg, exc)
        self._render()

    @Slot(str, object)
    def _on_detect_done(self, uri: str, detections):
        if not self.scope.alive:
            return
        self._log(f"Detection finished: {len(detections)} face(s).")
        self.dispatch(DetectSucceeded(uri, tuple(detections)))

    @Slot(str, str, object)
    def _on_detect_failed(self, uri: str, msg: str, exc):
        if not self.scope.alive:
            return
        app_logger.error(f"Detection Error: {msg}", exc)
        self.dispatch(DetectFailed(uri, msg))

    # ----------------- Rendering -----------------
    def _render(self):
        view = screen_view(self.state)
        self.stack.setCurrentWidget(self._pages[view])
        if view is ScreenView.CAMERA and self.scope.alive:
            self.camera_view.start(self.camera)
            self.camera_view.set_busy(self._capturing)
        else:
            self.camera_view.stop()
        self.review.show_state(self.state)

    # ----------------- Logs -----------------
    def _build_logs_tab(self):
        w = QWidget()
        v = QVBoxLayout(w)

        self.log_view = QPlainTextEdit()
        self.log_view.setReadOnly(True)
        self.log_view.setMaximumBlockCount(5000)

        bar = QHBoxLayout()
        btn_clear = QPushButton("Clear")
        btn_copy = QPushButton("Copy All")
        btn_clear.clicked.connect(self.log_view.clear)
        btn_copy.clicked.connect(self._copy_logs_to_clipboard)
        bar.addWidget(btn_clear)
        bar.addWidget(btn_copy)
        bar.addStretch(1)

        v.addWidget(QLabel("Application Logs"))
        v.addLayout(bar)
        v.addWidget(self.log_view)

        app_logger.message.connect(self._append_log)

        self.tabs.addTab(w, "Logs")

    def _append_log(self, line: str):
        self.log_view.appendPlainText(line)
        self.statusBar().showMessage(line.splitlines()[0] if line else line, 5000)

    def _copy_logs_to_clipboard(self):
        self.log_view.selectAll()
        self.log_view.copy()
        cursor = self.log_view.textCursor()
        cursor.clearSelection()
        self.log_view.setTextCursor(cursor)

    def _log(self, msg: str):
        app_logger.log(msg)
