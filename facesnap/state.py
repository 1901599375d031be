from __future__ import annotations
import math
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Tuple

LANDMARK_NAMES = ("left_eye", "right_eye", "nose", "mouth_left", "mouth_right")
DETECTION_LABEL = "Human"
NO_FACE_TEXT = "No Face detected. Please try another image."
DENIED_TEXT = "No access to camera"


@dataclass
class AppSettings:
    camera_index: int = 0
    photo_dir: Path = field(
        default_factory=lambda: Path.home() / "Pictures" / "FaceSnap")
    model_name: str = "buffalo_l"  # insightface model pack, detector only
    det_size: Tuple[int, int] = (640, 640)
    score_threshold: float = 0.75
    max_faces: int = 10
    providers: Tuple[str, ...] = ("CPUExecutionProvider",)
    marker_radius: int = 5
    marker_color: str = "red"
    canvas_size: int = 300
    frame_interval_ms: int = 33

    def __post_init__(self):
        self.photo_dir = Path(self.photo_dir)
        if self.camera_index < 0:
            raise ValueError("camera_index must be >= 0")
        if not 0.0 <= self.score_threshold <= 1.0:
            raise ValueError("score_threshold must be between 0 and 1")
        if self.max_faces < 1:
            raise ValueError("max_faces must be >= 1")
        if self.marker_radius <= 0 or self.canvas_size <= 0:
            raise ValueError("marker_radius and canvas_size must be positive")

    @classmethod
    def from_env(cls, environ=None) -> "AppSettings":
        env = os.environ if environ is None else environ
        kwargs = {}
        if env.get("FACESNAP_CAMERA_INDEX"):
            kwargs["camera_index"] = int(env["FACESNAP_CAMERA_INDEX"])
        if env.get("FACESNAP_PHOTO_DIR"):
            kwargs["photo_dir"] = Path(env["FACESNAP_PHOTO_DIR"]).expanduser()
        if env.get("FACESNAP_MODEL"):
            kwargs["model_name"] = env["FACESNAP_MODEL"]
        if env.get("FACESNAP_SCORE_THRESHOLD"):
            kwargs["score_threshold"] = float(env["FACESNAP_SCORE_THRESHOLD"])
        if env.get("FACESNAP_MAX_FACES"):
            kwargs["max_faces"] = int(env["FACESNAP_MAX_FACES"])
        return cls(**kwargs)


# ---- Screen data ----

class PermissionState(Enum):
    UNKNOWN = "unknown"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass(frozen=True)
class Landmark:
    name: str
    x: float
    y: float


@dataclass(frozen=True)
class Detection:
    label: str
    score: float
    bounding_box: Tuple[float, float, float, float]  # x1, y1, x2, y2
    landmarks: Tuple[Landmark, ...]


@dataclass(frozen=True)
class ScreenState:
    permission: PermissionState = PermissionState.UNKNOWN
    model_ready: bool = False
    image_uri: str | None = None
    detections: Tuple[Detection, ...] = ()
    loading_uri: str | None = None  # image of the run in flight
    has_result: bool = False  # a run completed for the current image

    @property
    def loading(self) -> bool:
        """A run is in flight for the image on screen."""
        return self.loading_uri is not None and self.loading_uri == self.image_uri


# ---- Events ----

@dataclass(frozen=True)
class PermissionResolved:
    granted: bool


@dataclass(frozen=True)
class ModelLoaded:
    pass


@dataclass(frozen=True)
class PhotoCaptured:
    uri: str


@dataclass(frozen=True)
class ResetRequested:
    pass


@dataclass(frozen=True)
class DetectStarted:
    pass


@dataclass(frozen=True)
class DetectSucceeded:
    uri: str
    detections: Tuple[Detection, ...]


@dataclass(frozen=True)
class DetectFailed:
    uri: str
    message: str


def can_detect(state: ScreenState) -> bool:
    return bool(state.image_uri) and state.model_ready and not state.loading


def transition(state: ScreenState, event) -> ScreenState:
    """Return the state that follows `event`. Never mutates `state`."""
    if isinstance(event, PermissionResolved):
        if state.permission is not PermissionState.UNKNOWN:
            return state
        granted = PermissionState.GRANTED if event.granted else PermissionState.DENIED
        return replace(state, permission=granted)

    if isinstance(event, ModelLoaded):
        return replace(state, model_ready=True)

    if isinstance(event, PhotoCaptured):
        if state.permission is not PermissionState.GRANTED:
            return state
        return replace(state, image_uri=event.uri, detections=(), has_result=False)

    if isinstance(event, ResetRequested):
        # an in-flight run keeps `loading_uri` until it resolves
        return replace(state, image_uri=None, detections=(), has_result=False)

    if isinstance(event, DetectStarted):
        if not can_detect(state):
            return state
        return replace(state, loading_uri=state.image_uri)

    if isinstance(event, (DetectSucceeded, DetectFailed)):
        # superseded by a newer run
        if event.uri != state.loading_uri:
            return state
        state = replace(state, loading_uri=None)
        if isinstance(event, DetectFailed) or event.uri != state.image_uri:
            return state
        return replace(state, detections=tuple(event.detections), has_result=True)

    raise TypeError(f"Unknown screen event: {event!r}")


# ---- Derived views ----

class ScreenView(Enum):
    BLANK = "blank"
    DENIED = "denied"
    CAMERA = "camera"
    REVIEW = "review"


class ResultsView(Enum):
    NONE = "none"
    LOADING = "loading"
    PROMPT = "prompt"
    NO_FACE = "no_face"
    DETECTIONS = "detections"


def screen_view(state: ScreenState) -> ScreenView:
    if state.permission is PermissionState.UNKNOWN:
        return ScreenView.BLANK
    if state.permission is PermissionState.DENIED:
        return ScreenView.DENIED
    return ScreenView.REVIEW if state.image_uri else ScreenView.CAMERA


def results_view(state: ScreenState) -> ResultsView:
    if screen_view(state) is not ScreenView.REVIEW:
        return ResultsView.NONE
    if state.loading:
        return ResultsView.LOADING
    if state.detections:
        return ResultsView.DETECTIONS
    return ResultsView.NO_FACE if state.has_result else ResultsView.PROMPT


def percent(score: float) -> int:
    # half rounds up, 0.125 -> 13
    return int(math.floor(score * 100 + 0.5))


def format_detection(d: Detection) -> str:
    return f"{d.label} - {percent(d.score)}%"


def format_landmark(lm: Landmark) -> str:
    return f"{lm.name}: ({lm.x:.1f}, {lm.y:.1f})"
