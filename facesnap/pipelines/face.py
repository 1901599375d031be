# facesnap/pipelines/face.py
from __future__ import annotations
from typing import Any, Dict, List, Sequence

import numpy as np

from ..state import AppSettings, Detection, Landmark, DETECTION_LABEL, LANDMARK_NAMES
from ..utils.images import read_as_base64, decode_base64, decode_image_bgr


class FaceModel:
    """
    Thin wrapper over an insightface FaceAnalysis app restricted to the
    detection module. Each face carries .bbox, .kps (5 points) and .det_score.
    """

    def __init__(self, app, max_faces: int = 10):
        self._app = app
        self.max_faces = max_faces

    def estimate(self, image: np.ndarray, return_tensors: bool = False) -> List[Dict[str, Any]]:
        faces = self._app.get(image, max_num=self.max_faces)
        out = []
        for f in faces:
            bbox = np.asarray(f.bbox, dtype=np.float32)
            kps = np.asarray(f.kps, dtype=np.float32)
            pred = {
                "probability": np.asarray([f.det_score], dtype=np.float32),
                "top_left": bbox[:2],
                "bottom_right": bbox[2:4],
                "landmarks": kps,
            }
            if not return_tensors:
                pred = {k: v.tolist() for k, v in pred.items()}
            out.append(pred)
        return out


class InferenceRuntime:
    """ONNX Runtime backend + image decoding + model loading."""

    def __init__(self, settings: AppSettings):
        self.settings = settings
        self.providers: List[str] = []

    def ready(self) -> None:
        import onnxruntime
        available = set(onnxruntime.get_available_providers())
        self.providers = [p for p in self.settings.providers if p in available]
        if not self.providers:
            raise RuntimeError(
                f"None of the execution providers {list(self.settings.providers)} "
                f"are available (have: {sorted(available)})")

    def decode_image(self, raw: bytes) -> np.ndarray:
        return decode_image_bgr(raw)

    def load_model(self) -> FaceModel:
        if not self.providers:
            raise RuntimeError("runtime is not ready; call ready() first")
        from insightface.app import FaceAnalysis
        app = FaceAnalysis(name=self.settings.model_name,
                           allowed_modules=["detection"],
                           providers=self.providers)
        app.prepare(ctx_id=0, det_thresh=self.settings.score_threshold,
                    det_size=tuple(self.settings.det_size))
        return FaceModel(app, max_faces=self.settings.max_faces)


def _pair(v: Sequence) -> tuple[float, float]:
    return float(v[0]), float(v[1])


def to_detection(pred: Dict[str, Any]) -> Detection:
    points = pred["landmarks"]
    if len(points) < len(LANDMARK_NAMES):
        raise ValueError(
            f"prediction has {len(points)} landmarks, need {len(LANDMARK_NAMES)}")
    x1, y1 = _pair(pred["top_left"])
    x2, y2 = _pair(pred["bottom_right"])
    landmarks = tuple(Landmark(name, *_pair(points[i]))
                      for i, name in enumerate(LANDMARK_NAMES))
    return Detection(label=DETECTION_LABEL,
                     score=float(pred["probability"][0]),
                     bounding_box=(x1, y1, x2, y2),
                     landmarks=landmarks)


def to_detections(predictions: Sequence[Dict[str, Any]]) -> tuple[Detection, ...]:
    return tuple(to_detection(p) for p in predictions)


def detect_faces(uri: str, model: FaceModel, runtime: InferenceRuntime) -> tuple[Detection, ...]:
    """Read the photo at `uri`, run the model, map predictions. Raises on any failure."""
    encoded = read_as_base64(uri)
    image = runtime.decode_image(decode_base64(encoded))
    predictions = model.estimate(image, return_tensors=False)
    return to_detections(predictions)
