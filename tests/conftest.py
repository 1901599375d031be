from __future__ import annotations

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from pathlib import Path

import cv2
import numpy as np
import pytest
from PySide6.QtWidgets import QApplication

from facesnap.state import Detection, Landmark, LANDMARK_NAMES


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def photo(tmp_path) -> Path:
    img = np.full((240, 320, 3), 200, dtype=np.uint8)
    cv2.circle(img, (160, 120), 60, (40, 90, 160), -1)
    path = tmp_path / "photo.jpg"
    assert cv2.imwrite(str(path), img)
    return path


def make_prediction(score: float = 0.9, offset: float = 0.0) -> dict:
    return {
        "probability": [score],
        "top_left": [100.0 + offset, 60.0],
        "bottom_right": [220.0 + offset, 200.0],
        "landmarks": [
            [130.0 + offset, 100.0],
            [190.0 + offset, 100.0],
            [160.0 + offset, 130.0],
            [140.0 + offset, 165.0],
            [180.0 + offset, 165.0],
            [120.0 + offset, 110.0],  # extra point, ignored
        ],
    }


def make_detection(score: float = 0.9, x: float = 150.0) -> Detection:
    landmarks = tuple(Landmark(name, x + 10 * i, 100.0 + 5 * i)
                      for i, name in enumerate(LANDMARK_NAMES))
    return Detection("Human", score, (x - 40, 60.0, x + 80, 200.0), landmarks)
