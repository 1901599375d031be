from __future__ import annotations

from pathlib import Path

import pytest

from facesnap.state import (
    AppSettings, PermissionState, ScreenState, ScreenView, ResultsView,
    PermissionResolved, ModelLoaded, PhotoCaptured, ResetRequested,
    DetectStarted, DetectSucceeded, DetectFailed,
    can_detect, format_detection, format_landmark, percent,
    results_view, screen_view, transition, LANDMARK_NAMES,
)

from conftest import make_detection


def run(*events, state=None):
    state = state or ScreenState()
    for e in events:
        state = transition(state, e)
    return state


def test_initial_state_is_blank():
    s = ScreenState()
    assert screen_view(s) is ScreenView.BLANK
    assert results_view(s) is ResultsView.NONE
    assert not s.loading


def test_denied_never_shows_camera():
    s = run(PermissionResolved(False))
    assert screen_view(s) is ScreenView.DENIED
    # nothing afterwards can bring the camera up
    for e in (PermissionResolved(True), ModelLoaded(), PhotoCaptured("a.jpg"),
              ResetRequested(), DetectStarted()):
        s = transition(s, e)
        assert screen_view(s) is ScreenView.DENIED
    assert s.permission is PermissionState.DENIED
    assert s.image_uri is None


def test_granted_shows_camera_then_review():
    s = run(PermissionResolved(True))
    assert screen_view(s) is ScreenView.CAMERA
    s = transition(s, PhotoCaptured("/tmp/one.jpg"))
    assert screen_view(s) is ScreenView.REVIEW
    assert results_view(s) is ResultsView.PROMPT


def test_capture_replaces_previous_image():
    s = run(PermissionResolved(True), ModelLoaded(), PhotoCaptured("one.jpg"),
            DetectStarted(), DetectSucceeded("one.jpg", (make_detection(),)))
    s = transition(s, PhotoCaptured("two.jpg"))
    assert s.image_uri == "two.jpg"
    assert s.detections == ()
    assert not s.has_result


def test_reset_returns_to_camera_without_detections():
    s = run(PermissionResolved(True), ModelLoaded(), PhotoCaptured("one.jpg"),
            DetectStarted(), DetectSucceeded("one.jpg", (make_detection(),)))
    s = transition(s, ResetRequested())
    assert screen_view(s) is ScreenView.CAMERA
    assert s.detections == ()
    assert s.image_uri is None


def test_detect_without_model_is_noop():
    s = run(PermissionResolved(True), PhotoCaptured("one.jpg"))
    after = transition(s, DetectStarted())
    assert after == s
    assert not after.loading
    assert not can_detect(after)


def test_detect_without_image_is_noop():
    s = run(PermissionResolved(True), ModelLoaded())
    assert transition(s, DetectStarted()) == s


def test_detect_ignored_while_loading():
    s = run(PermissionResolved(True), ModelLoaded(), PhotoCaptured("one.jpg"), DetectStarted())
    assert s.loading
    assert not can_detect(s)
    assert transition(s, DetectStarted()) == s


def test_zero_predictions_show_no_face_only_when_not_loading():
    s = run(PermissionResolved(True), ModelLoaded(), PhotoCaptured("one.jpg"), DetectStarted())
    assert results_view(s) is ResultsView.LOADING
    s = transition(s, DetectSucceeded("one.jpg", ()))
    assert not s.loading
    assert results_view(s) is ResultsView.NO_FACE
    s = transition(s, DetectStarted())
    assert results_view(s) is ResultsView.LOADING


def test_two_predictions_replace_detection_set():
    dets = (make_detection(0.97, 100.0), make_detection(0.55, 300.0))
    s = run(PermissionResolved(True), ModelLoaded(), PhotoCaptured("one.jpg"),
            DetectStarted(), DetectSucceeded("one.jpg", dets))
    assert s.detections == dets
    assert results_view(s) is ResultsView.DETECTIONS
    for d in s.detections:
        assert tuple(lm.name for lm in d.landmarks) == LANDMARK_NAMES


def test_failure_clears_loading_and_keeps_detections():
    dets = (make_detection(),)
    s = run(PermissionResolved(True), ModelLoaded(), PhotoCaptured("one.jpg"),
            DetectStarted(), DetectSucceeded("one.jpg", dets), DetectStarted())
    assert s.loading
    s = transition(s, DetectFailed("one.jpg", "boom"))
    assert not s.loading
    assert s.detections == dets


def test_stale_result_for_replaced_image_is_dropped():
    s = run(PermissionResolved(True), ModelLoaded(), PhotoCaptured("one.jpg"),
            DetectStarted(), ResetRequested(), PhotoCaptured("two.jpg"))
    # the new photo was never submitted
    assert not s.loading
    assert results_view(s) is ResultsView.PROMPT
    assert can_detect(s)
    s = transition(s, DetectSucceeded("one.jpg", (make_detection(),)))
    assert s.loading_uri is None
    assert s.detections == ()
    assert s.image_uri == "two.jpg"


def test_newer_run_wins_over_superseded_one():
    s = run(PermissionResolved(True), ModelLoaded(), PhotoCaptured("one.jpg"),
            DetectStarted(), ResetRequested(), PhotoCaptured("two.jpg"), DetectStarted())
    assert s.loading_uri == "two.jpg"
    s = transition(s, DetectFailed("one.jpg", "late"))
    assert s.loading
    s = transition(s, DetectSucceeded("one.jpg", (make_detection(),)))
    assert s.loading
    dets = (make_detection(0.8, 200.0),)
    s = transition(s, DetectSucceeded("two.jpg", dets))
    assert not s.loading
    assert s.detections == dets


def test_reset_during_run_then_same_image_still_loading():
    s = run(PermissionResolved(True), ModelLoaded(), PhotoCaptured("one.jpg"),
            DetectStarted(), ResetRequested())
    assert s.loading_uri == "one.jpg"
    assert not s.loading
    s = transition(s, PhotoCaptured("one.jpg"))
    assert s.loading


def test_transition_does_not_mutate():
    s = ScreenState()
    transition(s, PermissionResolved(True))
    assert s.permission is PermissionState.UNKNOWN


def test_unknown_event_raises():
    with pytest.raises(TypeError):
        transition(ScreenState(), object())


@pytest.mark.parametrize("score, expected", [
    (0.0, 0), (0.994, 99), (0.125, 13), (0.875, 88), (0.5, 50), (1.0, 100),
])
def test_percent_rounds_half_up(score, expected):
    assert percent(score) == expected


def test_format_detection_and_landmark():
    d = make_detection(0.876)
    assert format_detection(d) == "Human - 88%"
    assert format_landmark(d.landmarks[0]) == "left_eye: (150.0, 100.0)"


def test_settings_from_env(tmp_path):
    s = AppSettings.from_env({
        "FACESNAP_CAMERA_INDEX": "2",
        "FACESNAP_PHOTO_DIR": str(tmp_path),
        "FACESNAP_SCORE_THRESHOLD": "0.6",
        "FACESNAP_MAX_FACES": "3",
    })
    assert s.camera_index == 2
    assert s.photo_dir == Path(tmp_path)
    assert s.score_threshold == 0.6
    assert s.max_faces == 3
    assert s.model_name == "buffalo_l"


@pytest.mark.parametrize("kwargs", [
    {"camera_index": -1}, {"score_threshold": 1.5}, {"max_faces": 0}, {"marker_radius": 0},
])
def test_settings_reject_invalid(kwargs):
    with pytest.raises(ValueError):
        AppSettings(**kwargs)
