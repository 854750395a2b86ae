from types import SimpleNamespace

import pytest

pytest.importorskip("cv2")
pytest.importorskip("mediapipe")

from alertness.landmarks import LEFT_EYE, RIGHT_EYE, eye_openness  # noqa: E402


def _face(open_height: float):
    # 478 normalized landmarks, eye points laid out as a 3-wide, open_height-tall eye
    landmarks = [SimpleNamespace(x=0.5, y=0.5) for _ in range(478)]
    layout = [(0.0, 0.0), (1.0, open_height), (2.0, open_height), (3.0, 0.0), (2.0, -open_height), (1.0, -open_height)]
    for indices, offset in ((LEFT_EYE, 0.2), (RIGHT_EYE, 0.6)):
        for idx, (dx, dy) in zip(indices, layout):
            landmarks[idx] = SimpleNamespace(x=offset + dx * 0.01, y=0.4 + dy * 0.01)
    return landmarks


def test_eye_openness_from_landmarks():
    left, right = eye_openness(_face(1.0), width=100, height=100)
    assert left == pytest.approx(4.0 / 6.0)
    assert right == pytest.approx(4.0 / 6.0)


def test_eye_openness_closed_eye():
    left, right = eye_openness(_face(0.05), width=100, height=100)
    assert left < 0.05
    assert right < 0.05
