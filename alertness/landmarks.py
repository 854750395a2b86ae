from __future__ import annotations

import urllib.request
from pathlib import Path
from typing import Any, Iterable

import cv2
import mediapipe as mp
import numpy as np

from .attention import Detected, FrameObservation, NotDetected
from .ear import eye_aspect_ratio

# p1..p6 ordering: outer corner, upper1, upper2, inner corner, lower2, lower1
LEFT_EYE = [33, 160, 158, 133, 153, 144]
RIGHT_EYE = [263, 387, 385, 362, 380, 373]

MODEL_URL = "https://storage.googleapis.com/mediapipe-models/face_landmarker/face_landmarker/float16/latest/face_landmarker.task"
MODEL_PATH = Path(__file__).resolve().parent.parent / "artifacts" / "face_landmarker.task"


def _iter_landmarks(face_landmarks: Any):
    return getattr(face_landmarks, "landmark", face_landmarks)


def _landmarks_to_points(face_landmarks: Any, width: int, height: int, indices: Iterable[int]) -> np.ndarray:
    landmarks = _iter_landmarks(face_landmarks)
    return np.array([(landmarks[i].x * width, landmarks[i].y * height) for i in indices], dtype=np.float64)


def eye_openness(face_landmarks: Any, width: int, height: int) -> tuple[float, float]:
    left = eye_aspect_ratio(_landmarks_to_points(face_landmarks, width, height, LEFT_EYE))
    right = eye_aspect_ratio(_landmarks_to_points(face_landmarks, width, height, RIGHT_EYE))
    return left, right


def _ensure_model(model_path: Path) -> None:
    if model_path.exists():
        return
    model_path.parent.mkdir(parents=True, exist_ok=True)
    urllib.request.urlretrieve(MODEL_URL, model_path)


class LandmarkExtractor:
    """Wraps the MediaPipe face mesh and reduces each frame to a FrameObservation."""

    def __init__(self, min_detection_confidence: float = 0.5):
        self.mode = "solutions" if getattr(mp, "solutions", None) else "tasks"
        self.last_landmarks: Any = None

        if self.mode == "solutions":
            from mediapipe import solutions as mp_solutions  # type: ignore

            self.face_mesh = mp_solutions.face_mesh.FaceMesh(
                max_num_faces=1,
                refine_landmarks=True,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_detection_confidence,
            )
            self.landmarker = None
        else:
            from mediapipe.tasks import python as mp_python
            from mediapipe.tasks.python import vision as mp_vision

            _ensure_model(MODEL_PATH)
            base_options = mp_python.BaseOptions(model_asset_path=str(MODEL_PATH))
            options = mp_vision.FaceLandmarkerOptions(
                base_options=base_options,
                output_face_blendshapes=False,
                output_facial_transformation_matrixes=False,
                num_faces=1,
                min_face_detection_confidence=min_detection_confidence,
                running_mode=mp_vision.RunningMode.IMAGE,
            )
            self.landmarker = mp_vision.FaceLandmarker.create_from_options(options)
            self.face_mesh = None

    def close(self) -> None:
        if self.face_mesh:
            self.face_mesh.close()
        if self.landmarker:
            self.landmarker.close()

    def _detect(self, rgb) -> Any:
        if self.mode == "solutions":
            result = self.face_mesh.process(rgb) if self.face_mesh else None
            if not result or not result.multi_face_landmarks:
                return None
            return result.multi_face_landmarks[0]

        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        result = self.landmarker.detect(mp_image) if self.landmarker else None
        if not result or not result.face_landmarks:
            return None
        return result.face_landmarks[0]

    def observe(self, frame) -> FrameObservation:
        height, width = frame.shape[:2]
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

        face_landmarks = self._detect(rgb)
        self.last_landmarks = face_landmarks
        if face_landmarks is None:
            return NotDetected()

        left, right = eye_openness(face_landmarks, width, height)
        return Detected(left_ear=left, right_ear=right)

    def eye_points(self, width: int, height: int) -> list[np.ndarray]:
        if self.last_landmarks is None:
            return []
        return [
            _landmarks_to_points(self.last_landmarks, width, height, LEFT_EYE),
            _landmarks_to_points(self.last_landmarks, width, height, RIGHT_EYE),
        ]
