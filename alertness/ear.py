from __future__ import annotations

import math
from typing import Sequence

import numpy as np


def eye_aspect_ratio(points: Sequence[tuple[float, float]]) -> float:
    """
    Six-point eye aspect ratio, points ordered p1..p6
    (outer corner, upper1, upper2, inner corner, lower2, lower1):

        EAR = (|p2 - p6| + |p3 - p5|) / (2 * |p1 - p4|)

    Open eyes sit around 0.25-0.30, closed ones below 0.1.
    """
    pts = np.asarray(points, dtype=np.float64)
    if pts.shape != (6, 2):
        raise ValueError(f"expected 6 (x, y) points, got shape {pts.shape}")

    vertical = np.linalg.norm(pts[1] - pts[5]) + np.linalg.norm(pts[2] - pts[4])
    horizontal = np.linalg.norm(pts[0] - pts[3])
    if horizontal < 1e-9:
        return 0.0
    return float(vertical / (2.0 * horizontal))


def is_valid_ear(value: float) -> bool:
    try:
        return math.isfinite(value) and value >= 0.0
    except TypeError:
        return False


def average_ear(left: float, right: float, policy: str = "mean") -> float:
    # "min" keeps a half-occluded face from reading as open
    if policy == "min":
        return min(left, right)
    return (left + right) / 2.0
