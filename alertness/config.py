from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict

COMBINE_POLICIES = ("mean", "min")


class SettingsError(ValueError):
    """Raised when a settings snapshot cannot be used for classification."""


def _flag(data: dict, key: str, default: bool = True) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise SettingsError(f"{key} must be a boolean, got {value!r}")
    return value


@dataclass
class CameraConfig:
    index: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30


@dataclass
class Thresholds:
    ear_threshold: float = 0.2
    drowsy_seconds: float = 2.0
    microsleep_seconds: float = 5.0
    min_closed_frames: int = 15
    combine_policy: str = "mean"


@dataclass
class Detectors:
    drowsiness: bool = True
    microsleep: bool = True


@dataclass
class AlertnessSettings:
    enabled: bool = True
    camera: CameraConfig = field(default_factory=CameraConfig)
    thresholds: Thresholds = field(default_factory=Thresholds)
    detectors: Detectors = field(default_factory=Detectors)

    def validate(self) -> "AlertnessSettings":
        if not isinstance(self.enabled, bool):
            raise SettingsError(f"enabled must be a boolean, got {self.enabled!r}")
        if not isinstance(self.camera, CameraConfig):
            raise SettingsError(f"camera must be a CameraConfig, got {type(self.camera).__name__}")
        if not isinstance(self.detectors, Detectors):
            raise SettingsError(f"detectors must be a Detectors, got {type(self.detectors).__name__}")
        for name in ("drowsiness", "microsleep"):
            if not isinstance(getattr(self.detectors, name), bool):
                raise SettingsError(f"detectors.{name} must be a boolean, got {getattr(self.detectors, name)!r}")
        t = self.thresholds
        if not isinstance(t, Thresholds):
            raise SettingsError(f"thresholds must be a Thresholds, got {type(t).__name__}")
        for name in ("ear_threshold", "drowsy_seconds", "microsleep_seconds"):
            value = getattr(t, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or not math.isfinite(value):
                raise SettingsError(f"{name} must be a finite number, got {value!r}")
        if t.ear_threshold <= 0:
            raise SettingsError(f"ear_threshold must be positive, got {t.ear_threshold}")
        if t.drowsy_seconds < 0 or t.microsleep_seconds < 0:
            raise SettingsError("duration thresholds must be non-negative")
        if not isinstance(t.min_closed_frames, int) or isinstance(t.min_closed_frames, bool) or t.min_closed_frames < 1:
            raise SettingsError(f"min_closed_frames must be a positive integer, got {t.min_closed_frames!r}")
        if t.combine_policy not in COMBINE_POLICIES:
            raise SettingsError(f"combine_policy must be one of {COMBINE_POLICIES}, got {t.combine_policy!r}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict) -> "AlertnessSettings":
        camera_data = payload.get("camera", {}) or {}
        thresholds_data = payload.get("thresholds", {}) or {}
        detectors_data = payload.get("detectors", {}) or {}

        try:
            camera = CameraConfig(
                index=int(camera_data.get("index", 0)),
                width=int(camera_data.get("width", 640)),
                height=int(camera_data.get("height", 480)),
                fps=int(camera_data.get("fps", 30)),
            )
            thresholds = Thresholds(
                ear_threshold=float(thresholds_data.get("ear_threshold", 0.2)),
                drowsy_seconds=float(thresholds_data.get("drowsy_seconds", 2.0)),
                microsleep_seconds=float(thresholds_data.get("microsleep_seconds", 5.0)),
                min_closed_frames=int(thresholds_data.get("min_closed_frames", 15)),
                combine_policy=str(thresholds_data.get("combine_policy", "mean")),
            )
        except (TypeError, ValueError) as exc:
            raise SettingsError(f"malformed settings payload: {exc}") from exc

        detectors = Detectors(
            drowsiness=_flag(detectors_data, "drowsiness"),
            microsleep=_flag(detectors_data, "microsleep"),
        )
        settings = cls(
            enabled=_flag(payload, "enabled"),
            camera=camera,
            thresholds=thresholds,
            detectors=detectors,
        )
        return settings.validate()
