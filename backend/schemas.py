from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class CameraSchema(BaseModel):
    index: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30


class ThresholdsSchema(BaseModel):
    ear_threshold: float = Field(0.2, gt=0)
    drowsy_seconds: float = Field(2.0, ge=0)
    microsleep_seconds: float = Field(5.0, ge=0)
    min_closed_frames: int = Field(15, ge=1)
    combine_policy: str = Field("mean", pattern="^(mean|min)$")


class DetectorsSchema(BaseModel):
    drowsiness: bool = True
    microsleep: bool = True


class SettingsSchema(BaseModel):
    enabled: bool = True
    camera: CameraSchema = CameraSchema()
    thresholds: ThresholdsSchema = ThresholdsSchema()
    detectors: DetectorsSchema = DetectorsSchema()


class TrackingSchema(BaseModel):
    enabled: bool


class FrameSchema(BaseModel):
    timestamp: float
    state: str
    confidence: float
    ear: Optional[float] = None
    closed_duration: float
    fps: float


class HistoryResponse(BaseModel):
    frames: List[FrameSchema]
    events: List[dict]


class ObservationSchema(BaseModel):
    t: float
    left: Optional[float] = None
    right: Optional[float] = None
    face: bool = True


class ReplayRequest(BaseModel):
    frames: List[ObservationSchema]
    settings: Optional[SettingsSchema] = None


class ReplayResponse(BaseModel):
    states: List[str]
    alerts: List[dict]
