from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .attention import AttentionState

UPDATE_MESSAGE = "ATTENTION_UPDATE"
ALERT_MESSAGE = "DROWSINESS_DETECTED"


@dataclass
class AttentionUpdate:
    timestamp: float
    state: AttentionState
    confidence: float
    eyes_closed_duration: float = 0.0
    ear_value: Optional[float] = None
    fps: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["state"] = self.state.value
        return payload

    def to_message(self) -> Dict[str, Any]:
        metrics: Dict[str, Any] = {"eyesClosedDuration": self.eyes_closed_duration}
        if self.ear_value is not None:
            metrics["earValue"] = self.ear_value
        return {
            "type": UPDATE_MESSAGE,
            "payload": {
                "state": self.state.value,
                "confidence": self.confidence,
                "metrics": metrics,
                "timestamp": int(self.timestamp * 1000),
            },
        }


@dataclass
class Alert:
    timestamp: float
    state: AttentionState
    confidence: float
    eyes_closed_duration: float
    face_detected: bool = True

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["state"] = self.state.value
        return payload

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": ALERT_MESSAGE,
            "payload": {
                "state": self.state.value,
                "confidence": self.confidence,
                "metrics": {"eyesClosedDuration": self.eyes_closed_duration},
            },
        }
