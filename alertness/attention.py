from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .config import Detectors, Thresholds

NO_FACE_CONFIDENCE = {"microsleep": 0.99, "drowsy": 0.94}


class AttentionState(str, Enum):
    AWAKE = "awake"
    DROWSY = "drowsy"
    MICROSLEEP = "microsleep"


ELEVATED_STATES = frozenset({AttentionState.DROWSY, AttentionState.MICROSLEEP})


@dataclass(frozen=True)
class Detected:
    left_ear: float
    right_ear: float


@dataclass(frozen=True)
class NotDetected:
    pass


FrameObservation = Union[Detected, NotDetected]


@dataclass
class ClosureTracker:
    """
    Turns a per-frame closed/open signal into a closed duration.

    The duration only starts once ``min_closed_frames`` consecutive closed
    frames have been seen, so ordinary blinks never latch. A single open
    frame drops everything.
    """

    min_closed_frames: int = 15
    closed_frame_count: int = 0
    closed_since: Optional[float] = None

    def update(self, is_closed: bool, now: float) -> Optional[float]:
        if not is_closed:
            self.reset()
            return None

        self.closed_frame_count += 1
        if self.closed_frame_count >= self.min_closed_frames:
            if self.closed_since is None:
                self.closed_since = now
        else:
            self.closed_since = None
        return self.closed_duration(now)

    def closed_duration(self, now: float) -> Optional[float]:
        if self.closed_since is None:
            return None
        return max(now - self.closed_since, 0.0)

    @property
    def latched(self) -> bool:
        return self.closed_since is not None

    def reset(self) -> None:
        self.closed_frame_count = 0
        self.closed_since = None


def classify_state(
    closed_duration: Optional[float], thresholds: Thresholds, detectors: Detectors
) -> AttentionState:
    if closed_duration is None:
        return AttentionState.AWAKE

    # microsleep first so equal thresholds resolve to the stronger state
    if detectors.microsleep and closed_duration >= thresholds.microsleep_seconds:
        return AttentionState.MICROSLEEP
    if detectors.drowsiness and closed_duration >= thresholds.drowsy_seconds:
        return AttentionState.DROWSY
    return AttentionState.AWAKE


def is_rising_edge(previous: AttentionState, new: AttentionState) -> bool:
    return new != previous and new in ELEVATED_STATES


def closure_confidence(ear: float, ear_threshold: float) -> float:
    """How far below the threshold the eyes are, 0 at the threshold, 1 fully shut."""
    return min(max(1.0 - ear / ear_threshold, 0.0), 1.0)


def alert_confidence(state: AttentionState, ear: Optional[float], ear_threshold: float) -> float:
    if ear is None:
        return NO_FACE_CONFIDENCE[state.value]
    return closure_confidence(ear, ear_threshold)
