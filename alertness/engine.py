from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from .attention import (
    AttentionState,
    ClosureTracker,
    Detected,
    FrameObservation,
    NotDetected,
    alert_confidence,
    classify_state,
    is_rising_edge,
)
from .config import AlertnessSettings, SettingsError
from .ear import average_ear, is_valid_ear
from .messages import Alert, AttentionUpdate

_log = logging.getLogger("AttentionEngine")

UPDATE_CONFIDENCE = 0.85
PROGRESS_EVERY_N_FRAMES = 30


class Notifier(Protocol):
    def on_update(self, update: AttentionUpdate) -> None:
        ...

    def on_alert(self, alert: Alert) -> None:
        ...


SettingsProvider = Callable[[], Optional[AlertnessSettings]]


@dataclass
class EngineState:
    tracker: ClosureTracker = field(default_factory=ClosureTracker)
    current: AttentionState = AttentionState.AWAKE
    frame_count: int = 0
    last_frame_ts: Optional[float] = None
    progress_ts: Optional[float] = None

    @property
    def closed_frame_count(self) -> int:
        return self.tracker.closed_frame_count

    @property
    def closed_since(self) -> Optional[float]:
        return self.tracker.closed_since


@dataclass
class EngineResult:
    update: AttentionUpdate
    alert: Optional[Alert] = None


class AttentionEngine:
    """
    Frame-synchronous alertness state machine.

    One instance tracks one subject. ``process`` takes a single observation
    plus the settings snapshot current at its arrival and returns the update
    (and possibly an alert) for that frame, or None when the frame was
    skipped. ``handle`` does the same but pulls settings from the provider
    and pushes the messages to the notifier. Neither raises.
    """

    def __init__(
        self,
        settings_provider: Optional[SettingsProvider] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings_provider = settings_provider
        self.notifier = notifier
        self.clock = clock
        self.state = EngineState()

    @property
    def current_state(self) -> AttentionState:
        return self.state.current

    def reset(self) -> None:
        self.state = EngineState()

    def handle(self, observation: Optional[FrameObservation], now: Optional[float] = None) -> Optional[EngineResult]:
        settings: Optional[AlertnessSettings] = None
        if self.settings_provider is not None:
            try:
                settings = self.settings_provider()
            except Exception:
                _log.exception("Settings provider failed, skipping frame")
                return None

        try:
            result = self.process(observation, settings, now)
        except Exception:
            _log.exception("Frame processing failed, skipping frame")
            return None
        if result is not None and self.notifier is not None:
            self._deliver(result)
        return result

    def process(
        self,
        observation: Optional[FrameObservation],
        settings: Optional[AlertnessSettings],
        now: Optional[float] = None,
    ) -> Optional[EngineResult]:
        if not isinstance(settings, AlertnessSettings):
            _log.warning("No usable settings snapshot (%r), skipping frame", type(settings).__name__)
            return None
        try:
            settings.validate()
        except SettingsError as exc:
            _log.warning("Invalid settings, skipping frame: %s", exc)
            return None
        if not settings.enabled:
            return None

        now = self.clock() if now is None else now
        thresholds = settings.thresholds
        state = self.state
        state.frame_count += 1
        fps = self._frame_rate(now)

        observation = self._sanitize(observation)
        if isinstance(observation, Detected):
            ear: Optional[float] = average_ear(observation.left_ear, observation.right_ear, thresholds.combine_policy)
            is_closed = ear < thresholds.ear_threshold
        else:
            ear = None
            is_closed = True

        tracker = state.tracker
        tracker.min_closed_frames = thresholds.min_closed_frames
        duration = tracker.update(is_closed, now)
        if ear is None and tracker.closed_frame_count == thresholds.min_closed_frames:
            _log.info("No face detected for %d frames, counting as eyes closed", tracker.closed_frame_count)

        new_state = classify_state(duration, thresholds, settings.detectors)
        previous = state.current
        closed_seconds = duration or 0.0

        alert = None
        if is_rising_edge(previous, new_state):
            alert = Alert(
                timestamp=now,
                state=new_state,
                confidence=alert_confidence(new_state, ear, thresholds.ear_threshold),
                eyes_closed_duration=closed_seconds,
                face_detected=ear is not None,
            )
            _log.warning("%s detected: %s -> %s after %.1fs closed", new_state.value.upper(), previous.value, new_state.value, closed_seconds)
        elif new_state != previous:
            _log.info("State change: %s -> %s", previous.value, new_state.value)
        state.current = new_state

        update = AttentionUpdate(
            timestamp=now,
            state=new_state,
            confidence=UPDATE_CONFIDENCE,
            eyes_closed_duration=closed_seconds,
            ear_value=ear,
            fps=fps,
        )
        self._log_progress(now, ear, thresholds.ear_threshold)
        return EngineResult(update=update, alert=alert)

    def _sanitize(self, observation: Optional[FrameObservation]) -> FrameObservation:
        if observation is None:
            return NotDetected()
        if isinstance(observation, Detected):
            if is_valid_ear(observation.left_ear) and is_valid_ear(observation.right_ear):
                return observation
            _log.warning(
                "Rejecting frame with invalid EAR (left=%r, right=%r), treating as no face",
                observation.left_ear,
                observation.right_ear,
            )
        return NotDetected()

    def _frame_rate(self, now: float) -> float:
        last = self.state.last_frame_ts
        self.state.last_frame_ts = now
        if last is None or now <= last:
            return 0.0
        return 1.0 / (now - last)

    def _log_progress(self, now: float, ear: Optional[float], ear_threshold: float) -> None:
        state = self.state
        if state.progress_ts is None:
            state.progress_ts = now
        if state.frame_count % PROGRESS_EVERY_N_FRAMES:
            return
        elapsed = now - state.progress_ts
        state.progress_ts = now
        fps = PROGRESS_EVERY_N_FRAMES / elapsed if elapsed > 0 else 0.0
        ear_text = f"{ear:.3f}" if ear is not None else "n/a"
        _log.debug(
            "Running at %.1f FPS - frame %d | EAR %s | threshold %.3f | state %s",
            fps,
            state.frame_count,
            ear_text,
            ear_threshold,
            state.current.value,
        )

    def _deliver(self, result: EngineResult) -> None:
        try:
            if result.alert is not None:
                self.notifier.on_alert(result.alert)
            self.notifier.on_update(result.update)
        except Exception:
            _log.exception("Notifier failed to deliver frame messages")
