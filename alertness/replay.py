"""
Offline host for the attention engine.

Feeds recorded observations (one JSON object per line) through the same
engine the camera service uses and collects whatever it emits. A row is
either ``{"t": 1.5, "left": 0.27, "right": 0.25}`` or ``{"t": 1.5, "face": false}``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Union

from .attention import Detected, FrameObservation, NotDetected
from .config import AlertnessSettings
from .engine import AttentionEngine, Notifier
from .messages import Alert, AttentionUpdate

_log = logging.getLogger("ObservationReplay")


@dataclass
class RecordedFrame:
    timestamp: float
    observation: FrameObservation


@dataclass
class RecordingNotifier:
    forward: Optional[Notifier] = None
    updates: List[AttentionUpdate] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)

    def on_update(self, update: AttentionUpdate) -> None:
        self.updates.append(update)
        if self.forward is not None:
            self.forward.on_update(update)

    def on_alert(self, alert: Alert) -> None:
        self.alerts.append(alert)
        if self.forward is not None:
            self.forward.on_alert(alert)


def parse_frame(row: dict) -> RecordedFrame:
    timestamp = float(row["t"])
    if row.get("face", True) is False or "left" not in row:
        return RecordedFrame(timestamp=timestamp, observation=NotDetected())
    right = row.get("right", row["left"])
    return RecordedFrame(timestamp=timestamp, observation=Detected(left_ear=float(row["left"]), right_ear=float(right)))


def load_frames(path: Union[str, Path]) -> Iterator[RecordedFrame]:
    with Path(path).open("r") as fh:
        for lineno, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield parse_frame(json.loads(line))
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"{path}:{lineno}: bad observation row: {exc}") from exc


def replay(
    frames: Iterable[RecordedFrame],
    settings: Union[AlertnessSettings, Callable[[], Optional[AlertnessSettings]]],
    notifier: Optional[Notifier] = None,
) -> RecordingNotifier:
    recorder = RecordingNotifier(forward=notifier)
    provider = settings if callable(settings) else (lambda: settings)
    engine = AttentionEngine(settings_provider=provider, notifier=recorder)

    count = 0
    for frame in frames:
        engine.handle(frame.observation, now=frame.timestamp)
        count += 1
    _log.info("Replayed %d frames: %d updates, %d alerts", count, len(recorder.updates), len(recorder.alerts))
    return recorder
