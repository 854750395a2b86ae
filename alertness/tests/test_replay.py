import json

import pytest

from alertness.attention import AttentionState, Detected, NotDetected
from alertness.config import AlertnessSettings
from alertness.replay import RecordingNotifier, load_frames, parse_frame, replay


def _write_rows(path, rows):
    path.write_text("\n".join(json.dumps(row) for row in rows) + "\n")


def test_parse_frame_variants():
    assert parse_frame({"t": 1, "left": 0.3, "right": 0.2}).observation == Detected(0.3, 0.2)
    assert parse_frame({"t": 1, "left": 0.3}).observation == Detected(0.3, 0.3)
    assert parse_frame({"t": 1, "face": False}).observation == NotDetected()
    assert parse_frame({"t": 2.5}).timestamp == 2.5


def test_replay_file_produces_alerts(tmp_path):
    rows = [{"t": i / 30.0, "left": 0.1, "right": 0.1} for i in range(120)]
    rows += [{"t": 4.0 + i / 30.0, "face": False} for i in range(10)]
    rows.append({"t": 5.0, "left": 0.3, "right": 0.3})
    path = tmp_path / "session.jsonl"
    _write_rows(path, rows)

    recorder = replay(load_frames(path), AlertnessSettings())
    assert len(recorder.updates) == len(rows)
    assert [a.state for a in recorder.alerts] == [AttentionState.DROWSY]
    assert recorder.updates[-1].state == AttentionState.AWAKE


def test_replay_forwards_to_notifier():
    downstream = RecordingNotifier()
    frames = [parse_frame({"t": i / 30.0, "face": False}) for i in range(90)]
    recorder = replay(frames, lambda: AlertnessSettings(), notifier=downstream)
    assert downstream.updates == recorder.updates
    assert [a.state for a in downstream.alerts] == [AttentionState.DROWSY]


def test_load_frames_reports_bad_line(tmp_path):
    path = tmp_path / "broken.jsonl"
    path.write_text('{"t": 0.0, "left": 0.3, "right": 0.3}\n\n{"left": 0.3}\n')
    with pytest.raises(ValueError, match=":3:"):
        list(load_frames(path))
