import json
import time

from alertness.attention import AttentionState
from alertness.messages import Alert, AttentionUpdate
from backend.db import Database


def test_db_insert_and_query(tmp_path):
    db = Database(str(tmp_path / "test.db"))
    ts = time.time()
    update = AttentionUpdate(
        timestamp=ts,
        state=AttentionState.DROWSY,
        confidence=0.85,
        eyes_closed_duration=2.4,
        ear_value=0.12,
        fps=30.0,
    )
    db.log_frame(update)
    db.log_frame(AttentionUpdate(timestamp=ts + 0.5, state=AttentionState.AWAKE, confidence=0.85))
    alert = Alert(timestamp=ts, state=AttentionState.DROWSY, confidence=0.4, eyes_closed_duration=2.0)
    db.log_event("DROWSY_ALERT", ts, json.dumps(alert.to_dict()))
    db.log_event("SESSION_STOP", ts + 1)

    frames = db.history(ts - 1, ts + 2)
    assert len(frames) == 2
    assert frames[0]["state"] == AttentionState.DROWSY.value
    assert abs(frames[0]["closed_duration"] - 2.4) < 1e-6
    assert frames[1]["ear"] is None

    events = db.events(ts, ts + 5)
    assert [e["type"] for e in events] == ["DROWSY_ALERT", "SESSION_STOP"]

    alerts = db.alerts(ts, ts + 5)
    assert len(alerts) == 1
    assert json.loads(alerts[0]["details"])["state"] == "drowsy"


def test_export_csv(tmp_path):
    db = Database(str(tmp_path / "export.db"))
    db.log_frame(AttentionUpdate(timestamp=10.0, state=AttentionState.MICROSLEEP, confidence=0.85, eyes_closed_duration=5.5))
    lines = b"".join(db.export_csv(0.0, 20.0)).decode().splitlines()
    assert lines[0] == "timestamp,state,confidence,ear,closed_duration,fps"
    assert lines[1].startswith("10.0,microsleep,0.85,,5.5")
