import pytest

from alertness.attention import (
    AttentionState,
    ClosureTracker,
    alert_confidence,
    classify_state,
    closure_confidence,
    is_rising_edge,
)
from alertness.config import Detectors, Thresholds


def test_closure_tracker_latches_on_debounce_floor():
    tracker = ClosureTracker(min_closed_frames=15)
    for i in range(14):
        assert tracker.update(True, now=float(i)) is None
    assert not tracker.latched
    assert tracker.closed_frame_count == 14

    assert tracker.update(True, now=14.0) == 0.0
    assert tracker.closed_since == 14.0

    # latched once, not re-latched while the streak continues
    assert tracker.update(True, now=16.5) == pytest.approx(2.5)
    assert tracker.closed_since == 14.0


def test_closure_tracker_open_frame_clears_everything():
    tracker = ClosureTracker(min_closed_frames=3)
    for i in range(10):
        tracker.update(True, now=float(i))
    assert tracker.latched

    assert tracker.update(False, now=10.0) is None
    assert tracker.closed_frame_count == 0
    assert tracker.closed_since is None
    assert tracker.closed_duration(11.0) is None


def test_closure_tracker_duration_is_monotonic():
    tracker = ClosureTracker(min_closed_frames=2)
    durations = [tracker.update(True, now=i * 0.1) for i in range(20)]
    latched = [d for d in durations if d is not None]
    assert latched == sorted(latched)
    assert latched[0] == 0.0


def test_classify_state_thresholds():
    thresholds = Thresholds(drowsy_seconds=2.0, microsleep_seconds=5.0)
    detectors = Detectors()
    assert classify_state(None, thresholds, detectors) == AttentionState.AWAKE
    assert classify_state(0.0, thresholds, detectors) == AttentionState.AWAKE
    assert classify_state(1.99, thresholds, detectors) == AttentionState.AWAKE
    assert classify_state(2.0, thresholds, detectors) == AttentionState.DROWSY
    assert classify_state(4.9, thresholds, detectors) == AttentionState.DROWSY
    assert classify_state(5.0, thresholds, detectors) == AttentionState.MICROSLEEP
    assert classify_state(60.0, thresholds, detectors) == AttentionState.MICROSLEEP


def test_classify_state_microsleep_wins_tie():
    thresholds = Thresholds(drowsy_seconds=3.0, microsleep_seconds=3.0)
    assert classify_state(3.0, thresholds, Detectors()) == AttentionState.MICROSLEEP


def test_classify_state_disabled_detectors():
    thresholds = Thresholds(drowsy_seconds=2.0, microsleep_seconds=5.0)
    no_microsleep = Detectors(drowsiness=True, microsleep=False)
    no_drowsy = Detectors(drowsiness=False, microsleep=True)
    neither = Detectors(drowsiness=False, microsleep=False)

    assert classify_state(100.0, thresholds, no_microsleep) == AttentionState.DROWSY
    assert classify_state(3.0, thresholds, no_drowsy) == AttentionState.AWAKE
    assert classify_state(5.0, thresholds, no_drowsy) == AttentionState.MICROSLEEP
    assert classify_state(100.0, thresholds, neither) == AttentionState.AWAKE


def test_is_rising_edge():
    awake, drowsy, micro = AttentionState.AWAKE, AttentionState.DROWSY, AttentionState.MICROSLEEP
    assert is_rising_edge(awake, drowsy)
    assert is_rising_edge(awake, micro)
    assert is_rising_edge(drowsy, micro)
    assert is_rising_edge(micro, drowsy)
    assert not is_rising_edge(drowsy, drowsy)
    assert not is_rising_edge(micro, micro)
    assert not is_rising_edge(drowsy, awake)
    assert not is_rising_edge(awake, awake)


def test_alert_confidence():
    assert closure_confidence(0.1, 0.2) == pytest.approx(0.5)
    assert closure_confidence(0.0, 0.2) == 1.0
    assert closure_confidence(0.25, 0.2) == 0.0
    assert alert_confidence(AttentionState.DROWSY, 0.05, 0.2) == pytest.approx(0.75)
    assert alert_confidence(AttentionState.DROWSY, None, 0.2) == 0.94
    assert alert_confidence(AttentionState.MICROSLEEP, None, 0.2) == 0.99
