"""
Alertness estimation layer for drowsiness-guard.
"""

from .attention import AttentionState, ClosureTracker, Detected, NotDetected, classify_state, is_rising_edge
from .config import AlertnessSettings, SettingsError
from .engine import AttentionEngine, EngineResult
from .messages import Alert, AttentionUpdate

__all__ = [
    "Alert",
    "AlertnessSettings",
    "AttentionEngine",
    "AttentionState",
    "AttentionUpdate",
    "ClosureTracker",
    "Detected",
    "EngineResult",
    "NotDetected",
    "SettingsError",
    "classify_state",
    "is_rising_edge",
]
