from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from alertness.config import AlertnessSettings

_log = logging.getLogger("ConfigLoader")


def load_raw(path: str) -> Dict[str, Any]:
    cfg_path = Path(path)
    if not cfg_path.exists():
        return {}
    with cfg_path.open("r") as fh:
        return yaml.safe_load(fh) or {}


def load_settings(path: str) -> AlertnessSettings:
    data = load_raw(path)
    if not data:
        _log.info("No settings at %s, using defaults", path)
        return AlertnessSettings()
    return AlertnessSettings.from_dict(data)


def _merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def persist_settings(path: str, payload: Dict[str, Any]) -> None:
    cfg_path = Path(path)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    existing = _merge(load_raw(path), payload)
    with cfg_path.open("w") as fh:
        yaml.safe_dump(existing, fh)
