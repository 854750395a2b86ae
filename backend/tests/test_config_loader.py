import pytest
import yaml

from alertness.config import SettingsError
from backend.config_loader import load_settings, persist_settings


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(str(tmp_path / "nope.yaml"))
    assert settings.thresholds.ear_threshold == 0.2
    assert settings.enabled


def test_persist_merges_and_reloads(tmp_path):
    path = tmp_path / "configs" / "default.yaml"
    persist_settings(str(path), {"storage": {"database_path": "x.db"}})
    persist_settings(str(path), {"thresholds": {"drowsy_seconds": 3.5}, "detectors": {"microsleep": False}})

    raw = yaml.safe_load(path.read_text())
    assert raw["storage"]["database_path"] == "x.db"

    settings = load_settings(str(path))
    assert settings.thresholds.drowsy_seconds == 3.5
    assert not settings.detectors.microsleep


def test_invalid_file_raises(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("thresholds:\n  ear_threshold: -1\n")
    with pytest.raises(SettingsError):
        load_settings(str(path))


def test_persist_keeps_sibling_keys_of_nested_sections(tmp_path):
    path = tmp_path / "default.yaml"
    persist_settings(str(path), {"thresholds": {"ear_threshold": 0.25}, "camera": {"index": 2}})
    persist_settings(str(path), {"thresholds": {"drowsy_seconds": 3.5}})

    raw = yaml.safe_load(path.read_text())
    assert raw["thresholds"] == {"ear_threshold": 0.25, "drowsy_seconds": 3.5}
    assert raw["camera"] == {"index": 2}

    settings = load_settings(str(path))
    assert settings.thresholds.ear_threshold == 0.25
    assert settings.thresholds.drowsy_seconds == 3.5
