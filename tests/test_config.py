import pytest
from pydantic import ValidationError

from reptrack.common.config import (
    LadderConfig,
    TrackerSettings,
    load_ladder_config,
    load_settings,
    load_timed_config,
)


def test_tracker_defaults():
    s = TrackerSettings()
    assert s.is_smoothing_enabled is False
    assert s.smoothing_window == 25
    assert s.use_phase_sequence is True
    assert s.rep_debounce_ms == 200
    assert s.minimum_visibility_threshold == 25
    assert s.visibility_cutoff == pytest.approx(0.25)


def test_visibility_threshold_is_bounded():
    with pytest.raises(ValidationError):
        TrackerSettings(minimum_visibility_threshold=95)


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("REPTRACK_USE_PHASE_SEQUENCE", "false")
    monkeypatch.setenv("REPTRACK_REP_DEBOUNCE_MS", "300")
    s = load_settings()
    assert s.use_phase_sequence is False
    assert s.rep_debounce_ms == 300


def test_invalid_environment_falls_back_to_defaults(monkeypatch, caplog):
    monkeypatch.setenv("REPTRACK_TOTAL_SETS", "zero")
    cfg = load_timed_config()
    assert cfg.total_sets == 10
    assert "using defaults" in caplog.text


def test_ladder_config_from_environment(monkeypatch):
    monkeypatch.setenv("REPTRACK_TOP_REPS", "6")
    monkeypatch.setenv("REPTRACK_AUTO_ADVANCE", "false")
    cfg = load_ladder_config()
    assert cfg.top_reps == 6 and cfg.auto_advance is False


def test_ladder_validity():
    assert LadderConfig().is_valid
    assert not LadderConfig(increment=0).is_valid
    assert not LadderConfig(start_reps=11, top_reps=10).is_valid
