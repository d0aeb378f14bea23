import pytest

from reptrack.common.config import TrackerSettings
from reptrack.counter.pose_core import LandmarkFrame, angle_3pt, distance_2d
from reptrack.counter.signal import SignalConditioner, check_visibility, ema_alpha, visibility_gate

from conftest import arm_landmarks


@pytest.mark.parametrize("window", [0, 1])
def test_smoothing_window_zero_or_one_is_identity(window):
    cond = SignalConditioner(TrackerSettings(is_smoothing_enabled=True, smoothing_window=window))
    values = [170.0, 100.0, 40.0, 35.5, 160.0]
    out = [cond.condition("s", v).smoothed_value for v in values]
    assert out == values


def test_smoothing_disabled_is_identity():
    cond = SignalConditioner(TrackerSettings(is_smoothing_enabled=False, smoothing_window=25))
    assert [cond.condition("s", v).smoothed_value for v in (10.0, 90.0, 30.0)] == [10.0, 90.0, 30.0]


def test_ema_follows_alpha():
    cond = SignalConditioner(TrackerSettings(is_smoothing_enabled=True, smoothing_window=3))
    assert ema_alpha(3) == pytest.approx(0.5)
    assert cond.condition("s", 100.0).smoothed_value == 100.0
    assert cond.condition("s", 0.0).smoothed_value == pytest.approx(50.0)
    assert cond.condition("s", 0.0).smoothed_value == pytest.approx(25.0)


def test_gap_reseeds_history():
    cond = SignalConditioner(TrackerSettings(is_smoothing_enabled=True, smoothing_window=3))
    cond.condition("s", 100.0)
    cond.condition("s", 0.0)
    gap = cond.condition("s", None, 2.0)
    assert gap.raw_value is None and gap.smoothed_value is None
    # first sample after the gap seeds the average as if nothing came before
    assert cond.condition("s", 80.0).smoothed_value == 80.0


def test_signals_smooth_independently():
    cond = SignalConditioner(TrackerSettings(is_smoothing_enabled=True, smoothing_window=3))
    cond.condition("a", 100.0)
    assert cond.condition("b", 10.0).smoothed_value == 10.0
    assert cond.condition("a", 0.0).smoothed_value == pytest.approx(50.0)


def test_angle_and_distance_math():
    assert angle_3pt((0, 1), (0, 0), (1, 0)) == pytest.approx(90.0)
    assert angle_3pt((0, 1), (0, 0), (0, -1)) == pytest.approx(180.0)
    assert angle_3pt((0, 0), (0, 0), (1, 0)) is None
    assert distance_2d((0.0, 0.0), (0.3, 0.4)) == pytest.approx(0.5)


def test_frame_measures_requested_angle():
    frame = LandmarkFrame.from_landmarks(arm_landmarks(left_angle=120, right_angle=60))
    pts = [frame.point(n) for n in ("left_shoulder", "left_elbow", "left_wrist")]
    assert angle_3pt(*pts) == pytest.approx(120.0)


def test_empty_landmarks_mean_no_pose():
    assert LandmarkFrame.from_landmarks([]) is None
    assert LandmarkFrame.from_landmarks(None) is None


def test_visibility_threshold_is_percent():
    frame = LandmarkFrame.from_landmarks(arm_landmarks(90, 90, visibility=0.3))
    names = ["left_shoulder", "left_elbow", "left_wrist"]
    ok = check_visibility(frame, names, 0.25)
    assert ok.all_visible and ok.min_visibility == pytest.approx(0.3)
    assert not check_visibility(frame, names, 0.5).all_visible


def test_unknown_or_missing_joints_are_not_visible():
    frame = LandmarkFrame.from_landmarks(arm_landmarks(90, 90))
    res = check_visibility(frame, ["left_elbow", "left_tail"], 0.25)
    assert not res.all_visible and res.min_visibility == 0
    short = LandmarkFrame.from_landmarks(arm_landmarks(90, 90)[:5])
    assert not check_visibility(short, ["left_elbow"], 0.25).all_visible
    assert not check_visibility(None, ["left_elbow"], 0.25).all_visible


def test_missing_visibility_counts_as_zero():
    lms = [{"x": 0.1, "y": 0.2, "z": 0.0} for _ in range(33)]
    frame = LandmarkFrame.from_landmarks(lms)
    res = check_visibility(frame, ["left_elbow"], 0.25)
    assert not res.all_visible and res.min_visibility == 0


def test_gate_only_enforces_what_is_required():
    frame = LandmarkFrame.from_landmarks(arm_landmarks(90, 90, visibility=0.1))
    primary = ["left_shoulder", "left_elbow", "left_wrist"]
    secondary = ["left_hip"]

    relaxed = visibility_gate(frame, primary, secondary, TrackerSettings())
    assert relaxed.allowed
    assert not relaxed.primary.all_visible

    strict = visibility_gate(frame, primary, secondary, TrackerSettings(require_all_landmarks=True))
    assert not strict.allowed

    secondary_only = visibility_gate(frame, primary, secondary, TrackerSettings(require_secondary_landmarks=True))
    assert not secondary_only.allowed
    assert not secondary_only.secondary.all_visible
