from reptrack.common.config import TrackerSettings
from reptrack.counter.exercises import BICEP_CURLS, JUMPING_JACKS, SEATED_OVERHEAD_PRESS, SQUATS
from reptrack.counter.phases import FourPhase, ThreePhase
from reptrack.counter.pipeline import RepPipeline

from conftest import arm_landmarks

CURL_CYCLE = [170, 100, 40, 100, 170]


def feed(pipe, left, right=None, start=0.0, dt=0.1, **kw):
    count = None
    for i, l_angle in enumerate(left):
        r_angle = right[i] if right is not None else None
        count = pipe.push_frame(arm_landmarks(l_angle, r_angle, **kw), start + i * dt)
    return count


def test_counts_both_arms(aggregator):
    pipe = RepPipeline(aggregator, TrackerSettings(use_phase_sequence=False), BICEP_CURLS)
    count = feed(pipe, CURL_CYCLE * 2, CURL_CYCLE + [170] * 5)
    assert count.left == 2
    assert count.right == 1
    assert aggregator.read() == count


def test_occluded_side_stays_put(aggregator):
    pipe = RepPipeline(aggregator, TrackerSettings(use_phase_sequence=False), BICEP_CURLS)
    feed(pipe, CURL_CYCLE)
    assert aggregator.read().right == 0
    assert pipe.phase("right") is ThreePhase.IDLE
    assert pipe.snapshot()["sides"]["right"]["raw_value"] is None


def test_no_pose_frames_do_not_count(aggregator):
    pipe = RepPipeline(aggregator, TrackerSettings(use_phase_sequence=False), BICEP_CURLS)
    pipe.push_frame(arm_landmarks(40, 40), 0.0)
    pipe.push_frame([], 0.1)
    pipe.push_frame(None, 0.2)
    assert pipe.phase("left") is ThreePhase.ACTIVE
    pipe.push_frame(arm_landmarks(170, 170), 0.3)
    assert aggregator.read().left == 1


def test_visibility_gate_blocks_counting(aggregator):
    pipe = RepPipeline(aggregator, TrackerSettings(require_all_landmarks=True), BICEP_CURLS)
    feed(pipe, CURL_CYCLE, CURL_CYCLE, visibility=0.1)
    assert aggregator.read().to_dict() == {"left": 0, "right": 0}
    feed(pipe, CURL_CYCLE, CURL_CYCLE, start=1.0, visibility=0.9)
    assert aggregator.read().to_dict() == {"left": 1, "right": 1}


def test_unstable_frames_do_not_count(aggregator):
    pipe = RepPipeline(aggregator, TrackerSettings(use_phase_sequence=False), BICEP_CURLS)
    for i, a in enumerate(CURL_CYCLE):
        pipe.push_frame(arm_landmarks(a, a), i * 0.1, is_stable=False)
    assert aggregator.read().left == 0


def test_one_sided_exercise_only_counts_left(aggregator):
    pipe = RepPipeline(aggregator, TrackerSettings(use_phase_sequence=False), SEATED_OVERHEAD_PRESS)
    assert pipe.exercise.counted_sides == ("left",)
    feed(pipe, [120, 120], [40, 40])
    assert pipe.phase("right") is ThreePhase.IDLE


def test_position_signal_counts_jumping_jacks(aggregator):
    pipe = RepPipeline(aggregator, TrackerSettings(use_phase_sequence=False), JUMPING_JACKS)
    for i, gap in enumerate([0.5, 0.25, 0.1, 0.25, 0.5]):
        pipe.push_frame(arm_landmarks(170, 170, wrist_gap=gap), i * 0.1)
    assert aggregator.read().left == 1
    assert aggregator.read().right == 0


def test_phase_sequence_mode(aggregator):
    settings = TrackerSettings(use_phase_sequence=True, rep_debounce_ms=200)
    pipe = RepPipeline(aggregator, settings, BICEP_CURLS)
    feed(pipe, [170, 100, 40, 40, 40, 40, 100, 170])
    assert aggregator.read().left == 1
    assert pipe.phase("left") is FourPhase.RELAXED


def test_rep_events_are_published(aggregator):
    events = []
    pipe = RepPipeline(aggregator, TrackerSettings(use_phase_sequence=False), BICEP_CURLS)
    pipe.set_event_sink(events.append)
    feed(pipe, CURL_CYCLE)
    reps = [e for e in events if e["type"] == "rep"]
    assert reps == [{"type": "rep", "ts": 0.4, "side": "left", "rep_count": 1, "exercise_id": "bicep-curls"}]


def test_reentrant_frames_are_dropped(aggregator):
    pipe = RepPipeline(aggregator, TrackerSettings(use_phase_sequence=False), BICEP_CURLS)
    inner = []

    def sink(ev):
        if ev["type"] == "rep":
            inner.append(pipe.push_frame(arm_landmarks(40, 40), 99.0))

    pipe.set_event_sink(sink)
    feed(pipe, CURL_CYCLE)
    assert inner == [None]
    assert pipe.dropped_frames == 1
    assert aggregator.read().left == 1


def test_aggregator_reset_resets_machines(aggregator):
    pipe = RepPipeline(aggregator, TrackerSettings(use_phase_sequence=False), BICEP_CURLS)
    feed(pipe, [170, 40])
    assert pipe.phase("left") is ThreePhase.ACTIVE
    aggregator.reset_rep_counts()
    assert pipe.phase("left") is ThreePhase.IDLE
    # a stale machine count is never written back
    pipe.push_frame(arm_landmarks(170, 170), 1.0)
    assert aggregator.read().left == 0


def test_exercise_change_resets_machines(aggregator):
    pipe = RepPipeline(aggregator, TrackerSettings(use_phase_sequence=False), BICEP_CURLS)
    feed(pipe, CURL_CYCLE)
    assert pipe.machines["left"].rep_count == 1
    pipe.set_exercise(SQUATS)
    assert pipe.machines["left"].rep_count == 0
    assert pipe.phase("left") is ThreePhase.IDLE


def test_switching_algorithm_rebuilds_machines(aggregator):
    pipe = RepPipeline(aggregator, TrackerSettings(use_phase_sequence=False), BICEP_CURLS)
    pipe.update_settings(TrackerSettings(use_phase_sequence=True))
    assert pipe.phase("left") is FourPhase.RELAXED


def test_no_exercise_is_a_no_op(aggregator):
    pipe = RepPipeline(aggregator, TrackerSettings(use_phase_sequence=False))
    assert pipe.push_frame(arm_landmarks(40, 40), 0.0).to_dict() == {"left": 0, "right": 0}


def test_closed_pipeline_ignores_aggregator_resets(aggregator):
    pipe = RepPipeline(aggregator, TrackerSettings(use_phase_sequence=False), BICEP_CURLS)
    feed(pipe, [170, 40])
    pipe.close()
    aggregator.reset_rep_counts()
    assert pipe.phase("left") is ThreePhase.ACTIVE
