from reptrack.counter.exercises import SignalSpec
from reptrack.counter.phases import (
    FourPhase,
    SequenceMachine,
    ThreePhase,
    ThresholdMachine,
    make_machine,
)

CURL = SignalSpec("leftElbow", ("shoulder", "elbow", "wrist"), 45, 160, side="left")
PRESS = SignalSpec("leftPress", ("elbow", "shoulder", "hip"), 75, 150, side="left", relaxed_is_high=False)


def run(machine, values, spec=CURL, dt=0.1, allowed=True):
    trace = []
    for i, v in enumerate(values):
        machine.update(v, spec, allowed, i * dt)
        trace.append(machine.phase)
    return trace


def test_threshold_crossing_counts_one_rep():
    m = ThresholdMachine()
    trace = run(m, [170, 170, 100, 40, 35, 40, 100, 170])
    assert m.rep_count == 1
    assert trace == [ThreePhase.IDLE] * 3 + [ThreePhase.ACTIVE] * 4 + [ThreePhase.COMPLETED]
    # the next in-range frame returns to idle
    m.update(100, CURL, True, 1.0)
    assert m.phase is ThreePhase.IDLE


def test_threshold_moves_one_state_per_frame():
    m = ThresholdMachine()
    m.update(40, CURL, True, 0.0)
    m.update(170, CURL, True, 0.1)
    assert m.phase is ThreePhase.COMPLETED
    m.update(30, CURL, True, 0.2)
    assert m.phase is ThreePhase.COMPLETED
    m.update(170, CURL, True, 0.3)
    assert m.phase is ThreePhase.IDLE
    m.update(30, CURL, True, 0.4)
    assert m.phase is ThreePhase.ACTIVE
    assert m.rep_count == 1


def test_threshold_freezes_on_none_and_gate():
    m = ThresholdMachine()
    m.update(40, CURL, True, 0.0)
    before = m.state
    m.update(None, CURL, True, 0.1)
    m.update(170, CURL, False, 0.2)
    assert m.state == before
    assert m.rep_count == 0


def test_threshold_ignores_relaxed_direction():
    m = ThresholdMachine()
    run(m, [100, 60, 160, 100], spec=PRESS)
    assert m.rep_count == 1


def test_reset_returns_to_initial_phase():
    m = ThresholdMachine()
    run(m, [40, 170])
    m.reset()
    assert m.phase is ThreePhase.IDLE and m.rep_count == 0


def _curl_frames(hold_frames, dt=0.1):
    return [170, 100] + [40] * hold_frames + [100, 170]


def test_sequence_short_peak_hold_does_not_count():
    m = SequenceMachine(debounce_ms=500)
    trace = run(m, _curl_frames(hold_frames=2))
    assert FourPhase.ECCENTRIC not in trace
    assert m.phase is FourPhase.RELAXED
    assert m.rep_count == 0


def test_sequence_held_peak_counts_once():
    m = SequenceMachine(debounce_ms=500)
    trace = run(m, _curl_frames(hold_frames=7))
    assert trace.count(FourPhase.ECCENTRIC) == 1
    assert m.state.peak_hold_satisfied is False
    assert m.phase is FourPhase.RELAXED
    assert m.rep_count == 1


def test_sequence_hold_is_measured_from_peak_entry():
    m = SequenceMachine(debounce_ms=500)
    m.update(170, CURL, True, 0.0)
    m.update(100, CURL, True, 0.1)
    m.update(40, CURL, True, 0.2)
    assert m.phase is FourPhase.PEAK
    m.update(40, CURL, True, 0.6)
    assert not m.state.peak_hold_satisfied
    m.update(40, CURL, True, 0.8)
    assert m.state.peak_hold_satisfied


def test_sequence_skip_breaks_attempt_without_losing_reps():
    m = SequenceMachine(debounce_ms=0)
    run(m, [170, 100, 40, 40, 100, 170])
    assert m.rep_count == 1
    # straight from relaxed into the peak band skips concentric
    m.update(40, CURL, True, 10.0)
    assert m.phase is FourPhase.PEAK
    m.update(40, CURL, True, 10.1)
    m.update(100, CURL, True, 10.2)
    m.update(170, CURL, True, 10.3)
    assert m.phase is FourPhase.RELAXED
    assert m.rep_count == 1


def test_sequence_relaxed_low_exercise():
    m = SequenceMachine(debounce_ms=0)
    run(m, [60, 100, 160, 160, 100, 60], spec=PRESS)
    assert m.rep_count == 1


def test_sequence_freezes_on_none_and_gate():
    m = SequenceMachine(debounce_ms=0)
    run(m, [170, 100])
    before = m.state
    m.update(None, CURL, True, 1.0)
    m.update(40, CURL, False, 1.1)
    assert m.state == before


def test_make_machine_picks_algorithm():
    assert isinstance(make_machine(False), ThresholdMachine)
    seq = make_machine(True, 250)
    assert isinstance(seq, SequenceMachine) and seq.debounce_ms == 250


def test_sequence_zero_debounce_counts_single_frame_peak():
    m = SequenceMachine(debounce_ms=0)
    trace = run(m, [170, 100, 40, 100, 170])
    assert trace == [
        FourPhase.RELAXED,
        FourPhase.CONCENTRIC,
        FourPhase.PEAK,
        FourPhase.ECCENTRIC,
        FourPhase.RELAXED,
    ]
    assert m.rep_count == 1


def test_sequence_hold_elapsed_by_leaving_frame_allows_eccentric():
    m = SequenceMachine(debounce_ms=200)
    m.update(170, CURL, True, 0.0)
    m.update(100, CURL, True, 0.1)
    m.update(40, CURL, True, 0.2)
    m.update(100, CURL, True, 0.5)
    assert m.phase is FourPhase.ECCENTRIC
    m.update(170, CURL, True, 0.6)
    assert m.rep_count == 1
