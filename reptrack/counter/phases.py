"""
Per-side repetition state machines.

ThresholdMachine  Idle -> Active -> Completed -> Idle, rep counted on entering Completed.
SequenceMachine   Relaxed -> Concentric -> Peak -> Eccentric -> Relaxed, rep counted on the
                  final Eccentric -> Relaxed step, only after a debounced hold at Peak.

Both freeze on a None value or when counting is not allowed, and move at most one
state per frame.
"""
from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Union

from reptrack.counter.exercises import SignalSpec


class ThreePhase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"


class FourPhase(str, Enum):
    RELAXED = "relaxed"
    CONCENTRIC = "concentric"
    PEAK = "peak"
    ECCENTRIC = "eccentric"


Phase = Union[ThreePhase, FourPhase]

SEQUENCE = (FourPhase.RELAXED, FourPhase.CONCENTRIC, FourPhase.PEAK, FourPhase.ECCENTRIC)


def next_in_sequence(phase: FourPhase) -> FourPhase:
    return SEQUENCE[(SEQUENCE.index(phase) + 1) % len(SEQUENCE)]


@dataclass(frozen=True)
class PhaseState:
    phase: Phase
    last_phase_change_time: float = 0.0
    rep_count: int = 0
    peak_hold_satisfied: bool = False
    # False once an out-of-order transition breaks the current attempt
    sequence_intact: bool = False


class PhaseMachine:
    """Holds one PhaseState and replaces it through a pure step function."""

    initial_phase: Phase

    def __init__(self, on_transition: Optional[Callable[[PhaseState, PhaseState], None]] = None):
        self.state = PhaseState(self.initial_phase)
        self._on_transition = on_transition

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def rep_count(self) -> int:
        return self.state.rep_count

    def reset(self):
        self.state = PhaseState(self.initial_phase)

    def update(self, value: Optional[float], spec: SignalSpec, allowed: bool, t: float) -> PhaseState:
        if value is None or not allowed:
            return self.state
        prev = self.state
        self.state = self.step(prev, value, spec, t)
        if self._on_transition and self.state.phase != prev.phase:
            self._on_transition(prev, self.state)
        return self.state

    def step(self, state: PhaseState, value: float, spec: SignalSpec, t: float) -> PhaseState:
        raise NotImplementedError


class ThresholdMachine(PhaseMachine):
    initial_phase = ThreePhase.IDLE

    def step(self, state: PhaseState, value: float, spec: SignalSpec, t: float) -> PhaseState:
        return threshold_step(state, value, spec, t)


class SequenceMachine(PhaseMachine):
    initial_phase = FourPhase.RELAXED

    def __init__(self, debounce_ms: float = 200, on_transition=None):
        super().__init__(on_transition)
        self.debounce_ms = debounce_ms

    def step(self, state: PhaseState, value: float, spec: SignalSpec, t: float) -> PhaseState:
        return sequence_step(state, value, spec, t, self.debounce_ms)


def threshold_step(state: PhaseState, value: float, spec: SignalSpec, t: float) -> PhaseState:
    # thresholds are compared in raw value space regardless of relaxed_is_high
    phase = state.phase
    if phase is ThreePhase.IDLE:
        if value < spec.min_threshold:
            return replace(state, phase=ThreePhase.ACTIVE, last_phase_change_time=t)
    elif phase is ThreePhase.ACTIVE:
        if value > spec.max_threshold:
            return replace(state, phase=ThreePhase.COMPLETED, last_phase_change_time=t,
                           rep_count=state.rep_count + 1)
    elif phase is ThreePhase.COMPLETED:
        if value >= spec.min_threshold:
            return replace(state, phase=ThreePhase.IDLE, last_phase_change_time=t)
    return state


def observe_phase(value: float, spec: SignalSpec, current: FourPhase) -> FourPhase:
    """Classify a value into the phase it suggests, given where the machine is now."""
    high = value >= spec.max_threshold
    low = value <= spec.min_threshold
    at_rest = high if spec.relaxed_is_high else low
    at_peak = low if spec.relaxed_is_high else high
    if at_rest:
        return FourPhase.RELAXED
    if at_peak:
        return FourPhase.PEAK
    if current in (FourPhase.RELAXED, FourPhase.CONCENTRIC):
        return FourPhase.CONCENTRIC
    return FourPhase.ECCENTRIC


def sequence_step(state: PhaseState, value: float, spec: SignalSpec, t: float, debounce_ms: float) -> PhaseState:
    current = state.phase
    observed = observe_phase(value, spec, current)

    if observed is current:
        if current is FourPhase.PEAK and not state.peak_hold_satisfied:
            if (t - state.last_phase_change_time) * 1000.0 >= debounce_ms:
                return replace(state, peak_hold_satisfied=True)
        return state

    if observed is next_in_sequence(current):
        if current is FourPhase.PEAK and not state.peak_hold_satisfied:
            if (t - state.last_phase_change_time) * 1000.0 < debounce_ms:
                # a single spike into the peak band is not a hold; stay until it is
                return state
        # the hold only means something while at the peak
        moved = replace(state, phase=observed, last_phase_change_time=t,
                        peak_hold_satisfied=observed is FourPhase.PEAK and debounce_ms <= 0)
        if observed is FourPhase.CONCENTRIC:
            return replace(moved, sequence_intact=True)
        if observed is FourPhase.RELAXED and state.sequence_intact:
            return replace(moved, rep_count=state.rep_count + 1, sequence_intact=False)
        return moved

    # out-of-order: follow the movement but the attempt no longer counts
    return replace(
        state,
        phase=observed,
        last_phase_change_time=t,
        peak_hold_satisfied=False,
        sequence_intact=False,
    )


def make_machine(use_phase_sequence: bool, debounce_ms: float = 200, on_transition=None) -> PhaseMachine:
    if use_phase_sequence:
        return SequenceMachine(debounce_ms, on_transition=on_transition)
    return ThresholdMachine(on_transition=on_transition)
