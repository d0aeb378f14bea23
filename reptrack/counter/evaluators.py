from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from reptrack.common.config import TrackerSettings
from reptrack.counter.exercises import LandmarkSet, SignalSpec, SignalType
from reptrack.counter.phases import PhaseMachine, PhaseState
from reptrack.counter.pose_core import LandmarkFrame, angle_3pt, distance_2d
from reptrack.counter.signal import GateResult, SignalConditioner, SignalSample, visibility_gate


@dataclass(frozen=True)
class Evaluation:
    sample: SignalSample
    gate: GateResult
    state: PhaseState


def primary_joints(spec: SignalSpec, landmarks: LandmarkSet) -> Sequence[str]:
    """The signal's own joints united with the exercise's primary set, order kept."""
    seen = []
    for name in spec.joint_names + landmarks.primary:
        if name not in seen:
            seen.append(name)
    return seen


class Evaluator:
    """
    One evaluator per SignalType. Subclasses only decide how a raw value is
    measured from the landmarks; conditioning, gating and the phase step are shared.
    """
    signal_type: SignalType

    def measure(self, frame: Optional[LandmarkFrame], spec: SignalSpec) -> Optional[float]:
        raise NotImplementedError

    def _points(self, frame: Optional[LandmarkFrame], spec: SignalSpec, n: int):
        names = spec.joint_names
        if frame is None or len(names) != n:
            return None
        pts = [frame.point(name) for name in names]
        if any(p is None for p in pts):
            return None
        return pts

    def evaluate(
        self,
        frame: Optional[LandmarkFrame],
        spec: SignalSpec,
        machine: PhaseMachine,
        conditioner: SignalConditioner,
        settings: TrackerSettings,
        landmarks: LandmarkSet,
        ts: float,
        is_stable: bool = True,
    ) -> Evaluation:
        raw = self.measure(frame, spec)
        sample = conditioner.condition(spec.id, raw, ts)
        gate = visibility_gate(frame, primary_joints(spec, landmarks), landmarks.secondary, settings)
        state = machine.update(sample.smoothed_value, spec, gate.allowed and is_stable, ts)
        return Evaluation(sample, gate, state)


class AngleEvaluator(Evaluator):
    signal_type = SignalType.ANGLE

    def measure(self, frame, spec):
        pts = self._points(frame, spec, 3)
        if pts is None:
            return None
        return angle_3pt(*pts)


class PositionEvaluator(Evaluator):
    """Planar distance between two joints in normalised image units."""
    signal_type = SignalType.POSITION

    def measure(self, frame, spec):
        pts = self._points(frame, spec, 2)
        if pts is None:
            return None
        return distance_2d(*pts)


EVALUATORS: Dict[SignalType, Evaluator] = {
    SignalType.ANGLE: AngleEvaluator(),
    SignalType.POSITION: PositionEvaluator(),
}


def evaluator_for(signal_type: SignalType) -> Evaluator:
    return EVALUATORS[signal_type]
