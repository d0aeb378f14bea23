from __future__ import annotations
import logging
import time
from typing import Any, Dict, Optional

from reptrack.common.config import TrackerSettings
from reptrack.common.events import EventEmitter, EventType, RepEvent
from reptrack.counter.aggregator import RepAggregator, RepCount
from reptrack.counter.evaluators import Evaluation, evaluator_for
from reptrack.counter.exercises import SIDES, ExerciseDefinition, Side
from reptrack.counter.phases import Phase, PhaseMachine, make_machine
from reptrack.counter.pose_core import LandmarkFrame
from reptrack.counter.signal import SignalConditioner

logger = logging.getLogger(__name__)


class RepPipeline(EventEmitter):
    """
    Passive frame pipeline: no camera, no threads. Call push_frame(landmarks, ts)
    with each pose-estimation result; rep counts land in the shared aggregator.
    """

    def __init__(
        self,
        aggregator: RepAggregator,
        settings: Optional[TrackerSettings] = None,
        exercise: Optional[ExerciseDefinition] = None,
    ):
        self.aggregator = aggregator
        self.settings = settings or TrackerSettings()
        self.exercise: Optional[ExerciseDefinition] = None
        self.conditioner = SignalConditioner(self.settings)
        self.machines: Dict[Side, PhaseMachine] = {}
        self.last: Dict[Side, Evaluation] = {}
        self._in_flight = False
        self._running = True
        self.dropped_frames = 0
        self._build_machines()
        aggregator.add_reset_listener(self.reset)
        if exercise is not None:
            self.set_exercise(exercise)

    def _build_machines(self):
        self.machines = {
            side: make_machine(
                self.settings.use_phase_sequence,
                self.settings.rep_debounce_ms,
                on_transition=self._tracer(side),
            )
            for side in SIDES
        }

    def _tracer(self, side: Side):
        def _on_transition(prev, new):
            logger.debug("%s: %s -> %s", side, prev.phase.value, new.phase.value)
            self._emit({"type": EventType.TRACE.value, "msg": f"{side} state→{new.phase.value}"})
        return _on_transition

    # keep for API parity with the orchestrators
    def start(self):
        self._running = True

    def stop(self):
        self._running = False

    def close(self):
        """Stop and detach from the aggregator; the pipeline is not reused afterwards."""
        self.stop()
        self.aggregator.remove_reset_listener(self.reset)

    def reset(self):
        """Return every machine to its initial phase and drop smoothing history."""
        for m in self.machines.values():
            m.reset()
        self.conditioner.reset()
        self.last = {}

    def set_exercise(self, exercise: Optional[ExerciseDefinition]):
        if exercise is self.exercise:
            return
        self.exercise = exercise
        self.reset()
        logger.info("pipeline exercise set to %s", exercise.id if exercise else None)

    def update_settings(self, settings: TrackerSettings):
        """Applies from the next frame; switching algorithm rebuilds the machines."""
        rebuild = (
            settings.use_phase_sequence != self.settings.use_phase_sequence
            or settings.rep_debounce_ms != self.settings.rep_debounce_ms
        )
        self.settings = settings
        self.conditioner.settings = settings
        if rebuild:
            self._build_machines()
            self.conditioner.reset()
            self.last = {}

    def push_frame(self, landmarks: Any, ts: Optional[float] = None, is_stable: bool = True) -> Optional[RepCount]:
        """
        Process one frame. Returns the post-update count, or None when the frame
        was dropped because another one is still being applied.
        """
        if self._in_flight:
            self.dropped_frames += 1
            return None
        if not self._running or self.exercise is None:
            return self.aggregator.read()
        self._in_flight = True
        try:
            t = float(ts) if ts is not None else time.time()
            frame = LandmarkFrame.from_landmarks(landmarks)
            self._step(frame, t, is_stable)
        finally:
            self._in_flight = False
        return self.aggregator.read()

    def _step(self, frame: Optional[LandmarkFrame], t: float, is_stable: bool):
        ex = self.exercise
        evaluator = evaluator_for(ex.signal_type)
        for side in SIDES:
            spec = ex.counter_signal(side)
            if spec is None:
                continue
            machine = self.machines[side]
            before = machine.rep_count
            ev = evaluator.evaluate(
                frame, spec, machine, self.conditioner, self.settings,
                ex.landmarks_for(spec.side), t, is_stable,
            )
            self.last[side] = ev
            self.aggregator.update_rep_count(side, ev.state.rep_count)
            if ev.state.rep_count > before:
                self._emit(RepEvent(EventType.REP, t, side, ev.state.rep_count, ex.id))

    # display accessors

    def phase(self, side: Side) -> Phase:
        return self.machines[side].phase

    def snapshot(self) -> dict:
        out = {"exercise_id": self.exercise.id if self.exercise else None, "sides": {}}
        for side in SIDES:
            ev = self.last.get(side)
            out["sides"][side] = {
                "phase": self.machines[side].phase.value,
                "raw_value": ev.sample.raw_value if ev else None,
                "smoothed_value": ev.sample.smoothed_value if ev else None,
                "primary_visible": ev.gate.primary.all_visible if ev else None,
                "min_visibility": ev.gate.primary.min_visibility if ev else None,
            }
        out["count"] = self.aggregator.read().to_dict()
        return out
