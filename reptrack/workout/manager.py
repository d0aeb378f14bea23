from __future__ import annotations
import logging
import random
import time
from typing import Any, Callable, Literal, Optional, Sequence

from reptrack.common.config import LadderConfig, TimedSessionConfig, TrackerSettings
from reptrack.common.events import EventEmitter, EventSink, RecordSink
from reptrack.counter.aggregator import RepAggregator, RepCount
from reptrack.counter.exercises import ExerciseDefinition, get_exercise
from reptrack.counter.pipeline import RepPipeline
from reptrack.workout.circuit import CircuitSession, PlanItem
from reptrack.workout.ladder import LadderSession
from reptrack.workout.timed import TimedSession

logger = logging.getLogger(__name__)

Mode = Literal["timed", "ladder", "circuit", "free"]


class WorkoutManager(EventEmitter):
    """
    Owns the aggregator, the frame pipeline and the three orchestrators, and keeps
    at most one orchestrator active. Drivers call on_frame() per pose result and
    on_second() from a 1 Hz timer.
    """

    def __init__(
        self,
        settings: Optional[TrackerSettings] = None,
        timed_config: Optional[TimedSessionConfig] = None,
        ladder_config: Optional[LadderConfig] = None,
        record_sink: Optional[RecordSink] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        exercise_ids: Optional[Sequence[str]] = None,
    ):
        self.aggregator = RepAggregator()
        self.pipeline = RepPipeline(self.aggregator, settings)
        self.timed = TimedSession(self.aggregator, timed_config, exercise_ids, rng, record_sink, clock)
        self.ladder = LadderSession(self.aggregator, ladder_config, record_sink=record_sink, clock=clock)
        self.circuit = CircuitSession(self.aggregator, record_sink, clock)
        self.active: Optional[Mode] = None
        self._free_exercise: Optional[ExerciseDefinition] = None

    def set_event_sink(self, sink: Optional[EventSink]):
        super().set_event_sink(sink)
        for child in (self.pipeline, self.timed, self.ladder, self.circuit):
            child.set_event_sink(sink)

    @property
    def session(self):
        return {
            "timed": self.timed,
            "ladder": self.ladder,
            "circuit": self.circuit,
        }.get(self.active)

    # lifecycle

    def _activate(self, mode: Mode):
        if self.active is not None and self.active != mode:
            self._emit({"type": "trace", "msg": f"stopping {self.active} session"})
            self.stop()
        self.active = mode

    def start_timed(self, config: Optional[TimedSessionConfig] = None) -> bool:
        self._activate("timed")
        if config is not None:
            self.timed.update_config(config)
        ok = self.timed.start()
        self._sync_exercise()
        return ok

    def start_ladder(self, exercise_id: Optional[str] = None, weight: Optional[float] = None,
                     config: Optional[LadderConfig] = None) -> bool:
        self._activate("ladder")
        if config is not None:
            self.ladder.update_config(config)
        if exercise_id is not None:
            self.ladder.select_exercise(exercise_id, weight)
        ok = self.ladder.start()
        self._sync_exercise()
        return ok

    def start_circuit(self, plan: Sequence[PlanItem]) -> bool:
        self._activate("circuit")
        ok = self.circuit.initialize_workout(plan)
        if not ok:
            self.active = None
        self._sync_exercise()
        return ok

    def start_free(self, exercise_id: str) -> bool:
        """Count reps for one exercise with no orchestrator running."""
        ex = get_exercise(exercise_id)
        self._activate("free")
        self._free_exercise = ex
        self.aggregator.reset_rep_counts()
        self._sync_exercise()
        self._emit({"type": "trace", "msg": f"free counting started: {ex.id}"})
        return True

    def stop(self):
        if self.active == "timed":
            self.timed.stop()
        elif self.active == "ladder":
            self.ladder.stop()
        elif self.active == "circuit":
            self.circuit.stop()
        self.active = None
        self._free_exercise = None
        self.pipeline.set_exercise(None)

    # tick routing

    def on_frame(self, landmarks: Any, ts: Optional[float] = None, is_stable: bool = True) -> RepCount:
        count = self.pipeline.push_frame(landmarks, ts, is_stable)
        if count is None:
            return self.aggregator.read()
        if self.active == "ladder" and self.ladder.observe(count):
            self._sync_exercise()
        return self.aggregator.read()

    def on_second(self):
        session = self.session
        if session is None:
            return
        session.tick()
        self._sync_exercise()

    def advance_set(self, completed_reps: Optional[int] = None) -> bool:
        """User-driven set completion for the rep-driven modes."""
        if self.active == "ladder":
            ok = self.ladder.complete_current_set()
        elif self.active == "circuit":
            ok = self.circuit.advance_to_next_set(completed_reps)
        else:
            return False
        self._sync_exercise()
        return ok

    def _current_exercise(self) -> Optional[ExerciseDefinition]:
        if self.active == "free":
            return self._free_exercise
        session = self.session
        return session.current_exercise if session is not None else None

    def _sync_exercise(self):
        ex = self._current_exercise()
        if ex is not self.pipeline.exercise:
            self.pipeline.set_exercise(ex)
            if ex is not None:
                self.aggregator.reset_rep_counts()

    # display

    def snapshot(self) -> dict:
        session = self.session
        return {
            "mode": self.active,
            "count": self.aggregator.read().to_dict(),
            "pipeline": self.pipeline.snapshot(),
            "session": session.snapshot() if session is not None else None,
        }
