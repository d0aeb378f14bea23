"""
Timed session: fixed-length exercise sets separated by fixed rests.

    Idle -> Exercising -(timer 0)-> Resting -(timer 0)-> Exercising | Idle

The state is a frozen dataclass; tick_timed() is the pure 1 Hz transition and
TimedSession wraps it with the side effects (aggregator resets, set entries,
events, the summary record).
"""
from __future__ import annotations
import logging
import random
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional, Sequence

from reptrack.common.config import TimedSessionConfig
from reptrack.common.events import (
    EventEmitter,
    EventType,
    ExerciseEntry,
    RecordSink,
    SessionEvent,
    WorkoutRecord,
    deliver_record,
    entry_for,
)
from reptrack.counter.aggregator import RepAggregator
from reptrack.counter.exercises import EXERCISES, ExerciseDefinition, find_exercise

logger = logging.getLogger(__name__)

MODE = "timed"


class TimedPhase(str, Enum):
    IDLE = "idle"
    EXERCISING = "exercising"
    RESTING = "resting"


@dataclass(frozen=True)
class TimedSessionState:
    phase: TimedPhase = TimedPhase.IDLE
    timer_seconds: int = 0
    current_exercise: Optional[str] = None
    upcoming_exercise: Optional[str] = None
    set_number: int = 0
    total_sets: int = 0

    @property
    def is_active(self) -> bool:
        return self.phase is not TimedPhase.IDLE


Picker = Callable[[Optional[str]], Optional[str]]


def pick_exercise(
    options: Sequence[str],
    previous: Optional[str],
    rng: random.Random,
    fixed: Optional[str] = None,
) -> Optional[str]:
    """Random choice that avoids repeating `previous` when there is anything else to pick."""
    if fixed:
        return fixed
    if not options:
        return None
    pool = [o for o in options if o != previous] if len(options) > 1 else list(options)
    return rng.choice(pool or list(options))


def start_state(config: TimedSessionConfig, pick: Picker) -> TimedSessionState:
    current = pick(None)
    return TimedSessionState(
        phase=TimedPhase.EXERCISING,
        timer_seconds=config.exercise_set_duration,
        current_exercise=current,
        upcoming_exercise=pick(current),
        set_number=1,
        total_sets=config.total_sets,
    )


def tick_timed(state: TimedSessionState, config: TimedSessionConfig, pick: Picker) -> TimedSessionState:
    if not state.is_active:
        return state
    remaining = state.timer_seconds - 1
    if remaining > 0:
        return replace(state, timer_seconds=remaining)

    if state.phase is TimedPhase.EXERCISING:
        return replace(state, phase=TimedPhase.RESTING, timer_seconds=config.rest_period_duration)

    if state.set_number >= state.total_sets:
        return TimedSessionState(total_sets=state.total_sets)
    current = state.upcoming_exercise
    return replace(
        state,
        phase=TimedPhase.EXERCISING,
        timer_seconds=config.exercise_set_duration,
        current_exercise=current,
        upcoming_exercise=pick(current),
        set_number=state.set_number + 1,
    )


class TimedSession(EventEmitter):
    def __init__(
        self,
        aggregator: RepAggregator,
        config: Optional[TimedSessionConfig] = None,
        exercise_ids: Optional[Sequence[str]] = None,
        rng: Optional[random.Random] = None,
        record_sink: Optional[RecordSink] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.aggregator = aggregator
        self.config = config or TimedSessionConfig()
        self.exercise_ids = list(exercise_ids) if exercise_ids is not None else list(EXERCISES)
        self.rng = rng or random.Random()
        self.record_sink = record_sink
        self.clock = clock
        self.state = TimedSessionState(total_sets=self.config.total_sets)
        self.generation = 0
        self.entries: List[ExerciseEntry] = []
        self.start_time: Optional[float] = None
        self.last_record: Optional[WorkoutRecord] = None

    def _pick(self, previous: Optional[str]) -> Optional[str]:
        return pick_exercise(self.exercise_ids, previous, self.rng, self.config.fixed_exercise_id)

    @property
    def is_active(self) -> bool:
        return self.state.is_active

    @property
    def current_exercise(self) -> Optional[ExerciseDefinition]:
        return find_exercise(self.state.current_exercise)

    def _event(self, kind: EventType):
        self._emit(SessionEvent(kind, MODE, self.clock(), self.state.current_exercise, self.state.set_number))

    def start(self) -> bool:
        if self.is_active:
            logger.debug("timed session already running")
            return False
        self.generation += 1
        self.entries = []
        self.start_time = self.clock()
        self.last_record = None
        self.state = start_state(self.config, self._pick)
        self.aggregator.reset_rep_counts()
        logger.info("timed session started: %s, %d sets", self.state.current_exercise, self.state.total_sets)
        self._event(EventType.SESSION_STARTED)
        self._event(EventType.SET_STARTED)
        return True

    def stop(self):
        was_active = self.is_active
        self.generation += 1
        self.state = TimedSessionState(total_sets=self.config.total_sets)
        if was_active:
            logger.info("timed session stopped")
            self._event(EventType.SESSION_STOPPED)

    def toggle(self) -> bool:
        if self.is_active:
            self.stop()
            return False
        return self.start()

    def update_config(self, config: TimedSessionConfig) -> bool:
        if self.is_active:
            logger.debug("ignoring timed config change while active")
            return False
        self.config = config
        self.state = replace(self.state, total_sets=config.total_sets)
        return True

    def tick(self, generation: Optional[int] = None) -> TimedSessionState:
        if generation is not None and generation != self.generation:
            return self.state
        prev = self.state
        if not prev.is_active:
            return prev
        self.state = tick_timed(prev, self.config, self._pick)
        new = self.state

        if prev.phase is TimedPhase.EXERCISING and new.phase is TimedPhase.RESTING:
            self._record_set(prev.current_exercise)
            self._event(EventType.SET_COMPLETED)
            self._event(EventType.REST_STARTED)
        elif prev.phase is TimedPhase.RESTING and new.phase is TimedPhase.EXERCISING:
            self.aggregator.reset_rep_counts()
            self._event(EventType.SET_STARTED)
        elif not new.is_active:
            self._complete()
        return self.state

    def _record_set(self, exercise_id: Optional[str]):
        ex = find_exercise(exercise_id)
        if ex is None:
            return
        count = self.aggregator.read()
        self.entries.append(entry_for(ex, count.left, count.right))

    def _complete(self):
        self.generation += 1
        record = WorkoutRecord(self.start_time or self.clock(), self.clock(), list(self.entries), MODE)
        self.last_record = record
        logger.info("timed session complete: %d sets", record.set_count)
        self._event(EventType.SESSION_COMPLETED)
        deliver_record(self.record_sink, record)

    def snapshot(self) -> dict:
        s = self.state
        cur = find_exercise(s.current_exercise)
        nxt = find_exercise(s.upcoming_exercise)
        return {
            "mode": MODE,
            "phase": s.phase.value,
            "timer_seconds": s.timer_seconds,
            "current_exercise": cur.name if cur else None,
            "upcoming_exercise": nxt.name if nxt else None,
            "set_number": s.set_number,
            "total_sets": s.total_sets,
            "is_complete": self.last_record is not None and not s.is_active,
        }
