"""
Ladder session: target reps climb from start_reps to top_reps, then descend to end_reps.
Sets end when the user (or auto-advance) completes them; only rests are timed.
"""
from __future__ import annotations
import logging
import math
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple

from reptrack.common.config import LadderConfig
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
from reptrack.counter.aggregator import RepAggregator, RepCount
from reptrack.counter.exercises import BICEP_CURLS, ExerciseDefinition, find_exercise

logger = logging.getLogger(__name__)

MODE = "ladder"


class LadderPhase(str, Enum):
    IDLE = "idle"
    EXERCISING = "exercising"
    RESTING = "resting"
    COMPLETED = "completed"


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class LadderSessionState:
    phase: LadderPhase = LadderPhase.IDLE
    current_reps: int = 1
    direction: Direction = Direction.UP
    timer_seconds: int = 0
    set_number: int = 0
    total_sets: int = 0
    # set once auto-advance has fired for the current exercising phase
    advanced: bool = False

    @property
    def is_active(self) -> bool:
        return self.phase in (LadderPhase.EXERCISING, LadderPhase.RESTING)


def calculate_next_reps(current: int, direction: Direction, config: LadderConfig) -> Tuple[int, Direction]:
    if direction is Direction.UP:
        nxt = min(current + config.increment, config.top_reps)
        return nxt, (Direction.DOWN if nxt >= config.top_reps else Direction.UP)
    return max(current - config.increment, config.end_reps), Direction.DOWN


def is_complete(current: int, direction: Direction, config: LadderConfig) -> bool:
    return direction is Direction.DOWN and current <= config.end_reps


def total_sets(config: LadderConfig) -> int:
    if not config.is_valid:
        return 0
    up = math.ceil((config.top_reps - config.start_reps) / config.increment) + 1
    down = max(0, math.ceil((config.top_reps - config.end_reps) / config.increment))
    return max(0, up + down)


def initial_state(config: LadderConfig) -> LadderSessionState:
    return LadderSessionState(current_reps=config.start_reps, total_sets=total_sets(config))


def start_state(config: LadderConfig) -> LadderSessionState:
    # a ladder that starts at the top only descends
    direction = Direction.DOWN if config.start_reps >= config.top_reps else Direction.UP
    return replace(
        initial_state(config),
        phase=LadderPhase.EXERCISING,
        direction=direction,
        set_number=1,
    )


def target_reached(count: RepCount, target: int, two_sided: bool) -> bool:
    if two_sided:
        return count.left >= target and count.right >= target
    return count.left >= target


def tick_ladder(state: LadderSessionState, config: LadderConfig) -> LadderSessionState:
    """Only the rest is timed; an exhausted rest steps to the next rung."""
    if state.phase is not LadderPhase.RESTING:
        return state
    remaining = state.timer_seconds - 1
    if remaining > 0:
        return replace(state, timer_seconds=remaining)
    nxt, direction = calculate_next_reps(state.current_reps, state.direction, config)
    return replace(
        state,
        phase=LadderPhase.EXERCISING,
        current_reps=nxt,
        direction=direction,
        timer_seconds=0,
        set_number=state.set_number + 1,
        advanced=False,
    )


class LadderSession(EventEmitter):
    def __init__(
        self,
        aggregator: RepAggregator,
        config: Optional[LadderConfig] = None,
        exercise: Optional[ExerciseDefinition] = None,
        record_sink: Optional[RecordSink] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.aggregator = aggregator
        self.config = config or LadderConfig()
        self.exercise = exercise or BICEP_CURLS
        self.weight: Optional[float] = None
        self.record_sink = record_sink
        self.clock = clock
        self.state = initial_state(self.config)
        self.generation = 0
        self.entries: List[ExerciseEntry] = []
        self.start_time: Optional[float] = None
        self.stats: Optional[dict] = None
        self._reps_done = 0
        self._peak_reps = 0

    @property
    def is_active(self) -> bool:
        return self.state.is_active

    @property
    def current_exercise(self) -> Optional[ExerciseDefinition]:
        return self.exercise if self.is_active else None

    def _event(self, kind: EventType):
        self._emit(SessionEvent(kind, MODE, self.clock(), self.exercise.id, self.state.set_number))

    def select_exercise(self, exercise_id: str, weight: Optional[float] = None) -> bool:
        if self.is_active:
            logger.debug("ignoring exercise change while ladder is active")
            return False
        ex = find_exercise(exercise_id)
        if ex is None:
            logger.warning("unknown exercise for ladder: %s", exercise_id)
            return False
        self.exercise = ex
        self.weight = weight
        return True

    def update_config(self, config: LadderConfig) -> bool:
        if self.is_active:
            logger.debug("ignoring ladder config change while active")
            return False
        self.config = config
        self.state = initial_state(config)
        return True

    def start(self) -> bool:
        if self.is_active:
            return False
        self.generation += 1
        self.entries = []
        self.stats = None
        self._reps_done = 0
        self._peak_reps = 0
        self.start_time = self.clock()
        self.aggregator.reset_rep_counts()
        if not self.config.is_valid:
            logger.warning("ladder misconfigured (start=%d top=%d increment=%d), nothing to do",
                           self.config.start_reps, self.config.top_reps, self.config.increment)
            self.state = replace(initial_state(self.config), phase=LadderPhase.COMPLETED)
            self.stats = self._build_stats()
            self._event(EventType.SESSION_COMPLETED)
            return True
        self.state = start_state(self.config)
        logger.info("ladder started: %s, %d sets", self.exercise.id, self.state.total_sets)
        self._event(EventType.SESSION_STARTED)
        self._event(EventType.SET_STARTED)
        return True

    def stop(self):
        was_active = self.is_active
        self.generation += 1
        self.state = initial_state(self.config)
        if was_active:
            logger.info("ladder stopped")
            self._event(EventType.SESSION_STOPPED)

    def toggle(self) -> bool:
        if self.is_active:
            self.stop()
            return False
        return self.start()

    def complete_current_set(self) -> bool:
        s = self.state
        if s.phase is not LadderPhase.EXERCISING:
            logger.debug("complete_current_set outside an exercising phase")
            return False
        count = self.aggregator.read()
        self.entries.append(entry_for(self.exercise, count.left, count.right, self.weight))
        self._reps_done += s.current_reps
        self._peak_reps = max(self._peak_reps, s.current_reps)
        self._event(EventType.SET_COMPLETED)

        if is_complete(s.current_reps, s.direction, self.config):
            self._finish()
            return True
        self.state = replace(
            s,
            phase=LadderPhase.RESTING,
            timer_seconds=s.current_reps * self.config.rest_time_per_rep,
            advanced=True,
        )
        self._event(EventType.REST_STARTED)
        return True

    def observe(self, count: Optional[RepCount] = None) -> bool:
        """Frame-side auto-advance; must run after the frame's count update."""
        s = self.state
        if not self.config.auto_advance or s.phase is not LadderPhase.EXERCISING or s.advanced:
            return False
        count = count or self.aggregator.read()
        if not target_reached(count, s.current_reps, self.exercise.is_two_sided):
            return False
        logger.info("ladder target of %d reached, completing set", s.current_reps)
        return self.complete_current_set()

    def tick(self, generation: Optional[int] = None) -> LadderSessionState:
        if generation is not None and generation != self.generation:
            return self.state
        prev = self.state
        self.state = tick_ladder(prev, self.config)
        if prev.phase is LadderPhase.RESTING and self.state.phase is LadderPhase.EXERCISING:
            self.aggregator.reset_rep_counts()
            self._event(EventType.SET_STARTED)
        return self.state

    def _build_stats(self) -> dict:
        end = self.clock()
        return {
            "exercise": self.exercise.name,
            "total_reps": self._reps_done,
            "total_sets": len(self.entries),
            "peak_reps": self._peak_reps,
            "total_time": end - (self.start_time or end),
        }

    def _finish(self):
        self.generation += 1
        self.state = replace(self.state, phase=LadderPhase.COMPLETED, timer_seconds=0, advanced=True)
        self.stats = self._build_stats()
        record = WorkoutRecord(self.start_time or self.clock(), self.clock(), list(self.entries), MODE)
        logger.info("ladder complete: %s", self.stats)
        self._event(EventType.SESSION_COMPLETED)
        deliver_record(self.record_sink, record)

    def snapshot(self) -> dict:
        s = self.state
        return {
            "mode": MODE,
            "phase": s.phase.value,
            "timer_seconds": s.timer_seconds,
            "current_exercise": self.current_exercise.name if self.current_exercise else None,
            "current_reps": s.current_reps,
            "direction": s.direction.value,
            "set_number": s.set_number,
            "total_sets": s.total_sets,
            "is_complete": s.phase is LadderPhase.COMPLETED,
            "stats": self.stats,
        }
