from __future__ import annotations
import logging
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

EventSink = Callable[[dict], None]


class EventType(str, Enum):
    SESSION_STARTED = "session_started"
    SESSION_STOPPED = "session_stopped"
    SESSION_COMPLETED = "session_completed"
    SET_STARTED = "set_started"
    SET_COMPLETED = "set_completed"
    REST_STARTED = "rest_started"
    REP = "rep"
    TRACE = "trace"


@dataclass
class SessionEvent:
    type: EventType
    mode: str
    ts: float
    exercise_id: Optional[str] = None
    set_number: int = 0

    def to_dict(self) -> dict:
        d = asdict(self)
        d["type"] = self.type.value
        return d


@dataclass
class RepEvent:
    type: EventType
    ts: float
    side: str
    rep_count: int
    exercise_id: str

    def to_dict(self) -> dict:
        d = asdict(self)
        d["type"] = self.type.value
        return d


@dataclass
class ExerciseEntry:
    exercise_id: str
    reps: int
    reps_left: Optional[int] = None
    reps_right: Optional[int] = None
    weight: Optional[float] = None


@dataclass
class WorkoutRecord:
    """Summary handed to the persistence sink when a session ends."""
    start_time: float
    end_time: float
    exercises: List[ExerciseEntry] = field(default_factory=list)
    mode: str = ""

    @property
    def set_count(self) -> int:
        return len(self.exercises)

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "set_count": self.set_count,
            "exercises": [asdict(e) for e in self.exercises],
        }


RecordSink = Callable[[WorkoutRecord], None]


def entry_for(exercise, left: int, right: int, weight: Optional[float] = None) -> ExerciseEntry:
    """Two-sided sets count the better side and keep both; one-sided sets count the left side."""
    if exercise.is_two_sided:
        return ExerciseEntry(exercise.id, max(left, right), left, right, weight)
    return ExerciseEntry(exercise.id, left, None, None, weight)


class EventEmitter:
    """Mixin for objects that publish trace/session events to an optional sink."""

    _event_sink: Optional[EventSink] = None

    def set_event_sink(self, sink: Optional[EventSink]):
        self._event_sink = sink

    def _emit(self, ev):
        if self._event_sink is None:
            return
        if isinstance(ev, dict):
            payload = ev
        elif hasattr(ev, "to_dict"):
            payload = ev.to_dict()
        else:
            payload = {"type": EventType.TRACE.value, "msg": str(ev)}
        try:
            self._event_sink(payload)
        except Exception:
            logger.exception("event sink failed for %s", payload.get("type"))


def deliver_record(sink: Optional[RecordSink], record: WorkoutRecord):
    if sink is None:
        return
    try:
        sink(record)
    except Exception:
        logger.exception("record sink failed for %s session", record.mode)
