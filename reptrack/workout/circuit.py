"""
Structured workouts: an ordered plan of single sets and repeatable circuits.

The plan is flattened once; circuit repetitions are not expanded up front. The pure
advance() walks the flat plan and loops back to a circuit's first step until its
repetition counter reaches the total.
"""
from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from reptrack.common.events import (
    EventEmitter,
    EventType,
    ExerciseEntry,
    RecordSink,
    SessionEvent,
    WorkoutRecord,
    deliver_record,
)
from reptrack.counter.aggregator import RepAggregator
from reptrack.counter.exercises import ExerciseDefinition, find_exercise

logger = logging.getLogger(__name__)

MODE = "circuit"


@dataclass(frozen=True)
class PlanSet:
    exercise_id: str
    target_reps: int
    weight: Optional[float] = None


@dataclass(frozen=True)
class Circuit:
    id: str
    name: str
    repetitions: int
    elements: Tuple[PlanSet, ...] = ()


PlanItem = Union[PlanSet, Circuit]


@dataclass(frozen=True)
class ParentCircuit:
    id: str
    name: str
    repetition_index: int
    total_repetitions: int
    step_index_in_circuit: int
    steps_in_circuit: int

    @property
    def is_last_step(self) -> bool:
        return self.step_index_in_circuit == self.steps_in_circuit - 1


@dataclass(frozen=True)
class PlanStep:
    exercise_id: str
    target_reps: int
    weight: Optional[float] = None
    parent_circuit: Optional[ParentCircuit] = None


@dataclass(frozen=True)
class CircuitCounter:
    current: int
    total: int


@dataclass(frozen=True)
class CircuitSessionState:
    flattened_plan: Tuple[PlanStep, ...] = ()
    current_index: int = 0
    circuit_counters: Mapping[str, CircuitCounter] = field(default_factory=dict)
    is_active: bool = False
    is_complete: bool = False

    @property
    def current_step(self) -> Optional[PlanStep]:
        if 0 <= self.current_index < len(self.flattened_plan):
            return self.flattened_plan[self.current_index]
        return None


def flatten_plan(plan: Sequence[PlanItem]) -> Tuple[PlanStep, ...]:
    steps: List[PlanStep] = []
    for item in plan:
        if isinstance(item, Circuit):
            total = max(1, item.repetitions)
            n = len(item.elements)
            for i, el in enumerate(item.elements):
                parent = ParentCircuit(item.id, item.name, 1, total, i, n)
                steps.append(PlanStep(el.exercise_id, el.target_reps, el.weight, parent))
        else:
            steps.append(PlanStep(item.exercise_id, item.target_reps, item.weight))
    return tuple(steps)


def initial_counters(steps: Sequence[PlanStep]) -> Dict[str, CircuitCounter]:
    counters: Dict[str, CircuitCounter] = {}
    for step in steps:
        pc = step.parent_circuit
        if pc is not None and pc.id not in counters:
            counters[pc.id] = CircuitCounter(1, pc.total_repetitions)
    return counters


def _with_repetition(steps: Sequence[PlanStep], circuit_id: str, index: int) -> Tuple[PlanStep, ...]:
    out = []
    for s in steps:
        if s.parent_circuit is not None and s.parent_circuit.id == circuit_id:
            s = replace(s, parent_circuit=replace(s.parent_circuit, repetition_index=index))
        out.append(s)
    return tuple(out)


def advance(state: CircuitSessionState) -> CircuitSessionState:
    """Next position in the plan; never mutates the given state or its plan."""
    step = state.current_step
    if step is None or state.is_complete:
        return state
    pc = step.parent_circuit
    if pc is not None and pc.is_last_step:
        counter = state.circuit_counters.get(pc.id)
        if counter is not None and counter.current < counter.total:
            rep = counter.current + 1
            counters = dict(state.circuit_counters)
            counters[pc.id] = CircuitCounter(rep, counter.total)
            return replace(
                state,
                flattened_plan=_with_repetition(state.flattened_plan, pc.id, rep),
                current_index=state.current_index - (pc.steps_in_circuit - 1),
                circuit_counters=counters,
            )
    if state.current_index >= len(state.flattened_plan) - 1:
        return replace(state, is_active=False, is_complete=True)
    return replace(state, current_index=state.current_index + 1)


def reset_state(state: CircuitSessionState) -> CircuitSessionState:
    plan = state.flattened_plan
    for cid in initial_counters(plan):
        plan = _with_repetition(plan, cid, 1)
    return CircuitSessionState(plan, 0, initial_counters(plan), False, False)


def plan_total_sets(steps: Sequence[PlanStep]) -> int:
    """Plain sets count once, circuit steps once per repetition."""
    return sum(s.parent_circuit.total_repetitions if s.parent_circuit else 1 for s in steps)


def _name(exercise_id: Optional[str]) -> Optional[str]:
    ex = find_exercise(exercise_id)
    return ex.name if ex else exercise_id


class CircuitSession(EventEmitter):
    def __init__(
        self,
        aggregator: RepAggregator,
        record_sink: Optional[RecordSink] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.aggregator = aggregator
        self.record_sink = record_sink
        self.clock = clock
        self.state = CircuitSessionState()
        self.generation = 0
        self.entries: List[ExerciseEntry] = []
        self.start_time: Optional[float] = None
        self.elapsed_seconds = 0

    @property
    def is_active(self) -> bool:
        return self.state.is_active

    @property
    def is_complete(self) -> bool:
        return self.state.is_complete

    @property
    def total_sets(self) -> int:
        return plan_total_sets(self.state.flattened_plan)

    @property
    def overall_set_number(self) -> int:
        if not self.state.flattened_plan:
            return 0
        return min(len(self.entries) + 1, self.total_sets)

    @property
    def current_exercise(self) -> Optional[ExerciseDefinition]:
        step = self.state.current_step
        if not self.is_active or step is None:
            return None
        return find_exercise(step.exercise_id)

    def _event(self, kind: EventType):
        step = self.state.current_step
        self._emit(SessionEvent(kind, MODE, self.clock(), step.exercise_id if step else None,
                                self.overall_set_number))

    def initialize_workout(self, plan: Sequence[PlanItem]) -> bool:
        steps = flatten_plan(plan)
        if not steps:
            logger.warning("empty workout plan")
            return False
        self.generation += 1
        self.entries = []
        self.elapsed_seconds = 0
        self.start_time = self.clock()
        self.state = CircuitSessionState(steps, 0, initial_counters(steps), True, False)
        self.aggregator.reset_rep_counts()
        logger.info("structured workout started: %d steps, %d sets", len(steps), self.total_sets)
        self._event(EventType.SESSION_STARTED)
        self._event(EventType.SET_STARTED)
        return True

    def advance_to_next_set(self, completed_reps: Optional[int] = None) -> bool:
        """Record the current set and move on. Returns False when nothing is running."""
        step = self.state.current_step
        if not self.is_active or step is None:
            logger.debug("advance_to_next_set with no active workout")
            return False
        self._record(step, completed_reps)
        self._event(EventType.SET_COMPLETED)
        self.state = advance(self.state)
        self.aggregator.reset_rep_counts()
        if self.state.is_complete:
            self._finish()
        else:
            self._event(EventType.SET_STARTED)
        return True

    def _record(self, step: PlanStep, completed_reps: Optional[int]):
        count = self.aggregator.read()
        ex = find_exercise(step.exercise_id)
        two_sided = ex is not None and ex.is_two_sided
        if completed_reps is None:
            completed_reps = max(count.left, count.right) if two_sided else count.left
        self.entries.append(ExerciseEntry(
            step.exercise_id,
            completed_reps,
            count.left if two_sided else None,
            count.right if two_sided else None,
            step.weight,
        ))

    def _finish(self):
        self.generation += 1
        record = WorkoutRecord(self.start_time or self.clock(), self.clock(), list(self.entries), MODE)
        logger.info("structured workout complete: %d sets", record.set_count)
        self._event(EventType.SESSION_COMPLETED)
        deliver_record(self.record_sink, record)

    def reset_workout(self):
        self.generation += 1
        self.entries = []
        self.elapsed_seconds = 0
        self.state = reset_state(self.state)

    def toggle_workout(self) -> bool:
        if self.state.current_step is None or self.is_complete:
            return False
        self.state = replace(self.state, is_active=not self.state.is_active)
        return self.state.is_active

    def stop(self):
        was_active = self.is_active
        self.generation += 1
        self.state = CircuitSessionState()
        self.entries = []
        self.elapsed_seconds = 0
        if was_active:
            self._event(EventType.SESSION_STOPPED)

    def tick(self, generation: Optional[int] = None) -> CircuitSessionState:
        """Sets are rep-driven; the 1 Hz tick only tracks elapsed time."""
        if generation is not None and generation != self.generation:
            return self.state
        if self.is_active:
            self.elapsed_seconds += 1
        return self.state

    def get_current_exercise_details(self) -> Optional[dict]:
        step = self.state.current_step
        if step is None:
            return None
        ex = find_exercise(step.exercise_id)
        peek = advance(replace(self.state, is_complete=False))
        nxt = None if peek.is_complete else peek.current_step
        pc = step.parent_circuit
        return {
            "exercise_id": step.exercise_id,
            "exercise_name": ex.name if ex else step.exercise_id,
            "is_two_sided": ex.is_two_sided if ex else False,
            "has_weight": ex.has_weight if ex else False,
            "target_reps": step.target_reps,
            "weight": step.weight,
            "in_circuit": pc is not None,
            "circuit_name": pc.name if pc else None,
            "circuit_step": pc.step_index_in_circuit + 1 if pc else None,
            "circuit_steps": pc.steps_in_circuit if pc else None,
            "circuit_repetition": pc.repetition_index if pc else None,
            "circuit_total_repetitions": pc.total_repetitions if pc else None,
            "set_number": self.overall_set_number,
            "total_sets": self.total_sets,
            "next_exercise_name": _name(nxt.exercise_id) if nxt else None,
        }

    def stats(self) -> dict:
        return {
            "total_reps": sum(e.reps for e in self.entries),
            "completed_sets": len(self.entries),
            "total_sets": self.total_sets,
            "is_complete": self.is_complete,
            "elapsed_seconds": self.elapsed_seconds,
        }

    def snapshot(self) -> dict:
        details = self.get_current_exercise_details()
        return {
            "mode": MODE,
            "is_active": self.is_active,
            "current_index": self.state.current_index,
            "current_exercise": details["exercise_name"] if details else None,
            "upcoming_exercise": details["next_exercise_name"] if details else None,
            "set_number": self.overall_set_number,
            "total_sets": self.total_sets,
            "is_complete": self.is_complete,
        }


def plan_from_dicts(items: Sequence[dict]) -> List[PlanItem]:
    """
    Builds a plan from plain JSON-like data:
    {"exercise_id", "target_reps", "weight"?} for a set, or
    {"type": "circuit", "id", "name", "repetitions", "elements": [...]} for a circuit.
    """
    plan: List[PlanItem] = []
    for i, item in enumerate(items):
        if item.get("type") == "circuit" or "elements" in item:
            plan.append(Circuit(
                id=str(item.get("id") or f"circuit-{i}"),
                name=item.get("name", ""),
                repetitions=int(item.get("repetitions", 1)),
                elements=tuple(_plan_set(el) for el in item.get("elements", [])),
            ))
        else:
            plan.append(_plan_set(item))
    return plan


def _plan_set(d: dict) -> PlanSet:
    weight = d.get("weight")
    return PlanSet(d["exercise_id"], int(d.get("target_reps", 0)), float(weight) if weight is not None else None)
