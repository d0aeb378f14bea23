"""
Static exercise registry.

Definitions are frozen and shared by reference; every other component looks them up here
instead of copying them.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

from reptrack.counter.pose_core import LANDMARK_MAP, resolve_points

Side = Literal["left", "right"]
SIDES: Tuple[Side, Side] = ("left", "right")


class SignalType(str, Enum):
    ANGLE = "angle"
    POSITION = "position"


@dataclass(frozen=True)
class SignalSpec:
    id: str
    points: Tuple[str, ...]
    min_threshold: float
    max_threshold: float
    side: Optional[Side] = None
    is_rep_counter: bool = True
    # Display hint only in threshold-crossing mode; picks the rest end in phase-sequence mode
    relaxed_is_high: bool = True

    @property
    def joint_names(self) -> Tuple[str, ...]:
        return resolve_points(self.side, self.points)

    @property
    def counter_side(self) -> Side:
        """Side whose rep count this signal drives; unsided signals count on the left."""
        return self.side or "left"


@dataclass(frozen=True)
class LandmarkSet:
    primary: Tuple[str, ...] = ()
    secondary: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExerciseDefinition:
    id: str
    name: str
    is_two_sided: bool
    signal_type: SignalType
    tracked_signals: Tuple[SignalSpec, ...]
    has_weight: bool = False
    landmarks: Dict[Optional[str], LandmarkSet] = field(default_factory=dict, hash=False, compare=False)
    instructions: str = ""

    def landmarks_for(self, side: Optional[str]) -> LandmarkSet:
        return self.landmarks.get(side) or self.landmarks.get(None) or LandmarkSet()

    def counter_signal(self, side: Side) -> Optional[SignalSpec]:
        """First rep-counting signal driving the given side, if any."""
        for spec in self.tracked_signals:
            if spec.is_rep_counter and spec.counter_side == side:
                return spec
        return None

    @property
    def counted_sides(self) -> Tuple[Side, ...]:
        return tuple(s for s in SIDES if self.counter_signal(s) is not None)


def _arms(primary: Tuple[str, ...], secondary: Tuple[str, ...]) -> Dict[Optional[str], LandmarkSet]:
    return {
        side: LandmarkSet(resolve_points(side, primary), resolve_points(side, secondary))
        for side in SIDES
    }


def _pair(prefix: str, points, lo: float, hi: float, relaxed_is_high: bool) -> Tuple[SignalSpec, ...]:
    return tuple(
        SignalSpec(f"{side}{prefix}", tuple(points), lo, hi, side=side, relaxed_is_high=relaxed_is_high)
        for side in SIDES
    )


BICEP_CURLS = ExerciseDefinition(
    id="bicep-curls",
    name="Bicep Curls",
    is_two_sided=True,
    has_weight=True,
    signal_type=SignalType.ANGLE,
    tracked_signals=_pair("ElbowCurlAngle", ("shoulder", "elbow", "wrist"), 45, 160, True),
    landmarks=_arms(("shoulder", "elbow", "wrist"), ("hip",)),
    instructions="Keep your elbows tucked in. Control the movement.",
)

TRICEP_KICKBACKS = ExerciseDefinition(
    id="tricep-kickbacks",
    name="Tricep Kickbacks",
    is_two_sided=True,
    has_weight=True,
    signal_type=SignalType.ANGLE,
    tracked_signals=_pair("ElbowExtensionAngle", ("shoulder", "elbow", "wrist"), 90, 170, False),
    landmarks=_arms(("shoulder", "elbow", "wrist"), ("hip", "knee")),
)

SQUATS = ExerciseDefinition(
    id="squats",
    name="Squats",
    is_two_sided=True,
    signal_type=SignalType.ANGLE,
    tracked_signals=_pair("KneeSquatAngle", ("hip", "knee", "ankle"), 90, 160, True),
    landmarks=_arms(("hip", "knee", "ankle"), ("shoulder",)),
    instructions="Sit back into a chair, chest up, knees behind your toes.",
)

DUMBBELL_ROWS = ExerciseDefinition(
    id="dumbell-rows",
    name="Dumbell Rows",
    is_two_sided=True,
    has_weight=True,
    signal_type=SignalType.ANGLE,
    tracked_signals=_pair("RowAngle", ("shoulder", "elbow", "wrist"), 90, 150, True),
    landmarks=_arms(("shoulder", "elbow", "wrist"), ("hip",)),
)

RENEGADE_ROWS = ExerciseDefinition(
    id="dumbbell-renegade-rows",
    name="Dumbbell Renegade Rows",
    is_two_sided=True,
    has_weight=True,
    signal_type=SignalType.ANGLE,
    tracked_signals=_pair("ElbowRowAngle", ("shoulder", "elbow", "wrist"), 30, 150, False),
    landmarks=_arms(("shoulder", "elbow", "wrist"), ("hip",)),
)

SEATED_OVERHEAD_PRESS = ExerciseDefinition(
    id="seated-overhead-press",
    name="Seated Overhead Press",
    is_two_sided=False,
    has_weight=True,
    signal_type=SignalType.ANGLE,
    tracked_signals=(
        SignalSpec("leftShoulderAbductionAngle", ("elbow", "shoulder", "hip"), 75, 150,
                   side="left", relaxed_is_high=False),
    ),
    landmarks=_arms(("shoulder", "elbow", "wrist", "hip"), ("hip",)),
)

KETTLEBELL_SWINGS = ExerciseDefinition(
    id="kettlebell-swings",
    name="Kettlebell Swings",
    is_two_sided=False,
    has_weight=True,
    signal_type=SignalType.ANGLE,
    tracked_signals=(
        SignalSpec("leftShoulderAngle", ("hip", "shoulder", "wrist"), 30, 80,
                   side="left", relaxed_is_high=False),
    ),
    landmarks={"left": LandmarkSet(("left_hip", "left_shoulder", "left_wrist"), ("left_shoulder",))},
)

JUMPING_JACKS = ExerciseDefinition(
    id="jumping-jacks",
    name="Jumping Jacks",
    is_two_sided=False,
    signal_type=SignalType.POSITION,
    tracked_signals=(
        # wrist-to-wrist distance: together overhead below min, apart at the sides above max
        SignalSpec("handsTogetherAboveHead", ("left_wrist", "right_wrist"), 0.18, 0.35,
                   relaxed_is_high=True),
    ),
    landmarks={None: LandmarkSet(
        ("left_wrist", "right_wrist", "nose", "left_ankle", "right_ankle"),
        ("left_shoulder", "right_shoulder"),
    )},
    instructions="Jump, spreading your legs and raising your arms overhead until your hands touch.",
)

EXERCISES: Dict[str, ExerciseDefinition] = {
    ex.id: ex
    for ex in (
        BICEP_CURLS,
        TRICEP_KICKBACKS,
        SQUATS,
        DUMBBELL_ROWS,
        RENEGADE_ROWS,
        SEATED_OVERHEAD_PRESS,
        KETTLEBELL_SWINGS,
        JUMPING_JACKS,
    )
}


def get_exercise(exercise_id: str) -> ExerciseDefinition:
    try:
        return EXERCISES[exercise_id]
    except KeyError:
        raise KeyError(f"unknown exercise id: {exercise_id!r}") from None


def find_exercise(exercise_id: Optional[str]) -> Optional[ExerciseDefinition]:
    if exercise_id is None:
        return None
    return EXERCISES.get(exercise_id)


def validate_exercise(ex: ExerciseDefinition) -> List[str]:
    """Development-time checks; the frame path never raises on these."""
    problems = []
    expected = 3 if ex.signal_type is SignalType.ANGLE else 2
    for spec in ex.tracked_signals:
        if len(spec.points) != expected:
            problems.append(f"{ex.id}/{spec.id}: expected {expected} points, got {len(spec.points)}")
        if spec.min_threshold >= spec.max_threshold:
            problems.append(f"{ex.id}/{spec.id}: min_threshold must be below max_threshold")
        for name in spec.joint_names:
            if name not in LANDMARK_MAP:
                problems.append(f"{ex.id}/{spec.id}: unknown joint {name!r}")
    for side, lset in ex.landmarks.items():
        for name in lset.primary + lset.secondary:
            if name not in LANDMARK_MAP:
                problems.append(f"{ex.id}/landmarks[{side}]: unknown joint {name!r}")
    if ex.is_two_sided and len(ex.counted_sides) < 2:
        problems.append(f"{ex.id}: two-sided exercise without a counter for both sides")
    return problems


def validate_registry(registry: Optional[Dict[str, ExerciseDefinition]] = None) -> List[str]:
    registry = EXERCISES if registry is None else registry
    problems = []
    for key, ex in registry.items():
        if key != ex.id:
            problems.append(f"{key}: registered under a different id ({ex.id})")
        problems.extend(validate_exercise(ex))
    return problems
