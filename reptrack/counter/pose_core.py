from __future__ import annotations
import math
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

# MediaPipe Pose landmark order (33 joints)
LANDMARK_NAMES = (
    "nose",
    "left_eye_inner", "left_eye", "left_eye_outer",
    "right_eye_inner", "right_eye", "right_eye_outer",
    "left_ear", "right_ear",
    "mouth_left", "mouth_right",
    "left_shoulder", "right_shoulder",
    "left_elbow", "right_elbow",
    "left_wrist", "right_wrist",
    "left_pinky", "right_pinky",
    "left_index", "right_index",
    "left_thumb", "right_thumb",
    "left_hip", "right_hip",
    "left_knee", "right_knee",
    "left_ankle", "right_ankle",
    "left_heel", "right_heel",
    "left_foot_index", "right_foot_index",
)
LANDMARK_MAP: Dict[str, int] = {name: i for i, name in enumerate(LANDMARK_NAMES)}
NUM_LANDMARKS = len(LANDMARK_NAMES)


class LandmarkFrame:
    """
    One frame of pose output as an (N, 4) array of x, y, z, visibility.
    Missing visibility is stored as 0.0, which the visibility gate treats as not visible.
    """
    __slots__ = ("data",)

    def __init__(self, data: np.ndarray):
        self.data = data

    def __len__(self) -> int:
        return int(self.data.shape[0])

    @classmethod
    def from_landmarks(cls, landmarks: Any) -> Optional["LandmarkFrame"]:
        """Accepts an (N, 3|4) array, a list of dicts, or objects with x/y/z/visibility attributes."""
        if landmarks is None:
            return None
        if isinstance(landmarks, LandmarkFrame):
            return landmarks
        if isinstance(landmarks, np.ndarray):
            if landmarks.ndim != 2 or landmarks.shape[0] == 0 or landmarks.shape[1] < 3:
                return None
            arr = np.zeros((landmarks.shape[0], 4), dtype=float)
            arr[:, : min(4, landmarks.shape[1])] = landmarks[:, :4]
            return cls(arr)
        try:
            rows = [_row(lm) for lm in list(landmarks)[:NUM_LANDMARKS]]
        except (TypeError, ValueError, KeyError, AttributeError):
            return None
        if not rows:
            return None
        return cls(np.asarray(rows, dtype=float))

    def index_of(self, name: str) -> Optional[int]:
        idx = LANDMARK_MAP.get(name)
        if idx is None or idx >= len(self):
            return None
        return idx

    def point(self, name: str) -> Optional[Tuple[float, float]]:
        idx = self.index_of(name)
        if idx is None:
            return None
        x, y = self.data[idx, 0], self.data[idx, 1]
        if not (np.isfinite(x) and np.isfinite(y)):
            return None
        return float(x), float(y)

    def visibility(self, name: str) -> Optional[float]:
        idx = self.index_of(name)
        if idx is None:
            return None
        v = self.data[idx, 3]
        return float(v) if np.isfinite(v) else 0.0


def _row(lm: Any) -> Tuple[float, float, float, float]:
    if isinstance(lm, dict):
        vis = lm.get("visibility")
        return float(lm["x"]), float(lm["y"]), float(lm.get("z", 0.0) or 0.0), float(vis or 0.0)
    if isinstance(lm, (tuple, list)):
        vals = list(lm) + [0.0] * (4 - len(lm))
        return float(vals[0]), float(vals[1]), float(vals[2] or 0.0), float(vals[3] or 0.0)
    vis = getattr(lm, "visibility", None)
    return float(lm.x), float(lm.y), float(getattr(lm, "z", 0.0) or 0.0), float(vis or 0.0)


# Utility math

def angle_3pt(a: Tuple[float, float], b: Tuple[float, float], c: Tuple[float, float]) -> Optional[float]:
    """Return angle ABC in degrees with B as vertex, or None for degenerate input."""
    if a == b or c == b:
        return None
    ang = math.degrees(
        math.atan2(c[1] - b[1], c[0] - b[0]) - math.atan2(a[1] - b[1], a[0] - b[0])
    )
    ang = abs(ang)
    if ang > 180:
        ang = 360 - ang
    return ang


def distance_2d(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """Planar distance in normalised image units."""
    return float(np.linalg.norm(np.subtract(a, b)))


def resolve_points(side: Optional[str], points: Sequence[str]) -> Tuple[str, ...]:
    """Generic point names ('elbow') become side-qualified joint names ('left_elbow')."""
    out = []
    for pt in points:
        if side and not pt.startswith(("left_", "right_")):
            out.append(f"{side}_{pt}")
        else:
            out.append(pt)
    return tuple(out)
