import math
import random

import pytest

from reptrack.common.config import TrackerSettings
from reptrack.counter.aggregator import RepAggregator
from reptrack.counter.pose_core import LANDMARK_MAP, NUM_LANDMARKS


def arm_landmarks(left_angle=None, right_angle=None, visibility=1.0, wrist_gap=None):
    """
    A 33-joint pose whose elbow angles (shoulder-elbow-wrist) are the given degrees.
    A None angle puts the wrist on the elbow, which makes the angle undefined.
    """
    lms = [{"x": 0.5, "y": 0.5, "z": 0.0, "visibility": visibility} for _ in range(NUM_LANDMARKS)]

    def place(name, x, y):
        lms[LANDMARK_MAP[name]].update(x=x, y=y)

    for side, cx, angle in (("left", 0.35, left_angle), ("right", 0.65, right_angle)):
        place(f"{side}_shoulder", cx, 0.3)
        place(f"{side}_elbow", cx, 0.5)
        place(f"{side}_hip", cx, 0.8)
        if angle is None:
            place(f"{side}_wrist", cx, 0.5)
        else:
            rad = math.radians(angle)
            place(f"{side}_wrist", cx + 0.2 * math.sin(rad), 0.5 - 0.2 * math.cos(rad))
    if wrist_gap is not None:
        place("left_wrist", 0.5 - wrist_gap / 2, 0.2)
        place("right_wrist", 0.5 + wrist_gap / 2, 0.2)
    return lms


@pytest.fixture
def settings():
    return TrackerSettings()


@pytest.fixture
def aggregator():
    return RepAggregator()


@pytest.fixture
def rng():
    return random.Random(7)


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds=1.0):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def records():
    return []
