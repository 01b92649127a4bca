"""Shared fixtures: profiles, synthetic landmark snapshots, fixed clocks."""

import copy
import math
from typing import Dict, Optional

import pytest

from motioncoach.config import Settings
from motioncoach.profiles import BUILTIN_PROFILE_DATA
from motioncoach.schemas.exercise_profile import ExerciseProfile, load_profile
from motioncoach.schemas.landmarks import BodyPoint, Landmark, PoseSnapshot


# ============================================================================
# Profiles
# ============================================================================

def profile_data(name: str = "squat", **overrides) -> dict:
    """Deep copy of a built-in profile's raw data with top-level overrides."""
    data = copy.deepcopy(BUILTIN_PROFILE_DATA[name])
    data.update(overrides)
    return data


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def squat_profile() -> ExerciseProfile:
    return load_profile(profile_data("squat"))


@pytest.fixture
def calf_raise_profile() -> ExerciseProfile:
    return load_profile(profile_data("calf_raise"))


@pytest.fixture
def lunge_profile() -> ExerciseProfile:
    return load_profile(profile_data("lunge"))


# ============================================================================
# Snapshots
# ============================================================================

KNEE_Y = 0.6
SEGMENT = 0.2


def leg_snapshot(
    left_angle: Optional[float] = None,
    right_angle: Optional[float] = None,
    left_visibility: float = 0.9,
    right_visibility: float = 0.9,
    knee_width: float = 0.2,
    ankle_width: float = 0.2,
) -> PoseSnapshot:
    """
    Snapshot with hip/knee/ankle on each requested side.

    The shin hangs straight down and the thigh is rotated outwards so that
    angle(hip, knee, ankle) equals the requested knee angle. Knee and ankle
    spacing therefore depend only on knee_width and ankle_width.
    """
    landmarks: Dict[BodyPoint, Landmark] = {}
    sides = (
        ("LEFT", left_angle, left_visibility, -1),
        ("RIGHT", right_angle, right_visibility, 1),
    )
    for prefix, knee_angle, visibility, sign in sides:
        if knee_angle is None:
            continue
        theta = math.radians(knee_angle)
        knee_x = 0.5 + sign * knee_width / 2
        ankle_x = 0.5 + sign * ankle_width / 2
        points = {
            "HIP": (knee_x + sign * SEGMENT * math.sin(theta), KNEE_Y + SEGMENT * math.cos(theta)),
            "KNEE": (knee_x, KNEE_Y),
            "ANKLE": (ankle_x, KNEE_Y + SEGMENT),
        }
        for joint, (x, y) in points.items():
            landmarks[BodyPoint[f"{prefix}_{joint}"]] = Landmark(x=x, y=y, visibility=visibility)
    return PoseSnapshot(landmarks=landmarks)


def squat_snapshot(knee_angle: float, visibility: float = 0.9) -> PoseSnapshot:
    return leg_snapshot(left_angle=knee_angle, right_angle=knee_angle,
                        left_visibility=visibility, right_visibility=visibility)


def arm_snapshot(left_angle: float, visibility: float = 0.9) -> PoseSnapshot:
    """Left elbow/shoulder/hip with the torso vertical and the arm raised by ``left_angle``."""
    theta = math.radians(left_angle)
    shoulder_x, shoulder_y = 0.4, 0.3
    landmarks = {
        BodyPoint.LEFT_SHOULDER: Landmark(x=shoulder_x, y=shoulder_y, visibility=visibility),
        BodyPoint.LEFT_HIP: Landmark(x=shoulder_x, y=shoulder_y + 0.3, visibility=visibility),
        BodyPoint.LEFT_ELBOW: Landmark(
            x=shoulder_x - 0.2 * math.sin(theta),
            y=shoulder_y + 0.2 * math.cos(theta),
            visibility=visibility,
        ),
    }
    return PoseSnapshot(landmarks=landmarks)


def heel_snapshot(y: float, visibility: float = 0.9) -> PoseSnapshot:
    landmarks = {}
    for prefix, x in (("LEFT", 0.45), ("RIGHT", 0.55)):
        landmarks[BodyPoint[f"{prefix}_HEEL"]] = Landmark(x=x, y=y, visibility=visibility)
        landmarks[BodyPoint[f"{prefix}_ANKLE"]] = Landmark(x=x, y=y - 0.03, visibility=visibility)
        landmarks[BodyPoint[f"{prefix}_FOOT_INDEX"]] = Landmark(x=x + 0.05, y=y + 0.01, visibility=visibility)
    return PoseSnapshot(landmarks=landmarks)


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
