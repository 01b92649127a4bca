"""
Exercise profile catalog.

Built-in profiles cover the standard rehab movements. Deployments can add
or override profiles with a YAML file (``MOTIONCOACH_PROFILES_PATH``)
mapping a profile name to its fields, e.g.:

    wall_sit:
      measurement:
        kind: angle
        point_a: {left: LEFT_HIP, right: RIGHT_HIP}
        point_b: {left: LEFT_KNEE, right: RIGHT_KNEE}
        point_c: {left: LEFT_ANKLE, right: RIGHT_ANKLE}
      up_threshold: 160
      down_threshold: 100
      shallow_angle: 95
      very_shallow_angle: 110
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from motioncoach.config import Settings, get_settings
from motioncoach.schemas.exercise_profile import ExerciseProfile, InvalidProfileError, load_profile

logger = logging.getLogger(__name__)


class UnknownExerciseError(KeyError):
    """No profile is registered under the requested name."""


def _sides(left: str, right: str) -> Dict[str, str]:
    return {"left": left, "right": right}


_KNEE_ANGLE = {
    "kind": "angle",
    "point_a": _sides("LEFT_HIP", "RIGHT_HIP"),
    "point_b": _sides("LEFT_KNEE", "RIGHT_KNEE"),
    "point_c": _sides("LEFT_ANKLE", "RIGHT_ANKLE"),
}

_HIP_ANGLE = {
    "kind": "angle",
    "point_a": _sides("LEFT_SHOULDER", "RIGHT_SHOULDER"),
    "point_b": _sides("LEFT_HIP", "RIGHT_HIP"),
    "point_c": _sides("LEFT_KNEE", "RIGHT_KNEE"),
}

BUILTIN_PROFILE_DATA: Dict[str, Dict[str, Any]] = {
    "squat": {
        "name": "squat",
        "measurement": _KNEE_ANGLE,
        "up_threshold": 165,
        "down_threshold": 120,
        "shallow_angle": 100,
        "very_shallow_angle": 120,
        "depth_direction": "lower_better",
        "tempo": {
            "down": {"min_ms": 300, "max_ms": 4000},
            "up": {"min_ms": 500, "max_ms": 10000},
        },
        "coaching": {
            "up": "Stand tall and brace your core.",
            "down": "Sit back and lower slowly.",
            "hold_bottom": "Hold at the bottom.",
            "rest": "Drive up through your heels.",
        },
        "form_corrections": {
            "depth": "Go a little lower.",
            "alignment": "Push your knees out over your toes.",
        },
        "depth_label": "Depth",
        "alignment_label": "Knee alignment",
        "alignment": {
            "inner": _sides("LEFT_KNEE", "RIGHT_KNEE"),
            "outer": _sides("LEFT_ANKLE", "RIGHT_ANKLE"),
            "min_ratio": 0.8,
        },
    },
    "hip_hinge": {
        "name": "hip_hinge",
        "measurement": _HIP_ANGLE,
        "up_threshold": 170,
        "down_threshold": 120,
        "shallow_angle": 100,
        "very_shallow_angle": 110,
        "tempo": {"down": {"min_ms": 300, "max_ms": 3000}},
        "coaching": {
            "up": "Stand tall with a neutral spine.",
            "down": "Hinge at the hips, keep your back flat.",
            "rest": "Squeeze your glutes to stand up.",
        },
        "form_corrections": {
            "depth": "Hinge a little further.",
            "too_fast": "Slow the hinge down.",
        },
        "depth_label": "Hip depth",
        "alignment_label": "Hip alignment",
    },
    "lunge": {
        "name": "lunge",
        "measurement": _KNEE_ANGLE,
        "bilateral": True,
        "up_threshold": 160,
        "down_threshold": 110,
        "shallow_angle": 100,
        "very_shallow_angle": 115,
        "tempo": {"down": {"min_ms": 200, "max_ms": 3000}},
        "coaching": {
            "up": "Stand tall, feet hip-width apart.",
            "down": "Step forward and lower your back knee.",
            "rest": "Push back to standing.",
        },
        "form_corrections": {
            "depth": "Lower your back knee closer to the floor.",
        },
        "depth_label": "Lunge depth",
        "alignment_label": "Knee alignment",
    },
    "shoulder_raise": {
        "name": "shoulder_raise",
        "measurement": {
            "kind": "angle",
            "point_a": _sides("LEFT_ELBOW", "RIGHT_ELBOW"),
            "point_b": _sides("LEFT_SHOULDER", "RIGHT_SHOULDER"),
            "point_c": _sides("LEFT_HIP", "RIGHT_HIP"),
        },
        "bilateral": True,
        "up_threshold": 150,
        "down_threshold": 40,
        "shallow_angle": 155,
        "very_shallow_angle": 152,
        "depth_direction": "higher_better",
        "tempo": {"up": {"min_ms": 500, "max_ms": 5000}},
        "coaching": {
            "up": "Raise your arm out to the side.",
            "hold_top": "Hold it there.",
            "down": "Lower slowly with control.",
            "hold_top_target_ms": 1000,
        },
        "form_corrections": {
            "depth": "Lift a little higher.",
        },
        "depth_label": "Range of motion",
        "alignment_label": "Shoulder alignment",
    },
    "calf_raise": {
        "name": "calf_raise",
        "measurement": {
            "kind": "elevation",
            "point": _sides("LEFT_HEEL", "RIGHT_HEEL"),
        },
        "confidence_points": {
            "left": ["LEFT_HEEL", "LEFT_ANKLE", "LEFT_FOOT_INDEX"],
            "right": ["RIGHT_HEEL", "RIGHT_ANKLE", "RIGHT_FOOT_INDEX"],
        },
        "up_threshold": 0.02,
        "down_threshold": 0.005,
        "shallow_angle": 0.03,
        "very_shallow_angle": 0.025,
        "depth_direction": "higher_better",
        "tempo": {"up": {"min_ms": 300, "max_ms": 4000}},
        "coaching": {
            "up": "Rise up onto your toes.",
            "hold_top": "Hold at the top.",
            "down": "Lower your heels slowly.",
        },
        "form_corrections": {
            "depth": "Rise a little higher.",
        },
        "depth_label": "Heel height",
        "alignment_label": "Ankle alignment",
    },
}


@lru_cache
def builtin_profiles() -> Dict[str, ExerciseProfile]:
    return {name: load_profile(data) for name, data in BUILTIN_PROFILE_DATA.items()}


def load_profiles(path: Union[str, Path]) -> Dict[str, ExerciseProfile]:
    """Load and validate every profile in a YAML file."""
    path = Path(path)
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise InvalidProfileError(f"{path}: expected a mapping of profile name to fields")

    profiles: Dict[str, ExerciseProfile] = {}
    for name, fields in data.items():
        if not isinstance(fields, dict):
            raise InvalidProfileError(f"{path}: profile {name!r} must be a mapping")
        fields = dict(fields)
        fields.setdefault("name", name)
        profiles[name] = load_profile(fields)

    logger.info(f"Loaded {len(profiles)} exercise profile(s) from {path}")
    return profiles


@lru_cache
def _custom_profiles(path: str) -> Dict[str, ExerciseProfile]:
    return load_profiles(path)


def available_profiles(settings: Optional[Settings] = None) -> List[str]:
    settings = settings or get_settings()
    names = set(builtin_profiles())
    if settings.profiles_path:
        names.update(_custom_profiles(settings.profiles_path))
    return sorted(names)


def get_profile(name: str, settings: Optional[Settings] = None) -> ExerciseProfile:
    """Custom profiles first, then the built-in catalog."""
    settings = settings or get_settings()
    if settings.profiles_path:
        custom = _custom_profiles(settings.profiles_path)
        if name in custom:
            return custom[name]

    profiles = builtin_profiles()
    if name not in profiles:
        raise UnknownExerciseError(f"Unknown exercise {name!r}; available: {', '.join(sorted(profiles))}")
    return profiles[name]
