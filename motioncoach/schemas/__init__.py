"""Data model: landmarks, exercise profiles and rep events."""

from motioncoach.schemas.landmarks import BodyPoint, Landmark, PoseSnapshot
from motioncoach.schemas.exercise_profile import (
    AlignmentSpec,
    CoachingScript,
    DepthDirection,
    ExerciseProfile,
    FormCorrections,
    InvalidProfileError,
    MeasurementSpec,
    SidePoints,
    TempoRange,
    TempoSpec,
    load_profile,
)
from motioncoach.schemas.rep_event import (
    FeedbackStatus,
    FormCheck,
    FormFeedback,
    RepEvent,
    TempoStatus,
)

__all__ = [
    "BodyPoint",
    "Landmark",
    "PoseSnapshot",
    "AlignmentSpec",
    "CoachingScript",
    "DepthDirection",
    "ExerciseProfile",
    "FormCorrections",
    "InvalidProfileError",
    "MeasurementSpec",
    "SidePoints",
    "TempoRange",
    "TempoSpec",
    "load_profile",
    "FeedbackStatus",
    "FormCheck",
    "FormFeedback",
    "RepEvent",
    "TempoStatus",
]
