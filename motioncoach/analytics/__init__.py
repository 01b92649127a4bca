"""Post-session analytics over rep events."""

from motioncoach.analytics.session_insights import (
    ExerciseInsight,
    RangeOfMotion,
    SessionInsights,
    SideImbalance,
    generate_session_insights,
)

__all__ = [
    "ExerciseInsight",
    "RangeOfMotion",
    "SessionInsights",
    "SideImbalance",
    "generate_session_insights",
]
