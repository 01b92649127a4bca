"""
Real-time motion analysis pipeline.

PIPELINE COMPONENTS:
1. geometry: Joint angle, 2D distance, baseline-relative elevation
2. MeasurementSelector: Side/landmark choice, one scalar + confidence per frame
3. ElevationBaselineTracker: Rest calibration + hysteresis for elevation exercises
4. RepCounter: Phase (UP/DOWN/REST), rep count, holds and tempo telemetry
5. FeedbackScorer: Per-rep score and form checks
6. CoachingFSM: One sticky primary instruction, at most one secondary correction
7. MotionProcessor: Per-frame orchestration for the active exercise

Usage:
    from motioncoach.cv import MotionProcessor
    from motioncoach.profiles import get_profile

    processor = MotionProcessor(get_profile("squat"))
    result = processor.process_frame(snapshot)
    print(result.rep_count, result.phase, result.primary_instruction)
"""

from motioncoach.cv.geometry import angle, distance, elevation
from motioncoach.cv.measurement_selector import Measurement, MeasurementSelector, SideTrack
from motioncoach.cv.elevation_tracker import (
    ElevationBaselineTracker, ElevationReading, ElevationState, ElevationTrackerState
)
from motioncoach.cv.rep_counter import (
    RepCounter, RepCounterState, RepPhase, RepSummary, RepTelemetry, RepUpdate, classify_tempo
)
from motioncoach.cv.feedback_scorer import (
    FeedbackScorer, ScoredRep, apply_duration_penalty, fails_depth, score_rep
)
from motioncoach.cv.coaching_fsm import CANONICAL_STEPS, CoachingFSM, CoachingFSMState, CoachStep
from motioncoach.cv.motion_processor import FrameResult, MotionProcessor

__all__ = [
    # Geometry
    "angle",
    "distance",
    "elevation",

    # Measurement selection
    "Measurement",
    "MeasurementSelector",
    "SideTrack",

    # Elevation tracking
    "ElevationBaselineTracker",
    "ElevationReading",
    "ElevationState",
    "ElevationTrackerState",

    # Rep counting
    "RepCounter",
    "RepCounterState",
    "RepPhase",
    "RepSummary",
    "RepTelemetry",
    "RepUpdate",
    "classify_tempo",

    # Scoring
    "FeedbackScorer",
    "ScoredRep",
    "apply_duration_penalty",
    "fails_depth",
    "score_rep",

    # Coaching
    "CANONICAL_STEPS",
    "CoachingFSM",
    "CoachingFSMState",
    "CoachStep",

    # Main pipeline
    "FrameResult",
    "MotionProcessor",
]
