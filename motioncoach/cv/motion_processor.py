"""
Per-frame motion analysis pipeline.

PIPELINE STAGES (one synchronous call per rendered frame):
1. Measurement selection (side, visibility, smoothing)
2. Elevation baseline tracking (elevation profiles only)
3. Rep counting and telemetry
4. Rep scoring and form feedback (on the counting frame)
5. Coaching step sequencing

One MotionProcessor is the session-scoped context for the active
exercise. Switching exercise rebuilds and resets every stage before the
next frame so no hold timer or phase leaks across exercises.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

import logging

from motioncoach.config import Settings, get_settings
from motioncoach.cv.coaching_fsm import CoachingFSM
from motioncoach.cv.elevation_tracker import ElevationBaselineTracker, ElevationState
from motioncoach.cv.feedback_scorer import FeedbackScorer
from motioncoach.cv.measurement_selector import Measurement, MeasurementSelector
from motioncoach.cv.rep_counter import RepCounter, RepPhase, RepTelemetry, monotonic_ms
from motioncoach.schemas.exercise_profile import ExerciseProfile, InvalidProfileError, load_profile
from motioncoach.schemas.landmarks import PoseSnapshot
from motioncoach.schemas.rep_event import FormFeedback, RepEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameResult:
    """Everything the host needs after one frame."""
    rep_count: int
    phase: RepPhase
    rep_just_counted: bool
    telemetry: RepTelemetry
    measurement: Measurement
    value: Optional[float] = None  # scalar fed to the rep counter
    elevation_state: Optional[ElevationState] = None
    feedback: FormFeedback = field(default_factory=FormFeedback)
    rep_event: Optional[RepEvent] = None
    primary_instruction: Optional[str] = None
    secondary_correction: Optional[str] = None

    @property
    def detected(self) -> bool:
        """False when no trustworthy measurement was available this frame."""
        return self.value is not None


class MotionProcessor:
    """
    Main per-frame pipeline for one active exercise.

    Usage:
        processor = MotionProcessor(get_profile("squat"))
        for snapshot in frames:
            result = processor.process_frame(snapshot)
            if result.rep_event:
                host.persist(result.rep_event)
    """

    def __init__(
        self,
        profile: Union[ExerciseProfile, Dict[str, Any]],
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.settings = settings or get_settings()
        self._clock = clock or monotonic_ms
        self.switch_exercise(profile)

    def switch_exercise(self, profile: Union[ExerciseProfile, Dict[str, Any]]):
        """Load ``profile`` and fully reset every stage."""
        if isinstance(profile, dict):
            profile = load_profile(profile)
        elif not isinstance(profile, ExerciseProfile):
            raise InvalidProfileError(f"Expected an ExerciseProfile, got {type(profile).__name__}")

        self.profile = profile
        self.selector = MeasurementSelector(profile, self.settings)
        self.elevation_tracker: Optional[ElevationBaselineTracker] = None
        if profile.is_elevation:
            self.elevation_tracker = ElevationBaselineTracker.from_profile(profile, self.settings)
        self.rep_counter = RepCounter.from_profile(profile, self.settings, clock=self._clock)
        self.scorer = FeedbackScorer(profile, self.settings)
        self.coach = CoachingFSM(profile, self.settings, clock=self._clock)
        self.reset()

        logger.info(
            f"Exercise switched to {profile.name!r} "
            f"({profile.measurement.kind}, up={profile.up_threshold}, down={profile.down_threshold}, "
            f"coaching steps={[s.name for s in self.coach.steps]})"
        )

    def reset(self, timestamp_ms: Optional[float] = None):
        """Start a new session on the current profile."""
        self.selector.reset()
        if self.elevation_tracker is not None:
            self.elevation_tracker.reset()
        self.rep_counter.reset()
        self.scorer.reset()
        self.coach.reset(timestamp_ms)
        self.feedback = FormFeedback()

    @property
    def rep_count(self) -> int:
        return self.rep_counter.rep_count

    def process_frame(
        self,
        snapshot: Optional[PoseSnapshot],
        timestamp_ms: Optional[float] = None,
    ) -> FrameResult:
        """Run every stage for one frame. Never raises on missing data."""
        now = self._clock() if timestamp_ms is None else timestamp_ms

        measurement = self.selector.select(snapshot)
        self.scorer.observe(measurement)

        value = measurement.value
        elevation_state = None
        if self.elevation_tracker is not None:
            reading = self.elevation_tracker.update(value)
            value = reading.elevation
            elevation_state = reading.state

        update = self.rep_counter.update(value, now)

        rep_event = None
        summary = self.rep_counter.last_rep
        if update.rep_just_counted and summary is not None:
            scored = self.scorer.evaluate(summary, update.telemetry, measurement.side)
            self.feedback = scored.feedback
            rep_event = self.scorer.build_event(summary, scored, measurement.side)
            logger.debug(f"{self.profile.name}: rep {rep_event.rep_number} score={rep_event.score}")

        self.coach.update(update.telemetry, update.rep_count, update.rep_just_counted, now)

        return FrameResult(
            rep_count=update.rep_count,
            phase=update.phase,
            rep_just_counted=update.rep_just_counted,
            telemetry=update.telemetry,
            measurement=measurement,
            value=value,
            elevation_state=elevation_state,
            feedback=self.feedback,
            rep_event=rep_event,
            primary_instruction=self.coach.get_primary_instruction(),
            secondary_correction=self.coach.get_secondary_correction(self.feedback, update.telemetry),
        )
