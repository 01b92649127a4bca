"""
Rep quality scoring and form checks.

Score breakdown:

    100  start
    -35  extremum fails the shallow depth threshold
    -30  extremum also fails the very-shallow threshold
    -20  rep faster than the controlled minimum (applied by the caller)

Each rep also gets a set of pass/fail form checks. Their labels come from
the exercise profile so the host can show e.g. "Knee alignment" rather
than a generic name.
"""

from dataclasses import dataclass
from typing import List, Optional

import logging

from motioncoach.config import Settings, get_settings
from motioncoach.cv.measurement_selector import Measurement
from motioncoach.cv.rep_counter import RepSummary, RepTelemetry
from motioncoach.schemas.exercise_profile import DepthDirection, ExerciseProfile
from motioncoach.schemas.rep_event import FeedbackStatus, FormCheck, FormFeedback, RepEvent, TempoStatus

logger = logging.getLogger(__name__)

SHALLOW_PENALTY = 35
VERY_SHALLOW_PENALTY = 30


def _clamp_score(score: float) -> int:
    return int(max(0, min(100, round(score))))


def fails_depth(extremum: float, threshold: float, depth_direction: str) -> bool:
    """True when ``extremum`` did not get past ``threshold``."""
    if depth_direction == DepthDirection.HIGHER_BETTER:
        return extremum < threshold
    return extremum > threshold


def score_rep(extremum: float, profile: ExerciseProfile) -> int:
    """Depth score in [0, 100] for a rep's most extreme value."""
    score = 100
    if fails_depth(extremum, profile.shallow_angle, profile.depth_direction):
        score -= SHALLOW_PENALTY
        if fails_depth(extremum, profile.very_shallow_angle, profile.depth_direction):
            score -= VERY_SHALLOW_PENALTY
    return _clamp_score(score)


def apply_duration_penalty(score: int, duration_ms: float, settings: Optional[Settings] = None) -> int:
    """Penalize uncontrolled (too quick) reps after the depth score is clamped."""
    settings = settings or get_settings()
    if duration_ms < settings.min_controlled_rep_seconds * 1000.0:
        score -= settings.quick_rep_penalty
    return _clamp_score(score)


def rep_extremum(summary: RepSummary, profile: ExerciseProfile) -> float:
    """The value that best represents how deep the rep went."""
    return summary.min_value if profile.lower_is_better else summary.max_value


@dataclass
class RepObservation:
    """Everything the form checks need to know about one rep."""
    extremum: float
    duration_ms: float
    worst_alignment: Optional[float] = None
    side: Optional[str] = None


class RepCheck:
    """Base class for per-rep form checks."""

    label: str = "check"

    def check(self, rep: RepObservation, profile: ExerciseProfile) -> Optional[bool]:
        """
        Evaluate the check.

        Returns True/False for pass/fail, or None when the check does not
        apply (not configured, or no data).
        """
        raise NotImplementedError


class DepthCheck(RepCheck):
    """Rep reached the profile's shallow threshold."""

    def __init__(self, profile: ExerciseProfile):
        self.label = profile.depth_label

    def check(self, rep: RepObservation, profile: ExerciseProfile) -> Optional[bool]:
        return not fails_depth(rep.extremum, profile.shallow_angle, profile.depth_direction)


class AlignmentCheck(RepCheck):
    """Inner/outer width ratio never collapsed during the rep."""

    def __init__(self, profile: ExerciseProfile):
        self.label = profile.alignment_label

    def check(self, rep: RepObservation, profile: ExerciseProfile) -> Optional[bool]:
        if profile.alignment is None or rep.worst_alignment is None:
            return None
        return rep.worst_alignment >= profile.alignment.min_ratio


@dataclass(frozen=True)
class ScoredRep:
    score: int
    feedback: FormFeedback
    extremum: float
    duration_ms: float
    tempo_status: Optional[str]


class FeedbackScorer:
    """
    Scores completed reps and tracks per-rep form observations.

    ``observe`` is called every frame so the alignment check can use the
    worst value seen during the rep, not just the value on the counting
    frame.
    """

    def __init__(self, profile: ExerciseProfile, settings: Optional[Settings] = None):
        self.profile = profile
        self.settings = settings or get_settings()
        self.checks: List[RepCheck] = [DepthCheck(profile), AlignmentCheck(profile)]
        self._worst_alignment: Optional[float] = None

    def reset(self):
        self._worst_alignment = None

    def observe(self, measurement: Measurement):
        ratio = measurement.alignment
        if ratio is None:
            return
        if self._worst_alignment is None or ratio < self._worst_alignment:
            self._worst_alignment = ratio

    def evaluate(self, summary: RepSummary, telemetry: RepTelemetry, side: Optional[str] = None) -> ScoredRep:
        """Score the rep in ``summary`` and start a fresh observation window."""
        extremum = rep_extremum(summary, self.profile)
        observation = RepObservation(
            extremum=extremum,
            duration_ms=summary.duration_ms,
            worst_alignment=self._worst_alignment,
            side=side,
        )
        self._worst_alignment = None

        feedback = self.form_feedback(observation)
        score = apply_duration_penalty(
            score_rep(extremum, self.profile), summary.duration_ms, self.settings
        )
        tempo_status = TempoStatus.combine(telemetry.tempo_status_down, telemetry.tempo_status_up)

        logger.debug(
            f"Rep #{summary.rep_number} scored {score} "
            f"(extremum={extremum:.3f}, failed={feedback.failed_labels})"
        )
        return ScoredRep(
            score=score,
            feedback=feedback,
            extremum=extremum,
            duration_ms=summary.duration_ms,
            tempo_status=tempo_status,
        )

    def form_feedback(self, rep: RepObservation) -> FormFeedback:
        checks: List[FormCheck] = []
        for rule in self.checks:
            result = rule.check(rep, self.profile)
            if result is not None:
                checks.append(FormCheck(label=rule.label, ok=result))

        failed = [c for c in checks if not c.ok]
        very_shallow = fails_depth(rep.extremum, self.profile.very_shallow_angle, self.profile.depth_direction)

        if not failed:
            status = FeedbackStatus.GOOD_FORM
        elif very_shallow or len(failed) >= 2:
            status = FeedbackStatus.NEEDS_WORK
        else:
            status = FeedbackStatus.WATCH_FORM

        return FormFeedback(status=status, checks=checks)

    def build_event(self, summary: RepSummary, scored: ScoredRep, side: Optional[str] = None) -> RepEvent:
        return RepEvent(
            exercise=self.profile.name,
            rep_number=summary.rep_number,
            timestamp_ms=summary.completed_ms,
            score=scored.score,
            duration_ms=scored.duration_ms,
            tempo_status=scored.tempo_status,
            checks_failed=scored.feedback.failed_labels,
            primary_metric=scored.extremum,
            side=side if self.profile.bilateral else None,
        )
