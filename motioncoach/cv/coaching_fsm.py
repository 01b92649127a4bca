"""
Coaching dialogue state machine.

Produces at most one sticky PRIMARY instruction ("what to do next") and at
most one SECONDARY correction per update.

The primary instruction walks the canonical step order

    UP -> HOLD_TOP -> DOWN -> HOLD_BOTTOM -> REST -> (UP ...)

restricted to the steps the exercise profile has a script line for. A step
is held until its exit condition is met, so the user never hears an
instruction flicker because of one noisy frame. Every counted rep hard
resets the sequence to its first step.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

import logging

from motioncoach.config import Settings, get_settings
from motioncoach.cv.rep_counter import RepPhase, RepTelemetry, monotonic_ms
from motioncoach.schemas.exercise_profile import ExerciseProfile
from motioncoach.schemas.rep_event import FeedbackStatus, FormFeedback, TempoStatus

logger = logging.getLogger(__name__)


class CoachStep(Enum):
    UP = "up"
    HOLD_TOP = "hold_top"
    DOWN = "down"
    HOLD_BOTTOM = "hold_bottom"
    REST = "rest"


# Script field names match the step values
CANONICAL_STEPS = [CoachStep.UP, CoachStep.HOLD_TOP, CoachStep.DOWN, CoachStep.HOLD_BOTTOM, CoachStep.REST]


@dataclass
class CoachingFSMState:
    step_index: int = 0
    step_entered_ms: Optional[float] = None
    last_phase_seen: Optional[RepPhase] = None
    stable_phase_ms: float = 0.0
    last_rep_count: int = 0


class CoachingFSM:
    """Sequences the coaching script against rep telemetry."""

    def __init__(
        self,
        profile: ExerciseProfile,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.profile = profile
        self.settings = settings or get_settings()
        self._clock = clock or monotonic_ms

        script = profile.coaching
        self.steps: List[CoachStep] = []
        if script is not None:
            self.steps = [step for step in CANONICAL_STEPS if getattr(script, step.value)]

        self.hold_top_target_ms = self.settings.hold_top_target_ms
        self.hold_bottom_target_ms = self.settings.hold_bottom_target_ms
        if script is not None and script.hold_top_target_ms is not None:
            self.hold_top_target_ms = script.hold_top_target_ms
        if script is not None and script.hold_bottom_target_ms is not None:
            self.hold_bottom_target_ms = script.hold_bottom_target_ms

        self.state = CoachingFSMState()

    @property
    def current_step(self) -> Optional[CoachStep]:
        if not self.steps:
            return None
        return self.steps[self.state.step_index]

    def reset(self, timestamp_ms: Optional[float] = None, rep_count: int = 0):
        now = self._clock() if timestamp_ms is None else timestamp_ms
        self.state = CoachingFSMState(step_entered_ms=now, last_rep_count=rep_count)
        logger.debug("Coaching FSM reset")

    def set_initial_step(self, step: CoachStep, timestamp_ms: Optional[float] = None):
        """Start from ``step`` instead of the first one, if the profile has it."""
        if step not in self.steps:
            return
        self._enter(self.steps.index(step), timestamp_ms)

    def update(
        self,
        telemetry: Optional[RepTelemetry],
        rep_count: int,
        rep_just_counted: bool = False,
        timestamp_ms: Optional[float] = None,
    ):
        """Advance at most one step based on this frame's telemetry."""
        now = self._clock() if timestamp_ms is None else timestamp_ms
        state = self.state

        if rep_just_counted or rep_count != state.last_rep_count:
            self.reset(now, rep_count)
            return

        if telemetry is None or not self.steps:
            return

        phase = telemetry.phase
        if phase is state.last_phase_seen:
            state.stable_phase_ms = telemetry.phase_ms
        else:
            state.stable_phase_ms = 0.0
            state.last_phase_seen = phase

        if self._should_exit(self.current_step, telemetry):
            self._enter((state.step_index + 1) % len(self.steps), now)

    def _should_exit(self, step: CoachStep, telemetry: RepTelemetry) -> bool:
        stable_ms = self.settings.stable_phase_ms
        phase = telemetry.phase
        phase_stable = self.state.stable_phase_ms >= stable_ms
        hold_top = telemetry.hold_top_ms or 0.0
        hold_bottom = telemetry.hold_bottom_ms or 0.0

        if step is CoachStep.UP:
            return (phase is RepPhase.UP and phase_stable) or hold_top >= stable_ms
        if step is CoachStep.HOLD_TOP:
            return hold_top >= self.hold_top_target_ms
        if step is CoachStep.DOWN:
            return (phase is RepPhase.DOWN and phase_stable) or hold_bottom >= stable_ms
        if step is CoachStep.HOLD_BOTTOM:
            return hold_bottom >= self.hold_bottom_target_ms
        return phase is not RepPhase.REST and phase_stable

    def _enter(self, index: int, timestamp_ms: Optional[float]):
        old = self.current_step
        self.state.step_index = index
        self.state.step_entered_ms = self._clock() if timestamp_ms is None else timestamp_ms
        self.state.stable_phase_ms = 0.0
        logger.debug(f"Coaching step {old.name if old else None} -> {self.current_step.name}")

    def get_primary_instruction(self) -> Optional[str]:
        """Script line for the current step, or None for silence."""
        step = self.current_step
        if step is None:
            return None
        return getattr(self.profile.coaching, step.value)

    def get_secondary_correction(
        self,
        feedback: Optional[FormFeedback],
        telemetry: Optional[RepTelemetry],
    ) -> Optional[str]:
        """
        At most one correction: form first, tempo second.

        Form corrections apply when the last rep was not "Good form" and a
        message is configured for a failed check; otherwise a non-good
        tempo for the current phase yields the too-fast/too-slow line.
        """
        corrections = self.profile.form_corrections

        if feedback is not None and feedback.status != FeedbackStatus.GOOD_FORM:
            message = self._form_correction(feedback)
            if message:
                return message

        if telemetry is not None:
            status = telemetry.tempo_status_for(telemetry.phase)
            if status == TempoStatus.FAST:
                return corrections.too_fast
            if status == TempoStatus.SLOW:
                return corrections.too_slow

        return None

    def _form_correction(self, feedback: FormFeedback) -> Optional[str]:
        corrections = self.profile.form_corrections

        def correction_for(label: str) -> Optional[str]:
            if label in corrections.by_label:
                return corrections.by_label[label]
            if label == self.profile.depth_label:
                return corrections.depth
            if label == self.profile.alignment_label:
                return corrections.alignment
            return None

        ordered = [self.profile.depth_label, self.profile.alignment_label]
        ordered += [c.label for c in feedback.checks if c.label not in ordered]

        for label in ordered:
            check = feedback.check(label)
            if check is not None and not check.ok:
                message = correction_for(label)
                if message:
                    return message
        return None
