"""
Threshold-based rep counting over a single scalar stream.

Every exercise is reduced to one number per frame before it reaches this
module: a joint angle in degrees, or an elevation above a calibrated
baseline in normalized units. Two ordered thresholds split the range
into three zones:

    value >= up_threshold          -> UP
    value <= down_threshold        -> DOWN
    down_threshold < value < up    -> REST (a.k.a. UNKNOWN)

A rep is counted exactly once on the first UP sample after DOWN has been
reached. Passing through the middle zone clears the coarse phase but not
the DOWN memory, so noise around the midpoint can never double count.

Holds are tracked separately from the coarse phase using a small band
around each threshold, so a user pausing just short of a threshold still
gets hold credit.
"""

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import logging

from motioncoach.config import Settings, get_settings
from motioncoach.schemas.exercise_profile import ExerciseProfile, TempoRange, TempoSpec
from motioncoach.schemas.rep_event import TempoStatus

logger = logging.getLogger(__name__)


class RepPhase(Enum):
    """Coarse movement phase."""
    UP = "up"
    DOWN = "down"
    REST = "rest"
    UNKNOWN = "rest"  # alias: between thresholds or not yet initialized


def classify_tempo(duration_ms: Optional[float], tempo_range: Optional[TempoRange]) -> Optional[str]:
    """Classify a phase duration against its configured range."""
    if duration_ms is None or tempo_range is None:
        return None
    if duration_ms < tempo_range.min_ms:
        return TempoStatus.FAST
    if duration_ms > tempo_range.max_ms:
        return TempoStatus.SLOW
    return TempoStatus.GOOD


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass(frozen=True)
class RepTelemetry:
    """Derived per-frame timing bundle."""
    phase: RepPhase = RepPhase.REST
    phase_ms: float = 0.0
    last_down_ms: Optional[float] = None
    last_up_ms: Optional[float] = None
    hold_top_ms: Optional[float] = None
    hold_bottom_ms: Optional[float] = None
    tempo_status_down: Optional[str] = None
    tempo_status_up: Optional[str] = None

    def tempo_status_for(self, phase: RepPhase) -> Optional[str]:
        if phase is RepPhase.UP:
            return self.tempo_status_up
        if phase is RepPhase.DOWN:
            return self.tempo_status_down
        return None


@dataclass(frozen=True)
class RepSummary:
    """Timing and range of the most recently counted rep."""
    rep_number: int
    completed_ms: float
    duration_ms: float
    min_value: float
    max_value: float


@dataclass(frozen=True)
class RepUpdate:
    """Result of one ``RepCounter.update`` call."""
    rep_count: int
    phase: RepPhase
    rep_just_counted: bool
    telemetry: RepTelemetry
    value: Optional[float] = None


@dataclass
class RepCounterState:
    """Mutable counter state for one active exercise."""
    phase: RepPhase = RepPhase.UNKNOWN
    down_reached: bool = False
    rep_count: int = 0
    initialized: bool = False
    phase_entered_ms: Optional[float] = None
    hold_top_start_ms: Optional[float] = None
    hold_bottom_start_ms: Optional[float] = None
    last_up_ms: Optional[float] = None
    last_down_ms: Optional[float] = None
    tempo_status_up: Optional[str] = None
    tempo_status_down: Optional[str] = None
    # Rep window: opens when the user leaves UP, closes when the rep counts
    rep_started_ms: Optional[float] = None
    rep_min: Optional[float] = None
    rep_max: Optional[float] = None
    last_rep: Optional[RepSummary] = None


class RepCounter:
    """
    Converts a scalar stream into phase, rep count and telemetry.

    ``update`` never raises: an absent or non-finite value freezes the
    state and still returns a complete result.
    """

    def __init__(
        self,
        up_threshold: float,
        down_threshold: float,
        hold_epsilon: float = 5.0,
        tempo: Optional[TempoSpec] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        if up_threshold <= down_threshold:
            raise ValueError(
                f"up_threshold ({up_threshold}) must be greater than down_threshold ({down_threshold})"
            )
        self.up_threshold = up_threshold
        self.down_threshold = down_threshold
        self.hold_epsilon = hold_epsilon
        self.tempo = tempo or TempoSpec()
        self._clock = clock or monotonic_ms
        self.state = RepCounterState()

    @classmethod
    def from_profile(
        cls,
        profile: ExerciseProfile,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> "RepCounter":
        settings = settings or get_settings()
        epsilon = settings.elevation_hold_epsilon if profile.is_elevation else settings.angle_hold_epsilon
        return cls(
            up_threshold=profile.up_threshold,
            down_threshold=profile.down_threshold,
            hold_epsilon=epsilon,
            tempo=profile.tempo,
            clock=clock,
        )

    @property
    def rep_count(self) -> int:
        return self.state.rep_count

    @property
    def phase(self) -> RepPhase:
        return self.state.phase

    @property
    def last_rep(self) -> Optional[RepSummary]:
        return self.state.last_rep

    def reset(self):
        """Full reset; the next valid sample re-initializes the phase."""
        self.state = RepCounterState()

    def update(self, value: Optional[float], timestamp_ms: Optional[float] = None) -> RepUpdate:
        """Feed one sample (None = measurement unavailable this frame)."""
        now = self._clock() if timestamp_ms is None else timestamp_ms

        if value is None or not math.isfinite(value):
            return self._result(now, False, None)

        state = self.state
        if not state.initialized:
            self._initialize(value, now)
            return self._result(now, False, value)

        self._update_holds(value, now)

        rep_just_counted = False
        if value >= self.up_threshold:
            if state.phase is not RepPhase.UP:
                self._enter_phase(RepPhase.UP, now)
                if state.down_reached:
                    self._track_range(value)
                    self._count_rep(now)
                    rep_just_counted = True
        elif value <= self.down_threshold:
            if state.phase is not RepPhase.DOWN:
                self._enter_phase(RepPhase.DOWN, now)
            state.down_reached = True
        elif state.phase is not RepPhase.REST:
            self._enter_phase(RepPhase.REST, now)

        if state.rep_started_ms is not None:
            self._track_range(value)

        return self._result(now, rep_just_counted, value)

    def telemetry(self, timestamp_ms: Optional[float] = None) -> RepTelemetry:
        now = self._clock() if timestamp_ms is None else timestamp_ms
        state = self.state

        def elapsed(start: Optional[float]) -> Optional[float]:
            if start is None:
                return None
            return max(0.0, now - start)

        return RepTelemetry(
            phase=state.phase,
            phase_ms=elapsed(state.phase_entered_ms) or 0.0,
            last_down_ms=state.last_down_ms,
            last_up_ms=state.last_up_ms,
            hold_top_ms=elapsed(state.hold_top_start_ms),
            hold_bottom_ms=elapsed(state.hold_bottom_start_ms),
            tempo_status_down=state.tempo_status_down,
            tempo_status_up=state.tempo_status_up,
        )

    def _initialize(self, value: float, now: float):
        state = self.state
        state.initialized = True
        state.phase = self._zone(value)
        state.phase_entered_ms = now
        if state.phase is not RepPhase.UP:
            # A rep may already be in progress when tracking starts
            self._open_rep_window(now)
            self._track_range(value)
        if state.phase is RepPhase.DOWN:
            state.down_reached = True
        self._update_holds(value, now)
        logger.debug(f"RepCounter initialized at {value:.3f} -> {state.phase.name}")

    def _zone(self, value: float) -> RepPhase:
        if value >= self.up_threshold:
            return RepPhase.UP
        if value <= self.down_threshold:
            return RepPhase.DOWN
        return RepPhase.REST

    def _enter_phase(self, phase: RepPhase, now: float):
        state = self.state
        previous = state.phase

        if state.phase_entered_ms is not None:
            duration = now - state.phase_entered_ms
            if previous is RepPhase.UP:
                state.last_up_ms = duration
                state.tempo_status_up = classify_tempo(duration, self.tempo.up)
            elif previous is RepPhase.DOWN:
                state.last_down_ms = duration
                state.tempo_status_down = classify_tempo(duration, self.tempo.down)

        if previous is RepPhase.UP:
            self._open_rep_window(now)

        state.phase = phase
        state.phase_entered_ms = now
        logger.debug(f"Phase {previous.name} -> {phase.name}")

    def _open_rep_window(self, now: float):
        self.state.rep_started_ms = now
        self.state.rep_min = None
        self.state.rep_max = None

    def _track_range(self, value: float):
        state = self.state
        state.rep_min = value if state.rep_min is None else min(state.rep_min, value)
        state.rep_max = value if state.rep_max is None else max(state.rep_max, value)

    def _count_rep(self, now: float):
        state = self.state
        state.rep_count += 1
        state.down_reached = False

        started = state.rep_started_ms if state.rep_started_ms is not None else now
        state.last_rep = RepSummary(
            rep_number=state.rep_count,
            completed_ms=now,
            duration_ms=now - started,
            min_value=state.rep_min,
            max_value=state.rep_max,
        )
        state.rep_started_ms = None
        state.rep_min = None
        state.rep_max = None
        logger.debug(
            f"Rep #{state.rep_count} counted (duration={state.last_rep.duration_ms:.0f}ms, "
            f"range={state.last_rep.min_value:.3f}..{state.last_rep.max_value:.3f})"
        )

    def _update_holds(self, value: float, now: float):
        state = self.state
        if value >= self.up_threshold - self.hold_epsilon:
            if state.hold_top_start_ms is None:
                state.hold_top_start_ms = now
        else:
            state.hold_top_start_ms = None

        if value <= self.down_threshold + self.hold_epsilon:
            if state.hold_bottom_start_ms is None:
                state.hold_bottom_start_ms = now
        else:
            state.hold_bottom_start_ms = None

    def _result(self, now: float, rep_just_counted: bool, value: Optional[float]) -> RepUpdate:
        return RepUpdate(
            rep_count=self.state.rep_count,
            phase=self.state.phase,
            rep_just_counted=rep_just_counted,
            telemetry=self.telemetry(now),
            value=value,
        )
