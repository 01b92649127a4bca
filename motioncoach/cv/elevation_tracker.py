"""
Elevation baseline tracking for vertical-displacement exercises.

Raw image y of a heel or wrist depends on camera distance and jitters by
a few thousandths every frame, so it cannot be thresholded directly.
This tracker:

1. CALIBRATING_REST: Waits for a still window (per-frame velocity and
   window variance both under tolerance) and fixes the personal rest
   baseline at the lowest point seen in it (largest image y).
2. REST: Slowly adapts the baseline while the user stands still, so
   posture drift over a long set does not read as elevation.
3. UP / MOVING: Hysteresis on consecutive-frame counts so micro-movement
   at rest never chatters between states.

The output scalar is ``baseline - y`` and feeds the rep counter exactly
like a joint angle does. The tracker's own state is informational; the
rep counter's phase stays the single source of truth downstream.
"""

import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Optional

import numpy as np

import logging

from motioncoach.config import Settings, get_settings
from motioncoach.cv.geometry import elevation
from motioncoach.schemas.exercise_profile import ExerciseProfile

logger = logging.getLogger(__name__)


class ElevationState(Enum):
    CALIBRATING_REST = "calibrating_rest"
    REST = "rest"
    UP = "up"
    MOVING = "moving"


@dataclass
class ElevationTrackerState:
    state: ElevationState = ElevationState.CALIBRATING_REST
    calibration: Deque[float] = field(default_factory=deque)
    baseline: Optional[float] = None
    last_y: Optional[float] = None
    stable_frames: int = 0
    above_up_frames: int = 0
    below_down_frames: int = 0


@dataclass(frozen=True)
class ElevationReading:
    """Tracker output for one frame."""
    elevation: Optional[float]
    state: ElevationState
    baseline: Optional[float] = None
    velocity: Optional[float] = None


class ElevationBaselineTracker:
    """Calibrates a rest baseline and emits elevation above it."""

    def __init__(
        self,
        up_threshold: float,
        down_threshold: float,
        settings: Optional[Settings] = None,
    ):
        self.up_threshold = up_threshold
        self.down_threshold = down_threshold
        self.settings = settings or get_settings()
        self.state = self._new_state()

    @classmethod
    def from_profile(cls, profile: ExerciseProfile, settings: Optional[Settings] = None) -> "ElevationBaselineTracker":
        return cls(profile.up_threshold, profile.down_threshold, settings=settings)

    def _new_state(self) -> ElevationTrackerState:
        return ElevationTrackerState(calibration=deque(maxlen=self.settings.calibration_window))

    @property
    def is_calibrated(self) -> bool:
        return self.state.baseline is not None

    @property
    def baseline(self) -> Optional[float]:
        return self.state.baseline

    def reset(self):
        self.state = self._new_state()

    def update(self, y: Optional[float]) -> ElevationReading:
        """Feed the tracked point's image y (None = not visible)."""
        st = self.state
        if y is None or not math.isfinite(y):
            return ElevationReading(elevation=None, state=st.state, baseline=st.baseline)

        velocity = abs(y - st.last_y) if st.last_y is not None else 0.0
        st.last_y = y
        is_still = velocity < self.settings.velocity_tolerance
        st.stable_frames = st.stable_frames + 1 if is_still else 0

        if st.state is ElevationState.CALIBRATING_REST:
            self._calibrate(y, is_still)
            if st.state is ElevationState.CALIBRATING_REST:
                return ElevationReading(elevation=None, state=st.state, velocity=velocity)

        value = elevation(y, st.baseline)
        st.above_up_frames = st.above_up_frames + 1 if value > self.up_threshold else 0
        st.below_down_frames = st.below_down_frames + 1 if value < self.down_threshold else 0

        enter_frames = self.settings.elevation_enter_frames
        if st.state is ElevationState.REST:
            if st.stable_frames >= self.settings.rest_adapt_stable_frames:
                self._adapt_baseline(y)
                value = elevation(y, st.baseline)
            if st.above_up_frames >= enter_frames:
                self._transition(ElevationState.UP, value)
        elif st.state is ElevationState.MOVING and st.above_up_frames >= enter_frames:
            self._transition(ElevationState.UP, value)
        elif (
            st.below_down_frames >= enter_frames
            and st.stable_frames >= self.settings.elevation_exit_stable_frames
        ):
            self._transition(ElevationState.REST, value)
        elif st.state is ElevationState.UP and not is_still and value < self.down_threshold:
            self._transition(ElevationState.MOVING, value)

        return ElevationReading(elevation=value, state=st.state, baseline=st.baseline, velocity=velocity)

    def _calibrate(self, y: float, is_still: bool):
        st = self.state
        if not is_still:
            # Any jump restarts the still window
            st.calibration.clear()
        st.calibration.append(y)

        required = self.settings.calibration_stable_frames
        if st.stable_frames < required or len(st.calibration) < required:
            return

        variance = float(np.var(st.calibration))
        if variance >= self.settings.variance_tolerance:
            return

        # Largest image y = lowest point = rest
        st.baseline = float(max(st.calibration))
        st.state = ElevationState.REST
        st.calibration.clear()
        logger.info(f"Elevation baseline calibrated at y={st.baseline:.4f} (variance={variance:.2e})")

    def _adapt_baseline(self, y: float):
        st = self.state
        alpha = self.settings.baseline_ema_alpha
        adapted = (1 - alpha) * st.baseline + alpha * y
        st.baseline = max(adapted, y)

    def _transition(self, new_state: ElevationState, value: float):
        logger.debug(f"Elevation {self.state.state.name} -> {new_state.name} (elevation={value:.4f})")
        self.state.state = new_state
