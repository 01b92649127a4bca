"""
Per-frame measurement selection.

Turns a landmark snapshot into the one scalar the rep counter consumes,
together with how much that scalar can be trusted and which side of the
body it came from.

SINGLE-SIDED EXERCISES:
Either side measures the same movement, so the side whose landmarks are
seen with higher mean visibility wins each frame.

BILATERAL EXERCISES:
Only one side may be working (alternating lunges, single-arm raises).
Each side's signal is smoothed with a short moving average and its
recent range of motion (max - min of the smoothed history) is tracked.
A side that moves clearly more than the other is locked as active; a
locked side is only replaced when the other side overtakes it by twice
the margin, so feedback does not flip between sides rep to rep.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional

import numpy as np

import logging

from motioncoach.config import Settings, get_settings
from motioncoach.cv.geometry import angle, distance
from motioncoach.schemas.exercise_profile import ExerciseProfile
from motioncoach.schemas.landmarks import PoseSnapshot

logger = logging.getLogger(__name__)

SIDES = ("left", "right")


@dataclass(frozen=True)
class Measurement:
    """The scalar chosen for this frame."""
    value: Optional[float]
    confidence: float = 0.0
    side: Optional[str] = None
    alignment: Optional[float] = None  # inner/outer width ratio, if configured

    @property
    def available(self) -> bool:
        return self.value is not None


class SideTrack:
    """Moving-average smoothing and range-of-motion history for one side."""

    def __init__(self, window: int, history: int):
        self._raw: Deque[float] = deque(maxlen=window)
        self._smoothed: Deque[float] = deque(maxlen=history)
        self._missed = 0

    def push(self, value: float) -> float:
        self._missed = 0
        self._raw.append(value)
        smoothed = float(np.mean(self._raw))
        self._smoothed.append(smoothed)
        return smoothed

    def miss(self):
        """Record a frame without a value for this side."""
        self._missed += 1
        # After a full window of gaps the old samples no longer describe the pose
        if self._missed >= self._raw.maxlen:
            self._raw.clear()

    @property
    def smoothed(self) -> Optional[float]:
        return self._smoothed[-1] if self._smoothed else None

    @property
    def samples(self) -> int:
        return len(self._smoothed)

    @property
    def range_of_motion(self) -> float:
        if len(self._smoothed) < 2:
            return 0.0
        return float(max(self._smoothed) - min(self._smoothed))

    def reset(self):
        self._raw.clear()
        self._smoothed.clear()
        self._missed = 0


class MeasurementSelector:
    """Resolves which landmarks to trust and produces one scalar per frame."""

    def __init__(self, profile: ExerciseProfile, settings: Optional[Settings] = None):
        self.profile = profile
        self.settings = settings or get_settings()
        self.visibility_threshold = self.settings.visibility_threshold

        # Elevation signals live in normalized units, angles in degrees
        self.rom_margin = (
            self.settings.elevation_hold_epsilon if profile.is_elevation
            else self.settings.rom_margin_degrees
        )

        self.tracks: Dict[str, SideTrack] = {
            side: SideTrack(self.settings.smoothing_window, self.settings.rom_history_size)
            for side in SIDES
        }
        self._locked_side: Optional[str] = None

    @property
    def locked_side(self) -> Optional[str]:
        return self._locked_side

    def reset(self):
        for track in self.tracks.values():
            track.reset()
        self._locked_side = None

    def select(self, snapshot: Optional[PoseSnapshot]) -> Measurement:
        """Measurement for this frame; value is None when nothing is trustworthy."""
        if snapshot is None or snapshot.is_empty:
            if self.profile.bilateral:
                for track in self.tracks.values():
                    track.miss()
            return Measurement(value=None)

        confidence = {
            side: snapshot.mean_visibility(self.profile.confidence_points_for(side))
            for side in SIDES
        }
        raw = {side: self.side_value(snapshot, side) for side in SIDES}
        alignment = self.alignment_ratio(snapshot)

        if self.profile.bilateral:
            return self._select_bilateral(raw, confidence, alignment)
        return self._select_by_confidence(raw, confidence, alignment)

    def side_value(self, snapshot: PoseSnapshot, side: str) -> Optional[float]:
        """
        Raw measurement for one side.

        Angle profiles return degrees at the vertex; elevation profiles
        return the tracked point's image y for the baseline tracker.
        """
        points = self.profile.measurement.points_for_side(side)
        visible = [snapshot.visible(p, self.visibility_threshold) for p in points]

        if self.profile.is_elevation:
            return visible[0].y if visible[0] is not None else None
        return angle(*visible)

    def alignment_ratio(self, snapshot: PoseSnapshot) -> Optional[float]:
        spec = self.profile.alignment
        if spec is None:
            return None

        threshold = self.visibility_threshold
        inner = distance(snapshot.visible(spec.inner.left, threshold), snapshot.visible(spec.inner.right, threshold))
        outer = distance(snapshot.visible(spec.outer.left, threshold), snapshot.visible(spec.outer.right, threshold))

        if inner is None or not outer:
            return None
        return inner / outer

    def _select_by_confidence(
        self,
        raw: Dict[str, Optional[float]],
        confidence: Dict[str, float],
        alignment: Optional[float],
    ) -> Measurement:
        for side in sorted(SIDES, key=lambda s: confidence[s], reverse=True):
            if raw[side] is not None:
                return Measurement(
                    value=raw[side],
                    confidence=confidence[side],
                    side=side,
                    alignment=alignment,
                )
        return Measurement(value=None, confidence=max(confidence.values()), alignment=alignment)

    def _select_bilateral(
        self,
        raw: Dict[str, Optional[float]],
        confidence: Dict[str, float],
        alignment: Optional[float],
    ) -> Measurement:
        smoothed: Dict[str, Optional[float]] = {}
        for side in SIDES:
            if raw[side] is None:
                self.tracks[side].miss()
                smoothed[side] = None
            else:
                smoothed[side] = self.tracks[side].push(raw[side])

        self._update_lock()

        if self._locked_side is not None:
            side = self._locked_side
        else:
            candidates = [s for s in SIDES if smoothed[s] is not None]
            if not candidates:
                return Measurement(value=None, confidence=max(confidence.values()), alignment=alignment)
            side = max(candidates, key=lambda s: confidence[s])

        return Measurement(
            value=smoothed[side],
            confidence=confidence[side],
            side=side,
            alignment=alignment,
        )

    def _update_lock(self):
        left, right = self.tracks["left"], self.tracks["right"]
        min_samples = self.settings.side_lock_min_samples

        if self._locked_side is None:
            if max(left.samples, right.samples) < min_samples:
                return
            diff = left.range_of_motion - right.range_of_motion
            if abs(diff) > self.rom_margin:
                self._locked_side = "left" if diff > 0 else "right"
                logger.info(
                    f"Active side locked: {self._locked_side} "
                    f"(ROM left={left.range_of_motion:.2f}, right={right.range_of_motion:.2f})"
                )
            return

        locked = self.tracks[self._locked_side]
        other_side = "right" if self._locked_side == "left" else "left"
        other = self.tracks[other_side]
        if other.samples >= min_samples and other.range_of_motion > locked.range_of_motion + 2 * self.rom_margin:
            logger.info(
                f"Active side switched: {self._locked_side} -> {other_side} "
                f"(ROM {locked.range_of_motion:.2f} vs {other.range_of_motion:.2f})"
            )
            self._locked_side = other_side
