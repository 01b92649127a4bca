"""
Body-landmark snapshot model.

The pose detector runs outside this package. It hands over one snapshot
per rendered frame: a mapping of body-point id to normalized
(x, y, visibility). This module validates that payload once at the
boundary so the rest of the pipeline works on typed records only.

Coordinates follow the MediaPipe convention: x grows to the right,
y grows DOWN the image, both normalized to 0-1.
"""

import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

import logging

logger = logging.getLogger(__name__)


class BodyPoint(IntEnum):
    """MediaPipe Pose landmark indices."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32

    @classmethod
    def parse(cls, value: Any) -> "BodyPoint":
        """Resolve an int index or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip()
            if name.isdigit():
                return cls(int(name))
            try:
                return cls[name.upper()]
            except KeyError:
                raise ValueError(f"Unknown body point: {value!r}") from None
        return cls(int(value))


@dataclass(frozen=True)
class Landmark:
    """Single landmark in normalized image space."""
    x: float
    y: float
    visibility: float = 1.0

    def is_visible(self, threshold: float = 0.5) -> bool:
        return self.visibility >= threshold


@dataclass
class PoseSnapshot:
    """
    All landmarks detected for a single frame.

    Missing body points are simply absent from ``landmarks``.
    """
    landmarks: Dict[BodyPoint, Landmark] = field(default_factory=dict)
    timestamp_ms: Optional[float] = None

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[Any, Any],
        timestamp_ms: Optional[float] = None,
    ) -> "PoseSnapshot":
        """
        Build a snapshot from ``{point_id: {x, y, visibility}}``.

        Values may be mappings, objects exposing ``x``/``y``/``visibility``
        attributes, or ``(x, y[, visibility])`` sequences. Unknown ids are
        skipped; malformed coordinates raise ``ValueError``.
        """
        landmarks: Dict[BodyPoint, Landmark] = {}
        for key, raw in mapping.items():
            try:
                point = BodyPoint.parse(key)
            except ValueError:
                logger.debug(f"Skipping unknown landmark id {key!r}")
                continue
            if raw is None:
                continue
            landmarks[point] = _coerce_landmark(raw, point)
        return cls(landmarks=landmarks, timestamp_ms=timestamp_ms)

    @classmethod
    def from_sequence(
        cls,
        points: Sequence[Any],
        timestamp_ms: Optional[float] = None,
    ) -> "PoseSnapshot":
        """Build a snapshot from a detector list ordered by landmark index."""
        return cls.from_mapping(
            {i: raw for i, raw in enumerate(points[:len(BodyPoint)])},
            timestamp_ms=timestamp_ms,
        )

    def get(self, point: BodyPoint) -> Optional[Landmark]:
        return self.landmarks.get(point)

    def visible(self, point: BodyPoint, threshold: float = 0.5) -> Optional[Landmark]:
        """Landmark if present and confident enough, else None."""
        landmark = self.landmarks.get(point)
        if landmark is None or not landmark.is_visible(threshold):
            return None
        return landmark

    def mean_visibility(self, points: Iterable[BodyPoint]) -> float:
        """Average visibility over ``points``; missing points count as 0."""
        points = list(points)
        if not points:
            return 0.0
        total = sum(
            self.landmarks[p].visibility if p in self.landmarks else 0.0
            for p in points
        )
        return total / len(points)

    @property
    def is_empty(self) -> bool:
        return not self.landmarks


def _coerce_landmark(raw: Any, point: BodyPoint) -> Landmark:
    if isinstance(raw, Landmark):
        return raw
    if isinstance(raw, Mapping):
        x, y = raw.get("x"), raw.get("y")
        visibility = raw.get("visibility", 1.0)
    elif hasattr(raw, "x") and hasattr(raw, "y"):
        x, y = raw.x, raw.y
        visibility = getattr(raw, "visibility", 1.0)
    elif isinstance(raw, Sequence) and not isinstance(raw, str) and len(raw) >= 2:
        x, y = raw[0], raw[1]
        visibility = raw[2] if len(raw) > 2 else 1.0
    else:
        raise ValueError(f"Malformed landmark for {point.name}: {raw!r}")

    try:
        coords = (float(x), float(y), float(visibility if visibility is not None else 0.0))
    except (TypeError, ValueError):
        raise ValueError(f"Non-numeric landmark for {point.name}: {raw!r}") from None

    if not all(math.isfinite(c) for c in coords):
        raise ValueError(f"Non-finite landmark for {point.name}: {raw!r}")

    return Landmark(x=coords[0], y=coords[1], visibility=coords[2])
