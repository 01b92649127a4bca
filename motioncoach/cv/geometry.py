"""
Pure geometric primitives over normalized landmarks.

All functions return None instead of raising when an input is missing
or the geometry is degenerate, so a lost landmark propagates as an
absent measurement through the whole pipeline.
"""

from typing import Optional, Protocol

import numpy as np


class Point(Protocol):
    x: float
    y: float


def angle(a: Optional[Point], b: Optional[Point], c: Optional[Point]) -> Optional[float]:
    """
    Angle ABC at vertex ``b`` in degrees, within [0, 180].

    Returns None if a point is missing or either segment has zero length.
    """
    if a is None or b is None or c is None:
        return None

    ba = np.array([a.x - b.x, a.y - b.y], dtype=float)
    bc = np.array([c.x - b.x, c.y - b.y], dtype=float)

    mag_ba = np.linalg.norm(ba)
    mag_bc = np.linalg.norm(bc)
    if mag_ba == 0 or mag_bc == 0:
        return None

    # Clip guards arccos against float overshoot past +-1
    cos_angle = np.dot(ba, bc) / (mag_ba * mag_bc)
    angle_rad = np.arccos(np.clip(cos_angle, -1.0, 1.0))

    return float(np.degrees(angle_rad))


def distance(p1: Optional[Point], p2: Optional[Point]) -> Optional[float]:
    """Euclidean distance in normalized image space."""
    if p1 is None or p2 is None:
        return None
    return float(np.hypot(p1.x - p2.x, p1.y - p2.y))


def elevation(
    point_y: Optional[float],
    baseline: Optional[float],
    body_scale: Optional[float] = None,
) -> Optional[float]:
    """
    Height of ``point_y`` above ``baseline`` (positive = moved up the image).

    Image y grows downwards, so this is ``baseline - point_y``. When
    ``body_scale`` is given and positive the result is expressed as a
    fraction of it.
    """
    if point_y is None or baseline is None:
        return None

    value = baseline - point_y
    if body_scale is not None:
        if body_scale <= 0:
            return None
        value /= body_scale
    return float(value)
