"""Exercise profile schemas."""

from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from motioncoach.schemas.landmarks import BodyPoint


class InvalidProfileError(ValueError):
    """Raised when an exercise profile cannot drive the motion pipeline."""


class DepthDirection:
    """Which way the tracked scalar moves for a deeper (better) rep."""
    LOWER_BETTER = "lower_better"
    HIGHER_BETTER = "higher_better"

    @classmethod
    def all(cls) -> List[str]:
        return [cls.LOWER_BETTER, cls.HIGHER_BETTER]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class SidePoints(_Frozen):
    """A landmark on each side of the body."""
    left: BodyPoint
    right: BodyPoint

    @field_validator("left", "right", mode="before")
    @classmethod
    def _parse_point(cls, value):
        try:
            return BodyPoint.parse(value)
        except (TypeError, ValueError) as e:
            raise ValueError(str(e)) from None

    def for_side(self, side: str) -> BodyPoint:
        return self.left if side == "left" else self.right


class MeasurementSpec(_Frozen):
    """
    Primary measurement definition.

    ``angle``: joint angle A-B-C with B the vertex.
    ``elevation``: vertical rise of ``point`` above a calibrated rest baseline.
    """
    kind: Literal["angle", "elevation"] = "angle"
    point_a: Optional[SidePoints] = None
    point_b: Optional[SidePoints] = None
    point_c: Optional[SidePoints] = None
    point: Optional[SidePoints] = None

    @model_validator(mode="after")
    def _check_points(self) -> "MeasurementSpec":
        if self.kind == "angle":
            if self.point_a is None or self.point_b is None or self.point_c is None:
                raise ValueError("angle measurement needs point_a, point_b and point_c")
        elif self.point is None:
            raise ValueError("elevation measurement needs point")
        return self

    def points_for_side(self, side: str) -> Tuple[BodyPoint, ...]:
        if self.kind == "angle":
            return (
                self.point_a.for_side(side),
                self.point_b.for_side(side),
                self.point_c.for_side(side),
            )
        return (self.point.for_side(side),)


class TempoRange(_Frozen):
    """Acceptable duration of one phase, in milliseconds."""
    min_ms: float = Field(ge=0)
    max_ms: float = Field(ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> "TempoRange":
        if self.min_ms > self.max_ms:
            raise ValueError(f"tempo min_ms {self.min_ms} exceeds max_ms {self.max_ms}")
        return self


class TempoSpec(_Frozen):
    up: Optional[TempoRange] = None
    down: Optional[TempoRange] = None


class CoachingScript(_Frozen):
    """Spoken/displayed instruction per coaching step. Missing steps are skipped."""
    up: Optional[str] = None
    hold_top: Optional[str] = None
    down: Optional[str] = None
    hold_bottom: Optional[str] = None
    rest: Optional[str] = None
    hold_top_target_ms: Optional[float] = Field(default=None, ge=0)
    hold_bottom_target_ms: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_steps(self) -> "CoachingScript":
        if not self.up and not self.down:
            raise ValueError("coaching script needs at least an 'up' or 'down' step")
        return self


class FormCorrections(_Frozen):
    depth: Optional[str] = None
    alignment: Optional[str] = None
    too_fast: str = "Too fast, slow down."
    too_slow: str = "Too slow, keep it smooth."
    # Extra corrections keyed by check label
    by_label: Dict[str, str] = Field(default_factory=dict)


class AlignmentSpec(_Frozen):
    """
    Width-ratio alignment check.

    Fails when distance(inner pair) / distance(outer pair) drops below
    ``min_ratio``, e.g. knees caving in relative to the ankles.
    """
    inner: SidePoints
    outer: SidePoints
    min_ratio: float = Field(default=0.8, gt=0)


class ExerciseProfile(_Frozen):
    """Immutable per-exercise configuration."""
    name: str
    measurement: MeasurementSpec
    confidence_points: Optional[Dict[str, List[BodyPoint]]] = None

    up_threshold: float
    down_threshold: float
    shallow_angle: float
    very_shallow_angle: float
    depth_direction: Literal["lower_better", "higher_better"] = DepthDirection.LOWER_BETTER

    tempo: TempoSpec = Field(default_factory=TempoSpec)
    coaching: Optional[CoachingScript] = None
    form_corrections: FormCorrections = Field(default_factory=FormCorrections)

    depth_label: str = "Depth"
    alignment_label: str = "Alignment"
    alignment: Optional[AlignmentSpec] = None

    bilateral: bool = False

    @field_validator("confidence_points", mode="before")
    @classmethod
    def _parse_confidence_points(cls, value):
        if value is None:
            return None
        if not isinstance(value, dict):
            raise ValueError(f"confidence_points must map left/right to point lists, got {type(value).__name__}")
        parsed = {}
        for side, points in value.items():
            if side not in ("left", "right"):
                raise ValueError(f"confidence_points side must be left/right, got {side!r}")
            if not isinstance(points, (list, tuple)):
                raise ValueError(f"confidence_points[{side!r}] must be a list of body points")
            try:
                parsed[side] = [BodyPoint.parse(p) for p in points]
            except (TypeError, ValueError) as e:
                raise ValueError(str(e)) from None
        return parsed

    @model_validator(mode="after")
    def _check_thresholds(self) -> "ExerciseProfile":
        if self.up_threshold <= self.down_threshold:
            raise ValueError(
                f"up_threshold ({self.up_threshold}) must be greater than "
                f"down_threshold ({self.down_threshold})"
            )
        if self.depth_direction == DepthDirection.LOWER_BETTER:
            if self.very_shallow_angle < self.shallow_angle:
                raise ValueError("very_shallow_angle must be >= shallow_angle for lower_better")
        elif self.very_shallow_angle > self.shallow_angle:
            raise ValueError("very_shallow_angle must be <= shallow_angle for higher_better")
        return self

    @property
    def is_elevation(self) -> bool:
        return self.measurement.kind == "elevation"

    @property
    def lower_is_better(self) -> bool:
        return self.depth_direction == DepthDirection.LOWER_BETTER

    def confidence_points_for(self, side: str) -> List[BodyPoint]:
        """Landmarks whose visibility decides how trustworthy ``side`` is."""
        if self.confidence_points and side in self.confidence_points:
            return list(self.confidence_points[side])
        return list(self.measurement.points_for_side(side))


def load_profile(data: dict) -> ExerciseProfile:
    """Validate raw profile data, raising ``InvalidProfileError`` on failure."""
    try:
        return ExerciseProfile.model_validate(data)
    except ValidationError as e:
        name = data.get("name", "<unnamed>") if isinstance(data, dict) else "<unnamed>"
        raise InvalidProfileError(f"Invalid exercise profile {name!r}: {e}") from e
