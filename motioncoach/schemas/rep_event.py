"""Rep event and form feedback schemas."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TempoStatus:
    """Tempo classification of a phase duration."""
    GOOD = "good"
    FAST = "fast"
    SLOW = "slow"

    @classmethod
    def all(cls) -> List[str]:
        return [cls.GOOD, cls.FAST, cls.SLOW]

    @classmethod
    def combine(cls, *statuses: Optional[str]) -> Optional[str]:
        """Overall tempo of a rep: fast beats slow beats good."""
        known = [s for s in statuses if s is not None]
        if not known:
            return None
        if cls.FAST in known:
            return cls.FAST
        if cls.SLOW in known:
            return cls.SLOW
        return cls.GOOD


class FeedbackStatus:
    """Overall form verdict shown to the user."""
    GOOD_FORM = "Good form"
    WATCH_FORM = "Watch form"
    NEEDS_WORK = "Needs work"

    @classmethod
    def all(cls) -> List[str]:
        return [cls.GOOD_FORM, cls.WATCH_FORM, cls.NEEDS_WORK]


class FormCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    ok: bool


class FormFeedback(BaseModel):
    """Form verdict for the most recent rep."""
    model_config = ConfigDict(frozen=True)

    status: str = FeedbackStatus.GOOD_FORM
    checks: List[FormCheck] = Field(default_factory=list)

    @property
    def failed_labels(self) -> List[str]:
        return [c.label for c in self.checks if not c.ok]

    def check(self, label: str) -> Optional[FormCheck]:
        for c in self.checks:
            if c.label == label:
                return c
        return None


class RepEvent(BaseModel):
    """
    A completed repetition, emitted once on the frame it was counted.

    The engine hands it to the host and keeps no copy.
    """
    model_config = ConfigDict(frozen=True)

    exercise: str
    rep_number: int
    timestamp_ms: float
    score: int = Field(ge=0, le=100)
    duration_ms: float
    tempo_status: Optional[str] = None
    checks_failed: List[str] = Field(default_factory=list)
    primary_metric: Optional[float] = None
    side: Optional[str] = None
