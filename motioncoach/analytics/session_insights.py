"""
Post-session insights from completed rep events.

Pure aggregation over the RepEvents the host persisted during a session:
- Consistency of scores across reps
- Tempo and form compliance
- Recurring failed checks
- Range of motion and left/right imbalance
"""

from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import numpy as np

import logging

from motioncoach.schemas.rep_event import RepEvent, TempoStatus

logger = logging.getLogger(__name__)

# Compliance below this (percent) becomes a focus item
FOCUS_COMPLIANCE_THRESHOLD = 80
# Narrative flags an exercise below this (percent / score)
NARRATIVE_THRESHOLD = 70
# Side mean difference above this (percent) counts as an imbalance
IMBALANCE_PERCENT_THRESHOLD = 15.0


@dataclass
class RangeOfMotion:
    min: float = 0.0
    median: float = 0.0
    max: float = 0.0


@dataclass
class SideImbalance:
    left_avg: float
    right_avg: float
    imbalance_percent: float


@dataclass
class ExerciseInsight:
    exercise: str
    rep_count: int
    average_score: float
    consistency_score: int  # 0-100, higher = more consistent
    tempo_compliance: int  # % of reps with good tempo
    form_compliance: int  # % of reps with no failed checks
    top_issues: List[str] = field(default_factory=list)
    range_of_motion: RangeOfMotion = field(default_factory=RangeOfMotion)
    imbalance: Optional[SideImbalance] = None


@dataclass
class SessionInsights:
    narrative: str
    exercise_insights: List[ExerciseInsight] = field(default_factory=list)
    next_session_focus: List[str] = field(default_factory=list)


def consistency_score(scores: List[float]) -> int:
    """100 for identical scores, 0 once the standard deviation reaches 20."""
    if not scores:
        return 0
    if len(scores) == 1:
        return 100
    std = float(np.std(scores))
    return int(round(max(0.0, min(100.0, 100.0 - std * 5))))


def top_issues(events: List[RepEvent], limit: int = 2) -> List[str]:
    counts = Counter(label for e in events for label in e.checks_failed)
    return [label for label, _ in counts.most_common(limit)]


def range_of_motion(events: List[RepEvent]) -> RangeOfMotion:
    metrics = [e.primary_metric for e in events if e.primary_metric is not None]
    if not metrics:
        return RangeOfMotion()
    return RangeOfMotion(
        min=float(np.min(metrics)),
        median=float(np.median(metrics)),
        max=float(np.max(metrics)),
    )


def side_imbalance(events: List[RepEvent]) -> Optional[SideImbalance]:
    left = [e.primary_metric for e in events if e.side == "left" and e.primary_metric is not None]
    right = [e.primary_metric for e in events if e.side == "right" and e.primary_metric is not None]
    if not left or not right:
        return None

    left_avg = float(np.mean(left))
    right_avg = float(np.mean(right))
    avg = (left_avg + right_avg) / 2
    percent = abs(left_avg - right_avg) / avg * 100 if avg > 0 else 0.0
    return SideImbalance(left_avg=left_avg, right_avg=right_avg, imbalance_percent=percent)


def _percent(part: int, total: int) -> int:
    return int(round(part / total * 100)) if total else 0


def exercise_insight(exercise: str, events: List[RepEvent]) -> ExerciseInsight:
    scores = [e.score for e in events]
    return ExerciseInsight(
        exercise=exercise,
        rep_count=len(events),
        average_score=float(np.mean(scores)) if scores else 0.0,
        consistency_score=consistency_score(scores),
        tempo_compliance=_percent(sum(1 for e in events if e.tempo_status == TempoStatus.GOOD), len(events)),
        form_compliance=_percent(sum(1 for e in events if not e.checks_failed), len(events)),
        top_issues=top_issues(events),
        range_of_motion=range_of_motion(events),
        imbalance=side_imbalance(events),
    )


def narrative(average_score: float, insights: List[ExerciseInsight]) -> str:
    if average_score >= 90:
        opening = "Excellent session!"
    elif average_score >= 80:
        opening = "Strong performance."
    elif average_score >= 70:
        opening = "Good effort."
    else:
        opening = "Room for improvement."

    if any(i.consistency_score < NARRATIVE_THRESHOLD for i in insights):
        detail = "Your form varied across reps, focus on consistency."
    elif any(i.tempo_compliance < NARRATIVE_THRESHOLD for i in insights):
        detail = "You maintained good form but rushed some movements. Slow down and control the tempo."
    elif any(i.form_compliance < NARRATIVE_THRESHOLD for i in insights):
        detail = "Focus on maintaining proper form throughout each rep."
    else:
        detail = "Keep up the consistent form and control."

    return f"{opening} {detail}"


def next_session_focus(insights: List[ExerciseInsight]) -> List[str]:
    focus: List[str] = []
    if not insights:
        return focus

    worst_form = min(insights, key=lambda i: i.form_compliance)
    if worst_form.form_compliance < FOCUS_COMPLIANCE_THRESHOLD:
        if worst_form.top_issues:
            focus.append(f"Focus on {worst_form.top_issues[0]} during {worst_form.exercise}")
        else:
            focus.append(f"Improve form consistency during {worst_form.exercise}")

    worst_tempo = min(insights, key=lambda i: i.tempo_compliance)
    if worst_tempo.tempo_compliance < FOCUS_COMPLIANCE_THRESHOLD:
        focus.append(f"Slow down and control the tempo during {worst_tempo.exercise}")

    imbalanced = next(
        (i for i in insights if i.imbalance and i.imbalance.imbalance_percent > IMBALANCE_PERCENT_THRESHOLD),
        None,
    )
    if imbalanced is not None:
        focus.append(
            f"Address left-right imbalance in {imbalanced.exercise} "
            f"({round(imbalanced.imbalance.imbalance_percent)}% difference)"
        )

    if not focus:
        focus = ["Maintain current form quality", "Focus on consistent tempo throughout"]

    return focus[:3]


def generate_session_insights(
    events: Iterable[RepEvent],
    average_score: Optional[float] = None,
) -> SessionInsights:
    """
    Summarize a session's rep events.

    Args:
        events: RepEvents in the order they were emitted
        average_score: Session average as stored by the host; computed
            from the events when omitted
    """
    events = list(events)
    if not events:
        return SessionInsights(
            narrative="No rep data available for analysis.",
            next_session_focus=["Complete more reps to generate insights"],
        )

    by_exercise: Dict[str, List[RepEvent]] = OrderedDict()
    for event in events:
        by_exercise.setdefault(event.exercise, []).append(event)

    insights = [exercise_insight(name, group) for name, group in by_exercise.items()]
    if average_score is None:
        average_score = float(np.mean([e.score for e in events]))

    logger.info(f"Session insights: {len(events)} reps across {len(insights)} exercise(s)")
    return SessionInsights(
        narrative=narrative(average_score, insights),
        exercise_insights=insights,
        next_session_focus=next_session_focus(insights),
    )
