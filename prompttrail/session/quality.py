"""
Session quality scoring and adaptive inactivity timeouts.

A session that has accumulated many interactions across several files and
interaction kinds is worth more than a one-off question, so it earns a longer
grace period before an idle pause closes it. The scoring policy is pluggable;
``DefaultQualityPolicy`` documents its weights:

    score = 0.5 * min(interactions / 10, 1)
          + 0.3 * min(distinct_files / 5, 1)
          + 0.2 * min(distinct_kinds / 3, 1)

Sessions scoring below 0.3 keep the base timeout. Above that the timeout is
``base * (1 + (max_multiplier - 1) * score)``, never more than
``base * max_multiplier``.

``analyze_session`` produces human-facing insights (productivity, focus,
assistant dependency, recommendations) that travel with the session summary.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Literal, Optional, Protocol

from prompttrail.types import InteractionKind, Session


class QualityPolicy(Protocol):
    """Replaceable scoring policy used by the session monitor."""

    def score(self, session: Session) -> float:
        """Return a quality score in [0, 1]."""
        ...

    def timeout_for(self, session: Session, base_timeout: float) -> float:
        """Return the inactivity allowance in seconds for *session*."""
        ...


@dataclass
class DefaultQualityPolicy:
    interaction_weight: float = 0.5
    file_weight: float = 0.3
    kind_weight: float = 0.2
    interaction_saturation: int = 10
    file_saturation: int = 5
    kind_saturation: int = len(InteractionKind)
    low_quality_threshold: float = 0.3
    max_multiplier: float = 3.0

    def __post_init__(self) -> None:
        self.max_multiplier = max(1.0, float(self.max_multiplier))
        self.interaction_saturation = max(1, int(self.interaction_saturation))
        self.file_saturation = max(1, int(self.file_saturation))
        self.kind_saturation = max(1, int(self.kind_saturation))

    def score(self, session: Session) -> float:
        count = len(session.interactions)
        if count == 0:
            return 0.0
        interactions = min(count / self.interaction_saturation, 1.0)
        files = min(len(session.distinct_files()) / self.file_saturation, 1.0)
        kinds = min(len(session.distinct_kinds()) / self.kind_saturation, 1.0)
        total = (
            self.interaction_weight * interactions
            + self.file_weight * files
            + self.kind_weight * kinds
        )
        return max(0.0, min(1.0, total))

    def timeout_for(self, session: Session, base_timeout: float) -> float:
        quality = self.score(session)
        if quality < self.low_quality_threshold:
            return base_timeout
        multiplier = 1.0 + (self.max_multiplier - 1.0) * quality
        return min(base_timeout * self.max_multiplier, base_timeout * multiplier)


@dataclass
class SessionInsights:
    productivity_score: float = 0.0  # 0-100
    focus_level: float = 0.0  # 0-100, fewer files per interaction = more focused
    assistant_dependency: float = 0.0  # 0-100, estimated from response lengths
    quality: Literal["high", "medium", "low"] = "low"
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "productivity_score": round(self.productivity_score, 1),
            "focus_level": round(self.focus_level, 1),
            "assistant_dependency": round(self.assistant_dependency, 1),
            "quality": self.quality,
            "recommendations": list(self.recommendations),
        }


def analyze_session(session: Session, now: Optional[float] = None) -> SessionInsights:
    """Summarize how a session went. Empty sessions get default (low) insights."""
    insights = SessionInsights()
    if not session.interactions:
        return insights

    now = time.time() if now is None else now
    end = session.ended_at if session.ended_at is not None else now
    duration = max(end - session.started_at, 1.0)

    insights.productivity_score = _productivity_score(session, duration)
    insights.focus_level = _focus_level(session)
    insights.assistant_dependency = _assistant_dependency(session)

    average = (insights.productivity_score + insights.focus_level) / 2
    if average >= 75:
        insights.quality = "high"
    elif average >= 50:
        insights.quality = "medium"

    insights.recommendations = _recommendations(insights, session, duration)
    return insights


def _productivity_score(session: Session, duration: float) -> float:
    count = len(session.interactions)
    score = min(count * 5, 40)
    score += len(session.distinct_kinds()) * 10
    score += min(len(session.distinct_files()) * 8, 25)
    # More than five interactions an hour counts as a steady working rate.
    if count / (duration / 3600.0) > 5:
        score += 15
    return float(min(score, 100))


def _focus_level(session: Session) -> float:
    files = len(session.distinct_files())
    if files == 0:
        return 50.0
    ratio = len(session.interactions) / files
    if ratio > 8:
        return 90.0
    if ratio > 5:
        return 75.0
    if ratio > 3:
        return 60.0
    if ratio > 1.5:
        return 40.0
    return 20.0


def _assistant_dependency(session: Session) -> float:
    total = sum(len(i.response or "") for i in session.interactions)
    if total == 0:
        return 0.0
    average = total / len(session.interactions)
    if average > 100:
        return 85.0
    if average > 50:
        return 65.0
    if average > 20:
        return 40.0
    return 20.0


def _recommendations(insights: SessionInsights, session: Session, duration: float) -> list[str]:
    recs: list[str] = []
    if insights.focus_level < 50:
        recs.append("Consider working on fewer files simultaneously to improve focus")
    if insights.productivity_score < 40:
        recs.append("Try breaking down complex tasks into smaller, more manageable pieces")
    if insights.assistant_dependency > 80:
        recs.append("Review assistant suggestions carefully to keep learning from them")
    elif 0 < insights.assistant_dependency < 30:
        recs.append("Routine coding tasks may benefit from more assistant involvement")
    if len(session.interactions) < 5:
        recs.append("Consider documenting your development process more thoroughly")
    if duration > 4 * 3600:
        recs.append("Consider taking regular breaks during long coding sessions")
    return recs
