"""Scoring model - ranking value per application.

Pure functions over score signals; nothing here touches the database.
Anything exposing the signal attributes (an ``Application`` row, a ``Score``)
can be scored and ranked.
"""

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from src.marketplace.core.config import Settings
from src.marketplace.core.exceptions import ValidationError
from src.marketplace.engine.applications import ASSIGNABLE_STATUSES
from src.marketplace.models.enums import ApplicationStatus


class ScoreSignals(Protocol):
    skill_match: float
    rating_score: float
    on_time_rate: float
    rework_rate: float
    portfolio_score: float
    manual_partner_score: float | None
    manual_supervisor_score: float | None


class Rankable(Protocol):
    id: UUID
    status: str
    final_score: float
    created_at: datetime


@dataclass(frozen=True)
class ScoringWeights:
    """Weights for the auto score components and the two blend steps."""

    skill_match: float = 0.40
    rating: float = 0.25
    on_time: float = 0.20
    rework: float = 0.15
    portfolio: float = 0.30
    manual: float = 0.40

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoringWeights":
        return cls(
            skill_match=settings.scoring_skill_match_weight,
            rating=settings.scoring_rating_weight,
            on_time=settings.scoring_on_time_weight,
            rework=settings.scoring_rework_weight,
            portfolio=settings.scoring_portfolio_weight,
            manual=settings.scoring_manual_weight,
        )


DEFAULT_WEIGHTS = ScoringWeights()


@dataclass(frozen=True)
class Score:
    """Score value object for one application."""

    skill_match: float = 0.0
    rating_score: float = 0.0
    on_time_rate: float = 0.0
    rework_rate: float = 0.0
    portfolio_score: float = 0.0
    auto_score: float = 0.0
    manual_partner_score: float | None = None
    manual_supervisor_score: float | None = None
    final_score: float = 0.0

    @classmethod
    def of(cls, signals: ScoreSignals) -> "Score":
        """Build a score from any object carrying the signal attributes."""
        return cls(
            skill_match=signals.skill_match,
            rating_score=signals.rating_score,
            on_time_rate=signals.on_time_rate,
            rework_rate=signals.rework_rate,
            portfolio_score=signals.portfolio_score,
            auto_score=getattr(signals, "auto_score", 0.0),
            manual_partner_score=signals.manual_partner_score,
            manual_supervisor_score=signals.manual_supervisor_score,
            final_score=getattr(signals, "final_score", 0.0),
        )

    @property
    def manual_scores(self) -> list[float]:
        return [
            s for s in (self.manual_partner_score, self.manual_supervisor_score) if s is not None
        ]


def _check_range(name: str, value: float, low: float, high: float) -> None:
    if not low <= value <= high:
        raise ValidationError(f"{name} must be between {low:g} and {high:g}", value=value)


def validate_signals(signals: ScoreSignals) -> None:
    """Validate signal ranges.

    Raises:
        ValidationError: If any signal is out of range
    """
    _check_range("skill_match", signals.skill_match, 0.0, 100.0)
    _check_range("rating_score", signals.rating_score, 0.0, 100.0)
    _check_range("on_time_rate", signals.on_time_rate, 0.0, 1.0)
    _check_range("rework_rate", signals.rework_rate, 0.0, 1.0)
    _check_range("portfolio_score", signals.portfolio_score, 0.0, 100.0)
    for manual in (signals.manual_partner_score, signals.manual_supervisor_score):
        if manual is not None:
            validate_manual_score(manual)


def validate_manual_score(value: float) -> float:
    _check_range("manual score", value, 0.0, 100.0)
    return value


def _clamp(value: float) -> float:
    return round(min(100.0, max(0.0, value)), 2)


def compute_auto_score(signals: ScoreSignals, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    """Weighted sum of skill match, rating, on-time rate and (1 - rework rate).

    Rates are fractions and are scaled to 0-100 before weighting.
    """
    validate_signals(signals)
    return _clamp(
        weights.skill_match * signals.skill_match
        + weights.rating * signals.rating_score
        + weights.on_time * signals.on_time_rate * 100.0
        + weights.rework * (1.0 - signals.rework_rate) * 100.0
    )


def compute_final_score(score: Score, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    """Blend auto and portfolio scores, then the mean of any manual scores.

    Without manual scores the final score is the base blend alone.
    """
    validate_signals(score)
    base = score.auto_score * (1.0 - weights.portfolio) + score.portfolio_score * weights.portfolio
    manual = score.manual_scores
    if manual:
        base = base * (1.0 - weights.manual) + (sum(manual) / len(manual)) * weights.manual
    return _clamp(base)


def rescore(signals: ScoreSignals, weights: ScoringWeights = DEFAULT_WEIGHTS) -> Score:
    """Recompute auto and final scores from the raw signals."""
    score = Score.of(signals)
    score = replace(score, auto_score=compute_auto_score(score, weights))
    return replace(score, final_score=compute_final_score(score, weights))


def rank_applications[T: Rankable](applications: Iterable[T]) -> list[T]:
    """Order by final score descending, earliest submission first on ties."""
    return sorted(
        applications,
        key=lambda app: (-app.final_score, app.created_at, str(app.id)),
    )


def default_candidate[T: Rankable](applications: Iterable[T]) -> T | None:
    """Highest ranked application still eligible for assignment.

    Advisory only; nothing is assigned automatically.
    """
    for app in rank_applications(applications):
        if ApplicationStatus(app.status) in ASSIGNABLE_STATUSES:
            return app
    return None
