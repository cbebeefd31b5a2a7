"""
Symptom/biometric correlation heuristics and the food reaction matrix.

These are qualitative observations, not statistics: symptoms are joined to
vitals and sleep by calendar day, and an insight fires once enough same-day
pairs agree.
"""

from collections.abc import Iterable
from datetime import date
from statistics import fmean

import structlog

from core.config import CorrelationConfig, TrendConfig
from core.domain.models import (
    FoodReactionStats,
    Insight,
    MealRecord,
    SleepRecord,
    SymptomRecord,
    SymptomSummary,
    VitalRecord,
)
from core.services.trends import daily_series

logger = structlog.get_logger(__name__)


def daily_max_severity(symptoms: Iterable[SymptomRecord]) -> dict[date, int]:
    """Highest severity logged on each day."""
    worst: dict[date, int] = {}
    for symptom in symptoms:
        if symptom.day is None or symptom.severity is None:
            continue
        worst[symptom.day] = max(worst.get(symptom.day, symptom.severity), symptom.severity)
    return worst


def symptom_trends(symptoms: Iterable[SymptomRecord]) -> dict[str, list[tuple[date, int]]]:
    """Severity history per symptom type, oldest first."""
    trends: dict[str, list[tuple[date, int]]] = {}
    for symptom in symptoms:
        if symptom.day is None or symptom.severity is None:
            continue
        trends.setdefault(symptom.type, []).append((symptom.day, symptom.severity))
    return {kind: sorted(points, key=lambda point: point[0]) for kind, points in trends.items()}


def symptom_averages(
    symptoms: Iterable[SymptomRecord], since: date | None = None
) -> dict[str, SymptomSummary]:
    """Mean, count and most recent severity per symptom type, optionally from ``since`` onward."""
    averages: dict[str, SymptomSummary] = {}
    for kind, points in symptom_trends(symptoms).items():
        recent = [severity for day, severity in points if since is None or day >= since]
        if recent:
            averages[kind] = SymptomSummary(
                average=round(fmean(recent), 1), count=len(recent), latest=recent[-1]
            )
    return averages


def food_reaction_matrix(meals: Iterable[MealRecord]) -> list[FoodReactionStats]:
    """
    Per-food tolerance tally across all logged meals.

    Foods are split on commas and compared case-insensitively. A reaction of
    "none" is a good outcome, "bad" a bad one, and anything else (including no
    reaction recorded) neutral. Most frequently eaten foods come first.
    """
    tallies: dict[str, dict[str, int]] = {}
    for meal in meals:
        outcome = {"none": "good", "bad": "bad"}.get(meal.reaction or "", "neutral")
        for food in (part.strip().lower() for part in meal.foods.split(",")):
            if not food:
                continue
            tally = tallies.setdefault(food, {"count": 0, "good": 0, "neutral": 0, "bad": 0})
            tally["count"] += 1
            tally[outcome] += 1

    stats = [FoodReactionStats(food=food, **tally) for food, tally in tallies.items()]
    return sorted(stats, key=lambda entry: entry.count, reverse=True)


class CorrelationHelper:
    """Produces qualitative insights from symptom and biometric history."""

    def __init__(
        self,
        config: CorrelationConfig | None = None,
        trend_config: TrendConfig | None = None,
    ) -> None:
        self.config = config or CorrelationConfig()
        self.trend_config = trend_config or TrendConfig()
        self.logger = logger.bind(component="correlation_helper")

    def _pairs(
        self, severities: dict[date, int], series: list[tuple[date, float]]
    ) -> list[tuple[float, int]]:
        return [(value, severities[day]) for day, value in series if day in severities]

    def biometric_insights(
        self,
        symptoms: Iterable[SymptomRecord],
        vitals: Iterable[VitalRecord] = (),
        sleep: Iterable[SleepRecord] = (),
    ) -> list[Insight]:
        cfg, bands = self.config, self.trend_config
        severities = daily_max_severity(symptoms)
        hrv_pairs = self._pairs(severities, daily_series(vitals, "hrv"))
        deep_pairs = self._pairs(severities, daily_series(sleep, "deep_minutes"))
        insights: list[Insight] = []

        low_hrv = sum(1 for hrv, sev in hrv_pairs if hrv < bands.hrv_critical and sev >= cfg.high_severity)
        if low_hrv >= cfg.min_pairs:
            insights.append(
                Insight(
                    kind="low_hrv_higher_symptoms",
                    message="Low HRV correlates with higher symptoms",
                )
            )

        good_hrv = sum(1 for hrv, sev in hrv_pairs if hrv >= bands.hrv_warning and sev <= cfg.mild_severity)
        if good_hrv >= cfg.min_pairs:
            insights.append(
                Insight(
                    kind="good_hrv_milder_symptoms",
                    message="Good HRV, milder symptoms",
                )
            )

        low_deep = sum(
            1
            for minutes, sev in deep_pairs
            if minutes < bands.deep_sleep_critical_minutes and sev >= cfg.high_severity
        )
        if low_deep >= cfg.min_pairs:
            insights.append(
                Insight(
                    kind="low_deep_sleep_worse_symptoms",
                    message="Low deep sleep precedes worse symptoms",
                )
            )
        return insights

    def trend_insights(self, symptoms: Iterable[SymptomRecord]) -> list[Insight]:
        """Compare the latest entries of each symptom type with the ones before."""
        window = self.config.trend_window
        insights: list[Insight] = []

        for kind, points in symptom_trends(symptoms).items():
            newest_first = [severity for _, severity in reversed(points)]
            if len(newest_first) < window * 2:
                continue
            recent_total = sum(newest_first[:window])
            previous_total = sum(newest_first[window : window * 2])
            recent, previous = recent_total / window, previous_total / window
            # Compare totals, not means, so an exact one-point shift never rounds away.
            threshold = self.config.trend_delta * window
            label = kind.replace("_", " ")

            if previous_total - recent_total >= threshold:
                insights.append(
                    Insight(
                        kind="symptom_improving",
                        message=f"{label.capitalize()} improving: {recent:.1f} vs {previous:.1f} before",
                        symptom_type=kind,
                    )
                )
            elif recent_total - previous_total >= threshold:
                insights.append(
                    Insight(
                        kind="symptom_worsening",
                        message=f"{label.capitalize()} worsening: {recent:.1f} vs {previous:.1f} before",
                        symptom_type=kind,
                    )
                )
        return insights

    def insights(
        self,
        symptoms: Iterable[SymptomRecord],
        vitals: Iterable[VitalRecord] = (),
        sleep: Iterable[SleepRecord] = (),
    ) -> list[Insight]:
        symptoms = list(symptoms)
        insights = [
            *self.biometric_insights(symptoms, vitals, sleep),
            *self.trend_insights(symptoms),
        ]
        self.logger.debug("insights_computed", count=len(insights))
        return insights
