"""
Biometric trend detection and alert generation.

One engine replaces the per-card threshold checks: every detector works on a
date-descending, null-filtered, one-value-per-day copy of its series, and the
caller gets a single prioritized alert list.

Detectors:
- HRV critical (consecutive low days) or, failing that, HRV warning
- HRV optimal (independent of the two above)
- Sleep: deep sleep, quality and duration over a fixed look-back window
- Protocol reminder during the late-morning window
- Phase ending soon
- High-severity symptom logged today
"""

from collections.abc import Callable, Iterable
from datetime import date, datetime
from statistics import fmean
from typing import Any

import structlog

from core.config import TrendConfig
from core.domain.models import (
    Alert,
    AlertCategory,
    AlertPriority,
    DoseRecord,
    ProtocolPhase,
    SleepRecord,
    SymptomRecord,
    VitalRecord,
)

logger = structlog.get_logger(__name__)

DailySeries = list[tuple[date, float]]


def daily_series(records: Iterable[Any], field: str) -> DailySeries:
    """
    One value per calendar day, most recent first.

    Records without a day or without a value for ``field`` are dropped. Several
    sources reporting the same day are averaged.
    """
    by_day: dict[date, list[float]] = {}
    for record in records:
        value = getattr(record, field, None)
        if record.day is None or value is None:
            continue
        by_day.setdefault(record.day, []).append(value)
    return sorted(((day, fmean(values)) for day, values in by_day.items()), reverse=True)


def consecutive_run(series: DailySeries, predicate: Callable[[float], bool]) -> int:
    """Length of the most recent gap-free run of days satisfying ``predicate``."""
    count = 0
    previous: date | None = None
    for day, value in series:
        if previous is not None and (previous - day).days != 1:
            break
        if not predicate(value):
            break
        count += 1
        previous = day
    return count


def sort_alerts(alerts: Iterable[Alert]) -> list[Alert]:
    """High before Medium before Low; equal priorities keep their order."""
    return sorted(alerts, key=lambda alert: alert.priority.rank)


class TrendAlertEngine:
    """Runs every threshold detector and merges the results."""

    def __init__(self, config: TrendConfig | None = None) -> None:
        self.config = config or TrendConfig()
        self.logger = logger.bind(component="trend_alert_engine")

    def hrv_alerts(self, vitals: Iterable[VitalRecord]) -> list[Alert]:
        cfg = self.config
        series = daily_series(vitals, "hrv")
        alerts: list[Alert] = []

        critical_run = consecutive_run(series, lambda hrv: hrv < cfg.hrv_critical)
        if critical_run >= cfg.hrv_critical_days:
            alerts.append(
                Alert(
                    priority=AlertPriority.HIGH,
                    category=AlertCategory.HRV,
                    message=(
                        f"HRV critically low for {critical_run} consecutive days "
                        f"(latest {series[0][1]:.0f} ms)"
                    ),
                    recommendation=(
                        "Rest day: skip intense exercise, hydrate, and consider halving "
                        "antimicrobial doses until HRV recovers."
                    ),
                )
            )
        else:
            warning_run = consecutive_run(series, lambda hrv: hrv < cfg.hrv_warning)
            if warning_run >= cfg.hrv_warning_days:
                alerts.append(
                    Alert(
                        priority=AlertPriority.MEDIUM,
                        category=AlertCategory.HRV,
                        message=f"HRV below {cfg.hrv_warning:.0f} ms for {warning_run} days",
                        recommendation="Keep training light and prioritize sleep tonight.",
                    )
                )

        recent = series[: cfg.hrv_optimal_days]
        if len(recent) >= cfg.hrv_optimal_days and all(hrv > cfg.hrv_optimal for _, hrv in recent):
            alerts.append(
                Alert(
                    priority=AlertPriority.LOW,
                    category=AlertCategory.HRV,
                    message=f"HRV above {cfg.hrv_optimal:.0f} ms for {len(recent)} days",
                    recommendation="Recovery looks strong; the current protocol is well tolerated.",
                )
            )
        return alerts

    def sleep_alerts(self, sleep: Iterable[SleepRecord]) -> list[Alert]:
        cfg = self.config
        nights = list(sleep)
        alerts: list[Alert] = []

        def bad_nights(field: str, predicate: Callable[[float], bool]) -> int:
            window = daily_series(nights, field)[: cfg.sleep_lookback_nights]
            return sum(1 for _, value in window if predicate(value))

        low_deep = bad_nights("deep_minutes", lambda m: m < cfg.deep_sleep_critical_minutes)
        if low_deep >= cfg.sleep_min_nights:
            alerts.append(
                Alert(
                    priority=AlertPriority.HIGH,
                    category=AlertCategory.SLEEP,
                    message=(
                        f"Deep sleep under {cfg.deep_sleep_critical_minutes:.0f} min on "
                        f"{low_deep} of the last {cfg.sleep_lookback_nights} nights"
                    ),
                    recommendation=(
                        "Move the bedtime dose earlier, avoid late meals and screens, "
                        "and keep the bedroom cool."
                    ),
                )
            )

        poor_quality = bad_nights("quality", lambda q: 0 < q < cfg.sleep_quality_warning)
        if poor_quality >= cfg.sleep_min_nights:
            alerts.append(
                Alert(
                    priority=AlertPriority.MEDIUM,
                    category=AlertCategory.SLEEP,
                    message=f"Poor sleep quality on {poor_quality} recent nights",
                    recommendation="Check for night-time die-off symptoms and adjust evening doses.",
                )
            )

        short = bad_nights("total_hours", lambda h: h < cfg.short_sleep_hours)
        if short >= cfg.sleep_min_nights:
            alerts.append(
                Alert(
                    priority=AlertPriority.MEDIUM,
                    category=AlertCategory.SLEEP,
                    message=f"Under {cfg.short_sleep_hours:.0f} hours of sleep on {short} recent nights",
                    recommendation="Aim for an earlier, consistent bedtime this week.",
                )
            )
        return alerts

    def protocol_reminder(self, doses: Iterable[DoseRecord], now: datetime) -> list[Alert]:
        cfg = self.config
        if not cfg.reminder_start_hour <= now.hour < cfg.reminder_end_hour:
            return []
        if any(record.day == now.date() for record in doses):
            return []
        return [
            Alert(
                priority=AlertPriority.LOW,
                category=AlertCategory.PROTOCOL,
                message="No supplements logged yet today",
                recommendation="Take and log the morning doses.",
            )
        ]

    def phase_ending(self, phase: ProtocolPhase | None, today: date) -> list[Alert]:
        if phase is None:
            return []
        remaining = phase.days_remaining(today)
        if remaining is None or not 0 < remaining <= self.config.phase_ending_days:
            return []
        return [
            Alert(
                priority=AlertPriority.MEDIUM,
                category=AlertCategory.PROTOCOL,
                message=f"{phase.name} ends in {remaining} day{'s' if remaining != 1 else ''}",
                recommendation="Plan the next phase and schedule a retest.",
            )
        ]

    def symptom_alerts(self, symptoms: Iterable[SymptomRecord], today: date) -> list[Alert]:
        severe = [
            s
            for s in symptoms
            if s.day == today
            and s.severity is not None
            and s.severity >= self.config.high_symptom_severity
        ]
        if not severe:
            return []
        worst = max(severe, key=lambda s: s.severity or 0)
        return [
            Alert(
                priority=AlertPriority.HIGH,
                category=AlertCategory.SYMPTOM,
                message=f"High severity {worst.type.replace('_', ' ')} reported: {worst.severity}/10",
                recommendation="Follow the die-off plan for this severity and note any triggers.",
            )
        ]

    def evaluate(
        self,
        now: datetime,
        vitals: Iterable[VitalRecord] = (),
        sleep: Iterable[SleepRecord] = (),
        doses: Iterable[DoseRecord] = (),
        symptoms: Iterable[SymptomRecord] = (),
        phase: ProtocolPhase | None = None,
        external_alerts: Iterable[Alert] = (),
    ) -> list[Alert]:
        """Run all detectors, append external alerts, and sort by priority."""
        derived = [
            *self.hrv_alerts(vitals),
            *self.sleep_alerts(sleep),
            *self.protocol_reminder(doses, now),
            *self.phase_ending(phase, now.date()),
            *self.symptom_alerts(symptoms, now.date()),
        ]
        alerts = sort_alerts([*derived, *external_alerts])

        self.logger.info(
            "alerts_evaluated",
            derived=len(derived),
            total=len(alerts),
            high=sum(1 for a in alerts if a.priority == AlertPriority.HIGH),
        )
        return alerts
