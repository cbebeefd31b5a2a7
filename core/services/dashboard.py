"""
Dashboard evaluation service: composes every derived value for one moment.

This is the single entry point the presentation layer talks to:
1. Resolve slot timing and today's per-dose statuses
2. Roll statuses up into daily, weekly and streak adherence
3. Run the trend detectors and merge external alerts
4. Add correlation insights

Evaluation itself is synchronous and pure. Only the periodic loop awaits, and
only for the data fetch.
"""

import asyncio
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from datetime import date, datetime
from typing import Protocol

import structlog

from core.config import AppConfig, get_config
from core.domain.models import (
    DashboardEvaluation,
    HealthSnapshot,
    ProtocolSchedule,
    WeeklyReport,
)
from core.services.adherence import AdherenceMatcher
from core.services.aggregator import AdherenceAggregator
from core.services.correlation import CorrelationHelper
from core.services.records import Result
from core.services.schedule import SlotTimingResolver
from core.services.trends import TrendAlertEngine

logger = structlog.get_logger(__name__)


class SnapshotSource(Protocol):
    """Data-access collaborator that fetches the latest records."""

    async def fetch_snapshot(self) -> Result[HealthSnapshot, Exception]: ...


class DashboardEvaluator:
    """
    Orchestrates the derived-metrics pipeline for the dashboard.

    Combines:
    - Slot timing and adherence matching
    - Daily/weekly adherence and streaks
    - Biometric trend alerts
    - Symptom correlation insights
    """

    def __init__(
        self,
        schedule: ProtocolSchedule,
        aliases: Mapping[str, Iterable[str]] | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.config = config or get_config()
        self.logger = logger.bind(component="dashboard_evaluator")

        self.resolver = SlotTimingResolver(schedule, self.config.adherence)
        self.matcher = AdherenceMatcher(self.resolver, aliases, self.config.adherence)
        self.aggregator = AdherenceAggregator(self.matcher, self.config.adherence)
        self.trends = TrendAlertEngine(self.config.trends)
        self.correlation = CorrelationHelper(self.config.correlation, self.config.trends)

        self._last_inputs: tuple[HealthSnapshot, datetime] | None = None
        self._last_evaluation: DashboardEvaluation | None = None
        self._is_running = False

    @property
    def schedule(self) -> ProtocolSchedule:
        return self.resolver.schedule

    @property
    def last_evaluation(self) -> DashboardEvaluation | None:
        return self._last_evaluation

    def evaluate(self, snapshot: HealthSnapshot, now: datetime) -> DashboardEvaluation:
        """Compute every derived value for ``now``. Identical inputs reuse the last result."""
        if self._last_evaluation is not None and self._last_inputs == (snapshot, now):
            return self._last_evaluation

        today = now.date()
        slots = self.matcher.slot_statuses(snapshot.doses, now)
        statuses = [status for slot in slots for status in slot.statuses]
        phase = snapshot.phase

        evaluation = DashboardEvaluation(
            evaluated_at=now,
            current_slot=self.resolver.current_slot(now),
            slots=tuple(slots),
            next_dose=self.resolver.next_dose(now, statuses),
            today=self.aggregator.daily_adherence(today, snapshot.doses),
            week=self.aggregator.weekly_adherence(today, snapshot.doses),
            streak_days=self.aggregator.streak(snapshot.doses, today),
            alerts=tuple(
                self.trends.evaluate(
                    now,
                    vitals=snapshot.vitals,
                    sleep=snapshot.sleep,
                    doses=snapshot.doses,
                    symptoms=snapshot.symptoms,
                    phase=phase,
                    external_alerts=snapshot.external_alerts,
                )
            ),
            insights=tuple(
                self.correlation.insights(snapshot.symptoms, snapshot.vitals, snapshot.sleep)
            ),
            phase_progress_percent=phase.progress_percent(today) if phase else None,
            phase_days_remaining=phase.days_remaining(today) if phase else None,
        )

        self._last_inputs = (snapshot, now)
        self._last_evaluation = evaluation

        self.logger.info(
            "dashboard_evaluated",
            evaluated_at=now.isoformat(),
            current_slot=evaluation.current_slot.key,
            today_pct=evaluation.today.percentage,
            week_pct=evaluation.week.percentage,
            streak_days=evaluation.streak_days,
            alerts=len(evaluation.alerts),
        )
        return evaluation

    def weekly_report(self, snapshot: HealthSnapshot, end_day: date) -> WeeklyReport:
        return self.aggregator.weekly_report(
            end_day, snapshot.doses, snapshot.symptoms, snapshot.dieoff_episodes
        )

    async def _fetch(self, source: SnapshotSource) -> HealthSnapshot:
        """Fetch with a timeout; any failed fetch degrades to an empty snapshot."""
        try:
            result = await asyncio.wait_for(
                source.fetch_snapshot(), timeout=self.config.monitoring.fetch_timeout_seconds
            )
        except TimeoutError as e:
            result = Result.err(e)

        if result.is_err():
            self.logger.warning("snapshot_fetch_failed", error=repr(result.unwrap_err()))
            return HealthSnapshot()
        return result.unwrap()

    async def run_periodic(
        self,
        source: SnapshotSource,
        clock: Callable[[], datetime] = datetime.now,
    ) -> AsyncIterator[DashboardEvaluation]:
        """
        Re-fetch and re-evaluate on a fixed interval.

        Yields one evaluation per cycle. The clock is read once per cycle, after
        the fetch completes. A cycle that fails unexpectedly is logged and the
        next one waits twice as long.
        """
        interval = self.config.monitoring.refresh_interval_seconds
        self.logger.info("periodic_evaluation_starting", interval=interval)
        self._is_running = True

        try:
            while self._is_running:
                delay = interval
                try:
                    snapshot = await self._fetch(source)
                    evaluation = self.evaluate(snapshot, clock())
                except Exception:
                    self.logger.exception("evaluation_cycle_failed")
                    delay = interval * 2
                else:
                    yield evaluation

                if self._is_running:
                    await asyncio.sleep(delay)

        except asyncio.CancelledError:
            self.logger.info("periodic_evaluation_cancelled")
            raise
        finally:
            self._is_running = False

    async def stop(self) -> None:
        """Stop the periodic loop after the current cycle."""
        self.logger.info("stopping_periodic_evaluation")
        self._is_running = False
