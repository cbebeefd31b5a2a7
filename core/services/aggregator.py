"""
Adherence roll-ups: daily percentage, 7-day pooled percentage and streaks.

Everything is bucketed by the records' local calendar day. Streaks are recomputed
from the dose history on every call; no counter is stored.
"""

from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timedelta

import structlog

from core.config import AdherenceConfig
from core.domain.models import (
    DailyAdherence,
    DieOffEpisode,
    DoseRecord,
    SupplementState,
    SymptomRecord,
    WeeklyAdherence,
    WeeklyReport,
)
from core.services.adherence import AdherenceMatcher

logger = structlog.get_logger(__name__)

WEEK_DAYS = 7


def _percentage(taken: int, total: int) -> int:
    if total <= 0:
        return 0
    return min(100, max(0, round(taken / total * 100)))


class AdherenceAggregator:
    """Rolls per-dose statuses up into daily, weekly and streak figures."""

    def __init__(self, matcher: AdherenceMatcher, config: AdherenceConfig | None = None) -> None:
        self.matcher = matcher
        self.schedule = matcher.schedule
        self.config = config or matcher.config
        self.logger = logger.bind(component="adherence_aggregator")

    @property
    def total_per_day(self) -> int:
        return self.schedule.total_doses

    def _by_day(self, dose_records: Iterable[DoseRecord]) -> dict[date, list[DoseRecord]]:
        buckets: dict[date, list[DoseRecord]] = {}
        for record in dose_records:
            if record.day is not None:
                buckets.setdefault(record.day, []).append(record)
        return buckets

    def _daily(self, day: date, records: Sequence[DoseRecord]) -> DailyAdherence:
        # Taken never depends on the clock; end of day just settles the rest.
        end_of_day = datetime.combine(day, time.max)
        statuses = self.matcher.day_statuses(records, end_of_day)
        taken = sum(1 for status in statuses if status.state == SupplementState.TAKEN)
        total = self.total_per_day
        return DailyAdherence(day=day, taken=taken, total=total, percentage=_percentage(taken, total))

    def daily_adherence(self, day: date, dose_records: Iterable[DoseRecord]) -> DailyAdherence:
        """Taken doses out of the schedule's fixed daily total."""
        return self._daily(day, self._by_day(dose_records).get(day, []))

    def weekly_adherence(
        self, end_day: date, dose_records: Iterable[DoseRecord]
    ) -> WeeklyAdherence:
        """
        Seven calendar days ending at ``end_day`` inclusive.

        The percentage pools doses (total taken / total expected) rather than
        averaging the daily percentages.
        """
        buckets = self._by_day(dose_records)
        per_day = [
            self._daily(day, buckets.get(day, []))
            for day in (end_day - timedelta(days=offset) for offset in range(WEEK_DAYS - 1, -1, -1))
        ]
        taken = sum(day.taken for day in per_day)
        total = sum(day.total for day in per_day)
        return WeeklyAdherence(
            end_day=end_day,
            taken=taken,
            total=total,
            percentage=_percentage(taken, total),
            per_day=tuple(per_day),
        )

    def streak(
        self,
        dose_records: Iterable[DoseRecord],
        today: date,
        threshold_pct: int | None = None,
    ) -> int:
        """
        Consecutive qualifying days walking backward from ``today``.

        Today is still in progress: it extends the streak once it qualifies,
        and otherwise neither extends nor breaks it. Any earlier day below the
        threshold, or with no logs at all, ends the walk.
        """
        threshold = self.config.streak_threshold_pct if threshold_pct is None else threshold_pct
        buckets = self._by_day(dose_records)
        if self.total_per_day <= 0:
            return 0

        def qualifies(day: date) -> bool:
            records = buckets.get(day)
            return bool(records) and self._daily(day, records).percentage >= threshold

        count = 1 if qualifies(today) else 0
        day = today - timedelta(days=1)
        while count < self.config.streak_max_days and qualifies(day):
            count += 1
            day -= timedelta(days=1)

        self.logger.debug("streak_computed", today=today.isoformat(), streak=count)
        return count

    def weekly_report(
        self,
        end_day: date,
        dose_records: Iterable[DoseRecord],
        symptoms: Iterable[SymptomRecord] = (),
        dieoff_episodes: Iterable[DieOffEpisode] = (),
    ) -> WeeklyReport:
        """Seven-day adherence plus how much was logged in the same window."""
        start = end_day - timedelta(days=WEEK_DAYS - 1)
        records = list(dose_records)
        in_window = [
            s for s in symptoms if s.day is not None and start <= s.day <= end_day
        ]
        return WeeklyReport(
            end_day=end_day,
            adherence=self.weekly_adherence(end_day, records),
            dose_logs=sum(1 for r in records if r.day is not None and start <= r.day <= end_day),
            symptom_count=len(in_window),
            symptom_types=tuple(sorted({s.type for s in in_window})),
            dieoff_episodes=sum(
                1 for e in dieoff_episodes if e.day is not None and start <= e.day <= end_day
            ),
        )
