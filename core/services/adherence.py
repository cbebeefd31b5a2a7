"""
Adherence matching: decides whether each scheduled dose was taken.

A dose counts as taken when a log for the same calendar day names the
supplement (case-insensitive, through an alias table) and was logged close
enough to the slot time. Without a match the dose is missed once the slot's
grace period has run out, and pending before that.

Two matching modes exist. Lenient matching (the default) checks every
scheduled dose independently, so one log near a slot boundary can satisfy two
slots. Claimed matching hands each log to at most one scheduled dose, closest
in time first, walking slots in schedule order.
"""

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta

import structlog

from core.config import AdherenceConfig
from core.domain.models import (
    DoseRecord,
    ScheduleSlot,
    SlotStatus,
    SupplementState,
    SupplementStatus,
)
from core.services.schedule import SlotTimingResolver

logger = structlog.get_logger(__name__)


def slot_badge(statuses: Iterable[SupplementStatus]) -> SupplementState:
    """Aggregate badge for a slot: Taken beats Missed beats Pending."""
    states = {status.state for status in statuses}
    if SupplementState.TAKEN in states:
        return SupplementState.TAKEN
    if SupplementState.MISSED in states:
        return SupplementState.MISSED
    return SupplementState.PENDING


class AdherenceMatcher:
    """Matches dose logs against the protocol schedule."""

    def __init__(
        self,
        resolver: SlotTimingResolver,
        aliases: Mapping[str, Iterable[str]] | None = None,
        config: AdherenceConfig | None = None,
    ) -> None:
        self.resolver = resolver
        self.schedule = resolver.schedule
        self.config = config or resolver.config
        self.match_window = timedelta(hours=self.config.match_window_hours)
        self.aliases: dict[str, frozenset[str]] = {
            canonical.lower(): frozenset({canonical.lower(), *(a.lower() for a in terms)})
            for canonical, terms in (aliases or {}).items()
        }
        self.logger = logger.bind(component="adherence_matcher")

    def aliases_for(self, supplement_name: str) -> frozenset[str]:
        """Every lowercase term that identifies a scheduled supplement in a log."""
        name = supplement_name.strip().lower()
        for terms in self.aliases.values():
            if any(term in name for term in terms):
                return terms | {name}
        return frozenset({name})

    def names_match(self, supplement_name: str, logged_name: str) -> bool:
        """A log names a supplement when one of its alias terms appears in the logged name."""
        logged = logged_name.strip().lower()
        if not logged:
            return False
        return any(term in logged for term in self.aliases_for(supplement_name))

    def time_distance(self, slot: ScheduleSlot, record: DoseRecord) -> timedelta | None:
        """How far a log is from the slot time on the log's own day."""
        if record.logged_at is None or record.day is None:
            return None
        return abs(record.logged_at - slot.scheduled_at(record.day))

    def _proves(self, slot: ScheduleSlot, supplement_name: str, record: DoseRecord) -> bool:
        distance = self.time_distance(slot, record)
        return (
            distance is not None
            and distance <= self.match_window
            and self.names_match(supplement_name, record.supplement_name)
        )

    def _unmatched_state(self, slot: ScheduleSlot, now: datetime) -> SupplementState:
        return SupplementState.MISSED if self.resolver.has_passed(slot, now) else SupplementState.PENDING

    def match_status(
        self,
        slot: ScheduleSlot,
        supplement_name: str,
        todays_dose_records: Iterable[DoseRecord],
        now: datetime,
    ) -> SupplementState:
        """Taken, Missed or Pending for one scheduled supplement on ``now``'s day."""
        today = now.date()
        for record in todays_dose_records:
            if record.day == today and self._proves(slot, supplement_name, record):
                return SupplementState.TAKEN
        return self._unmatched_state(slot, now)

    def day_statuses(
        self, dose_records: Iterable[DoseRecord], now: datetime
    ) -> list[SupplementStatus]:
        """Statuses for every scheduled dose of ``now``'s calendar day."""
        todays = [record for record in dose_records if record.day == now.date()]
        if self.config.claim_doses:
            return self._claimed_statuses(todays, now)

        return [
            SupplementStatus(
                slot_key=slot.key,
                supplement_name=dose.name,
                state=self.match_status(slot, dose.name, todays, now),
            )
            for slot in self.schedule.slots
            for dose in slot.supplements
        ]

    def _claimed_statuses(
        self, todays: Sequence[DoseRecord], now: datetime
    ) -> list[SupplementStatus]:
        claimed: set[int] = set()
        statuses: list[SupplementStatus] = []

        for slot in self.schedule.slots:
            for dose in slot.supplements:
                candidates = [
                    (self.time_distance(slot, record), index)
                    for index, record in enumerate(todays)
                    if index not in claimed and self._proves(slot, dose.name, record)
                ]
                if candidates:
                    _, index = min(candidates)  # type: ignore[type-var]
                    claimed.add(index)
                    state = SupplementState.TAKEN
                else:
                    state = self._unmatched_state(slot, now)
                statuses.append(
                    SupplementStatus(slot_key=slot.key, supplement_name=dose.name, state=state)
                )

        self.logger.debug("doses_claimed", claimed=len(claimed), available=len(todays))
        return statuses

    def slot_statuses(
        self, dose_records: Iterable[DoseRecord], now: datetime
    ) -> list[SlotStatus]:
        """Per-slot view of today's statuses with badge and timing flags."""
        statuses = self.day_statuses(dose_records, now)
        by_slot: dict[str, list[SupplementStatus]] = {}
        for status in statuses:
            by_slot.setdefault(status.slot_key, []).append(status)

        return [
            SlotStatus(
                slot=slot,
                statuses=tuple(by_slot.get(slot.key, [])),
                badge=slot_badge(by_slot.get(slot.key, [])),
                is_active=self.resolver.is_active(slot, now),
                has_passed=self.resolver.has_passed(slot, now),
            )
            for slot in self.schedule.slots
        ]
