"""
Slot timing: which dosing slot is current, which have passed, and what is next.

All methods take ``now`` explicitly (naive local time) so a whole evaluation
reads the wall clock exactly once.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta

import structlog

from core.config import AdherenceConfig
from core.domain.models import (
    NextDose,
    ProtocolSchedule,
    ScheduleSlot,
    SupplementState,
    SupplementStatus,
)

logger = structlog.get_logger(__name__)


class SlotTimingResolver:
    """Resolves slot windows for a protocol schedule."""

    def __init__(self, schedule: ProtocolSchedule, config: AdherenceConfig | None = None) -> None:
        self.schedule = schedule
        self.config = config or AdherenceConfig()
        self.grace_period = timedelta(hours=self.config.grace_period_hours)
        self.active_lead = timedelta(hours=self.config.active_lead_hours)

    def current_slot(self, now: datetime) -> ScheduleSlot:
        """
        The slot whose window contains ``now``.

        Each slot owns the span from its start up to the next slot's start. The
        first slot also owns the early morning before it, and the last slot
        owns the rest of the day after it.
        """
        current = self.schedule.first_slot
        for slot in self.schedule.slots:
            if slot.time_of_day <= now.time():
                current = slot
            else:
                break
        return current

    def has_passed(self, slot: ScheduleSlot, now: datetime) -> bool:
        """True once ``now`` is strictly beyond the slot time plus the grace period."""
        return now > slot.scheduled_at(now.date()) + self.grace_period

    def is_active(self, slot: ScheduleSlot, now: datetime) -> bool:
        """True from one hour before the slot until the grace period ends."""
        scheduled = slot.scheduled_at(now.date())
        return scheduled - self.active_lead <= now <= scheduled + self.grace_period

    def next_dose(self, now: datetime, todays_statuses: Iterable[SupplementStatus]) -> NextDose:
        """
        First upcoming slot today that still has pending supplements.

        Falls back to tomorrow's first slot, so the ETA never goes negative.
        """
        pending: dict[str, list[str]] = {}
        for status in todays_statuses:
            if status.state == SupplementState.PENDING:
                pending.setdefault(status.slot_key, []).append(status.supplement_name)

        for slot in self.schedule.slots:
            scheduled = slot.scheduled_at(now.date())
            if scheduled >= now and pending.get(slot.key):
                return NextDose(
                    slot=slot,
                    pending_supplements=tuple(pending[slot.key]),
                    scheduled_at=scheduled,
                    eta=scheduled - now,
                )

        first = self.schedule.first_slot
        tomorrow = first.scheduled_at(now.date() + timedelta(days=1))
        logger.debug("next_dose_rolled_over", slot=first.key, scheduled_at=tomorrow.isoformat())
        return NextDose(
            slot=first,
            pending_supplements=tuple(first.supplement_names),
            scheduled_at=tomorrow,
            eta=tomorrow - now,
            is_tomorrow=True,
        )
