"""Shared fixtures: a small three-slot schedule and the services built on it."""

from datetime import date, datetime, time

import pytest

from core.config import AdherenceConfig
from core.domain.models import DoseRecord, ProtocolSchedule, ScheduleSlot, SupplementDose
from core.services.adherence import AdherenceMatcher
from core.services.aggregator import AdherenceAggregator
from core.services.schedule import SlotTimingResolver

TODAY = date(2025, 3, 10)

ALIASES = {
    "Allimax": ("allimax", "allicin"),
    "Neem": ("neem",),
    "Probiotic": ("probiotic", "boulardii"),
}


def at(hour: int, minute: int = 0, day: date = TODAY) -> datetime:
    return datetime.combine(day, time(hour, minute))


def dose(name: str, hour: int, minute: int = 0, day: date = TODAY) -> DoseRecord:
    return DoseRecord(supplement_name=name, logged_at=at(hour, minute, day))


def three_slot_schedule() -> ProtocolSchedule:
    """Morning 07:00 (Allimax, Neem), lunch 12:00 (Allimax), bedtime 22:00 (Probiotic)."""
    return ProtocolSchedule(
        slots=(
            ScheduleSlot(
                key="morning",
                label="Morning",
                time_of_day=time(7, 0),
                supplements=(SupplementDose(name="Allimax"), SupplementDose(name="Neem")),
            ),
            ScheduleSlot(
                key="lunch",
                label="Lunch",
                time_of_day=time(12, 0),
                supplements=(SupplementDose(name="Allimax"),),
            ),
            ScheduleSlot(
                key="bedtime",
                label="Bedtime",
                time_of_day=time(22, 0),
                supplements=(SupplementDose(name="Probiotic"),),
            ),
        )
    )


@pytest.fixture
def schedule() -> ProtocolSchedule:
    return three_slot_schedule()


@pytest.fixture
def adherence_config() -> AdherenceConfig:
    return AdherenceConfig()


@pytest.fixture
def resolver(schedule: ProtocolSchedule, adherence_config: AdherenceConfig) -> SlotTimingResolver:
    return SlotTimingResolver(schedule, adherence_config)


@pytest.fixture
def matcher(resolver: SlotTimingResolver) -> AdherenceMatcher:
    return AdherenceMatcher(resolver, ALIASES)


@pytest.fixture
def aggregator(matcher: AdherenceMatcher) -> AdherenceAggregator:
    return AdherenceAggregator(matcher)
