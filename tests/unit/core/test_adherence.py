"""Tests for dose matching in `core/services/adherence.py`."""

from datetime import time, timedelta

import pytest
from conftest import ALIASES, TODAY, at, dose
from hypothesis import given
from hypothesis import strategies as st

from core.config import AdherenceConfig
from core.domain.models import (
    DoseRecord,
    ProtocolSchedule,
    ScheduleSlot,
    SupplementDose,
    SupplementState,
    SupplementStatus,
)
from core.services.adherence import AdherenceMatcher, slot_badge
from core.services.schedule import SlotTimingResolver


def _states(statuses: list[SupplementStatus]) -> dict[tuple[str, str], SupplementState]:
    return {(s.slot_key, s.supplement_name): s.state for s in statuses}


class TestNameMatching:
    @pytest.mark.parametrize(
        "scheduled,logged,expected",
        [
            ("Allimax", "Allimax", True),
            ("Allimax", "ALLICIN 450mg", True),
            ("Neem", "neem leaf extract", True),
            ("Probiotic", "S. Boulardii", True),
            ("Probiotic", "Neem", False),
            ("Allimax", "", False),
            ("Vitamin D", "vitamin d3", True),
            ("Allimax", "C", False),
            ("Probiotic", "D", False),
            ("Probiotic", "Pro", False),
            ("Neem", "e", False),
        ],
    )
    def test_alias_and_substring_matching(
        self, matcher: AdherenceMatcher, scheduled: str, logged: str, expected: bool
    ) -> None:
        assert matcher.names_match(scheduled, logged) is expected

    def test_short_unrelated_log_does_not_prove_a_dose(self, matcher: AdherenceMatcher) -> None:
        morning = matcher.schedule.slot("morning")
        state = matcher.match_status(morning, "Allimax", [dose("C", 7, 0)], at(7, 30))
        assert state == SupplementState.PENDING

    def test_alias_terms_are_lowercase(self, matcher: AdherenceMatcher) -> None:
        assert matcher.aliases_for("Allimax") == frozenset({"allimax", "allicin"})


class TestMatchStatus:
    def test_taken_within_window(self, matcher: AdherenceMatcher) -> None:
        morning = matcher.schedule.slot("morning")
        state = matcher.match_status(morning, "Allimax", [dose("Allimax", 7, 5)], at(7, 30))
        assert state == SupplementState.TAKEN

    def test_log_outside_window_does_not_count(self, matcher: AdherenceMatcher) -> None:
        lunch = matcher.schedule.slot("lunch")
        state = matcher.match_status(lunch, "Allimax", [dose("Allimax", 7, 5)], at(9, 30))
        assert state == SupplementState.PENDING

    def test_missed_only_after_grace_period(self, matcher: AdherenceMatcher) -> None:
        morning = matcher.schedule.slot("morning")

        assert matcher.match_status(morning, "Neem", [], at(9, 0)) == SupplementState.PENDING
        assert (
            matcher.match_status(morning, "Neem", [], at(9, 0) + timedelta(seconds=1))
            == SupplementState.MISSED
        )

    def test_logs_from_other_days_are_ignored(self, matcher: AdherenceMatcher) -> None:
        morning = matcher.schedule.slot("morning")
        yesterday = dose("Allimax", 7, 0, day=TODAY - timedelta(days=1))

        assert matcher.match_status(morning, "Allimax", [yesterday], at(8, 0)) == SupplementState.PENDING

    def test_log_without_timestamp_is_not_proof(self, matcher: AdherenceMatcher) -> None:
        morning = matcher.schedule.slot("morning")
        undated = DoseRecord(supplement_name="Allimax", day=TODAY)

        assert matcher.match_status(morning, "Allimax", [undated], at(10, 0)) == SupplementState.MISSED

    @given(minutes_later=st.integers(min_value=0, max_value=16 * 60))
    def test_taken_never_reverts_later_in_the_day(self, minutes_later: int) -> None:
        schedule = _schedule()
        matcher = AdherenceMatcher(SlotTimingResolver(schedule, AdherenceConfig()), ALIASES)
        now = at(7, 30) + timedelta(minutes=minutes_later)

        state = matcher.match_status(schedule.slot("morning"), "Allimax", [dose("Allimax", 7, 10)], now)
        assert state == SupplementState.TAKEN


def _schedule() -> ProtocolSchedule:
    return ProtocolSchedule(
        slots=(
            ScheduleSlot(
                key="morning",
                label="Morning",
                time_of_day=time(7),
                supplements=(SupplementDose(name="Allimax"), SupplementDose(name="Neem")),
            ),
            ScheduleSlot(
                key="lunch",
                label="Lunch",
                time_of_day=time(12),
                supplements=(SupplementDose(name="Allimax"),),
            ),
        )
    )


class TestDayStatuses:
    def test_lenient_matching_lets_one_log_prove_two_slots(self, matcher: AdherenceMatcher) -> None:
        states = _states(matcher.day_statuses([dose("Allimax", 9, 30)], at(15, 0)))

        assert states[("morning", "Allimax")] == SupplementState.TAKEN
        assert states[("lunch", "Allimax")] == SupplementState.TAKEN
        assert states[("morning", "Neem")] == SupplementState.MISSED
        assert states[("bedtime", "Probiotic")] == SupplementState.PENDING

    def test_claimed_matching_uses_each_log_once(self, resolver: SlotTimingResolver) -> None:
        claiming = AdherenceMatcher(resolver, ALIASES, AdherenceConfig(claim_doses=True))

        states = _states(claiming.day_statuses([dose("Allimax", 9, 30)], at(15, 0)))

        assert states[("morning", "Allimax")] == SupplementState.TAKEN
        assert states[("lunch", "Allimax")] == SupplementState.MISSED

    def test_claimed_matching_prefers_the_closest_log(self, resolver: SlotTimingResolver) -> None:
        claiming = AdherenceMatcher(resolver, ALIASES, AdherenceConfig(claim_doses=True))
        logs = [dose("Allimax", 11, 50), dose("Allimax", 7, 5)]

        states = _states(claiming.day_statuses(logs, at(15, 0)))

        assert states[("morning", "Allimax")] == SupplementState.TAKEN
        assert states[("lunch", "Allimax")] == SupplementState.TAKEN

    def test_every_scheduled_dose_has_a_status(self, matcher: AdherenceMatcher) -> None:
        statuses = matcher.day_statuses([], at(6, 0))

        assert len(statuses) == matcher.schedule.total_doses
        assert all(s.state == SupplementState.PENDING for s in statuses)


class TestSlotStatuses:
    @pytest.mark.parametrize(
        "states,expected",
        [
            ([SupplementState.TAKEN, SupplementState.MISSED], SupplementState.TAKEN),
            ([SupplementState.MISSED, SupplementState.PENDING], SupplementState.MISSED),
            ([SupplementState.PENDING, SupplementState.PENDING], SupplementState.PENDING),
            ([], SupplementState.PENDING),
        ],
    )
    def test_badge_precedence(
        self, states: list[SupplementState], expected: SupplementState
    ) -> None:
        statuses = [
            SupplementStatus(slot_key="s", supplement_name=f"x{i}", state=state)
            for i, state in enumerate(states)
        ]
        assert slot_badge(statuses) == expected

    def test_slot_view_carries_timing_flags(self, matcher: AdherenceMatcher) -> None:
        slots = {s.slot.key: s for s in matcher.slot_statuses([dose("Allimax", 7, 0)], at(11, 30))}

        assert slots["morning"].badge == SupplementState.TAKEN
        assert slots["morning"].has_passed
        assert slots["lunch"].is_active
        assert not slots["lunch"].has_passed
        assert not slots["bedtime"].is_active
