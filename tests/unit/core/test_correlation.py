"""Tests for correlation insights and the food matrix in `core/services/correlation.py`."""

from datetime import date, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from core.domain.models import (
    MealRecord,
    SleepRecord,
    SymptomRecord,
    SymptomSummary,
    VitalRecord,
)
from core.services.correlation import (
    CorrelationHelper,
    daily_max_severity,
    food_reaction_matrix,
    symptom_averages,
    symptom_trends,
)

TODAY = date(2025, 3, 10)


def day(n: int) -> date:
    return TODAY - timedelta(days=n)


@pytest.fixture
def helper() -> CorrelationHelper:
    return CorrelationHelper()


class TestBiometricInsights:
    def test_low_hrv_with_high_symptoms(self, helper: CorrelationHelper) -> None:
        symptoms = [
            SymptomRecord(day=day(0), type="bloating", severity=6),
            SymptomRecord(day=day(1), type="bloating", severity=7),
        ]
        vitals = [VitalRecord(day=day(0), hrv=45.0), VitalRecord(day=day(1), hrv=48.0)]

        kinds = [i.kind for i in helper.insights(symptoms, vitals)]
        assert kinds == ["low_hrv_higher_symptoms"]

    def test_single_pair_is_not_enough(self, helper: CorrelationHelper) -> None:
        symptoms = [SymptomRecord(day=day(0), type="bloating", severity=6)]
        vitals = [VitalRecord(day=day(0), hrv=45.0), VitalRecord(day=day(1), hrv=48.0)]

        assert helper.insights(symptoms, vitals) == []

    def test_good_hrv_with_mild_symptoms(self, helper: CorrelationHelper) -> None:
        symptoms = [
            SymptomRecord(day=day(n), type="fatigue", severity=2) for n in range(3)
        ]
        vitals = [VitalRecord(day=day(n), hrv=65.0) for n in range(3)]

        insights = helper.insights(symptoms, vitals)

        assert [i.kind for i in insights] == ["good_hrv_milder_symptoms"]
        assert [i.message for i in insights] == ["Good HRV, milder symptoms"]

    def test_pairs_use_the_worst_symptom_of_the_day(self, helper: CorrelationHelper) -> None:
        symptoms = [
            SymptomRecord(day=day(0), type="fatigue", severity=2),
            SymptomRecord(day=day(0), type="bloating", severity=8),
            SymptomRecord(day=day(1), type="fatigue", severity=2),
            SymptomRecord(day=day(1), type="bloating", severity=8),
        ]
        vitals = [VitalRecord(day=day(0), hrv=70.0), VitalRecord(day=day(1), hrv=70.0)]

        assert daily_max_severity(symptoms) == {day(0): 8, day(1): 8}
        assert helper.insights(symptoms, vitals) == []

    def test_low_deep_sleep_with_worse_symptoms(self, helper: CorrelationHelper) -> None:
        symptoms = [SymptomRecord(day=day(n), type="brain_fog", severity=6) for n in range(2)]
        sleep = [SleepRecord(day=day(n), deep_minutes=20.0) for n in range(2)]

        kinds = [i.kind for i in helper.insights(symptoms, sleep=sleep)]
        assert kinds == ["low_deep_sleep_worse_symptoms"]

    def test_missing_biometrics_produce_nothing(self, helper: CorrelationHelper) -> None:
        symptoms = [SymptomRecord(day=day(n), type="bloating", severity=8) for n in range(3)]
        vitals = [VitalRecord(day=day(n), hrv=None) for n in range(3)]

        assert helper.insights(symptoms, vitals) == []


class TestTrendInsights:
    def _history(self, older: list[int], recent: list[int]) -> list[SymptomRecord]:
        severities = older + recent
        return [
            SymptomRecord(day=day(len(severities) - 1 - n), type="bloating", severity=severity)
            for n, severity in enumerate(severities)
        ]

    def test_improving(self, helper: CorrelationHelper) -> None:
        insights = helper.trend_insights(self._history([6, 6, 7, 6, 6], [4, 5, 4, 5, 4]))

        assert [i.kind for i in insights] == ["symptom_improving"]
        assert insights[0].symptom_type == "bloating"
        assert "4.4 vs 6.2" in insights[0].message

    def test_worsening(self, helper: CorrelationHelper) -> None:
        insights = helper.trend_insights(self._history([2, 2, 2, 2, 2], [4, 3, 3, 4, 3]))
        assert [i.kind for i in insights] == ["symptom_worsening"]

    def test_small_change_is_not_a_trend(self, helper: CorrelationHelper) -> None:
        assert helper.trend_insights(self._history([5, 5, 5, 5, 5], [5, 4, 5, 4, 5])) == []

    @pytest.mark.parametrize(
        "older,recent,kind",
        [
            ([2, 1, 1, 1, 1], [1, 0, 0, 0, 0], "symptom_improving"),
            ([1, 0, 0, 0, 0], [2, 1, 1, 1, 1], "symptom_worsening"),
            ([7, 7, 7, 7, 8], [7, 6, 6, 6, 6], "symptom_improving"),
        ],
    )
    def test_exact_one_point_shift_is_a_trend(
        self, helper: CorrelationHelper, older: list[int], recent: list[int], kind: str
    ) -> None:
        insights = helper.trend_insights(self._history(older, recent))
        assert [i.kind for i in insights] == [kind]

    @given(recent=st.lists(st.integers(min_value=0, max_value=9), min_size=5, max_size=5))
    def test_one_point_drop_always_reads_as_improving(self, recent: list[int]) -> None:
        older = [severity + 1 for severity in recent]

        insights = CorrelationHelper().trend_insights(self._history(older, recent))

        assert [i.kind for i in insights] == ["symptom_improving"]

    def test_needs_ten_entries(self, helper: CorrelationHelper) -> None:
        assert helper.trend_insights(self._history([8, 8, 8, 8], [1, 1, 1, 1, 1])) == []


class TestSymptomSummaries:
    def test_trends_group_by_type_oldest_first(self) -> None:
        symptoms = [
            SymptomRecord(day=day(0), type="bloating", severity=3),
            SymptomRecord(day=day(2), type="bloating", severity=5),
            SymptomRecord(day=day(1), type="fatigue", severity=4),
            SymptomRecord(day=day(1), type="fatigue", severity=None),
        ]

        assert symptom_trends(symptoms) == {
            "bloating": [(day(2), 5), (day(0), 3)],
            "fatigue": [(day(1), 4)],
        }

    def test_averages_since_a_day(self) -> None:
        symptoms = [
            SymptomRecord(day=day(0), type="bloating", severity=3),
            SymptomRecord(day=day(1), type="bloating", severity=4),
            SymptomRecord(day=day(20), type="bloating", severity=9),
            SymptomRecord(day=day(20), type="nausea", severity=9),
        ]

        assert symptom_averages(symptoms, since=day(7)) == {
            "bloating": SymptomSummary(average=3.5, count=2, latest=3),
        }
        assert symptom_averages(symptoms) == {
            "bloating": SymptomSummary(average=5.3, count=3, latest=3),
            "nausea": SymptomSummary(average=9.0, count=1, latest=9),
        }


class TestFoodReactionMatrix:
    def test_tallies_and_verdicts(self) -> None:
        meals = [
            MealRecord(day=day(0), foods="Rice, Chicken", reaction="none"),
            MealRecord(day=day(1), foods="rice, onion ", reaction="bad"),
            MealRecord(day=day(2), foods="rice,onion", reaction="bad"),
            MealRecord(day=day(3), foods="chicken", reaction="mild"),
        ]

        matrix = {stats.food: stats for stats in food_reaction_matrix(meals)}

        assert matrix["rice"].count == 3
        assert (matrix["rice"].good, matrix["rice"].bad) == (1, 2)
        assert matrix["rice"].verdict == "avoid"
        assert matrix["onion"].verdict == "avoid"
        assert matrix["chicken"].verdict == "safe"
        assert matrix["chicken"].neutral == 1

    def test_most_eaten_first(self) -> None:
        meals = [
            MealRecord(foods="eggs"),
            MealRecord(foods="rice, eggs"),
            MealRecord(foods="rice, eggs, , "),
        ]

        assert [s.food for s in food_reaction_matrix(meals)] == ["eggs", "rice"]

    def test_no_meals(self) -> None:
        assert food_reaction_matrix([]) == []
