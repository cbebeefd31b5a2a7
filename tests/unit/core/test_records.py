"""Tests for record intake in `core/services/records.py`."""

from datetime import date

import pytest
from pydantic import ValidationError

from core.domain.models import AlertCategory, DoseRecord, SymptomRecord, VitalRecord
from core.services.trends import daily_series
from core.services.records import Result, parse_record, parse_records, snapshot_from_raw


class TestResult:
    """The Result type used for explicit error handling."""

    def test_ok_result(self) -> None:
        result: Result[str, Exception] = Result.ok("success")

        assert result.is_ok()
        assert not result.is_err()
        assert result.unwrap() == "success"

    def test_err_result(self) -> None:
        result: Result[str, ValueError] = Result.err(ValueError("boom"))

        assert result.is_err()
        assert result.unwrap_or("default") == "default"
        with pytest.raises(ValueError, match="boom"):
            result.unwrap()

    def test_unwrap_err_on_ok_raises(self) -> None:
        with pytest.raises(ValueError):
            Result.ok(1).unwrap_err()

    def test_requires_exactly_one_side(self) -> None:
        with pytest.raises(ValueError):
            Result()
        with pytest.raises(ValueError):
            Result(value=1, error=ValueError("both"))


class TestParseRecords:
    def test_parse_record_reports_validation_error(self) -> None:
        result = parse_record(SymptomRecord, {"date": "2025-03-10", "severity": 4})

        assert result.is_err()
        assert isinstance(result.unwrap_err(), ValidationError)

    def test_prebuilt_models_pass_through(self) -> None:
        record = VitalRecord(day=date(2025, 3, 10), hrv=55.0)
        assert parse_record(VitalRecord, record).unwrap() is record

    def test_structurally_broken_records_are_skipped(self) -> None:
        records = parse_records(
            DoseRecord,
            [
                {"supplementName": "Neem", "loggedAt": "2025-03-10T07:00:00"},
                {"loggedAt": "2025-03-10T08:00:00"},
                "not a record",
                {"supplementName": "Allimax", "loggedAt": "garbage"},
            ],
        )

        assert [r.supplement_name for r in records] == ["Neem", "Allimax"]
        assert records[1].logged_at is None
        assert records[1].day is None

    def test_record_with_unusable_day_is_kept_but_never_bucketed(self) -> None:
        vitals = parse_records(
            VitalRecord,
            [{"date": "2025-03-10", "hrv": 55}, {"date": "someday", "hrv": 40}],
        )

        assert [v.day for v in vitals] == [date(2025, 3, 10), None]
        assert daily_series(vitals, "hrv") == [(date(2025, 3, 10), 55.0)]

    @pytest.mark.parametrize("raw", [None, []])
    def test_absent_arrays_are_empty(self, raw: list | None) -> None:
        assert parse_records(VitalRecord, raw) == []


class TestSnapshotFromRaw:
    def test_builds_every_collection(self) -> None:
        snapshot = snapshot_from_raw(
            {
                "vitals": [{"date": "2025-03-10", "hrvAvg": "48"}],
                "sleep": [{"date": "2025-03-10", "totalHours": 6.5}],
                "symptoms": [{"date": "2025-03-10", "type": "bloating", "severity": 5}],
                "supplements": [{"supplementName": "Neem", "loggedAt": "2025-03-10T07:00:00"}],
                "meals": [{"date": "2025-03-10", "foods": "rice", "reaction": "none"}],
                "protocol": {
                    "phase": {"name": "Active", "startDate": "2025-03-01", "endDate": "2025-03-20"}
                },
                "alerts": [{"priority": "high", "message": "Call provider", "details": None}],
            }
        )

        assert snapshot.vitals[0].hrv == 48.0
        assert snapshot.sleep[0].total_hours == 6.5
        assert len(snapshot.symptoms) == 1
        assert snapshot.doses[0].supplement_name == "Neem"
        assert snapshot.meals[0].reaction == "none"
        assert snapshot.phase is not None and snapshot.phase.end_date == date(2025, 3, 20)

        alert = snapshot.external_alerts[0]
        assert alert.source == "external"
        assert alert.category == AlertCategory.PROTOCOL
        assert alert.recommendation == ""

    def test_dieoff_episodes_fall_back_to_creation_day(self) -> None:
        snapshot = snapshot_from_raw(
            {
                "dieoffEpisodes": [
                    {"createdAt": "2025-03-09T21:15:00", "severity": "6", "symptoms": "headache"},
                    {"date": "2025-03-10", "severity": "n/a"},
                ]
            }
        )

        first, second = snapshot.dieoff_episodes
        assert (first.day, first.severity, first.symptoms) == (date(2025, 3, 9), 6, "headache")
        assert (second.day, second.severity) == (date(2025, 3, 10), None)

    def test_missing_payload_is_an_empty_snapshot(self) -> None:
        snapshot = snapshot_from_raw(None)

        assert snapshot.vitals == ()
        assert snapshot.doses == ()
        assert snapshot.dieoff_episodes == ()
        assert snapshot.phase is None
        assert snapshot.external_alerts == ()

    def test_invalid_phase_is_dropped(self) -> None:
        snapshot = snapshot_from_raw({"protocol": {"phase": {"startDate": "2025-03-01"}}})
        assert snapshot.phase is None
