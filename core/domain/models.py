"""
Domain models for protocol adherence and biometric monitoring.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation; every record is immutable once created.

Numeric fields coming from the data-access layer may arrive as text. They are
coerced on the way in, and anything missing or unparseable stays ``None`` so
downstream averages and threshold checks skip it instead of counting a zero.
"""

import math
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)


def coerce_optional_float(value: Any) -> float | None:
    """Parse a number that may arrive as text; failures become None, never 0."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        result = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            result = float(text)
        except ValueError:
            return None
    return result if math.isfinite(result) else None


def coerce_severity(value: Any) -> int | None:
    """Symptom severity is an integer on a 0-10 scale."""
    number = coerce_optional_float(value)
    if number is None or not 0 <= number <= 10:
        return None
    return int(round(number))


def coerce_local_datetime(value: Any) -> datetime | None:
    """Normalize timestamps to naive local time so day buckets stay consistent."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def coerce_optional_date(value: Any) -> date | None:
    """Accept ISO day strings (or full timestamps); unparseable input becomes None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return coerce_local_datetime(value).date()  # type: ignore[union-attr]
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) > 10:
        stamp = coerce_local_datetime(text)
        return stamp.date() if stamp else None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


OptionalFloat = Annotated[float | None, BeforeValidator(coerce_optional_float)]
OptionalDate = Annotated[date | None, BeforeValidator(coerce_optional_date)]
OptionalDateTime = Annotated[datetime | None, BeforeValidator(coerce_local_datetime)]
Severity = Annotated[int | None, BeforeValidator(coerce_severity)]


def _day_field() -> Any:
    return Field(default=None, validation_alias=AliasChoices("day", "date"))


class SupplementState(str, Enum):
    """Per-dose outcome for a scheduled supplement."""

    TAKEN = "taken"
    MISSED = "missed"
    PENDING = "pending"


class AlertPriority(str, Enum):
    """Alert priority levels, most urgent first."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {AlertPriority.HIGH: 0, AlertPriority.MEDIUM: 1, AlertPriority.LOW: 2}


class AlertCategory(str, Enum):
    """What kind of signal raised the alert."""

    HRV = "hrv"
    SLEEP = "sleep"
    PROTOCOL = "protocol"
    SYMPTOM = "symptom"


# ---------------------------------------------------------------------------
# Protocol schedule
# ---------------------------------------------------------------------------


class SupplementDose(BaseModel):
    """One supplement taken at a slot."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    dosage: str = ""


class ScheduleSlot(BaseModel):
    """A named time-of-day dosing checkpoint."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    label: str
    time_of_day: time
    supplements: tuple[SupplementDose, ...] = ()

    def scheduled_at(self, day: date) -> datetime:
        """The slot's scheduled moment on a given calendar day."""
        return datetime.combine(day, self.time_of_day)

    @property
    def supplement_names(self) -> list[str]:
        return [dose.name for dose in self.supplements]


class ProtocolSchedule(BaseModel):
    """The ordered list of slots covering one day."""

    model_config = ConfigDict(frozen=True)

    slots: tuple[ScheduleSlot, ...] = Field(min_length=1)

    @model_validator(mode="after")
    def slots_strictly_ascending(self) -> "ProtocolSchedule":
        """Slot times must be unique and ordered within the day."""
        times = [slot.time_of_day for slot in self.slots]
        if any(later <= earlier for earlier, later in zip(times, times[1:], strict=False)):
            raise ValueError("schedule slots must have unique, ascending times of day")
        keys = [slot.key for slot in self.slots]
        if len(set(keys)) != len(keys):
            raise ValueError("schedule slot keys must be unique")
        return self

    @computed_field(return_type=int)
    def total_doses(self) -> int:
        """Expected doses per day across all slots."""
        return sum(len(slot.supplements) for slot in self.slots)

    @property
    def first_slot(self) -> ScheduleSlot:
        return self.slots[0]

    def slot(self, key: str) -> ScheduleSlot:
        for slot in self.slots:
            if slot.key == key:
                return slot
        raise KeyError(key)


class ProtocolPhase(BaseModel):
    """The active treatment phase of the protocol document."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    start_date: OptionalDate = Field(
        default=None, validation_alias=AliasChoices("start_date", "startDate")
    )
    end_date: OptionalDate = Field(
        default=None, validation_alias=AliasChoices("end_date", "endDate")
    )

    def days_remaining(self, today: date) -> int | None:
        if self.end_date is None:
            return None
        return (self.end_date - today).days

    def progress_percent(self, today: date) -> int | None:
        """Share of the phase elapsed, clamped to 0-100."""
        if self.start_date is None or self.end_date is None:
            return None
        total = (self.end_date - self.start_date).days
        if total <= 0:
            return None
        elapsed = (today - self.start_date).days
        return min(100, max(0, round(elapsed / total * 100)))


# ---------------------------------------------------------------------------
# Logged records (created by a log-write, immutable afterwards)
# ---------------------------------------------------------------------------


class DoseRecord(BaseModel):
    """A supplement intake log entry."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    supplement_name: str = Field(
        min_length=1,
        validation_alias=AliasChoices("supplement_name", "supplementName", "supplement", "name"),
    )
    dosage: str | None = None
    logged_at: OptionalDateTime = Field(
        default=None, validation_alias=AliasChoices("logged_at", "loggedAt", "createdAt")
    )
    day: OptionalDate = _day_field()

    @model_validator(mode="before")
    @classmethod
    def default_day_from_timestamp(cls, data: Any) -> Any:
        """A dose without an explicit day belongs to the local day it was logged."""
        if not isinstance(data, dict) or data.get("day") or data.get("date"):
            return data
        for key in ("logged_at", "loggedAt", "createdAt"):
            stamp = coerce_local_datetime(data.get(key))
            if stamp is not None:
                return {**data, "day": stamp.date()}
        return data


class VitalRecord(BaseModel):
    """Daily vitals from one source; any reading may be missing."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    day: OptionalDate = _day_field()
    hrv: OptionalFloat = Field(default=None, validation_alias=AliasChoices("hrv", "hrvAvg", "hrv_avg"))
    rhr: OptionalFloat = None
    blood_oxygen: OptionalFloat = Field(
        default=None, validation_alias=AliasChoices("blood_oxygen", "bloodOxygen")
    )
    respiratory_rate: OptionalFloat = Field(
        default=None, validation_alias=AliasChoices("respiratory_rate", "respiratoryRate")
    )
    heart_rate: OptionalFloat = Field(
        default=None, validation_alias=AliasChoices("heart_rate", "heartRate")
    )
    source: str | None = None


class SleepRecord(BaseModel):
    """One night of sleep, keyed by the wake-up day."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    day: OptionalDate = _day_field()
    total_hours: OptionalFloat = Field(
        default=None,
        validation_alias=AliasChoices("total_hours", "totalHours", "sleep_hours", "hours"),
    )
    deep_minutes: OptionalFloat = Field(
        default=None,
        validation_alias=AliasChoices("deep_minutes", "deepMinutes", "deep_sleep_minutes"),
    )
    rem_minutes: OptionalFloat = Field(
        default=None, validation_alias=AliasChoices("rem_minutes", "remMinutes")
    )
    core_minutes: OptionalFloat = Field(
        default=None, validation_alias=AliasChoices("core_minutes", "coreMinutes")
    )
    awake_minutes: OptionalFloat = Field(
        default=None, validation_alias=AliasChoices("awake_minutes", "awakeMinutes")
    )
    quality: OptionalFloat = Field(
        default=None, validation_alias=AliasChoices("quality", "sleep_quality", "sleepQuality")
    )
    source: str | None = None


class SymptomRecord(BaseModel):
    """A logged symptom with a 0-10 severity."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    day: OptionalDate = _day_field()
    type: str = Field(min_length=1)
    severity: Severity = None
    time: str | None = None
    notes: str | None = None


class DieOffEpisode(BaseModel):
    """A logged die-off flare. The day falls back to the creation timestamp."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    day: OptionalDate = Field(
        default=None, validation_alias=AliasChoices("day", "date", "createdAt")
    )
    severity: Severity = None
    symptoms: str | None = None
    notes: str | None = None


class MealRecord(BaseModel):
    """A logged meal and how the body reacted to it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    day: OptionalDate = _day_field()
    meal_type: str | None = Field(
        default=None, validation_alias=AliasChoices("meal_type", "mealType")
    )
    foods: str = ""
    reaction: Literal["none", "mild", "bad"] | None = None
    notes: str | None = None


# ---------------------------------------------------------------------------
# Derived values (recomputed every evaluation, never persisted)
# ---------------------------------------------------------------------------


class SupplementStatus(BaseModel):
    """Whether one scheduled supplement was taken today."""

    model_config = ConfigDict(frozen=True)

    slot_key: str
    supplement_name: str
    state: SupplementState


class SlotStatus(BaseModel):
    """A slot with its per-supplement states and aggregate badge."""

    model_config = ConfigDict(frozen=True)

    slot: ScheduleSlot
    statuses: tuple[SupplementStatus, ...]
    badge: SupplementState
    is_active: bool
    has_passed: bool


class NextDose(BaseModel):
    """The next slot that still has something to take."""

    model_config = ConfigDict(frozen=True)

    slot: ScheduleSlot
    pending_supplements: tuple[str, ...]
    scheduled_at: datetime
    eta: timedelta = Field(ge=timedelta(0))
    is_tomorrow: bool = False

    @computed_field(return_type=int)
    def eta_hours(self) -> int:
        return int(self.eta.total_seconds() // 3600)

    @computed_field(return_type=int)
    def eta_minutes(self) -> int:
        return int(self.eta.total_seconds() // 60 % 60)

    @computed_field(return_type=str)
    def eta_label(self) -> str:
        return f"{self.eta_hours}h{self.eta_minutes:02d}m"


class DailyAdherence(BaseModel):
    """Doses taken out of the doses scheduled for one day."""

    model_config = ConfigDict(frozen=True)

    day: date
    taken: int = Field(ge=0)
    total: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100)


class WeeklyAdherence(BaseModel):
    """Seven-day rolling adherence, pooled over all doses in the window."""

    model_config = ConfigDict(frozen=True)

    end_day: date
    taken: int = Field(ge=0)
    total: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100)
    per_day: tuple[DailyAdherence, ...]


class WeeklyReport(BaseModel):
    """Seven-day summary of adherence, symptom logging and die-off flares."""

    model_config = ConfigDict(frozen=True)

    end_day: date
    adherence: WeeklyAdherence
    dose_logs: int
    symptom_count: int
    symptom_types: tuple[str, ...]
    dieoff_episodes: int = 0


class SymptomSummary(BaseModel):
    """Average, count and latest severity of one symptom type."""

    model_config = ConfigDict(frozen=True)

    average: float
    count: int = Field(ge=1)
    latest: int


class Alert(BaseModel):
    """An actionable alert for the dashboard."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    priority: AlertPriority
    category: AlertCategory
    message: str = Field(min_length=1)
    recommendation: str = Field(
        default="", validation_alias=AliasChoices("recommendation", "details")
    )
    source: Literal["derived", "external"] = "derived"
    dismissed: bool = False


class Insight(BaseModel):
    """A qualitative observation pairing symptoms with biometrics."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[
        "low_hrv_higher_symptoms",
        "good_hrv_milder_symptoms",
        "low_deep_sleep_worse_symptoms",
        "symptom_improving",
        "symptom_worsening",
    ]
    message: str
    symptom_type: str | None = None


class FoodReactionStats(BaseModel):
    """How often a food was eaten and how it was tolerated."""

    model_config = ConfigDict(frozen=True)

    food: str
    count: int
    good: int
    neutral: int
    bad: int

    @computed_field(return_type=str)
    def verdict(self) -> str:
        if self.bad > self.good:
            return "avoid"
        if self.good > self.bad:
            return "safe"
        return "caution"


class HealthSnapshot(BaseModel):
    """Everything the data-access layer fetched for one evaluation."""

    model_config = ConfigDict(frozen=True)

    vitals: tuple[VitalRecord, ...] = ()
    sleep: tuple[SleepRecord, ...] = ()
    symptoms: tuple[SymptomRecord, ...] = ()
    doses: tuple[DoseRecord, ...] = ()
    meals: tuple[MealRecord, ...] = ()
    dieoff_episodes: tuple[DieOffEpisode, ...] = ()
    phase: ProtocolPhase | None = None
    external_alerts: tuple[Alert, ...] = ()


class DashboardEvaluation(BaseModel):
    """One full evaluation of the dashboard's derived values."""

    model_config = ConfigDict(frozen=True)

    evaluated_at: datetime
    current_slot: ScheduleSlot
    slots: tuple[SlotStatus, ...]
    next_dose: NextDose
    today: DailyAdherence
    week: WeeklyAdherence
    streak_days: int = Field(ge=0)
    alerts: tuple[Alert, ...]
    insights: tuple[Insight, ...]
    phase_progress_percent: int | None = None
    phase_days_remaining: int | None = None
