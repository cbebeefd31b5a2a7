"""
SIBO treatment protocol models extending the core adherence framework.

This is the domain knowledge layer for one concrete protocol:
- The default daily dosing schedule and supplement alias table
- The 16-week intensive protocol phases
- Post-protocol relapse prevention
- Die-off severity classification
- SIFO (fungal overgrowth) risk screening
- Refractory case analysis over past treatment courses
- The 30-day provider report

Key concepts:
- Biofilm disruption: weeks 1-4, no antimicrobials yet
- Active antimicrobial: weeks 5-12, therapeutic dosing (Allicin 1350mg/day)
- Die-off: symptom flare as bacteria are killed; severe flares pause treatment
- Prokinetic: motility support that must continue after the protocol ends
"""

from collections.abc import Iterable
from datetime import date, time, timedelta
from enum import Enum
from statistics import fmean

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field

from core.domain.models import (
    DieOffEpisode,
    ProtocolPhase,
    ProtocolSchedule,
    ScheduleSlot,
    SupplementDose,
    SymptomRecord,
    SymptomSummary,
)
from core.services.correlation import symptom_averages

PROTOCOL_WEEKS = 16


# Daily schedule
def _slot(key: str, label: str, at: time, *doses: tuple[str, str]) -> ScheduleSlot:
    return ScheduleSlot(
        key=key,
        label=label,
        time_of_day=at,
        supplements=tuple(SupplementDose(name=name, dosage=dosage) for name, dosage in doses),
    )


DEFAULT_SCHEDULE = ProtocolSchedule(
    slots=(
        _slot(
            "morning_empty_stomach",
            "Morning (Empty Stomach)",
            time(7, 0),
            ("Allimax", "450mg"),
            ("Neem", "300mg"),
        ),
        _slot("breakfast", "Breakfast", time(8, 0), ("Probiotic", "1 capsule")),
        _slot("lunch", "Lunch", time(12, 0), ("Allimax", "450mg"), ("Neem", "300mg")),
        _slot("dinner", "Dinner", time(18, 0), ("Allimax", "450mg"), ("Neem", "300mg")),
        _slot("bedtime", "Bedtime", time(22, 0), ("Probiotic", "1 capsule")),
    )
)

# Log entries use brand names, active ingredients or shorthand interchangeably
SUPPLEMENT_ALIASES: dict[str, tuple[str, ...]] = {
    "Allimax": ("allimax", "allicin", "garlic"),
    "Neem": ("neem", "azadirachta"),
    "Probiotic": ("probiotic", "boulardii", "megaspore", "lactobacillus"),
    "Berberine": ("berberine",),
    "NAC": ("nac", "n-acetyl"),
    "Bismuth": ("bismuth",),
    "EDTA": ("edta",),
}


# Protocol phases
class PlannedSupplement(BaseModel):
    """A supplement prescribed for a protocol phase."""

    model_config = ConfigDict(frozen=True)

    name: str
    dose: str
    timing: str
    when: str


class PhaseSchedule(BaseModel):
    """What the 16-week protocol prescribes for a given week."""

    model_config = ConfigDict(frozen=True)

    phase: str
    weeks: str | None = None
    supplements: tuple[PlannedSupplement, ...] = ()
    daily_totals: dict[str, str] = Field(default_factory=dict)
    no_antimicrobials: bool = False
    duration_weeks: int = 0
    maintenance: bool = False


BIOFILM_PHASE = PhaseSchedule(
    phase="Biofilm Disruption",
    weeks="1-4",
    supplements=(
        PlannedSupplement(name="EDTA", dose="500mg", timing="AM fasted", when="Daily"),
        PlannedSupplement(name="NAC", dose="600mg", timing="AM fasted", when="Daily"),
        PlannedSupplement(name="Bismuth", dose="300mg", timing="With meals", when="3x daily"),
    ),
    no_antimicrobials=True,
    duration_weeks=4,
)

ACTIVE_PHASE = PhaseSchedule(
    phase="Active Antimicrobial",
    weeks="5-12",
    supplements=(
        PlannedSupplement(
            name="Allicin", dose="450mg", timing="AM fasted, with lunch, with dinner", when="TID"
        ),
        PlannedSupplement(name="Neem", dose="300mg", timing="With Allicin", when="TID"),
        PlannedSupplement(name="Berberine", dose="500mg", timing="With meals", when="TID"),
    ),
    daily_totals={"allicin": "1350mg", "neem": "900mg", "berberine": "1500mg"},
    duration_weeks=8,
)

CONSOLIDATION_PHASE = PhaseSchedule(
    phase="Consolidation",
    weeks="13-16",
    supplements=(
        PlannedSupplement(
            name="Allicin", dose="450mg", timing="With breakfast, with dinner", when="BID"
        ),
        PlannedSupplement(name="Neem", dose="300mg", timing="With Allicin", when="BID"),
    ),
    duration_weeks=4,
)

COMPLETE_PHASE = PhaseSchedule(phase="Protocol Complete", maintenance=True)


def protocol_week(start: date, today: date) -> int:
    """1-based protocol week for ``today`` (day 0 through 6 is week 1)."""
    return (today - start).days // 7 + 1


def phase_for_week(week: int) -> PhaseSchedule:
    """Phase of the 16-week intensive protocol that covers ``week``."""
    if week <= 4:
        return BIOFILM_PHASE
    if week <= 12:
        return ACTIVE_PHASE
    if week <= PROTOCOL_WEEKS:
        return CONSOLIDATION_PHASE
    return COMPLETE_PHASE


# Relapse prevention
class MaintenancePlan(BaseModel):
    """Post-protocol relapse prevention for the current week."""

    model_config = ConfigDict(frozen=True)

    weeks_since: int
    phase: str
    prokinetic: str
    antimicrobials: str
    monitoring: str


def maintenance_phase(protocol_end: date, today: date) -> MaintenancePlan:
    """
    Relapse prevention schedule by whole weeks since the protocol ended.

    The first month is the critical window: the prokinetic stays at full dose
    and is never tapered.
    """
    weeks_since = (today - protocol_end).days // 7

    if weeks_since <= 4:
        plan = ("Critical Window", "Full dose - DO NOT TAPER", "None", "Daily")
    elif weeks_since <= 12:
        plan = ("Consolidation", "Full dose", "Pulsed 1wk on/3wk off", "Weekly")
    elif weeks_since <= 26:
        plan = ("Maintenance", "Taper 25%/month", "3 days monthly", "Bi-weekly")
    else:
        plan = ("Sustain", "As needed", "1-2 days monthly", "Monthly")

    phase, prokinetic, antimicrobials, monitoring = plan
    return MaintenancePlan(
        weeks_since=weeks_since,
        phase=phase,
        prokinetic=prokinetic,
        antimicrobials=antimicrobials,
        monitoring=monitoring,
    )


# Die-off
class DieOffLevel(str, Enum):
    """Die-off reaction severity bands."""

    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class DieOffProtocol(BaseModel):
    """What to do about a die-off reaction of a given severity."""

    model_config = ConfigDict(frozen=True)

    level: DieOffLevel
    severity_range: str
    actions: tuple[str, ...]
    continue_treatment: bool


DIE_OFF_PROTOCOLS: dict[DieOffLevel, DieOffProtocol] = {
    DieOffLevel.MILD: DieOffProtocol(
        level=DieOffLevel.MILD,
        severity_range="1-4/10",
        actions=("Continue antimicrobials", "Activated charcoal 500mg", "Hydrate 3L+", "Rest"),
        continue_treatment=True,
    ),
    DieOffLevel.MODERATE: DieOffProtocol(
        level=DieOffLevel.MODERATE,
        severity_range="5-7/10",
        actions=(
            "Reduce antimicrobial dose 50%",
            "NAC 600mg BID",
            "Bentonite clay",
            "Liver support",
        ),
        continue_treatment=True,
    ),
    DieOffLevel.SEVERE: DieOffProtocol(
        level=DieOffLevel.SEVERE,
        severity_range="8-10/10",
        actions=(
            "PAUSE antimicrobials",
            "Contact provider",
            "Aggressive binding",
            "Hydration IV if needed",
        ),
        continue_treatment=False,
    ),
}


def classify_die_off(severity: int) -> DieOffProtocol:
    """Map a 1-10 die-off severity to its management protocol."""
    if not 1 <= severity <= 10:
        raise ValueError(f"Die-off severity {severity} must be between 1 and 10")
    if severity <= 4:
        return DIE_OFF_PROTOCOLS[DieOffLevel.MILD]
    if severity <= 7:
        return DIE_OFF_PROTOCOLS[DieOffLevel.MODERATE]
    return DIE_OFF_PROTOCOLS[DieOffLevel.SEVERE]


# SIFO screening
SIFO_RISK_WEIGHTS: dict[str, int] = {
    "antibioticUse": 4,
    "highSugarDiet": 3,
    "oralSteroids": 4,
    "ppiUse": 3,
    "whiteTongue": 3,
    "brainFog": 3,
    "sugarCravings": 3,
    "recurrentInfections": 4,
    "skinIssues": 2,
    "genitalSymptoms": 3,
}
UNKNOWN_FACTOR_WEIGHT = 1

SIFO_RECOMMENDATIONS: dict[str, tuple[str, ...]] = {
    "low": ("S. boulardii 250mg daily", "Monitor during treatment"),
    "moderate": ("S. boulardii 500mg BID", "Caprylic acid", "Consider antifungal rotation"),
    "high": ("Full SIFO protocol", "Prescription antifungal", "Strict diet", "Biofilm disruptors"),
}


class SifoAssessment(BaseModel):
    """Result of a SIFO risk screen."""

    model_config = ConfigDict(frozen=True)

    score: int
    risk_level: str
    risk_factors: tuple[str, ...]
    recommendations: tuple[str, ...]


def assess_sifo_risk(risk_factors: Iterable[str]) -> SifoAssessment:
    """Weighted risk score; factors outside the known list count for 1 point each."""
    factors = tuple(risk_factors)
    score = sum(SIFO_RISK_WEIGHTS.get(factor, UNKNOWN_FACTOR_WEIGHT) for factor in factors)

    if score >= 12:
        risk_level = "high"
    elif score >= 7:
        risk_level = "moderate"
    else:
        risk_level = "low"

    return SifoAssessment(
        score=score,
        risk_level=risk_level,
        risk_factors=factors,
        recommendations=SIFO_RECOMMENDATIONS[risk_level],
    )


# Refractory analysis
class TreatmentCourse(BaseModel):
    """One past treatment attempt."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    duration_weeks: float = Field(
        default=0, validation_alias=AliasChoices("duration_weeks", "durationWeeks")
    )
    outcome: str = "unknown"
    biofilm_disruptors: bool = Field(
        default=False, validation_alias=AliasChoices("biofilm_disruptors", "biofilmDisruptors")
    )
    underdosed: bool = False
    prokinetic: bool = False


class FailurePattern(BaseModel):
    """How many past courses show one failure pattern."""

    model_config = ConfigDict(frozen=True)

    count: int
    total: int

    @computed_field(return_type=float)
    def percentage(self) -> float:
        if not self.total:
            return 0.0
        return round(self.count / self.total * 100, 1)


class TreatmentAnalysis(BaseModel):
    """Failure patterns across past courses and what to change next time."""

    model_config = ConfigDict(frozen=True)

    total_treatments: int
    patterns: dict[str, FailurePattern]
    recommendations: tuple[str, ...]


def analyze_treatment_history(treatments: Iterable[TreatmentCourse]) -> TreatmentAnalysis:
    """
    Look for the usual reasons a protocol failed before.

    Relapses after short courses or without biofilm disruption, and
    unresolved courses that were underdosed or lacked a prokinetic, each
    push a specific change to the next protocol.
    """
    courses = list(treatments)
    total = len(courses)
    counts = {
        "insufficientDuration": sum(
            1 for t in courses if t.duration_weeks < 8 and t.outcome == "relapse"
        ),
        "noBiofilmDisruption": sum(
            1 for t in courses if not t.biofilm_disruptors and t.outcome == "relapse"
        ),
        "inadequateDosing": sum(1 for t in courses if t.underdosed and t.outcome != "resolved"),
        "noProkinetic": sum(1 for t in courses if not t.prokinetic and t.outcome != "resolved"),
    }

    if not total:
        recommendations = ["Start with refractory protocol analysis"]
    else:
        recommendations = []
        if counts["noBiofilmDisruption"] >= 2:
            recommendations.append("Biofilm disruption phase required (4 weeks)")
        if counts["insufficientDuration"] >= 2:
            recommendations.append("Extend to 16-week intensive protocol")
        if counts["inadequateDosing"] >= 1:
            recommendations.append("Use therapeutic dosing (Allicin 1350mg/day)")
        if counts["noProkinetic"] >= 2:
            recommendations.append("Prokinetic mandatory throughout")
        if not recommendations:
            recommendations.append("Standard 16-week protocol recommended")

    return TreatmentAnalysis(
        total_treatments=total,
        patterns={name: FailurePattern(count=count, total=total) for name, count in counts.items()},
        recommendations=tuple(recommendations),
    )


# Provider report
MEDICAL_REPORT_DAYS = 30
RECENT_TREATMENTS = 3


class MedicalReport(BaseModel):
    """Thirty-day summary to bring to a provider visit."""

    model_config = ConfigDict(frozen=True)

    generated_for: date
    period_days: int = MEDICAL_REPORT_DAYS
    symptom_averages: dict[str, SymptomSummary]
    symptoms_logged: int
    dieoff_count: int
    dieoff_average_severity: float | None
    treatments_total: int
    recent_treatments: tuple[TreatmentCourse, ...]
    current_phase: ProtocolPhase | None = None


def medical_report(
    today: date,
    symptoms: Iterable[SymptomRecord] = (),
    dieoff_episodes: Iterable[DieOffEpisode] = (),
    treatments: Iterable[TreatmentCourse] = (),
    phase: ProtocolPhase | None = None,
) -> MedicalReport:
    """
    Summarize the last 30 days (today inclusive) for a provider.

    Symptom figures come from the same per-type summaries the dashboard uses.
    Die-off severity is averaged over the episodes that recorded one and is
    None when none did.
    """
    since = today - timedelta(days=MEDICAL_REPORT_DAYS - 1)

    def in_window(day: date | None) -> bool:
        return day is not None and since <= day <= today

    recent_symptoms = [s for s in symptoms if in_window(s.day) and s.severity is not None]
    episodes = [e for e in dieoff_episodes if in_window(e.day)]
    severities = [e.severity for e in episodes if e.severity is not None]
    courses = list(treatments)

    return MedicalReport(
        generated_for=today,
        symptom_averages=symptom_averages(recent_symptoms),
        symptoms_logged=len(recent_symptoms),
        dieoff_count=len(episodes),
        dieoff_average_severity=round(fmean(severities), 1) if severities else None,
        treatments_total=len(courses),
        recent_treatments=tuple(courses[-RECENT_TREATMENTS:]),
        current_phase=phase,
    )
