"""
End-to-end demo of the dashboard pipeline on a sample week of data.

This script shows:
1. Configuration loading and validation
2. Record intake from raw arrays (including malformed values)
3. Slot statuses, next dose and adherence roll-ups
4. Trend alerts and correlation insights
5. One cycle of the periodic evaluation loop

Run with: uv run python dashboard_demo.py
"""

import asyncio
from datetime import date, datetime, timedelta
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adapters.sibo.domain import (
    DEFAULT_SCHEDULE,
    SUPPLEMENT_ALIASES,
    medical_report,
    phase_for_week,
)
from core.config import get_config, print_config_summary, validate_config
from core.domain.models import AlertPriority, DashboardEvaluation, HealthSnapshot, SupplementState
from core.services.correlation import food_reaction_matrix
from core.services.dashboard import DashboardEvaluator
from core.services.records import Result, configure_logging, snapshot_from_raw

console = Console()

BADGE_STYLE = {
    SupplementState.TAKEN: "green",
    SupplementState.MISSED: "red",
    SupplementState.PENDING: "yellow",
}
PRIORITY_STYLE = {
    AlertPriority.HIGH: "bold red",
    AlertPriority.MEDIUM: "yellow",
    AlertPriority.LOW: "cyan",
}


def sample_payload(today: date) -> dict[str, Any]:
    """A week of plausible records with a few rough edges."""
    doses: list[dict[str, Any]] = []
    for offset in range(6, 0, -1):
        day = today - timedelta(days=offset)
        for hour, name in [(7, "Allimax"), (7, "Neem"), (8, "Probiotic"), (12, "allicin"),
                           (12, "Neem"), (18, "Allimax"), (18, "neem leaf"), (22, "S. boulardii")]:
            if offset == 3 and hour == 18:
                continue
            doses.append(
                {"supplementName": name, "loggedAt": f"{day}T{hour:02d}:10:00", "date": str(day)}
            )
    doses.append({"supplementName": "Allimax", "loggedAt": f"{today}T07:05:00"})

    vitals = [
        {"date": str(today - timedelta(days=offset)), "hrvAvg": hrv, "rhr": "58"}
        for offset, hrv in enumerate([48, 46, 55, 63, 70, "n/a", 72])
    ]
    sleep = [
        {"date": str(today - timedelta(days=offset)), "totalHours": hours, "deepMinutes": deep,
         "quality": quality}
        for offset, (hours, deep, quality) in enumerate(
            [(6.1, 25, 4), (5.5, 28, 6), (7.2, 22, 4), (7.8, 55, 8), (4.5, 40, 3)]
        )
    ]
    symptoms = [
        {"date": str(today - timedelta(days=offset)), "type": "bloating", "severity": severity}
        for offset, severity in enumerate([6, 5, 4, 3, 3, 2, 2])
    ]
    meals = [
        {"date": str(today), "foods": "Rice, chicken, zucchini", "reaction": "none"},
        {"date": str(today - timedelta(days=1)), "foods": "rice, onion", "reaction": "bad"},
        {"date": str(today - timedelta(days=2)), "foods": "Chicken, spinach", "reaction": "mild"},
    ]
    dieoff_episodes = [
        {"createdAt": f"{today - timedelta(days=2)}T20:30:00", "severity": 5, "symptoms": "headache"},
        {"date": str(today - timedelta(days=12)), "severity": 3},
    ]
    return {
        "vitals": vitals,
        "sleep": sleep,
        "symptoms": symptoms,
        "doses": doses,
        "meals": meals,
        "dieoff_episodes": dieoff_episodes,
        "protocol": {
            "phase": {
                "name": "Active Antimicrobial",
                "startDate": str(today - timedelta(days=50)),
                "endDate": str(today + timedelta(days=6)),
            }
        },
        "alerts": [{"priority": "medium", "message": "Retest breath test next month", "details": None}],
    }


class SampleSource:
    """In-memory snapshot source standing in for the data-access layer."""

    def __init__(self, today: date) -> None:
        self.payload = sample_payload(today)

    async def fetch_snapshot(self) -> Result[HealthSnapshot, Exception]:
        await asyncio.sleep(0.05)
        return Result.ok(snapshot_from_raw(self.payload))


def render_summary(evaluation: DashboardEvaluation, console: Console) -> None:
    """Print slots, adherence, alerts and insights of one evaluation."""
    slots = Table(title=f"Today's Protocol ({evaluation.evaluated_at:%Y-%m-%d %H:%M})")
    slots.add_column("Slot", style="cyan")
    slots.add_column("Time")
    slots.add_column("Supplements")
    slots.add_column("Status")
    for slot_status in evaluation.slots:
        slot = slot_status.slot
        marker = " (current)" if slot.key == evaluation.current_slot.key else ""
        badge = slot_status.badge
        slots.add_row(
            slot.label + marker,
            slot.time_of_day.strftime("%H:%M"),
            ", ".join(slot.supplement_names),
            f"[{BADGE_STYLE[badge]}]{badge.value}[/]",
        )
    console.print(slots)

    next_dose = evaluation.next_dose
    when = "tomorrow" if next_dose.is_tomorrow else f"in {next_dose.eta_label}"
    console.print(
        f"Next dose: [bold]{next_dose.slot.label}[/] {when} "
        f"({', '.join(next_dose.pending_supplements)})"
    )

    adherence = Table(title="Adherence")
    adherence.add_column("Window", style="cyan")
    adherence.add_column("Taken")
    adherence.add_column("Percent", style="green")
    adherence.add_row("Today", f"{evaluation.today.taken}/{evaluation.today.total}",
                      f"{evaluation.today.percentage}%")
    adherence.add_row("7 days", f"{evaluation.week.taken}/{evaluation.week.total}",
                      f"{evaluation.week.percentage}%")
    adherence.add_row("Streak", f"{evaluation.streak_days} days", "")
    console.print(adherence)

    if evaluation.phase_progress_percent is not None:
        console.print(
            f"Phase progress: {evaluation.phase_progress_percent}% "
            f"({evaluation.phase_days_remaining} days remaining)"
        )

    if evaluation.alerts:
        alerts = Table(title="Alerts")
        alerts.add_column("Priority")
        alerts.add_column("Category", style="magenta")
        alerts.add_column("Message")
        alerts.add_column("Recommendation", style="dim")
        for alert in evaluation.alerts:
            alerts.add_row(
                f"[{PRIORITY_STYLE[alert.priority]}]{alert.priority.value}[/]",
                alert.category.value,
                alert.message,
                alert.recommendation,
            )
        console.print(alerts)
    else:
        console.print("No alerts", style="green")

    for insight in evaluation.insights:
        console.print(f"  • {insight.message}", style="blue")


async def main() -> None:
    console.print(Panel("Protocol Dashboard - Demo", style="bold blue"))

    validate_config()
    print_config_summary()
    config = get_config().model_copy(deep=True)
    config.monitoring.refresh_interval_seconds = 1.0
    configure_logging(config.logging.level, config.logging.format)

    now = datetime.now()
    source = SampleSource(now.date())
    evaluator = DashboardEvaluator(DEFAULT_SCHEDULE, SUPPLEMENT_ALIASES, config)

    async for evaluation in evaluator.run_periodic(source, clock=lambda: now):
        render_summary(evaluation, console)
        break

    snapshot = snapshot_from_raw(source.payload)
    report = evaluator.weekly_report(snapshot, now.date())
    console.print(
        f"\nWeekly report: {report.dose_logs} dose logs, {report.symptom_count} symptoms "
        f"({', '.join(report.symptom_types) or 'none'}), {report.dieoff_episodes} die-off episodes"
    )

    medical = medical_report(
        now.date(), snapshot.symptoms, snapshot.dieoff_episodes, phase=snapshot.phase
    )
    console.print(
        f"30-day report: {medical.symptoms_logged} symptoms logged, "
        f"{medical.dieoff_count} die-off episodes (avg severity {medical.dieoff_average_severity})"
    )
    for kind, summary in medical.symptom_averages.items():
        console.print(f"  {kind}: avg {summary.average} over {summary.count}, latest {summary.latest}")

    foods = Table(title="Food Reactions")
    foods.add_column("Food", style="cyan")
    foods.add_column("Eaten")
    foods.add_column("Verdict")
    for stats in food_reaction_matrix(snapshot.meals):
        foods.add_row(stats.food, str(stats.count), stats.verdict)
    console.print(foods)

    console.print(f"Week 6 of the protocol: {phase_for_week(6).phase}")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.print("\nDemo stopped by user", style="yellow")
