"""
Core services for the application.

This package contains the derived-metrics pipeline: record intake, slot
timing, adherence matching and roll-ups, trend alerts, correlation insights
and the dashboard evaluator that composes them.
"""

from .adherence import AdherenceMatcher, slot_badge
from .aggregator import AdherenceAggregator
from .correlation import CorrelationHelper, food_reaction_matrix
from .dashboard import DashboardEvaluator, SnapshotSource
from .records import Result, parse_records, snapshot_from_raw
from .schedule import SlotTimingResolver
from .trends import TrendAlertEngine

__all__ = [
    "AdherenceAggregator",
    "AdherenceMatcher",
    "CorrelationHelper",
    "DashboardEvaluator",
    "Result",
    "SlotTimingResolver",
    "SnapshotSource",
    "TrendAlertEngine",
    "food_reaction_matrix",
    "parse_records",
    "slot_badge",
    "snapshot_from_raw",
]
