"""
Record intake: turns raw arrays from the data-access layer into domain records.

Key patterns:
- Generic Result type for explicit, per-record error handling
- Graceful degradation: one malformed record never sinks a whole evaluation
- Absent arrays are "no data", not an error
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from core.domain.models import (
    Alert,
    DieOffEpisode,
    DoseRecord,
    HealthSnapshot,
    MealRecord,
    ProtocolPhase,
    SleepRecord,
    SymptomRecord,
    VitalRecord,
)


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure structured logging (JSON in production, console for development)."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))
    renderer: Any = (
        structlog.dev.ConsoleRenderer() if fmt == "console" else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()

logger = structlog.get_logger(__name__)

# Generic Result type for explicit error handling
ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)
RecordT = TypeVar("RecordT", bound=BaseModel)


class Result(Generic[ValueT, ErrorT]):
    """
    Explicit error handling without exceptions for expected failures.

    Why: Makes error paths visible in type system, forces handling decisions.
    When to use: When failure is expected business logic, not exceptional.
    """

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if value is not None and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is None and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = value
        self._error: ErrorT | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error:
            raise self._error
        return self._value  # type: ignore

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


def parse_record(model: type[RecordT], raw: Any) -> Result[RecordT, ValidationError]:
    """Validate one raw record. Already-built models pass straight through."""
    if isinstance(raw, model):
        return Result.ok(raw)
    try:
        return Result.ok(model.model_validate(raw))
    except ValidationError as e:
        return Result.err(e)


def parse_records(model: type[RecordT], raw_items: Iterable[Any] | None) -> list[RecordT]:
    """
    Validate an array of raw records, skipping the ones that cannot be used.

    Records whose numeric or date fields are merely malformed still validate
    (those fields become None). Only structurally broken entries are dropped.
    """
    if not raw_items:
        return []

    records: list[RecordT] = []
    rejected = 0
    for index, raw in enumerate(raw_items):
        result = parse_record(model, raw)
        if result.is_ok():
            records.append(result.unwrap())
        else:
            rejected += 1
            logger.warning(
                "record_rejected",
                record_type=model.__name__,
                index=index,
                errors=result.unwrap_err().error_count(),
            )

    logger.debug(
        "records_parsed", record_type=model.__name__, accepted=len(records), rejected=rejected
    )
    return records


def _external_alert_payload(raw: Any) -> Any:
    """Server-persisted alerts carry no category and may have null details."""
    if not isinstance(raw, Mapping):
        return raw
    payload = {key: value for key, value in raw.items() if value is not None}
    payload.setdefault("category", "protocol")
    return payload


def snapshot_from_raw(payload: Mapping[str, Any] | None) -> HealthSnapshot:
    """
    Build a HealthSnapshot from the arrays the data-access layer returns.

    Expected keys: vitals, sleep, symptoms, doses (or supplements), meals,
    dieoff_episodes, protocol (with an optional ``phase``), alerts. Every key
    is optional.
    """
    payload = payload or {}

    phase: ProtocolPhase | None = None
    protocol = payload.get("protocol") or {}
    raw_phase = protocol.get("phase") if isinstance(protocol, Mapping) else None
    if raw_phase:
        phase_result = parse_record(ProtocolPhase, raw_phase)
        if phase_result.is_ok():
            phase = phase_result.unwrap()
        else:
            logger.warning("protocol_phase_rejected", errors=phase_result.unwrap_err().error_count())

    external_alerts = [
        alert.model_copy(update={"source": "external"})
        for alert in parse_records(
            Alert, [_external_alert_payload(raw) for raw in payload.get("alerts") or []]
        )
    ]

    snapshot = HealthSnapshot(
        vitals=tuple(parse_records(VitalRecord, payload.get("vitals"))),
        sleep=tuple(parse_records(SleepRecord, payload.get("sleep"))),
        symptoms=tuple(parse_records(SymptomRecord, payload.get("symptoms"))),
        doses=tuple(parse_records(DoseRecord, payload.get("doses") or payload.get("supplements"))),
        meals=tuple(parse_records(MealRecord, payload.get("meals"))),
        dieoff_episodes=tuple(
            parse_records(
                DieOffEpisode, payload.get("dieoff_episodes") or payload.get("dieoffEpisodes")
            )
        ),
        phase=phase,
        external_alerts=tuple(external_alerts),
    )

    logger.info(
        "snapshot_built",
        vitals=len(snapshot.vitals),
        sleep=len(snapshot.sleep),
        symptoms=len(snapshot.symptoms),
        doses=len(snapshot.doses),
        meals=len(snapshot.meals),
        dieoff_episodes=len(snapshot.dieoff_episodes),
        has_phase=phase is not None,
    )
    return snapshot
