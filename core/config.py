"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Every clinical threshold overridable from the environment, defaults in code
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class AdherenceConfig(BaseModel):
    """Dose timing and adherence roll-up settings."""

    grace_period_hours: float = Field(
        default=2.0, gt=0.0, description="Hours after a slot before its doses count as missed"
    )
    active_lead_hours: float = Field(
        default=1.0, ge=0.0, description="Hours before a slot when it becomes active"
    )
    match_window_hours: float = Field(
        default=3.0, gt=0.0, description="Max distance between a dose log and its slot time"
    )
    streak_threshold_pct: int = Field(
        default=80, ge=0, le=100, description="Daily adherence needed to extend a streak"
    )
    streak_max_days: int = Field(default=365, gt=0, description="Longest streak walk-back")
    claim_doses: bool = Field(
        default=False, description="Let each dose log satisfy at most one scheduled dose"
    )


class TrendConfig(BaseModel):
    """Biometric thresholds for the trend and alert detectors."""

    hrv_critical: float = Field(default=51.0, gt=0.0, description="HRV below this is critical")
    hrv_warning: float = Field(default=61.0, gt=0.0, description="HRV below this is a warning")
    hrv_optimal: float = Field(default=80.0, gt=0.0, description="HRV above this is optimal")
    hrv_critical_days: int = Field(default=2, gt=0)
    hrv_warning_days: int = Field(default=3, gt=0)
    hrv_optimal_days: int = Field(default=3, gt=0)

    sleep_lookback_nights: int = Field(default=7, gt=0, description="Nights scanned for sleep alerts")
    sleep_min_nights: int = Field(default=3, gt=0, description="Bad nights needed to alert")
    deep_sleep_critical_minutes: float = Field(default=30.0, gt=0.0)
    sleep_quality_warning: float = Field(default=5.0, gt=0.0)
    short_sleep_hours: float = Field(default=5.0, gt=0.0)

    reminder_start_hour: int = Field(default=10, ge=0, le=23)
    reminder_end_hour: int = Field(default=14, ge=1, le=24)
    phase_ending_days: int = Field(default=7, gt=0)
    high_symptom_severity: int = Field(default=7, ge=0, le=10)

    @model_validator(mode="after")
    def bands_are_ordered(self) -> "TrendConfig":
        """HRV bands must nest: critical < warning < optimal."""
        if not self.hrv_critical < self.hrv_warning < self.hrv_optimal:
            raise ValueError("HRV thresholds must satisfy critical < warning < optimal")
        if self.reminder_start_hour >= self.reminder_end_hour:
            raise ValueError("reminder window must start before it ends")
        return self


class CorrelationConfig(BaseModel):
    """Settings for the symptom/biometric insight heuristics."""

    min_pairs: int = Field(default=2, gt=0, description="Same-day pairs needed for an insight")
    high_severity: int = Field(default=5, ge=0, le=10)
    mild_severity: int = Field(default=3, ge=0, le=10)
    trend_window: int = Field(default=5, gt=0, description="Entries per side of a trend compare")
    trend_delta: float = Field(default=1.0, gt=0.0, description="Mean change that counts as a trend")


class MonitoringConfig(BaseModel):
    """Periodic re-evaluation settings."""

    refresh_interval_seconds: float = Field(
        default=300.0, gt=0.0, description="Interval between dashboard re-evaluations"
    )
    fetch_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Timeout for one data-access fetch"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Component configs
    adherence: AdherenceConfig = Field(default_factory=AdherenceConfig)
    trends: TrendConfig = Field(default_factory=TrendConfig)
    correlation: CorrelationConfig = Field(default_factory=CorrelationConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    adherence_config = AdherenceConfig(
        grace_period_hours=float(os.getenv("GRACE_PERIOD_HOURS", "2.0")),
        match_window_hours=float(os.getenv("DOSE_MATCH_WINDOW_HOURS", "3.0")),
        streak_threshold_pct=int(os.getenv("STREAK_THRESHOLD_PCT", "80")),
        claim_doses=_parse_bool(os.getenv("CLAIM_DOSES"), False),
    )

    trend_config = TrendConfig(
        hrv_critical=float(os.getenv("HRV_CRITICAL", "51")),
        hrv_warning=float(os.getenv("HRV_WARNING", "61")),
        hrv_optimal=float(os.getenv("HRV_OPTIMAL", "80")),
        sleep_lookback_nights=int(os.getenv("SLEEP_LOOKBACK_NIGHTS", "7")),
    )

    monitoring_config = MonitoringConfig(
        refresh_interval_seconds=float(os.getenv("REFRESH_INTERVAL_SECONDS", "300")),
        fetch_timeout_seconds=float(os.getenv("FETCH_TIMEOUT_SECONDS", "10")),
    )

    # Logging config
    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    # Application config
    return AppConfig(
        environment=environment,
        debug=debug,
        adherence=adherence_config,
        trends=trend_config,
        correlation=CorrelationConfig(),
        monitoring=monitoring_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


# Configuration validation and helpers
def validate_config() -> None:
    """Validate configuration at startup."""
    try:
        config = get_config()
        print(f"Configuration loaded for {config.environment} environment")
        if config.adherence.claim_doses:
            print("Dose claiming enabled: each log satisfies at most one scheduled dose")
    except Exception as e:
        print(f"Configuration validation failed: {e}")
        raise


# Development helpers
def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\nCONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\nADHERENCE")
    print(f"Grace Period: {config.adherence.grace_period_hours}h")
    print(f"Match Window: {config.adherence.match_window_hours}h")
    print(f"Streak Threshold: {config.adherence.streak_threshold_pct}%")

    print("\nTRENDS")
    print(
        f"HRV Bands: critical<{config.trends.hrv_critical} "
        f"warning<{config.trends.hrv_warning} optimal>{config.trends.hrv_optimal}"
    )
    print(f"Sleep Look-back: {config.trends.sleep_lookback_nights} nights")

    print("\nMONITORING")
    print(f"Refresh Interval: {config.monitoring.refresh_interval_seconds}s")


if __name__ == "__main__":
    # Test configuration loading
    validate_config()
    print_config_summary()
