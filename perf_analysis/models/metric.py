"""Aggregated performance metric for one scenario at one concurrency level."""

from datetime import datetime, timezone
from enum import IntEnum

from pydantic import Field, field_validator

from perf_analysis.models.base import Model

SCALABLE_MIN_USERS = 50


class PerformanceLevel(IntEnum):
    """Performance classification, ordered from best to worst."""

    EXCELLENT = 0
    GOOD = 1
    FAIR = 2
    POOR = 3
    UNACCEPTABLE = 4


def classify(avg_latency_ms: float, error_rate_pct: float) -> PerformanceLevel:
    """Classify a latency/error-rate pair.

    Rules are evaluated top to bottom and the first match wins, so a high
    error rate dominates a good latency.

    Args:
        avg_latency_ms: Average latency of successful requests
        error_rate_pct: Percentage of failed requests (0-100)

    Returns:
        The performance level for the pair

    """
    if error_rate_pct > 15:
        return PerformanceLevel.UNACCEPTABLE
    if avg_latency_ms > 3000 or error_rate_pct > 10:
        return PerformanceLevel.POOR
    if avg_latency_ms > 2000 or error_rate_pct > 5:
        return PerformanceLevel.FAIR
    if avg_latency_ms > 1000 or error_rate_pct > 2:
        return PerformanceLevel.GOOD
    return PerformanceLevel.EXCELLENT


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PerformanceMetric(Model):
    """Aggregated metric; construction fails on any out-of-range value."""

    scenario_name: str
    concurrent_users: int = Field(gt=0)
    avg_latency_ms: float = Field(ge=0)
    p90_latency_ms: float = Field(ge=0)
    p95_latency_ms: float = Field(ge=0)
    throughput_per_sec: float = Field(ge=0)
    error_rate_pct: float = Field(ge=0, le=100)
    min_latency_ms: float = Field(ge=0)
    max_latency_ms: float = Field(ge=0)
    duration_sec: float = Field(gt=0)
    executed_at: datetime = Field(default_factory=_utc_now)

    @field_validator("scenario_name")
    @classmethod
    def _strip_scenario_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("scenario_name must not be empty")
        return value

    @property
    def level(self) -> PerformanceLevel:
        return classify(self.avg_latency_ms, self.error_rate_pct)

    @property
    def is_scalable(self) -> bool:
        """Whether the scenario holds up at high concurrency."""
        return (
            self.concurrent_users >= SCALABLE_MIN_USERS
            and self.level <= PerformanceLevel.GOOD
        )

    @property
    def efficiency(self) -> float:
        """Throughput per second of average latency; diagnostic only."""
        if self.avg_latency_ms <= 0:
            return 0.0
        return self.throughput_per_sec / (self.avg_latency_ms / 1000)
