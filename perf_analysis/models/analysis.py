"""Models for the compiled outcome of an analysis run."""

from datetime import datetime, timezone
from typing import Literal

from pydantic import Field

from perf_analysis.models.base import Model

type OverallState = Literal["success", "warnings", "partial", "failed"]
type Provenance = Literal["real", "reused", "derived", "simulated", "default"]

PRODUCTION_MIN_PASS_RATE_PCT = 85.0
PRODUCTION_MAX_CRITICAL_SCENARIOS = 1
PRODUCTION_MAX_AVG_LATENCY_MS = 3000.0
PRODUCTION_MAX_AVG_ERROR_RATE_PCT = 10.0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FunctionalSummary(Model):
    """Totals of a functional test run."""

    total: int = Field(ge=0)
    passed: int = Field(ge=0)
    failed: int = Field(ge=0)
    skipped: int = Field(ge=0, default=0)
    top_errors: tuple[str, ...] = ()
    provenance: Provenance

    @property
    def pass_rate_pct(self) -> float:
        if self.total == 0:
            return 0.0
        return self.passed * 100 / self.total


class PerformanceSummary(Model):
    """Aggregate view over all performance scenarios of a run."""

    total_scenarios: int = Field(ge=0)
    read_heavy_scenarios: int = Field(ge=0, default=0)
    write_heavy_scenarios: int = Field(ge=0, default=0)
    mixed_scenarios: int = Field(ge=0, default=0)
    critical_scenarios: int = Field(ge=0, default=0)
    avg_latency_ms: float = Field(ge=0)
    avg_throughput_per_sec: float = Field(ge=0)
    avg_error_rate_pct: float = Field(ge=0, le=100)
    provenance: Provenance


class AnalysisResult(Model):
    """Compiled result of one pipeline run."""

    executed_at: datetime = Field(default_factory=_utc_now)
    overall_state: OverallState
    functional: FunctionalSummary | None = None
    performance: PerformanceSummary | None = None
    recommendations: tuple[str, ...] = ()
    artifacts: tuple[str, ...] = ()

    def is_production_ready(self) -> bool:
        """Check the run against the release gate.

        Requires a non-failed run with both summaries present, a functional
        pass rate of at least 85%, at most one critical scenario, and average
        latency and error rate within bounds.
        """
        if self.overall_state == "failed":
            return False
        if self.functional is None or self.performance is None:
            return False
        return (
            self.functional.pass_rate_pct >= PRODUCTION_MIN_PASS_RATE_PCT
            and self.performance.critical_scenarios
            <= PRODUCTION_MAX_CRITICAL_SCENARIOS
            and self.performance.avg_latency_ms <= PRODUCTION_MAX_AVG_LATENCY_MS
            and self.performance.avg_error_rate_pct
            <= PRODUCTION_MAX_AVG_ERROR_RATE_PCT
        )


class AnalysisResultBuilder:
    """Accumulates the pieces of an AnalysisResult before freezing it."""

    def __init__(self) -> None:
        self._executed_at = _utc_now()
        self._functional: FunctionalSummary | None = None
        self._performance: PerformanceSummary | None = None
        self._recommendations: list[str] = []
        self._artifacts: list[str] = []

    def functional(self, summary: FunctionalSummary | None) -> "AnalysisResultBuilder":
        self._functional = summary
        return self

    def performance(
        self, summary: PerformanceSummary | None
    ) -> "AnalysisResultBuilder":
        self._performance = summary
        return self

    def recommend(self, *recommendations: str) -> "AnalysisResultBuilder":
        for recommendation in recommendations:
            if recommendation not in self._recommendations:
                self._recommendations.append(recommendation)
        return self

    def artifact(self, *paths: str) -> "AnalysisResultBuilder":
        self._artifacts.extend(paths)
        return self

    def build(self, overall_state: OverallState) -> AnalysisResult:
        return AnalysisResult(
            executed_at=self._executed_at,
            overall_state=overall_state,
            functional=self._functional,
            performance=self._performance,
            recommendations=tuple(self._recommendations),
            artifacts=tuple(self._artifacts),
        )
