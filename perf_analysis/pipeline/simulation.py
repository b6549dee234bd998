"""Synthetic metrics for when no measured load-test data is available."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from perf_analysis.models.metric import PerformanceMetric
from perf_analysis.pipeline.base import ReportDescriptor

READ_HEAVY = "read-heavy"
WRITE_HEAVY = "write-heavy"
MIXED = "mixed"
ARCHETYPES = (READ_HEAVY, WRITE_HEAVY, MIXED)

SYNTHETIC_DURATION_SEC = 60.0

HINT_ARCHETYPES: Mapping[str, str] = {
    "get": READ_HEAVY,
    "read": READ_HEAVY,
    "post": WRITE_HEAVY,
    "put": WRITE_HEAVY,
    "delete": WRITE_HEAVY,
    "write": WRITE_HEAVY,
    "mixed": MIXED,
    "mixto": MIXED,
    "combined": MIXED,
}


@dataclass(frozen=True, kw_only=True)
class LoadCurve:
    """Latency, error rate and throughput as linear functions of user count."""

    base_latency_ms: float
    latency_per_user_ms: float
    error_free_users: int
    error_per_user_pct: float
    max_throughput: float
    throughput_loss_per_user: float
    min_throughput: float

    def latency_ms(self, users: int) -> float:
        return self.base_latency_ms + users * self.latency_per_user_ms

    def error_rate_pct(self, users: int) -> float:
        excess = max(0, users - self.error_free_users)
        return min(100.0, excess * self.error_per_user_pct)

    def throughput(self, users: int) -> float:
        return max(
            self.min_throughput,
            self.max_throughput - users * self.throughput_loss_per_user,
        )


CURVES: Mapping[str, LoadCurve] = {
    READ_HEAVY: LoadCurve(
        base_latency_ms=200,
        latency_per_user_ms=8.5,
        error_free_users=40,
        error_per_user_pct=0.2,
        max_throughput=60,
        throughput_loss_per_user=0.3,
        min_throughput=25,
    ),
    WRITE_HEAVY: LoadCurve(
        base_latency_ms=350,
        latency_per_user_ms=12,
        error_free_users=25,
        error_per_user_pct=0.4,
        max_throughput=50,
        throughput_loss_per_user=0.35,
        min_throughput=20,
    ),
    MIXED: LoadCurve(
        base_latency_ms=275,
        latency_per_user_ms=10,
        error_free_users=30,
        error_per_user_pct=0.3,
        max_throughput=55,
        throughput_loss_per_user=0.32,
        min_throughput=22,
    ),
}

# archetype -> users -> (avg latency ms, error %, throughput/s)
SIMULATED_TABLE: Mapping[str, Mapping[int, tuple[float, float, float]]] = {
    READ_HEAVY: {10: (245, 0.0, 55.2), 25: (634, 1.2, 48.7), 50: (890, 2.1, 47.8)},
    WRITE_HEAVY: {10: (380, 0.0, 42.1), 25: (897, 2.8, 39.4), 50: (1250, 4.2, 38.9)},
    MIXED: {10: (315, 0.0, 48.5), 25: (723, 1.9, 43.1), 50: (1120, 3.8, 41.2)},
}


def synthetic_metric(
    scenario_name: str,
    concurrent_users: int,
    avg_latency_ms: float,
    error_rate_pct: float,
    throughput_per_sec: float,
) -> PerformanceMetric:
    """Build a metric whose spread is derived from the average latency."""
    return PerformanceMetric(
        scenario_name=scenario_name,
        concurrent_users=concurrent_users,
        avg_latency_ms=avg_latency_ms,
        p90_latency_ms=avg_latency_ms * 1.3,
        p95_latency_ms=avg_latency_ms * 1.5,
        throughput_per_sec=throughput_per_sec,
        error_rate_pct=error_rate_pct,
        min_latency_ms=avg_latency_ms * 0.3,
        max_latency_ms=avg_latency_ms * 2.5,
        duration_sec=SYNTHETIC_DURATION_SEC,
    )


def archetype_for_hint(hint: str | None) -> str:
    if hint is None:
        return MIXED
    return HINT_ARCHETYPES.get(hint.lower(), MIXED)


def derived_metrics(
    reports: Sequence[ReportDescriptor], concurrency_levels: Sequence[int]
) -> Sequence[PerformanceMetric]:
    """Estimate metrics for each reported scenario at each concurrency level.

    Reports sharing an archetype are estimated once.
    """
    archetypes = list(
        dict.fromkeys(archetype_for_hint(report.scenario_hint) for report in reports)
    )
    metrics: list[PerformanceMetric] = []
    for archetype in archetypes:
        curve = CURVES[archetype]
        for users in concurrency_levels:
            metrics.append(
                synthetic_metric(
                    archetype,
                    users,
                    curve.latency_ms(users),
                    curve.error_rate_pct(users),
                    curve.throughput(users),
                )
            )
    return metrics


def simulated_metrics() -> Sequence[PerformanceMetric]:
    """Fixed metrics for the three archetypes at 10, 25 and 50 users."""
    return [
        synthetic_metric(archetype, users, latency, error, throughput)
        for archetype, levels in SIMULATED_TABLE.items()
        for users, (latency, error, throughput) in levels.items()
    ]
