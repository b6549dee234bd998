"""Turn outcome samples and external latency logs into performance metrics."""

import csv
import logging
import math
import re
from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from perf_analysis.models.metric import PerformanceMetric
from perf_analysis.models.sample import OutcomeSample

log = logging.getLogger(__name__)

# Penalty values for a run in which every request failed.
DEGRADED_AVG_LATENCY_MS = 5000.0
DEGRADED_P90_LATENCY_MS = 6000.0
DEGRADED_P95_LATENCY_MS = 7000.0
DEGRADED_MAX_LATENCY_MS = 10000.0

DEFAULT_LOG_USERS = 10
DEFAULT_LOG_DURATION_SEC = 60.0

_USERS_TOKEN = re.compile(r"(?:^|[^a-z0-9])(\d+)u?(?=$|[^a-z0-9])")


def percentile(sorted_values: Sequence[float], pct: float) -> float:
    """Nearest-rank percentile of an ascending sequence.

    Args:
        sorted_values: Values sorted in ascending order
        pct: Percentile in the range 0-100

    Returns:
        The value at index ``ceil(pct / 100 * n) - 1``, clamped to the bounds

    Raises:
        ValueError: If ``sorted_values`` is empty

    """
    if not sorted_values:
        raise ValueError("percentile of an empty sequence")
    index = math.ceil(pct / 100 * len(sorted_values)) - 1
    index = max(0, min(index, len(sorted_values) - 1))
    return sorted_values[index]


def aggregate(
    scenario_name: str,
    concurrent_users: int,
    duration_sec: float,
    samples: Sequence[OutcomeSample],
) -> PerformanceMetric:
    """Aggregate samples of one scenario at one concurrency level.

    An empty sample list yields a fully failed metric and a list with no
    successful sample yields a degraded metric with fixed penalty latencies;
    neither case raises.

    Args:
        scenario_name: Name of the scenario
        concurrent_users: Number of virtual users that produced the samples
        duration_sec: Wall-clock duration of the run
        samples: Outcome samples, in any order

    Returns:
        Aggregated metric

    """
    if not samples:
        log.warning("No samples for %s (%d users)", scenario_name, concurrent_users)
        return PerformanceMetric(
            scenario_name=scenario_name,
            concurrent_users=concurrent_users,
            avg_latency_ms=0.0,
            p90_latency_ms=0.0,
            p95_latency_ms=0.0,
            throughput_per_sec=0.0,
            error_rate_pct=100.0,
            min_latency_ms=0.0,
            max_latency_ms=0.0,
            duration_sec=duration_sec,
        )

    latencies = sorted(float(s.latency_ms) for s in samples if s.success)
    if not latencies:
        log.warning(
            "All %d request(s) failed for %s (%d users)",
            len(samples),
            scenario_name,
            concurrent_users,
        )
        return PerformanceMetric(
            scenario_name=scenario_name,
            concurrent_users=concurrent_users,
            avg_latency_ms=DEGRADED_AVG_LATENCY_MS,
            p90_latency_ms=DEGRADED_P90_LATENCY_MS,
            p95_latency_ms=DEGRADED_P95_LATENCY_MS,
            throughput_per_sec=0.0,
            error_rate_pct=100.0,
            min_latency_ms=0.0,
            max_latency_ms=DEGRADED_MAX_LATENCY_MS,
            duration_sec=duration_sec,
        )

    failed = len(samples) - len(latencies)
    return PerformanceMetric(
        scenario_name=scenario_name,
        concurrent_users=concurrent_users,
        avg_latency_ms=sum(latencies) / len(latencies),
        p90_latency_ms=percentile(latencies, 90),
        p95_latency_ms=percentile(latencies, 95),
        throughput_per_sec=len(latencies) / duration_sec,
        # Multiply before dividing so 15 of 100 is exactly 15.0.
        error_rate_pct=failed * 100 / len(samples),
        min_latency_ms=latencies[0],
        max_latency_ms=latencies[-1],
        duration_sec=duration_sec,
    )


def scenario_archetype(name: str) -> str:
    """Guess the scenario archetype from a file or scenario name."""
    lowered = name.lower()
    if ("get" in lowered and "post" in lowered) or any(
        token in lowered for token in ("mixed", "mixto", "combined")
    ):
        return "mixed"
    if "post" in lowered or "write" in lowered:
        return "write-heavy"
    if "get" in lowered or "read" in lowered:
        return "read-heavy"
    return "detected"


def users_from_filename(name: str) -> int:
    """Read the concurrency level from a ``<n>`` or ``<n>u`` token."""
    for match in _USERS_TOKEN.finditer(Path(name).stem.lower()):
        if (users := int(match.group(1))) > 0:
            return users
    return DEFAULT_LOG_USERS


def read_latency_log(path: Path) -> tuple[Sequence[OutcomeSample], Sequence[int]]:
    """Parse a JMeter-style CSV log into samples and their timestamps.

    Rows missing ``elapsed`` or carrying non-numeric values are skipped.
    """
    samples: list[OutcomeSample] = []
    timestamps: list[int] = []

    with path.open(newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        if reader.fieldnames is None or "elapsed" not in reader.fieldnames:
            log.warning("Latency log %s has no elapsed column", path)
            return [], []

        for row in reader:
            try:
                elapsed = int(row["elapsed"])
                timestamp = int(row["timeStamp"]) if row.get("timeStamp") else None
            except (TypeError, ValueError):
                log.debug("Skipping malformed row in %s: %s", path, row)
                continue
            if elapsed < 0:
                continue

            success = (row.get("success") or "true").strip().lower() == "true"
            samples.append(
                OutcomeSample(
                    latency_ms=elapsed,
                    success=success,
                    message=row.get("label") or "",
                )
            )
            if timestamp is not None:
                timestamps.append(timestamp)

    return samples, timestamps


def from_external_latency_log(path: Path) -> PerformanceMetric | None:
    """Build a metric from an external raw latency log.

    Args:
        path: CSV log with at least ``timeStamp`` and ``elapsed`` columns

    Returns:
        The metric, or None when the file is missing or holds no usable rows

    """
    if not path.is_file() or path.stat().st_size == 0:
        log.warning("Latency log %s is missing or empty", path)
        return None

    samples, timestamps = read_latency_log(path)
    if not samples:
        log.warning("Latency log %s has no usable rows", path)
        return None

    duration = DEFAULT_LOG_DURATION_SEC
    if len(timestamps) > 1 and (span := max(timestamps) - min(timestamps)) > 0:
        duration = span / 1000

    scenario = scenario_archetype(path.name)
    users = users_from_filename(path.name)
    log.info(
        "Parsed %d sample(s) from %s as %s with %d user(s)",
        len(samples),
        path,
        scenario,
        users,
    )
    return aggregate(scenario, users, duration, samples)


@dataclass(frozen=True, kw_only=True)
class MetricComparison:
    """Cross-scenario rankings of a set of metrics."""

    by_latency: Sequence[PerformanceMetric]
    by_throughput: Sequence[PerformanceMetric]
    by_scenario: Mapping[str, Sequence[PerformanceMetric]]

    @property
    def best(self) -> PerformanceMetric | None:
        return self.by_latency[0] if self.by_latency else None

    @property
    def worst(self) -> PerformanceMetric | None:
        return self.by_latency[-1] if self.by_latency else None


def compare(metrics: Sequence[PerformanceMetric]) -> MetricComparison:
    """Rank metrics by latency and throughput, ties broken by scenario name."""
    grouped: dict[str, list[PerformanceMetric]] = defaultdict(list)
    for metric in metrics:
        grouped[metric.scenario_name].append(metric)

    return MetricComparison(
        by_latency=sorted(metrics, key=lambda m: (m.avg_latency_ms, m.scenario_name)),
        by_throughput=sorted(
            metrics, key=lambda m: (-m.throughput_per_sec, m.scenario_name)
        ),
        by_scenario={
            name: sorted(group, key=lambda m: m.concurrent_users)
            for name, group in sorted(grouped.items())
        },
    )
