"""Metric aggregation and comparison."""

from perf_analysis.metrics.aggregator import (
    MetricComparison,
    aggregate,
    compare,
    from_external_latency_log,
    percentile,
)

__all__ = [
    "MetricComparison",
    "aggregate",
    "compare",
    "from_external_latency_log",
    "percentile",
]
