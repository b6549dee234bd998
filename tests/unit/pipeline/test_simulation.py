"""Tests for synthetic and simulated metrics."""

from pathlib import Path

import pytest

from perf_analysis.pipeline.base import ReportDescriptor
from perf_analysis.pipeline.simulation import (
    CURVES,
    MIXED,
    READ_HEAVY,
    WRITE_HEAVY,
    archetype_for_hint,
    derived_metrics,
    simulated_metrics,
    synthetic_metric,
)


def test_simulated_metrics_cover_all_archetypes() -> None:
    """Three archetypes at three concurrency levels."""
    metrics = simulated_metrics()

    assert len(metrics) == 9
    assert {(m.scenario_name, m.concurrent_users) for m in metrics} == {
        (archetype, users)
        for archetype in (READ_HEAVY, WRITE_HEAVY, MIXED)
        for users in (10, 25, 50)
    }


def test_simulated_write_heavy_at_fifty_users() -> None:
    """Uses the fixed table values."""
    metric = next(
        m
        for m in simulated_metrics()
        if m.scenario_name == WRITE_HEAVY and m.concurrent_users == 50
    )

    assert metric.avg_latency_ms == 1250
    assert metric.error_rate_pct == 4.2
    assert metric.throughput_per_sec == 38.9


def test_synthetic_metric_spread() -> None:
    """Percentiles and extremes are derived from the average."""
    metric = synthetic_metric("mixed", 10, 400, 1.0, 30)

    assert metric.p90_latency_ms == pytest.approx(520)
    assert metric.p95_latency_ms == pytest.approx(600)
    assert metric.min_latency_ms == pytest.approx(120)
    assert metric.max_latency_ms == pytest.approx(1000)
    assert metric.duration_sec == 60


@pytest.mark.parametrize(
    ("archetype", "users", "latency", "error", "throughput"),
    [
        (READ_HEAVY, 10, 285, 0, 57),
        (READ_HEAVY, 50, 625, 2, 45),
        (WRITE_HEAVY, 50, 950, 10, 32.5),
        (MIXED, 100, 1275, 21, 23),
        (READ_HEAVY, 200, 1900, 32, 25),
    ],
)
def test_curves(
    archetype: str, users: int, latency: float, error: float, throughput: float
) -> None:
    """Latency grows linearly, errors start past a threshold, throughput floors."""
    curve = CURVES[archetype]

    assert curve.latency_ms(users) == pytest.approx(latency)
    assert curve.error_rate_pct(users) == pytest.approx(error)
    assert curve.throughput(users) == pytest.approx(throughput)


def test_curve_error_rate_is_capped() -> None:
    """Extreme user counts never exceed a 100% error rate."""
    assert CURVES[WRITE_HEAVY].error_rate_pct(1000) == 100


@pytest.mark.parametrize(
    ("hint", "expected"),
    [
        ("get", READ_HEAVY),
        ("post", WRITE_HEAVY),
        ("delete", WRITE_HEAVY),
        ("mixto", MIXED),
        (None, MIXED),
        ("unknown", MIXED),
    ],
)
def test_archetype_for_hint(hint: str | None, expected: str) -> None:
    """Maps report hints to archetypes."""
    assert archetype_for_hint(hint) == expected


def test_derived_metrics_deduplicate_archetypes(tmp_path: Path) -> None:
    """Reports sharing an archetype are estimated once per level."""
    reports = [
        ReportDescriptor(path=tmp_path / "get.html", scenario_hint="get"),
        ReportDescriptor(path=tmp_path / "read.html", scenario_hint="read"),
        ReportDescriptor(path=tmp_path / "post.html", scenario_hint="post"),
    ]

    metrics = derived_metrics(reports, (10, 25))

    assert [(m.scenario_name, m.concurrent_users) for m in metrics] == [
        (READ_HEAVY, 10),
        (READ_HEAVY, 25),
        (WRITE_HEAVY, 10),
        (WRITE_HEAVY, 25),
    ]
