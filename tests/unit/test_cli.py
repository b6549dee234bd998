"""Tests for CLI module."""

import json
import logging
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from perf_analysis.cli import (
    EXIT_CONFIG_ERROR,
    build_parser,
    format_metric,
    log_result_summary,
    main,
    resolve_config,
    run_analysis,
)
from perf_analysis.config import AnalysisConfig
from perf_analysis.models.analysis import AnalysisResult
from perf_analysis.testing.factories import (
    FunctionalSummaryFactory,
    PerformanceMetricFactory,
    PerformanceSummaryFactory,
)


def test_log_result_summary(caplog: pytest.LogCaptureFixture) -> None:
    """Logs state, summaries and recommendations."""
    result = AnalysisResult(
        overall_state="warnings",
        functional=FunctionalSummaryFactory.build(total=10, passed=9, failed=1),
        performance=PerformanceSummaryFactory.build(provenance="simulated"),
        recommendations=("Add a cache",),
    )

    with caplog.at_level(logging.INFO):
        log_result_summary(logging.getLogger(), result)

    assert "Analysis warnings" in caplog.text
    assert "Functional (real): 9/10 passed, 1 failed" in caplog.text
    assert "Performance (simulated): 3 scenario(s)" in caplog.text
    assert "  - Add a cache" in caplog.text


def test_format_metric() -> None:
    """Adds derived fields to the serialized metric."""
    metric = PerformanceMetricFactory.build(
        concurrent_users=50, avg_latency_ms=500.0, throughput_per_sec=40.0
    )

    output = format_metric(metric)

    assert output["level"] == "EXCELLENT"
    assert output["scalable"] is True
    assert output["efficiency"] == 80.0
    assert output["scenario_name"] == "read-heavy"
    json.dumps(output)


def test_resolve_config_overrides_output_dir(tmp_path: Path) -> None:
    """The output directory flag wins over the file."""
    config_file = tmp_path / "analysis.yaml"
    config_file.write_text("output_dir: from-file\ncritical_error_pct: 5\n")
    args = build_parser().parse_args(
        ["analyze", "--config", str(config_file), "--output-dir", str(tmp_path)]
    )

    config = resolve_config(args)

    assert config.output_dir == tmp_path
    assert config.critical_error_pct == 5


def test_main_exits_on_invalid_config(tmp_path: Path) -> None:
    """Invalid configuration exits with the configuration error code."""
    config_file = tmp_path / "analysis.yaml"
    config_file.write_text("critical_error_pct: 150\n")

    with pytest.raises(SystemExit) as exc_info:
        main(["analyze", "--config", str(config_file)])

    assert exc_info.value.code == EXIT_CONFIG_ERROR


def test_main_rejects_non_positive_users() -> None:
    """Load runs need at least one user."""
    with pytest.raises(SystemExit) as exc_info:
        main(["load", "--url", "http://api.test", "--users", "0"])

    assert exc_info.value.code == EXIT_CONFIG_ERROR


@pytest.mark.parametrize(("state", "expected"), [("success", 0), ("failed", 1)])
async def test_run_analysis_exit_code(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    state: str,
    expected: int,
) -> None:
    """Prints the result as JSON and maps failed to a non-zero exit code."""
    result = AnalysisResult.model_validate({"overall_state": state})
    orchestrator = AsyncMock()
    orchestrator.run.return_value = result
    context = AsyncMock()
    context.__aenter__.return_value = orchestrator

    with patch(
        "perf_analysis.cli.AnalysisOrchestrator.from_config", return_value=context
    ):
        exit_code = await run_analysis(AnalysisConfig(output_dir=tmp_path), tmp_path)

    assert exit_code == expected
    assert json.loads(capsys.readouterr().out)["overall_state"] == state
