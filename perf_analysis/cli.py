"""CLI entry point for the API performance analysis."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from perf_analysis.collector import default_collector
from perf_analysis.config import AnalysisConfig, TargetConfig, load_config
from perf_analysis.errors import EmptyResultSetError
from perf_analysis.loadgen.executor import HttpRequestExecutor
from perf_analysis.loadgen.generator import LoadGenerator
from perf_analysis.models.analysis import AnalysisResult
from perf_analysis.models.metric import PerformanceMetric
from perf_analysis.pipeline.orchestrator import AnalysisOrchestrator

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2

STATE_SYMBOLS = {
    "success": "✅",
    "warnings": "⚠️",
    "partial": "◐",
    "failed": "❌",
}


def log_result_summary(log: logging.Logger, result: AnalysisResult) -> None:
    """Log a formatted summary of an analysis result."""
    log.info("=" * 80)
    symbol = STATE_SYMBOLS.get(result.overall_state, "?")
    log.info("%s Analysis %s", symbol, result.overall_state)
    log.info("=" * 80)

    if (functional := result.functional) is not None:
        log.info(
            "Functional (%s): %d/%d passed, %d failed, %d skipped",
            functional.provenance,
            functional.passed,
            functional.total,
            functional.failed,
            functional.skipped,
        )
    if (performance := result.performance) is not None:
        log.info(
            "Performance (%s): %d scenario(s), avg %.0fms, %.1f req/s, %.1f%% errors",
            performance.provenance,
            performance.total_scenarios,
            performance.avg_latency_ms,
            performance.avg_throughput_per_sec,
            performance.avg_error_rate_pct,
        )
    log.info("Production ready: %s", "yes" if result.is_production_ready() else "no")
    for recommendation in result.recommendations:
        log.info("  - %s", recommendation)


def format_metric(metric: PerformanceMetric) -> dict[str, Any]:
    """Format a metric for JSON output."""
    return {
        **metric.model_dump(mode="json"),
        "level": metric.level.name,
        "scalable": metric.is_scalable,
        "efficiency": round(metric.efficiency, 3),
    }


async def run_analysis(config: AnalysisConfig, root: Path) -> int:
    """Run the full pipeline and return exit code."""
    log = logging.getLogger("perf_analysis")

    async with AnalysisOrchestrator.from_config(
        config, collector=default_collector, root=root
    ) as orchestrator:
        result = await orchestrator.run()

    log_result_summary(log, result)
    print(result.model_dump_json(indent=2))
    return EXIT_FAILED if result.overall_state == "failed" else EXIT_OK


async def run_load(
    target: TargetConfig,
    scenario_name: str,
    users: int,
    duration: float,
) -> int:
    """Run the built-in load generator against one HTTP target."""
    log = logging.getLogger("perf_analysis")

    async with HttpRequestExecutor.from_config(target) as executor:
        try:
            metric = await LoadGenerator().run(scenario_name, users, duration, executor)
        except EmptyResultSetError as e:
            log.error("Load test produced no results: %s", e)
            return EXIT_FAILED

    print(json.dumps(format_metric(metric), indent=2))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Load-test an API and compile a performance analysis"
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Run the full analysis pipeline")
    analyze.add_argument(
        "--config",
        type=Path,
        help="YAML configuration file (defaults are used when omitted)",
    )
    analyze.add_argument(
        "--output-dir",
        type=Path,
        help="Override the configured output directory",
    )
    analyze.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Project root used for tests and artifact detection",
    )

    load = subparsers.add_parser("load", help="Load-test a single HTTP endpoint")
    load.add_argument("--url", required=True, help="Base URL of the target API")
    load.add_argument("--method", default="GET", help="HTTP method")
    load.add_argument("--path", default="/", help="Request path")
    load.add_argument("--users", type=int, default=10, help="Virtual users")
    load.add_argument(
        "--duration", type=float, default=60.0, help="Duration in seconds"
    )
    load.add_argument("--scenario", default="adhoc", help="Scenario name")
    load.add_argument(
        "--read-timeout", type=float, default=30.0, help="Read timeout in seconds"
    )
    return parser


def resolve_config(args: argparse.Namespace) -> AnalysisConfig:
    """Load the configuration file and apply command line overrides."""
    config = load_config(args.config) if args.config else AnalysisConfig()
    if args.output_dir is not None:
        config = AnalysisConfig.model_validate(
            {**config.model_dump(), "output_dir": args.output_dir}
        )
    return config


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    log = logging.getLogger("perf_analysis")

    try:
        if args.command == "analyze":
            config = resolve_config(args)
        else:
            target = TargetConfig(
                base_url=args.url,
                method=args.method,
                path=args.path,
                read_timeout_seconds=args.read_timeout,
            )
            if args.users <= 0 or args.duration <= 0:
                raise ValueError("--users and --duration must be > 0")
    except (OSError, yaml.YAMLError, ValidationError, ValueError) as e:
        log.error("Invalid configuration: %s", e)
        sys.exit(EXIT_CONFIG_ERROR)

    if args.command == "analyze":
        exit_code = asyncio.run(run_analysis(config, args.root))
    else:
        exit_code = asyncio.run(
            run_load(target, args.scenario, args.users, args.duration)
        )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
