"""Five-stage analysis pipeline with per-stage fallbacks."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import replace
from pathlib import Path
from typing import Literal

from perf_analysis.collector import ResultCollector
from perf_analysis.config import AnalysisConfig
from perf_analysis.errors import (
    CompilationError,
    EmptyResultSetError,
    ExternalToolTimeoutError,
    ExternalToolUnavailableError,
)
from perf_analysis.loadgen.executor import HttpRequestExecutor, RequestExecutor
from perf_analysis.loadgen.generator import LoadGenerator
from perf_analysis.metrics.aggregator import (
    compare,
    from_external_latency_log,
    scenario_archetype,
)
from perf_analysis.models.analysis import (
    AnalysisResult,
    AnalysisResultBuilder,
    FunctionalSummary,
    PerformanceSummary,
)
from perf_analysis.models.metric import PerformanceMetric
from perf_analysis.models.stage import (
    PerformanceCapture,
    PipelineContext,
    StageFailed,
    StageOk,
    StageOutcome,
)
from perf_analysis.pipeline.base import (
    ArtifactDetector,
    EvidenceRenderer,
    FunctionalTestRunner,
    LoadTestTool,
)
from perf_analysis.pipeline.detector import FilesystemArtifactDetector
from perf_analysis.pipeline.functional import (
    DEFAULT_FUNCTIONAL_SUMMARY,
    summarize_captured,
    summarize_junit_reports,
)
from perf_analysis.pipeline.renderers import (
    CsvMetricsRenderer,
    JsonEvidenceRenderer,
    timestamp,
)
from perf_analysis.pipeline.simulation import (
    MIXED,
    READ_HEAVY,
    WRITE_HEAVY,
    derived_metrics,
    simulated_metrics,
)
from perf_analysis.pipeline.tools import JMeterTool, SubprocessTestRunner
from perf_analysis.process import probe_tool

log = logging.getLogger(__name__)

type OrchestratorState = Literal["ready", "running", "completed", "error", "closed"]
type Stage = Callable[[PipelineContext], Awaitable[StageOutcome[PipelineContext]]]

EVIDENCE_DIR = "evidence"
LOAD_RESULTS_DIR = "load-results"
REPORTS_DIR = "reports"
RESULT_FILE_PREFIX = "analysis-result-"

TOOL_PROBE_TIMEOUT_SECONDS = 5.0

BASE_RECOMMENDATIONS = (
    "Optimize write endpoints: they show the highest latency under load",
    "Add a cache layer such as Redis for frequently read resources",
    "Apply rate limiting to protect the API during traffic peaks",
    "Monitor latency and error rate continuously in production",
    "Review the expected status codes of failing functional tests",
)


class AnalysisOrchestrator:
    """Runs Prepare, FunctionalCapture, PerformanceCapture, EvidenceGeneration
    and Compile in order and always returns an AnalysisResult.

    Each stage handles its own errors. A stage that cannot produce a context
    returns StageFailed, later stages are skipped and Compile still runs. The
    orchestrator owns a thread pool for blocking work, shut down exactly once
    when ``run`` finishes or ``close`` is called. Instances are single-use.
    """

    def __init__(
        self,
        *,
        config: AnalysisConfig,
        collector: ResultCollector,
        test_runner: FunctionalTestRunner,
        detector: ArtifactDetector,
        load_tool: LoadTestTool,
        renderers: Sequence[EvidenceRenderer] = (),
        scenario_executors: Mapping[str, RequestExecutor] | None = None,
        load_generator: LoadGenerator | None = None,
    ) -> None:
        self.config = config
        self.collector = collector
        self.test_runner = test_runner
        self.detector = detector
        self.load_tool = load_tool
        self.renderers = tuple(renderers)
        self.scenario_executors = dict(scenario_executors or {})
        self.load_generator = load_generator or LoadGenerator()

        self._pool = ThreadPoolExecutor(
            max_workers=config.worker_pool_size, thread_name_prefix="analysis"
        )
        self._state: OrchestratorState = "ready"
        self._load_tool_available = False

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls,
        config: AnalysisConfig,
        *,
        collector: ResultCollector,
        root: Path | None = None,
    ) -> AsyncGenerator["AnalysisOrchestrator", None]:
        """Create an orchestrator wired with the default collaborators.

        HTTP executors for ``config.load_scenarios`` stay open for the
        lifetime of the context.
        """
        root = root or Path.cwd()
        async with AsyncExitStack() as stack:
            executors: dict[str, RequestExecutor] = {}
            for scenario in config.load_scenarios:
                target = scenario.target
                if "read_timeout_seconds" not in target.model_fields_set:
                    target = target.model_copy(
                        update={"read_timeout_seconds": config.read_timeout_seconds}
                    )
                executors[scenario.name] = await stack.enter_async_context(
                    HttpRequestExecutor.from_config(target)
                )

            orchestrator = cls(
                config=config,
                collector=collector,
                test_runner=SubprocessTestRunner(
                    command=config.functional_test_command, cwd=root
                ),
                detector=FilesystemArtifactDetector(
                    root=root, search_dirs=config.artifact_search_dirs
                ),
                load_tool=JMeterTool(
                    binary=config.load_tool_binary,
                    plans=config.load_test_plans,
                    results_dir=config.output_dir / LOAD_RESULTS_DIR,
                ),
                renderers=[
                    JsonEvidenceRenderer(evidence_dir=config.output_dir / EVIDENCE_DIR),
                    CsvMetricsRenderer(evidence_dir=config.output_dir / EVIDENCE_DIR),
                ],
                scenario_executors=executors,
            )
            try:
                yield orchestrator
            finally:
                await orchestrator.close()

    @property
    def state(self) -> OrchestratorState:
        return self._state

    async def run(self) -> AnalysisResult:
        """Run all stages and compile the result.

        Returns:
            The compiled result; stage errors are reflected in its state and
            recommendations rather than raised

        Raises:
            RuntimeError: If the orchestrator was already run or closed

        """
        if self._state == "closed":
            raise RuntimeError("Orchestrator is closed")
        if self._state != "ready":
            raise RuntimeError("Orchestrator can only run once")

        self._state = "running"
        log.info("Starting analysis pipeline (output=%s)", self.config.output_dir)
        try:
            result = await self._run_pipeline()
            self._state = "completed" if result.overall_state != "failed" else "error"
            log.info("Analysis pipeline finished: %s", result.overall_state)
            return result
        except BaseException:
            self._state = "error"
            raise
        finally:
            await self.close()

    async def close(self) -> None:
        """Release the worker pool. Safe to call more than once.

        The pool is shut down once with ``wait=True``. If that does not
        finish within ``shutdown_grace_seconds``, a second, forced
        ``shutdown(wait=False, cancel_futures=True)`` cancels pending work
        while running work is abandoned.
        """
        if self._state == "closed":
            return
        self._state = "closed"
        self.collector.disarm()

        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._pool.shutdown, wait=True),
                self.config.shutdown_grace_seconds,
            )
        except TimeoutError:
            log.warning(
                "Worker pool did not stop within %.0fs, cancelling pending work",
                self.config.shutdown_grace_seconds,
            )
            self._pool.shutdown(wait=False, cancel_futures=True)
        log.debug("Worker pool shut down")

    async def _run_pipeline(self) -> AnalysisResult:
        stages: Sequence[tuple[str, Stage]] = (
            ("prepare", self._prepare),
            ("functional-capture", self._capture_functional),
            ("performance-capture", self._capture_performance),
            ("evidence-generation", self._generate_evidence),
        )
        outcome: StageOutcome[PipelineContext] = StageOk(
            message="pipeline started",
            payload=PipelineContext(output_dir=self.config.output_dir),
        )
        outcomes: list[StageOutcome[PipelineContext]] = []

        for name, stage in stages:
            outcome = await self._run_stage(name, stage, outcome)
            outcomes.append(outcome)

        return await self._compile(outcomes)

    async def _run_stage(
        self,
        name: str,
        stage: Stage,
        previous: StageOutcome[PipelineContext],
    ) -> StageOutcome[PipelineContext]:
        if isinstance(previous, StageFailed):
            log.warning("Skipping %s: %s", name, previous.message)
            return StageFailed(message=previous.message)

        log.info("Stage %s started", name)
        started = asyncio.get_running_loop().time()
        try:
            outcome = await stage(previous.payload)
        except Exception as e:
            log.error("Stage %s failed: %s", name, e, exc_info=e)
            return StageFailed(message=f"{name} failed: {e}")
        log.info(
            "Stage %s finished in %.1fs: %s",
            name,
            asyncio.get_running_loop().time() - started,
            outcome.message,
        )
        return outcome

    async def _in_pool[R](self, func: Callable[..., R], *args: object) -> R:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._pool, func, *args)

    async def _prepare(
        self, context: PipelineContext
    ) -> StageOutcome[PipelineContext]:
        try:
            await self._in_pool(self._create_directories)
        except OSError as e:
            log.error("Cannot create output directories: %s", e, exc_info=e)
            return StageFailed(message=f"cannot create output directories: {e}")

        probes = await asyncio.gather(
            *(
                probe_tool([tool, "--version"], TOOL_PROBE_TIMEOUT_SECONDS)
                for tool in self.config.required_tools
            )
        )
        missing = [
            tool
            for tool, ok in zip(self.config.required_tools, probes, strict=True)
            if not ok
        ]
        if missing:
            log.warning("Required tool(s) unavailable: %s", ", ".join(missing))
            context = context.with_note(
                f"tools unavailable: {', '.join(missing)}"
            )

        try:
            self._load_tool_available = await self._in_pool(
                self.load_tool.is_available
            )
        except Exception as e:
            log.warning("Load test tool probe failed: %s", e, exc_info=e)
            self._load_tool_available = False

        return StageOk(message="environment ready", payload=context)

    def _create_directories(self) -> None:
        for name in (EVIDENCE_DIR, LOAD_RESULTS_DIR):
            (self.config.output_dir / name).mkdir(parents=True, exist_ok=True)

    async def _capture_functional(
        self, context: PipelineContext
    ) -> StageOutcome[PipelineContext]:
        try:
            summary = await self._functional_summary()
        except Exception as e:
            log.error("Functional capture failed: %s", e, exc_info=e)
            summary = DEFAULT_FUNCTIONAL_SUMMARY
            context = context.with_note(f"functional capture failed: {e}")

        log.info(
            "Functional summary (%s): %d total, %d passed, %d failed",
            summary.provenance,
            summary.total,
            summary.passed,
            summary.failed,
        )
        return StageOk(
            message=f"functional summary from {summary.provenance} data",
            payload=replace(context, functional=summary),
        )

    async def _functional_summary(self) -> FunctionalSummary:
        if self.collector.has_results():
            captured = self.collector.snapshot()
            log.info("Reusing %d already captured result(s)", len(captured))
            return summarize_captured(captured, "reused")

        self.collector.arm()
        try:
            try:
                await self.test_runner.run(self.config.functional_timeout_seconds)
            except ExternalToolTimeoutError as e:
                log.warning("Functional tests timed out, outcome uncertain: %s", e)
            except ExternalToolUnavailableError as e:
                log.warning("Functional tests could not be started: %s", e)
            except Exception as e:
                log.error("Functional test runner failed: %s", e, exc_info=e)
            await asyncio.sleep(self.config.capture_settle_seconds)
        finally:
            self.collector.disarm()

        if captured := self.collector.snapshot():
            return summarize_captured(captured, "real")

        if self.config.junit_reports_dir is not None:
            summary = await self._in_pool(
                summarize_junit_reports, self.config.junit_reports_dir
            )
            if summary is not None:
                return summary

        log.warning("No functional results captured, using last known summary")
        return await self._in_pool(self._last_known_functional_summary)

    def _last_known_functional_summary(self) -> FunctionalSummary:
        reports_dir = self.config.output_dir / REPORTS_DIR
        candidates = sorted(reports_dir.glob(f"{RESULT_FILE_PREFIX}*.json"))
        for path in reversed(candidates):
            try:
                previous = AnalysisResult.model_validate_json(path.read_bytes())
            except (OSError, ValueError) as e:
                log.debug("Ignoring unreadable result %s: %s", path, e)
                continue
            if previous.functional is not None and previous.overall_state != "failed":
                log.info("Using functional summary from %s", path)
                return previous.functional.model_copy(update={"provenance": "default"})
        return DEFAULT_FUNCTIONAL_SUMMARY

    async def _capture_performance(
        self, context: PipelineContext
    ) -> StageOutcome[PipelineContext]:
        try:
            capture = await self._performance_capture()
        except Exception as e:
            log.error("Performance capture failed: %s", e, exc_info=e)
            capture = PerformanceCapture(
                metrics=simulated_metrics(), provenance="simulated", source="simulation"
            )
            context = context.with_note(f"performance capture failed: {e}")

        comparison = compare(capture.metrics)
        if comparison.best is not None and comparison.worst is not None:
            log.info(
                "Best scenario: %s@%d (%.0fms), worst: %s@%d (%.0fms)",
                comparison.best.scenario_name,
                comparison.best.concurrent_users,
                comparison.best.avg_latency_ms,
                comparison.worst.scenario_name,
                comparison.worst.concurrent_users,
                comparison.worst.avg_latency_ms,
            )
        return StageOk(
            message=f"{len(capture.metrics)} metric(s) from {capture.source}",
            payload=replace(context, performance=capture),
        )

    async def _performance_capture(self) -> PerformanceCapture:
        detection = await self._in_pool(self.detector.detect)

        if detection.latency_logs:
            metrics = await self._metrics_from_logs(detection.latency_logs)
            if metrics:
                return PerformanceCapture(
                    metrics=metrics, provenance="reused", source="existing latency logs"
                )

        if detection.reports:
            return PerformanceCapture(
                metrics=derived_metrics(
                    detection.reports, self.config.concurrency_levels
                ),
                provenance="derived",
                source="existing load test reports",
            )

        if self._load_tool_available:
            try:
                logs = await self.load_tool.run(self.config.load_test_timeout_seconds)
            except ExternalToolTimeoutError as e:
                log.warning("Load test tool timed out: %s", e)
                logs = e.partial_artifacts
            except ExternalToolUnavailableError as e:
                log.warning("Load test tool unavailable: %s", e)
                logs = ()
            metrics = await self._metrics_from_logs(logs)
            if metrics:
                return PerformanceCapture(
                    metrics=metrics, provenance="real", source="load test tool"
                )

        if self.scenario_executors:
            metrics = await self._metrics_from_generator()
            if metrics:
                return PerformanceCapture(
                    metrics=metrics, provenance="real", source="load generator"
                )

        log.warning("No load test data available, using simulated metrics")
        return PerformanceCapture(
            metrics=simulated_metrics(), provenance="simulated", source="simulation"
        )

    async def _metrics_from_logs(
        self, paths: Sequence[Path]
    ) -> Sequence[PerformanceMetric]:
        metrics = await asyncio.gather(
            *(self._in_pool(from_external_latency_log, path) for path in paths)
        )
        return [metric for metric in metrics if metric is not None]

    async def _metrics_from_generator(self) -> Sequence[PerformanceMetric]:
        metrics: list[PerformanceMetric] = []
        for name, executor in self.scenario_executors.items():
            for users in self.config.concurrency_levels:
                try:
                    metrics.append(
                        await self.load_generator.run(
                            name, users, self.config.load_duration_seconds, executor
                        )
                    )
                except EmptyResultSetError as e:
                    log.warning("No results for %s@%d: %s", name, users, e)
        return metrics

    async def _generate_evidence(
        self, context: PipelineContext
    ) -> StageOutcome[PipelineContext]:
        results = await asyncio.gather(
            *(self._in_pool(renderer.render, context) for renderer in self.renderers),
            return_exceptions=True,
        )

        artifacts = list(context.artifacts)
        failed: list[str] = []
        for renderer, result in zip(self.renderers, results, strict=True):
            if isinstance(result, Exception):
                log.error(
                    "Renderer %s failed: %s", renderer.name, result, exc_info=result
                )
                failed.append(renderer.name)
            elif isinstance(result, BaseException):
                raise result
            else:
                artifacts.extend(result)

        return StageOk(
            message=f"{len(artifacts)} artifact(s), {len(failed)} renderer failure(s)",
            payload=replace(
                context,
                artifacts=tuple(artifacts),
                failed_renderers=(*context.failed_renderers, *failed),
            ),
        )

    async def _compile(
        self, outcomes: Sequence[StageOutcome[PipelineContext]]
    ) -> AnalysisResult:
        try:
            return await self._in_pool(self._compile_result, outcomes)
        except Exception as e:
            log.error("Compilation failed: %s", e, exc_info=e)
            return (
                AnalysisResultBuilder()
                .recommend(
                    f"Result compilation failed ({e}); check that "
                    f"{self.config.output_dir} is writable and rerun the analysis"
                )
                .build("failed")
            )

    def _compile_result(
        self, outcomes: Sequence[StageOutcome[PipelineContext]]
    ) -> AnalysisResult:
        builder = AnalysisResultBuilder()
        failures = [o for o in outcomes if isinstance(o, StageFailed)]
        final = outcomes[-1]
        context = final.payload if isinstance(final, StageOk) else None

        if context is not None:
            builder.functional(context.functional)
            if context.performance is not None:
                builder.performance(self._performance_summary(context.performance))
            builder.artifact(*context.artifacts)

        builder.recommend(*BASE_RECOMMENDATIONS)
        builder.recommend(*self._recommendations(context, failures))

        if failures:
            state = "partial"
        elif context is not None and context.failed_renderers:
            state = "warnings"
        else:
            state = "success"

        reports_dir = self.config.output_dir / REPORTS_DIR
        path = reports_dir / f"{RESULT_FILE_PREFIX}{timestamp()}.json"
        builder.artifact(str(path))
        result = builder.build(state)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise CompilationError(f"Cannot persist {path}: {e}") from e

        log.info("Analysis result written to %s", path)
        return result

    def _performance_summary(self, capture: PerformanceCapture) -> PerformanceSummary:
        metrics = capture.metrics
        archetypes = [scenario_archetype(m.scenario_name) for m in metrics]
        return PerformanceSummary(
            total_scenarios=len(metrics),
            read_heavy_scenarios=archetypes.count(READ_HEAVY),
            write_heavy_scenarios=archetypes.count(WRITE_HEAVY),
            mixed_scenarios=archetypes.count(MIXED),
            critical_scenarios=len(self._critical(metrics)),
            avg_latency_ms=sum(m.avg_latency_ms for m in metrics) / len(metrics),
            avg_throughput_per_sec=sum(m.throughput_per_sec for m in metrics)
            / len(metrics),
            avg_error_rate_pct=sum(m.error_rate_pct for m in metrics) / len(metrics),
            provenance=capture.provenance,
        )

    def _critical(
        self, metrics: Sequence[PerformanceMetric]
    ) -> Sequence[PerformanceMetric]:
        return [
            m
            for m in metrics
            if m.error_rate_pct > self.config.critical_error_pct
            or m.avg_latency_ms > self.config.critical_latency_ms
        ]

    def _recommendations(
        self, context: PipelineContext | None, failures: Sequence[StageFailed]
    ) -> Sequence[str]:
        recommendations: list[str] = []

        if failures:
            recommendations.append(
                f"Fix the analysis environment and rerun: {failures[0].message}"
            )
        if context is None:
            return recommendations

        functional = context.functional
        if functional is not None:
            if functional.failed:
                errors = "; ".join(functional.top_errors) or "see test output"
                recommendations.append(
                    f"Fix {functional.failed} failing functional test(s): {errors}"
                )
            if functional.provenance == "default":
                recommendations.append(
                    "Functional figures are defaults; make the functional test "
                    "command runnable to capture real results"
                )

        performance = context.performance
        if performance is not None:
            for metric in self._critical(performance.metrics):
                recommendations.append(
                    f"Investigate {metric.scenario_name} at "
                    f"{metric.concurrent_users} users: avg "
                    f"{metric.avg_latency_ms:.0f}ms, errors "
                    f"{metric.error_rate_pct:.1f}% exceed critical thresholds"
                )
            if performance.provenance in ("derived", "simulated"):
                recommendations.append(
                    f"Performance figures are {performance.provenance}; run the "
                    "load test tool against the target for real measurements"
                )

        for renderer in context.failed_renderers:
            recommendations.append(
                f"Evidence renderer {renderer} failed; check its output location"
            )
        return recommendations
