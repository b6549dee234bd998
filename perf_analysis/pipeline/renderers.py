"""Evidence renderers that serialize pipeline data to files."""

import csv
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from pydantic import TypeAdapter

from perf_analysis.errors import ArtifactRenderError
from perf_analysis.models.metric import PerformanceMetric
from perf_analysis.models.stage import PipelineContext
from perf_analysis.pipeline.base import EvidenceRenderer

log = logging.getLogger(__name__)

_METRICS_ADAPTER = TypeAdapter(list[PerformanceMetric])

METRIC_COLUMNS = (
    "scenario_name",
    "concurrent_users",
    "avg_latency_ms",
    "p90_latency_ms",
    "p95_latency_ms",
    "min_latency_ms",
    "max_latency_ms",
    "throughput_per_sec",
    "error_rate_pct",
    "level",
    "provenance",
)


def timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")


@dataclass(frozen=True, kw_only=True)
class JsonEvidenceRenderer(EvidenceRenderer):
    """Writes functional and performance data as JSON documents."""

    evidence_dir: Path
    name: str = "json-evidence"

    def render(self, context: PipelineContext) -> Sequence[str]:
        stamp = timestamp()
        written: list[str] = []
        try:
            self.evidence_dir.mkdir(parents=True, exist_ok=True)
            if context.functional is not None:
                path = self.evidence_dir / f"functional-{stamp}.json"
                path.write_text(context.functional.model_dump_json(indent=2))
                written.append(str(path))
            if context.performance is not None:
                path = self.evidence_dir / f"performance-{stamp}.json"
                path.write_bytes(
                    _METRICS_ADAPTER.dump_json(
                        list(context.performance.metrics), indent=2
                    )
                )
                written.append(str(path))
        except OSError as e:
            raise ArtifactRenderError(f"Cannot write JSON evidence: {e}") from e
        return written


@dataclass(frozen=True, kw_only=True)
class CsvMetricsRenderer(EvidenceRenderer):
    """Writes one CSV row per metric for spreadsheet and chart tooling."""

    evidence_dir: Path
    name: str = "csv-metrics"

    def render(self, context: PipelineContext) -> Sequence[str]:
        if context.performance is None or not context.performance.metrics:
            return []

        path = self.evidence_dir / f"metrics-{timestamp()}.csv"
        try:
            self.evidence_dir.mkdir(parents=True, exist_ok=True)
            with path.open("w", newline="", encoding="utf-8") as handle:
                writer = csv.DictWriter(handle, fieldnames=METRIC_COLUMNS)
                writer.writeheader()
                for metric in context.performance.metrics:
                    writer.writerow(
                        {
                            **metric.model_dump(include=set(METRIC_COLUMNS)),
                            "level": metric.level.name,
                            "provenance": context.performance.provenance,
                        }
                    )
        except OSError as e:
            raise ArtifactRenderError(f"Cannot write {path}: {e}") from e
        log.debug(
            "Wrote %d metric row(s) to %s", len(context.performance.metrics), path
        )
        return [str(path)]
