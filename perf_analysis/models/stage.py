"""Stage outcomes and the context threaded through the analysis pipeline."""

from collections.abc import Sequence
from dataclasses import dataclass, replace
from pathlib import Path

from perf_analysis.models.analysis import FunctionalSummary, Provenance
from perf_analysis.models.metric import PerformanceMetric


@dataclass(frozen=True, kw_only=True)
class StageOk[T]:
    """A stage finished and produced a payload."""

    message: str
    payload: T


@dataclass(frozen=True, kw_only=True)
class StageFailed:
    """A stage could not produce a payload."""

    message: str


type StageOutcome[T] = StageOk[T] | StageFailed


@dataclass(frozen=True, kw_only=True)
class PerformanceCapture:
    """Metrics gathered by the performance stage and where they came from."""

    metrics: Sequence[PerformanceMetric]
    provenance: Provenance
    source: str


@dataclass(frozen=True, kw_only=True)
class PipelineContext:
    """Cumulative state handed from one stage to the next."""

    output_dir: Path
    functional: FunctionalSummary | None = None
    performance: PerformanceCapture | None = None
    artifacts: Sequence[str] = ()
    failed_renderers: Sequence[str] = ()
    notes: Sequence[str] = ()

    def with_note(self, note: str) -> "PipelineContext":
        return replace(self, notes=(*self.notes, note))
