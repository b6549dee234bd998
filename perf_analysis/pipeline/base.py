"""Collaborator contracts consumed by the analysis orchestrator."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from perf_analysis.models.stage import PipelineContext
from perf_analysis.process import ProcessResult


@dataclass(frozen=True, kw_only=True)
class ReportDescriptor:
    """A pre-rendered load-test report found on disk."""

    path: Path
    scenario_hint: str | None = None


@dataclass(frozen=True, kw_only=True)
class ArtifactDetection:
    """Load-test artifacts left behind by earlier runs."""

    latency_logs: Sequence[Path] = ()
    reports: Sequence[ReportDescriptor] = ()


class FunctionalTestRunner(ABC):
    """Runs the functional test suite as an external process."""

    @abstractmethod
    async def run(self, timeout: float) -> ProcessResult:
        """Run the suite to completion.

        Args:
            timeout: Seconds before the process is killed

        Returns:
            Exit code and output; codes 0 and 1 are both normal outcomes

        Raises:
            ExternalToolUnavailableError: If the runner cannot be started
            ExternalToolTimeoutError: If the run exceeded ``timeout``

        """


class ArtifactDetector(ABC):
    """Finds latency logs and reports produced by earlier load-test runs."""

    @abstractmethod
    def detect(self) -> ArtifactDetection:
        """Scan for artifacts. Blocking; called from a worker thread."""


class LoadTestTool(ABC):
    """External load-testing tool."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the tool can be started on this machine."""

    @abstractmethod
    async def run(self, timeout: float) -> Sequence[Path]:
        """Run all configured plans and return the latency logs produced.

        Raises:
            ExternalToolUnavailableError: If the tool cannot be started
            ExternalToolTimeoutError: If the run exceeded ``timeout``; logs
                written before the kill are in ``partial_artifacts``

        """


class EvidenceRenderer(ABC):
    """Writes evidence files from the pipeline context."""

    name: str

    @abstractmethod
    def render(self, context: PipelineContext) -> Sequence[str]:
        """Render artifacts and return their paths. Blocking."""
