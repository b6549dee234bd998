"""Exceptions raised by the load generator and the analysis pipeline."""

from collections.abc import Sequence
from pathlib import Path


class AnalysisError(Exception):
    """Base class for errors raised by this package."""


class TransportError(AnalysisError):
    """Raised when a request executor cannot reach its target."""


class ExternalToolUnavailableError(AnalysisError):
    """Raised when an external tool is not installed or cannot be started."""


class ExternalToolTimeoutError(AnalysisError):
    """Raised when an external tool exceeds its time budget and is killed."""

    def __init__(
        self, message: str, partial_artifacts: Sequence[Path] = ()
    ) -> None:
        super().__init__(message)
        self.partial_artifacts = tuple(partial_artifacts)


class EmptyResultSetError(AnalysisError):
    """Raised when a load run produced no samples at all."""


class ArtifactRenderError(AnalysisError):
    """Raised when an evidence renderer fails."""


class CompilationError(AnalysisError):
    """Raised when the final result cannot be compiled or persisted."""
