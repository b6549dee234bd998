"""Staged analysis pipeline and its collaborators."""

from perf_analysis.pipeline.base import (
    ArtifactDetection,
    ArtifactDetector,
    EvidenceRenderer,
    FunctionalTestRunner,
    LoadTestTool,
    ReportDescriptor,
)
from perf_analysis.pipeline.orchestrator import AnalysisOrchestrator

__all__ = [
    "AnalysisOrchestrator",
    "ArtifactDetection",
    "ArtifactDetector",
    "EvidenceRenderer",
    "FunctionalTestRunner",
    "LoadTestTool",
    "ReportDescriptor",
]
