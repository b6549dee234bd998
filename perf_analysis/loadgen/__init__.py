"""Virtual-user load generation."""

from perf_analysis.loadgen.executor import (
    BlockingRequestExecutor,
    HttpRequestExecutor,
    RequestExecutor,
)
from perf_analysis.loadgen.generator import LoadGenerator

__all__ = [
    "BlockingRequestExecutor",
    "HttpRequestExecutor",
    "LoadGenerator",
    "RequestExecutor",
]
