"""Configuration for the analysis pipeline and HTTP load targets."""

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


class TargetConfig(BaseModel):
    """HTTP endpoint exercised by the built-in load generator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str
    method: str = "GET"
    path: str = "/"
    headers: Mapping[str, str] = Field(default_factory=dict)
    json_body: Any = None
    read_timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.upper()


class LoadScenarioConfig(BaseModel):
    """A named HTTP scenario run by the built-in load generator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    target: TargetConfig


class AnalysisConfig(BaseModel):
    """Thresholds, timeouts and collaborator settings for an analysis run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    output_dir: Path = Path("analysis-output")
    critical_error_pct: float = Field(default=10.0, ge=0, le=100)
    critical_latency_ms: float = Field(default=2000.0, gt=0)
    read_timeout_seconds: float = Field(default=30.0, gt=0)

    functional_timeout_seconds: float = Field(default=180.0, gt=0)
    load_test_timeout_seconds: float = Field(default=480.0, gt=0)
    capture_settle_seconds: float = Field(default=2.0, ge=0)
    shutdown_grace_seconds: float = Field(default=10.0, ge=0)
    worker_pool_size: int = Field(default=4, gt=0)

    concurrency_levels: Sequence[int] = (10, 25, 50)
    load_duration_seconds: float = Field(default=60.0, gt=0)
    load_scenarios: Sequence[LoadScenarioConfig] = ()

    functional_test_command: Sequence[str] = ()
    junit_reports_dir: Path | None = None
    required_tools: Sequence[str] = ("java", "mvn")
    artifact_search_dirs: Sequence[Path] = (
        Path("."),
        Path("results"),
        Path("jmeter"),
        Path("jmeter-results"),
        Path("target"),
        Path("build"),
    )
    load_tool_binary: str = "jmeter"
    load_test_plans: Sequence[Path] = ()

    @field_validator("concurrency_levels")
    @classmethod
    def _positive_levels(cls, value: Sequence[int]) -> Sequence[int]:
        if not value:
            raise ValueError("concurrency_levels must not be empty")
        if any(level <= 0 for level in value):
            raise ValueError("concurrency_levels must all be > 0")
        return tuple(value)


def load_config(path: Path) -> AnalysisConfig:
    """Load an AnalysisConfig from a YAML file.

    Relative ``output_dir`` values are kept relative to the working
    directory, matching how the CLI is usually invoked from a project root.

    Raises:
        FileNotFoundError: If the file does not exist
        yaml.YAMLError: If the file is not valid YAML
        pydantic.ValidationError: If a value is out of range

    """
    with path.open(encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Configuration in {path} must be a mapping")
    return AnalysisConfig.model_validate(data)
