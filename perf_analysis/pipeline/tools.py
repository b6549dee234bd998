"""Subprocess-backed functional test runner and load-test tool."""

import asyncio
import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from perf_analysis.errors import ExternalToolTimeoutError, ExternalToolUnavailableError
from perf_analysis.pipeline.base import FunctionalTestRunner, LoadTestTool
from perf_analysis.process import ProcessResult, run_process

log = logging.getLogger(__name__)

# Test tools exit with 1 when tests fail; anything else is suspicious.
NORMAL_EXIT_CODES = frozenset({0, 1})


@dataclass(frozen=True, kw_only=True)
class SubprocessTestRunner(FunctionalTestRunner):
    """Runs a configured command such as ``mvn test``."""

    command: Sequence[str]
    cwd: Path | None = None

    async def run(self, timeout: float) -> ProcessResult:
        if not self.command:
            raise ExternalToolUnavailableError("No functional test command configured")

        log.info("Running functional tests: %s", " ".join(self.command))
        result = await run_process(self.command, timeout=timeout, cwd=self.cwd)
        if result.returncode not in NORMAL_EXIT_CODES:
            log.warning(
                "Functional test command exited with %d: %s",
                result.returncode,
                result.stderr.strip()[-500:],
            )
        else:
            log.info("Functional test command exited with %d", result.returncode)
        return result


@dataclass(frozen=True, kw_only=True)
class JMeterTool(LoadTestTool):
    """Runs JMeter plans in non-GUI mode, one JTL log per plan."""

    binary: str
    plans: Sequence[Path]
    results_dir: Path

    def is_available(self) -> bool:
        if not self.plans:
            log.info("No load test plans configured")
            return False
        if shutil.which(self.binary) is None:
            log.info("%s not found on PATH", self.binary)
            return False
        return True

    async def run(self, timeout: float) -> Sequence[Path]:
        self.results_dir.mkdir(parents=True, exist_ok=True)
        deadline = asyncio.get_running_loop().time() + timeout
        produced: list[Path] = []

        for plan in self.plans:
            remaining = deadline - asyncio.get_running_loop().time()
            if remaining <= 0:
                raise ExternalToolTimeoutError(
                    f"Load test budget of {timeout:.0f}s exhausted before {plan}",
                    produced,
                )

            output = self.results_dir / f"{plan.stem}.jtl"
            output.unlink(missing_ok=True)
            command = [self.binary, "-n", "-t", str(plan), "-l", str(output)]
            log.info("Running load test plan %s", plan)
            try:
                result = await run_process(command, timeout=remaining)
            except ExternalToolTimeoutError as e:
                if output.is_file():
                    produced.append(output)
                raise ExternalToolTimeoutError(str(e), produced) from e

            if result.returncode != 0:
                log.warning(
                    "%s exited with %d for %s", self.binary, result.returncode, plan
                )
            if output.is_file():
                produced.append(output)
        return produced
