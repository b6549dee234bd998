"""Run external tools as bounded subprocesses."""

import asyncio
import contextlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from perf_analysis.errors import ExternalToolTimeoutError, ExternalToolUnavailableError

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ProcessResult:
    """Exit code and decoded output of a finished subprocess."""

    returncode: int
    stdout: str
    stderr: str


async def run_process(
    command: Sequence[str],
    *,
    timeout: float,
    cwd: Path | None = None,
) -> ProcessResult:
    """Run a command and wait for it within a time budget.

    Args:
        command: Program and arguments
        timeout: Seconds to wait before killing the process
        cwd: Working directory for the process

    Returns:
        The exit code with captured stdout and stderr

    Raises:
        ExternalToolUnavailableError: If the program cannot be started
        ExternalToolTimeoutError: If the process exceeded ``timeout`` and was killed

    """
    if not command:
        raise ValueError("command must not be empty")

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ExternalToolUnavailableError(f"Cannot start {command[0]}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except TimeoutError:
        log.warning("%s exceeded %.0fs, killing it", command[0], timeout)
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        raise ExternalToolTimeoutError(
            f"{command[0]} did not finish within {timeout:.0f}s"
        ) from None

    return ProcessResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )


async def probe_tool(command: Sequence[str], timeout: float = 5.0) -> bool:
    """Check that a tool starts and exits cleanly."""
    try:
        result = await run_process(command, timeout=timeout)
    except (ExternalToolUnavailableError, ExternalToolTimeoutError) as e:
        log.warning("Tool probe %s failed: %s", " ".join(command), e)
        return False
    if result.returncode != 0:
        log.warning(
            "Tool probe %s exited with %d", " ".join(command), result.returncode
        )
        return False
    return True
