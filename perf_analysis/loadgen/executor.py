"""Request executors driven by the load generator."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Callable
from concurrent.futures import Executor
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import aiohttp

from perf_analysis.config import TargetConfig
from perf_analysis.errors import TransportError
from perf_analysis.models.sample import OutcomeSample

log = logging.getLogger(__name__)


def elapsed_ms(started: float) -> int:
    return max(0, round((time.perf_counter() - started) * 1000))


class RequestExecutor(ABC):
    """Capability to attempt one request against the system under test."""

    @abstractmethod
    async def execute(self) -> OutcomeSample:
        """Attempt one request.

        A timed-out or rejected request is an unsuccessful sample, not an
        exception.

        Raises:
            TransportError: If the target could not be reached at all

        """


@dataclass(frozen=True, kw_only=True)
class BlockingRequestExecutor(RequestExecutor):
    """Adapts a blocking callable by running it on a thread pool."""

    func: Callable[[], OutcomeSample]
    pool: Executor | None = None

    async def execute(self) -> OutcomeSample:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.pool, self.func)


@dataclass(frozen=True, kw_only=True)
class HttpRequestExecutor(RequestExecutor):
    """Issues one HTTP request per call; any 2xx response is a success."""

    config: TargetConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: TargetConfig
    ) -> AsyncGenerator["HttpRequestExecutor", None]:
        """Create executor with managed session lifecycle."""
        timeout = aiohttp.ClientTimeout(sock_read=config.read_timeout_seconds)
        async with aiohttp.ClientSession(
            base_url=config.base_url,
            headers=dict(config.headers),
            timeout=timeout,
        ) as session:
            yield cls(config=config, session=session)

    async def execute(self) -> OutcomeSample:
        started = time.perf_counter()
        try:
            async with self.session.request(
                self.config.method,
                self.config.path,
                json=self.config.json_body,
            ) as response:
                await response.read()
                status = response.status
        except TimeoutError:
            return OutcomeSample(
                latency_ms=elapsed_ms(started), success=False, message="timeout"
            )
        except aiohttp.ClientError as e:
            raise TransportError(
                f"{self.config.method} {self.config.path} failed: {e}"
            ) from e

        if 200 <= status < 300:
            return OutcomeSample(
                latency_ms=elapsed_ms(started), success=True, message=f"HTTP {status}"
            )
        return OutcomeSample(
            latency_ms=elapsed_ms(started), success=False, message=f"HTTP {status}"
        )
