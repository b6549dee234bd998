"""Concurrent virtual-user load generator."""

import asyncio
import logging
import random
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from perf_analysis.errors import EmptyResultSetError, TransportError
from perf_analysis.loadgen.executor import RequestExecutor, elapsed_ms
from perf_analysis.metrics.aggregator import aggregate
from perf_analysis.models.metric import PerformanceMetric
from perf_analysis.models.sample import OutcomeSample

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class LoadGenerator:
    """Runs virtual users against a request executor for a fixed duration.

    Each virtual user is an asyncio task that repeatedly executes a request
    and sleeps a random think time until the shared deadline passes. Users
    still running ``join_grace_seconds`` after the deadline are cancelled and
    whatever they recorded is kept.
    """

    min_think_ms: float = 100.0
    max_think_ms: float = 600.0
    join_grace_seconds: float = 5.0
    rng: random.Random = field(default_factory=random.Random, repr=False)

    async def run(
        self,
        scenario_name: str,
        concurrent_users: int,
        duration_sec: float,
        executor: RequestExecutor,
    ) -> PerformanceMetric:
        """Run a load test and aggregate its samples.

        Args:
            scenario_name: Name of the scenario being exercised
            concurrent_users: Number of virtual users to start
            duration_sec: How long users keep issuing requests
            executor: Capability used to issue each request

        Returns:
            Aggregated metric for the run

        Raises:
            EmptyResultSetError: If no virtual user completed a single request

        """
        log.info(
            "Starting %s with %d user(s) for %.1fs",
            scenario_name,
            concurrent_users,
            duration_sec,
        )
        samples = await self.collect(concurrent_users, duration_sec, executor)
        metric = aggregate(scenario_name, concurrent_users, duration_sec, samples)
        log.info(
            "Finished %s: %d sample(s), avg=%.1fms errors=%.1f%% level=%s",
            scenario_name,
            len(samples),
            metric.avg_latency_ms,
            metric.error_rate_pct,
            metric.level.name,
        )
        return metric

    async def collect(
        self,
        concurrent_users: int,
        duration_sec: float,
        executor: RequestExecutor,
    ) -> Sequence[OutcomeSample]:
        """Run virtual users and return every sample they produced.

        A user that never completed a request contributes a single
        ``OutcomeSample.no_requests()`` sentinel.
        """
        if concurrent_users <= 0:
            raise ValueError(f"concurrent_users must be > 0, got {concurrent_users}")
        if duration_sec <= 0:
            raise ValueError(f"duration_sec must be > 0, got {duration_sec}")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration_sec
        buckets: list[list[OutcomeSample]] = [[] for _ in range(concurrent_users)]
        tasks = [
            asyncio.create_task(
                self._virtual_user(executor, deadline, bucket), name=f"vu-{index}"
            )
            for index, bucket in enumerate(buckets)
        ]

        done, pending = await asyncio.wait(
            tasks, timeout=duration_sec + self.join_grace_seconds
        )
        if pending:
            log.warning(
                "%d virtual user(s) still running after the deadline, cancelling",
                len(pending),
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            if not task.cancelled() and (exc := task.exception()) is not None:
                log.error(
                    "Virtual user %s stopped early: %s",
                    task.get_name(),
                    exc,
                    exc_info=exc,
                )

        if not any(buckets):
            raise EmptyResultSetError(
                f"None of {concurrent_users} virtual user(s) completed a request"
            )

        samples: list[OutcomeSample] = []
        for bucket in buckets:
            samples.extend(bucket or [OutcomeSample.no_requests()])
        return samples

    async def _virtual_user(
        self,
        executor: RequestExecutor,
        deadline: float,
        samples: list[OutcomeSample],
    ) -> None:
        loop = asyncio.get_running_loop()
        while loop.time() < deadline:
            started = time.perf_counter()
            try:
                sample = await executor.execute()
            except TransportError as e:
                log.debug("Transport failure: %s", e)
                sample = OutcomeSample(
                    latency_ms=elapsed_ms(started), success=False, message=str(e)
                )
            samples.append(sample)

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(self._think_time(), remaining))

    def _think_time(self) -> float:
        return self.rng.uniform(self.min_think_ms, self.max_think_ms) / 1000
