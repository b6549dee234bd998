"""Thread-safe sink for functional test outcomes."""

import logging
import threading
from collections.abc import Sequence

from perf_analysis.models.sample import CapturedTestResult

log = logging.getLogger(__name__)


class ResultCollector:
    """Collects CapturedTestResult values while armed.

    Writers may call ``record`` from any thread. Recording outside an armed
    window is silently ignored so instrumented tests can run standalone.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: list[CapturedTestResult] = []
        self._armed = False

    def arm(self) -> None:
        """Clear previous results and start accepting new ones."""
        with self._lock:
            self._results.clear()
            self._armed = True
        log.debug("Result collector armed")

    def disarm(self) -> None:
        """Stop accepting results; captured results are kept."""
        with self._lock:
            self._armed = False
            count = len(self._results)
        log.debug("Result collector disarmed with %d result(s)", count)

    def record(self, result: CapturedTestResult) -> None:
        with self._lock:
            if self._armed:
                self._results.append(result)

    def snapshot(self) -> Sequence[CapturedTestResult]:
        """Return a copy of everything captured so far."""
        with self._lock:
            return list(self._results)

    def is_armed(self) -> bool:
        with self._lock:
            return self._armed

    def has_results(self) -> bool:
        with self._lock:
            return bool(self._results)

    def clear(self) -> None:
        with self._lock:
            self._results.clear()


default_collector = ResultCollector()
