"""Models for individual request outcomes and captured functional results."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

NO_REQUESTS_MESSAGE = "no requests"


@dataclass(frozen=True, kw_only=True)
class OutcomeSample:
    """Outcome of a single request issued by a virtual user."""

    latency_ms: int
    success: bool
    message: str = ""

    def __post_init__(self) -> None:
        if self.latency_ms < 0:
            raise ValueError(f"latency_ms must be >= 0, got {self.latency_ms}")

    @classmethod
    def no_requests(cls) -> "OutcomeSample":
        """Sentinel for a virtual user that never issued a request."""
        return cls(latency_ms=0, success=False, message=NO_REQUESTS_MESSAGE)

    @property
    def is_sentinel(self) -> bool:
        return (
            not self.success
            and self.latency_ms == 0
            and self.message == NO_REQUESTS_MESSAGE
        )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, kw_only=True)
class CapturedTestResult:
    """Functional test outcome recorded by instrumented test code.

    Only ``success`` is relevant for summaries; the remaining fields are
    carried for reporting.
    """

    __test__ = False

    name: str
    http_method: str
    endpoint: str
    status_code: int
    success: bool
    latency_ms: int = 0
    detail: str | None = None
    timestamp: datetime = field(default_factory=_utc_now)
