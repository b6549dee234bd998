"""Fixtures for integration tests."""

import stat
import sys
from pathlib import Path
from typing import Protocol

import pytest

JTL_HEADER = (
    "timeStamp,elapsed,label,responseCode,responseMessage,threadName,"
    "dataType,success,failureMessage,bytes,sentBytes,grpThreads,allThreads,"
    "URL,Latency,IdleTime,Connect\n"
)


class WriteJtlFn(Protocol):
    """Protocol for JTL writer function."""

    def __call__(
        self, name: str, elapsed: list[int], *, failures: int = 0
    ) -> Path:
        """Write a JTL log and return its path."""


class FakeToolFn(Protocol):
    """Protocol for fake executable factory."""

    def __call__(self, name: str, script: str) -> Path:
        """Create an executable Python script and return its path."""


def jtl_row(timestamp: int, elapsed: int, success: bool) -> str:
    code = "200" if success else "500"
    return (
        f"{timestamp},{elapsed},GET /api/products,{code},OK,Users 1-1,text,"
        f"{str(success).lower()},,512,128,1,1,http://api.test/api/products,"
        f"{elapsed},0,3\n"
    )


@pytest.fixture
def write_jtl(tmp_path: Path) -> WriteJtlFn:
    """Return a function writing JMeter CSV logs under tmp_path."""

    def _write(name: str, elapsed: list[int], *, failures: int = 0) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        start = 1_700_000_000_000
        rows = [
            jtl_row(start + i * 1000, value, True) for i, value in enumerate(elapsed)
        ]
        rows.extend(
            jtl_row(start + (len(elapsed) + i) * 1000, 50, False)
            for i in range(failures)
        )
        path.write_text(JTL_HEADER + "".join(rows))
        return path

    return _write


@pytest.fixture
def fake_tool(tmp_path: Path) -> FakeToolFn:
    """Return a function creating executable Python scripts."""

    def _create(name: str, script: str) -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        path = bin_dir / name
        path.write_text(f"#!{sys.executable}\n{script}")
        path.chmod(path.stat().st_mode | stat.S_IEXEC)
        return path

    return _create
