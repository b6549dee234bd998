"""Detect load-test artifacts left on disk by earlier runs."""

import logging
import os
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from perf_analysis.pipeline.base import (
    ArtifactDetection,
    ArtifactDetector,
    ReportDescriptor,
)

log = logging.getLogger(__name__)

LATENCY_LOG_SUFFIXES = frozenset({".jtl", ".csv"})
MIN_LATENCY_LOG_BYTES = 100
REPORT_NAME_TOKENS = ("jmeter", "report", "dashboard")
REPORT_SNIFF_BYTES = 64 * 1024

_SCENARIO_HINT = re.compile(r"(get|post|put|delete|mixed|mixto|combined|read|write)")


@dataclass(frozen=True, kw_only=True)
class FilesystemArtifactDetector(ArtifactDetector):
    """Scans a set of directories for JTL/CSV logs and HTML reports."""

    root: Path
    search_dirs: Sequence[Path]
    max_depth: int = 3

    def detect(self) -> ArtifactDetection:
        latency_logs: dict[Path, None] = {}
        reports: dict[Path, ReportDescriptor] = {}

        for path in self._candidates():
            key = path.resolve()
            if key in latency_logs or key in reports:
                continue
            if is_latency_log(path):
                latency_logs[key] = None
            elif is_load_test_report(path):
                reports[key] = ReportDescriptor(
                    path=path, scenario_hint=scenario_hint(path.name)
                )

        detection = ArtifactDetection(
            latency_logs=sorted(latency_logs),
            reports=sorted(reports.values(), key=lambda r: r.path),
        )
        log.info(
            "Detected %d latency log(s) and %d report(s)",
            len(detection.latency_logs),
            len(detection.reports),
        )
        return detection

    def _candidates(self) -> Iterator[Path]:
        for search_dir in self.search_dirs:
            base = search_dir if search_dir.is_absolute() else self.root / search_dir
            if not base.is_dir():
                continue
            base_depth = len(base.parts)
            for dirpath, dirnames, filenames in os.walk(base):
                current = Path(dirpath)
                if len(current.parts) - base_depth >= self.max_depth:
                    dirnames.clear()
                dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
                for filename in sorted(filenames):
                    yield current / filename


def is_latency_log(path: Path) -> bool:
    """Check for a JTL/CSV file whose header names an elapsed column."""
    if path.suffix.lower() not in LATENCY_LOG_SUFFIXES:
        return False
    try:
        if path.stat().st_size < MIN_LATENCY_LOG_BYTES:
            return False
        with path.open(encoding="utf-8", errors="replace") as handle:
            header = handle.readline()
    except OSError as e:
        log.debug("Cannot read %s: %s", path, e)
        return False
    return "elapsed" in header.lower()


def is_load_test_report(path: Path) -> bool:
    """Check for an HTML report generated by JMeter."""
    if path.suffix.lower() != ".html":
        return False
    name = path.name.lower()
    if not any(token in name for token in REPORT_NAME_TOKENS):
        return False
    try:
        with path.open(encoding="utf-8", errors="replace") as handle:
            content = handle.read(REPORT_SNIFF_BYTES)
    except OSError as e:
        log.debug("Cannot read %s: %s", path, e)
        return False
    return "jmeter" in content.lower()


def scenario_hint(name: str) -> str | None:
    if match := _SCENARIO_HINT.search(name.lower()):
        return match.group(1)
    return None
