"""Build functional summaries from captured results and JUnit XML reports."""

import logging
import xml.etree.ElementTree as ET
from collections import Counter
from collections.abc import Sequence
from pathlib import Path

from perf_analysis.models.analysis import FunctionalSummary, Provenance
from perf_analysis.models.sample import CapturedTestResult

log = logging.getLogger(__name__)

TOP_ERRORS_LIMIT = 5

# Summary used when no functional signal is available at all.
DEFAULT_FUNCTIONAL_SUMMARY = FunctionalSummary(
    total=31,
    passed=31,
    failed=0,
    skipped=0,
    provenance="default",
)


def summarize_captured(
    results: Sequence[CapturedTestResult], provenance: Provenance
) -> FunctionalSummary:
    """Summarize results recorded by instrumented tests."""
    failures = [r for r in results if not r.success]
    errors = Counter(
        r.detail or f"{r.http_method} {r.endpoint} returned {r.status_code}"
        for r in failures
    )
    return FunctionalSummary(
        total=len(results),
        passed=len(results) - len(failures),
        failed=len(failures),
        top_errors=[message for message, _ in errors.most_common(TOP_ERRORS_LIMIT)],
        provenance=provenance,
    )


def summarize_junit_reports(reports_dir: Path) -> FunctionalSummary | None:
    """Summarize every JUnit XML report in a directory.

    Args:
        reports_dir: Directory holding ``*.xml`` reports, e.g. surefire output

    Returns:
        Summary with provenance "real", or None when no test case was found

    """
    if not reports_dir.is_dir():
        return None

    total = passed = failed = skipped = 0
    errors: Counter[str] = Counter()

    for report in sorted(reports_dir.glob("*.xml")):
        try:
            tree = ET.parse(report)
        except ET.ParseError as e:
            log.warning("Skipping unreadable JUnit report %s: %s", report, e)
            continue

        for case in tree.getroot().iter("testcase"):
            total += 1
            problem = case.find("failure")
            if problem is None:
                problem = case.find("error")
            if problem is not None:
                failed += 1
                errors[problem.get("message") or case.get("name", "unknown")] += 1
            elif case.find("skipped") is not None:
                skipped += 1
            else:
                passed += 1

    if total == 0:
        return None

    log.info(
        "JUnit reports in %s: %d total, %d passed, %d failed, %d skipped",
        reports_dir,
        total,
        passed,
        failed,
        skipped,
    )
    return FunctionalSummary(
        total=total,
        passed=passed,
        failed=failed,
        skipped=skipped,
        top_errors=[message for message, _ in errors.most_common(TOP_ERRORS_LIMIT)],
        provenance="real",
    )
