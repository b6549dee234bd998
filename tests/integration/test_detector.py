"""Integration tests for artifact detection on a real directory tree."""

from pathlib import Path

from perf_analysis.pipeline.detector import FilesystemArtifactDetector

from .conftest import WriteJtlFn

JMETER_REPORT = "<html><head><title>Apache JMeter Dashboard</title></head></html>"


def make_detector(
    root: Path, *dirs: str, max_depth: int = 3
) -> FilesystemArtifactDetector:
    return FilesystemArtifactDetector(
        root=root,
        search_dirs=[Path(d) for d in dirs] or [Path(".")],
        max_depth=max_depth,
    )


def test_finds_latency_logs_and_reports(tmp_path: Path, write_jtl: WriteJtlFn) -> None:
    """Detects JTL logs and JMeter HTML reports with scenario hints."""
    log = write_jtl("jmeter-results/get_10u.jtl", [100] * 5)
    report = tmp_path / "jmeter-results" / "post-report.html"
    report.write_text(JMETER_REPORT)

    detection = make_detector(tmp_path, "jmeter-results").detect()

    assert detection.latency_logs == [log.resolve()]
    assert len(detection.reports) == 1
    assert detection.reports[0].path == report
    assert detection.reports[0].scenario_hint == "post"


def test_ignores_unrelated_files(tmp_path: Path) -> None:
    """Small files, CSVs without latency columns and plain HTML are ignored."""
    (tmp_path / "tiny.jtl").write_text("timeStamp,elapsed\n1,2\n")
    (tmp_path / "people.csv").write_text("name,age\n" + "alice,30\n" * 20)
    (tmp_path / "report.html").write_text("<html>coverage report</html>")
    (tmp_path / "index.html").write_text(JMETER_REPORT)

    detection = make_detector(tmp_path).detect()

    assert detection.latency_logs == []
    assert detection.reports == []


def test_deduplicates_overlapping_search_dirs(
    tmp_path: Path, write_jtl: WriteJtlFn
) -> None:
    """A file reachable from two search directories is listed once."""
    write_jtl("results/mixed_50u.jtl", [200] * 5)

    detection = make_detector(tmp_path, ".", "results").detect()

    assert len(detection.latency_logs) == 1


def test_respects_max_depth(tmp_path: Path, write_jtl: WriteJtlFn) -> None:
    """Files nested deeper than the limit are not scanned."""
    write_jtl("a/b/c/d/deep_get.jtl", [100] * 5)
    shallow = write_jtl("a/shallow_get.jtl", [100] * 5)

    detection = make_detector(tmp_path, max_depth=2).detect()

    assert detection.latency_logs == [shallow.resolve()]


def test_missing_search_dirs_are_skipped(tmp_path: Path) -> None:
    """Non-existent directories produce an empty detection."""
    detection = make_detector(tmp_path, "does-not-exist").detect()

    assert detection.latency_logs == []
    assert detection.reports == []
