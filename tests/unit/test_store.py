from __future__ import annotations

from pathlib import Path

import pytest

from codeshield.config import ScanConfig
from codeshield.constants import FindingStatus, ScanStage, ScanStatus, Severity
from codeshield.errors import ScanNotFoundError
from codeshield.ingest.project import project_from_tree
from codeshield.models import Finding, FindingFilters, Scan, ScanProgress


def _scan(scan_id: str = "scan-1", project_id: str = "proj-1") -> Scan:
    return Scan(
        id=scan_id,
        project_id=project_id,
        config=ScanConfig(),
        progress=ScanProgress(ScanStage.STATIC, 0, 0, 0, "Initializing scan..."),
    )


def _finding(finding_id: str, scan_id: str = "scan-1", **overrides) -> Finding:
    values = dict(
        id=finding_id,
        scan_id=scan_id,
        rule_id="INJ003",
        vulnerability="Unsafe Eval",
        severity=Severity.HIGH,
        file="a.js",
        line_start=1,
        line_end=1,
        code="eval(x)",
        description="d",
        risk="r",
        fix="f",
    )
    values.update(overrides)
    return Finding(**values)


def test_project_roundtrip(store) -> None:
    project = project_from_tree([], path=Path("/tmp/p"), name="p")
    store.save_project(project)
    assert store.get_project(project.id) is project
    assert store.delete_project(project.id) is True
    assert store.get_project(project.id) is None
    assert store.delete_project(project.id) is False


def test_save_scan_initializes_empty_findings(store) -> None:
    store.save_scan(_scan())
    assert store.get_findings("scan-1") == []
    assert store.count_findings("scan-1") == 0


def test_unknown_scan_lookups(store) -> None:
    assert store.get_scan("missing") is None
    assert store.get_findings("missing") == []
    with pytest.raises(ScanNotFoundError):
        store.update_status("missing", ScanStatus.SCANNING)
    with pytest.raises(ScanNotFoundError):
        store.add_finding("missing", _finding("f1", scan_id="missing"))
    with pytest.raises(ScanNotFoundError):
        store.status_view("missing")


def test_progress_replaced_wholesale(store) -> None:
    store.save_scan(_scan())
    progress = ScanProgress(ScanStage.STATIC, 3, 10, 30, "Scanning a.js...", current_file="a.js")
    store.update_progress("scan-1", progress)
    assert store.get_scan("scan-1").progress == progress


def test_findings_preserve_insertion_order_and_filter(store) -> None:
    store.save_scan(_scan())
    store.add_finding("scan-1", _finding("f1"))
    store.add_finding("scan-1", _finding("f2", severity=Severity.LOW))
    store.add_finding("scan-1", _finding("f3", status=FindingStatus.FALSE_POSITIVE))

    assert [f.id for f in store.get_findings("scan-1")] == ["f1", "f2", "f3"]
    high = store.get_findings("scan-1", FindingFilters(severity=Severity.HIGH))
    assert [f.id for f in high] == ["f1", "f3"]
    open_high = store.get_findings(
        "scan-1", FindingFilters(severity=Severity.HIGH, status=FindingStatus.OPEN)
    )
    assert [f.id for f in open_high] == ["f1"]


def test_get_finding_searches_all_scans(store) -> None:
    store.save_scan(_scan("scan-1"))
    store.save_scan(_scan("scan-2"))
    store.add_finding("scan-2", _finding("f9", scan_id="scan-2"))
    assert store.get_finding("f9").scan_id == "scan-2"
    assert store.get_finding("nope") is None


def test_record_file_and_stats(store) -> None:
    store.save_scan(_scan())
    store.record_file_scanned("scan-1", 12)
    store.record_file_scanned("scan-1", 3)
    store.update_stats("scan-1", high=2, risk_score=4)
    stats = store.get_scan("scan-1").stats
    assert (stats.files_scanned, stats.lines_scanned, stats.high, stats.risk_score) == (2, 15, 2, 4)


def test_status_view_snapshots_stats(store) -> None:
    store.save_scan(_scan())
    store.add_finding("scan-1", _finding("f1"))
    view = store.status_view("scan-1")
    store.record_file_scanned("scan-1", 5)

    assert view.findings_count == 1
    assert view.status == ScanStatus.PENDING
    assert view.stats.files_scanned == 0


def test_mark_finished_sets_terminal_fields(store) -> None:
    store.save_scan(_scan())
    store.mark_finished("scan-1", ScanStatus.FAILED, error="boom")
    scan = store.get_scan("scan-1")
    assert scan.status == ScanStatus.FAILED
    assert scan.error == "boom"
    assert scan.completed_at is None


def test_list_scans_by_project(store) -> None:
    store.save_scan(_scan("s1", "p1"))
    store.save_scan(_scan("s2", "p2"))
    assert [s.id for s in store.list_scans("p2")] == ["s2"]
    assert len(store.list_scans()) == 2


def test_clear_empties_everything(store) -> None:
    store.save_scan(_scan())
    store.clear()
    assert store.get_scan("scan-1") is None
    assert store.list_scans() == []


def test_progress_frozen_after_terminal_state(store) -> None:
    store.save_scan(_scan())
    final = ScanProgress(ScanStage.STATIC, 1, 2, 50, "Scan cancelled")
    store.mark_finished("scan-1", ScanStatus.CANCELLED, progress=final)
    store.update_progress("scan-1", ScanProgress(ScanStage.AI, 1, 1, 99, "Analyzing finding 1/1..."))
    assert store.get_scan("scan-1").progress == final
