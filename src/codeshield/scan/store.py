from __future__ import annotations

import asyncio
import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from ..constants import ScanStatus
from ..errors import ScanNotFoundError
from ..ingest.project import Project
from ..models import Finding, FindingFilters, Scan, ScanProgress, ScanStatusView


class ScanStore:
    """In-memory registry of projects, scans and their findings.

    One instance lives for the whole process and is handed to every component
    that needs it. All access goes through a re-entrant lock so the background
    scan tasks and request handlers (which may run in a thread pool) see a
    consistent view.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._projects: Dict[str, Project] = {}
        self._scans: Dict[str, Scan] = {}
        self._findings: Dict[str, List[Finding]] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    # Projects
    def save_project(self, project: Project) -> None:
        with self._lock:
            self._projects[project.id] = project

    def get_project(self, project_id: str) -> Optional[Project]:
        with self._lock:
            return self._projects.get(project_id)

    def delete_project(self, project_id: str) -> bool:
        with self._lock:
            return self._projects.pop(project_id, None) is not None

    # Scans
    def save_scan(self, scan: Scan) -> None:
        with self._lock:
            self._scans[scan.id] = scan
            self._findings.setdefault(scan.id, [])

    def get_scan(self, scan_id: str) -> Optional[Scan]:
        with self._lock:
            return self._scans.get(scan_id)

    def list_scans(self, project_id: Optional[str] = None) -> List[Scan]:
        with self._lock:
            scans = list(self._scans.values())
        if project_id is not None:
            scans = [scan for scan in scans if scan.project_id == project_id]
        return scans

    def _require_scan(self, scan_id: str) -> Scan:
        scan = self._scans.get(scan_id)
        if scan is None:
            raise ScanNotFoundError(scan_id)
        return scan

    def update_progress(self, scan_id: str, progress: ScanProgress) -> None:
        with self._lock:
            scan = self._require_scan(scan_id)
            # A finished scan keeps its final snapshot.
            if not scan.status.is_terminal:
                scan.progress = progress

    def update_status(self, scan_id: str, status: ScanStatus) -> None:
        with self._lock:
            self._require_scan(scan_id).status = status

    def record_file_scanned(self, scan_id: str, lines: int) -> None:
        with self._lock:
            stats = self._require_scan(scan_id).stats
            stats.files_scanned += 1
            stats.lines_scanned += lines

    def update_stats(self, scan_id: str, **changes) -> None:
        with self._lock:
            scan = self._require_scan(scan_id)
            scan.stats = replace(scan.stats, **changes)

    def mark_finished(
        self,
        scan_id: str,
        status: ScanStatus,
        completed_at: Optional[datetime] = None,
        progress: Optional[ScanProgress] = None,
        error: Optional[str] = None,
    ) -> None:
        """Move a scan into a terminal state in one locked step."""
        with self._lock:
            scan = self._require_scan(scan_id)
            scan.status = status
            if completed_at is not None:
                scan.completed_at = completed_at
            if progress is not None:
                scan.progress = progress
            if error is not None:
                scan.error = error

    def status_view(self, scan_id: str) -> ScanStatusView:
        with self._lock:
            scan = self._require_scan(scan_id)
            return ScanStatusView(
                id=scan.id,
                status=scan.status,
                progress=scan.progress,
                stats=replace(scan.stats),
                findings_count=self.count_findings(scan_id),
                error=scan.error,
            )

    # Findings
    def add_finding(self, scan_id: str, finding: Finding) -> None:
        with self._lock:
            self._require_scan(scan_id)
            self._findings.setdefault(scan_id, []).append(finding)

    def get_findings(self, scan_id: str, filters: Optional[FindingFilters] = None) -> List[Finding]:
        with self._lock:
            findings = list(self._findings.get(scan_id, []))
        if filters is not None:
            findings = [f for f in findings if filters.matches(f)]
        return findings

    def count_findings(self, scan_id: str) -> int:
        with self._lock:
            return len(self._findings.get(scan_id, []))

    def get_finding(self, finding_id: str) -> Optional[Finding]:
        # Linear search across all scans.
        with self._lock:
            for scan_findings in self._findings.values():
                for finding in scan_findings:
                    if finding.id == finding_id:
                        return finding
        return None

    # Background task handles
    def set_task(self, scan_id: str, task: asyncio.Task) -> None:
        with self._lock:
            self._tasks[scan_id] = task

    def get_task(self, scan_id: str) -> Optional[asyncio.Task]:
        with self._lock:
            return self._tasks.get(scan_id)

    def clear(self) -> None:
        with self._lock:
            self._projects.clear()
            self._scans.clear()
            self._findings.clear()
            self._tasks.clear()
