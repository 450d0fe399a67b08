from __future__ import annotations

import asyncio
import math
from typing import List, Optional

from ..analyze.ai.verifier import AIVerifier
from ..analyze.rules import RuleCatalog
from ..analyze.static.scanner import StaticScanner, is_scannable
from ..config import CodeShieldSettings, ScanConfig, get_settings
from ..constants import (
    SEVERITY_WEIGHTS,
    FindingStatus,
    Limits,
    ScanStage,
    ScanStatus,
    Severity,
)
from ..errors import FindingNotFoundError, ProjectNotFoundError, ScanNotFoundError
from ..ingest.file_tree import FileNode, count_lines
from ..ingest.project import Project, select_files
from ..logging import ScanLogger
from ..models import (
    Finding,
    FindingFilters,
    Scan,
    ScanProgress,
    ScanStatusView,
    generate_id,
    utcnow,
)
from .store import ScanStore

# Stage progress never reports 100; that value is reserved for a completed scan.
IN_PROGRESS_CAP = 99

# Statuses that count toward severity tallies and the risk score.
TALLIED_STATUSES = frozenset({FindingStatus.OPEN, FindingStatus.FIXED})


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def stage_percentage(processed: int, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(IN_PROGRESS_CAP, round_half_up(processed / total * 100)))


def compute_risk_score(critical: int, high: int, medium: int, low: int, files_scanned: int) -> int:
    raw = (
        critical * SEVERITY_WEIGHTS[Severity.CRITICAL]
        + high * SEVERITY_WEIGHTS[Severity.HIGH]
        + medium * SEVERITY_WEIGHTS[Severity.MEDIUM]
        + low * SEVERITY_WEIGHTS[Severity.LOW]
    )
    return min(Limits.MAX_RISK_SCORE, round_half_up(raw / max(1, files_scanned) * 10))


class StoreProgressSink:
    """Writes AI-stage progress straight into the scan record."""

    def __init__(self, store: ScanStore, scan_id: str, stage: ScanStage = ScanStage.AI) -> None:
        self.store = store
        self.scan_id = scan_id
        self.stage = stage

    def report(self, current: int, total: int, message: str) -> None:
        self.store.update_progress(
            self.scan_id,
            ScanProgress(
                stage=self.stage,
                files_processed=current,
                total_files=total,
                percentage=stage_percentage(current, total),
                message=message,
            ),
        )


class ScanService:
    """Drives a scan from pending through static and AI stages to a terminal state."""

    def __init__(
        self,
        store: ScanStore,
        verifier: AIVerifier,
        catalog: Optional[RuleCatalog] = None,
        settings: Optional[CodeShieldSettings] = None,
    ) -> None:
        self.store = store
        self.verifier = verifier
        self.settings = settings or get_settings()
        self.scanner = StaticScanner(catalog)

    async def start_scan(self, project_id: str, config: ScanConfig) -> Scan:
        """Create the scan record and launch the pipeline as a background task."""
        project = self.store.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)

        files = select_files(project.files(), config)
        scan = Scan(
            id=generate_id(),
            project_id=project_id,
            config=config,
            progress=ScanProgress(
                stage=ScanStage.STATIC,
                files_processed=0,
                total_files=len(files),
                percentage=0,
                message="Initializing scan...",
            ),
        )
        self.store.save_scan(scan)

        task = asyncio.create_task(self.run_scan(scan, files), name=f"scan-{scan.id}")
        self.store.set_task(scan.id, task)
        return scan

    async def run_scan(self, scan: Scan, files: List[FileNode]) -> None:
        """
        Run the pipeline for one scan.

        Steps:
        1. pending -> scanning
        2. Static stage (when enabled)
        3. AI verification (when enabled)
        4. Finalize stats and mark completed

        Any error in steps 2-3 marks the scan failed and leaves stats as they
        were; findings already recorded stay in the store.
        """
        log = ScanLogger(scan.id)
        self.store.update_status(scan.id, ScanStatus.SCANNING)
        log.info("scan_started", project_id=scan.project_id, total_files=len(files))
        try:
            if scan.config.enable_static:
                with log.stage("static"):
                    await self._run_static(scan, files, log)

            if scan.config.enable_ai:
                with log.stage("ai"):
                    await self._run_ai(scan, log)

            self._finalize(scan)
            log.info("scan_completed", **self._stats_fields(scan.id))
        except asyncio.CancelledError:
            self._mark_cancelled(scan.id)
            log.warning("scan_cancelled")
            raise
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            self.store.mark_finished(scan.id, ScanStatus.FAILED, error=message)
            log.error("scan_failed", error=message)

    async def _run_static(self, scan: Scan, files: List[FileNode], log: ScanLogger) -> None:
        total = len(files)
        yield_every = self.settings.yield_every_files

        for processed, node in enumerate(files, start=1):
            if is_scannable(node):
                try:
                    content = node.read_text()
                except (OSError, ValueError) as exc:
                    log.warning("file_read_failed", path=node.path, error=str(exc))
                else:
                    for finding in self.scanner.scan_file(node, scan.id, content=content):
                        if scan.config.includes_severity(finding.severity):
                            self.store.add_finding(scan.id, finding)
                    self.store.record_file_scanned(scan.id, count_lines(content))

            self.store.update_progress(
                scan.id,
                ScanProgress(
                    stage=ScanStage.STATIC,
                    current_file=node.path,
                    files_processed=processed,
                    total_files=total,
                    percentage=stage_percentage(processed, total),
                    message=f"Scanning {node.name}...",
                ),
            )

            if processed % yield_every == 0:
                await asyncio.sleep(0)

    async def _run_ai(self, scan: Scan, log: ScanLogger) -> None:
        candidates = [
            finding
            for finding in self.store.get_findings(scan.id)
            if finding.status != FindingStatus.FALSE_POSITIVE
        ]
        if not candidates:
            log.info("ai_skipped", reason="no findings to verify")
            return

        self.store.update_progress(
            scan.id,
            ScanProgress(
                stage=ScanStage.AI,
                files_processed=0,
                total_files=len(candidates),
                percentage=0,
                message="Running AI analysis...",
            ),
        )
        processed = await self.verifier.verify(
            scan.id,
            candidates,
            scan.config,
            progress=StoreProgressSink(self.store, scan.id),
        )
        log.info("ai_verification_done", processed=processed, candidates=len(candidates))

    def _finalize(self, scan: Scan) -> None:
        counts = {severity: 0 for severity in Severity}
        for finding in self.store.get_findings(scan.id):
            if finding.status in TALLIED_STATUSES:
                counts[finding.severity] += 1

        current = self.store.get_scan(scan.id)
        if current is None:
            raise ScanNotFoundError(scan.id)
        if current.status.is_terminal:
            return
        files_scanned = current.stats.files_scanned
        now = utcnow()

        self.store.update_stats(
            scan.id,
            critical=counts[Severity.CRITICAL],
            high=counts[Severity.HIGH],
            medium=counts[Severity.MEDIUM],
            low=counts[Severity.LOW],
            risk_score=compute_risk_score(
                counts[Severity.CRITICAL],
                counts[Severity.HIGH],
                counts[Severity.MEDIUM],
                counts[Severity.LOW],
                files_scanned,
            ),
            duration=(now - current.started_at).total_seconds(),
        )
        previous = current.progress
        self.store.mark_finished(
            scan.id,
            ScanStatus.COMPLETED,
            completed_at=now,
            progress=ScanProgress(
                stage=ScanStage.REPORT,
                files_processed=previous.files_processed,
                total_files=previous.total_files,
                percentage=100,
                message="Scan completed",
            ),
        )

    def _mark_cancelled(self, scan_id: str) -> None:
        scan = self.store.get_scan(scan_id)
        if scan is None or scan.status.is_terminal:
            return
        previous = scan.progress
        self.store.mark_finished(
            scan_id,
            ScanStatus.CANCELLED,
            completed_at=utcnow(),
            progress=ScanProgress(
                stage=previous.stage,
                current_file=previous.current_file,
                files_processed=previous.files_processed,
                total_files=previous.total_files,
                percentage=previous.percentage,
                message="Scan cancelled",
            ),
        )

    def _stats_fields(self, scan_id: str) -> dict:
        stats = self.store.status_view(scan_id).stats
        return {
            "files_scanned": stats.files_scanned,
            "lines_scanned": stats.lines_scanned,
            "risk_score": stats.risk_score,
            "duration_s": round(stats.duration, 3),
        }

    async def cancel_scan(self, scan_id: str) -> bool:
        """Cancel a running scan; returns False when it already finished."""
        scan = self._require_scan(scan_id)
        if scan.status.is_terminal:
            return False
        task = self.store.get_task(scan_id)
        if task is not None and not task.done():
            task.cancel()
        # A task cancelled before its first step never reaches its own handler.
        self._mark_cancelled(scan_id)
        return True

    async def wait(self, scan_id: str) -> Scan:
        """Wait for the background task of a scan to finish."""
        scan = self._require_scan(scan_id)
        task = self.store.get_task(scan_id)
        if task is not None:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        return scan

    def get_scan(self, scan_id: str) -> Scan:
        return self._require_scan(scan_id)

    def get_status(self, scan_id: str) -> ScanStatusView:
        return self.store.status_view(scan_id)

    def get_findings(self, scan_id: str, filters: Optional[FindingFilters] = None) -> List[Finding]:
        self._require_scan(scan_id)
        return self.store.get_findings(scan_id, filters)

    async def analyze_finding(self, scan_id: str, finding_id: str) -> Finding:
        """Re-run AI verification for a single finding of a scan."""
        scan = self._require_scan(scan_id)
        finding = self.store.get_finding(finding_id)
        if finding is None or finding.scan_id != scan_id:
            raise FindingNotFoundError(finding_id)
        await self.verifier.verify(scan_id, [finding], scan.config)
        return finding

    def register_project(self, project: Project) -> Project:
        self.store.save_project(project)
        return project

    def get_project(self, project_id: str) -> Project:
        project = self.store.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def _require_scan(self, scan_id: str) -> Scan:
        scan = self.store.get_scan(scan_id)
        if scan is None:
            raise ScanNotFoundError(scan_id)
        return scan
