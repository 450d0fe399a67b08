from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from .config import ScanConfig
from .constants import FindingStatus, FindingType, ScanStage, ScanStatus, Severity


def generate_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Finding:
    """A single reported potential vulnerability."""

    id: str
    scan_id: str
    rule_id: str
    vulnerability: str
    severity: Severity
    file: str
    line_start: int
    line_end: int
    code: str
    description: str
    risk: str
    fix: str
    status: FindingStatus = FindingStatus.OPEN
    type: FindingType = FindingType.STATIC
    confidence: float = 1.0
    cwe_id: Optional[str] = None
    owasp_category: Optional[str] = None
    references: List[str] = field(default_factory=list)
    ai_reasoning: Optional[str] = None
    detected_at: datetime = field(default_factory=utcnow)
    language: Optional[str] = None

    @property
    def is_ai_verified(self) -> bool:
        return self.type == FindingType.AI_VERIFIED


@dataclass
class FindingFilters:
    """Exact-match filters; every field set narrows the result."""

    status: Optional[FindingStatus] = None
    severity: Optional[Severity] = None
    type: Optional[FindingType] = None
    file: Optional[str] = None

    def matches(self, finding: Finding) -> bool:
        if self.status is not None and finding.status != self.status:
            return False
        if self.severity is not None and finding.severity != self.severity:
            return False
        if self.type is not None and finding.type != self.type:
            return False
        if self.file is not None and finding.file != self.file:
            return False
        return True


@dataclass(frozen=True)
class ScanProgress:
    """Latest progress snapshot; replaced wholesale on every update."""

    stage: ScanStage
    files_processed: int
    total_files: int
    percentage: int
    message: str
    current_file: Optional[str] = None


@dataclass
class ScanStats:
    files_scanned: int = 0
    lines_scanned: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    risk_score: int = 0
    duration: float = 0.0


@dataclass
class Scan:
    id: str
    project_id: str
    config: ScanConfig
    progress: ScanProgress
    status: ScanStatus = ScanStatus.PENDING
    stats: ScanStats = field(default_factory=ScanStats)
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ScanStatusView:
    """Poll payload: everything about a scan except the findings list."""

    id: str
    status: ScanStatus
    progress: ScanProgress
    stats: ScanStats
    findings_count: int
    error: Optional[str] = None
