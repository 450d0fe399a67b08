from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from ...constants import FindingStatus, FindingType, ScanStage, ScanStatus, Severity


class ScanCreate(BaseModel):
    project_id: str
    # Validated into a ScanConfig against process defaults by the route.
    config: Optional[Dict[str, Any]] = None


class ScanStarted(BaseModel):
    scan_id: str
    status: ScanStatus


class ProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stage: ScanStage
    files_processed: int
    total_files: int
    percentage: int
    message: str
    current_file: Optional[str] = None


class StatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    files_scanned: int
    lines_scanned: int
    critical: int
    high: int
    medium: int
    low: int
    risk_score: int
    duration: float


class ScanStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: ScanStatus
    progress: ProgressOut
    stats: StatsOut
    findings_count: int
    error: Optional[str] = None


class FindingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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
    status: FindingStatus
    type: FindingType
    confidence: float
    cwe_id: Optional[str] = None
    owasp_category: Optional[str] = None
    references: List[str] = []
    ai_reasoning: Optional[str] = None
    detected_at: datetime
    language: Optional[str] = None


class FindingList(BaseModel):
    findings: List[FindingOut]


class FindingAnalyzed(BaseModel):
    finding: FindingOut


class ScanCancelled(BaseModel):
    scan_id: str
    cancelled: bool
    status: ScanStatus
