from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """Severity levels for rules and findings."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}

# Weights used by the 0-10 risk score.
SEVERITY_WEIGHTS = {
    Severity.CRITICAL: 10,
    Severity.HIGH: 5,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


class FindingStatus(str, Enum):
    OPEN = "open"
    FIXED = "fixed"
    IGNORED = "ignored"
    FALSE_POSITIVE = "false_positive"


class FindingType(str, Enum):
    STATIC = "static"
    AI_VERIFIED = "ai_verified"


class ScanStatus(str, Enum):
    PENDING = "pending"
    SCANNING = "scanning"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETED, ScanStatus.FAILED, ScanStatus.CANCELLED)


class ScanStage(str, Enum):
    STATIC = "static"
    AI = "ai"
    REPORT = "report"


class Limits:
    """Shared hard limits."""

    MAX_FILE_SIZE = 1_000_000  # 1MB
    MAX_CONCURRENT_AI = 16
    FALSE_POSITIVE_CONFIDENCE = 0.8
    MAX_RISK_SCORE = 10
    SNIPPET_LEADING_LINES = 2
    SNIPPET_TRAILING_LINES = 1


UNKNOWN_LANGUAGE = "unknown"
WILDCARD_LANGUAGE = "*"
