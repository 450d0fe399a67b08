from .errors import ErrorDetail, ErrorResponse
from .projects import FileNodeOut, ProjectCreate, ProjectDeleted, ProjectDetail, ProjectFile, ProjectOut
from .scans import (
    FindingAnalyzed,
    FindingList,
    FindingOut,
    ProgressOut,
    ScanCancelled,
    ScanCreate,
    ScanStarted,
    ScanStatusOut,
    StatsOut,
)

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "FileNodeOut",
    "FindingAnalyzed",
    "FindingList",
    "FindingOut",
    "ProgressOut",
    "ProjectCreate",
    "ProjectDeleted",
    "ProjectDetail",
    "ProjectFile",
    "ProjectOut",
    "ScanCancelled",
    "ScanCreate",
    "ScanStarted",
    "ScanStatusOut",
    "StatsOut",
]
