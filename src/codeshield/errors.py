from __future__ import annotations


class CodeShieldError(Exception):
    """Base exception for all CodeShield errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"


class NotFoundError(CodeShieldError):
    """A referenced project, scan or finding does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class ProjectNotFoundError(NotFoundError):
    code = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class ScanNotFoundError(NotFoundError):
    code = "SCAN_NOT_FOUND"

    def __init__(self, scan_id: str) -> None:
        super().__init__(f"Scan not found: {scan_id}")
        self.scan_id = scan_id


class FindingNotFoundError(NotFoundError):
    code = "FINDING_NOT_FOUND"

    def __init__(self, finding_id: str) -> None:
        super().__init__(f"Finding not found: {finding_id}")
        self.finding_id = finding_id


class InvalidPathError(CodeShieldError):
    """Requested file resolves outside the project root."""

    status_code = 403
    code = "INVALID_PATH"


class RuleCatalogError(CodeShieldError):
    """A rule definition is malformed; raised while building the catalog."""

    code = "RULE_CATALOG_INVALID"


class AIServiceError(CodeShieldError):
    """A call to the AI verification service failed (never fatal to a scan)."""

    status_code = 502
    code = "AI_SERVICE_ERROR"
