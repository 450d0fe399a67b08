import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from ...config import CodeShieldSettings, ScanConfig
from ...constants import FindingStatus, FindingType, Severity
from ...models import FindingFilters
from ...scan.service import ScanService
from ..dependencies import get_app_settings, get_scan_service
from ..schemas.errors import ErrorResponse
from ..schemas.scans import (
    FindingAnalyzed,
    FindingList,
    FindingOut,
    ScanCancelled,
    ScanCreate,
    ScanStarted,
    ScanStatusOut,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/scans",
    response_model=ScanStarted,
    status_code=202,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def start_scan(
    payload: ScanCreate,
    request: Request,
    service: ScanService = Depends(get_scan_service),
    settings: CodeShieldSettings = Depends(get_app_settings),
):
    """
    Start a scan of a registered project.

    Returns immediately with the pending scan id; poll the status endpoint
    for progress.
    """
    try:
        config = ScanConfig.from_settings(settings, **(payload.config or {}))
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail={
                "error": {
                    "code": "INVALID_SCAN_CONFIG",
                    "message": "Scan configuration is invalid",
                    "details": exc.errors(include_url=False, include_context=False, include_input=False),
                    "request_id": getattr(request.state, "request_id", "unknown"),
                }
            },
        ) from exc

    scan = await service.start_scan(payload.project_id, config)
    logger.info("Started scan %s for project %s", scan.id, scan.project_id)
    return ScanStarted(scan_id=scan.id, status=scan.status)


@router.get("/scans/{scan_id}/status", response_model=ScanStatusOut, responses={404: {"model": ErrorResponse}})
async def get_scan_status(scan_id: str, service: ScanService = Depends(get_scan_service)):
    view = service.get_status(scan_id)
    return ScanStatusOut.model_validate(view, from_attributes=True)


@router.get("/scans/{scan_id}/findings", response_model=FindingList, responses={404: {"model": ErrorResponse}})
async def get_findings(
    scan_id: str,
    status: Optional[FindingStatus] = None,
    severity: Optional[Severity] = None,
    type: Optional[FindingType] = None,
    file: Optional[str] = None,
    service: ScanService = Depends(get_scan_service),
):
    filters = FindingFilters(status=status, severity=severity, type=type, file=file)
    findings = service.get_findings(scan_id, filters)
    return FindingList(findings=[FindingOut.model_validate(f, from_attributes=True) for f in findings])


@router.post(
    "/scans/{scan_id}/findings/{finding_id}/analyze",
    response_model=FindingAnalyzed,
    responses={404: {"model": ErrorResponse}},
)
async def analyze_finding(scan_id: str, finding_id: str, service: ScanService = Depends(get_scan_service)):
    """Run AI verification for a single finding on demand."""
    finding = await service.analyze_finding(scan_id, finding_id)
    return FindingAnalyzed(finding=FindingOut.model_validate(finding, from_attributes=True))


@router.post("/scans/{scan_id}/cancel", response_model=ScanCancelled, responses={404: {"model": ErrorResponse}})
async def cancel_scan(scan_id: str, service: ScanService = Depends(get_scan_service)):
    cancelled = await service.cancel_scan(scan_id)
    scan = service.get_scan(scan_id)
    return ScanCancelled(scan_id=scan_id, cancelled=cancelled, status=scan.status)
