import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from starlette.concurrency import run_in_threadpool

from ...config import CodeShieldSettings
from ...errors import ProjectNotFoundError
from ...ingest.project import create_project, read_project_file
from ...scan.service import ScanService
from ...scan.store import ScanStore
from ..dependencies import get_app_settings, get_scan_service, get_store
from ..schemas.errors import ErrorResponse
from ..schemas.projects import ProjectCreate, ProjectDeleted, ProjectDetail, ProjectFile

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/projects",
    response_model=ProjectDetail,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
)
async def register_project(
    payload: ProjectCreate,
    request: Request,
    service: ScanService = Depends(get_scan_service),
    settings: CodeShieldSettings = Depends(get_app_settings),
):
    """Register an already extracted project directory for scanning."""
    try:
        project = await run_in_threadpool(
            create_project,
            Path(payload.path),
            payload.name,
            settings.max_file_size_bytes,
        )
    except (NotADirectoryError, FileNotFoundError) as exc:
        raise HTTPException(
            status_code=400,
            detail={
                "error": {
                    "code": "INVALID_PROJECT_PATH",
                    "message": str(exc),
                    "request_id": getattr(request.state, "request_id", "unknown"),
                }
            },
        ) from exc

    service.register_project(project)
    logger.info("Registered project %s (%d files)", project.id, project.file_count)
    return ProjectDetail.model_validate(project, from_attributes=True)


@router.get("/projects/{project_id}", response_model=ProjectDetail, responses={404: {"model": ErrorResponse}})
async def get_project(project_id: str, service: ScanService = Depends(get_scan_service)):
    project = service.get_project(project_id)
    return ProjectDetail.model_validate(project, from_attributes=True)


@router.get(
    "/projects/{project_id}/file",
    response_model=ProjectFile,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_project_file(
    project_id: str,
    request: Request,
    file: str = Query(..., min_length=1),
    service: ScanService = Depends(get_scan_service),
):
    """Return the content of one project file; paths outside the project are refused."""
    project = service.get_project(project_id)
    try:
        content = await run_in_threadpool(read_project_file, project, file)
    except OSError as exc:
        raise HTTPException(
            status_code=404,
            detail={
                "error": {
                    "code": "FILE_NOT_FOUND",
                    "message": f"File not found: {file}",
                    "request_id": getattr(request.state, "request_id", "unknown"),
                }
            },
        ) from exc
    return ProjectFile(path=file, content=content)


@router.delete("/projects/{project_id}", response_model=ProjectDeleted, responses={404: {"model": ErrorResponse}})
async def delete_project(project_id: str, store: ScanStore = Depends(get_store)):
    if not store.delete_project(project_id):
        raise ProjectNotFoundError(project_id)
    return ProjectDeleted(project_id=project_id, deleted=True)
