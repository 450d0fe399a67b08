import logging
from typing import Any, Dict

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from ...errors import CodeShieldError

logger = logging.getLogger(__name__)


def request_id_of(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def error_payload(code: str, message: str, request_id: str, details: Any = None) -> Dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "request_id": request_id,
        }
    }


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException and format as standard error envelope."""
    request_id = request_id_of(request)
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        error = dict(detail["error"])
        if error.get("request_id") in (None, "", "unknown"):
            error["request_id"] = request_id
        error.setdefault("details", None)
        return JSONResponse(status_code=exc.status_code, content={"error": error})
    if isinstance(detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload("HTTP_ERROR", "Request failed", request_id, detail),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload("HTTP_ERROR", str(detail), request_id),
    )


async def codeshield_error_handler(request: Request, exc: CodeShieldError) -> JSONResponse:
    """Map domain errors onto the envelope using the error's own status and code."""
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc, exc_info=exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc.code, str(exc), request_id_of(request)),
    )
