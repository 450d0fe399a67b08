from fastapi import Request

from ..analyze.ai.ollama_client import OllamaClient
from ..config import CodeShieldSettings
from ..scan.service import ScanService
from ..scan.store import ScanStore


def get_app_settings(request: Request) -> CodeShieldSettings:
    return request.app.state.settings


def get_store(request: Request) -> ScanStore:
    return request.app.state.store


def get_scan_service(request: Request) -> ScanService:
    return request.app.state.scan_service


def get_ai_client(request: Request) -> OllamaClient:
    return request.app.state.ai_client
