from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...analyze.ai.ollama_client import OllamaClient, recommended_model
from ..dependencies import get_ai_client

router = APIRouter()
ai_router = APIRouter()


class AIHealthOut(BaseModel):
    is_running: bool
    models: List[str]
    version: Optional[str] = None
    error: Optional[str] = None
    recommended_model: Optional[str] = None


@router.get("/health")
async def health():
    """Basic liveness check."""
    return {"status": "ok"}


@ai_router.get("/ai/health", response_model=AIHealthOut)
async def ai_health(client: OllamaClient = Depends(get_ai_client)):
    """
    Report whether the local AI service is reachable and which models it has.

    Always answers 200; an unreachable service is reported in the body so the
    UI can tell the user to start it.
    """
    status = await client.health()
    return AIHealthOut(
        is_running=status.is_running,
        models=status.models,
        version=status.version,
        error=status.error,
        recommended_model=recommended_model(status.models),
    )
