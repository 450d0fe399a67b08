from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from ...errors import AIServiceError

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://127.0.0.1:11434"

PREFERRED_MODELS = (
    "deepseek-coder:6.7b",
    "deepseek-coder",
    "codellama:7b",
    "codellama",
    "llama3:8b",
    "llama3",
)


@dataclass
class AIHealth:
    is_running: bool
    models: List[str] = field(default_factory=list)
    version: Optional[str] = None
    error: Optional[str] = None


def recommended_model(available: List[str]) -> Optional[str]:
    """Pick the best code model from what the service has pulled."""
    for preferred in PREFERRED_MODELS:
        for name in available:
            if name.startswith(preferred):
                return name
    return available[0] if available else None


class OllamaClient:
    """Async client for a local Ollama server.

    Every call carries an explicit timeout: the probe uses the short health
    timeout, generation the longer request timeout.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_URL,
        timeout_seconds: float = 120,
        health_timeout_seconds: float = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout_seconds
        self.health_timeout = health_timeout_seconds
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=self._transport,
        )

    async def list_models(self) -> List[str]:
        """Names of locally available models; raises AIServiceError when unreachable."""
        try:
            async with self._client(self.health_timeout) as client:
                response = await client.get("/api/tags")
        except httpx.TimeoutException as exc:
            raise AIServiceError(f"Ollama probe timeout after {self.health_timeout}s") from exc
        except httpx.HTTPError as exc:
            raise AIServiceError(f"Ollama probe failed: {exc}") from exc

        if response.status_code != 200:
            raise AIServiceError(f"Ollama API returned {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise AIServiceError("Ollama returned invalid JSON for /api/tags") from exc
        models = payload.get("models") if isinstance(payload, dict) else None
        return [str(m.get("name")) for m in models or [] if isinstance(m, dict) and m.get("name")]

    async def is_available(self) -> bool:
        try:
            await self.list_models()
        except AIServiceError as exc:
            logger.warning("Ollama is not available: %s", exc)
            return False
        return True

    async def health(self) -> AIHealth:
        try:
            models = await self.list_models()
        except AIServiceError as exc:
            return AIHealth(is_running=False, error=str(exc))

        version: Optional[str] = None
        try:
            async with self._client(self.health_timeout) as client:
                response = await client.get("/api/version")
            if response.status_code == 200:
                version = str(response.json().get("version") or "") or None
        except (httpx.HTTPError, ValueError, AttributeError):
            logger.debug("Ollama version lookup failed", exc_info=True)
        return AIHealth(is_running=True, models=models, version=version)

    async def generate(self, model: str, prompt: str, format: Optional[str] = "json") -> str:
        """Run a single non-streaming generation and return the raw response text."""
        payload = {"model": model, "prompt": prompt, "stream": False}
        if format:
            payload["format"] = format

        start = time.time()
        try:
            async with self._client(self.timeout) as client:
                response = await client.post("/api/generate", json=payload)
        except httpx.TimeoutException as exc:
            raise AIServiceError(f"Ollama generation timeout after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise AIServiceError(f"Ollama generation request failed: {exc}") from exc

        latency_ms = int((time.time() - start) * 1000)
        if response.status_code != 200:
            message = f"Ollama generation failed ({response.status_code})"
            try:
                err = response.json().get("error")
                if err:
                    message = f"{message}: {err}"
            except (ValueError, AttributeError):
                pass
            raise AIServiceError(message)

        try:
            data = response.json()
        except ValueError as exc:
            raise AIServiceError("Ollama generation returned invalid JSON") from exc
        content = data.get("response") if isinstance(data, dict) else None
        if not isinstance(content, str):
            raise AIServiceError("Ollama generation response missing 'response'")
        logger.debug("Ollama generation complete model=%s latency_ms=%d", model, latency_ms)
        return content
