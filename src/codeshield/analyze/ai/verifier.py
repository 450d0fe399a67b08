from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, Sequence

from ...config import ScanConfig
from ...constants import FindingStatus, FindingType, Limits
from ...errors import AIServiceError
from ...models import Finding
from .ollama_client import OllamaClient
from .prompts import SYSTEM_PROMPT, build_verification_prompt
from .response_parser import ResponseParser, VerificationResult

logger = logging.getLogger(__name__)


class ProgressSink(Protocol):
    def report(self, current: int, total: int, message: str) -> None:
        ...


class AIVerifier:
    """Asks the AI service to judge static findings and merges the verdicts back."""

    def __init__(
        self,
        client: OllamaClient,
        parser: Optional[ResponseParser] = None,
        request_timeout: Optional[float] = None,
    ) -> None:
        self.client = client
        self.parser = parser or ResponseParser()
        self.request_timeout = request_timeout if request_timeout is not None else client.timeout

    async def verify(
        self,
        scan_id: str,
        findings: Sequence[Finding],
        config: ScanConfig,
        progress: Optional[ProgressSink] = None,
    ) -> int:
        """
        Verify findings in place and return how many were processed.

        Flow:
        1. Probe the service; when unavailable the whole stage is skipped
        2. Run batches of ``config.max_concurrent_ai`` calls concurrently,
           one batch after another
        3. Report the running total after every finding, success or not
        """
        if not findings:
            return 0
        if not await self.client.is_available():
            logger.warning("AI service unavailable; skipping verification for scan %s", scan_id)
            return 0

        total = len(findings)
        concurrency = max(1, int(config.max_concurrent_ai))
        processed = 0

        async def _run(finding: Finding) -> None:
            nonlocal processed
            try:
                await self.verify_finding(finding, config.model)
            finally:
                processed += 1
                if progress is not None:
                    progress.report(processed, total, f"Analyzing finding {processed}/{total}...")

        for idx in range(0, total, concurrency):
            batch = findings[idx : idx + concurrency]
            await asyncio.gather(*(_run(finding) for finding in batch))

        return processed

    async def verify_finding(self, finding: Finding, model: str) -> bool:
        """Verify one finding; returns True when the finding was updated."""
        if finding.is_ai_verified:
            return False

        prompt = SYSTEM_PROMPT + build_verification_prompt(finding)
        try:
            raw = await asyncio.wait_for(
                self.client.generate(model, prompt, format="json"),
                timeout=self.request_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("AI verification timed out for finding %s", finding.id)
            return False
        except AIServiceError as exc:
            logger.warning("AI verification failed for finding %s: %s", finding.id, exc)
            return False
        except Exception:
            logger.exception("Unexpected AI verification error for finding %s", finding.id)
            return False

        result = self.parser.parse(raw)
        if result is None:
            logger.warning("Unparseable AI response for finding %s", finding.id)
            return False

        apply_verification(finding, result)
        return True


def apply_verification(finding: Finding, result: VerificationResult) -> None:
    finding.risk = result.risk_analysis
    finding.fix = result.fix_suggestion
    finding.confidence = result.confidence
    finding.ai_reasoning = result.reasoning or None
    if not result.is_true_positive and result.confidence > Limits.FALSE_POSITIVE_CONFIDENCE:
        finding.status = FindingStatus.FALSE_POSITIVE
    finding.type = FindingType.AI_VERIFIED
