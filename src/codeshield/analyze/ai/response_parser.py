from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class VerificationResult:
    is_true_positive: bool
    confidence: float
    risk_analysis: str
    fix_suggestion: str
    reasoning: str = ""


class ResponseParser:
    """Parse a verification response into a VerificationResult.

    Models sometimes wrap the JSON object in markdown fences or a sentence of
    prose even when JSON output was requested; both are stripped before
    decoding.
    """

    REQUIRED_FIELDS = ("isTruePositive", "confidence")

    def parse(self, response_text: str) -> Optional[VerificationResult]:
        content = self._extract_json_content(response_text or "")
        if not content:
            return None
        try:
            parsed = json.loads(content)
            if not isinstance(parsed, dict) or not self._validate(parsed):
                return None
            return self._normalize(parsed)
        except (ValueError, OverflowError, RecursionError):
            return None

    def _extract_json_content(self, text: str) -> str:
        match = re.search(r"```(?:json)?\s*\n?(.*?)```", text, re.DOTALL)
        if match:
            text = match.group(1)
        text = text.strip()
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end < start:
            return ""
        return text[start : end + 1]

    def _validate(self, obj: dict) -> bool:
        if not all(field in obj for field in self.REQUIRED_FIELDS):
            return False
        if not isinstance(obj.get("isTruePositive"), bool):
            return False
        confidence = obj.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            return False
        return True

    def _normalize(self, obj: dict) -> VerificationResult:
        confidence = min(1.0, max(0.0, float(obj["confidence"])))
        return VerificationResult(
            is_true_positive=obj["isTruePositive"],
            confidence=confidence,
            risk_analysis=str(obj.get("riskAnalysis") or ""),
            fix_suggestion=str(obj.get("fixSuggestion") or ""),
            reasoning=str(obj.get("reasoning") or ""),
        )
