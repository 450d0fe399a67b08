"""AI verification of static findings."""

from .ollama_client import AIHealth, OllamaClient, recommended_model
from .prompts import SYSTEM_PROMPT, build_verification_prompt
from .response_parser import ResponseParser, VerificationResult
from .verifier import AIVerifier, ProgressSink, apply_verification

__all__ = [
    "AIHealth",
    "AIVerifier",
    "OllamaClient",
    "ProgressSink",
    "ResponseParser",
    "SYSTEM_PROMPT",
    "VerificationResult",
    "apply_verification",
    "build_verification_prompt",
    "recommended_model",
]
