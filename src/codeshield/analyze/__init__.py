"""Analysis engines."""

from .ai import AIVerifier, OllamaClient, ResponseParser
from .rules import Rule, RuleCatalog, STATIC_RULES, default_catalog
from .static import StaticScanner, match

__all__ = [
    "AIVerifier",
    "OllamaClient",
    "ResponseParser",
    "Rule",
    "RuleCatalog",
    "STATIC_RULES",
    "StaticScanner",
    "default_catalog",
    "match",
]
