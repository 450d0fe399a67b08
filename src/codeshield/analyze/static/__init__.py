"""Static (pattern-based) analysis."""

from .matcher import LineIndex, MatchSpan, match
from .scanner import StaticScanner, snippet_from_lines

__all__ = [
    "LineIndex",
    "MatchSpan",
    "StaticScanner",
    "match",
    "snippet_from_lines",
]
