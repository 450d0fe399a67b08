from __future__ import annotations

import re
from bisect import bisect_left
from dataclasses import dataclass
from typing import List, Tuple

from ..rules import LiteralPattern, RegexPattern, RulePattern


@dataclass(frozen=True)
class MatchSpan:
    start: int
    length: int

    @property
    def end(self) -> int:
        return self.start + self.length


def match(content: str, pattern: RulePattern) -> List[MatchSpan]:
    """Return every match of ``pattern`` in ``content`` in offset order."""
    if isinstance(pattern, LiteralPattern):
        return _match_literal(content, pattern.text)
    if isinstance(pattern, RegexPattern):
        return _match_regex(content, pattern)
    raise TypeError(f"Unsupported pattern type: {type(pattern).__name__}")


def _match_literal(content: str, text: str) -> List[MatchSpan]:
    spans: List[MatchSpan] = []
    if not text:
        return spans
    pos = content.find(text)
    while pos != -1:
        spans.append(MatchSpan(pos, len(text)))
        pos = content.find(text, pos + 1)
    return spans


def _match_regex(content: str, pattern: RegexPattern) -> List[MatchSpan]:
    regex = pattern.compiled or re.compile(pattern.source, pattern.flags)
    spans: List[MatchSpan] = []
    # finditer always scans the whole text, regardless of how the rule was authored.
    for found in regex.finditer(content):
        if found.start() == found.end():
            continue
        spans.append(MatchSpan(found.start(), found.end() - found.start()))
    return spans


class LineIndex:
    """Maps character offsets to 1-based line numbers."""

    def __init__(self, content: str):
        self._newlines = [m.start() for m in re.finditer("\n", content)]

    def line_of(self, offset: int) -> int:
        # Newlines strictly before the offset, plus one.
        return bisect_left(self._newlines, offset) + 1

    def span_lines(self, span: MatchSpan) -> Tuple[int, int]:
        return self.line_of(span.start), self.line_of(span.end)
