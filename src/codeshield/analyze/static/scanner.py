from __future__ import annotations

from typing import List, Optional, Sequence

from ...constants import UNKNOWN_LANGUAGE, Limits
from ...ingest.file_tree import FileNode
from ...models import Finding, generate_id
from ..rules import Rule, RuleCatalog, default_catalog
from .matcher import LineIndex, match

GENERIC_FIX = "Review the code and replace the insecure pattern with a secure alternative."

CWE_URL = "https://cwe.mitre.org/data/definitions/{number}.html"
OWASP_URL = "https://owasp.org/Top10/"


def snippet_from_lines(lines: Sequence[str], line_start: int, line_end: int) -> str:
    """Match lines padded with up to two leading and one trailing line of context."""
    if not lines:
        return ""
    start_idx = max(0, line_start - 1 - Limits.SNIPPET_LEADING_LINES)
    end_idx = min(len(lines), line_end + Limits.SNIPPET_TRAILING_LINES)
    return "\n".join(lines[start_idx:end_idx])


def references_for(rule: Rule) -> List[str]:
    refs: List[str] = []
    if rule.cwe_id and rule.cwe_id.upper().startswith("CWE-"):
        number = rule.cwe_id.split("-", 1)[1]
        if number.isdigit():
            refs.append(CWE_URL.format(number=number))
    if rule.owasp_category:
        refs.append(OWASP_URL)
    return refs


def is_scannable(file: FileNode) -> bool:
    return file.is_file and bool(file.language) and file.language != UNKNOWN_LANGUAGE


class StaticScanner:
    """Runs every enabled, applicable rule of a catalog over single files."""

    def __init__(self, catalog: Optional[RuleCatalog] = None):
        self.catalog = catalog or default_catalog()

    def scan_file(
        self,
        file: FileNode,
        scan_id: str,
        content: Optional[str] = None,
    ) -> List[Finding]:
        if not is_scannable(file):
            return []
        if content is None:
            content = file.read_text()
        if not content:
            return []

        line_index = LineIndex(content)
        lines = content.split("\n")
        findings: List[Finding] = []

        for rule in self.catalog.enabled_rules():
            if not rule.applies_to(file.language):
                continue
            for span in match(content, rule.pattern):
                line_start, line_end = line_index.span_lines(span)
                findings.append(
                    Finding(
                        id=generate_id(),
                        scan_id=scan_id,
                        rule_id=rule.id,
                        vulnerability=rule.name,
                        severity=rule.severity,
                        file=file.path,
                        line_start=line_start,
                        line_end=line_end,
                        code=snippet_from_lines(lines, line_start, line_end),
                        description=rule.description,
                        risk=f"This pattern matches a known security vulnerability: {rule.name}.",
                        fix=GENERIC_FIX,
                        confidence=1.0,
                        cwe_id=rule.cwe_id,
                        owasp_category=rule.owasp_category,
                        references=references_for(rule),
                        language=file.language,
                    )
                )
        return findings
