from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import FrozenSet, Iterator, Optional, Sequence, Tuple, Union

from ..constants import WILDCARD_LANGUAGE, Severity
from ..errors import RuleCatalogError


@dataclass(frozen=True)
class LiteralPattern:
    """Plain substring pattern."""

    text: str


@dataclass(frozen=True)
class RegexPattern:
    """Regular expression pattern, compiled once when the catalog is built."""

    source: str
    flags: int = 0
    compiled: Optional[re.Pattern[str]] = field(default=None, compare=False, repr=False)

    def compile(self) -> "RegexPattern":
        try:
            compiled = re.compile(self.source, self.flags)
        except re.error as exc:
            raise RuleCatalogError(f"Invalid regex {self.source!r}: {exc}") from exc
        return RegexPattern(source=self.source, flags=self.flags, compiled=compiled)


RulePattern = Union[LiteralPattern, RegexPattern]


@dataclass(frozen=True)
class Rule:
    id: str
    name: str
    description: str
    severity: Severity
    pattern: RulePattern
    languages: FrozenSet[str]
    cwe_id: Optional[str] = None
    owasp_category: Optional[str] = None
    enabled: bool = True

    def applies_to(self, language: Optional[str]) -> bool:
        if not language:
            return False
        if WILDCARD_LANGUAGE in self.languages:
            return True
        return language.lower() in self.languages


def _rule(
    rule_id: str,
    name: str,
    description: str,
    severity: str,
    pattern: Union[str, Tuple[str, int]],
    languages: Sequence[str],
    cwe_id: Optional[str] = None,
    owasp_category: Optional[str] = None,
    *,
    literal: bool = False,
    enabled: bool = True,
) -> Rule:
    if literal:
        rule_pattern: RulePattern = LiteralPattern(str(pattern))
    elif isinstance(pattern, tuple):
        rule_pattern = RegexPattern(pattern[0], pattern[1])
    else:
        rule_pattern = RegexPattern(pattern)
    return Rule(
        id=rule_id,
        name=name,
        description=description,
        severity=Severity(severity),
        pattern=rule_pattern,
        languages=frozenset(lang.lower() for lang in languages),
        cwe_id=cwe_id,
        owasp_category=owasp_category,
        enabled=enabled,
    )


_SECRET_LANGUAGES = ("javascript", "typescript", "python", "java", "go", "php")
_JS = ("javascript", "typescript")

STATIC_RULES: Tuple[Rule, ...] = (
    # Secrets & credentials
    _rule(
        "SEC001",
        "Hardcoded AWS Access Key",
        "Detected a hardcoded AWS Access Key ID. Never commit credentials to version control.",
        "critical",
        r"(A3T[A-Z0-9]|AKIA|AGPA|AIDA|AROA|AIPA|ANPA|ANVA|ASIA)[A-Z0-9]{16}",
        _SECRET_LANGUAGES,
        "CWE-798",
        "A07:2021",
    ),
    _rule(
        "SEC002",
        "Hardcoded AWS Secret Key",
        "Detected a potential AWS Secret Access Key. This grants access to your AWS resources.",
        "critical",
        r"(?<![A-Za-z0-9/+=])[A-Za-z0-9/+=]{40}(?![A-Za-z0-9/+=])",
        _SECRET_LANGUAGES,
        "CWE-798",
        "A07:2021",
    ),
    _rule(
        "SEC003",
        "Hardcoded Private Key",
        "Detected a private key block (RSA/DSA/EC).",
        "critical",
        r"-----BEGIN ((EC|PGP|DSA|RSA|OPENSSH) )?PRIVATE KEY( BLOCK)?-----",
        _SECRET_LANGUAGES,
        "CWE-798",
        "A07:2021",
    ),
    _rule(
        "SEC004",
        "Hardcoded API Key / Token",
        "Detected a variable named 'apiKey', 'token', or 'secret' with a string assignment.",
        "high",
        r"(const|let|var|String)\s+(apiKey|api_key|accessToken|access_token|secret|token)"
        r"\s*=\s*['\"][a-zA-Z0-9_\-]{20,}['\"]",
        ("javascript", "typescript", "java"),
        "CWE-798",
        "A07:2021",
    ),
    _rule(
        "SEC005",
        "Hardcoded Password",
        "Detected a hardcoded password assignment.",
        "high",
        r"(password|passwd|pwd|pass)\s*=\s*['\"][^'\"]{3,}['\"]",
        ("javascript", "typescript", "python", "java"),
        "CWE-259",
        "A07:2021",
    ),
    # Injection
    _rule(
        "INJ001",
        "SQL Injection (String Concatenation)",
        "Detected SQL query construction using string concatenation. Use parameterized queries instead.",
        "critical",
        (r"(SELECT|INSERT|UPDATE|DELETE)\s+.*(\+|concat).*(WHERE|VALUES|SET)", re.IGNORECASE),
        ("javascript", "typescript", "python", "java"),
        "CWE-89",
        "A03:2021",
    ),
    _rule(
        "INJ002",
        "Command Injection (exec/spawn)",
        "Detected execution of system commands with potentially unsafe arguments.",
        "critical",
        r"(child_process|cp)\.(exec|spawn|execSync|spawnSync)\s*\(\s*[^,)]+",
        _JS,
        "CWE-78",
        "A03:2021",
    ),
    _rule(
        "INJ003",
        "Unsafe Eval",
        "Usage of eval() allows execution of arbitrary code.",
        "high",
        r"\beval\s*\(",
        ("javascript", "typescript", "python"),
        "CWE-95",
        "A03:2021",
    ),
    # Cross-site scripting
    _rule(
        "XSS001",
        "React dangerouslySetInnerHTML",
        "Directly setting HTML bypasses React's XSS protection.",
        "high",
        "dangerouslySetInnerHTML",
        _JS,
        "CWE-79",
        "A03:2021",
        literal=True,
    ),
    _rule(
        "XSS002",
        "Unsafe InnerHTML Assignment",
        "Assigning to innerHTML can lead to XSS if content is not sanitized.",
        "medium",
        r"\.innerHTML\s*=",
        _JS,
        "CWE-79",
        "A03:2021",
    ),
    # Authentication & authorization
    _rule(
        "AUTH001",
        "Weak JWT Secret",
        "Detected a potentially weak or hardcoded JWT secret.",
        "high",
        r"jwt\.sign\s*\([^,]+,\s*['\"](secret|key|123456)['\"]",
        _JS,
        "CWE-312",
        "A01:2021",
    ),
    # Cryptography
    _rule(
        "CRY001",
        "Weak Hashing Algorithm (MD5/SHA1)",
        "MD5 and SHA1 are collision-prone. Use SHA-256 or better.",
        "medium",
        (r"createHash\s*\(\s*['\"](md5|sha1)['\"]\s*\)", re.IGNORECASE),
        _JS,
        "CWE-327",
        "A02:2021",
    ),
    _rule(
        "CRY002",
        "Insecure Random Number Generator",
        "Math.random() is not cryptographically secure. Use crypto.getRandomValues().",
        "low",
        "Math.random()",
        _JS,
        "CWE-330",
        "A02:2021",
        literal=True,
    ),
    # Logging & data exposure
    _rule(
        "LOG001",
        "Console Log of Sensitive Data",
        "Logging sensitive data (tokens, passwords) exposes them to logs.",
        "medium",
        (r"console\.(log|info|error|warn)\s*\(.*(password|token|secret|key|auth)", re.IGNORECASE),
        _JS,
        "CWE-532",
        "A09:2021",
    ),
    _rule(
        "LOG002",
        "Debugger Statement",
        "Debugger statements should not be present in production code.",
        "low",
        r"\bdebugger;?",
        _JS,
        "CWE-489",
        "A05:2021",
    ),
)


class RuleCatalog:
    """Ordered, read-only collection of detection rules.

    Construction validates every rule and compiles regex patterns; a malformed
    rule fails here rather than at match time.
    """

    def __init__(self, rules: Sequence[Rule]):
        self._rules: Tuple[Rule, ...] = self._load_rules(rules)
        self._by_id = {rule.id: rule for rule in self._rules}

    def _load_rules(self, rules: Sequence[Rule]) -> Tuple[Rule, ...]:
        loaded = []
        seen = set()
        for rule in rules:
            if not rule.id:
                raise RuleCatalogError("Rule id must not be empty")
            if rule.id in seen:
                raise RuleCatalogError(f"Duplicate rule id: {rule.id}")
            seen.add(rule.id)
            if not isinstance(rule.severity, Severity):
                raise RuleCatalogError(f"Rule {rule.id}: invalid severity {rule.severity!r}")
            if not rule.languages:
                raise RuleCatalogError(f"Rule {rule.id}: languages must not be empty")
            pattern = rule.pattern
            if isinstance(pattern, LiteralPattern):
                if not pattern.text:
                    raise RuleCatalogError(f"Rule {rule.id}: literal pattern must not be empty")
            elif isinstance(pattern, RegexPattern):
                try:
                    pattern = pattern.compile()
                except RuleCatalogError as exc:
                    raise RuleCatalogError(f"Rule {rule.id}: {exc}") from exc
                rule = replace(rule, pattern=pattern)
            else:
                raise RuleCatalogError(f"Rule {rule.id}: unsupported pattern type")
            loaded.append(rule)
        return tuple(loaded)

    def list_rules(self) -> Tuple[Rule, ...]:
        return self._rules

    def enabled_rules(self) -> Tuple[Rule, ...]:
        return tuple(rule for rule in self._rules if rule.enabled)

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._by_id.get(rule_id)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)


@lru_cache(maxsize=1)
def default_catalog() -> RuleCatalog:
    """Process-wide catalog built from STATIC_RULES on first use."""
    return RuleCatalog(STATIC_RULES)
