from __future__ import annotations

from ...models import Finding

SYSTEM_PROMPT = """You are CodeShield, an expert Application Security Engineer.
Your task is to analyze code vulnerabilities with high precision.
You must output ONLY valid JSON.
Do not include markdown formatting like ```json.
"""


def build_verification_prompt(finding: Finding) -> str:
    severity = getattr(finding.severity, "value", finding.severity)
    return f"""
Analyze the following potential security vulnerability detected by static analysis.

VULNERABILITY: {finding.vulnerability}
FILE: {finding.file}
SEVERITY: {severity}

CODE CONTEXT:
{finding.code}

TASK:
1. Determine if this is a True Positive (actual vulnerability) or False Positive.
2. Explain the risk concisely.
3. Provide a fixed version of the code snippet.

OUTPUT FORMAT (JSON):
{{
  "isTruePositive": boolean,
  "confidence": number, // 0.0 to 1.0
  "riskAnalysis": "string",
  "fixSuggestion": "string", // The fixed code snippet only
  "reasoning": "string" // Why it is TP or FP
}}
"""
