"""Semantic issue analysis -- delegate issue-finding to the LLM.

Builds a bounded code summary, asks the model for a JSON assessment,
validates it, and tallies issues by severity.  Any failure is absorbed:
the caller receives a ``degraded`` :class:`InferenceOutcome` carrying
fixed fallback values and the failure reason.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Sequence

from pydantic import BaseModel, Field, ValidationError

from codescore.clients.llm_client import chat_anthropic
from codescore.config import settings

from .models import CodeFile, InferenceOutcome, IssueCount

logger = logging.getLogger(__name__)

SUMMARY_FILE_LIMIT = 20
SUMMARY_PREVIEW_LINES = 20
SUMMARY_MAX_CHARS = 30_000

FALLBACK_SUMMARY = "Analysis completed with basic metrics. AI analysis unavailable."
FALLBACK_INSIGHTS: dict[str, list[str]] = {
    "strengths": ["Code structure appears organized"],
    "weaknesses": ["Detailed analysis unavailable"],
    "recommendations": ["Enable AI analysis for detailed insights"],
}


# ---------------------------------------------------------------------------
# Response schema
# ---------------------------------------------------------------------------


class LLMIssue(BaseModel):
    """One issue reported by the model."""
    type: str  # "critical" | "major" | "minor" | "suggestion"
    category: str = ""
    file: str | None = None
    line: int | str | None = None
    description: str = ""
    recommendation: str = ""


class LLMInsights(BaseModel):
    strengths: list[str] = []
    weaknesses: list[str] = []
    recommendations: list[str] = []


class LLMAnalysis(BaseModel):
    """The JSON object the model is asked to return."""
    scores: dict[str, float] = Field(default_factory=dict)
    issues: list[LLMIssue]
    summary: str = ""
    insights: LLMInsights = Field(default_factory=LLMInsights)


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------


def build_code_summary(files: Sequence[CodeFile]) -> str:
    """Render a preview of the first files, capped at ``SUMMARY_MAX_CHARS``."""
    blocks: list[str] = []
    for f in files[:SUMMARY_FILE_LIMIT]:
        lines = f.content.split("\n")
        preview = "\n".join(lines[:SUMMARY_PREVIEW_LINES])
        more = "..." if len(lines) > SUMMARY_PREVIEW_LINES else ""
        blocks.append(
            f"File: {f.path} ({f.language}, {len(lines)} lines)\n{preview}\n{more}\n---"
        )
    summary = "\n\n".join(blocks)
    if len(summary) > SUMMARY_MAX_CHARS:
        return summary[:SUMMARY_MAX_CHARS] + "..."
    return summary


_RESPONSE_FORMAT = """{
  "scores": {
    "overall": 8.5,
    "quality": 8.0,
    "security": 9.0,
    "performance": 7.5,
    "maintainability": 8.5
  },
  "issues": [
    {
      "type": "critical|major|minor|suggestion",
      "category": "security|performance|quality|maintainability",
      "file": "path/to/file.js",
      "line": 42,
      "description": "Issue description",
      "recommendation": "How to fix this"
    }
  ],
  "summary": "Brief overall assessment and key findings",
  "insights": {
    "strengths": ["Good error handling", "Clear documentation"],
    "weaknesses": ["Inconsistent naming", "Missing tests"],
    "recommendations": ["Add unit tests", "Implement linting"]
  }
}"""


def build_analysis_prompt(
    full_name: str,
    language: str | None,
    files: Sequence[CodeFile],
) -> str:
    """Assemble the assessment prompt for *files*."""
    return f"""Analyze this codebase and provide a comprehensive code quality assessment.

Repository: {full_name}
Language: {language or 'Multiple'}
Total Files: {len(files)}

Code Summary:
{build_code_summary(files)}

Please analyze the code and provide:

1. Overall assessment (1-10 score)
2. Quality issues found (categorize as critical/major/minor/suggestions)
3. Security vulnerabilities or concerns
4. Performance bottlenecks or inefficiencies
5. Maintainability concerns
6. Best practices violations
7. Specific recommendations for improvement

Format your response as JSON with the following structure:
{_RESPONSE_FORMAT}"""


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def parse_analysis_response(text: str) -> LLMAnalysis:
    """Decode and validate the model's JSON answer.

    Markdown code fences around the object are tolerated.  Raises
    ``ValueError`` (``ValidationError`` is a subclass) on anything else.
    """
    body = text.strip()
    if body.startswith("```"):
        lines = [l for l in body.split("\n") if not l.strip().startswith("```")]
        body = "\n".join(lines).strip()
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ValueError(f"LLM response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("LLM response is not a JSON object")
    return LLMAnalysis.model_validate(data)


def tally_issues(issues: Iterable[LLMIssue]) -> IssueCount:
    """Count issues per severity; unknown severities are ignored."""
    counts = {"critical": 0, "major": 0, "minor": 0, "suggestion": 0}
    for issue in issues:
        if issue.type in counts:
            counts[issue.type] += 1
    return IssueCount(
        critical=counts["critical"],
        major=counts["major"],
        minor=counts["minor"],
        suggestions=counts["suggestion"],
    )


def fallback_outcome(reason: str) -> InferenceOutcome:
    """The fixed result substituted when the LLM stage fails."""
    return InferenceOutcome(
        status="degraded",
        issues=IssueCount(suggestions=1),
        scores={
            "overall": 7.0,
            "quality": 7.0,
            "security": 7.0,
            "performance": 7.0,
            "maintainability": 7.0,
        },
        summary=FALLBACK_SUMMARY,
        insights={k: list(v) for k, v in FALLBACK_INSIGHTS.items()},
        detailed_results={"error": "AI analysis failed", "fallback": True, "reason": reason},
        reason=reason,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def analyze_code(
    full_name: str,
    language: str | None,
    files: Sequence[CodeFile],
    *,
    api_key: str | None = None,
    model: str | None = None,
    max_tokens: int | None = None,
) -> InferenceOutcome:
    """Run the LLM assessment for *files*.  Never raises."""
    api_key = api_key if api_key is not None else settings.ANTHROPIC_API_KEY
    if not api_key:
        logger.warning("ANTHROPIC_API_KEY not set -- skipping AI analysis for %s", full_name)
        return fallback_outcome("ANTHROPIC_API_KEY is not configured")

    prompt = build_analysis_prompt(full_name, language, files)
    try:
        response = await chat_anthropic(
            api_key=api_key,
            model=model or settings.ANALYSIS_MODEL,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens or settings.ANALYSIS_MAX_TOKENS,
        )
        analysis = parse_analysis_response(response["text"])
    except ValidationError as exc:
        logger.error("AI analysis for %s returned an unexpected schema: %s", full_name, exc)
        return fallback_outcome(f"schema mismatch: {exc.error_count()} error(s)")
    except Exception as exc:
        logger.error("AI analysis for %s failed: %s", full_name, exc, exc_info=True)
        return fallback_outcome(f"{type(exc).__name__}: {exc}")

    detailed: dict[str, Any] = analysis.model_dump()
    return InferenceOutcome(
        status="ok",
        issues=tally_issues(analysis.issues),
        scores=analysis.scores,
        summary=analysis.summary,
        insights=analysis.insights.model_dump(),
        detailed_results=detailed,
    )
