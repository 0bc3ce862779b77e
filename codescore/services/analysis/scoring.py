"""Score composer -- fold static metrics and issue counts into a 0-10 breakdown.

Pure function; no DB or IO calls.
"""

from __future__ import annotations

import math

from .models import AnalysisMetrics, IssueCount, ScoreBreakdown

# Dimension weights for the overall score -- must sum to 1.0
WEIGHTS = {
    "quality": 0.30,
    "security": 0.25,
    "performance": 0.25,
    "maintainability": 0.20,
}

# Per-issue penalties: (critical, major, minor)
_ISSUE_PENALTIES = {
    "quality": (2.0, 1.0, 0.5),
    "security": (2.5, 1.2, 0.0),
    "performance": (1.5, 0.8, 0.0),
    "maintainability": (1.8, 0.9, 0.3),
}

_MAX_COMPLEXITY_PENALTY = 2.0
_MAX_DUPLICATE_PENALTY = 1.5

FALLBACK_SCORE = 7.0


def round_score(value: float) -> float:
    """Round half-up to one decimal (6.25 -> 6.3)."""
    return math.floor(value * 10 + 0.5) / 10


def round_count(value: float) -> int:
    """Round half-up to an integer (0.5 -> 1)."""
    return math.floor(value + 0.5)


def complexity_penalty(metrics: AnalysisMetrics) -> float:
    return min(metrics.code_complexity / 10, _MAX_COMPLEXITY_PENALTY)


def duplicate_penalty(metrics: AnalysisMetrics) -> float:
    """Duplicate-ratio penalty; zero for an empty file set."""
    if metrics.total_lines == 0:
        return 0.0
    return min(metrics.duplicate_lines / metrics.total_lines * 5, _MAX_DUPLICATE_PENALTY)


def compose_scores(metrics: AnalysisMetrics, issues: IssueCount) -> ScoreBreakdown:
    """Compute the score breakdown for one run.

    Every dimension starts at 10 and loses points per issue severity;
    quality and maintainability additionally lose the complexity and
    duplicate penalties.  Sub-scores are clamped at 0, the overall score
    is the weighted mean, and everything is rounded to one decimal.
    """
    cx_penalty = complexity_penalty(metrics)
    dup_penalty = duplicate_penalty(metrics)

    raw: dict[str, float] = {}
    for dim, (crit, major, minor) in _ISSUE_PENALTIES.items():
        score = 10.0 - (
            issues.critical * crit + issues.major * major + issues.minor * minor
        )
        if dim in ("quality", "maintainability"):
            score -= cx_penalty
            score -= dup_penalty
        raw[dim] = max(0.0, score)

    overall = sum(raw[dim] * weight for dim, weight in WEIGHTS.items())

    return ScoreBreakdown(
        overall=round_score(overall),
        quality=round_score(raw["quality"]),
        security=round_score(raw["security"]),
        performance=round_score(raw["performance"]),
        maintainability=round_score(raw["maintainability"]),
    )


def fallback_scores() -> ScoreBreakdown:
    """The flat breakdown recorded when the LLM stage degraded."""
    return ScoreBreakdown(
        overall=FALLBACK_SCORE,
        quality=FALLBACK_SCORE,
        security=FALLBACK_SCORE,
        performance=FALLBACK_SCORE,
        maintainability=FALLBACK_SCORE,
    )
