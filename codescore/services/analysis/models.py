"""Value types passed between the analysis pipeline stages."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class CodeFile:
    """A sampled source file.  Lives only for the duration of one run."""

    path: str
    content: str
    language: str
    size: int


@dataclass(frozen=True)
class AnalysisMetrics:
    total_lines: int
    total_files: int
    code_complexity: float  # mean control-structure matches per file
    duplicate_lines: int


@dataclass(frozen=True)
class IssueCount:
    critical: int = 0
    major: int = 0
    minor: int = 0
    suggestions: int = 0

    @property
    def total(self) -> int:
        return self.critical + self.major + self.minor + self.suggestions


@dataclass(frozen=True)
class ScoreBreakdown:
    """Sub-scores in ``[0, 10]`` plus the weighted overall score."""

    overall: float
    quality: float
    security: float
    performance: float
    maintainability: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class InferenceOutcome:
    """Tagged result of the LLM analysis stage.

    ``status`` is ``"ok"`` when the model's answer was used, or
    ``"degraded"`` when fixed fallback values were substituted; ``reason``
    then says why.
    """

    status: str
    issues: IssueCount
    scores: dict[str, float]
    summary: str
    insights: dict[str, list[str]]
    detailed_results: dict[str, Any] = field(default_factory=dict)
    reason: str | None = None

    @property
    def degraded(self) -> bool:
        return self.status == "degraded"
