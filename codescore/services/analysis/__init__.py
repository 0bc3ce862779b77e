"""Repository quality-scoring pipeline.

Sub-modules
-----------
- collector : sample source files from the GitHub contents API
- metrics   : line, complexity and duplicate-line metrics (pure)
- inference : LLM issue analysis with tagged fallback
- scoring   : weighted 0-10 score composition (pure)
- models    : value types shared by the stages
"""

from .collector import collect_code_files
from .inference import analyze_code
from .metrics import compute_metrics
from .models import (
    AnalysisMetrics,
    CodeFile,
    InferenceOutcome,
    IssueCount,
    ScoreBreakdown,
)
from .scoring import compose_scores, fallback_scores

__all__ = [
    "collect_code_files",
    "compute_metrics",
    "analyze_code",
    "compose_scores",
    "fallback_scores",
    "AnalysisMetrics",
    "CodeFile",
    "InferenceOutcome",
    "IssueCount",
    "ScoreBreakdown",
]
