"""Static metrics over a sampled file set.

Pure-function module -- no IO, deterministic, independent of file order.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Iterable

from .models import AnalysisMetrics, CodeFile

# Control-structure patterns used as a cyclomatic-complexity proxy
_COMPLEXITY_PATTERNS = [
    re.compile(r"\bif\s*\("),
    re.compile(r"\bfor\s*\("),
    re.compile(r"\bwhile\s*\("),
    re.compile(r"\bswitch\s*\("),
    re.compile(r"\bcatch\s*\("),
    re.compile(r"\?\s*.*\s*:"),  # ternary
]

# Lines this short or shorter never count as duplicates
_MIN_DUPLICATE_LINE_LEN = 10


def count_complexity(content: str) -> int:
    """Number of control-structure pattern matches in *content*."""
    return sum(len(p.findall(content)) for p in _COMPLEXITY_PATTERNS)


def compute_metrics(files: Iterable[CodeFile]) -> AnalysisMetrics:
    """Compute line, complexity and duplicate-line metrics for *files*.

    Duplicates are exact matches of stripped line text across the whole
    file set: every occurrence after the first counts once.
    """
    total_lines = 0
    total_complexity = 0
    total_files = 0
    seen: Counter[str] = Counter()
    duplicate_lines = 0

    for f in files:
        total_files += 1
        lines = f.content.split("\n")
        total_lines += len(lines)
        total_complexity += count_complexity(f.content)

        for line in lines:
            text = line.strip()
            if len(text) > _MIN_DUPLICATE_LINE_LEN:
                if seen[text]:
                    duplicate_lines += 1
                seen[text] += 1

    return AnalysisMetrics(
        total_lines=total_lines,
        total_files=total_files,
        code_complexity=total_complexity / max(total_files, 1),
        duplicate_lines=duplicate_lines,
    )
