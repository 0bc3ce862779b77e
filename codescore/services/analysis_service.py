"""Analysis service -- runs the scoring pipeline and serves analysis history.

Pipeline: latest commit → collect files → static metrics → LLM analysis →
score composition → one append-only ``analysis_results`` row.
"""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

import asyncpg

from codescore.clients.github_client import get_latest_commit
from codescore.config import settings
from codescore.errors import (
    BadRequestError,
    CollectionError,
    GitHubError,
    NotFoundError,
    PersistenceError,
)
from codescore.repos.analysis_repo import (
    aggregate_analyses,
    create_analysis_result,
    get_analyses_by_repository,
    get_analyses_since,
    get_analysis_result,
    get_latest_analysis,
)
from codescore.repos.repository_repo import (
    delete_repository as _delete_repository_row,
    get_repository_by_id,
)
from codescore.repos.user_repo import get_user_by_id
from codescore.services.analysis import (
    analyze_code,
    collect_code_files,
    compose_scores,
    compute_metrics,
    fallback_scores,
)
from codescore.services.analysis.scoring import round_count, round_score

logger = logging.getLogger(__name__)

ANALYSIS_TYPES = ("full", "incremental", "pr")
TRIGGER_SOURCES = ("webhook", "manual", "scheduled")

_TIMEFRAME_DAYS = {"7d": 7, "30d": 30, "90d": 90}
_MAX_TREND_DAYS = 365

_DIMENSIONS = ("overall", "quality", "security", "performance", "maintainability")

# Strong references to in-flight runs so they are not garbage-collected
_running: set[asyncio.Task] = set()


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


async def _load_context(repository_id: UUID, requester_id: UUID) -> tuple[dict, str]:
    """Return the repository row and the requester's GitHub token."""
    repository = await get_repository_by_id(repository_id)
    if repository is None:
        raise NotFoundError("Repository not found")
    user = await get_user_by_id(requester_id)
    if user is None or not user.get("access_token"):
        raise NotFoundError("GitHub token not found for requester")
    return repository, user["access_token"]


async def analyze_repository(
    repository_id: UUID,
    *,
    requester_id: UUID,
    branch: str | None = None,
    analysis_type: str = "full",
    triggered_by: str = "manual",
) -> UUID:
    """Run one analysis and persist its result.  Returns the analysis id.

    Raises :class:`CollectionError` when the repository cannot be read
    and :class:`PersistenceError` when the result cannot be stored; in
    both cases nothing is written.  An LLM failure does not raise: the
    run is stored with fallback scores and ``ai_degraded`` set.
    """
    try:
        return await _run_pipeline(
            repository_id,
            requester_id=requester_id,
            branch=branch,
            analysis_type=analysis_type,
            triggered_by=triggered_by,
        )
    except Exception:
        logger.exception("Repository analysis failed [repository=%s]", repository_id)
        raise


async def _run_pipeline(
    repository_id: UUID,
    *,
    requester_id: UUID,
    branch: str | None,
    analysis_type: str,
    triggered_by: str,
) -> UUID:
    if analysis_type not in ANALYSIS_TYPES:
        raise BadRequestError(f"Unknown analysis type: {analysis_type}")
    if triggered_by not in TRIGGER_SOURCES:
        raise BadRequestError(f"Unknown trigger source: {triggered_by}")

    repository, access_token = await _load_context(repository_id, requester_id)
    full_name = repository["full_name"]
    branch = branch or repository.get("default_branch") or "main"

    logger.info(
        "Starting analysis of %s@%s [repository=%s type=%s trigger=%s]",
        full_name, branch, repository_id, analysis_type, triggered_by,
    )

    try:
        commit = await get_latest_commit(access_token, full_name, branch)
    except (GitHubError, ValueError) as exc:
        raise CollectionError(f"Cannot resolve latest commit of {full_name}@{branch}: {exc}") from exc

    files = await collect_code_files(
        access_token,
        full_name,
        branch,
        max_files=settings.ANALYSIS_MAX_FILES,
        max_file_bytes=settings.ANALYSIS_MAX_FILE_BYTES,
        sort_listings=settings.ANALYSIS_SORT_LISTINGS,
    )
    metrics = compute_metrics(files)
    outcome = await analyze_code(full_name, repository.get("language"), files)

    if outcome.degraded:
        logger.warning(
            "AI analysis degraded for %s (%s); recording fallback scores",
            full_name, outcome.reason,
        )
        scores = fallback_scores()
    else:
        scores = compose_scores(metrics, outcome.issues)

    record = {
        "repository_id": repository_id,
        "user_id": requester_id,
        "commit_sha": commit["sha"],
        "branch": branch,
        "analysis_type": analysis_type,
        "triggered_by": triggered_by,
        "overall_score": scores.overall,
        "quality_score": scores.quality,
        "security_score": scores.security,
        "performance_score": scores.performance,
        "maintainability_score": scores.maintainability,
        "total_lines": metrics.total_lines,
        "total_files": metrics.total_files,
        "code_complexity": metrics.code_complexity,
        "duplicate_lines": metrics.duplicate_lines,
        "critical_issues": outcome.issues.critical,
        "major_issues": outcome.issues.major,
        "minor_issues": outcome.issues.minor,
        "suggestions": outcome.issues.suggestions,
        "detailed_results": outcome.detailed_results,
        "ai_insights": outcome.insights,
        "ai_summary": outcome.summary,
        "ai_degraded": outcome.degraded,
        "ai_degraded_reason": outcome.reason,
    }

    try:
        created = await create_analysis_result(record)
    except (asyncpg.PostgresError, asyncpg.InterfaceError, asyncio.TimeoutError, OSError) as exc:
        raise PersistenceError(f"Failed to store analysis of {full_name}: {exc}") from exc

    logger.info(
        "Analysis %s of %s completed: overall=%.1f issues=%d degraded=%s",
        created["id"], full_name, scores.overall,
        outcome.issues.critical + outcome.issues.major + outcome.issues.minor,
        outcome.degraded,
    )
    return created["id"]


def _log_task_result(task: asyncio.Task) -> None:
    """Done-callback for background runs: report how the run ended."""
    _running.discard(task)
    if task.cancelled():
        logger.warning("Analysis task %s was cancelled", task.get_name())
        return
    exc = task.exception()
    if exc is not None:
        stage = getattr(exc, "stage", "pipeline")
        logger.error(
            "Analysis task %s failed at %s stage: %s",
            task.get_name(), stage, exc,
        )
    else:
        logger.info("Analysis task %s stored analysis %s", task.get_name(), task.result())


async def start_analysis(
    repository_id: UUID,
    *,
    requester_id: UUID,
    branch: str | None = None,
    analysis_type: str = "full",
    triggered_by: str = "manual",
) -> dict:
    """Validate the request, launch the run in the background, return at once."""
    if analysis_type not in ANALYSIS_TYPES:
        raise BadRequestError(f"Unknown analysis type: {analysis_type}")
    if triggered_by not in TRIGGER_SOURCES:
        raise BadRequestError(f"Unknown trigger source: {triggered_by}")

    repository, _ = await _load_context(repository_id, requester_id)
    resolved_branch = branch or repository.get("default_branch") or "main"

    # Fire and forget -- completion or failure is reported by the done callback
    task = asyncio.create_task(
        analyze_repository(
            repository_id,
            requester_id=requester_id,
            branch=resolved_branch,
            analysis_type=analysis_type,
            triggered_by=triggered_by,
        ),
        name=f"analysis-{repository_id}",
    )
    _running.add(task)
    task.add_done_callback(_log_task_result)

    logger.info(
        "Analysis queued for %s@%s by %s",
        repository["full_name"], resolved_branch, requester_id,
    )
    return {
        "repository_id": str(repository_id),
        "branch": resolved_branch,
        "status": "processing",
    }


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------


def _serialize_analysis(row: dict) -> dict:
    """Convert a DB row into a JSON-safe dict."""
    out: dict = {}
    for key, value in row.items():
        if isinstance(value, UUID):
            out[key] = str(value)
        elif isinstance(value, datetime):
            out[key] = value.isoformat()
        elif key in ("detailed_results", "ai_insights") and isinstance(value, str):
            out[key] = json.loads(value)
        else:
            out[key] = value
    return out


def _scores_of(row: dict) -> dict:
    return {dim: row[f"{dim}_score"] for dim in _DIMENSIONS}


def _issues_of(row: dict) -> dict:
    return {
        "critical": row["critical_issues"],
        "major": row["major_issues"],
        "minor": row["minor_issues"],
        "suggestions": row["suggestions"],
    }


async def get_analysis_detail(analysis_id: UUID) -> dict:
    """Fetch one analysis.  Raises :class:`NotFoundError` if missing."""
    row = await get_analysis_result(analysis_id)
    if row is None:
        raise NotFoundError("Analysis not found")
    return _serialize_analysis(row)


async def get_repository_analyses(
    repository_id: UUID,
    limit: int = 20,
    offset: int = 0,
) -> dict:
    """Analysis history for a repository, newest first."""
    if await get_repository_by_id(repository_id) is None:
        raise NotFoundError("Repository not found")
    items, total = await get_analyses_by_repository(repository_id, limit, offset)
    return {
        "items": [_serialize_analysis(r) for r in items],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


async def get_latest_repository_analysis(repository_id: UUID) -> dict:
    row = await get_latest_analysis(repository_id)
    if row is None:
        raise NotFoundError("No analysis found for repository")
    return _serialize_analysis(row)


async def summarize_analyses(
    repository_id: UUID | None = None,
    timeframe: str = "30d",
    *,
    now: datetime | None = None,
) -> dict:
    """Averages, issue totals and trend against the previous period.

    Unknown *timeframe* values fall back to 30 days.
    """
    now = now or datetime.now(timezone.utc)
    period = timedelta(days=_TIMEFRAME_DAYS.get(timeframe, 30))
    start = now - period

    current = await aggregate_analyses(start, now, repository_id)
    previous = await aggregate_analyses(start - period, start, repository_id)

    current_avg = current["avg_overall"] or 0.0
    previous_avg = previous["avg_overall"] or current_avg
    score_change = float(current_avg) - float(previous_avg)

    current_issues = current["sum_critical"] + current["sum_major"]
    previous_issues = previous["sum_critical"] + previous["sum_major"]
    issue_change = current_issues - previous_issues

    return {
        "timeframe": timeframe,
        "total_analyses": current["total"],
        "average_scores": {
            dim: round_score(float(current[f"avg_{dim}"] or 0.0)) for dim in _DIMENSIONS
        },
        "total_issues": {
            "critical": current["sum_critical"],
            "major": current["sum_major"],
            "minor": current["sum_minor"],
            "suggestions": current["sum_suggestions"],
        },
        "trends": {
            "score_change": round(score_change, 2),
            "issue_change": issue_change,
            "improving": score_change > 0 and issue_change <= 0,
        },
    }


async def get_trend_chart(
    repository_id: UUID | None = None,
    days: int = 30,
    *,
    now: datetime | None = None,
) -> dict:
    """Per-day averages of scores and issues over the last *days* days."""
    if days > _MAX_TREND_DAYS:
        raise BadRequestError(f"Maximum {_MAX_TREND_DAYS} days allowed")
    if days < 1:
        raise BadRequestError("days must be at least 1")
    now = now or datetime.now(timezone.utc)
    start = now - timedelta(days=days)

    rows = await get_analyses_since(start, repository_id)

    by_day: dict[str, list[dict]] = {}
    for row in rows:
        day = row["created_at"].date().isoformat()
        by_day.setdefault(day, []).append(row)

    chart: list[dict] = []
    for day, day_rows in by_day.items():
        count = len(day_rows)
        chart.append({
            "date": day,
            "scores": {
                dim: round_score(sum(r[f"{dim}_score"] for r in day_rows) / count)
                for dim in _DIMENSIONS
            },
            "issues": {
                sev: round_count(sum(r[f"{sev}_issues"] for r in day_rows) / count)
                for sev in ("critical", "major", "minor")
            },
            "analysis_count": count,
        })

    return {
        "chart_data": chart,
        "total_data_points": len(chart),
        "date_range": {
            "start": start.date().isoformat(),
            "end": now.date().isoformat(),
        },
    }


async def compare_analyses(first_id: UUID, second_id: UUID) -> dict:
    """Score and issue deltas from *first_id* to *second_id*."""
    first = await get_analysis_result(first_id)
    second = await get_analysis_result(second_id)
    if first is None or second is None:
        raise NotFoundError("One or both analyses not found")

    def _side(row: dict) -> dict:
        return {
            "id": str(row["id"]),
            "created_at": row["created_at"].isoformat(),
            "commit_sha": row["commit_sha"],
            "branch": row["branch"],
            "repository_full_name": row.get("repository_full_name"),
            "scores": _scores_of(row),
            "issues": _issues_of(row),
        }

    a, b = _side(first), _side(second)
    score_diff = {
        dim: round_score(b["scores"][dim] - a["scores"][dim]) for dim in _DIMENSIONS
    }
    issue_diff = {sev: b["issues"][sev] - a["issues"][sev] for sev in a["issues"]}

    return {
        "analysis1": a,
        "analysis2": b,
        "differences": {
            "scores": score_diff,
            "issues": issue_diff,
            "is_improvement": (
                score_diff["overall"] > 0
                or (issue_diff["critical"] + issue_diff["major"]) < 0
            ),
        },
    }


async def delete_repository(repository_id: UUID) -> None:
    """Delete a repository together with its analysis history."""
    if not await _delete_repository_row(repository_id):
        raise NotFoundError("Repository not found")
    logger.info("Deleted repository %s and its analyses", repository_id)
