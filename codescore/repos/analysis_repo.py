"""Analysis repository -- database access for the append-only analysis_results table.

Rows are written once per analysis run and never updated.
"""

import json
from datetime import datetime
from uuid import UUID

from codescore.repos.db import get_pool

_SUMMARY_COLUMNS = """
    a.id, a.repository_id, a.user_id, a.commit_sha, a.branch,
    a.analysis_type, a.triggered_by,
    a.overall_score, a.quality_score, a.security_score,
    a.performance_score, a.maintainability_score,
    a.critical_issues, a.major_issues, a.minor_issues, a.suggestions,
    a.ai_summary, a.ai_degraded, a.created_at
"""

_DETAIL_COLUMNS = _SUMMARY_COLUMNS + """,
    a.total_lines, a.total_files, a.code_complexity, a.duplicate_lines,
    a.detailed_results, a.ai_insights, a.ai_degraded_reason
"""


async def create_analysis_result(record: dict) -> dict:
    """Insert one analysis result and stamp the repository's ``last_analyzed_at``.

    Both writes happen in a single statement.  Returns ``{"id", "created_at"}``.
    """
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        WITH inserted AS (
            INSERT INTO analysis_results (
                repository_id, user_id, commit_sha, branch, analysis_type, triggered_by,
                overall_score, quality_score, security_score,
                performance_score, maintainability_score,
                total_lines, total_files, code_complexity, duplicate_lines,
                critical_issues, major_issues, minor_issues, suggestions,
                detailed_results, ai_insights, ai_summary,
                ai_degraded, ai_degraded_reason
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14,
                    $15, $16, $17, $18, $19, $20::jsonb, $21::jsonb, $22, $23, $24)
            RETURNING id, repository_id, created_at
        ), touched AS (
            UPDATE repositories
            SET last_analyzed_at = now(), updated_at = now()
            WHERE id = (SELECT repository_id FROM inserted)
        )
        SELECT id, created_at FROM inserted
        """,
        record["repository_id"],
        record["user_id"],
        record["commit_sha"],
        record["branch"],
        record["analysis_type"],
        record["triggered_by"],
        record["overall_score"],
        record["quality_score"],
        record["security_score"],
        record["performance_score"],
        record["maintainability_score"],
        record["total_lines"],
        record["total_files"],
        record["code_complexity"],
        record["duplicate_lines"],
        record["critical_issues"],
        record["major_issues"],
        record["minor_issues"],
        record["suggestions"],
        json.dumps(record.get("detailed_results") or {}),
        json.dumps(record.get("ai_insights") or {}),
        record.get("ai_summary"),
        record.get("ai_degraded", False),
        record.get("ai_degraded_reason"),
    )
    return dict(row)


async def get_analysis_result(analysis_id: UUID) -> dict | None:
    """Fetch one analysis with its repository name. Returns None if not found."""
    pool = await get_pool()
    row = await pool.fetchrow(
        f"""
        SELECT {_DETAIL_COLUMNS}, r.full_name AS repository_full_name
        FROM analysis_results a
        JOIN repositories r ON r.id = a.repository_id
        WHERE a.id = $1
        """,
        analysis_id,
    )
    return dict(row) if row else None


async def get_analyses_by_repository(
    repository_id: UUID,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[dict], int]:
    """Fetch analyses for a repository, newest first. Returns (items, total)."""
    pool = await get_pool()
    total = await pool.fetchval(
        "SELECT count(*) FROM analysis_results WHERE repository_id = $1",
        repository_id,
    )
    rows = await pool.fetch(
        f"""
        SELECT {_SUMMARY_COLUMNS}
        FROM analysis_results a
        WHERE a.repository_id = $1
        ORDER BY a.created_at DESC
        LIMIT $2 OFFSET $3
        """,
        repository_id,
        limit,
        offset,
    )
    return [dict(r) for r in rows], total or 0


async def get_latest_analysis(repository_id: UUID) -> dict | None:
    """Fetch the most recently created analysis for a repository."""
    pool = await get_pool()
    row = await pool.fetchrow(
        f"""
        SELECT {_DETAIL_COLUMNS}
        FROM analysis_results a
        WHERE a.repository_id = $1
        ORDER BY a.created_at DESC
        LIMIT 1
        """,
        repository_id,
    )
    return dict(row) if row else None


async def aggregate_analyses(
    start: datetime,
    end: datetime,
    repository_id: UUID | None = None,
) -> dict:
    """Count, average scores and summed issues for analyses in ``[start, end)``."""
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        SELECT
            count(*) AS total,
            avg(overall_score) AS avg_overall,
            avg(quality_score) AS avg_quality,
            avg(security_score) AS avg_security,
            avg(performance_score) AS avg_performance,
            avg(maintainability_score) AS avg_maintainability,
            coalesce(sum(critical_issues), 0) AS sum_critical,
            coalesce(sum(major_issues), 0) AS sum_major,
            coalesce(sum(minor_issues), 0) AS sum_minor,
            coalesce(sum(suggestions), 0) AS sum_suggestions
        FROM analysis_results
        WHERE created_at >= $1 AND created_at < $2
          AND ($3::uuid IS NULL OR repository_id = $3)
        """,
        start,
        end,
        repository_id,
    )
    return dict(row)


async def get_analyses_since(
    start: datetime,
    repository_id: UUID | None = None,
) -> list[dict]:
    """Fetch score/issue columns for analyses created since *start*, oldest first."""
    pool = await get_pool()
    rows = await pool.fetch(
        """
        SELECT created_at,
               overall_score, quality_score, security_score,
               performance_score, maintainability_score,
               critical_issues, major_issues, minor_issues
        FROM analysis_results
        WHERE created_at >= $1
          AND ($2::uuid IS NULL OR repository_id = $2)
        ORDER BY created_at ASC
        """,
        start,
        repository_id,
    )
    return [dict(r) for r in rows]
