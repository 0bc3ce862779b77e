"""Tests for the analysis repository -- SQL shape and row mapping."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from codescore.repos.analysis_repo import (
    aggregate_analyses,
    create_analysis_result,
    get_analyses_by_repository,
    get_analysis_result,
)
from tests.conftest import ANALYSIS_ID, REPO_ID, USER_ID

BASE = "codescore.repos.analysis_repo"

_RECORD = {
    "repository_id": REPO_ID,
    "user_id": USER_ID,
    "commit_sha": "abc123",
    "branch": "main",
    "analysis_type": "full",
    "triggered_by": "manual",
    "overall_score": 9.1,
    "quality_score": 9.0,
    "security_score": 9.5,
    "performance_score": 9.0,
    "maintainability_score": 8.8,
    "total_lines": 120,
    "total_files": 4,
    "code_complexity": 1.5,
    "duplicate_lines": 2,
    "critical_issues": 0,
    "major_issues": 0,
    "minor_issues": 1,
    "suggestions": 2,
    "detailed_results": {"issues": []},
    "ai_insights": {"strengths": ["tidy"]},
    "ai_summary": "Fine.",
    "ai_degraded": False,
    "ai_degraded_reason": None,
}


@pytest.mark.asyncio
@patch(f"{BASE}.get_pool")
async def test_create_inserts_and_stamps_repository(mock_get_pool):
    created_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
    pool = AsyncMock()
    pool.fetchrow.return_value = {"id": ANALYSIS_ID, "created_at": created_at}
    mock_get_pool.return_value = pool

    result = await create_analysis_result(_RECORD)

    assert result == {"id": ANALYSIS_ID, "created_at": created_at}
    pool.fetchrow.assert_awaited_once()
    sql, *args = pool.fetchrow.call_args.args
    assert "INSERT INTO analysis_results" in sql
    assert "UPDATE repositories" in sql
    assert "last_analyzed_at" in sql
    assert len(args) == 24
    assert args[0] == REPO_ID
    assert json.loads(args[19]) == {"issues": []}
    assert json.loads(args[20]) == {"strengths": ["tidy"]}
    assert args[22] is False


@pytest.mark.asyncio
@patch(f"{BASE}.get_pool")
async def test_get_analysis_result_missing(mock_get_pool):
    pool = AsyncMock()
    pool.fetchrow.return_value = None
    mock_get_pool.return_value = pool
    assert await get_analysis_result(ANALYSIS_ID) is None


@pytest.mark.asyncio
@patch(f"{BASE}.get_pool")
async def test_get_analyses_by_repository_pages(mock_get_pool):
    pool = AsyncMock()
    pool.fetchval.return_value = 42
    pool.fetch.return_value = [{"id": ANALYSIS_ID}]
    mock_get_pool.return_value = pool

    items, total = await get_analyses_by_repository(REPO_ID, limit=10, offset=20)

    assert total == 42
    assert items == [{"id": ANALYSIS_ID}]
    sql, *args = pool.fetch.call_args.args
    assert "ORDER BY a.created_at DESC" in sql
    assert args == [REPO_ID, 10, 20]


@pytest.mark.asyncio
@patch(f"{BASE}.get_pool")
async def test_aggregate_passes_optional_repository(mock_get_pool):
    pool = AsyncMock()
    pool.fetchrow.return_value = {"total": 0}
    mock_get_pool.return_value = pool
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    end = datetime(2026, 1, 31, tzinfo=timezone.utc)

    await aggregate_analyses(start, end)

    assert pool.fetchrow.call_args.args[1:] == (start, end, None)
