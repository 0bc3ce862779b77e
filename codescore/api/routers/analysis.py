"""Analyses router -- single results, summaries, trends and comparisons."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Query

from codescore.services.analysis_service import (
    compare_analyses,
    get_analysis_detail,
    get_trend_chart,
    summarize_analyses,
)

router = APIRouter(prefix="/analyses", tags=["analyses"])


@router.get("/summary")
async def analysis_summary(
    repository_id: UUID | None = Query(default=None),
    timeframe: Literal["7d", "30d", "90d"] = Query(default="30d"),
) -> dict:
    """Average scores and issue totals for the timeframe, with trend."""
    return await summarize_analyses(repository_id, timeframe)


@router.get("/trends")
async def analysis_trends(
    repository_id: UUID | None = Query(default=None),
    days: int = Query(default=30, ge=1),
) -> dict:
    """Per-day score and issue averages.  More than 365 days is rejected with 400."""
    return await get_trend_chart(repository_id, days)


@router.get("/compare/{first_id}/{second_id}")
async def compare(first_id: UUID, second_id: UUID) -> dict:
    return await compare_analyses(first_id, second_id)


@router.get("/{analysis_id}")
async def analysis_detail(analysis_id: UUID) -> dict:
    """Full stored result of one analysis run."""
    return await get_analysis_detail(analysis_id)
