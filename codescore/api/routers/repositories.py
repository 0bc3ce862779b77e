"""Repositories router -- trigger analyses, browse history, delete."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from codescore.services.analysis_service import (
    delete_repository,
    get_latest_repository_analysis,
    get_repository_analyses,
    start_analysis,
)

router = APIRouter(prefix="/repositories", tags=["repositories"])


class StartAnalysisRequest(BaseModel):
    """Request body for triggering an analysis run."""

    requester_id: UUID = Field(..., description="User whose GitHub token is used")
    branch: str | None = Field(
        None,
        min_length=1,
        max_length=255,
        pattern=r"^[a-zA-Z0-9._/-]+$",
        description="Branch to analyze; defaults to the repository's default branch",
    )
    analysis_type: Literal["full", "incremental", "pr"] = "full"
    triggered_by: Literal["webhook", "manual", "scheduled"] = "manual"


@router.post("/{repository_id}/analyses", status_code=status.HTTP_202_ACCEPTED)
async def trigger_analysis(repository_id: UUID, body: StartAnalysisRequest) -> dict:
    """Start an analysis run in the background.

    Returns immediately with ``status: processing``; the stored result
    shows up in the history once the run finishes.
    """
    result = await start_analysis(
        repository_id,
        requester_id=body.requester_id,
        branch=body.branch,
        analysis_type=body.analysis_type,
        triggered_by=body.triggered_by,
    )
    return {"message": "Analysis started", **result}


@router.get("/{repository_id}/analyses")
async def list_analyses(
    repository_id: UUID,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> dict:
    """Analysis history for a repository, newest first."""
    return await get_repository_analyses(repository_id, limit=limit, offset=offset)


@router.get("/{repository_id}/analyses/latest")
async def latest_analysis(repository_id: UUID) -> dict:
    return await get_latest_repository_analysis(repository_id)


@router.delete("/{repository_id}")
async def remove_repository(repository_id: UUID) -> dict:
    """Delete a repository and, by cascade, every analysis of it."""
    await delete_repository(repository_id)
    return {"status": "deleted"}
