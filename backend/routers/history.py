"""Version trail API endpoints"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from models.history import HistoryResponse, RevertRequest, RevertResponse
from services.errors import VersionTrailFailure
from services.version_trail import VersionTrail
from services.workspace import Workspace

from .dependencies import get_version_trail, get_workspace

router = APIRouter()


@router.get("", response_model=HistoryResponse)
async def get_history(
    limit: int = Query(50, ge=1, le=1000),
    version_trail: VersionTrail = Depends(get_version_trail),
) -> HistoryResponse:
    """Most recent version-trail entries, newest first"""
    entries = await version_trail.log(limit)
    return HistoryResponse(ok=True, entries=entries)


@router.post("/revert", response_model=RevertResponse)
async def revert_commit(
    request: RevertRequest,
    workspace: Workspace = Depends(get_workspace),
    version_trail: VersionTrail = Depends(get_version_trail),
) -> RevertResponse:
    """Undo a commit by creating a new one; history is never rewritten"""
    async with workspace.mutation_lock:
        try:
            commit = await version_trail.revert(request.hash)
        except VersionTrailFailure as e:
            return RevertResponse(ok=False, error=str(e))
    return RevertResponse(ok=True, commit=commit)
