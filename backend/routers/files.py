"""Workspace file API endpoints"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from models.files import (
    CreateRequest,
    DeleteRequest,
    FileOpResponse,
    ListResponse,
    ReadResponse,
    SaveRequest,
)
from services.workspace import Workspace

from .dependencies import get_workspace

router = APIRouter()


@router.get("/list", response_model=ListResponse)
async def list_files(path: str = ".", workspace: Workspace = Depends(get_workspace)) -> ListResponse:
    """List one directory level"""
    target = workspace.resolve(path)
    if not target.is_dir():
        raise HTTPException(status_code=400, detail="path is not a directory")
    return ListResponse(root=path, items=workspace.list_dir(path))


@router.get("/read", response_model=ReadResponse)
async def read_file(path: str, workspace: Workspace = Depends(get_workspace)) -> ReadResponse:
    target = workspace.resolve(path)
    if target.is_dir():
        raise HTTPException(status_code=400, detail="path is directory")
    if not target.exists():
        raise HTTPException(status_code=404, detail="file not found")
    try:
        content = workspace.read_text(path)
    except UnicodeDecodeError:
        raise HTTPException(status_code=415, detail="file is not UTF-8 text")
    return ReadResponse(path=path, content=content)


@router.post("/save", response_model=FileOpResponse)
async def save_file(request: SaveRequest, workspace: Workspace = Depends(get_workspace)) -> FileOpResponse:
    async with workspace.mutation_lock:
        workspace.write_text(request.path, request.content)
    return FileOpResponse(ok=True, path=request.path)


@router.post("/create", response_model=FileOpResponse)
async def create_entry(request: CreateRequest, workspace: Workspace = Depends(get_workspace)) -> FileOpResponse:
    """Create a directory or an empty file (an existing file is left untouched)"""
    async with workspace.mutation_lock:
        if request.isDirectory:
            workspace.make_dir(request.path)
        else:
            workspace.create_file(request.path)
    return FileOpResponse(ok=True, path=request.path, isDirectory=request.isDirectory)


@router.post("/delete", response_model=FileOpResponse)
async def delete_entry(request: DeleteRequest, workspace: Workspace = Depends(get_workspace)) -> FileOpResponse:
    async with workspace.mutation_lock:
        workspace.remove(request.path)
    return FileOpResponse(ok=True, path=request.path)
