"""Shared FastAPI dependencies"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, Request

from services.config_manager import ConfigManager
from services.version_trail import VersionTrail
from services.workspace import Workspace


def get_config() -> dict[str, Any]:
    """Current configuration with environment overrides applied"""
    return ConfigManager.get_instance().get_config()


def get_workspace(request: Request) -> Workspace:
    """The workspace bound to this app, created from config on first use"""
    state = request.app.state
    workspace = getattr(state, "workspace", None)
    if workspace is None:
        root = getattr(state, "workspace_root", None) or get_config()["workspace"]["root"]
        workspace = Workspace(root)
        workspace.ensure_root()
        state.workspace = workspace
    return workspace


def get_version_trail(request: Request, workspace: Workspace = Depends(get_workspace)) -> VersionTrail:
    state = request.app.state
    version_trail = getattr(state, "version_trail", None)
    if version_trail is None or version_trail.workspace is not workspace:
        version_trail = VersionTrail(workspace)
        state.version_trail = version_trail
    return version_trail
