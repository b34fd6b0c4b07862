"""Diff-related data models"""

from __future__ import annotations

from pydantic import BaseModel

from .action import Action


class DiffHunk(BaseModel):
    """A single change hunk in a diff, identified by its exact text"""

    header: str  # "@@ -a,b +c,d @@"
    hunkText: str  # header line + body, as it appears in the diff
    oldStart: int | None = None  # 1-indexed
    oldLines: int | None = None
    newStart: int | None = None
    newLines: int | None = None
    structured: bool = True  # False when produced by the lossy marker split


class ProposedChange(BaseModel):
    """Preview of one action: its diff and hunks, or the reason it failed"""

    action: Action
    ok: bool
    diff: str | None = None
    hunks: list[DiffHunk] | None = None
    error: str | None = None
