"""Version trail data models"""

from __future__ import annotations

from pydantic import BaseModel


class HistoryEntry(BaseModel):
    """One commit in the workspace history"""

    hash: str
    author: str
    date: str
    subject: str


class HistoryResponse(BaseModel):
    ok: bool
    entries: list[HistoryEntry] = []


class RevertRequest(BaseModel):
    hash: str


class RevertResponse(BaseModel):
    ok: bool
    commit: str | None = None
    error: str | None = None
