"""Workspace file API data models"""

from __future__ import annotations

from pydantic import BaseModel, Field


class FileEntry(BaseModel):
    name: str
    path: str
    isDirectory: bool


class ListResponse(BaseModel):
    root: str
    items: list[FileEntry]


class ReadResponse(BaseModel):
    path: str
    content: str


class SaveRequest(BaseModel):
    path: str = Field(min_length=1)
    content: str = ""


class CreateRequest(BaseModel):
    path: str = Field(min_length=1)
    isDirectory: bool = False


class DeleteRequest(BaseModel):
    path: str = Field(min_length=1)


class FileOpResponse(BaseModel):
    ok: bool
    path: str
    isDirectory: bool | None = None
