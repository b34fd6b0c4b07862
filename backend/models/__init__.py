"""Models module - Pydantic data models"""

from .action import Action, ActionKind, ApplyAction
from .diff import DiffHunk, ProposedChange
from .assistant import (
    ActionOutcome,
    ApplyRequest,
    ApplyResponse,
    ProposeRequest,
    ProposeResponse,
    StreamEvent,
    VersionTrailResult,
)
from .history import HistoryEntry, HistoryResponse, RevertRequest, RevertResponse
from .files import (
    CreateRequest,
    DeleteRequest,
    FileEntry,
    FileOpResponse,
    ListResponse,
    ReadResponse,
    SaveRequest,
)

__all__ = [
    # Action models
    "Action",
    "ActionKind",
    "ApplyAction",
    # Diff models
    "DiffHunk",
    "ProposedChange",
    # Assistant models
    "ProposeRequest",
    "ProposeResponse",
    "ApplyRequest",
    "ApplyResponse",
    "ActionOutcome",
    "VersionTrailResult",
    "StreamEvent",
    # History models
    "HistoryEntry",
    "HistoryResponse",
    "RevertRequest",
    "RevertResponse",
    # File models
    "FileEntry",
    "ListResponse",
    "ReadResponse",
    "SaveRequest",
    "CreateRequest",
    "DeleteRequest",
    "FileOpResponse",
]
