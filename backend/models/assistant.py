"""Assistant propose/apply/stream data models"""

from __future__ import annotations

from pydantic import BaseModel

from .action import Action, ApplyAction
from .diff import ProposedChange


class ProposeRequest(BaseModel):
    """Request for a change proposal"""

    instruction: str
    backendProfile: str = "openai"
    model: str | None = None
    temperature: float | None = None
    maxTokens: int | None = None
    repairOnFailure: bool = True


class ProposeResponse(BaseModel):
    """Preview payload: narrative, parsed actions and per-action diffs"""

    provider: str
    assistantNarrative: str
    rawModelText: str
    actions: list[Action] = []
    diffs: list[ProposedChange] = []
    parseStatus: str  # "actions", "empty", "text_only"
    repaired: bool = False


class ApplyRequest(BaseModel):
    """Request to apply approved actions"""

    actions: list[ApplyAction] = []
    commitMessage: str = "Assistant applied changes"


class ActionOutcome(BaseModel):
    """Result of applying one action"""

    ok: bool
    action: Action
    error: str | None = None
    hunksApplied: int | None = None


class VersionTrailResult(BaseModel):
    """Outcome of recording an apply batch in version history"""

    ok: bool
    commit: str | None = None
    error: str | None = None


class ApplyResponse(BaseModel):
    """Per-action outcomes plus the version-trail result.

    File writes and the commit are not atomic: when `versionTrailResult.ok` is
    false the files listed in `changedFiles` are written but not in history.

    `changedFiles` maps each successfully written create/edit path (as sent) to
    its final content. Directory creates and deletes have no content and are
    not listed; their outcomes are in `actionsApplied`.
    """

    ok: bool
    actionsApplied: list[ActionOutcome]
    versionTrailResult: VersionTrailResult
    changedFiles: dict[str, str] = {}
    warnings: list[str] = []


class StreamEvent(BaseModel):
    """SSE stream event"""

    type: str  # "content", "done", "error"
    chunk: str | None = None
    metadata: dict | None = None
    done: bool = False
    error: str | None = None
