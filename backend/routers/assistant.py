"""Assistant API endpoints: propose, apply and stream"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from models.assistant import ApplyRequest, ApplyResponse, ProposeRequest, ProposeResponse, StreamEvent
from services.action_parser import parse_model_output
from services.apply_coordinator import ApplyCoordinator
from services.config_manager import ConfigManager
from services.llm_service import LLMService
from services.proposal_builder import ProposalBuilder
from services.version_trail import VersionTrail
from services.workspace import Workspace

from .dependencies import get_version_trail, get_workspace

logger = logging.getLogger(__name__)

router = APIRouter()

PROPOSAL_SYSTEM_PROMPT = """You are a local coding assistant with direct file access. When the user gives an instruction, you must:
1) Produce a JSON "actions" array describing file operations to perform. Each action must be an object with:
   - "action": one of "create", "edit", "delete"
   - "path": relative path inside the workspace (like "src/foo.js")
   - For "create" and "edit" include "content" (string) with the COMPLETE new file content.
     For "create" optionally include "isDirectory": true.
2) Also produce a human-readable "assistant_text" explaining what you did or will do.
3) Output must contain a single JSON object block (no other surrounding text) so the server can parse it.

Example:
{
  "actions": [
    { "action": "create", "path": "src/newfile.js", "content": "// sample code" },
    { "action": "edit", "path": "src/existing.js", "content": "modified content" }
  ],
  "assistant_text": "I created src/newfile.js and updated src/existing.js to fix X."
}

Only reference files inside the workspace. Do not attempt to access system paths.
If the user's intent is only a review or explanation, return "actions": [] and put suggested
code snippets in "assistant_text"."""

STREAM_SYSTEM_PROMPT = "You are a helpful coding assistant. Be concise and include code blocks when returning code."


def build_proposal_messages(instruction: str) -> list[dict[str, str]]:
    """Build the role-tagged messages for a change proposal"""
    return [
        {"role": "system", "content": PROPOSAL_SYSTEM_PROMPT},
        {"role": "user", "content": instruction},
    ]


@router.post("/propose", response_model=ProposeResponse)
async def propose_changes(
    request: ProposeRequest,
    workspace: Workspace = Depends(get_workspace),
) -> ProposeResponse:
    """Ask the model for file changes and preview them as diffs (no workspace mutation)"""
    if not request.instruction.strip():
        raise HTTPException(status_code=400, detail="instruction required")

    config = ConfigManager.get_instance().get_config()
    llm_service = LLMService(config, provider=request.backendProfile)

    raw_text = await llm_service.complete(
        build_proposal_messages(request.instruction),
        model=request.model,
        temperature=request.temperature,
        max_tokens=request.maxTokens,
    )
    parsed = await parse_model_output(
        raw_text,
        llm=llm_service,
        repair_on_failure=request.repairOnFailure,
        model=request.model,
    )
    logger.info(
        "Proposal parsed as %s with %d action(s)%s",
        parsed.status.value,
        len(parsed.actions),
        " after repair" if parsed.repaired else "",
    )

    diffs = ProposalBuilder(workspace).build(parsed.actions)

    return ProposeResponse(
        provider=llm_service.provider,
        assistantNarrative=parsed.assistant_text,
        rawModelText=parsed.raw_text,
        actions=parsed.actions,
        diffs=diffs,
        parseStatus=parsed.status.value,
        repaired=parsed.repaired,
    )


@router.post("/apply", response_model=ApplyResponse)
async def apply_changes(
    request: ApplyRequest,
    workspace: Workspace = Depends(get_workspace),
    version_trail: VersionTrail = Depends(get_version_trail),
) -> ApplyResponse:
    """Apply approved actions (optionally hunk-filtered) and commit the touched paths"""
    coordinator = ApplyCoordinator(workspace, version_trail)
    return await coordinator.apply(request.actions, request.commitMessage)


@router.get("/stream")
async def stream_reply(instruction: str, backendProfile: str = "openai", model: str | None = None):
    """Stream a free-form reply as server-sent events"""
    if not instruction.strip():
        raise HTTPException(status_code=400, detail="instruction query required")

    config = ConfigManager.get_instance().get_config()
    llm_service = LLMService(config, provider=backendProfile)
    messages = [
        {"role": "system", "content": STREAM_SYSTEM_PROMPT},
        {"role": "user", "content": instruction},
    ]

    async def event_generator():
        try:
            async for chunk in llm_service.complete_stream(messages, model=model, max_tokens=2048):
                event = StreamEvent(type="content", chunk=chunk)
                yield {"event": "message", "data": event.model_dump_json()}

            event = StreamEvent(type="done", done=True, metadata={"provider": llm_service.provider})
            yield {"event": "done", "data": event.model_dump_json()}

        except Exception as e:
            logger.error("Stream error: %s", e)
            event = StreamEvent(type="error", error=str(e))
            yield {"event": "error", "data": event.model_dump_json()}

    return EventSourceResponse(event_generator())
