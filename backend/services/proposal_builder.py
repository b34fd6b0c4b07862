"""
Proposal Builder - Per-action diff and hunk previews, without touching the workspace
"""

from __future__ import annotations

import logging

from models.action import Action, ActionKind
from models.diff import ProposedChange

from .errors import AssistantError, UnknownActionKind
from .patch_engine import PatchEngine
from .workspace import Workspace

logger = logging.getLogger(__name__)

_KINDS = {kind.value for kind in ActionKind}


class ProposalBuilder:
    """Build read-only previews for a list of actions"""

    def __init__(self, workspace: Workspace, patch_engine: PatchEngine | None = None):
        self.workspace = workspace
        self.patch_engine = patch_engine or PatchEngine()

    def build(self, actions: list[Action]) -> list[ProposedChange]:
        """One ProposedChange per action, in input order"""
        return [self._preview(action) for action in actions]

    def _preview(self, action: Action) -> ProposedChange:
        invalid = action.validation_error()
        if invalid:
            return ProposedChange(action=action, ok=False, error=invalid)

        try:
            if action.kind not in _KINDS:
                raise UnknownActionKind(action.kind)
            before = self.workspace.read_text_or_empty(action.path)
            after = self._proposed_content(action)
            diff = self.patch_engine.diff(action.path, before, after)
            hunks = self.patch_engine.split_into_hunks(diff)
        except (AssistantError, OSError, ValueError) as e:
            logger.info("Preview failed for %s %s: %s", action.kind, action.path, e)
            return ProposedChange(action=action, ok=False, error=str(e))

        return ProposedChange(action=action, ok=True, diff=diff, hunks=hunks)

    @staticmethod
    def _proposed_content(action: Action) -> str:
        if action.kind == ActionKind.DELETE.value:
            return ""
        if action.kind == ActionKind.CREATE.value and action.isDirectory:
            return ""
        return action.content or ""
