"""
Apply Coordinator - Mutate the workspace for approved actions and record the batch in history
"""

from __future__ import annotations

import logging

from models.action import ActionKind, ApplyAction
from models.assistant import ActionOutcome, ApplyResponse, VersionTrailResult

from .errors import AssistantError, NothingToCommit, PatchApplyFailure, UnknownActionKind, VersionTrailFailure
from .patch_engine import PatchEngine
from .version_trail import DEFAULT_COMMIT_MESSAGE, VersionTrail
from .workspace import Workspace

logger = logging.getLogger(__name__)

UNRECORDED_WARNING = (
    "Files were written to the workspace but the version-trail commit failed; "
    "these changes are not recorded in history."
)


class ApplyCoordinator:
    """Apply a batch of approved actions, best-effort per action.

    Actions are processed in input order and each outcome is independent. The
    touched paths are then committed as one version-trail entry. Writes and the
    commit are not atomic: a failed commit leaves the written files in place
    and is reported in the response warnings.
    """

    def __init__(
        self,
        workspace: Workspace,
        version_trail: VersionTrail | None = None,
        patch_engine: PatchEngine | None = None,
    ):
        self.workspace = workspace
        self.version_trail = version_trail or VersionTrail(workspace)
        self.patch_engine = patch_engine or PatchEngine()

    async def apply(self, actions: list[ApplyAction], commit_message: str | None = None) -> ApplyResponse:
        async with self.workspace.mutation_lock:
            outcomes: list[ActionOutcome] = []
            touched: list[str] = []
            changed_files: dict[str, str] = {}

            for action in actions:
                outcome = self._apply_one(action, touched, changed_files)
                if not outcome.ok:
                    logger.warning("Action %s %s failed: %s", action.kind, action.path, outcome.error)
                outcomes.append(outcome)

            trail, unrecorded = await self._record(touched, commit_message or DEFAULT_COMMIT_MESSAGE)

        warnings = [UNRECORDED_WARNING] if unrecorded else []

        return ApplyResponse(
            ok=True,
            actionsApplied=outcomes,
            versionTrailResult=trail,
            changedFiles=changed_files,
            warnings=warnings,
        )

    def _apply_one(self, action: ApplyAction, touched: list[str], changed_files: dict[str, str]) -> ActionOutcome:
        invalid = action.validation_error()
        if invalid:
            return ActionOutcome(ok=False, action=action, error=invalid)

        try:
            rel_path = self.workspace.relative(action.path)
            hunks_applied = None

            if action.kind == ActionKind.CREATE.value and action.isDirectory:
                self.workspace.make_dir(action.path)
            elif action.kind in (ActionKind.CREATE.value, ActionKind.EDIT.value):
                if action.kind == ActionKind.EDIT.value and action.selectedHunks:
                    content = self._apply_hunks(action)
                    hunks_applied = len(action.selectedHunks)
                else:
                    content = action.content or ""
                self.workspace.write_text(action.path, content)
                touched.append(rel_path)
                changed_files[action.path] = content
            elif action.kind == ActionKind.DELETE.value:
                self.workspace.remove(action.path)
                touched.append(rel_path)
            else:
                raise UnknownActionKind(action.kind)
        except (AssistantError, OSError, ValueError) as e:
            return ActionOutcome(ok=False, action=action, error=str(e))

        return ActionOutcome(ok=True, action=action, hunksApplied=hunks_applied)

    def _apply_hunks(self, action: ApplyAction) -> str:
        if not action.originalDiff:
            raise PatchApplyFailure("originalDiff is required when selectedHunks are given")
        before = self.workspace.read_text_or_empty(action.path)
        return self.patch_engine.apply_selected(before, action.originalDiff, action.selectedHunks)

    async def _record(self, touched: list[str], message: str) -> tuple[VersionTrailResult, bool]:
        """Commit the touched paths; the flag is set when written changes went unrecorded"""
        if not touched:
            return VersionTrailResult(ok=False, error=str(NothingToCommit())), False
        try:
            commit = await self.version_trail.commit(touched, message)
        except NothingToCommit as e:
            logger.info("No version trail entry for this batch: %s", e)
            return VersionTrailResult(ok=False, error=str(e)), False
        except VersionTrailFailure as e:
            logger.error("Version trail commit failed: %s", e)
            return VersionTrailResult(ok=False, error=str(e)), True
        return VersionTrailResult(ok=True, commit=commit), False
