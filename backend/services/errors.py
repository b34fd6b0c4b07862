"""Error taxonomy shared by the assistant services"""

from __future__ import annotations


class AssistantError(Exception):
    """Base class for every error the backend reports to callers"""

    status_code = 500
    code = "assistant_error"


class OutOfBoundsPath(AssistantError):
    """A relative path resolved outside the workspace root"""

    status_code = 400
    code = "out_of_bounds_path"

    def __init__(self, path: str):
        super().__init__(f"Path outside workspace forbidden: {path}")
        self.path = path


class MissingCredential(AssistantError):
    """A backend credential or endpoint address is not configured"""

    status_code = 503
    code = "missing_credential"


class UnsupportedBackend(AssistantError):
    status_code = 400
    code = "unsupported_backend"

    def __init__(self, provider: str):
        super().__init__(f"Unsupported backend profile: {provider}")
        self.provider = provider


class UpstreamBackendError(AssistantError):
    """The model backend answered with a non-success response or could not be reached"""

    status_code = 502
    code = "upstream_backend_error"

    def __init__(self, provider: str, status: int | None, text: str):
        label = f"{provider} error {status}" if status is not None else f"{provider} unreachable"
        super().__init__(f"{label}: {text}")
        self.provider = provider
        self.status = status
        self.text = text


class MalformedProposal(AssistantError):
    """Model output could not be turned into a structured action block"""

    status_code = 422
    code = "malformed_proposal"


class PatchApplyFailure(AssistantError):
    """Selective hunk application was rejected"""

    status_code = 409
    code = "patch_apply_failure"


class VersionTrailFailure(AssistantError):
    """A version-control command could not complete"""

    status_code = 500
    code = "version_trail_failure"


class RevertConflict(VersionTrailFailure):
    status_code = 409
    code = "revert_conflict"


class NothingToCommit(VersionTrailFailure):
    """The batch left nothing for version control to record"""

    code = "nothing_to_commit"

    def __init__(self, message: str = "nothing to commit"):
        super().__init__(message)


class UnknownActionKind(AssistantError):
    status_code = 400
    code = "unknown_action_kind"

    def __init__(self, kind):
        super().__init__(f"unknown action type: {kind}")
        self.kind = kind
