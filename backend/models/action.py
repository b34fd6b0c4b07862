"""File-change action models"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class ActionKind(str, Enum):
    """Kinds of workspace mutation an action can request"""

    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


class Action(BaseModel):
    """An intent to mutate one workspace path.

    `kind` and `path` are optional at the model level so a malformed action
    coming from the model can still be echoed back with a per-action error.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    kind: str | None = Field(default=None, validation_alias=AliasChoices("kind", "action"))
    path: str | None = None
    content: str | None = None
    isDirectory: bool = Field(default=False, validation_alias=AliasChoices("isDirectory", "is_directory"))

    @field_validator("content", mode="before")
    @classmethod
    def _serialise_structured_content(cls, value: Any) -> Any:
        # Models sometimes emit JSON file content as an object instead of a string
        if isinstance(value, (dict, list)):
            return json.dumps(value, indent=2) + "\n"
        return value

    @classmethod
    def from_raw(cls, raw: Any) -> "Action":
        """Build an action from one entry of a parsed model response"""
        if not isinstance(raw, dict):
            return cls()
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            logger.warning("Discarding malformed action fields: %s", e.errors()[:1])
            kind = raw.get("kind", raw.get("action"))
            path = raw.get("path")
            return cls(
                kind=kind if isinstance(kind, str) else None,
                path=path if isinstance(path, str) else None,
            )

    def validation_error(self) -> str | None:
        """Reason this action cannot be previewed or applied, if any"""
        if not self.kind or not self.path:
            return "invalid action object"
        return None


class ApplyAction(Action):
    """An approved action, optionally restricted to a subset of its hunks"""

    selectedHunks: list[str] | None = None
    originalDiff: str | None = None
