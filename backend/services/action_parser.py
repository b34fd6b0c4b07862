"""
Action Parser - Turn free-form model output into a structured list of file actions

Model output goes through three stages: a heuristic normalisation of the raw
text, a strict JSON parse, and (optionally) a single repair request to the
model backend. Every path ends in a ParsedProposal; nothing is raised to the
caller.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from models.action import Action

from .errors import MalformedProposal

logger = logging.getLogger(__name__)

REPAIR_SYSTEM_PROMPT = (
    "You are a JSON repair assistant. The user gave an output that should contain a single "
    "JSON object with an \"actions\" array and an \"assistant_text\" string. Return only the "
    "corrected JSON object, exactly one object, with valid JSON syntax. Do not include any "
    "explanation, backticks or other text."
)
REPAIR_MAX_TOKENS = 2048

_FENCE_LINE_RE = re.compile(r"^[ \t]*```[\w-]*[ \t]*$", re.MULTILINE)
_CLOSERS = {"{": "}", "[": "]"}


class ParseStatus(str, Enum):
    ACTIONS = "actions"
    EMPTY = "empty"
    TEXT_ONLY = "text_only"


@dataclass
class ParsedProposal:
    """Outcome of parsing one model response"""

    status: ParseStatus
    assistant_text: str
    raw_text: str
    actions: list[Action] = field(default_factory=list)
    repaired: bool = False


def _last_significant(out: list[str]) -> str:
    for piece in reversed(out):
        stripped = piece.rstrip()
        if stripped:
            return stripped[-1]
    return ""


def _fix_structure(block: str, quote_keys: bool = False) -> str:
    """Drop trailing commas, optionally quote bare keys, and close unbalanced brackets.

    Only characters outside JSON strings are touched.
    """
    out: list[str] = []
    stack: list[str] = []
    in_string = False
    escaped = False
    i = 0
    n = len(block)

    while i < n:
        ch = block[i]
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            i += 1
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
            out.append(ch)
        elif ch in "}]":
            if stack and stack[-1] == ch:
                stack.pop()
            out.append(ch)
        elif ch == ",":
            j = i + 1
            while j < n and block[j].isspace():
                j += 1
            if j < n and block[j] in "}]":
                i += 1
                continue
            out.append(ch)
        elif quote_keys and (ch.isalpha() or ch == "_"):
            j = i
            while j < n and (block[j].isalnum() or block[j] == "_"):
                j += 1
            word = block[i:j]
            k = j
            while k < n and block[k].isspace():
                k += 1
            if k < n and block[k] == ":" and _last_significant(out) in ("{", ","):
                out.append(f'"{word}"')
            else:
                out.append(word)
            i = j
            continue
        else:
            out.append(ch)
        i += 1

    if in_string:
        out.append('"')
    out.extend(reversed(stack))
    return "".join(out)


def _slice_span(block: str, opener: str, closer: str) -> str:
    first = block.find(opener)
    if first == -1:
        return block
    last = block.rfind(closer)
    return block[first : last + 1] if last > first else block[first:]


def _list_first(block: str) -> bool:
    bracket = block.find("[")
    brace = block.find("{")
    return bracket != -1 and (brace == -1 or bracket < brace)


def normalize_json_block(text: str, quote_keys: bool = False, allow_list: bool = True) -> str:
    """Best-effort isolation of the JSON value inside model output.

    A bare action list (a `[` before the first `{`) is cut from the first `[`
    to the last `]`; otherwise from the first `{` to the last `}`.
    """
    block = _FENCE_LINE_RE.sub("", text or "")
    if allow_list and _list_first(block):
        block = _slice_span(block, "[", "]")
    else:
        block = _slice_span(block, "{", "}")
    return _fix_structure(block, quote_keys=quote_keys)


def parse_json_block(text: str) -> dict[str, Any]:
    """Strictly parse normalised model output; raises MalformedProposal"""
    last_error: Exception | None = None
    # Prose such as "[note]" ahead of the object must not hide it
    list_modes = (True, False) if _list_first(_FENCE_LINE_RE.sub("", text or "")) else (True,)
    attempts = [(quote_keys, allow_list) for quote_keys in (False, True) for allow_list in list_modes]
    for quote_keys, allow_list in attempts:
        candidate = normalize_json_block(text, quote_keys=quote_keys, allow_list=allow_list)
        try:
            parsed = json.loads(candidate, strict=False)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if isinstance(parsed, list):
            parsed = {"actions": parsed}
        if not isinstance(parsed, dict):
            raise MalformedProposal(f"expected a JSON object, got {type(parsed).__name__}")
        return parsed
    raise MalformedProposal(f"could not parse action block: {last_error}")


def _to_proposal(parsed: dict[str, Any], raw_text: str, repaired: bool) -> ParsedProposal:
    raw_actions = parsed.get("actions")
    if not isinstance(raw_actions, list):
        raw_actions = []
    actions = [Action.from_raw(item) for item in raw_actions]
    narrative = parsed.get("assistant_text")
    if not isinstance(narrative, str) or not narrative:
        narrative = raw_text
    return ParsedProposal(
        status=ParseStatus.ACTIONS if actions else ParseStatus.EMPTY,
        assistant_text=narrative,
        raw_text=raw_text,
        actions=actions,
        repaired=repaired,
    )


async def request_repair(llm, raw_text: str, model: str | None = None) -> str:
    """Ask the backend for exactly one corrected JSON object"""
    messages = [
        {"role": "system", "content": REPAIR_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": (
                f"Here is the original output that failed to parse:\n\n{raw_text}\n\n"
                "Return just the corrected JSON object."
            ),
        },
    ]
    return await llm.complete(messages, model=model, temperature=0.0, max_tokens=REPAIR_MAX_TOKENS)


async def parse_model_output(
    raw_text: str,
    llm=None,
    repair_on_failure: bool = True,
    model: str | None = None,
) -> ParsedProposal:
    """Parse model output into actions, with at most one repair pass.

    `llm` is anything with an async `complete(messages, model=, temperature=, max_tokens=)`;
    without it no repair is attempted.
    """
    raw_text = raw_text or ""
    try:
        return _to_proposal(parse_json_block(raw_text), raw_text, repaired=False)
    except MalformedProposal as e:
        logger.info("Model output did not parse: %s", e)

    if repair_on_failure and llm is not None:
        try:
            repaired_text = await request_repair(llm, raw_text, model)
            return _to_proposal(parse_json_block(repaired_text), raw_text, repaired=True)
        except MalformedProposal as e:
            logger.warning("Repaired output still did not parse: %s", e)
        except Exception as e:
            logger.warning("Repair request failed: %s", e)

    return ParsedProposal(status=ParseStatus.TEXT_ONLY, assistant_text=raw_text, raw_text=raw_text)
