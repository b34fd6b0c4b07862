"""
Patch Engine - Unified diffs, hunk splitting and selective hunk application
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from difflib import unified_diff

from models.diff import DiffHunk

from .errors import PatchApplyFailure

logger = logging.getLogger(__name__)

NO_NEWLINE_MARKER = "\\ No newline at end of file"

_HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


class PatchParseError(ValueError):
    """Raised when text cannot be read as a unified diff"""


@dataclass
class ParsedHunk:
    """One hunk of a parsed patch, keeping its exact source text"""

    header: str
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: list[tuple[str, str]] = field(default_factory=list)  # (tag, content)
    text: str = ""


@dataclass
class FilePatch:
    """File section of a unified diff: the ---/+++ header and its hunks"""

    old_file: str
    new_file: str
    header: str
    hunks: list[ParsedHunk] = field(default_factory=list)


def split_lines(text: str) -> list[str]:
    """Split on "\\n" only, keeping line endings (a final unterminated line is kept as-is)"""
    if not text:
        return []
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _hunk_key(text: str) -> str:
    return text.rstrip("\n")


def _parse_hunk(lines: list[str], i: int) -> tuple[ParsedHunk, int]:
    header_line = lines[i]
    match = _HUNK_RE.match(header_line)
    if not match:
        raise PatchParseError(f"Malformed hunk header: {header_line.rstrip()}")

    hunk = ParsedHunk(
        header=header_line.rstrip("\n"),
        old_start=int(match.group(1)),
        old_count=int(match.group(2)) if match.group(2) is not None else 1,
        new_start=int(match.group(3)),
        new_count=int(match.group(4)) if match.group(4) is not None else 1,
    )
    raw = [header_line if header_line.endswith("\n") else header_line + "\n"]
    old_seen = new_seen = 0
    i += 1

    while old_seen < hunk.old_count or new_seen < hunk.new_count:
        if i >= len(lines):
            raise PatchParseError(f"Hunk truncated: {hunk.header}")
        line = lines[i]
        tag = line[0] if line.strip("\n") else " "
        if tag == "\\":
            if not hunk.lines:
                raise PatchParseError("No-newline marker before any hunk line")
            prev_tag, prev_content = hunk.lines[-1]
            hunk.lines[-1] = (prev_tag, prev_content.removesuffix("\n"))
            raw.append(line if line.endswith("\n") else line + "\n")
            i += 1
            continue
        if tag not in (" ", "+", "-"):
            raise PatchParseError(f"Malformed diff line prefix: {tag!r}")

        content = line[1:] if line.strip("\n") else "\n"
        if not content.endswith("\n"):
            content += "\n"
        if tag in (" ", "-"):
            old_seen += 1
        if tag in (" ", "+"):
            new_seen += 1
        if old_seen > hunk.old_count or new_seen > hunk.new_count:
            raise PatchParseError(f"Hunk longer than its header: {hunk.header}")
        hunk.lines.append((tag, content))
        raw.append(line if line.endswith("\n") else line + "\n")
        i += 1

    # Marker for the hunk's final line
    if i < len(lines) and lines[i].startswith("\\"):
        tag, content = hunk.lines[-1]
        hunk.lines[-1] = (tag, content.removesuffix("\n"))
        raw.append(lines[i] if lines[i].endswith("\n") else lines[i] + "\n")
        i += 1

    hunk.text = "".join(raw)
    return hunk, i


def parse_unified_diff(patch_text: str) -> list[FilePatch]:
    """Parse a unified diff that may contain several file sections"""
    lines = split_lines(patch_text)
    patches: list[FilePatch] = []
    current: FilePatch | None = None
    i = 0

    while i < len(lines):
        line = lines[i]
        if line.startswith("--- ") and i + 1 < len(lines) and lines[i + 1].startswith("+++ "):
            current = FilePatch(
                old_file=line[4:].rstrip("\n").split("\t")[0],
                new_file=lines[i + 1][4:].rstrip("\n").split("\t")[0],
                header=line + lines[i + 1],
            )
            patches.append(current)
            i += 2
            continue
        if line.startswith("@@"):
            if current is None:
                raise PatchParseError("Hunk found before any file header")
            hunk, i = _parse_hunk(lines, i)
            current.hunks.append(hunk)
            continue
        # Preamble lines (diff --git, Index:, ===) carry nothing we need
        i += 1

    if not patches:
        raise PatchParseError("No file header found in diff")
    return patches


class PatchEngine:
    """Compute diffs, split them into hunks and re-apply selected hunks"""

    def __init__(self, context_lines: int = 3):
        self.context_lines = context_lines

    def diff(self, path_label: str, before: str, after: str) -> str:
        """Unified diff text between two states of one file ("" when unchanged)"""
        out = []
        for line in unified_diff(
            split_lines(before or ""),
            split_lines(after or ""),
            fromfile=f"a/{path_label}",
            tofile=f"b/{path_label}",
            n=self.context_lines,
        ):
            if line.endswith("\n"):
                out.append(line)
            else:
                out.append(f"{line}\n{NO_NEWLINE_MARKER}\n")
        return "".join(out)

    def split_into_hunks(self, diff_text: str) -> list[DiffHunk]:
        """Ordered hunks of a diff, for preview"""
        if not diff_text or not diff_text.strip():
            return []
        try:
            patches = parse_unified_diff(diff_text)
        except PatchParseError as e:
            logger.warning("Falling back to marker split for unparseable diff: %s", e)
            return self._split_on_markers(diff_text)

        return [
            DiffHunk(
                header=hunk.header,
                hunkText=hunk.text,
                oldStart=hunk.old_start,
                oldLines=hunk.old_count,
                newStart=hunk.new_start,
                newLines=hunk.new_count,
            )
            for patch in patches
            for hunk in patch.hunks
        ]

    def _split_on_markers(self, diff_text: str) -> list[DiffHunk]:
        """Best-effort split on @@ lines; preview only, never used to apply"""
        pieces: list[list[str]] = []
        for line in split_lines(diff_text):
            if line.startswith("@@"):
                pieces.append([line])
            elif pieces:
                pieces[-1].append(line)

        hunks = []
        for piece in pieces:
            header = piece[0].rstrip("\n")
            match = _HUNK_RE.match(header)
            hunks.append(
                DiffHunk(
                    header=header,
                    hunkText="".join(piece),
                    oldStart=int(match.group(1)) if match else None,
                    oldLines=int(match.group(2) or 1) if match else None,
                    newStart=int(match.group(3)) if match else None,
                    newLines=int(match.group(4) or 1) if match else None,
                    structured=False,
                )
            )
        return hunks

    def apply_patch(self, before: str, patch_text: str) -> str:
        """Apply the first file section of a patch to `before`"""
        try:
            patches = parse_unified_diff(patch_text)
        except PatchParseError as e:
            raise PatchApplyFailure(f"could not parse patch: {e}") from e
        return self._apply_file_patch(before, patches[0])

    def apply_selected(self, before: str, original_patch: str, selected_hunk_texts: list[str]) -> str:
        """Rebuild the original patch with only the selected hunks and apply it.

        Hunks are matched by their exact text and kept in their original order.
        Raises PatchApplyFailure when the patch cannot be parsed, a selected hunk is
        not part of it, or `before` no longer matches the hunk context.
        """
        try:
            patches = parse_unified_diff(original_patch or "")
        except PatchParseError as e:
            raise PatchApplyFailure(f"could not parse original patch: {e}") from e

        file_patch = patches[0]
        wanted = {_hunk_key(text) for text in selected_hunk_texts}
        known = {_hunk_key(hunk.text) for hunk in file_patch.hunks}
        unknown = wanted - known
        if unknown:
            raise PatchApplyFailure(f"{len(unknown)} selected hunk(s) not found in original diff")

        chosen = [hunk for hunk in file_patch.hunks if _hunk_key(hunk.text) in wanted]
        patch_text = file_patch.header + "".join(hunk.text for hunk in chosen)
        return self.apply_patch(before, patch_text)

    def _apply_file_patch(self, before: str, file_patch: FilePatch) -> str:
        old_lines = split_lines(before)
        out: list[str] = []
        idx = 0

        for hunk in file_patch.hunks:
            # A zero-length old range points at the line *after* which to insert
            start = hunk.old_start if hunk.old_count == 0 else hunk.old_start - 1
            if start < idx:
                raise PatchApplyFailure(f"overlapping or out-of-order hunk: {hunk.header}")
            if start > len(old_lines):
                raise PatchApplyFailure(f"hunk starts beyond end of file: {hunk.header}")
            out.extend(old_lines[idx:start])
            idx = start

            for tag, content in hunk.lines:
                if tag == "+":
                    out.append(content)
                    continue
                if idx >= len(old_lines) or old_lines[idx] != content:
                    raise PatchApplyFailure(f"context mismatch at line {idx + 1} ({hunk.header})")
                if tag == " ":
                    out.append(old_lines[idx])
                idx += 1

        out.extend(old_lines[idx:])
        return "".join(out)
