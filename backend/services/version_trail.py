"""
Version Trail - Commit, log and revert history for the workspace, backed by git
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from dataclasses import dataclass

from models.history import HistoryEntry

from .errors import NothingToCommit, RevertConflict, VersionTrailFailure
from .workspace import Workspace

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_MESSAGE = "Assistant applied changes"

_HASH_RE = re.compile(r"^[0-9a-fA-F]{4,64}$")
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


@dataclass
class GitResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def message(self) -> str:
        return self.stderr.strip() or self.stdout.strip() or "unknown git error"


class VersionTrail:
    """Lightweight async wrapper around ``git`` scoped to one workspace"""

    def __init__(
        self,
        workspace: Workspace,
        author_name: str = "Workspace Assistant",
        author_email: str = "assistant@localhost",
    ):
        self.workspace = workspace
        self.author_name = author_name
        self.author_email = author_email
        self._ready = False

    @property
    def root(self):
        return self.workspace.root

    # ------------------------------------------------------------------ git IO
    async def _run_git(self, *args: str, check: bool = True) -> GitResult:
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            process = await asyncio.create_subprocess_exec(
                "git",
                "-c",
                "commit.gpgsign=false",
                *args,
                cwd=self.root,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise VersionTrailFailure("git executable not found") from e

        stdout, stderr = await process.communicate()
        result = GitResult(
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )
        if check and result.returncode != 0:
            raise VersionTrailFailure(f"git {args[0]} failed: {result.message}")
        return result

    async def _head(self) -> str | None:
        result = await self._run_git("rev-parse", "--verify", "-q", "HEAD", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    # ------------------------------------------------------------------- setup
    async def ensure_repo(self) -> None:
        """Initialise the repository and a local commit identity if missing"""
        if self._ready and (self.root / ".git").exists():
            return
        self.workspace.ensure_root()
        if not (self.root / ".git").exists():
            await self._run_git("init")
            logger.info("Initialized git repository in workspace %s", self.root)

        for key, value in (("user.name", self.author_name), ("user.email", self.author_email)):
            probe = await self._run_git("config", "--local", "--get", key, check=False)
            if probe.returncode != 0 or not probe.stdout.strip():
                await self._run_git("config", key, value)
        self._ready = True

    async def _stageable(self, paths: list[str]) -> list[str]:
        """Paths that exist on disk or are known to the index, in input order"""
        unique = list(dict.fromkeys(paths))
        missing = [path for path in unique if not (self.root / path).exists()]
        tracked: set[str] = set()
        if missing:
            result = await self._run_git("ls-files", "-z", "--", *missing, check=False)
            listed = [entry for entry in result.stdout.split("\0") if entry]
            tracked = {path for path in missing if any(e == path or e.startswith(path + "/") for e in listed)}
        return [path for path in unique if path not in missing or path in tracked]

    # -------------------------------------------------------------- operations
    async def commit(self, paths: list[str], message: str | None = None) -> str | None:
        """Stage exactly `paths` (everything when empty) and commit; returns the new hash"""
        await self.ensure_repo()
        message = message or DEFAULT_COMMIT_MESSAGE

        if paths:
            stageable = await self._stageable(paths)
            if not stageable:
                raise NothingToCommit()
            await self._run_git("add", "-A", "--", *stageable)
            result = await self._run_git("commit", "-m", message, "--", *stageable, check=False)
        else:
            await self._run_git("add", "-A")
            result = await self._run_git("commit", "-m", message, check=False)

        if result.returncode != 0:
            output = f"{result.stdout}\n{result.stderr}".lower()
            # Content rewritten unchanged
            if "nothing to commit" in output or "no changes added to commit" in output:
                raise NothingToCommit()
            raise VersionTrailFailure(f"git commit failed: {result.message}")
        commit = await self._head()
        logger.info("Committed %s: %s", commit, message)
        return commit

    async def log(self, limit: int = 50) -> list[HistoryEntry]:
        """Most recent `limit` entries, newest first"""
        await self.ensure_repo()
        if await self._head() is None:
            return []

        fmt = _FIELD_SEP.join(["%H", "%an", "%ad", "%s"]) + _RECORD_SEP
        result = await self._run_git("log", f"-n{max(int(limit), 1)}", f"--pretty=format:{fmt}", "--date=iso")

        entries = []
        for record in result.stdout.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            commit_hash, author, date, subject = (record.split(_FIELD_SEP, 3) + ["", "", ""])[:4]
            entries.append(HistoryEntry(hash=commit_hash, author=author, date=date, subject=subject))
        return entries

    async def revert(self, commit_hash: str) -> str | None:
        """Create a new commit undoing `commit_hash`; returns the new hash"""
        if not _HASH_RE.match(commit_hash or ""):
            raise VersionTrailFailure(f"invalid commit hash: {commit_hash!r}")
        await self.ensure_repo()

        result = await self._run_git("revert", "--no-edit", commit_hash, check=False)
        if result.returncode != 0:
            if (self.root / ".git" / "REVERT_HEAD").exists() or "conflict" in result.message.lower():
                await self._run_git("revert", "--abort", check=False)
                logger.warning("Revert of %s conflicted: %s", commit_hash, result.message)
                raise RevertConflict(f"revert of {commit_hash} could not be resolved automatically: {result.message}")
            raise VersionTrailFailure(f"git revert failed: {result.message}")

        return await self._head()
