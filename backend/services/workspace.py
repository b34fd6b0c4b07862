"""
Workspace - Path confinement and file primitives for the sandboxed workspace root
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path

from .errors import OutOfBoundsPath

logger = logging.getLogger(__name__)


class Workspace:
    """A root directory that every file operation is confined to"""

    def __init__(self, root: str | Path):
        self.root = Path(root).expanduser().resolve()
        # Serialises apply/revert batches against this workspace
        self.mutation_lock = asyncio.Lock()

    def ensure_root(self) -> None:
        """Create the workspace directory if it does not exist yet"""
        if not self.root.exists():
            logger.info("Creating workspace at %s", self.root)
        self.root.mkdir(parents=True, exist_ok=True)

    # ========== Guard ==========

    def resolve(self, relative_path: str | None) -> Path:
        """Resolve a workspace-relative path, rejecting anything outside the root.

        An empty or absent path resolves to the root itself.
        """
        target = (self.root / (relative_path or "")).resolve()
        if target != self.root and self.root not in target.parents:
            raise OutOfBoundsPath(relative_path or "")
        return target

    def relative(self, relative_path: str) -> str:
        """Canonical POSIX form of a guarded path, relative to the root"""
        return self.resolve(relative_path).relative_to(self.root).as_posix()

    # ========== File primitives ==========

    def read_text(self, relative_path: str) -> str:
        """Read a file; raises FileNotFoundError / IsADirectoryError like open()"""
        target = self.resolve(relative_path)
        with open(target, encoding="utf-8", newline="") as f:
            return f.read()

    def read_text_or_empty(self, relative_path: str) -> str:
        """Current content of a file, or "" when it is missing or a directory"""
        target = self.resolve(relative_path)
        if not target.is_file():
            return ""
        with open(target, encoding="utf-8", newline="") as f:
            return f.read()

    def write_text(self, relative_path: str, content: str) -> Path:
        target = self.resolve(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        return target

    def create_file(self, relative_path: str) -> bool:
        """Create an empty file; returns False when it already existed"""
        target = self.resolve(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(target, "x", encoding="utf-8"):
                pass
        except FileExistsError:
            return False
        return True

    def make_dir(self, relative_path: str) -> Path:
        target = self.resolve(relative_path)
        target.mkdir(parents=True, exist_ok=True)
        return target

    def remove(self, relative_path: str) -> bool:
        """Remove a file or directory tree; returns False when nothing was there"""
        target = self.resolve(relative_path)
        if target == self.root:
            raise OutOfBoundsPath(relative_path)
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
            return True
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        return True

    def list_dir(self, relative_path: str | None = None) -> list[dict]:
        """List directory entries as {name, path, isDirectory} sorted by name"""
        target = self.resolve(relative_path)
        base = target.relative_to(self.root)
        entries = []
        for item in sorted(target.iterdir(), key=lambda p: p.name):
            entries.append(
                {
                    "name": item.name,
                    "path": (base / item.name).as_posix(),
                    "isDirectory": item.is_dir(),
                }
            )
        return entries
