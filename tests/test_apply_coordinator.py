"""
Unit tests for the apply coordinator.
"""

import asyncio
import shutil
from unittest.mock import AsyncMock, MagicMock

import pytest

from models.action import ApplyAction
from services.apply_coordinator import UNRECORDED_WARNING, ApplyCoordinator
from services.errors import NothingToCommit, VersionTrailFailure
from services.patch_engine import PatchEngine
from services.version_trail import VersionTrail


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")

BEFORE = "".join(f"line {i}\n" for i in range(1, 31))
AFTER = BEFORE.replace("line 3\n", "line three\n").replace("line 27\n", "line 27\nline 27b\n")


@pytest.fixture
def trail():
    trail = MagicMock()
    trail.commit = AsyncMock(return_value="abc1234")
    return trail


@pytest.fixture
def coordinator(workspace, trail):
    return ApplyCoordinator(workspace, version_trail=trail)


@pytest.mark.asyncio
async def test_create_and_delete_missing_both_succeed(coordinator, workspace, trail):
    """Test that deleting a nonexistent file counts as success alongside a create."""
    actions = [
        ApplyAction(kind="create", path="a.txt", content="x"),
        ApplyAction(kind="delete", path="missing.txt"),
    ]

    result = await coordinator.apply(actions, "batch")

    assert result.ok
    assert [o.ok for o in result.actionsApplied] == [True, True]
    assert result.changedFiles == {"a.txt": "x"}
    assert workspace.read_text("a.txt") == "x"
    trail.commit.assert_awaited_once_with(["a.txt", "missing.txt"], "batch")
    assert result.versionTrailResult.ok
    assert result.versionTrailResult.commit == "abc1234"
    assert result.warnings == []


@pytest.mark.asyncio
async def test_outcomes_follow_input_order(coordinator):
    """Test that failures do not stop later actions and outcomes keep input order."""
    actions = [
        ApplyAction(kind="edit", content="no path"),
        ApplyAction(kind="rename", path="x.txt"),
        ApplyAction(kind="create", path="../escape.txt", content="x"),
        ApplyAction(kind="create", path="ok.txt", content="fine"),
    ]

    result = await coordinator.apply(actions)

    assert [o.ok for o in result.actionsApplied] == [False, False, False, True]
    assert result.actionsApplied[0].error == "invalid action object"
    assert "unknown action type" in result.actionsApplied[1].error
    assert "outside workspace" in result.actionsApplied[2].error
    assert [o.action.path for o in result.actionsApplied][1:] == ["x.txt", "../escape.txt", "ok.txt"]


@pytest.mark.asyncio
async def test_selected_hunk_applies_only_that_change(coordinator, workspace):
    """Test that a hunk-restricted edit writes only the selected hunk."""
    workspace.write_text("f.txt", BEFORE)
    engine = PatchEngine()
    diff = engine.diff("f.txt", BEFORE, AFTER)
    first, second = engine.split_into_hunks(diff)

    result = await coordinator.apply(
        [ApplyAction(kind="edit", path="f.txt", content=AFTER, originalDiff=diff, selectedHunks=[second.hunkText])]
    )

    (outcome,) = result.actionsApplied
    assert outcome.ok
    assert outcome.hunksApplied == 1
    written = workspace.read_text("f.txt")
    assert "line 3\n" in written and "line three" not in written
    assert "line 27b\n" in written
    assert result.changedFiles == {"f.txt": written}


@pytest.mark.asyncio
async def test_selected_hunk_against_drifted_file_fails(coordinator, workspace):
    """Test that a file changed since the preview is rejected, not fuzzily patched."""
    engine = PatchEngine()
    diff = engine.diff("f.txt", BEFORE, AFTER)
    hunks = engine.split_into_hunks(diff)
    workspace.write_text("f.txt", BEFORE.replace("line 2\n", "line two\n"))

    result = await coordinator.apply(
        [ApplyAction(kind="edit", path="f.txt", originalDiff=diff, selectedHunks=[hunks[0].hunkText])]
    )

    assert result.actionsApplied[0].ok is False
    assert "line two" in workspace.read_text("f.txt")
    assert result.changedFiles == {}


@pytest.mark.asyncio
async def test_selected_hunks_require_original_diff(coordinator, workspace):
    """Test that selectedHunks without originalDiff is a per-action failure."""
    workspace.write_text("f.txt", BEFORE)

    result = await coordinator.apply([ApplyAction(kind="edit", path="f.txt", selectedHunks=["@@ -1 +1 @@"])])

    assert result.actionsApplied[0].ok is False
    assert "originalDiff" in result.actionsApplied[0].error
    assert workspace.read_text("f.txt") == BEFORE


@pytest.mark.asyncio
async def test_empty_selection_writes_full_content(coordinator, workspace):
    """Test that an empty selectedHunks list means a whole-file write."""
    workspace.write_text("f.txt", BEFORE)

    result = await coordinator.apply([ApplyAction(kind="edit", path="f.txt", content="new\n", selectedHunks=[])])

    assert result.actionsApplied[0].ok
    assert workspace.read_text("f.txt") == "new\n"


@pytest.mark.asyncio
async def test_directory_create_is_not_a_changed_file(coordinator, workspace, trail):
    """Test that directory creation succeeds without being committed or reported."""
    result = await coordinator.apply([ApplyAction(kind="create", path="pkg/sub", isDirectory=True)])

    assert result.actionsApplied[0].ok
    assert (workspace.root / "pkg" / "sub").is_dir()
    assert result.changedFiles == {}
    trail.commit.assert_not_awaited()
    assert result.versionTrailResult.ok is False
    assert result.versionTrailResult.error == "nothing to commit"
    assert result.warnings == []


@pytest.mark.asyncio
async def test_commit_failure_keeps_files_and_warns(coordinator, workspace, trail):
    """Test that a failed commit leaves writes in place and reports a warning."""
    trail.commit.side_effect = VersionTrailFailure("git commit failed: boom")

    result = await coordinator.apply([ApplyAction(kind="create", path="a.txt", content="x")])

    assert result.ok
    assert result.actionsApplied[0].ok
    assert workspace.read_text("a.txt") == "x"
    assert result.versionTrailResult.ok is False
    assert "boom" in result.versionTrailResult.error
    assert result.warnings == [UNRECORDED_WARNING]


@requires_git
@pytest.mark.asyncio
async def test_apply_records_one_history_entry(workspace):
    """Test that a whole batch lands as a single commit in the real version trail."""
    trail = VersionTrail(workspace)
    coordinator = ApplyCoordinator(workspace, version_trail=trail)

    result = await coordinator.apply(
        [
            ApplyAction(kind="create", path="a.txt", content="x"),
            ApplyAction(kind="create", path="docs/b.md", content="# b\n"),
            ApplyAction(kind="delete", path="missing.txt"),
        ],
        "assistant batch",
    )

    assert result.versionTrailResult.ok
    entries = await trail.log(10)
    assert len(entries) == 1
    assert entries[0].hash == result.versionTrailResult.commit
    assert entries[0].subject == "assistant batch"


@pytest.mark.asyncio
async def test_nothing_to_commit_is_not_a_warning(coordinator, trail):
    """Test that a batch with nothing for history to record raises no unrecorded-changes warning."""
    trail.commit.side_effect = NothingToCommit()

    result = await coordinator.apply([ApplyAction(kind="delete", path="never-existed.txt")])

    assert result.actionsApplied[0].ok
    assert result.versionTrailResult.ok is False
    assert result.versionTrailResult.error == "nothing to commit"
    assert result.warnings == []


@requires_git
@pytest.mark.asyncio
async def test_untracked_delete_and_unchanged_rewrite_do_not_warn(workspace):
    """Test the real version trail for deletes of unknown files and rewrites with identical content."""
    coordinator = ApplyCoordinator(workspace, version_trail=VersionTrail(workspace))
    first = await coordinator.apply([ApplyAction(kind="create", path="a.txt", content="x")])
    assert first.versionTrailResult.ok

    missing = await coordinator.apply([ApplyAction(kind="delete", path="never-existed.txt")])
    unchanged = await coordinator.apply([ApplyAction(kind="edit", path="a.txt", content="x")])

    for result in (missing, unchanged):
        assert result.actionsApplied[0].ok
        assert result.versionTrailResult.ok is False
        assert result.warnings == []


@pytest.mark.asyncio
async def test_batches_on_one_workspace_do_not_interleave(workspace):
    """Test that a second batch waits until the first batch has been committed."""
    events = []

    async def slow_commit(paths, message):
        events.append(("commit-start", message, (workspace.root / "second.txt").exists()))
        await asyncio.sleep(0.05)
        events.append(("commit-end", message))
        return message

    trail = MagicMock()
    trail.commit = AsyncMock(side_effect=slow_commit)
    coordinator = ApplyCoordinator(workspace, version_trail=trail)

    first, second = await asyncio.gather(
        coordinator.apply([ApplyAction(kind="create", path="first.txt", content="1")], "first"),
        coordinator.apply([ApplyAction(kind="create", path="second.txt", content="2")], "second"),
    )

    assert [event[:2] for event in events] == [
        ("commit-start", "first"),
        ("commit-end", "first"),
        ("commit-start", "second"),
        ("commit-end", "second"),
    ]
    # The second batch wrote nothing while the first was being recorded
    assert events[0][2] is False
    assert first.versionTrailResult.commit == "first"
    assert second.versionTrailResult.commit == "second"
