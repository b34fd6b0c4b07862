"""Shared fixtures for the backend test suite."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from services.config_manager import ConfigManager
from services.workspace import Workspace


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Point the config manager at a throwaway directory and clear backend env vars."""
    config_dir = tmp_path_factory.mktemp("config")
    monkeypatch.setenv("WORKSPACE_ASSISTANT_CONFIG_DIR", str(config_dir))
    for name in ("OPENAI_API_KEY", "OPENAI_MODEL", "QWEN_URL", "QWEN_MODEL", "WORKSPACE_ROOT", "PORT", "HOST", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    ConfigManager.reset_instance()
    yield config_dir
    ConfigManager.reset_instance()


@pytest.fixture
def workspace(tmp_path):
    """Workspace rooted in a fresh temporary directory."""
    root = tmp_path / "workspace"
    ws = Workspace(root)
    ws.ensure_root()
    return ws


@pytest.fixture
def mock_llm():
    """Model backend double with an async `complete`."""
    llm = MagicMock()
    llm.provider = "openai"
    llm.complete = AsyncMock()
    return llm
