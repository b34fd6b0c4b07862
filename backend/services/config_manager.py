"""
Configuration Manager - Handle backend settings persistence and environment overrides
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "OPENAI_API_KEY": ("openai", "apiKey"),
    "OPENAI_MODEL": ("openai", "model"),
    "QWEN_URL": ("qwen", "endpoint"),
    "QWEN_MODEL": ("qwen", "model"),
    "WORKSPACE_ROOT": ("workspace", "root"),
    "HOST": ("server", "host"),
    "PORT": ("server", "port"),
    "LOG_LEVEL": ("logging", "level"),
}


class ConfigManager:
    """Manage configuration persistence"""

    _instance = None
    _config_file = None

    def __init__(self):
        # 1: explicit environment variable, 2: ~/.workspace_assistant
        config_dir = os.environ.get("WORKSPACE_ASSISTANT_CONFIG_DIR") or os.path.expanduser(
            "~/.workspace_assistant"
        )
        try:
            config_path = Path(config_dir)
            config_path.mkdir(parents=True, exist_ok=True)
            self._config_file = config_path / "config.json"
        except OSError as e:
            logger.warning("Cannot write to %s: %s", config_dir, e)
            # 3: temp dir fallback
            tmp_dir = Path(tempfile.gettempdir()) / "workspace_assistant"
            tmp_dir.mkdir(parents=True, exist_ok=True)
            self._config_file = tmp_dir / "config.json"
            logger.info("Using temporary config path: %s", self._config_file)

        self._config = self._load_config()

    @classmethod
    def get_instance(cls) -> "ConfigManager":
        """Get singleton instance"""
        if cls._instance is None:
            cls._instance = ConfigManager()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the singleton so the next access re-reads environment and file"""
        cls._instance = None

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file, layered over the defaults"""
        config = self._default_config()
        if not self._config_file.exists():
            return config

        try:
            with open(self._config_file) as f:
                stored = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Error loading config: %s", e)
            return config

        for key, value in stored.items():
            if isinstance(value, dict) and isinstance(config.get(key), dict):
                config[key] = {**config[key], **value}
            else:
                config[key] = value
        return config

    def _default_config(self) -> dict[str, Any]:
        """Get default configuration"""
        return {
            "provider": "openai",
            "openai": {
                "apiKey": "",
                "model": "gpt-4o-mini",
                "url": "https://api.openai.com/v1/chat/completions",
            },
            "qwen": {"endpoint": "", "model": "qwen-coder"},
            "generation": {"temperature": 0.2, "maxTokens": 1024},
            "workspace": {"root": "./workspace"},
            "server": {"host": "127.0.0.1", "port": 3000},
            "logging": {"level": "INFO"},
        }

    def _apply_env(self, config: dict[str, Any]) -> dict[str, Any]:
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                config.setdefault(section, {})[key] = int(value) if key == "port" else value
        return config

    def get_config(self) -> dict[str, Any]:
        """Get current configuration, environment values taking precedence"""
        # Reload config from file to ensure we have the latest
        self._config = self._load_config()
        return self._apply_env(copy.deepcopy(self._config))

    def get_stored_config(self) -> dict[str, Any]:
        """Configuration as persisted, without environment overrides"""
        self._config = self._load_config()
        return copy.deepcopy(self._config)

    def save_config(self, config: dict[str, Any]):
        """Save configuration to file"""
        # Merge with existing config
        self._config.update(config)

        # Ensure config directory exists
        self._config_file.parent.mkdir(parents=True, exist_ok=True)

        # Write to file
        try:
            with open(self._config_file, "w") as f:
                json.dump(self._config, f, indent=2)
        except OSError as e:
            raise RuntimeError(f"Failed to save config: {e}")

    def get(self, key: str, default=None):
        """Get specific config value"""
        return self.get_config().get(key, default)
