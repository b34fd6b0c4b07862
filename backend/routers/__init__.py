"""Routers module - FastAPI route handlers"""

from . import assistant, config, files, history

__all__ = ["assistant", "config", "files", "history"]
