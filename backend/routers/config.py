"""Configuration API endpoints"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from services.config_manager import ConfigManager
from services.errors import AssistantError
from services.llm_service import LLMService

router = APIRouter()


class ConfigUpdateRequest(BaseModel):
    """Request to update configuration"""

    provider: str | None = None
    openai: dict | None = None
    qwen: dict | None = None
    generation: dict | None = None


class ConfigResponse(BaseModel):
    """Configuration response"""

    provider: str
    openai: dict
    qwen: dict
    generation: dict
    workspace: dict


class ValidateResponse(BaseModel):
    """Validation response"""

    valid: bool
    message: str
    provider: str


def mask_key(key: str) -> str:
    """Mask an API key for display"""
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]


@router.get("", response_model=ConfigResponse)
async def get_config() -> ConfigResponse:
    """Get current configuration"""
    config = ConfigManager.get_instance().get_config()

    openai = config.get("openai", {}).copy()
    openai["apiKey"] = mask_key(openai.get("apiKey", ""))

    return ConfigResponse(
        provider=config.get("provider", "openai"),
        openai=openai,
        qwen=config.get("qwen", {}),
        generation=config.get("generation", {}),
        workspace=config.get("workspace", {}),
    )


@router.put("")
async def update_config(request: ConfigUpdateRequest) -> dict[str, Any]:
    """Update configuration"""
    config_manager = ConfigManager.get_instance()
    current_config = config_manager.get_stored_config()

    # Update only provided fields
    if request.provider:
        current_config["provider"] = request.provider
    for section in ("openai", "qwen", "generation"):
        updates = getattr(request, section)
        if updates:
            current_config[section] = {**current_config.get(section, {}), **updates}

    config_manager.save_config(current_config)

    return {"status": "success", "message": "Configuration updated"}


@router.post("/validate", response_model=ValidateResponse)
async def validate_config() -> ValidateResponse:
    """Validate current configuration by testing the backend connection"""
    config = ConfigManager.get_instance().get_config()
    provider = config.get("provider", "openai")

    try:
        llm_service = LLMService(config)
        response = await llm_service.complete([{"role": "user", "content": "Say 'OK' if you can hear me."}])
    except AssistantError as e:
        return ValidateResponse(valid=False, message=f"Connection failed: {e}", provider=provider)

    if response:
        return ValidateResponse(valid=True, message=f"Successfully connected to {provider}", provider=provider)
    return ValidateResponse(valid=False, message="Received empty response from backend", provider=provider)
