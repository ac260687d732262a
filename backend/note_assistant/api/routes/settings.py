from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ValidationError
from typing import Optional
import logging
import os

from note_assistant.api.deps import close_workspace
from note_assistant.core.config import (
    AVAILABLE_MODELS,
    Settings,
    get_settings,
    save_settings_to_file,
    reload_settings,
    load_settings_from_file,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


class SettingsUpdate(BaseModel):
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    vault_path: Optional[str] = None


class SettingsResponse(BaseModel):
    openai_api_key: str  # masked
    openai_base_url: str
    openai_model: str
    max_tokens: int
    temperature: float
    vault_path: str


class TestConnectionResponse(BaseModel):
    openai: bool
    errors: dict


@router.get("", response_model=SettingsResponse)
async def get_current_settings():
    """Retrieve current settings with masked sensitive values."""
    return get_settings().get_effective_settings()


@router.get("/models")
async def list_models():
    """Models selectable in the settings picker."""
    return [{"id": model_id, "name": name} for model_id, name in AVAILABLE_MODELS.items()]


@router.post("", response_model=SettingsResponse)
async def update_settings(update: SettingsUpdate):
    """Update settings and save to local file."""
    if update.openai_model is not None and update.openai_model not in AVAILABLE_MODELS:
        raise HTTPException(
            status_code=400,
            detail=f"openai_model must be one of {sorted(AVAILABLE_MODELS)}",
        )

    # Load existing settings and update only provided fields
    current = load_settings_from_file()
    changes = update.model_dump(exclude_none=True)
    current.update(changes)

    # Validate ranges before anything is persisted
    try:
        Settings(**current)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors(include_url=False))

    if "openai_api_key" in changes:
        # Also set environment variable for immediate use
        os.environ["OPENAI_API_KEY"] = changes["openai_api_key"]

    save_settings_to_file(current)
    new_settings = reload_settings()
    logger.info("Settings updated: %s", sorted(changes))

    if "vault_path" in changes:
        await close_workspace()

    return new_settings.get_effective_settings()


@router.post("/test", response_model=TestConnectionResponse)
async def test_connections():
    """Test the OpenAI connection with current settings."""
    errors = {}
    openai_ok = False

    try:
        from openai import AsyncOpenAI

        current = get_settings()
        api_key = current.openai_api_key or os.getenv("OPENAI_API_KEY")

        if not api_key:
            errors["openai"] = "No API key configured"
        else:
            # Configure client with optional gateway base URL
            client_config = {"api_key": api_key}
            if current.openai_base_url:
                client_config["base_url"] = current.openai_base_url

            client = AsyncOpenAI(**client_config)
            try:
                await client.models.list()
            finally:
                await client.close()
            openai_ok = True
    except Exception as e:
        logger.exception("OpenAI connection test failed: %s", str(e))
        errors["openai"] = str(e)

    return TestConnectionResponse(openai=openai_ok, errors=errors)
