from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List
from pathlib import Path
import json
import os


SETTINGS_FILE = Path(__file__).parent.parent.parent / "settings.json"

# Models offered in the settings picker, value -> display label
AVAILABLE_MODELS = {
    "gpt-4o-mini": "GPT-4o Mini",
    "gpt-4o": "GPT-4o",
    "gpt-4": "GPT-4",
    "gpt-4o-turbo": "GPT-4o Turbo",
    "gpt-3.5-turbo": "GPT-3.5 Turbo",
}

MIN_MAX_TOKENS = 256
MAX_MAX_TOKENS = 4096
MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0


def load_settings_from_file() -> dict:
    """Load settings from JSON file if exists."""
    if SETTINGS_FILE.exists():
        try:
            with open(SETTINGS_FILE) as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            pass
    return {}


def save_settings_to_file(settings: dict) -> None:
    """Save settings to JSON file."""
    with open(SETTINGS_FILE, "w") as f:
        json.dump(settings, f, indent=2)


class Settings(BaseSettings):
    # OpenAI
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_model: str = "gpt-4o-mini"
    max_tokens: int = Field(default=1024, ge=MIN_MAX_TOKENS, le=MAX_MAX_TOKENS)
    temperature: float = Field(default=0.7, ge=MIN_TEMPERATURE, le=MAX_TEMPERATURE)

    # Vault (directory of markdown notes)
    vault_path: str = "./vault"

    # Server
    backend_port: int = 8000
    cors_origins: List[str] = ["http://localhost:5173"]

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True

    def __init__(self, **kwargs):
        # Load from settings file first
        file_settings = load_settings_from_file()

        # Merge: kwargs > file_settings > env vars (handled by pydantic)
        merged = {**file_settings, **kwargs}

        super().__init__(**merged)

        # Handle CORS_ORIGINS as JSON string from env
        cors_env = os.getenv("CORS_ORIGINS")
        if cors_env:
            try:
                self.cors_origins = json.loads(cors_env)
            except json.JSONDecodeError:
                pass

    def get_effective_settings(self) -> dict:
        """Get current effective settings (for API response)."""
        return {
            "openai_api_key": self._mask_key(self.openai_api_key),
            "openai_base_url": self.openai_base_url,
            "openai_model": self.openai_model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "vault_path": self.vault_path,
        }

    def _mask_key(self, key: str) -> str:
        """Mask a secret key for display."""
        if not key:
            return ""
        if len(key) <= 8:
            return "*" * len(key)
        return key[:4] + "*" * (len(key) - 8) + key[-4:]


def reload_settings() -> "Settings":
    """Reload settings from file and environment."""
    global settings
    settings = Settings()
    return settings


def get_settings() -> "Settings":
    """Return the current settings instance.

    Looked up at call time so callers see the result of the latest
    reload_settings() rather than the instance that existed at import.
    """
    return settings


settings = Settings()
