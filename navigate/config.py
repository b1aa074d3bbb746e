from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

PACKAGE_DIR = Path(__file__).parent
DATA_DIR = PACKAGE_DIR / "data"

# Provider aliases accepted wherever a provider name is read
PROVIDER_ALIASES = {"claude": "anthropic"}
KNOWN_PROVIDERS = ("openai", "anthropic", "mock")


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _optional_path(name: str) -> Path | None:
    value = _env(name)
    return Path(value).expanduser().resolve() if value else None


def normalize_provider(name: str) -> str:
    name = name.strip().lower()
    return PROVIDER_ALIASES.get(name, name)


class Settings(BaseModel):
    dataset_dir: Path | None = Field(default_factory=lambda: _optional_path("NAVIGATE_DATASET_DIR"))
    database_path: Path = Field(
        default_factory=lambda: _optional_path("NAVIGATE_DB_PATH") or DATA_DIR / "navigate.db"
    )
    strict_integrity: bool = Field(
        default_factory=lambda: _env("NAVIGATE_STRICT_INTEGRITY", "true").lower() in ("true", "1", "yes")
    )

    ai_provider: str = Field(default_factory=lambda: normalize_provider(_env("NAVIGATE_AI_PROVIDER", "openai")))
    openai_api_key: str = Field(default_factory=lambda: _env("OPENAI_API_KEY"))
    openai_base_url: str = Field(default_factory=lambda: _env("OPENAI_BASE_URL"))
    openai_model: str = Field(default_factory=lambda: _env("NAVIGATE_OPENAI_MODEL", "gpt-4o"))
    anthropic_api_key: str = Field(default_factory=lambda: _env("ANTHROPIC_API_KEY"))
    anthropic_model: str = Field(
        default_factory=lambda: _env("NAVIGATE_ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
    )
    max_tokens: int = 2000
    temperature: float = 0.7

    def api_key_for(self, provider: str) -> str:
        provider = normalize_provider(provider)
        if provider == "openai":
            return self.openai_api_key
        if provider == "anthropic":
            return self.anthropic_api_key
        return ""

    def model_for(self, provider: str) -> str:
        provider = normalize_provider(provider)
        if provider == "openai":
            return self.openai_model
        if provider == "anthropic":
            return self.anthropic_model
        return "mock"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
