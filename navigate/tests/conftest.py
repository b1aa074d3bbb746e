from __future__ import annotations

import pytest

from navigate.config import Settings
from navigate.sample_data import build_sample_dataset
from navigate.services import Workspace
from navigate.store import EntityStore


@pytest.fixture()
def mock_settings() -> Settings:
    """Settings with no credentials and the mock provider as default."""
    return Settings(ai_provider="mock", openai_api_key="", anthropic_api_key="")


@pytest.fixture()
def store() -> EntityStore:
    return EntityStore(build_sample_dataset())


@pytest.fixture()
def workspace(store: EntityStore, mock_settings: Settings) -> Workspace:
    return Workspace(store, settings=mock_settings)
