"""Pydantic request/response schemas for the NAVIGATE API."""
from __future__ import annotations

import re
from datetime import date
from typing import Any

from pydantic import BaseModel, Field, field_validator

from navigate.filters import FilterSpec
from navigate.models import ChatMessage, Insight

PRESET_KEY_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


class FilterUpdate(BaseModel):
    """Partial filter update; only provided fields change."""
    stakeholder_types: list[str] | None = None
    technology_categories: list[str] | None = None
    funding_types: list[str] | None = None
    trl_range: tuple[int, int] | None = None
    funding_range: tuple[float, float] | None = None
    search_query: str | None = None
    date_range: tuple[date, date] | None = None


class ListResponse(BaseModel):
    items: list[dict[str, Any]]
    total: int


class StatsOut(BaseModel):
    total_funding: float
    organization_count: int
    technology_count: int
    project_count: int
    relationship_count: int
    funding_event_count: int
    average_trl: float
    by_stakeholder_type: dict[str, int]
    by_technology_category: dict[str, int]
    by_trl_color: dict[str, int]
    funding_by_type: dict[str, float]


class InsightsRequest(BaseModel):
    provider: str | None = None


class InsightsResponse(BaseModel):
    provider: str
    insights: list[Insight]


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    current_view: str = "dashboard"
    history: list[ChatMessage] = []
    provider: str | None = None


class IdsBody(BaseModel):
    ids: list[str] = []


class PresetCreate(BaseModel):
    key: str
    name: str
    description: str = ""
    filters: FilterSpec | None = None

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        v = v.strip().lower()
        if not PRESET_KEY_RE.match(v):
            raise ValueError("Key must be lowercase letters, numbers, hyphens or underscores")
        return v


class PresetOut(BaseModel):
    key: str
    name: str
    description: str
    filters: dict[str, Any]
    is_default: bool


class CompareRequest(BaseModel):
    left: FilterSpec = FilterSpec()
    right: FilterSpec = FilterSpec()
