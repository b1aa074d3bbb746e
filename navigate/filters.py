"""Filter engine: pure projection of the dataset collections under a FilterSpec.

Every filter is stable (keeps input order) and side-effect free. Relationships
have no criteria of their own: one survives only when both of its endpoints
survived stakeholder/technology filtering.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, model_validator

from navigate.models import FundingEvent, Project, Relationship, Stakeholder, Technology

DEFAULT_TRL_RANGE: tuple[int, int] = (1, 9)
DEFAULT_FUNDING_RANGE: tuple[float, float] = (0.0, 1_000_000_000.0)


class FilterSpec(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    stakeholder_types: list[str] = []
    technology_categories: list[str] = []
    funding_types: list[str] = []
    trl_range: tuple[int, int] = DEFAULT_TRL_RANGE
    funding_range: tuple[float, float] = DEFAULT_FUNDING_RANGE
    search_query: str = ""
    # Reserved: accepted and carried along, not applied yet
    date_range: tuple[date, date] | None = None

    @model_validator(mode="after")
    def _ranges_ordered(self) -> FilterSpec:
        for name in ("trl_range", "funding_range", "date_range"):
            bounds = getattr(self, name)
            if bounds is not None and bounds[0] > bounds[1]:
                raise ValueError(f"{name} lower bound exceeds upper bound")
        return self

    def active(self) -> dict[str, Any]:
        """Only the criteria that differ from the defaults."""
        return self.model_dump(mode="json", exclude_defaults=True)

    def merged(self, **changes: Any) -> FilterSpec:
        """Partial update; validates the result."""
        return FilterSpec.model_validate({**self.model_dump(), **changes})


# ---------------------------------------------------------------------------
# Unified text matching (shared with navigate.search)
# ---------------------------------------------------------------------------


def normalize_query(query: str | None) -> str:
    return (query or "").strip().lower()


def text_matches(query: str | None, fields: Iterable[str | None]) -> bool:
    """Case-insensitive substring test of *query* against any of *fields*.

    A blank query matches everything.
    """
    q = normalize_query(query)
    if not q:
        return True
    return any(q in value.lower() for value in fields if value)


def parse_csv(value: str | None) -> list[str]:
    """Split a comma-separated query parameter into stripped, non-empty items."""
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def _allowed(value: str, allow_list: Sequence[str]) -> bool:
    return not allow_list or value in allow_list


def _within(value: float, bounds: tuple[float, float]) -> bool:
    return bounds[0] <= value <= bounds[1]


# ---------------------------------------------------------------------------
# Per-collection filters
# ---------------------------------------------------------------------------


def filter_stakeholders(stakeholders: Iterable[Stakeholder], spec: FilterSpec) -> list[Stakeholder]:
    if spec.search_query.strip():
        return [s for s in stakeholders
                if text_matches(spec.search_query, [s.name, s.description, *s.tags])]
    return [s for s in stakeholders if _allowed(s.type, spec.stakeholder_types)]


def filter_technologies(technologies: Iterable[Technology], spec: FilterSpec) -> list[Technology]:
    if spec.search_query.strip():
        return [t for t in technologies
                if text_matches(spec.search_query, [t.name, t.description, *t.tags])]
    return [
        t for t in technologies
        if _allowed(t.category, spec.technology_categories) and _within(t.trl_current, spec.trl_range)
    ]


def filter_funding_events(events: Iterable[FundingEvent], spec: FilterSpec) -> list[FundingEvent]:
    if spec.search_query.strip():
        return [f for f in events
                if text_matches(spec.search_query, [f.program, f.impact_description])]
    return [
        f for f in events
        if _allowed(f.funding_type, spec.funding_types) and _within(f.amount, spec.funding_range)
    ]


def filter_projects(projects: Iterable[Project], spec: FilterSpec) -> list[Project]:
    return [p for p in projects if text_matches(spec.search_query, [p.name, p.description, *p.tags])]


def filter_relationships(
    relationships: Iterable[Relationship],
    stakeholders: Iterable[Stakeholder],
    technologies: Iterable[Technology],
) -> list[Relationship]:
    """Keep relationships whose endpoints are both among the given entities."""
    ids = {s.id for s in stakeholders} | {t.id for t in technologies}
    return [r for r in relationships if r.source in ids and r.target in ids]


# ---------------------------------------------------------------------------
# Whole-dataset projection
# ---------------------------------------------------------------------------


class _Collections(Protocol):
    stakeholders: Sequence[Stakeholder]
    technologies: Sequence[Technology]
    funding_events: Sequence[FundingEvent]
    projects: Sequence[Project]
    relationships: Sequence[Relationship]


@dataclass(frozen=True)
class FilteredView:
    """The five collections after filtering."""
    stakeholders: list[Stakeholder] = field(default_factory=list)
    technologies: list[Technology] = field(default_factory=list)
    funding_events: list[FundingEvent] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)

    @property
    def entity_ids(self) -> set[str]:
        return {s.id for s in self.stakeholders} | {t.id for t in self.technologies}

    def is_empty(self) -> bool:
        return not (self.stakeholders or self.technologies or self.funding_events
                    or self.projects or self.relationships)

    def counts(self) -> dict[str, int]:
        return {
            "stakeholders": len(self.stakeholders),
            "technologies": len(self.technologies),
            "funding_events": len(self.funding_events),
            "projects": len(self.projects),
            "relationships": len(self.relationships),
        }


def apply_filters(data: _Collections, spec: FilterSpec | None = None) -> FilteredView:
    """Filter every collection of *data* (an EntityStore or Dataset) under *spec*."""
    spec = spec or FilterSpec()
    stakeholders = filter_stakeholders(data.stakeholders, spec)
    technologies = filter_technologies(data.technologies, spec)
    return FilteredView(
        stakeholders=stakeholders,
        technologies=technologies,
        funding_events=filter_funding_events(data.funding_events, spec),
        projects=filter_projects(data.projects, spec),
        relationships=filter_relationships(data.relationships, stakeholders, technologies),
    )


# Registry used by db.py to seed presets: {key: (name, description, spec)}
DEFAULT_PRESETS: dict[str, tuple[str, str, FilterSpec]] = {
    "default": ("Default", "Show all entities", FilterSpec()),
    "trl-gap": (
        "TRL 6-7 Gap", "Technologies at TRL 6-7 with low funding",
        FilterSpec(trl_range=(6, 7), funding_range=(0.0, 5_000_000.0)),
    ),
    "government-funded": (
        "Government Funded", "Projects and technologies funded by government",
        FilterSpec(funding_types=["Public"]),
    ),
}
