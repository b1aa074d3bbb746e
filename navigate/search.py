"""Keyword search across stakeholders, technologies, funding events and projects.

Results come back in collection order (stakeholders first) with no relevance
ranking, capped at ``limit``. Matching uses the same routine as the filter
engine's search query.
"""
from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any, Literal

from pydantic import BaseModel

from navigate.filters import normalize_query, text_matches
from navigate.models import FundingEvent, Project, Stakeholder, Technology

DEFAULT_LIMIT = 10

ResultType = Literal["stakeholder", "technology", "funding", "project"]


class SearchResult(BaseModel):
    id: str
    type: ResultType
    name: str
    description: str = ""


def _stakeholder_fields(s: Stakeholder) -> list[str]:
    return [s.name, s.description, *s.tags, s.type, s.sector]


def _technology_fields(t: Technology) -> list[str]:
    return [t.name, t.description, *t.tags, t.category]


def _funding_fields(f: FundingEvent) -> list[str]:
    return [f.program, f.impact_description]


def _project_fields(p: Project) -> list[str]:
    return [p.name, p.description]


# (result type, collection attribute, searchable fields, display name)
_SEARCHABLE: list[tuple[ResultType, str, Callable[[Any], list[str]], Callable[[Any], str]]] = [
    ("stakeholder", "stakeholders", _stakeholder_fields, lambda s: s.name),
    ("technology", "technologies", _technology_fields, lambda t: t.name),
    ("funding", "funding_events", _funding_fields, lambda f: f.program),
    ("project", "projects", _project_fields, lambda p: p.name),
]


def iter_matches(data: Any, query: str) -> Iterator[SearchResult]:
    for result_type, attr, fields, display in _SEARCHABLE:
        for entity in getattr(data, attr):
            if text_matches(query, fields(entity)):
                description = entity.impact_description if result_type == "funding" else entity.description
                yield SearchResult(
                    id=entity.id, type=result_type, name=display(entity), description=description,
                )


def search(data: Any, query: str | None, limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
    """Search *data* (an EntityStore or Dataset) for *query*; blank queries return nothing."""
    if not normalize_query(query) or limit <= 0:
        return []
    results: list[SearchResult] = []
    for result in iter_matches(data, query or ""):
        results.append(result)
        if len(results) >= limit:
            break
    return results
