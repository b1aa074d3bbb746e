"""Entity store: the five dataset collections plus their derived fields.

A load replaces everything at once. Derived fields (funding totals, counts)
are recomputed from the full funding-event, relationship and project
collections on every load and are never patched incrementally.
"""
from __future__ import annotations

import json
import logging
from collections import defaultdict
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from navigate.graph import related_entities
from navigate.models import (
    Dataset,
    DatasetMetadata,
    FundingByType,
    FundingEvent,
    Project,
    Relationship,
    Stakeholder,
    Technology,
)

log = logging.getLogger(__name__)

DATASET_VERSION = "1.0.0"

# collection key -> file name in a JSON dataset directory
COLLECTION_FILES: dict[str, str] = {
    "stakeholders": "stakeholders.json",
    "technologies": "technologies.json",
    "funding_events": "funding-events.json",
    "projects": "projects.json",
    "relationships": "relationships.json",
}
METADATA_FILE = "metadata.json"


class DatasetError(Exception):
    """Dataset references entities that do not exist (or duplicates ids)."""
    def __init__(self, problems: list[str]):
        shown = "; ".join(problems[:10])
        more = f" (+{len(problems) - 10} more)" if len(problems) > 10 else ""
        super().__init__(f"{len(problems)} dataset integrity problem(s): {shown}{more}")
        self.problems = problems


# ---------------------------------------------------------------------------
# Integrity
# ---------------------------------------------------------------------------


def _duplicates(label: str, ids: list[str]) -> list[str]:
    seen: set[str] = set()
    problems: list[str] = []
    for entity_id in ids:
        if entity_id in seen:
            problems.append(f"duplicate {label} id {entity_id!r}")
        seen.add(entity_id)
    return problems


def check_integrity(dataset: Dataset) -> list[str]:
    """Return a list of referential-integrity problems (empty when consistent)."""
    stakeholder_ids = {s.id for s in dataset.stakeholders}
    technology_ids = {t.id for t in dataset.technologies}
    project_ids = {p.id for p in dataset.projects}
    event_ids = {f.id for f in dataset.funding_events}
    graph_ids = stakeholder_ids | technology_ids

    problems: list[str] = []
    problems += _duplicates("stakeholder", [s.id for s in dataset.stakeholders])
    problems += _duplicates("technology", [t.id for t in dataset.technologies])
    problems += _duplicates("funding event", [f.id for f in dataset.funding_events])
    problems += _duplicates("project", [p.id for p in dataset.projects])
    problems += _duplicates("relationship", [r.id for r in dataset.relationships])

    for rel in dataset.relationships:
        for end in ("source", "target"):
            ref = getattr(rel, end)
            if ref not in graph_ids:
                problems.append(f"relationship {rel.id}: unknown {end} {ref!r}")

    for event in dataset.funding_events:
        if event.source_id not in stakeholder_ids:
            problems.append(f"funding event {event.id}: unknown source_id {event.source_id!r}")
        recipients = stakeholder_ids if event.recipient_type == "stakeholder" else project_ids
        if event.recipient_id not in recipients:
            problems.append(
                f"funding event {event.id}: unknown {event.recipient_type} recipient {event.recipient_id!r}"
            )
        for tech_id in event.technologies_supported:
            if tech_id not in technology_ids:
                problems.append(f"funding event {event.id}: unknown technology {tech_id!r}")

    for proj in dataset.projects:
        for org in [*proj.participants, *([proj.lead_organization] if proj.lead_organization else [])]:
            if org not in stakeholder_ids:
                problems.append(f"project {proj.id}: unknown stakeholder {org!r}")
        for tech_id in [*proj.technologies, *([proj.primary_technology] if proj.primary_technology else [])]:
            if tech_id not in technology_ids:
                problems.append(f"project {proj.id}: unknown technology {tech_id!r}")
        for event_id in proj.funding_events:
            if event_id not in event_ids:
                problems.append(f"project {proj.id}: unknown funding event {event_id!r}")

    return problems


# ---------------------------------------------------------------------------
# Derivation
# ---------------------------------------------------------------------------


def derive_stakeholders(
    stakeholders: list[Stakeholder],
    funding_events: list[FundingEvent],
    relationships: list[Relationship],
) -> list[Stakeholder]:
    received: dict[str, float] = defaultdict(float)
    provided: dict[str, float] = defaultdict(float)
    for event in funding_events:
        received[event.recipient_id] += event.amount
        provided[event.source_id] += event.amount

    rel_count: dict[str, int] = defaultdict(int)
    for rel in relationships:
        rel_count[rel.source] += 1
        if rel.target != rel.source:
            rel_count[rel.target] += 1

    return [
        s.model_copy(update={
            "total_funding_received": received.get(s.id, 0.0),
            "total_funding_provided": provided.get(s.id, 0.0),
            "relationship_count": rel_count.get(s.id, 0),
        })
        for s in stakeholders
    ]


def derive_technologies(
    technologies: list[Technology],
    funding_events: list[FundingEvent],
    relationships: list[Relationship],
    projects: list[Project],
) -> list[Technology]:
    by_type: dict[str, dict[str, float]] = defaultdict(lambda: {"public": 0.0, "private": 0.0, "mixed": 0.0})
    for event in funding_events:
        for tech_id in set(event.technologies_supported):
            by_type[tech_id][event.funding_type.lower()] += event.amount

    advancing: dict[str, int] = defaultdict(int)
    for rel in relationships:
        if rel.type == "advances":
            advancing[rel.target] += 1

    project_count: dict[str, int] = defaultdict(int)
    for proj in projects:
        for tech_id in set(proj.technologies):
            project_count[tech_id] += 1

    derived: list[Technology] = []
    for tech in technologies:
        split = by_type.get(tech.id, {"public": 0.0, "private": 0.0, "mixed": 0.0})
        derived.append(tech.model_copy(update={
            "total_funding": split["public"] + split["private"] + split["mixed"],
            "funding_by_type": FundingByType(**split),
            "stakeholder_count": advancing.get(tech.id, 0),
            "project_count": project_count.get(tech.id, 0),
        }))
    return derived


def derive_fields(dataset: Dataset) -> Dataset:
    """Return a copy of *dataset* with all computed fields recalculated."""
    return dataset.model_copy(update={
        "stakeholders": derive_stakeholders(
            dataset.stakeholders, dataset.funding_events, dataset.relationships,
        ),
        "technologies": derive_technologies(
            dataset.technologies, dataset.funding_events, dataset.relationships, dataset.projects,
        ),
    })


def build_metadata(dataset: Dataset, version: str = DATASET_VERSION) -> DatasetMetadata:
    return DatasetMetadata(
        generated_at=datetime.now(UTC),
        counts={key: len(getattr(dataset, key)) for key in COLLECTION_FILES},
        version=version,
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class EntityStore:
    """Holds one loaded dataset. Pass the instance explicitly to consumers."""

    def __init__(self, dataset: Dataset | Mapping[str, Any] | None = None, *, strict: bool = True):
        self.strict = strict
        self._dataset = Dataset()
        self._index: dict[str, Stakeholder | Technology | Project] = {}
        if dataset is not None:
            self.load(dataset)

    # -- collections --------------------------------------------------------

    @property
    def stakeholders(self) -> list[Stakeholder]:
        return self._dataset.stakeholders

    @property
    def technologies(self) -> list[Technology]:
        return self._dataset.technologies

    @property
    def funding_events(self) -> list[FundingEvent]:
        return self._dataset.funding_events

    @property
    def projects(self) -> list[Project]:
        return self._dataset.projects

    @property
    def relationships(self) -> list[Relationship]:
        return self._dataset.relationships

    @property
    def metadata(self) -> DatasetMetadata | None:
        return self._dataset.metadata

    @property
    def dataset(self) -> Dataset:
        return self._dataset

    def is_empty(self) -> bool:
        return not any(getattr(self._dataset, key) for key in COLLECTION_FILES)

    def counts(self) -> dict[str, int]:
        return {key: len(getattr(self._dataset, key)) for key in COLLECTION_FILES}

    # -- loading ------------------------------------------------------------

    def load(self, dataset: Dataset | Mapping[str, Any], *, strict: bool | None = None) -> None:
        """Replace all collections and recompute derived fields.

        Validation happens before anything is swapped in, so a failed load
        leaves the previous dataset visible.
        """
        if not isinstance(dataset, Dataset):
            dataset = Dataset.model_validate(dataset)
        strict = self.strict if strict is None else strict

        problems = check_integrity(dataset)
        if problems:
            if strict:
                raise DatasetError(problems)
            for problem in problems:
                log.warning("Dataset integrity: %s", problem)

        derived = derive_fields(dataset)
        if derived.metadata is None:
            derived = derived.model_copy(update={"metadata": build_metadata(derived)})

        index: dict[str, Stakeholder | Technology | Project] = {}
        for collection in (derived.projects, derived.technologies, derived.stakeholders):
            for entity in collection:
                index[entity.id] = entity

        self._dataset, self._index = derived, index
        log.info("Loaded dataset: %s", self.counts())

    def load_json_dir(self, path: str | Path, *, strict: bool | None = None) -> None:
        """Load one JSON file per collection (plus optional metadata.json) from *path*."""
        path = Path(path)
        raw: dict[str, Any] = {}
        for key, filename in COLLECTION_FILES.items():
            raw[key] = json.loads((path / filename).read_text(encoding="utf-8"))
        meta_path = path / METADATA_FILE
        if meta_path.exists():
            raw["metadata"] = json.loads(meta_path.read_text(encoding="utf-8"))
        self.load(raw, strict=strict)

    # -- lookups ------------------------------------------------------------

    def get_entity(self, entity_id: str) -> Stakeholder | Technology | Project | None:
        """Find a stakeholder, technology or project by id."""
        return self._index.get(entity_id)

    def entity_kind(self, entity_id: str) -> str | None:
        entity = self._index.get(entity_id)
        if isinstance(entity, Stakeholder):
            return "stakeholder"
        if isinstance(entity, Technology):
            return "technology"
        if isinstance(entity, Project):
            return "project"
        return None

    def related_entities(self, entity_id: str) -> list[str]:
        return related_entities(entity_id, self.relationships)
