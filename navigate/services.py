"""Shared business logic for the NAVIGATE API and MCP server."""
from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from navigate.config import Settings, get_settings
from navigate.filters import FilteredView, FilterSpec, apply_filters
from navigate.graph import GraphData, filter_graph_by_selection, node_degree, to_network_graph
from navigate.insights import InsightProvider, get_provider
from navigate.models import ChatContext, ChatMessage, FilterPreset, Insight
from navigate.store import EntityStore
from navigate.utils import json_parse

log = logging.getLogger(__name__)

# Collections addressable by name in the API, MCP tools and exports
COLLECTIONS = ("stakeholders", "technologies", "funding_events", "projects", "relationships")


def collection_key(name: str) -> str | None:
    """Accept ``funding-events`` as well as ``funding_events``."""
    key = name.strip().lower().replace("-", "_")
    return key if key in COLLECTIONS else None


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


class Workspace:
    """One session's exploration state over a loaded EntityStore.

    Holds the active filters, selected and highlighted entity ids, the last
    generated insights and the comparison result. Nothing here is global;
    the API keeps one instance on ``app.state``.
    """

    def __init__(self, store: EntityStore | None = None, settings: Settings | None = None):
        self.store = store or EntityStore()
        self.settings = settings or get_settings()
        self.filters = FilterSpec()
        self.selected: list[str] = []
        self.highlighted: list[str] = []
        self.insights: list[Insight] = []
        self.comparison: dict[str, Any] | None = None

    # -- filters ------------------------------------------------------------

    def view(self, spec: FilterSpec | None = None) -> FilteredView:
        return apply_filters(self.store, spec or self.filters)

    def update_filters(self, **changes: Any) -> FilterSpec:
        self.filters = self.filters.merged(**changes)
        return self.filters

    def set_filters(self, spec: FilterSpec) -> FilterSpec:
        self.filters = spec
        return self.filters

    def reset_filters(self) -> FilterSpec:
        self.filters = FilterSpec()
        return self.filters

    # -- selection ----------------------------------------------------------

    def select(self, ids: list[str]) -> list[str]:
        self.selected = list(dict.fromkeys(ids))
        return self.selected

    def highlight(self, ids: list[str]) -> list[str]:
        self.highlighted = list(dict.fromkeys(ids))
        return self.highlighted

    # -- projections --------------------------------------------------------

    def graph(self, selected: list[str] | None = None) -> GraphData:
        view = self.view()
        graph = to_network_graph(view.stakeholders, view.technologies, view.relationships)
        return filter_graph_by_selection(graph, selected or [])

    def entity_detail(self, entity_id: str) -> dict[str, Any] | None:
        entity = self.store.get_entity(entity_id)
        if entity is None:
            return None
        return {
            "kind": self.store.entity_kind(entity_id),
            "entity": entity.model_dump(mode="json"),
            "related": self.store.related_entities(entity_id),
        }

    # -- insights and chat --------------------------------------------------

    def provider(self, name: str | None = None) -> InsightProvider:
        return get_provider(name, self.settings)

    async def generate_insights(self, provider: InsightProvider | None = None) -> list[Insight]:
        """Run a provider over the filtered view and keep the result once it completes."""
        provider = provider or self.provider()
        insights = await provider.generate_insights(self.view())
        self.insights = insights
        return insights

    def chat_context(self, current_view: str = "dashboard", history: list[ChatMessage] | None = None) -> ChatContext:
        return ChatContext(
            current_view=current_view,
            selected_entities=list(self.selected),
            filters=self.filters.active(),
            history=history or [],
        )

    # -- dataset ------------------------------------------------------------

    def reload(self, dataset_dir: str | Path | None = None) -> dict[str, int]:
        """Reload from a JSON directory, or the bundled sample when none is configured."""
        dataset_dir = dataset_dir or self.settings.dataset_dir
        if dataset_dir:
            self.store.load_json_dir(dataset_dir, strict=self.settings.strict_integrity)
        else:
            from navigate.sample_data import build_sample_dataset
            self.store.load(build_sample_dataset(), strict=self.settings.strict_integrity)
        self.selected, self.highlighted, self.insights = [], [], []
        return self.store.counts()


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


def compute_stats(view: FilteredView) -> dict[str, Any]:
    """Dashboard statistics over a filtered view."""
    by_stakeholder_type: Counter[str] = Counter(s.type for s in view.stakeholders)
    by_category: Counter[str] = Counter(t.category for t in view.technologies)
    by_trl_color: Counter[str] = Counter(t.trl_color for t in view.technologies)
    by_funding_type: Counter[str] = Counter()
    for event in view.funding_events:
        by_funding_type[event.funding_type] += event.amount

    trls = [t.trl_current for t in view.technologies]
    avg_trl = round(sum(trls) / len(trls), 1) if trls else 0.0

    return {
        "total_funding": sum(f.amount for f in view.funding_events),
        "organization_count": len(view.stakeholders),
        "technology_count": len(view.technologies),
        "project_count": len(view.projects),
        "relationship_count": len(view.relationships),
        "funding_event_count": len(view.funding_events),
        "average_trl": avg_trl,
        "by_stakeholder_type": dict(by_stakeholder_type),
        "by_technology_category": dict(by_category),
        "by_trl_color": dict(by_trl_color),
        "funding_by_type": dict(by_funding_type),
    }


def graph_summary(graph: GraphData, top: int = 5) -> dict[str, Any]:
    """Node/link counts and the best-connected nodes."""
    degrees = sorted(
        ((node_degree(n.id, graph.links), n) for n in graph.nodes),
        key=lambda pair: (-pair[0], pair[1].label.lower()),
    )
    return {
        "nodes": len(graph.nodes),
        "links": len(graph.links),
        "most_connected": [
            {"id": n.id, "label": n.label, "type": n.type, "degree": d}
            for d, n in degrees[:top]
        ],
    }


def compare_scenarios(store: EntityStore, left: FilterSpec, right: FilterSpec) -> dict[str, Any]:
    """Statistics for two filter states side by side, plus their differences."""
    left_stats = compute_stats(apply_filters(store, left))
    right_stats = compute_stats(apply_filters(store, right))
    numeric = [k for k, v in left_stats.items() if isinstance(v, (int, float))]
    return {
        "left": {"filters": left.active(), "stats": left_stats},
        "right": {"filters": right.active(), "stats": right_stats},
        "difference": {k: right_stats[k] - left_stats[k] for k in numeric},
    }


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


def preset_summary(preset: FilterPreset) -> dict[str, Any]:
    return {
        "key": preset.key,
        "name": preset.name,
        "description": preset.description,
        "filters": json_parse(preset.filters_json, {}),
        "is_default": preset.is_default,
    }


def get_presets(session: Session) -> list[dict[str, Any]]:
    presets = session.execute(
        select(FilterPreset).order_by(FilterPreset.is_default.desc(), FilterPreset.id)
    ).scalars().all()
    return [preset_summary(p) for p in presets]


def get_preset(session: Session, key: str) -> FilterPreset | None:
    return session.execute(select(FilterPreset).where(FilterPreset.key == key)).scalars().first()


def create_preset(
    session: Session, *, key: str, name: str, spec: FilterSpec, description: str = "",
) -> dict[str, Any] | None:
    """Save a user preset. Returns None if the key is taken."""
    if get_preset(session, key) is not None:
        return None
    preset = FilterPreset(
        key=key, name=name, description=description,
        filters_json=json.dumps(spec.model_dump(mode="json")), is_default=False,
    )
    session.add(preset)
    session.commit()
    return preset_summary(preset)


def preset_spec(preset: FilterPreset) -> FilterSpec:
    return FilterSpec.model_validate(json_parse(preset.filters_json, {}))


def delete_preset(session: Session, key: str) -> bool:
    """Delete a user preset. Returns False if not found; built-in presets raise ValueError."""
    preset = get_preset(session, key)
    if preset is None:
        return False
    if preset.is_default:
        raise ValueError(f"Preset '{key}' is built in and cannot be deleted")
    session.delete(preset)
    session.commit()
    return True
