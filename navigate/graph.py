"""Graph projection for the force-directed network view.

Maps stakeholders, technologies and relationships to nodes and links with
visual encodings. Node sizes are clamped so no single well-funded entity
dominates the layout; unknown categories get a neutral colour.
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel

from navigate.models import Relationship, Stakeholder, Technology

DEFAULT_COLOR = "#6b7280"

STAKEHOLDER_COLORS: dict[str, str] = {
    "Government": "#3b82f6",
    "Research": "#22c55e",
    "Industry": "#f59e0b",
    "Intermediary": "#a855f7",
}

TECHNOLOGY_COLORS: dict[str, str] = {
    "H2Production": "#06b6d4",
    "H2Storage": "#8b5cf6",
    "FuelCells": "#10b981",
    "Aircraft": "#f59e0b",
    "Infrastructure": "#ef4444",
}

# (min, max, divisor, offset) for node size = clamp(min, max, funding / divisor + offset)
STAKEHOLDER_SIZE = (3.0, 15.0, 1_000_000.0, 3.0)
TECHNOLOGY_SIZE = (2.0, 12.0, 5_000_000.0, 2.0)

DEFAULT_LINK_STRENGTH = {"funds": 0.8, "collaborates_with": 0.6}
FALLBACK_LINK_STRENGTH = 0.5
LINK_WIDTH_SCALE = 2.0


class GraphNode(BaseModel):
    id: str
    label: str
    type: Literal["stakeholder", "technology"]
    category: str
    value: float
    color: str


class GraphLink(BaseModel):
    id: str
    source: str
    target: str
    type: str
    strength: float
    width: float


class GraphData(BaseModel):
    nodes: list[GraphNode] = []
    links: list[GraphLink] = []


def clamp(lo: float, hi: float, value: float) -> float:
    return max(lo, min(hi, value))


def stakeholder_color(stakeholder_type: str) -> str:
    return STAKEHOLDER_COLORS.get(stakeholder_type, DEFAULT_COLOR)


def technology_color(category: str) -> str:
    return TECHNOLOGY_COLORS.get(category, DEFAULT_COLOR)


def _node_size(funding: float, params: tuple[float, float, float, float]) -> float:
    lo, hi, divisor, offset = params
    return clamp(lo, hi, (funding or 0.0) / divisor + offset)


def link_strength(rel: Relationship) -> float:
    """Explicit metadata strength if present, else a default by relationship type."""
    if rel.metadata.strength is not None:
        return rel.metadata.strength
    return DEFAULT_LINK_STRENGTH.get(rel.type, FALLBACK_LINK_STRENGTH)


def to_network_graph(
    stakeholders: Iterable[Stakeholder],
    technologies: Iterable[Technology],
    relationships: Iterable[Relationship],
) -> GraphData:
    """Project the (already filtered) entities into nodes and links.

    A relationship whose endpoints are not both among the nodes is dropped,
    so the renderer never sees a dangling link.
    """
    nodes = [
        GraphNode(
            id=s.id, label=s.name, type="stakeholder", category=s.type,
            value=_node_size(s.total_funding_provided, STAKEHOLDER_SIZE),
            color=stakeholder_color(s.type),
        )
        for s in stakeholders
    ]
    nodes += [
        GraphNode(
            id=t.id, label=t.name, type="technology", category=t.category,
            value=_node_size(t.total_funding, TECHNOLOGY_SIZE),
            color=technology_color(t.category),
        )
        for t in technologies
    ]

    node_ids = {n.id for n in nodes}
    links: list[GraphLink] = []
    for rel in relationships:
        if rel.source not in node_ids or rel.target not in node_ids:
            continue
        strength = link_strength(rel)
        links.append(GraphLink(
            id=rel.id, source=rel.source, target=rel.target, type=rel.type,
            strength=strength, width=strength * LINK_WIDTH_SCALE,
        ))
    return GraphData(nodes=nodes, links=links)


def filter_graph_by_selection(graph: GraphData, selected_ids: Iterable[str]) -> GraphData:
    """Restrict a graph to the selected nodes; an empty selection keeps everything."""
    selected = set(selected_ids)
    if not selected:
        return graph
    return GraphData(
        nodes=[n for n in graph.nodes if n.id in selected],
        links=[link for link in graph.links if link.source in selected and link.target in selected],
    )


def node_degree(node_id: str, links: Iterable[GraphLink]) -> int:
    """Degree centrality: number of links touching *node_id*."""
    return sum(1 for link in links if link.source == node_id or link.target == node_id)


def related_entities(entity_id: str, relationships: Iterable[Relationship]) -> list[str]:
    """Ids directly connected to *entity_id*, in first-seen order."""
    related: dict[str, None] = {}
    for rel in relationships:
        if rel.source == entity_id:
            related.setdefault(rel.target, None)
        elif rel.target == entity_id:
            related.setdefault(rel.source, None)
    return list(related)
