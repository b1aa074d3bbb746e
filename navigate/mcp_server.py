from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from navigate import services
from navigate.db import init_db, session_scope
from navigate.filters import FilterSpec, parse_csv
from navigate.insights import InsightProviderError
from navigate.search import search
from navigate.services import Workspace
from navigate.store import EntityStore

log = logging.getLogger(__name__)

_workspace: Workspace | None = None


def get_workspace() -> Workspace:
    """The server's workspace, loading the configured dataset on first use."""
    global _workspace
    if _workspace is None:
        ws = Workspace(EntityStore())
        ws.reload()
        _workspace = ws
    return _workspace


def set_workspace(ws: Workspace | None) -> None:
    global _workspace
    _workspace = ws


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def navigate_lifespan(server: FastMCP) -> AsyncIterator[None]:
    init_db()
    get_workspace()
    yield


mcp = FastMCP(
    "NAVIGATE",
    instructions=(
        "NAVIGATE explores the UK zero emission aviation ecosystem: stakeholders, "
        "technologies, funding events, projects and their relationships. "
        "Start with get_stats() for an overview, then list_entities() or "
        "search_entities() to browse, then get_entity(id) for full details."
    ),
    lifespan=navigate_lifespan,
    json_response=True,
)


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------


@mcp.resource("navigate://overview")
def navigate_overview() -> str:
    """Overview of NAVIGATE: data model, workflow and filter semantics."""
    return json.dumps({
        "system": "NAVIGATE - UK Zero Emission Aviation Ecosystem Explorer",
        "data_model": {
            "stakeholder": "Organisation (Government, Research, Industry, Intermediary) with derived funding totals.",
            "technology": "Technology with a TRL (1-9, coloured red/amber/green) and derived funding by type.",
            "funding_event": "A GBP amount flowing from a stakeholder to a stakeholder or project.",
            "project": "A collaborative project with participants, technologies and funding events.",
            "relationship": "Typed edge between stakeholders/technologies (funds, collaborates_with, advances, ...).",
        },
        "workflow": [
            "1. get_stats() - counts, total funding and average TRL under the active filters.",
            "2. list_entities(collection, ...) - browse a collection with filters.",
            "3. search_entities(query) - keyword search across all collections.",
            "4. get_entity(id) - full record plus directly related ids.",
            "5. get_graph_summary() - network size and most connected nodes.",
            "6. generate_insights() - gaps, opportunities and trends.",
            "7. list_presets() / apply_preset(key) - saved filter states.",
        ],
        "filters": (
            "Allow-lists are comma-separated; an empty list means no restriction. "
            "A non-empty search replaces the other criteria for searchable collections."
        ),
    }, indent=2)


# ---------------------------------------------------------------------------
# Tools: Data
# ---------------------------------------------------------------------------


@mcp.tool()
def get_stats() -> dict:
    """Summary statistics under the active filters: total funding, organisation count, average TRL."""
    ws = get_workspace()
    return {**services.compute_stats(ws.view()), "active_filters": ws.filters.active()}


@mcp.tool()
def list_entities(
    collection: str,
    stakeholder_types: str | None = None, technology_categories: str | None = None,
    funding_types: str | None = None, trl_min: int = 1, trl_max: int = 9,
    search: str | None = None, limit: int = 50,
) -> dict:
    """List a filtered collection.

    Args:
        collection: stakeholders, technologies, funding_events, projects or relationships.
        stakeholder_types: Comma-separated from Government, Research, Industry, Intermediary.
        technology_categories: Comma-separated from H2Production, H2Storage, FuelCells, Aircraft, Infrastructure.
        funding_types: Comma-separated from Public, Private, Mixed.
        trl_min: Lowest TRL to include (1-9).
        trl_max: Highest TRL to include (1-9).
        search: Keyword; when given, only the keyword decides membership.
        limit: Max results (default 50, max 500).
    """
    key = services.collection_key(collection)
    if key is None:
        return {"error": f"Unknown collection '{collection}'"}
    try:
        spec = FilterSpec(
            stakeholder_types=parse_csv(stakeholder_types),
            technology_categories=parse_csv(technology_categories),
            funding_types=parse_csv(funding_types),
            trl_range=(trl_min, trl_max),
            search_query=search or "",
        )
    except ValueError as exc:
        return {"error": str(exc)}
    items = getattr(get_workspace().view(spec), key)
    return {
        "collection": key,
        "total": len(items),
        "items": [i.model_dump(mode="json") for i in items[:max(1, min(limit, 500))]],
    }


@mcp.tool()
def search_entities(query: str, limit: int = 10) -> list[dict]:
    """Keyword search across stakeholders, technologies, funding events and projects."""
    return [r.model_dump() for r in search(get_workspace().store, query, limit=max(1, limit))]


@mcp.tool()
def get_entity(entity_id: str) -> dict:
    """Full record for a stakeholder, technology or project, with directly related ids."""
    detail = get_workspace().entity_detail(entity_id)
    return detail if detail is not None else {"error": f"Entity {entity_id} not found"}


@mcp.tool()
def get_graph_summary(selected: str | None = None) -> dict:
    """Network graph size under the active filters and its most connected nodes.

    Args:
        selected: Optional comma-separated ids to restrict the graph to.
    """
    return services.graph_summary(get_workspace().graph(parse_csv(selected)))


@mcp.tool()
async def generate_insights(provider: str | None = None) -> dict:
    """Generate insights (gaps, opportunities, risks, trends) for the filtered data.

    Args:
        provider: openai, anthropic (or claude), or mock. Defaults to NAVIGATE_AI_PROVIDER.
    """
    ws = get_workspace()
    try:
        chosen = ws.provider(provider)
        insights = await ws.generate_insights(chosen)
    except ValueError as exc:
        return {"error": str(exc)}
    except InsightProviderError as exc:
        return {"error": f"Insight generation failed: {exc}", "retryable": exc.retryable}
    return {"provider": chosen.name, "insights": [i.model_dump() for i in insights]}


# ---------------------------------------------------------------------------
# Tools: Presets
# ---------------------------------------------------------------------------


@mcp.tool()
def list_presets() -> list[dict]:
    """List saved filter presets (built-in ones first)."""
    with session_scope() as session:
        return services.get_presets(session)


@mcp.tool()
def apply_preset(key: str) -> dict:
    """Make a saved preset the active filter state."""
    with session_scope() as session:
        preset = services.get_preset(session, key)
        if preset is None:
            return {"error": f"Preset '{key}' not found"}
        spec = services.preset_spec(preset)
    ws = get_workspace()
    ws.set_filters(spec)
    return {"applied": key, "filters": spec.active(), "counts": ws.view().counts()}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the NAVIGATE MCP server over stdio."""
    mcp.run()


if __name__ == "__main__":
    main()
