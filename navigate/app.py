from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Generator

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, Response, StreamingResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from sqlalchemy.orm import Session

from navigate import services
from navigate.db import get_session, init_db
from navigate.export import scenario_json, to_csv, to_xlsx
from navigate.filters import FilterSpec, parse_csv
from navigate.graph import GraphData
from navigate.insights import InsightProvider, InsightProviderError, available_providers
from navigate.models import ChatResponse
from navigate.schemas import (
    ChatRequest,
    CompareRequest,
    FilterUpdate,
    IdsBody,
    InsightsRequest,
    InsightsResponse,
    ListResponse,
    PresetCreate,
    PresetOut,
    StatsOut,
)
from navigate.search import SearchResult, search
from navigate.services import Workspace
from navigate.store import DatasetError, EntityStore

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    workspace = Workspace(EntityStore())
    workspace.reload()
    app.state.workspace = workspace
    yield


app = FastAPI(
    title="NAVIGATE",
    version="0.1.0",
    description=(
        "Data exploration API for the UK zero emission aviation ecosystem. "
        "Filter stakeholders, technologies, funding and projects, explore the "
        "relationship network, and generate insights. "
        "All endpoints return JSON unless noted. No authentication required."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Dataset", "description": "Dataset metadata and reload."},
        {"name": "Entities", "description": "Filtered collections and single-entity lookup."},
        {"name": "Filters", "description": "The workspace's active filter state, selection and highlights."},
        {"name": "Graph", "description": "Network projection for the force-directed view."},
        {"name": "Search", "description": "Keyword search across collections."},
        {"name": "Stats", "description": "Aggregate statistics and scenario comparison."},
        {"name": "AI", "description": "Insights and chat assistant. Remote providers need OPENAI_API_KEY or ANTHROPIC_API_KEY."},
        {"name": "Presets", "description": "Saved filter presets."},
        {"name": "Export", "description": "CSV, scenario JSON and XLSX downloads of the filtered data."},
    ],
)

STATIC_DIR = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_workspace(request: Request) -> Workspace:
    return request.app.state.workspace


def filter_params(
    stakeholder_types: str | None = Query(None, description="Comma-separated: Government, Research, Industry, Intermediary"),
    technology_categories: str | None = Query(None, description="Comma-separated: H2Production, H2Storage, FuelCells, Aircraft, Infrastructure"),
    funding_types: str | None = Query(None, description="Comma-separated: Public, Private, Mixed"),
    trl_min: int | None = Query(None, ge=1, le=9),
    trl_max: int | None = Query(None, ge=1, le=9),
    funding_min: float | None = Query(None, ge=0),
    funding_max: float | None = Query(None, ge=0),
    search: str | None = Query(None, description="Keyword; when set, only the keyword decides membership"),
) -> FilterSpec | None:
    """Build a FilterSpec from query params; None when no param was given."""
    params = (stakeholder_types, technology_categories, funding_types,
              trl_min, trl_max, funding_min, funding_max, search)
    if all(p is None for p in params):
        return None
    default = FilterSpec()
    try:
        return FilterSpec(
            stakeholder_types=parse_csv(stakeholder_types),
            technology_categories=parse_csv(technology_categories),
            funding_types=parse_csv(funding_types),
            trl_range=(trl_min or default.trl_range[0], trl_max or default.trl_range[1]),
            funding_range=(
                funding_min if funding_min is not None else default.funding_range[0],
                funding_max if funding_max is not None else default.funding_range[1],
            ),
            search_query=search or "",
        )
    except ValidationError as exc:
        raise HTTPException(422, exc.errors(include_url=False, include_context=False, include_input=False)) from exc


def _list(ws: Workspace, spec: FilterSpec | None, key: str) -> dict:
    items = getattr(ws.view(spec), key)
    return {"items": [i.model_dump(mode="json") for i in items], "total": len(items)}


def _provider(ws: Workspace, name: str | None) -> InsightProvider:
    try:
        return ws.provider(name)
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc


# ---------------------------------------------------------------------------
# Routes: Static
# ---------------------------------------------------------------------------


@app.get("/", response_class=HTMLResponse)
async def root():
    html_path = STATIC_DIR / "index.html"
    if not html_path.exists():
        return HTMLResponse("<h1>NAVIGATE</h1><p>index.html not found</p>", status_code=500)
    return HTMLResponse(html_path.read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Routes: Dataset
# ---------------------------------------------------------------------------


@app.get("/api/dataset", tags=["Dataset"], summary="Dataset metadata and collection counts")
async def get_dataset(ws: Workspace = Depends(get_workspace)):
    metadata = ws.store.metadata
    return {
        "metadata": metadata.model_dump(mode="json") if metadata else None,
        "counts": ws.store.counts(),
    }


@app.post("/api/dataset/reload", tags=["Dataset"],
          summary="Reload the dataset from NAVIGATE_DATASET_DIR (or the bundled sample)")
async def reload_dataset(ws: Workspace = Depends(get_workspace)):
    try:
        counts = ws.reload()
    except DatasetError as exc:
        raise HTTPException(422, {"message": str(exc), "problems": exc.problems}) from exc
    except FileNotFoundError as exc:
        raise HTTPException(404, f"Dataset file not found: {exc.filename}") from exc
    except ValidationError as exc:
        raise HTTPException(422, {
            "message": "Dataset records are invalid",
            "problems": [f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()],
        }) from exc
    except json.JSONDecodeError as exc:
        raise HTTPException(422, {"message": f"Dataset file is not valid JSON: {exc}", "problems": []}) from exc
    return {"counts": counts}


# ---------------------------------------------------------------------------
# Routes: Entities
# ---------------------------------------------------------------------------


@app.get("/api/stakeholders", response_model=ListResponse, tags=["Entities"],
         summary="List stakeholders (query filters, or the active filters when none given)")
async def list_stakeholders(spec: FilterSpec | None = Depends(filter_params),
                            ws: Workspace = Depends(get_workspace)):
    return _list(ws, spec, "stakeholders")


@app.get("/api/technologies", response_model=ListResponse, tags=["Entities"],
         summary="List technologies (query filters, or the active filters when none given)")
async def list_technologies(spec: FilterSpec | None = Depends(filter_params),
                            ws: Workspace = Depends(get_workspace)):
    return _list(ws, spec, "technologies")


@app.get("/api/funding-events", response_model=ListResponse, tags=["Entities"],
         summary="List funding events (query filters, or the active filters when none given)")
async def list_funding_events(spec: FilterSpec | None = Depends(filter_params),
                              ws: Workspace = Depends(get_workspace)):
    return _list(ws, spec, "funding_events")


@app.get("/api/projects", response_model=ListResponse, tags=["Entities"],
         summary="List projects (query filters, or the active filters when none given)")
async def list_projects(spec: FilterSpec | None = Depends(filter_params),
                        ws: Workspace = Depends(get_workspace)):
    return _list(ws, spec, "projects")


@app.get("/api/relationships", response_model=ListResponse, tags=["Entities"],
         summary="List relationships whose endpoints both survive filtering")
async def list_relationships(spec: FilterSpec | None = Depends(filter_params),
                             ws: Workspace = Depends(get_workspace)):
    return _list(ws, spec, "relationships")


@app.get("/api/entities/{entity_id}", tags=["Entities"],
         summary="Get a stakeholder, technology or project with its related ids")
async def get_entity(entity_id: str, ws: Workspace = Depends(get_workspace)):
    detail = ws.entity_detail(entity_id)
    if detail is None:
        raise HTTPException(404, "Entity not found")
    return detail


# ---------------------------------------------------------------------------
# Routes: Filters & selection
# ---------------------------------------------------------------------------


def _filter_state(ws: Workspace) -> dict:
    return {
        "filters": ws.filters.model_dump(mode="json"),
        "active": ws.filters.active(),
        "counts": ws.view().counts(),
    }


@app.get("/api/filters", tags=["Filters"], summary="Get the active filter state")
async def get_filters(ws: Workspace = Depends(get_workspace)):
    return _filter_state(ws)


@app.put("/api/filters", tags=["Filters"], summary="Update the active filters (partial update, null fields ignored)")
async def update_filters(body: FilterUpdate, ws: Workspace = Depends(get_workspace)):
    try:
        ws.update_filters(**body.model_dump(exclude_none=True))
    except ValidationError as exc:
        raise HTTPException(422, exc.errors(include_url=False, include_context=False, include_input=False)) from exc
    return _filter_state(ws)


@app.delete("/api/filters", tags=["Filters"], summary="Reset all filters to defaults")
async def reset_filters(ws: Workspace = Depends(get_workspace)):
    ws.reset_filters()
    return _filter_state(ws)


@app.put("/api/selection", tags=["Filters"], summary="Replace the selected entity ids")
async def set_selection(body: IdsBody, ws: Workspace = Depends(get_workspace)):
    return {"selected": ws.select(body.ids)}


@app.put("/api/highlight", tags=["Filters"], summary="Replace the highlighted entity ids")
async def set_highlight(body: IdsBody, ws: Workspace = Depends(get_workspace)):
    return {"highlighted": ws.highlight(body.ids)}


# ---------------------------------------------------------------------------
# Routes: Graph, search, stats
# ---------------------------------------------------------------------------


@app.get("/api/graph", response_model=GraphData, tags=["Graph"],
         summary="Network graph of the filtered data, optionally restricted to selected ids")
async def get_graph(selected: str | None = Query(None, description="Comma-separated entity ids"),
                    ws: Workspace = Depends(get_workspace)):
    return ws.graph(parse_csv(selected))


@app.get("/api/search", response_model=list[SearchResult], tags=["Search"],
         summary="Keyword search across stakeholders, technologies, funding events and projects")
async def search_entities(q: str = Query("", description="Search keyword"),
                          limit: int = Query(10, ge=1, le=100),
                          ws: Workspace = Depends(get_workspace)):
    return search(ws.store, q, limit=limit)


@app.get("/api/stats", response_model=StatsOut, tags=["Stats"],
         summary="Statistics under the active filters")
async def get_stats(ws: Workspace = Depends(get_workspace)):
    return services.compute_stats(ws.view())


@app.post("/api/compare", tags=["Stats"], summary="Compare statistics of two filter states")
async def compare(body: CompareRequest, ws: Workspace = Depends(get_workspace)):
    ws.comparison = services.compare_scenarios(ws.store, body.left, body.right)
    return ws.comparison


# ---------------------------------------------------------------------------
# Routes: AI
# ---------------------------------------------------------------------------


@app.get("/api/providers", tags=["AI"], summary="List AI providers and whether they are configured")
async def list_providers(ws: Workspace = Depends(get_workspace)):
    return available_providers(ws.settings)


@app.post("/api/insights", response_model=InsightsResponse, tags=["AI"],
          summary="Generate insights for the filtered data")
async def generate_insights(body: InsightsRequest | None = None, ws: Workspace = Depends(get_workspace)):
    provider = _provider(ws, (body or InsightsRequest()).provider)
    try:
        insights = await ws.generate_insights(provider)
    except InsightProviderError as exc:
        raise HTTPException(502, f"Insight generation failed: {exc}") from exc
    return {"provider": provider.name, "insights": insights}


@app.post("/api/chat", response_model=ChatResponse, tags=["AI"], summary="Ask the assistant a question")
async def chat(body: ChatRequest, ws: Workspace = Depends(get_workspace)):
    provider = _provider(ws, body.provider)
    try:
        return await provider.chat(body.message, ws.chat_context(body.current_view, body.history))
    except InsightProviderError as exc:
        raise HTTPException(502, f"Chat failed: {exc}") from exc


@app.post("/api/chat/stream", tags=["AI"], summary="Ask the assistant a question (SSE text stream)")
async def chat_stream(body: ChatRequest, ws: Workspace = Depends(get_workspace)):
    provider = _provider(ws, body.provider)
    context = ws.chat_context(body.current_view, body.history)

    async def stream():
        try:
            async for fragment in provider.stream_chat(body.message, context):
                yield f"data: {json.dumps({'type': 'chunk', 'content': fragment})}\n\n"
        except InsightProviderError as exc:
            log.warning("Chat stream failed (%s): %s", provider.name, exc)
            yield f"data: {json.dumps({'type': 'error', 'message': str(exc), 'retryable': exc.retryable})}\n\n"
            return
        yield f"data: {json.dumps({'type': 'complete', 'provider': provider.name})}\n\n"

    return StreamingResponse(stream(), media_type="text/event-stream")


# ---------------------------------------------------------------------------
# Routes: Presets
# ---------------------------------------------------------------------------


@app.get("/api/presets", response_model=list[PresetOut], tags=["Presets"], summary="List filter presets")
async def list_presets(session: Session = Depends(db_session)):
    return services.get_presets(session)


@app.post("/api/presets", response_model=PresetOut, status_code=201, tags=["Presets"],
          summary="Save a preset (the given filters, or the active filters when omitted)")
async def create_preset(body: PresetCreate, session: Session = Depends(db_session),
                        ws: Workspace = Depends(get_workspace)):
    result = services.create_preset(
        session, key=body.key, name=body.name, description=body.description,
        spec=body.filters or ws.filters,
    )
    if result is None:
        raise HTTPException(409, f"Preset key '{body.key}' already exists")
    return result


@app.post("/api/presets/{key}/apply", tags=["Presets"], summary="Make a preset the active filter state")
async def apply_preset(key: str, session: Session = Depends(db_session),
                       ws: Workspace = Depends(get_workspace)):
    preset = services.get_preset(session, key)
    if preset is None:
        raise HTTPException(404, f"Preset '{key}' not found")
    ws.set_filters(services.preset_spec(preset))
    return _filter_state(ws)


@app.delete("/api/presets/{key}", tags=["Presets"], summary="Delete a user preset (built-in presets are protected)")
async def delete_preset(key: str, session: Session = Depends(db_session)):
    try:
        found = services.delete_preset(session, key)
    except ValueError as exc:
        raise HTTPException(403, str(exc)) from exc
    if not found:
        raise HTTPException(404, f"Preset '{key}' not found")
    return {"ok": True}


# ---------------------------------------------------------------------------
# Routes: Export (fixed names before the parameterized CSV route)
# ---------------------------------------------------------------------------


@app.get("/api/export/scenario.json", tags=["Export"],
         summary="Filtered data plus active filters and metadata as one JSON document")
async def export_scenario(ws: Workspace = Depends(get_workspace)):
    metadata = ws.store.metadata
    payload = scenario_json(ws.view(), ws.filters, metadata)
    return Response(
        json.dumps(payload, ensure_ascii=False, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="navigate-scenario.json"'},
    )


@app.get("/api/export/workbook.xlsx", tags=["Export"], summary="Filtered data as an XLSX workbook")
async def export_workbook(ws: Workspace = Depends(get_workspace)):
    return Response(
        to_xlsx(ws.view()),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="navigate-export.xlsx"'},
    )


@app.get("/api/export/{collection}.csv", tags=["Export"], summary="One filtered collection as CSV")
async def export_csv(collection: str, ws: Workspace = Depends(get_workspace)):
    key = services.collection_key(collection)
    if key is None:
        raise HTTPException(404, f"Unknown collection '{collection}'")
    records = getattr(ws.view(), key)
    if not records:
        raise HTTPException(404, "No data to export")
    filename = f"navigate-{key.replace('_', '-')}.csv"
    return Response(
        to_csv(records),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    uvicorn.run("navigate.app:app", host="127.0.0.1", port=8002, reload=True)


if __name__ == "__main__":
    main()
