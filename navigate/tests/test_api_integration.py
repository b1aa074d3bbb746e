"""End-to-end tests for the REST API via TestClient."""
from __future__ import annotations

import io
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from navigate import db
from navigate.app import app, get_workspace
from navigate.insights import InsightProviderError, MockProvider, OpenAIProvider
from navigate.populate import write_json_dataset
from navigate.sample_data import build_sample_dataset
from navigate.services import Workspace


@pytest.fixture()
def ws(workspace):
    return workspace


@pytest.fixture()
def client(ws):
    db.init_db(":memory:")
    app.dependency_overrides[get_workspace] = lambda: ws
    with patch("navigate.app.init_db"):
        with TestClient(app) as c:
            yield c
    app.dependency_overrides.clear()


def _remote_openai(ws, reply: str) -> OpenAIProvider:
    provider = OpenAIProvider(ws.settings, api_key="sk-test")
    provider._client = MagicMock()
    provider._client.chat.completions.create = AsyncMock(
        return_value=MagicMock(choices=[MagicMock(message=MagicMock(content=reply))])
    )
    return provider


def _sse_events(text: str) -> list[dict]:
    return [
        json.loads(block[len("data: "):])
        for block in text.split("\n\n")
        if block.startswith("data: ")
    ]


# ---------------------------------------------------------------------------
# Dataset
# ---------------------------------------------------------------------------


class TestDataset:
    def test_index_page(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert "NAVIGATE" in r.text

    def test_dataset_counts(self, client):
        body = client.get("/api/dataset").json()
        assert body["counts"]["stakeholders"] == 14
        assert body["metadata"]["version"] == "1.0.0"

    def test_reload_from_directory(self, client, ws, tmp_path):
        write_json_dataset(build_sample_dataset(), tmp_path)
        ws.settings = ws.settings.model_copy(update={"dataset_dir": tmp_path})
        ws.select(["org-ati-001"])
        r = client.post("/api/dataset/reload")
        assert r.status_code == 200
        assert r.json()["counts"]["funding_events"] == 7
        assert ws.selected == []

    def test_reload_missing_files_404(self, client, ws, tmp_path):
        ws.settings = ws.settings.model_copy(update={"dataset_dir": tmp_path})
        assert client.post("/api/dataset/reload").status_code == 404
        assert ws.store.counts()["stakeholders"] == 14

    def test_reload_broken_references_422(self, client, ws, tmp_path):
        write_json_dataset(build_sample_dataset(), tmp_path)
        rels = json.loads((tmp_path / "relationships.json").read_text())
        rels.append({"id": "rel-bad", "source": "org-dft-001", "target": "org-ghost", "type": "funds"})
        (tmp_path / "relationships.json").write_text(json.dumps(rels))
        ws.settings = ws.settings.model_copy(update={"dataset_dir": tmp_path})

        r = client.post("/api/dataset/reload")
        assert r.status_code == 422
        assert any("org-ghost" in p for p in r.json()["detail"]["problems"])
        assert len(ws.store.relationships) == 6

    def test_reload_invalid_records_422(self, client, ws, tmp_path):
        write_json_dataset(build_sample_dataset(), tmp_path)
        techs = json.loads((tmp_path / "technologies.json").read_text())
        techs[0]["trl_current"] = "abc"
        (tmp_path / "technologies.json").write_text(json.dumps(techs))
        ws.settings = ws.settings.model_copy(update={"dataset_dir": tmp_path})

        r = client.post("/api/dataset/reload")
        assert r.status_code == 422
        assert any("trl_current" in p for p in r.json()["detail"]["problems"])
        assert len(ws.store.technologies) == 9

    def test_reload_invalid_json_422(self, client, ws, tmp_path):
        write_json_dataset(build_sample_dataset(), tmp_path)
        (tmp_path / "projects.json").write_text("not json")
        ws.settings = ws.settings.model_copy(update={"dataset_dir": tmp_path})

        r = client.post("/api/dataset/reload")
        assert r.status_code == 422
        assert "not valid JSON" in r.json()["detail"]["message"]
        assert len(ws.store.projects) == 2


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class TestEntities:
    def test_list_uses_active_filters_without_params(self, client, ws):
        assert client.get("/api/stakeholders").json()["total"] == 14
        ws.update_filters(stakeholder_types=["Government"])
        body = client.get("/api/stakeholders").json()
        assert body["total"] == 3
        assert [i["id"] for i in body["items"]] == ["org-dft-001", "org-ukri-001", "org-beis-001"]

    def test_query_params_override(self, client):
        body = client.get("/api/technologies", params={"trl_min": 8}).json()
        assert {i["id"] for i in body["items"]} == {
            "tech-h2-electrolysis-001", "tech-h2-storage-compressed-001",
        }
        body = client.get("/api/funding-events", params={"funding_types": "Private"}).json()
        assert [i["id"] for i in body["items"]] == ["fund-003"]

    def test_search_param_wins(self, client):
        body = client.get("/api/stakeholders", params={"stakeholder_types": "Government", "search": "airline"}).json()
        assert [i["id"] for i in body["items"]] == ["org-british-airways-001"]

    def test_relationships_and_projects(self, client):
        assert client.get("/api/relationships").json()["total"] == 6
        assert client.get("/api/projects").json()["total"] == 2
        assert client.get("/api/relationships", params={"stakeholder_types": "Government"}).json()["total"] == 0

    def test_derived_fields_in_payload(self, client):
        items = client.get("/api/technologies").json()["items"]
        regional = next(i for i in items if i["id"] == "tech-aircraft-regional-h2-001")
        assert regional["total_funding"] == 23_000_000
        assert regional["trl_color"] == "amber"

    def test_invalid_ranges(self, client):
        assert client.get("/api/technologies", params={"trl_min": 10}).status_code == 422
        assert client.get("/api/technologies", params={"trl_min": 8, "trl_max": 3}).status_code == 422
        r = client.get("/api/funding-events", params={"funding_min": 10, "funding_max": 1})
        assert r.status_code == 422

    def test_entity_detail(self, client):
        body = client.get("/api/entities/org-zeroavia-001").json()
        assert body["kind"] == "stakeholder"
        assert body["entity"]["relationship_count"] == 5
        assert "org-british-airways-001" in body["related"]

    def test_entity_not_found(self, client):
        assert client.get("/api/entities/org-ghost").status_code == 404


# ---------------------------------------------------------------------------
# Filters and selection
# ---------------------------------------------------------------------------


class TestFilters:
    def test_partial_updates_accumulate(self, client):
        client.put("/api/filters", json={"stakeholder_types": ["Research"]})
        body = client.put("/api/filters", json={"trl_range": [6, 7]}).json()
        assert body["active"] == {"stakeholder_types": ["Research"], "trl_range": [6, 7]}
        assert body["counts"]["stakeholders"] == 3
        assert body["counts"]["technologies"] == 4

    def test_invalid_update_keeps_state(self, client, ws):
        client.put("/api/filters", json={"stakeholder_types": ["Research"]})
        r = client.put("/api/filters", json={"trl_range": [7, 3]})
        assert r.status_code == 422
        assert ws.filters.stakeholder_types == ["Research"]
        assert ws.filters.trl_range == (1, 9)

    def test_reset(self, client):
        client.put("/api/filters", json={"search_query": "hydrogen"})
        body = client.delete("/api/filters").json()
        assert body["active"] == {}
        assert body["counts"]["stakeholders"] == 14

    def test_get_filters(self, client):
        body = client.get("/api/filters").json()
        assert body["filters"]["trl_range"] == [1, 9]
        assert body["counts"]["relationships"] == 6

    def test_selection_and_highlight(self, client, ws):
        assert client.put("/api/selection", json={"ids": ["a", "b", "a"]}).json() == {"selected": ["a", "b"]}
        assert client.put("/api/highlight", json={"ids": ["c"]}).json() == {"highlighted": ["c"]}
        assert ws.selected == ["a", "b"]


# ---------------------------------------------------------------------------
# Graph, search, stats
# ---------------------------------------------------------------------------


class TestGraphSearchStats:
    def test_graph(self, client):
        body = client.get("/api/graph").json()
        assert len(body["nodes"]) == 23
        assert len(body["links"]) == 6

    def test_graph_selection(self, client):
        body = client.get("/api/graph", params={"selected": "org-zeroavia-001,org-cranfield-001"}).json()
        assert {n["id"] for n in body["nodes"]} == {"org-zeroavia-001", "org-cranfield-001"}
        assert [link["type"] for link in body["links"]] == ["collaborates_with"]

    def test_graph_follows_filters(self, client):
        client.put("/api/filters", json={"stakeholder_types": ["Government"]})
        body = client.get("/api/graph").json()
        assert body["links"] == []

    def test_search(self, client):
        results = client.get("/api/search", params={"q": "zero"}).json()
        assert results[0]["id"] == "org-zeroavia-001"
        assert len(results) == 5
        assert client.get("/api/search", params={"q": "hydrogen", "limit": 3}).json()[2]["type"] == "stakeholder"
        assert client.get("/api/search").json() == []

    def test_stats(self, client):
        body = client.get("/api/stats").json()
        assert body["total_funding"] == 77_200_000
        assert body["average_trl"] == 6.2
        assert body["by_stakeholder_type"]["Government"] == 3

    def test_compare(self, client, ws):
        r = client.post("/api/compare", json={"right": {"stakeholder_types": ["Research"]}})
        assert r.status_code == 200
        body = r.json()
        assert body["difference"]["organization_count"] == -11
        assert body["right"]["filters"] == {"stakeholder_types": ["Research"]}
        assert ws.comparison == body


# ---------------------------------------------------------------------------
# AI
# ---------------------------------------------------------------------------


class TestInsightsAndChat:
    def test_providers(self, client):
        names = {p["name"]: p for p in client.get("/api/providers").json()}
        assert names["mock"]["default"] is True
        assert names["anthropic"]["available"] is False

    def test_generate_insights_mock(self, client, ws):
        r = client.post("/api/insights", json={"provider": "mock"})
        assert r.status_code == 200
        body = r.json()
        assert body["provider"] == "mock"
        types = [i["type"] for i in body["insights"]]
        assert "gap" in types and "opportunity" in types
        assert len(ws.insights) == len(body["insights"])

    def test_generate_insights_without_body(self, client):
        assert client.post("/api/insights").status_code == 200

    def test_unknown_provider(self, client):
        assert client.post("/api/insights", json={"provider": "gemini"}).status_code == 400

    def test_missing_key_falls_back_to_mock(self, client):
        body = client.post("/api/insights", json={"provider": "openai"}).json()
        assert body["provider"] == "mock"

    def test_provider_failure_502_keeps_previous_insights(self, client, ws):
        client.post("/api/insights", json={"provider": "mock"})
        before = list(ws.insights)
        with patch.object(
            MockProvider, "generate_insights",
            new=AsyncMock(side_effect=InsightProviderError("upstream down", retryable=True)),
        ):
            r = client.post("/api/insights", json={"provider": "mock"})
        assert r.status_code == 502
        assert ws.insights == before

    def test_malformed_remote_insights_502(self, client, ws):
        provider = _remote_openai(ws, '{"insights": [{"title": 123}]}')
        with patch("navigate.services.get_provider", return_value=provider):
            r = client.post("/api/insights", json={"provider": "openai"})
        assert r.status_code == 502
        assert ws.insights == []

    def test_malformed_remote_chat_actions_502(self, client, ws):
        provider = _remote_openai(ws, '{"message": "x", "actions": {"highlight": "org-ati-001"}}')
        with patch("navigate.services.get_provider", return_value=provider):
            r = client.post("/api/chat", json={"message": "who leads?", "provider": "openai"})
        assert r.status_code == 502
        assert "malformed" in r.json()["detail"]

    def test_chat(self, client):
        body = client.post("/api/chat", json={"message": "Tell me about funding"}).json()
        assert body["actions"]["filter"] == {"type": "funding"}

    def test_chat_empty_message(self, client):
        assert client.post("/api/chat", json={"message": ""}).status_code == 422

    def test_chat_failure(self, client):
        with patch.object(MockProvider, "chat", new=AsyncMock(side_effect=InsightProviderError("nope"))):
            assert client.post("/api/chat", json={"message": "hi"}).status_code == 502

    def test_chat_stream(self, client):
        r = client.post("/api/chat/stream", json={"message": "hello"})
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/event-stream")
        events = _sse_events(r.text)
        assert events[-1] == {"type": "complete", "provider": "mock"}
        text = "".join(e["content"] for e in events if e["type"] == "chunk")
        assert text.startswith("I'm a mock AI assistant")

    def test_chat_stream_error_event(self, client):
        async def failing(self, message, context):
            raise InsightProviderError("stream dropped", retryable=True)
            yield ""

        with patch.object(MockProvider, "stream_chat", failing):
            events = _sse_events(client.post("/api/chat/stream", json={"message": "hi"}).text)
        assert events == [{"type": "error", "message": "stream dropped", "retryable": True}]


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


class TestPresets:
    def test_builtins_listed(self, client):
        keys = [p["key"] for p in client.get("/api/presets").json()]
        assert keys == ["default", "trl-gap", "government-funded"]

    def test_create_apply_delete(self, client, ws):
        r = client.post("/api/presets", json={
            "key": "Fuel-Cells", "name": "Fuel cells",
            "filters": {"technology_categories": ["FuelCells"]},
        })
        assert r.status_code == 201
        assert r.json()["key"] == "fuel-cells"
        assert r.json()["is_default"] is False

        body = client.post("/api/presets/fuel-cells/apply").json()
        assert body["active"] == {"technology_categories": ["FuelCells"]}
        assert body["counts"]["technologies"] == 2
        assert ws.filters.technology_categories == ["FuelCells"]

        assert client.delete("/api/presets/fuel-cells").status_code == 200
        assert client.delete("/api/presets/fuel-cells").status_code == 404

    def test_create_from_active_filters(self, client):
        client.put("/api/filters", json={"funding_types": ["Private"]})
        r = client.post("/api/presets", json={"key": "private", "name": "Private"})
        assert r.json()["filters"]["funding_types"] == ["Private"]

    def test_duplicate_key_conflict(self, client):
        assert client.post("/api/presets", json={"key": "trl-gap", "name": "Again"}).status_code == 409

    def test_invalid_key(self, client):
        assert client.post("/api/presets", json={"key": "bad key!", "name": "x"}).status_code == 422

    def test_apply_builtin(self, client):
        body = client.post("/api/presets/government-funded/apply").json()
        assert body["active"] == {"funding_types": ["Public"]}
        assert body["counts"]["funding_events"] == 6

    def test_apply_missing(self, client):
        assert client.post("/api/presets/ghost/apply").status_code == 404

    def test_builtin_cannot_be_deleted(self, client):
        assert client.delete("/api/presets/default").status_code == 403


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


class TestExport:
    def test_csv(self, client):
        r = client.get("/api/export/stakeholders.csv")
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/csv")
        assert 'filename="navigate-stakeholders.csv"' in r.headers["content-disposition"]
        assert len(r.text.strip().splitlines()) == 15

    def test_csv_hyphenated_collection(self, client):
        r = client.get("/api/export/funding-events.csv")
        assert r.status_code == 200
        assert "fund-007" in r.text

    def test_csv_respects_filters(self, client):
        client.put("/api/filters", json={"funding_types": ["Private"]})
        lines = client.get("/api/export/funding_events.csv").text.strip().splitlines()
        assert len(lines) == 2

    def test_csv_unknown_and_empty(self, client):
        assert client.get("/api/export/widgets.csv").status_code == 404
        client.put("/api/filters", json={"stakeholder_types": ["Government"]})
        r = client.get("/api/export/relationships.csv")
        assert r.status_code == 404
        assert r.json()["detail"] == "No data to export"

    def test_scenario_json(self, client):
        client.put("/api/filters", json={"stakeholder_types": ["Research"]})
        body = client.get("/api/export/scenario.json").json()
        assert len(body["stakeholders"]) == 3
        assert body["filters"]["stakeholder_types"] == ["Research"]
        assert body["metadata"]["counts"]["stakeholders"] == 3

    def test_workbook(self, client):
        r = client.get("/api/export/workbook.xlsx")
        assert r.status_code == 200
        wb = load_workbook(io.BytesIO(r.content))
        assert "Funding Events" in wb.sheetnames


def test_lifespan_loads_sample(mock_settings):
    db.init_db(":memory:")
    with patch("navigate.app.init_db"), patch("navigate.services.get_settings", return_value=mock_settings):
        with TestClient(app) as c:
            assert isinstance(app.state.workspace, Workspace)
            assert c.get("/api/dataset").json()["counts"]["projects"] == 2
