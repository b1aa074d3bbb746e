"""MCP tools called directly against an in-memory workspace."""
from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from navigate import db, mcp_server
from navigate.insights import InsightProviderError, MockProvider


@pytest.fixture(autouse=True)
def mcp_workspace(workspace):
    db.init_db(":memory:")
    mcp_server.set_workspace(workspace)
    yield workspace
    mcp_server.set_workspace(None)


def test_overview_resource():
    overview = json.loads(mcp_server.navigate_overview())
    assert "stakeholder" in overview["data_model"]
    assert len(overview["workflow"]) == 7


def test_get_stats():
    stats = mcp_server.get_stats()
    assert stats["organization_count"] == 14
    assert stats["active_filters"] == {}


class TestListEntities:
    def test_filtered_collection(self):
        result = mcp_server.list_entities("technologies", trl_min=8)
        assert result["collection"] == "technologies"
        assert result["total"] == 2

    def test_hyphenated_name_and_limit(self):
        result = mcp_server.list_entities("funding-events", limit=2)
        assert result["total"] == 7
        assert [i["id"] for i in result["items"]] == ["fund-001", "fund-002"]

    def test_comma_separated_types(self):
        result = mcp_server.list_entities("stakeholders", stakeholder_types="Government, Research")
        assert result["total"] == 6

    def test_unknown_collection(self):
        assert "error" in mcp_server.list_entities("widgets")

    def test_inverted_trl_range(self):
        assert "error" in mcp_server.list_entities("technologies", trl_min=8, trl_max=2)


def test_search_entities():
    results = mcp_server.search_entities("zero", limit=2)
    assert [r["id"] for r in results] == ["org-zeroavia-001", "org-airbus-001"]


def test_get_entity():
    assert mcp_server.get_entity("tech-fuel-cell-pem-001")["kind"] == "technology"
    assert "error" in mcp_server.get_entity("ghost")


def test_graph_summary():
    summary = mcp_server.get_graph_summary()
    assert summary["nodes"] == 23
    assert summary["most_connected"][0]["label"] == "ZeroAvia"
    assert mcp_server.get_graph_summary("org-ati-001,org-dft-001")["links"] == 1


class TestInsightsTool:
    @pytest.mark.asyncio
    async def test_mock_insights(self, mcp_workspace):
        result = await mcp_server.generate_insights("mock")
        assert result["provider"] == "mock"
        assert result["insights"][0]["id"] == "gap-1"
        assert mcp_workspace.insights

    @pytest.mark.asyncio
    async def test_unknown_provider(self):
        assert "error" in await mcp_server.generate_insights("gemini")

    @pytest.mark.asyncio
    async def test_provider_failure(self):
        with patch.object(
            MockProvider, "generate_insights",
            new=AsyncMock(side_effect=InsightProviderError("timeout", retryable=True)),
        ):
            result = await mcp_server.generate_insights("mock")
        assert result["retryable"] is True


class TestPresetTools:
    def test_list(self):
        assert [p["key"] for p in mcp_server.list_presets()] == ["default", "trl-gap", "government-funded"]

    def test_apply(self, mcp_workspace):
        result = mcp_server.apply_preset("trl-gap")
        assert result["applied"] == "trl-gap"
        assert result["filters"]["trl_range"] == [6, 7]
        assert mcp_workspace.filters.trl_range == (6, 7)
        assert mcp_server.get_stats()["active_filters"] == result["filters"]

    def test_apply_missing(self):
        assert "error" in mcp_server.apply_preset("ghost")
