"""Insight providers: mock rules, reply parsing and the SDK-backed providers."""
from __future__ import annotations

import json
import logging
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from navigate.config import Settings
from navigate.insights import (
    AnthropicProvider,
    InsightProviderError,
    MockProvider,
    OpenAIProvider,
    available_providers,
    build_chat_system_prompt,
    collaboration_rule,
    extract_json,
    funding_gap_rule,
    get_provider,
    history_messages,
    parse_chat_response,
    parse_insight,
    parse_insights,
    recent_funding_rule,
)
from navigate.models import ChatContext, ChatMessage

TODAY = date(2024, 3, 1)

INSIGHTS_REPLY = json.dumps({
    "insights": [
        {
            "id": "gap-x", "type": "gap", "title": "Storage gap",
            "description": "Liquid storage is underfunded.",
            "entities": ["tech-h2-storage-liquid-001"], "confidence": 0.7, "actionable": True,
        },
    ]
})


def _openai_response(content: str) -> MagicMock:
    return MagicMock(choices=[MagicMock(message=MagicMock(content=content))])


def _anthropic_response(content: str) -> MagicMock:
    return MagicMock(content=[MagicMock(type="text", text=content)])


def _chunk(content):
    return MagicMock(choices=[MagicMock(delta=MagicMock(content=content))])


async def _agen(items):
    for item in items:
        yield item


class _FakeTextStream:
    def __init__(self, fragments):
        self.text_stream = _agen(fragments)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


@pytest.fixture()
def openai_provider(mock_settings):
    provider = OpenAIProvider(mock_settings, api_key="sk-test")
    provider._client = MagicMock()
    return provider


@pytest.fixture()
def anthropic_provider(mock_settings):
    provider = AnthropicProvider(mock_settings, api_key="sk-ant-test")
    provider._client = MagicMock()
    return provider


# ---------------------------------------------------------------------------
# Mock rules
# ---------------------------------------------------------------------------


class TestMockRules:
    def test_funding_gap(self, store):
        insight = funding_gap_rule(store)
        assert insight.id == "gap-1"
        assert insight.type == "gap"
        assert insight.entities == [
            "tech-h2-electrolysis-001",
            "tech-h2-reforming-001",
            "tech-h2-storage-compressed-001",
            "tech-h2-storage-liquid-001",
        ]
        assert insight.confidence == 0.8
        assert insight.actionable is True

    def test_collaboration_opportunity(self, store):
        insight = collaboration_rule(store)
        assert insight.id == "opportunity-1"
        assert len(insight.entities) == 12
        assert "org-zeroavia-001" not in insight.entities
        assert "org-ati-001" not in insight.entities

    def test_recent_funding(self, store):
        insight = recent_funding_rule(store, TODAY)
        assert insight.id == "trend-1"
        assert set(insight.entities) == {"fund-003", "fund-006"}
        assert insight.actionable is False

    def test_future_events_are_not_recent(self, store):
        assert recent_funding_rule(store, date(2022, 1, 1)) is None

    def test_rules_skip_when_nothing_qualifies(self):
        empty = MagicMock(stakeholders=[], technologies=[], funding_events=[], relationships=[])
        assert funding_gap_rule(empty) is None
        assert collaboration_rule(empty) is None
        assert recent_funding_rule(empty, TODAY) is None

    @pytest.mark.asyncio
    async def test_mock_provider_runs_all_rules(self, store):
        insights = await MockProvider(today=TODAY).generate_insights(store)
        assert [i.id for i in insights] == ["gap-1", "opportunity-1", "trend-1"]

    @pytest.mark.asyncio
    async def test_mock_provider_with_sample_dates_today(self, store):
        insights = await MockProvider(today=date(2030, 1, 1)).generate_insights(store)
        assert [i.type for i in insights] == ["gap", "opportunity"]


class TestMockChat:
    @pytest.mark.asyncio
    async def test_funding_keyword(self):
        reply = await MockProvider().chat("Show me FUNDING flows", ChatContext())
        assert reply.actions.filter == {"type": "funding"}

    @pytest.mark.asyncio
    async def test_technology_keyword(self):
        reply = await MockProvider().chat("which technologies are mature?", ChatContext())
        assert reply.actions.switch_view == "technology"

    @pytest.mark.asyncio
    async def test_stakeholder_keyword(self):
        reply = await MockProvider().chat("list organizations", ChatContext())
        assert reply.actions.switch_view == "network"

    @pytest.mark.asyncio
    async def test_default_reply(self):
        reply = await MockProvider().chat("hello", ChatContext())
        assert reply.actions is None
        assert reply.message.startswith("I'm a mock AI assistant")

    @pytest.mark.asyncio
    async def test_stream_reassembles_message(self):
        provider = MockProvider()
        reply = await provider.chat("hello", ChatContext())
        chunks = [c async for c in provider.stream_chat("hello", ChatContext())]
        assert len(chunks) > 1
        assert "".join(chunks).strip() == reply.message


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParsing:
    def test_plain_json(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        text = 'Here you go:\n```json\n{"insights": []}\n```\nDone.'
        assert extract_json(text) == {"insights": []}

    def test_invalid_json_not_retryable(self):
        with pytest.raises(InsightProviderError) as exc_info:
            extract_json("definitely not json")
        assert exc_info.value.retryable is False

    def test_non_object_rejected(self):
        with pytest.raises(InsightProviderError):
            extract_json("[1, 2, 3]")

    def test_insight_defaults(self):
        insight = parse_insight({"type": "bogus", "confidence": 7}, 3)
        assert insight.id == "insight-3"
        assert insight.type == "trend"
        assert insight.title == "Untitled Insight"
        assert insight.confidence == 1.0
        assert insight.entities == []

    def test_missing_insights_list(self):
        with pytest.raises(InsightProviderError):
            parse_insights({"message": "nothing"})
        assert parse_insights({"insights": []}) == []

    def test_chat_response_accepts_camel_case_view(self):
        reply = parse_chat_response({
            "message": "Look at these",
            "actions": {"highlight": ["org-ati-001"], "switchView": "network"},
        })
        assert reply.actions.switch_view == "network"
        assert reply.actions.highlight == ["org-ati-001"]
        assert reply.insights is None

    def test_chat_response_without_message(self):
        assert parse_chat_response({}).message == "No response"

    def test_lone_entity_string_is_one_id(self):
        insight = parse_insight({"title": "t", "entities": "org-ati-001"}, 0)
        assert insight.entities == ["org-ati-001"]

    @pytest.mark.parametrize("raw", [
        {"title": 123},
        {"title": "t", "description": ["a", "b"]},
        {"title": "t", "entities": {"id": "org-ati-001"}},
        {"title": "t", "entities": [1, 2]},
    ])
    def test_wrongly_typed_insight_fields(self, raw):
        with pytest.raises(InsightProviderError) as exc_info:
            parse_insights({"insights": [raw]})
        assert exc_info.value.retryable is False

    @pytest.mark.parametrize("reply", [
        {"message": "x", "actions": {"highlight": "org-ati-001"}},
        {"message": "x", "actions": {"filter": "funding"}},
        {"message": 42},
    ])
    def test_wrongly_typed_chat_reply(self, reply):
        with pytest.raises(InsightProviderError) as exc_info:
            parse_chat_response(reply)
        assert exc_info.value.retryable is False

    def test_history_drops_system_turns(self):
        history = [
            ChatMessage(role="system", content="ignore"),
            ChatMessage(role="user", content="hi"),
            ChatMessage(role="assistant", content="hello"),
        ]
        assert history_messages(history) == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]

    def test_chat_prompt_mentions_context(self):
        prompt = build_chat_system_prompt(
            ChatContext(current_view="network", selected_entities=["a", "b"], filters={"trl_range": [6, 7]})
        )
        assert "View: network" in prompt
        assert "Selected entities: 2" in prompt
        assert '"trl_range": [6, 7]' in prompt


# ---------------------------------------------------------------------------
# Remote providers
# ---------------------------------------------------------------------------


class TestOpenAIProvider:
    def test_unavailable_without_key(self, mock_settings):
        assert OpenAIProvider(mock_settings).is_available() is False

    @pytest.mark.asyncio
    async def test_unconfigured_call_raises(self, mock_settings, store):
        with pytest.raises(InsightProviderError) as exc_info:
            await OpenAIProvider(mock_settings).generate_insights(store)
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_generate_insights(self, openai_provider, store):
        openai_provider._client.chat.completions.create = AsyncMock(
            return_value=_openai_response(INSIGHTS_REPLY)
        )
        insights = await openai_provider.generate_insights(store)
        assert [i.id for i in insights] == ["gap-x"]

        kwargs = openai_provider._client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0]["role"] == "system"
        assert "Stakeholders: 14" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_chat_sends_history(self, openai_provider):
        openai_provider._client.chat.completions.create = AsyncMock(
            return_value=_openai_response('{"message": "ZeroAvia leads.", "actions": {"highlight": ["org-zeroavia-001"]}}')
        )
        context = ChatContext(history=[ChatMessage(role="user", content="earlier")])
        reply = await openai_provider.chat("who leads?", context)
        assert reply.message == "ZeroAvia leads."
        assert reply.actions.highlight == ["org-zeroavia-001"]

        messages = openai_provider._client.chat.completions.create.call_args.kwargs["messages"]
        assert [m["role"] for m in messages] == ["system", "user", "user"]
        assert messages[-1]["content"] == "who leads?"

    @pytest.mark.asyncio
    async def test_api_failure_is_retryable(self, openai_provider, store):
        openai_provider._client.chat.completions.create = AsyncMock(side_effect=RuntimeError("boom"))
        with pytest.raises(InsightProviderError) as exc_info:
            await openai_provider.generate_insights(store)
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_malformed_reply_not_retryable(self, openai_provider, store):
        openai_provider._client.chat.completions.create = AsyncMock(
            return_value=_openai_response('{"summary": "no list"}')
        )
        with pytest.raises(InsightProviderError) as exc_info:
            await openai_provider.generate_insights(store)
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_wrongly_typed_reply_not_retryable(self, openai_provider, store):
        openai_provider._client.chat.completions.create = AsyncMock(
            return_value=_openai_response('{"insights": [{"title": 123}]}')
        )
        with pytest.raises(InsightProviderError) as exc_info:
            await openai_provider.generate_insights(store)
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_stream(self, openai_provider):
        openai_provider._client.chat.completions.create = AsyncMock(
            return_value=_agen([_chunk("Hel"), MagicMock(choices=[]), _chunk(None), _chunk("lo")])
        )
        chunks = [c async for c in openai_provider.stream_chat("hi", ChatContext())]
        assert chunks == ["Hel", "lo"]
        assert openai_provider._client.chat.completions.create.call_args.kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_stream_failure_is_retryable(self, openai_provider):
        openai_provider._client.chat.completions.create = AsyncMock(side_effect=RuntimeError("reset"))
        with pytest.raises(InsightProviderError) as exc_info:
            [c async for c in openai_provider.stream_chat("hi", ChatContext())]
        assert exc_info.value.retryable is True


class TestAnthropicProvider:
    @pytest.mark.asyncio
    async def test_generate_insights_from_fenced_reply(self, anthropic_provider, store):
        anthropic_provider._client.messages.create = AsyncMock(
            return_value=_anthropic_response(f"```json\n{INSIGHTS_REPLY}\n```")
        )
        insights = await anthropic_provider.generate_insights(store)
        assert insights[0].entities == ["tech-h2-storage-liquid-001"]

        kwargs = anthropic_provider._client.messages.create.call_args.kwargs
        assert kwargs["system"].startswith("You are an AI assistant")
        assert kwargs["messages"][0]["role"] == "user"

    @pytest.mark.asyncio
    async def test_stream(self, anthropic_provider):
        anthropic_provider._client.messages.stream = MagicMock(
            return_value=_FakeTextStream(["Zero", "Avia"])
        )
        chunks = [c async for c in anthropic_provider.stream_chat("hi", ChatContext())]
        assert chunks == ["Zero", "Avia"]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestFactory:
    def test_mock_by_name(self, mock_settings):
        assert isinstance(get_provider("mock", mock_settings), MockProvider)

    def test_missing_key_falls_back_to_mock(self, caplog):
        settings = Settings(ai_provider="openai", openai_api_key="", anthropic_api_key="")
        with caplog.at_level(logging.WARNING, logger="navigate.insights"):
            provider = get_provider(None, settings)
        assert isinstance(provider, MockProvider)
        assert "falling back to mock" in caplog.text

    def test_claude_alias(self):
        settings = Settings(ai_provider="mock", openai_api_key="", anthropic_api_key="sk-ant-test")
        provider = get_provider("Claude", settings)
        assert isinstance(provider, AnthropicProvider)
        assert provider.model == settings.anthropic_model

    def test_unknown_provider(self, mock_settings):
        with pytest.raises(ValueError, match="Unknown AI provider"):
            get_provider("gemini", mock_settings)

    def test_unknown_configured_default_falls_back_to_mock(self, caplog):
        settings = Settings(ai_provider="gemini", openai_api_key="", anthropic_api_key="")
        with caplog.at_level(logging.WARNING, logger="navigate.insights"):
            provider = get_provider(None, settings)
        assert isinstance(provider, MockProvider)
        assert "falling back to mock" in caplog.text
        with pytest.raises(ValueError):
            get_provider("gemini", settings)

    @pytest.mark.parametrize("name", [None, "claude", "anthropic"])
    def test_missing_anthropic_key_falls_back_to_mock(self, name, caplog):
        settings = Settings(ai_provider="anthropic", openai_api_key="", anthropic_api_key="")
        with caplog.at_level(logging.WARNING, logger="navigate.insights"):
            provider = get_provider(name, settings)
        assert isinstance(provider, MockProvider)
        assert "falling back to mock" in caplog.text

    def test_available_providers(self, mock_settings):
        listing = {p["name"]: p for p in available_providers(mock_settings)}
        assert set(listing) == {"openai", "anthropic", "mock"}
        assert listing["mock"]["available"] is True
        assert listing["mock"]["default"] is True
        assert listing["openai"]["available"] is False
