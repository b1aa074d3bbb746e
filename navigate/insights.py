"""Insight engine: rule-based and LLM-backed insight providers plus the chat assistant.

Providers
---------
- ``MockProvider``: always available. Three deterministic rules over the
  scoped data (funding gap, collaboration opportunity, recent funding
  activity) and keyword chat replies with suggested UI actions.
- ``OpenAIProvider`` / ``AnthropicProvider``: send a count summary (insights)
  or the view context plus history (chat) and parse the JSON reply.

``get_provider`` resolves a provider once from its name or the configured
default, falling back to the mock with a warning when the credential is
missing. Providers never touch workspace state; callers store what they return.
"""
from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from datetime import date, timedelta
from typing import Any, Protocol

from pydantic import ValidationError

from navigate.config import KNOWN_PROVIDERS, Settings, get_settings, normalize_provider
from navigate.models import (
    ChatActions,
    ChatContext,
    ChatMessage,
    ChatResponse,
    FundingEvent,
    Insight,
    Project,
    Relationship,
    Stakeholder,
    Technology,
)

log = logging.getLogger(__name__)


class InsightProviderError(Exception):
    """Provider call failed or returned unparseable output."""
    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class ScopedData(Protocol):
    stakeholders: Sequence[Stakeholder]
    technologies: Sequence[Technology]
    funding_events: Sequence[FundingEvent]
    projects: Sequence[Project]
    relationships: Sequence[Relationship]


# ---------------------------------------------------------------------------
# Rule thresholds
# ---------------------------------------------------------------------------

GAP_MIN_TRL = 6
GAP_MAX_FUNDING = 5_000_000.0
ISOLATED_MAX_RELATIONSHIPS = 2
RECENT_FUNDING_DAYS = 180


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

INSIGHT_SYSTEM_PROMPT = (
    "You are an AI assistant analyzing the UK zero emission aviation ecosystem. "
    "Provide structured insights in JSON format."
)


def build_insight_prompt(data: ScopedData) -> str:
    return f"""\
Analyze the following UK zero emission aviation ecosystem data and identify key insights:

Stakeholders: {len(data.stakeholders)}
Technologies: {len(data.technologies)}
Funding Events: {len(data.funding_events)}
Projects: {len(data.projects)}
Relationships: {len(data.relationships)}

Identify:
1. Funding gaps (technologies with low funding relative to TRL)
2. Opportunities (underutilized relationships, potential collaborations)
3. Risks (technologies at risk of stagnation)
4. Trends (funding patterns, technology progression)

Respond with ONLY valid JSON:
{{
  "insights": [
    {{
      "id": "<string>",
      "type": "<gap|opportunity|risk|trend>",
      "title": "<short title>",
      "description": "<1-2 sentences>",
      "entities": ["<entity id>", ...],
      "confidence": <0-1>,
      "actionable": <true|false>
    }}
  ]
}}
"""


def build_chat_system_prompt(context: ChatContext) -> str:
    return f"""\
You are an AI assistant for the NAVIGATE platform, analyzing the UK zero emission aviation ecosystem.

Current context:
- View: {context.current_view}
- Selected entities: {len(context.selected_entities)}
- Active filters: {json.dumps(context.filters, default=str)}

You can:
- Answer questions about stakeholders, technologies, funding, and projects
- Suggest filters to explore specific aspects
- Highlight entities in the visualization
- Generate insights about the data

Respond with ONLY valid JSON:
{{
  "message": "<your answer>",
  "actions": {{"highlight": ["<entity id>"], "filter": {{}}, "switch_view": "<view name>"}},
  "insights": []
}}
"actions" and "insights" are optional.
"""


def history_messages(history: Sequence[ChatMessage]) -> list[dict[str, str]]:
    """Prior turns in provider message format; system turns are dropped."""
    return [{"role": m.role, "content": m.content} for m in history if m.role != "system"]


# ---------------------------------------------------------------------------
# Reply parsing
# ---------------------------------------------------------------------------

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)


def extract_json(text: str) -> dict[str, Any]:
    """Parse a JSON object from a model reply, tolerating a fenced code block."""
    text = (text or "").strip()
    m = _FENCED_JSON.search(text)
    if m:
        text = m.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InsightProviderError(f"Provider returned invalid JSON: {text[:200]}", retryable=False) from exc
    if not isinstance(data, dict):
        raise InsightProviderError(f"Provider returned non-object JSON: {text[:200]}", retryable=False)
    return data


def _confidence(value: Any) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return 0.5


def _text_field(raw: dict[str, Any], key: str, default: str) -> str:
    value = raw.get(key)
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        raise InsightProviderError(f"Provider reply field '{key}' is not a string", retryable=False)
    return value


def _entity_ids(value: Any) -> list[str]:
    """A list of ids; a lone id string counts as a one-element list."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(e, str) for e in value):
        raise InsightProviderError("Provider reply field 'entities' is not a list of ids", retryable=False)
    return list(value)


def parse_insight(raw: dict[str, Any], index: int) -> Insight:
    kind = raw.get("type")
    try:
        return Insight(
            id=str(raw.get("id") or f"insight-{index}"),
            type=kind if kind in ("gap", "opportunity", "risk", "trend") else "trend",
            title=_text_field(raw, "title", "Untitled Insight"),
            description=_text_field(raw, "description", ""),
            entities=_entity_ids(raw.get("entities")),
            confidence=_confidence(raw.get("confidence", 0.5)),
            actionable=bool(raw.get("actionable", False)),
        )
    except ValidationError as exc:
        raise InsightProviderError(f"Provider returned a malformed insight: {exc}", retryable=False) from exc


def parse_insights(data: dict[str, Any]) -> list[Insight]:
    """Turn ``{"insights": [...]}`` into Insight records; missing fields get defaults."""
    items = data.get("insights")
    if not isinstance(items, list):
        raise InsightProviderError("Provider reply has no 'insights' list", retryable=False)
    return [parse_insight(item, i) for i, item in enumerate(items) if isinstance(item, dict)]


def parse_chat_response(data: dict[str, Any]) -> ChatResponse:
    actions = data.get("actions")
    insights = data.get("insights")
    message = _text_field(data, "message", "No response")
    try:
        parsed_actions = ChatActions.model_validate(actions) if isinstance(actions, dict) else None
    except ValidationError as exc:
        raise InsightProviderError(f"Provider returned malformed actions: {exc}", retryable=False) from exc
    return ChatResponse(
        message=message,
        actions=parsed_actions,
        insights=parse_insights({"insights": insights}) if isinstance(insights, list) else None,
    )


# ---------------------------------------------------------------------------
# Provider interface
# ---------------------------------------------------------------------------


class InsightProvider(ABC):
    name: str = ""

    @abstractmethod
    def is_available(self) -> bool: ...

    @abstractmethod
    async def generate_insights(self, data: ScopedData) -> list[Insight]: ...

    @abstractmethod
    async def chat(self, message: str, context: ChatContext) -> ChatResponse: ...

    @abstractmethod
    def stream_chat(self, message: str, context: ChatContext) -> AsyncIterator[str]: ...


# ---------------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------------


def funding_gap_rule(data: ScopedData) -> Insight | None:
    techs = [
        t for t in data.technologies
        if t.trl_current >= GAP_MIN_TRL and t.total_funding < GAP_MAX_FUNDING
    ]
    if not techs:
        return None
    return Insight(
        id="gap-1",
        type="gap",
        title="Funding Gap: High TRL Technologies",
        description=(
            f"{len(techs)} technologies at TRL {GAP_MIN_TRL}+ have less than £5M in funding. "
            "These may need additional support to reach commercialization."
        ),
        entities=[t.id for t in techs],
        confidence=0.8,
        actionable=True,
    )


def collaboration_rule(data: ScopedData) -> Insight | None:
    counts: dict[str, int] = {}
    for rel in data.relationships:
        counts[rel.source] = counts.get(rel.source, 0) + 1
        if rel.target != rel.source:
            counts[rel.target] = counts.get(rel.target, 0) + 1
    isolated = [s for s in data.stakeholders if counts.get(s.id, 0) < ISOLATED_MAX_RELATIONSHIPS]
    if not isolated:
        return None
    return Insight(
        id="opportunity-1",
        type="opportunity",
        title="Collaboration Opportunity",
        description=(
            f"{len(isolated)} stakeholders have few connections. "
            "Consider exploring potential collaborations."
        ),
        entities=[s.id for s in isolated],
        confidence=0.6,
        actionable=True,
    )


def recent_funding_rule(data: ScopedData, today: date | None = None) -> Insight | None:
    today = today or date.today()
    cutoff = today - timedelta(days=RECENT_FUNDING_DAYS)
    recent = [f for f in data.funding_events if cutoff <= f.date <= today]
    if not recent:
        return None
    return Insight(
        id="trend-1",
        type="trend",
        title="Recent Funding Activity",
        description=(
            f"{len(recent)} funding events in the last 6 months. "
            "The ecosystem is actively being funded."
        ),
        entities=[f.id for f in recent],
        confidence=0.9,
        actionable=False,
    )


MOCK_DEFAULT_REPLY = (
    "I'm a mock AI assistant. In production, I would use OpenAI or Claude to provide "
    "detailed analysis. Try asking about funding, technologies, or stakeholders."
)


class MockProvider(InsightProvider):
    """Rule-based insights and keyword replies; no network access."""

    name = "mock"

    def __init__(self, today: date | None = None):
        self._today = today

    def is_available(self) -> bool:
        return True

    async def generate_insights(self, data: ScopedData) -> list[Insight]:
        candidates = [
            funding_gap_rule(data),
            collaboration_rule(data),
            recent_funding_rule(data, self._today),
        ]
        return [i for i in candidates if i is not None]

    async def chat(self, message: str, context: ChatContext) -> ChatResponse:
        text = message.lower()
        if "fund" in text:
            return ChatResponse(
                message=(
                    "I can help you explore funding data. Try applying filters for "
                    "specific funding types or time periods."
                ),
                actions=ChatActions(filter={"type": "funding"}),
            )
        if "tech" in text:
            return ChatResponse(
                message=(
                    "I can help you explore technologies. Try filtering by TRL level "
                    "or technology category."
                ),
                actions=ChatActions(switch_view="technology"),
            )
        if "stakeholder" in text or "organization" in text:
            return ChatResponse(
                message=(
                    "I can help you explore stakeholders. Try viewing the network "
                    "graph to see relationships."
                ),
                actions=ChatActions(switch_view="network"),
            )
        return ChatResponse(message=MOCK_DEFAULT_REPLY)

    async def stream_chat(self, message: str, context: ChatContext) -> AsyncIterator[str]:
        reply = await self.chat(message, context)
        for word in reply.message.split(" "):
            yield word + " "


# ---------------------------------------------------------------------------
# Remote providers
# ---------------------------------------------------------------------------


class RemoteProvider(InsightProvider):
    """Shared plumbing for SDK-backed providers. Subclasses build ``_client``."""

    def __init__(self, settings: Settings | None = None, api_key: str | None = None, model: str | None = None):
        self.settings = settings or get_settings()
        self.model = model or self.settings.model_for(self.name)
        self._api_key = api_key if api_key is not None else self.settings.api_key_for(self.name)
        self._client: Any = None
        if self._api_key:
            self._init_client()

    @abstractmethod
    def _init_client(self) -> None: ...

    @abstractmethod
    async def _complete(self, system: str, messages: list[dict[str, str]]) -> str: ...

    @abstractmethod
    def _stream(self, system: str, messages: list[dict[str, str]]) -> AsyncIterator[str]: ...

    def is_available(self) -> bool:
        return self._client is not None

    def _require_client(self) -> None:
        if self._client is None:
            raise InsightProviderError(f"{self.name} provider is not configured", retryable=False)

    async def _call(self, system: str, messages: list[dict[str, str]]) -> dict[str, Any]:
        self._require_client()
        try:
            text = await self._complete(system, messages)
        except InsightProviderError:
            raise
        except Exception as exc:
            raise InsightProviderError(f"{self.name} API call failed: {exc}", retryable=True) from exc
        return extract_json(text)

    async def generate_insights(self, data: ScopedData) -> list[Insight]:
        reply = await self._call(
            INSIGHT_SYSTEM_PROMPT,
            [{"role": "user", "content": build_insight_prompt(data)}],
        )
        insights = parse_insights(reply)
        log.info("%s generated %d insights", self.name, len(insights))
        return insights

    async def chat(self, message: str, context: ChatContext) -> ChatResponse:
        reply = await self._call(
            build_chat_system_prompt(context),
            [*history_messages(context.history), {"role": "user", "content": message}],
        )
        return parse_chat_response(reply)

    async def stream_chat(self, message: str, context: ChatContext) -> AsyncIterator[str]:
        self._require_client()
        messages = [*history_messages(context.history), {"role": "user", "content": message}]
        try:
            async for fragment in self._stream(build_chat_system_prompt(context), messages):
                yield fragment
        except InsightProviderError:
            raise
        except Exception as exc:
            raise InsightProviderError(f"{self.name} stream failed: {exc}", retryable=True) from exc


class OpenAIProvider(RemoteProvider):
    name = "openai"

    def _init_client(self) -> None:
        import openai
        kwargs: dict[str, Any] = {"api_key": self._api_key}
        if self.settings.openai_base_url:
            kwargs["base_url"] = self.settings.openai_base_url
        self._client = openai.AsyncOpenAI(**kwargs)

    async def _complete(self, system: str, messages: list[dict[str, str]]) -> str:
        response = await self._client.chat.completions.create(
            model=self.model,
            max_tokens=self.settings.max_tokens,
            temperature=self.settings.temperature,
            response_format={"type": "json_object"},
            messages=[{"role": "system", "content": system}, *messages],
        )
        return response.choices[0].message.content or "{}"

    async def _stream(self, system: str, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        stream = await self._client.chat.completions.create(
            model=self.model,
            max_tokens=self.settings.max_tokens,
            temperature=self.settings.temperature,
            messages=[{"role": "system", "content": system}, *messages],
            stream=True,
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta


class AnthropicProvider(RemoteProvider):
    name = "anthropic"

    def _init_client(self) -> None:
        import anthropic
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)

    async def _complete(self, system: str, messages: list[dict[str, str]]) -> str:
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=self.settings.max_tokens,
            system=system,
            messages=messages,
        )
        return "".join(block.text for block in response.content if getattr(block, "type", "text") == "text")

    async def _stream(self, system: str, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        async with self._client.messages.stream(
            model=self.model,
            max_tokens=self.settings.max_tokens,
            system=system,
            messages=messages,
        ) as stream:
            async for text in stream.text_stream:
                yield text


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_REMOTE: dict[str, type[RemoteProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
}


def get_provider(name: str | None = None, settings: Settings | None = None) -> InsightProvider:
    """Resolve a provider by name (``openai``, ``anthropic``/``claude``, ``mock``).

    Without a name the configured default is used. A remote provider whose
    API key is missing falls back to ``MockProvider``. So does an unknown
    configured default; an unknown explicit name raises ValueError.
    """
    settings = settings or get_settings()
    resolved = normalize_provider(name or settings.ai_provider)
    if resolved not in KNOWN_PROVIDERS:
        if name:
            raise ValueError(f"Unknown AI provider: {name!r}")
        log.warning("Configured AI provider %r is unknown; falling back to mock", settings.ai_provider)
        return MockProvider()
    if resolved == "mock":
        return MockProvider()

    provider = _REMOTE[resolved](settings)
    if not provider.is_available():
        log.warning("AI provider %r has no API key configured; falling back to mock", resolved)
        return MockProvider()
    return provider


def available_providers(settings: Settings | None = None) -> list[dict[str, Any]]:
    settings = settings or get_settings()
    default = normalize_provider(settings.ai_provider)
    return [
        {
            "name": name,
            "available": name == "mock" or bool(settings.api_key_for(name)),
            "model": settings.model_for(name),
            "default": name == default,
        }
        for name in KNOWN_PROVIDERS
    ]
