"""Generate UI cards for a finished chat answer.

The model is asked to call one or more card tools; each tool call is then
mapped to its card model without further interpretation. Card generation is
best-effort: a timeout, an API error or malformed tool input yields fewer
cards (or none), never a failed response.

Usage:
    from insight_assistant.chains.generate_cards import CardGenerator

    generator = CardGenerator(AnthropicToolCaller(api_key, model), timeout_seconds=20)
    cards = await generator.generate(history, message, answer, retrieval_result)
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from insight_assistant.core.conversation_store import ConversationMessage
from insight_assistant.core.exceptions import CardGenerationFailure
from insight_assistant.core.logging import get_logger
from insight_assistant.core.retrieval_format import format_retrieval_for_context
from insight_assistant.core.schemas_cards import (
    MAX_SUGGESTIONS,
    ActionListCard,
    AssistanceSuggestionsCard,
    CompetitiveAnalysisCard,
    HighValueActionsCard,
    QuickWinsCard,
)
from insight_assistant.core.schemas_insights import RetrievalResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class StructuredCall:
    """One tool invocation returned by the model."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


# (system, prompt) -> structured calls
ToolCaller = Callable[[str, str], Awaitable[list[StructuredCall]]]


# =============================================================================
# Tool schemas
# =============================================================================

_SCORED_ITEM = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "description": {"type": "string"},
        "value": {"type": "integer", "minimum": 1, "maximum": 10},
        "effort": {"type": "integer", "minimum": 1, "maximum": 10},
        "ratio": {"type": "number"},
    },
    "required": ["title"],
}

CARD_TOOLS: list[dict[str, Any]] = [
    {
        "name": "show_quick_wins",
        "description": "Show high-value, low-effort actions from the answer as a quick wins card.",
        "input_schema": {
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "items": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            **_SCORED_ITEM["properties"],
                            "priority": {"type": "string", "enum": ["high", "medium", "low"]},
                            "reason": {"type": "string"},
                            "nextSteps": {"type": "array", "items": {"type": "string"}},
                            "impact": {"type": "string"},
                        },
                        "required": ["title"],
                    },
                },
            },
            "required": ["items"],
        },
    },
    {
        "name": "show_high_value_actions",
        "description": "Show the most valuable actions from the answer with their scores.",
        "input_schema": {
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "items": {"type": "array", "items": _SCORED_ITEM},
            },
            "required": ["items"],
        },
    },
    {
        "name": "show_action_list",
        "description": "Show a plain list of recommended actions from the answer.",
        "input_schema": {
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "items": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "title": {"type": "string"},
                            "description": {"type": "string"},
                        },
                        "required": ["title"],
                    },
                },
            },
            "required": ["items"],
        },
    },
    {
        "name": "show_competitive_analysis",
        "description": "Show how the discussed actions compare against specific competitors.",
        "input_schema": {
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "summary": {"type": "string"},
                "items": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "title": {"type": "string"},
                            "description": {"type": "string"},
                            "competitor": {"type": "string"},
                            "advantage": {"type": "string"},
                            "threatLevel": {"type": "string", "enum": ["high", "medium", "low"]},
                        },
                        "required": ["title"],
                    },
                },
            },
            "required": ["items"],
        },
    },
    {
        "name": "suggest_next_steps",
        "description": f"Suggest up to {MAX_SUGGESTIONS} short follow-up requests the user could make next.",
        "input_schema": {
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "suggestions": {
                    "type": "array",
                    "items": {"type": "string"},
                    "maxItems": MAX_SUGGESTIONS,
                },
            },
            "required": ["suggestions"],
        },
    },
]

CARD_MODELS: dict[str, type[BaseModel]] = {
    "show_quick_wins": QuickWinsCard,
    "show_high_value_actions": HighValueActionsCard,
    "show_action_list": ActionListCard,
    "show_competitive_analysis": CompetitiveAnalysisCard,
    "suggest_next_steps": AssistanceSuggestionsCard,
}

SYSTEM_PROMPT = """You turn a competitor-intelligence answer into UI cards.

Call the card tools that fit the answer:
- show_quick_wins when the answer recommends high-value, low-effort actions
- show_high_value_actions when it ranks actions by value
- show_action_list for any other set of recommended actions
- show_competitive_analysis when it compares against named competitors
- suggest_next_steps always, with at most 3 short follow-up requests

Only use actions, scores and companies that appear in the retrieved data or the answer.
Keep titles short. Do not repeat the answer text."""


# =============================================================================
# Deterministic mapping
# =============================================================================


def build_card(call: StructuredCall) -> BaseModel | None:
    """Map one tool call to its card; None for unknown tools or invalid input."""
    model = CARD_MODELS.get(call.name)
    if model is None:
        logger.warning(f"Ignoring unknown card tool: {call.name}")
        return None

    arguments = {k: v for k, v in call.arguments.items() if k != "type"}
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        logger.warning(f"Invalid input for card tool {call.name}: {e.error_count()} errors")
        return None


def build_cards(calls: list[StructuredCall]) -> list[BaseModel]:
    cards = []
    for call in calls:
        card = build_card(call)
        if card is not None:
            cards.append(card)
    return cards


def _build_prompt(
    history: list[ConversationMessage],
    message: str,
    answer: str,
    retrieval: RetrievalResult | None,
) -> str:
    recent = "\n".join(f"{m.role}: {m.content[:300]}" for m in history[-4:]) or "(none)"
    retrieved = format_retrieval_for_context(retrieval, max_tokens=1500) if retrieval else "(none)"
    return f"""## Earlier Conversation
{recent}

## User Question
{message}

## Retrieved Data
{retrieved}

## Answer
{answer}

Create the cards for this answer."""


# =============================================================================
# Anthropic adapter
# =============================================================================


class AnthropicToolCaller:
    """Calls the Anthropic Messages API with the card tools and returns every tool_use block."""

    def __init__(self, api_key: str, model: str, max_tokens: int = 1500):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens

    async def __call__(self, system: str, prompt: str) -> list[StructuredCall]:
        from anthropic import AsyncAnthropic

        client = AsyncAnthropic(api_key=self.api_key)
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.0,
                tools=CARD_TOOLS,
                tool_choice={"type": "any"},
            )
        except Exception as e:
            raise CardGenerationFailure(f"Card tool call failed: {e}") from e

        calls = []
        for block in response.content:
            if block.type != "tool_use":
                continue
            arguments = block.input
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except json.JSONDecodeError as e:
                    raise CardGenerationFailure(f"Malformed input for {block.name}") from e
            calls.append(StructuredCall(name=block.name, arguments=arguments or {}))

        if not calls:
            logger.warning(f"No tool_use block in card response (stop_reason={response.stop_reason})")
        return calls


class CardGenerator:
    """Best-effort card generation bounded by a timeout."""

    def __init__(self, call_tools: ToolCaller | None, timeout_seconds: float = 20.0):
        self._call_tools = call_tools
        self.timeout_seconds = timeout_seconds

    async def generate(
        self,
        history: list[ConversationMessage],
        message: str,
        answer: str,
        retrieval: RetrievalResult | None = None,
    ) -> list[BaseModel]:
        if self._call_tools is None or not answer.strip():
            return []

        prompt = _build_prompt(history, message, answer, retrieval)
        try:
            calls = await asyncio.wait_for(self._call_tools(SYSTEM_PROMPT, prompt), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Card generation timed out after {self.timeout_seconds}s")
            return []
        except CardGenerationFailure as e:
            logger.warning(f"Card generation failed: {e}")
            return []
        except Exception as e:
            logger.error(f"Card generation raised unexpectedly: {e}", exc_info=True)
            return []

        cards = build_cards(calls)
        logger.info(f"Generated {len(cards)} cards from {len(calls)} tool calls")
        return cards
