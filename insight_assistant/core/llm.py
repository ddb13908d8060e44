"""LLM client utilities for LangChain integration."""

import json
import re
from typing import TypeVar

from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from insight_assistant.core.config import get_settings

T = TypeVar("T", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)


def get_llm(
    model: str | None = None,
    temperature: float = 0.0,
    timeout: float | None = None,
) -> ChatOpenAI:
    """
    Get configured chat model for short structured LLM calls.

    Args:
        model: Model name override (defaults to CLASSIFIER_MODEL)
        temperature: Sampling temperature (default 0.0)
        timeout: Per-request timeout in seconds

    Returns:
        ChatOpenAI instance configured with API key and model
    """
    settings = get_settings()

    return ChatOpenAI(
        api_key=settings.OPENAI_API_KEY,
        model=model or settings.CLASSIFIER_MODEL,
        temperature=temperature,
        timeout=timeout,
        max_retries=0,
    )


def strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences and surrounding whitespace from LLM output."""
    cleaned = raw_output.strip()
    fence_match = _FENCE_RE.search(cleaned)
    if fence_match:
        return fence_match.group(1).strip()
    return cleaned


def parse_llm_json(raw_output: str, model: type[T]) -> T:
    """
    Parse LLM output as JSON and validate against a Pydantic model.

    Args:
        raw_output: Raw string from LLM response
        model: Pydantic model class to validate against

    Returns:
        Validated Pydantic model instance

    Raises:
        json.JSONDecodeError: If JSON parsing fails after cleanup
        pydantic.ValidationError: If parsed JSON doesn't match schema
    """
    parsed = json.loads(strip_llm_fences(raw_output))
    return model.model_validate(parsed)
