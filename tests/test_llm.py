"""Tests for LLM helpers."""

import json
from unittest.mock import patch

import pytest
from pydantic import BaseModel, ValidationError

from insight_assistant.core.llm import get_llm, parse_llm_json, strip_llm_fences


class _Route(BaseModel):
    strategy: str
    k: int


def test_strip_llm_fences_plain_json():
    assert strip_llm_fences('  {"a": 1}\n') == '{"a": 1}'


def test_strip_llm_fences_with_language_tag():
    raw = 'Here you go:\n```json\n{"a": 1}\n```\nThanks'
    assert strip_llm_fences(raw) == '{"a": 1}'


def test_parse_llm_json_validates():
    result = parse_llm_json('```\n{"strategy": "quickWins", "k": 5}\n```', _Route)
    assert result == _Route(strategy="quickWins", k=5)


def test_parse_llm_json_bad_json():
    with pytest.raises(json.JSONDecodeError):
        parse_llm_json("strategy: quickWins", _Route)


def test_parse_llm_json_schema_mismatch():
    with pytest.raises(ValidationError):
        parse_llm_json('{"strategy": "quickWins"}', _Route)


def test_get_llm_uses_classifier_model_by_default():
    with patch("insight_assistant.core.llm.ChatOpenAI") as mock_chat:
        get_llm(timeout=2.0)

    kwargs = mock_chat.call_args[1]
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["temperature"] == 0.0
    assert kwargs["timeout"] == 2.0
