"""Pytest configuration and fixtures."""

import os

# Set before any insight_assistant module caches Settings
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("ANTHROPIC_API_KEY", "")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("CLASSIFIER_LLM_ENABLED", "false")

import pytest  # noqa: E402

from tests.fakes.fake_services import FakeIndex, small_corpus  # noqa: E402


@pytest.fixture
def corpus():
    """Three insights, eight actions (ids 3-10) with known value/effort scores."""
    return small_corpus()


@pytest.fixture
def fake_index(corpus):
    return FakeIndex(corpus.documents)
