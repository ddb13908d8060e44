"""Process-wide service singletons, injected into routes with Depends."""

from functools import lru_cache

from insight_assistant.chains.generate_cards import AnthropicToolCaller, CardGenerator
from insight_assistant.context.query_classifier import QueryClassifier, build_query_classifier
from insight_assistant.core.completion import AnthropicCompletionService, CompletionService
from insight_assistant.core.config import get_settings
from insight_assistant.core.conversation_store import ConversationStore
from insight_assistant.core.corpus import get_corpus
from insight_assistant.core.logging import get_logger
from insight_assistant.core.retrieval import RetrievalConfig, RetrievalEngine
from insight_assistant.core.semantic_index import EmbeddingIndex, SemanticIndex

logger = get_logger(__name__)

_index: SemanticIndex | None = None


async def get_semantic_index() -> SemanticIndex:
    """Build the embedding index on first use.

    A failed build is not cached, so the next request retries it. Concurrent
    first requests may each build; the results are equivalent.
    """
    global _index
    if _index is None:
        _index = await EmbeddingIndex.build(get_corpus().documents)
    return _index


def reset_semantic_index() -> None:
    global _index
    _index = None


async def get_retrieval_engine() -> RetrievalEngine:
    index = await get_semantic_index()
    return RetrievalEngine(index, RetrievalConfig.from_settings(get_settings()))


@lru_cache
def get_conversation_store() -> ConversationStore:
    return ConversationStore()


@lru_cache
def get_query_classifier() -> QueryClassifier:
    return build_query_classifier(get_settings(), get_corpus().companies)


def get_completion_service() -> CompletionService:
    settings = get_settings()
    return AnthropicCompletionService(
        api_key=settings.ANTHROPIC_API_KEY,
        model=settings.CHAT_MODEL,
        max_tokens=settings.CHAT_RESPONSE_BUFFER,
        temperature=settings.CHAT_TEMPERATURE,
    )


def get_card_generator() -> CardGenerator:
    settings = get_settings()
    if not settings.CARDS_ENABLED or not settings.ANTHROPIC_API_KEY:
        return CardGenerator(None)
    return CardGenerator(
        AnthropicToolCaller(api_key=settings.ANTHROPIC_API_KEY, model=settings.CARDS_MODEL),
        timeout_seconds=settings.CARDS_TIMEOUT_SECONDS,
    )
