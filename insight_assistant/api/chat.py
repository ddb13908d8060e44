"""Chat assistant API endpoints."""

from collections.abc import AsyncGenerator
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from insight_assistant.api.deps import (
    get_card_generator,
    get_completion_service,
    get_conversation_store,
    get_query_classifier,
    get_retrieval_engine,
)
from insight_assistant.chains.generate_cards import CardGenerator
from insight_assistant.context.query_classifier import QueryClassifier
from insight_assistant.core.chat_stream import ChatStreamConfig, ResponseStreamer
from insight_assistant.core.completion import CompletionService
from insight_assistant.core.config import get_settings
from insight_assistant.core.conversation_store import ConversationStore
from insight_assistant.core.exceptions import CompletionServiceFailure, RetrievalUnavailable
from insight_assistant.core.logging import get_logger
from insight_assistant.core.retrieval import RetrievalEngine
from insight_assistant.core.schemas_chat import (
    ChatRequest,
    ClearConversationResponse,
    ConversationHistoryResponse,
    ConversationListResponse,
    HistoryMessage,
)

logger = get_logger(__name__)

router = APIRouter()

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


async def _prepend(first: str, rest: AsyncGenerator[str, None]) -> AsyncGenerator[str, None]:
    try:
        if first:
            yield first
        async for chunk in rest:
            yield chunk
    finally:
        await rest.aclose()


@router.post("/chat")
@router.post("/agent")
async def chat_with_assistant(
    request: ChatRequest,
    store: ConversationStore = Depends(get_conversation_store),
    classifier: QueryClassifier = Depends(get_query_classifier),
    completion: CompletionService = Depends(get_completion_service),
    cards: CardGenerator = Depends(get_card_generator),
    engine: RetrievalEngine = Depends(get_retrieval_engine),
) -> StreamingResponse:
    """
    Chat with the insight assistant.

    Streams plain-text tokens followed by one metadata frame
    (``__METADATA__<json>__END_METADATA__``) carrying the UI cards.

    Args:
        request: Chat request with message and optional conversation id

    Returns:
        StreamingResponse with chunked text
    """
    if not request.message or not request.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    conversation_id = request.conversation_id or str(uuid4())

    try:
        streamer = ResponseStreamer(store, classifier, engine, completion, cards)
        body = streamer.stream(
            ChatStreamConfig(
                conversation_id=conversation_id,
                message=request.message,
                history_window=get_settings().CHAT_HISTORY_WINDOW,
            )
        )

        # Wait for the first chunk so failures before any output become request errors
        try:
            first = await body.__anext__()
        except StopAsyncIteration:
            first = ""

    except RetrievalUnavailable as e:
        logger.error(f"Retrieval unavailable for conversation {conversation_id}: {e}")
        raise HTTPException(status_code=503, detail="Search backend unavailable") from e
    except CompletionServiceFailure as e:
        logger.error(f"Completion failed for conversation {conversation_id}: {e}")
        raise HTTPException(status_code=502, detail="Completion service unavailable") from e
    except Exception as e:
        logger.error(f"Chat request failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error") from e

    return StreamingResponse(
        _prepend(first, body),
        media_type="text/plain; charset=utf-8",
        headers={**STREAM_HEADERS, "X-Conversation-Id": conversation_id},
    )


@router.get("/chat/{conversation_id}", response_model=ConversationHistoryResponse, response_model_by_alias=True)
async def get_conversation_history(
    conversation_id: str,
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationHistoryResponse:
    """Return a conversation's messages in order; unknown ids have an empty history."""
    messages = store.snapshot(conversation_id)
    return ConversationHistoryResponse(
        conversation_id=conversation_id,
        history=[
            HistoryMessage(role=m.role, content=m.content, created_at=m.created_at) for m in messages
        ],
    )


@router.delete("/chat/{conversation_id}", response_model=ClearConversationResponse, response_model_by_alias=True)
async def clear_conversation(
    conversation_id: str,
    store: ConversationStore = Depends(get_conversation_store),
) -> ClearConversationResponse:
    store.clear(conversation_id)
    return ClearConversationResponse(conversation_id=conversation_id)


@router.get("/conversations", response_model=ConversationListResponse, response_model_by_alias=True)
async def list_conversations(
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationListResponse:
    ids = store.conversation_ids()
    return ConversationListResponse(conversation_ids=ids, total=len(ids))
