"""Chat streaming engine: retrieval-grounded completion with a trailing metadata frame.

Per response the streamer moves through::

    STREAMING_TEXT -> EMITTING_METADATA -> CLOSED

Tokens are yielded as they arrive (through ProseGuard, which only holds a
fragment that could still become a marker). After the completion finishes,
cards are generated and one metadata frame closes the body. A response whose
completion fails mid-stream closes without a frame.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum

from insight_assistant.chains.generate_cards import CardGenerator
from insight_assistant.context.prompts import build_chat_system_prompt
from insight_assistant.context.query_classifier import QueryClassifier
from insight_assistant.core.completion import CompletionService
from insight_assistant.core.conversation_store import ConversationMessage, ConversationStore
from insight_assistant.core.exceptions import CompletionServiceFailure
from insight_assistant.core.logging import get_logger, log_with_context
from insight_assistant.core.retrieval import RetrievalEngine
from insight_assistant.core.retrieval_format import format_retrieval_for_context
from insight_assistant.core.schemas_cards import ChatMetadata
from insight_assistant.core.stream_framing import ProseGuard, encode_metadata_frame

logger = get_logger(__name__)


class StreamState(str, Enum):
    STREAMING_TEXT = "streaming_text"
    EMITTING_METADATA = "emitting_metadata"
    CLOSED = "closed"


@dataclass
class ChatStreamConfig:
    """Explicit inputs for a chat streaming session."""

    conversation_id: str
    message: str
    history_window: int = 10
    context_max_tokens: int = 3000


class ResponseStreamer:
    """Drives one chat response from classification to the closing frame."""

    def __init__(
        self,
        store: ConversationStore,
        classifier: QueryClassifier,
        engine: RetrievalEngine,
        completion: CompletionService,
        cards: CardGenerator,
    ):
        self.store = store
        self.classifier = classifier
        self.engine = engine
        self.completion = completion
        self.cards = cards

    async def stream(self, config: ChatStreamConfig) -> AsyncGenerator[str, None]:
        """
        Yield the response body for one user message.

        Raises:
            RetrievalUnavailable: If the semantic index cannot serve the search
            CompletionServiceFailure: If the completion fails before any text was yielded
        """
        cid = config.conversation_id
        state = StreamState.STREAMING_TEXT
        history = self.store.snapshot(cid)
        history = history[-config.history_window :] if config.history_window > 0 else []

        try:
            classification = await self.classifier.classify(config.message)
            query = classification.to_retrieval_query(config.message)

            # Retrieval and the user-message append are independent
            retrieval, _ = await asyncio.gather(
                self.engine.retrieve(query),
                asyncio.to_thread(
                    self.store.append, cid, ConversationMessage(role="user", content=config.message)
                ),
            )
            log_with_context(
                logger,
                logging.INFO,
                "Retrieved context",
                conversation_id=cid,
                strategy=retrieval.strategy.value,
                documents=len(retrieval.documents),
            )

            system_prompt = build_chat_system_prompt(
                format_retrieval_for_context(retrieval, config.context_max_tokens),
                retrieval.strategy,
            )
            messages = [
                {"role": msg.role, "content": msg.content} for msg in history if msg.content.strip()
            ]
            messages.append({"role": "user", "content": config.message})

            guard = ProseGuard()
            tokens: list[str] = []
            yielded = False

            try:
                # aclosing stops the provider stream as soon as this generator is closed
                async with aclosing(self.completion.stream_text(system_prompt, messages)) as completion:
                    async for token in completion:
                        tokens.append(token)
                        safe = guard.feed(token)
                        if safe:
                            yielded = True
                            yield safe
            except CompletionServiceFailure as e:
                if not yielded:
                    raise
                log_with_context(
                    logger,
                    logging.WARNING,
                    f"Completion failed mid-stream, closing without metadata: {e}",
                    conversation_id=cid,
                    tokens=len(tokens),
                )
                tail = guard.flush()
                state = StreamState.CLOSED
                if tail:
                    yield tail
                return

            tail = guard.flush()
            if tail:
                yield tail

            answer = "".join(tokens)
            state = StreamState.EMITTING_METADATA
            cards = await self.cards.generate(history, config.message, answer, retrieval)

            if cards:
                payload = ChatMetadata(cards=cards, replace_text=False).model_dump(
                    by_alias=True, mode="json", exclude_none=True
                )
            else:
                payload = {}

            self.store.append(cid, ConversationMessage(role="assistant", content=answer))
            yield encode_metadata_frame(payload)
            state = StreamState.CLOSED

            log_with_context(
                logger,
                logging.INFO,
                "Chat stream complete",
                conversation_id=cid,
                chars=len(answer),
                cards=len(cards),
            )

        except (GeneratorExit, asyncio.CancelledError):
            log_with_context(
                logger,
                logging.INFO,
                f"Client disconnected during {state.value}",
                conversation_id=cid,
            )
            raise
