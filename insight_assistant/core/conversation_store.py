"""Conversation store: append-only message logs keyed by conversation id.

The only mutable state shared across concurrent requests. Each id has its
own lock, so an ``append`` is atomic and a ``snapshot`` is a point-in-time
copy that later appends cannot mutate. Appends against the same id from
concurrent requests are serialised in lock-acquisition order; nothing
stronger is promised.
"""

import threading
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from insight_assistant.core.logging import get_logger

logger = get_logger(__name__)


class ConversationMessage(BaseModel):
    """A single user or assistant turn."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class _Conversation:
    __slots__ = ("lock", "messages")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.messages: list[ConversationMessage] = []


class ConversationStore:
    """Thread- and task-safe mapping of conversation id to message log."""

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._conversations: dict[str, _Conversation] = {}

    def _get_or_create(self, conversation_id: str) -> _Conversation:
        with self._registry_lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                conversation = _Conversation()
                self._conversations[conversation_id] = conversation
            return conversation

    def append(self, conversation_id: str, message: ConversationMessage) -> int:
        """
        Append a message, creating the conversation on first reference.

        Returns:
            Message count for the conversation after the append
        """
        conversation = self._get_or_create(conversation_id)
        with conversation.lock:
            conversation.messages.append(message)
            return len(conversation.messages)

    def snapshot(self, conversation_id: str) -> list[ConversationMessage]:
        """Point-in-time copy of a conversation; empty for unknown ids."""
        with self._registry_lock:
            conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return []
        with conversation.lock:
            return list(conversation.messages)

    def clear(self, conversation_id: str) -> None:
        """Truncate a conversation's messages in place."""
        with self._registry_lock:
            conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return
        with conversation.lock:
            conversation.messages.clear()
        logger.info(f"Cleared conversation {conversation_id}")

    def conversation_ids(self) -> list[str]:
        """Ids of every conversation referenced so far."""
        with self._registry_lock:
            return list(self._conversations)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._conversations)
