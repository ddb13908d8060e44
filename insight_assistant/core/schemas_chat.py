"""Request and response models for the chat and search endpoints."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from insight_assistant.core.schemas_insights import Document, RetrievalStrategy

# Strategies whose broad-recall probe replaces the user's query text
QUERYLESS_STRATEGIES = frozenset(
    {
        RetrievalStrategy.QUICK_WINS,
        RetrievalStrategy.HIGH_VALUE,
        RetrievalStrategy.VALUE_EFFORT,
    }
)


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(_ApiModel):
    """Request to chat with the assistant."""

    message: str = ""
    conversation_id: str | None = None


class HistoryMessage(_ApiModel):
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime


class ConversationHistoryResponse(_ApiModel):
    conversation_id: str
    history: list[HistoryMessage]
    type: str = "agent"


class ClearConversationResponse(_ApiModel):
    conversation_id: str
    cleared: bool = True


class ConversationListResponse(_ApiModel):
    conversation_ids: list[str]
    total: int


class SearchRequest(_ApiModel):
    """Direct search over the insight corpus."""

    query: str = ""
    search_type: RetrievalStrategy = RetrievalStrategy.SIMILARITY
    k: int = Field(default=3, ge=1, le=50)
    include_scores: bool = False
    min_value: int = Field(default=6, ge=1, le=10)
    max_effort: int = Field(default=4, ge=1, le=10)
    min_ratio: float = Field(default=1.5, gt=0)

    @property
    def requires_query(self) -> bool:
        return self.search_type not in QUERYLESS_STRATEGIES


class SearchResponse(_ApiModel):
    results: list[Document]
    scores: list[float] | None = None
    search_type: RetrievalStrategy
    query: str
    metadata: dict[str, Any] = Field(default_factory=dict)
