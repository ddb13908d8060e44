"""Card models rendered by the chat client below the assistant's prose."""

from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

MAX_SUGGESTIONS = 3

Priority = Literal["high", "medium", "low"]


class _CardModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CardItem(_CardModel):
    """A plain card row."""

    title: str
    description: str | None = None


class ScoredCardItem(CardItem):
    """A card row carrying action scores; ratio is derived when omitted."""

    value: int | None = Field(default=None, ge=1, le=10)
    effort: int | None = Field(default=None, ge=1, le=10)
    ratio: float | None = None

    @model_validator(mode="after")
    def _derive_ratio(self) -> "ScoredCardItem":
        if self.ratio is None and self.value is not None and self.effort is not None:
            self.ratio = round(self.value / self.effort, 2)
        return self


class QuickWinItem(ScoredCardItem):
    priority: Priority | None = None
    reason: str | None = None
    next_steps: list[str] = Field(default_factory=list)
    impact: str | None = None


class CompetitiveItem(CardItem):
    competitor: str | None = None
    advantage: str | None = None
    threat_level: Priority | None = None


# =============================================================================
# Card variants
# =============================================================================


class ActionListCard(_CardModel):
    type: Literal["action-list"] = "action-list"
    title: str = "Recommended Actions"
    items: list[CardItem] = Field(default_factory=list)


class QuickWinsCard(_CardModel):
    type: Literal["quick-wins"] = "quick-wins"
    title: str = "Quick Wins"
    items: list[QuickWinItem] = Field(default_factory=list)


class HighValueActionsCard(_CardModel):
    type: Literal["high-value-actions"] = "high-value-actions"
    title: str = "High-Value Actions"
    items: list[ScoredCardItem] = Field(default_factory=list)


class CompetitiveAnalysisCard(_CardModel):
    type: Literal["competitive-analysis"] = "competitive-analysis"
    title: str = "Competitive Analysis"
    summary: str | None = None
    items: list[CompetitiveItem] = Field(default_factory=list)


class AssistanceSuggestionsCard(_CardModel):
    type: Literal["assistance-suggestions"] = "assistance-suggestions"
    title: str = "What would you like to explore next?"
    suggestions: list[str] = Field(default_factory=list)

    @field_validator("suggestions")
    @classmethod
    def _at_most_three(cls, v: list[str]) -> list[str]:
        cleaned = [s.strip() for s in v if s and s.strip()]
        return cleaned[:MAX_SUGGESTIONS]


TypedCard = Annotated[
    Union[
        ActionListCard,
        QuickWinsCard,
        HighValueActionsCard,
        CompetitiveAnalysisCard,
        AssistanceSuggestionsCard,
    ],
    Field(discriminator="type"),
]


class ChatMetadata(_CardModel):
    """JSON payload carried inside the metadata frame."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    cards: list[TypedCard] = Field(default_factory=list)
    replace_text: bool = False
