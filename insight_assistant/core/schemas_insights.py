"""Pydantic models for the insight corpus and retrieval."""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Impact = Literal["high", "medium", "low"]

IMPACT_LEVELS: tuple[str, ...] = ("high", "medium", "low")


class QuickWinCategory(str, Enum):
    """Value/effort bucket assigned to every proposed action."""

    HIGH_VALUE_QUICK_WIN = "high-value-quick-win"
    QUICK_WIN = "quick-win"
    HIGH_VALUE = "high-value"
    LOW_EFFORT = "low-effort"
    STANDARD = "standard"


def categorize_action(value: int, effort: int) -> QuickWinCategory:
    """Bucket an action by value and effort; the first matching rule wins."""
    if value >= 7 and effort <= 4:
        return QuickWinCategory.HIGH_VALUE_QUICK_WIN
    if value >= 6 and effort <= 3:
        return QuickWinCategory.QUICK_WIN
    if value >= 8:
        return QuickWinCategory.HIGH_VALUE
    if effort <= 3:
        return QuickWinCategory.LOW_EFFORT
    return QuickWinCategory.STANDARD


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# =============================================================================
# Static dataset
# =============================================================================


class Action(_CamelModel):
    """A proposed response to an insight, scored 1-10 on value and effort."""

    content: str
    value: int = Field(..., ge=1, le=10)
    effort: int = Field(..., ge=1, le=10)

    @property
    def ratio(self) -> float:
        return self.value / self.effort

    @property
    def quick_win_category(self) -> QuickWinCategory:
        return categorize_action(self.value, self.effort)


class Insight(_CamelModel):
    """A company-level observation with its proposed actions."""

    company: str
    homepage: str
    title: str
    summary: str
    impact: Impact
    links: tuple[str, ...] = ()
    proposed_actions: tuple[Action, ...] = ()


# =============================================================================
# Retrievable documents
# =============================================================================


class InsightDocument(_CamelModel):
    """One retrievable document per insight."""

    document_type: Literal["insight"] = "insight"
    id: int = Field(..., description="Stable position in the corpus")
    page_content: str
    company: str
    homepage: str
    title: str
    summary: str
    impact: Impact
    links: tuple[str, ...] = ()
    proposed_actions: tuple[Action, ...] = ()


class ActionDocument(_CamelModel):
    """One retrievable document per proposed action, carrying its parent insight."""

    document_type: Literal["action"] = "action"
    id: int = Field(..., description="Stable position in the corpus")
    page_content: str
    company: str
    homepage: str
    insight_title: str
    insight_summary: str
    impact: Impact
    links: tuple[str, ...] = ()
    action_content: str
    action_index: int
    value: int
    effort: int
    value_to_effort_ratio: float
    quick_win_category: QuickWinCategory


Document = Annotated[Union[InsightDocument, ActionDocument], Field(discriminator="document_type")]


# =============================================================================
# Retrieval
# =============================================================================


class RetrievalStrategy(str, Enum):
    """Named post-filter/sort policies; values match the public searchType names."""

    SIMILARITY = "similarity"
    QUICK_WINS = "quickWins"
    HIGH_VALUE = "highValue"
    VALUE_EFFORT = "valueEffort"
    COMPANY = "company"
    IMPACT = "impact"


class RetrievalFilters(_CamelModel):
    """Optional numeric and categorical filters; unset values use configured defaults."""

    min_value: int | None = Field(default=None, ge=1, le=10)
    max_effort: int | None = Field(default=None, ge=1, le=10)
    min_ratio: float | None = Field(default=None, gt=0)
    company: str | None = None
    impact: Impact | None = None


class RetrievalQuery(_CamelModel):
    """A request to the retrieval engine."""

    text: str = ""
    strategy: RetrievalStrategy = RetrievalStrategy.SIMILARITY
    k: int = Field(default=3, ge=1)
    include_scores: bool = False
    filters: RetrievalFilters = Field(default_factory=RetrievalFilters)


class RetrievalResult(_CamelModel):
    """Ordered documents (length <= k where k applies) with optional parallel scores."""

    strategy: RetrievalStrategy
    documents: tuple[Document, ...] = ()
    scores: tuple[float, ...] | None = None
    criteria: dict = Field(default_factory=dict)
