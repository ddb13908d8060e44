"""Retrieval engine: deterministic post-filter/sort strategies over the semantic index.

The index ranks by embedding similarity, not by value or effort, so every
numeric strategy over-fetches a broad candidate set first and then filters
and sorts it. A narrow top-k followed by a filter would silently drop
qualifying actions.

Usage:
    from insight_assistant.core.retrieval import RetrievalEngine

    engine = RetrievalEngine(index, RetrievalConfig.from_settings(get_settings()))
    result = await engine.retrieve(RetrievalQuery(strategy="quickWins", k=5))
"""

from collections.abc import Iterable
from dataclasses import dataclass

from insight_assistant.core.config import Settings
from insight_assistant.core.exceptions import RetrievalUnavailable
from insight_assistant.core.logging import get_logger
from insight_assistant.core.schemas_insights import (
    IMPACT_LEVELS,
    ActionDocument,
    RetrievalQuery,
    RetrievalResult,
    RetrievalStrategy,
)
from insight_assistant.core.semantic_index import ScoredDocument, SemanticIndex

logger = get_logger(__name__)

# Broad-recall probes used when the strategy, not the user text, decides relevance
QUICK_WINS_QUERY = "quick win high value low effort action competitive advantage"
HIGH_VALUE_QUERY = "high value action competitive advantage strategic"
VALUE_EFFORT_QUERY = "efficient action high return on investment competitive"


@dataclass(frozen=True)
class RetrievalConfig:
    """Strategy defaults and over-fetch sizing."""

    default_k: int = 3
    action_k: int = 5
    quick_win_min_value: int = 6
    quick_win_max_effort: int = 4
    high_value_min_value: int = 7
    min_ratio: float = 1.5
    over_fetch_factor: int = 4
    over_fetch_floor: int = 20
    ratio_fetch_floor: int = 30
    broad_fetch: int = 20

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetrievalConfig":
        return cls(
            default_k=settings.DEFAULT_SIMILARITY_K,
            action_k=settings.DEFAULT_ACTION_K,
            quick_win_min_value=settings.QUICK_WIN_MIN_VALUE,
            quick_win_max_effort=settings.QUICK_WIN_MAX_EFFORT,
            high_value_min_value=settings.HIGH_VALUE_MIN_VALUE,
            min_ratio=settings.MIN_VALUE_EFFORT_RATIO,
            over_fetch_factor=settings.OVER_FETCH_FACTOR,
            over_fetch_floor=settings.OVER_FETCH_FLOOR,
            ratio_fetch_floor=settings.RATIO_FETCH_FLOOR,
            broad_fetch=settings.BROAD_FETCH,
        )


# =============================================================================
# Pure strategies: (candidates, filters) -> ordered documents
# =============================================================================


def _actions(candidates: Iterable[ScoredDocument]) -> list[ActionDocument]:
    return [doc for doc, _ in candidates if isinstance(doc, ActionDocument)]


def _by_ratio(doc: ActionDocument) -> tuple[float, int, int]:
    return (-doc.value_to_effort_ratio, -doc.value, doc.id)


def select_quick_wins(
    candidates: Iterable[ScoredDocument], k: int, min_value: int, max_effort: int
) -> list[ActionDocument]:
    """Actions with value >= min_value and effort <= max_effort, best ratio first."""
    qualifying = [
        doc for doc in _actions(candidates) if doc.value >= min_value and doc.effort <= max_effort
    ]
    return sorted(qualifying, key=_by_ratio)[:k]


def select_high_value(
    candidates: Iterable[ScoredDocument], k: int, min_value: int
) -> list[ActionDocument]:
    """Actions with value >= min_value, highest value first."""
    qualifying = [doc for doc in _actions(candidates) if doc.value >= min_value]
    return sorted(qualifying, key=lambda doc: (-doc.value, doc.id))[:k]


def select_by_ratio(
    candidates: Iterable[ScoredDocument], k: int, min_ratio: float
) -> list[ActionDocument]:
    """Actions with value/effort >= min_ratio, best ratio first."""
    qualifying = [doc for doc in _actions(candidates) if doc.value_to_effort_ratio >= min_ratio]
    return sorted(qualifying, key=_by_ratio)[:k]


def select_company(candidates: Iterable[ScoredDocument], company: str) -> list[ScoredDocument]:
    """Documents whose company matches exactly, ignoring case; index order kept."""
    wanted = company.strip().lower()
    return [(doc, score) for doc, score in candidates if doc.company.lower() == wanted]


def select_impact(candidates: Iterable[ScoredDocument], impact: str) -> list[ScoredDocument]:
    """Documents with the given impact level; index order kept."""
    return [(doc, score) for doc, score in candidates if doc.impact == impact]


# =============================================================================
# Engine
# =============================================================================


class RetrievalEngine:
    """Runs a retrieval strategy against the semantic index.

    Strategies never retry; a failing index surfaces as RetrievalUnavailable.
    """

    def __init__(self, index: SemanticIndex, config: RetrievalConfig | None = None):
        self._index = index
        self.config = config or RetrievalConfig()

    def fetch_size(self, k: int, floor: int | None = None) -> int:
        """Candidates to pull from the index for a filtered strategy."""
        if floor is None:
            floor = self.config.over_fetch_floor
        return max(k * self.config.over_fetch_factor, floor)

    async def _candidates(self, query: str, fetch: int) -> list[ScoredDocument]:
        try:
            return await self._index.search(query, fetch)
        except RetrievalUnavailable:
            raise
        except Exception as e:
            logger.error(f"Semantic index search failed: {e}", exc_info=True)
            raise RetrievalUnavailable("Semantic index search failed") from e

    async def similarity(self, query: str, k: int | None = None, include_scores: bool = False) -> RetrievalResult:
        k = k or self.config.default_k
        hits = await self._candidates(query, k)
        logger.info(f"Similarity search for '{query[:60]}' returned {len(hits)} documents")
        return RetrievalResult(
            strategy=RetrievalStrategy.SIMILARITY,
            documents=tuple(doc for doc, _ in hits),
            scores=tuple(score for _, score in hits) if include_scores else None,
        )

    async def quick_wins(
        self, k: int | None = None, min_value: int | None = None, max_effort: int | None = None
    ) -> RetrievalResult:
        k = k or self.config.action_k
        min_value = self.config.quick_win_min_value if min_value is None else min_value
        max_effort = self.config.quick_win_max_effort if max_effort is None else max_effort

        candidates = await self._candidates(QUICK_WINS_QUERY, self.fetch_size(k))
        docs = select_quick_wins(candidates, k, min_value, max_effort)
        logger.info(f"Found {len(docs)} quick wins (value >= {min_value}, effort <= {max_effort})")
        return RetrievalResult(
            strategy=RetrievalStrategy.QUICK_WINS,
            documents=tuple(docs),
            criteria={"minValue": min_value, "maxEffort": max_effort, "criteria": "high value, low effort"},
        )

    async def high_value(self, k: int | None = None, min_value: int | None = None) -> RetrievalResult:
        k = k or self.config.action_k
        min_value = self.config.high_value_min_value if min_value is None else min_value

        candidates = await self._candidates(HIGH_VALUE_QUERY, self.fetch_size(k))
        docs = select_high_value(candidates, k, min_value)
        logger.info(f"Found {len(docs)} high-value actions (value >= {min_value})")
        return RetrievalResult(
            strategy=RetrievalStrategy.HIGH_VALUE,
            documents=tuple(docs),
            criteria={"minValue": min_value, "criteria": "high value actions"},
        )

    async def value_effort_ratio(self, k: int | None = None, min_ratio: float | None = None) -> RetrievalResult:
        k = k or self.config.action_k
        min_ratio = self.config.min_ratio if min_ratio is None else min_ratio

        fetch = self.fetch_size(k, floor=self.config.ratio_fetch_floor)
        candidates = await self._candidates(VALUE_EFFORT_QUERY, fetch)
        docs = select_by_ratio(candidates, k, min_ratio)
        logger.info(f"Found {len(docs)} efficient actions (ratio >= {min_ratio})")
        return RetrievalResult(
            strategy=RetrievalStrategy.VALUE_EFFORT,
            documents=tuple(docs),
            criteria={"minRatio": min_ratio, "criteria": "high value-to-effort ratio"},
        )

    async def by_company(self, company: str) -> RetrievalResult:
        if not company or not company.strip():
            raise ValueError("Company name is required")

        candidates = await self._candidates(f"company: {company}", self.config.broad_fetch)
        hits = select_company(candidates, company)
        logger.info(f"Found {len(hits)} documents for company {company}")
        return RetrievalResult(
            strategy=RetrievalStrategy.COMPANY,
            documents=tuple(doc for doc, _ in hits),
            criteria={"company": company},
        )

    async def by_impact(self, impact: str) -> RetrievalResult:
        level = (impact or "").strip().lower()
        if level not in IMPACT_LEVELS:
            raise ValueError(f"Unknown impact level: {impact!r}")

        candidates = await self._candidates(f"impact: {level}", self.config.broad_fetch)
        hits = select_impact(candidates, level)
        logger.info(f"Found {len(hits)} {level} impact documents")
        return RetrievalResult(
            strategy=RetrievalStrategy.IMPACT,
            documents=tuple(doc for doc, _ in hits),
            criteria={"impact": level},
        )

    async def retrieve(self, query: RetrievalQuery) -> RetrievalResult:
        """
        Dispatch a query to its strategy.

        Raises:
            RetrievalUnavailable: If the semantic index cannot serve the search
            ValueError: If a company or impact query lacks a usable term
        """
        filters = query.filters
        strategy = query.strategy

        if strategy == RetrievalStrategy.QUICK_WINS:
            return await self.quick_wins(query.k, filters.min_value, filters.max_effort)
        if strategy == RetrievalStrategy.HIGH_VALUE:
            return await self.high_value(query.k, filters.min_value)
        if strategy == RetrievalStrategy.VALUE_EFFORT:
            return await self.value_effort_ratio(query.k, filters.min_ratio)
        if strategy == RetrievalStrategy.COMPANY:
            return await self.by_company(filters.company or query.text)
        if strategy == RetrievalStrategy.IMPACT:
            return await self.by_impact(filters.impact or query.text)
        return await self.similarity(query.text, query.k, query.include_scores)
