"""Query classification: pick a retrieval strategy for a chat message.

Classifiers are tried in order until one returns a result:

1. ``KeywordClassifier`` - phrase heuristics for quick wins, high value,
   ROI, known company names and impact levels.
2. ``LLMClassifier`` - optional; a closed instruction set whose answer is
   validated against the strategy enumeration and the ``k`` bounds.
3. ``DefaultClassifier`` - similarity search with the default ``k``.

``QueryClassifier.classify`` never raises. A failing layer is logged and
the next one is tried; the default layer always answers.
"""

import asyncio
import json
import re
from collections.abc import Callable, Iterable
from typing import Protocol

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from insight_assistant.core.config import Settings
from insight_assistant.core.exceptions import ClassificationFailure
from insight_assistant.core.llm import get_llm, parse_llm_json
from insight_assistant.core.logging import get_logger
from insight_assistant.core.schemas_insights import (
    IMPACT_LEVELS,
    RetrievalFilters,
    RetrievalQuery,
    RetrievalStrategy,
)

logger = get_logger(__name__)


class QueryClassification(BaseModel):
    """Validated strategy choice for one query."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    strategy: RetrievalStrategy
    k: int = Field(..., ge=1)
    search_term: str | None = None
    source: str = "default"

    def to_retrieval_query(self, text: str) -> RetrievalQuery:
        filters = RetrievalFilters()
        if self.strategy == RetrievalStrategy.COMPANY:
            filters = RetrievalFilters(company=self.search_term)
        elif self.strategy == RetrievalStrategy.IMPACT:
            filters = RetrievalFilters(impact=self.search_term)
        return RetrievalQuery(text=text, strategy=self.strategy, k=self.k, filters=filters)


class Classifier(Protocol):
    """One layer of the classifier chain.

    Returns None when the layer has no opinion; raises ClassificationFailure
    when it tried and failed.
    """

    name: str

    async def classify(self, query: str) -> QueryClassification | None:
        ...


# =============================================================================
# Keyword layer
# =============================================================================

QUICK_WIN_PATTERNS = [
    r"\bquick[- ]?wins?\b",
    r"\blow[- ]effort\b",
    r"\beas(y|ier|iest)\b",
    r"\bimmediate(ly)?\b",
]
TODAY_PATTERN = r"\btoday\b"
TODAY_RETURN_PATTERN = r"\b(value|return)\b"

HIGH_VALUE_PATTERNS = [
    r"\bhigh(est)?[- ]value\b",
    r"\bmost valuable\b",
    r"\bbiggest impact\b",
    r"\bstrategic\b",
]

VALUE_EFFORT_PATTERNS = [
    r"\broi\b",
    r"\breturn on investment\b",
    r"\befficient\b",
    r"\bbang for (the |your )?buck\b",
    r"\bvalue (versus|vs\.?)",
]

IMPACT_PATTERN = r"\b(high|medium|low)[- ]impact\b"


def _matches_any(patterns: list[str], text: str) -> bool:
    return any(re.search(pattern, text) for pattern in patterns)


class KeywordClassifier:
    """Phrase heuristics; first matching category wins."""

    name = "keyword"

    def __init__(self, companies: Iterable[str], action_k: int = 5):
        self.action_k = action_k
        # Longest names first so "Digital Guardian Cloud" beats "Digital Guardian"
        self._companies = sorted({c.strip() for c in companies if c and c.strip()}, key=len, reverse=True)

    def match(self, query: str) -> QueryClassification | None:
        text = query.lower()

        if _matches_any(QUICK_WIN_PATTERNS, text) or (
            re.search(TODAY_PATTERN, text) and re.search(TODAY_RETURN_PATTERN, text)
        ):
            return self._action_strategy(RetrievalStrategy.QUICK_WINS)

        if _matches_any(HIGH_VALUE_PATTERNS, text):
            return self._action_strategy(RetrievalStrategy.HIGH_VALUE)

        if _matches_any(VALUE_EFFORT_PATTERNS, text):
            return self._action_strategy(RetrievalStrategy.VALUE_EFFORT)

        for company in self._companies:
            if re.search(rf"(?<!\w){re.escape(company.lower())}(?!\w)", text):
                return QueryClassification(
                    strategy=RetrievalStrategy.COMPANY,
                    k=self.action_k,
                    search_term=company,
                    source=self.name,
                )

        impact = re.search(IMPACT_PATTERN, text)
        if impact:
            return QueryClassification(
                strategy=RetrievalStrategy.IMPACT,
                k=self.action_k,
                search_term=impact.group(1),
                source=self.name,
            )

        return None

    def _action_strategy(self, strategy: RetrievalStrategy) -> QueryClassification:
        return QueryClassification(strategy=strategy, k=self.action_k, source=self.name)

    async def classify(self, query: str) -> QueryClassification | None:
        return self.match(query)


# =============================================================================
# LLM layer
# =============================================================================

CLASSIFIER_PROMPT = """You route questions about competitor intelligence to a search strategy.

Strategies:
- similarity: general questions; semantic search over all insights
- quickWins: actions with high value and low effort, things to do right away
- highValue: the most valuable or strategic actions regardless of effort
- valueEffort: the most efficient actions, best return on investment
- company: questions about one specific company. Known companies: {companies}
- impact: insights of one impact level (high, medium or low)

Respond with JSON only:
{{"strategy": "<one of the names above>", "k": <integer 1-{max_k}>, "searchTerm": "<company name or impact level, or null>"}}"""


class _LLMClassifierOutput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    strategy: str
    k: int
    search_term: str | None = None


class LLMClassifier:
    """Closed-instruction LLM classifier with output validation and a hard timeout."""

    name = "llm"

    def __init__(
        self,
        companies: Iterable[str],
        llm_factory: Callable = get_llm,
        timeout_seconds: float = 5.0,
        max_k: int = 20,
    ):
        self._companies = [c for c in dict.fromkeys(companies) if c]
        self._llm_factory = llm_factory
        self.timeout_seconds = timeout_seconds
        self.max_k = max_k

    async def classify(self, query: str) -> QueryClassification | None:
        if not query.strip():
            return None

        llm = self._llm_factory(timeout=self.timeout_seconds)
        messages = [
            SystemMessage(
                content=CLASSIFIER_PROMPT.format(
                    companies=", ".join(self._companies) or "none", max_k=self.max_k
                )
            ),
            HumanMessage(content=query),
        ]

        try:
            response = await asyncio.wait_for(llm.ainvoke(messages), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise ClassificationFailure(f"LLM classifier timed out after {self.timeout_seconds}s") from e
        except Exception as e:
            raise ClassificationFailure(f"LLM classifier call failed: {e}") from e

        content = response.content if isinstance(response.content, str) else str(response.content)
        return self.validate(content)

    def validate(self, raw_output: str) -> QueryClassification:
        """
        Validate raw LLM output against the strategy enumeration and bounds.

        Raises:
            ClassificationFailure: If the output is malformed or out of range
        """
        try:
            parsed = parse_llm_json(raw_output, _LLMClassifierOutput)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ClassificationFailure(f"Malformed classifier output: {e}") from e

        try:
            strategy = RetrievalStrategy(parsed.strategy)
        except ValueError as e:
            raise ClassificationFailure(f"Unknown strategy: {parsed.strategy!r}") from e

        if not 1 <= parsed.k <= self.max_k:
            raise ClassificationFailure(f"k out of range: {parsed.k}")

        search_term = parsed.search_term
        if strategy == RetrievalStrategy.COMPANY:
            search_term = self._known_company(search_term)
        elif strategy == RetrievalStrategy.IMPACT:
            level = (search_term or "").strip().lower()
            if level not in IMPACT_LEVELS:
                raise ClassificationFailure(f"Unknown impact level: {search_term!r}")
            search_term = level
        else:
            search_term = None

        return QueryClassification(strategy=strategy, k=parsed.k, search_term=search_term, source=self.name)

    def _known_company(self, name: str | None) -> str:
        wanted = (name or "").strip().lower()
        for company in self._companies:
            if company.lower() == wanted:
                return company
        raise ClassificationFailure(f"Unknown company: {name!r}")


# =============================================================================
# Default layer and chain
# =============================================================================


class DefaultClassifier:
    """Similarity search with the configured default k."""

    name = "default"

    def __init__(self, default_k: int = 3):
        self.default_k = default_k

    async def classify(self, query: str) -> QueryClassification:
        return QueryClassification(strategy=RetrievalStrategy.SIMILARITY, k=self.default_k, source=self.name)


class QueryClassifier:
    """Ordered classifier chain ending in the default layer."""

    def __init__(self, classifiers: list[Classifier], fallback: DefaultClassifier | None = None):
        self.classifiers = classifiers
        self.fallback = fallback or DefaultClassifier()

    async def classify(self, query: str) -> QueryClassification:
        query = query or ""

        for classifier in self.classifiers:
            try:
                result = await classifier.classify(query)
            except ClassificationFailure as e:
                logger.warning(f"Classifier '{classifier.name}' failed, falling through: {e}")
                continue
            except Exception as e:
                logger.error(f"Classifier '{classifier.name}' raised unexpectedly: {e}", exc_info=True)
                continue

            if result is not None:
                logger.info(
                    f"Query classified by {classifier.name}: strategy={result.strategy.value}, k={result.k}"
                )
                return result

        result = await self.fallback.classify(query)
        logger.info(f"Query classified by default: strategy={result.strategy.value}, k={result.k}")
        return result


def build_query_classifier(settings: Settings, companies: Iterable[str]) -> QueryClassifier:
    """Assemble the chain from settings; the LLM layer is opt-in."""
    companies = list(companies)
    classifiers: list[Classifier] = [KeywordClassifier(companies, action_k=settings.DEFAULT_ACTION_K)]

    if settings.CLASSIFIER_LLM_ENABLED:
        classifiers.append(
            LLMClassifier(
                companies,
                timeout_seconds=settings.CLASSIFIER_TIMEOUT_SECONDS,
                max_k=settings.CLASSIFIER_MAX_K,
            )
        )

    return QueryClassifier(classifiers, DefaultClassifier(settings.DEFAULT_SIMILARITY_K))
