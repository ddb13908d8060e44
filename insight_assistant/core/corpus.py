"""Corpus builder: compiles the static insight dataset into retrievable documents.

Each insight yields one InsightDocument, and each of its proposed actions
yields one ActionDocument with the derived ratio and quick-win category.
Document ids are positions in ``Corpus.documents`` (insights first, then
actions), so the build is deterministic and safe to re-run on index rebuild.
"""

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from insight_assistant.core.logging import get_logger
from insight_assistant.core.schemas_insights import (
    ActionDocument,
    Insight,
    InsightDocument,
)

logger = get_logger(__name__)

DATASET_PATH = Path(__file__).resolve().parent.parent / "data" / "insights.json"


@dataclass(frozen=True)
class Corpus:
    """Parallel insight and action document families."""

    insight_docs: tuple[InsightDocument, ...] = ()
    action_docs: tuple[ActionDocument, ...] = ()

    @property
    def documents(self) -> tuple[InsightDocument | ActionDocument, ...]:
        """All documents in id order."""
        return self.insight_docs + self.action_docs

    @property
    def companies(self) -> tuple[str, ...]:
        """Distinct company names in first-seen order."""
        seen: dict[str, None] = {}
        for doc in self.insight_docs:
            seen.setdefault(doc.company, None)
        return tuple(seen)


def _insight_text(insight: Insight) -> str:
    actions = "\n".join(
        f"{i + 1}. {action.content} (Value: {action.value}, Effort: {action.effort})"
        for i, action in enumerate(insight.proposed_actions)
    )
    return (
        f"Company: {insight.company}\n"
        f"Homepage: {insight.homepage}\n"
        f"Title: {insight.title}\n"
        f"Summary: {insight.summary}\n"
        f"Impact: {insight.impact}\n"
        f"Proposed Actions: {actions}\n"
        f"Links: {', '.join(insight.links)}"
    )


def _action_text(insight: Insight, content: str, value: int, effort: int, ratio: float, category: str) -> str:
    return (
        f"Action: {content}\n"
        f"Company Context: {insight.company} - {insight.title}\n"
        f"Insight Summary: {insight.summary}\n"
        f"Value Score: {value}/10\n"
        f"Effort Score: {effort}/10\n"
        f"Value-to-Effort Ratio: {ratio:.2f}\n"
        f"Impact Level: {insight.impact}\n"
        f"Quick Win Category: {category}\n"
        f"Competitive Context: This action is based on analysis of "
        f"{insight.company}'s strategy and market positioning."
    )


def build_corpus(insights: list[Insight] | tuple[Insight, ...]) -> Corpus:
    """
    Compile insights into insight-level and action-level documents.

    Args:
        insights: The static dataset

    Returns:
        Corpus with stable document ids
    """
    insight_docs = [
        InsightDocument(
            id=position,
            page_content=_insight_text(insight),
            company=insight.company,
            homepage=insight.homepage,
            title=insight.title,
            summary=insight.summary,
            impact=insight.impact,
            links=insight.links,
            proposed_actions=insight.proposed_actions,
        )
        for position, insight in enumerate(insights)
    ]

    action_docs: list[ActionDocument] = []
    next_id = len(insight_docs)
    for insight in insights:
        for index, action in enumerate(insight.proposed_actions):
            ratio = action.ratio
            category = action.quick_win_category
            action_docs.append(
                ActionDocument(
                    id=next_id,
                    page_content=_action_text(
                        insight, action.content, action.value, action.effort, ratio, category.value
                    ),
                    company=insight.company,
                    homepage=insight.homepage,
                    insight_title=insight.title,
                    insight_summary=insight.summary,
                    impact=insight.impact,
                    links=insight.links,
                    action_content=action.content,
                    action_index=index,
                    value=action.value,
                    effort=action.effort,
                    value_to_effort_ratio=ratio,
                    quick_win_category=category,
                )
            )
            next_id += 1

    logger.info(
        f"Built corpus: {len(insight_docs)} insight documents, {len(action_docs)} action documents"
    )
    return Corpus(insight_docs=tuple(insight_docs), action_docs=tuple(action_docs))


def load_insights(path: Path | None = None) -> list[Insight]:
    """Load the static insight dataset from JSON."""
    dataset_path = path or DATASET_PATH
    with dataset_path.open(encoding="utf-8") as f:
        raw = json.load(f)
    return [Insight.model_validate(item) for item in raw["insights"]]


@lru_cache
def get_corpus() -> Corpus:
    """Build the process-wide corpus from the bundled dataset."""
    return build_corpus(load_insights())
