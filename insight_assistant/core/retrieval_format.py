"""Format retrieval results for LLM context injection.

Actions and insights render differently: actions carry their scores and
category, insights carry their full embedded text. Source links are numbered
per document so the model can cite them in markdown.

Always truncates from lowest-ranked results first.
"""

from __future__ import annotations

from insight_assistant.core.schemas_insights import (
    ActionDocument,
    InsightDocument,
    RetrievalResult,
)

EMPTY_RESULTS = "No relevant insights found."


def _format_links(links: tuple[str, ...]) -> str:
    if not links:
        return "No source links available"
    return "\n".join(f"[Source {i + 1}]({link})" for i, link in enumerate(links))


def _format_action(position: int, doc: ActionDocument) -> str:
    return (
        f"--- Action {position} ---\n"
        f"Company: {doc.company}\n"
        f"Action: {doc.action_content}\n"
        f"Value Score: {doc.value}/10\n"
        f"Effort Score: {doc.effort}/10\n"
        f"Value-to-Effort Ratio: {doc.value_to_effort_ratio:.2f}\n"
        f"Quick Win Category: {doc.quick_win_category.value}\n"
        f"Context: {doc.insight_title}\n"
        f"Impact Level: {doc.impact}\n"
        f"Source Links:\n{_format_links(doc.links)}"
    )


def _format_insight(position: int, doc: InsightDocument) -> str:
    return (
        f"--- Insight {position} ---\n"
        f"Company: {doc.company}\n"
        f"Title: {doc.title}\n"
        f"Impact: {doc.impact}\n"
        f"Content: {doc.page_content}\n"
        f"Source Links:\n{_format_links(doc.links)}"
    )


def format_retrieval_for_context(result: RetrievalResult, max_tokens: int = 3000) -> str:
    """Format retrieval results for LLM context injection.

    Args:
        result: RetrievalResult from RetrievalEngine.retrieve()
        max_tokens: Approximate max output size in tokens (~4 chars/token)

    Returns:
        Formatted string ready for injection into the system prompt
    """
    if not result.documents:
        return EMPTY_RESULTS

    max_chars = max_tokens * 4
    blocks: list[str] = []
    chars_used = 0

    for i, doc in enumerate(result.documents):
        if isinstance(doc, ActionDocument):
            block = _format_action(i + 1, doc)
        else:
            block = _format_insight(i + 1, doc)

        if blocks and chars_used + len(block) > max_chars:
            break
        blocks.append(block)
        chars_used += len(block)

    return "\n\n".join(blocks)
