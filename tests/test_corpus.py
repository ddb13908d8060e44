"""Tests for the corpus builder and action categorization."""

import pytest

from insight_assistant.core.corpus import build_corpus, get_corpus, load_insights
from insight_assistant.core.schemas_insights import (
    Action,
    ActionDocument,
    InsightDocument,
    QuickWinCategory,
    categorize_action,
)
from tests.fakes.fake_services import make_insight


def _expected_category(value: int, effort: int) -> QuickWinCategory:
    if value >= 7 and effort <= 4:
        return QuickWinCategory.HIGH_VALUE_QUICK_WIN
    if value >= 6 and effort <= 3:
        return QuickWinCategory.QUICK_WIN
    if value >= 8:
        return QuickWinCategory.HIGH_VALUE
    if effort <= 3:
        return QuickWinCategory.LOW_EFFORT
    return QuickWinCategory.STANDARD


@pytest.mark.parametrize("value", range(1, 11))
def test_ratio_and_category_over_full_grid(value):
    for effort in range(1, 11):
        action = Action(content="x", value=value, effort=effort)
        assert action.ratio == pytest.approx(value / effort)
        assert action.quick_win_category == _expected_category(value, effort)


def test_high_value_quick_win_example():
    action = Action(content="Launch CMMC webinar", value=8, effort=2)
    assert action.ratio == 4.0
    assert action.quick_win_category.value == "high-value-quick-win"


def test_category_rule_priority():
    # (7, 3) satisfies both quick-win rules; the first listed wins
    assert categorize_action(7, 3) == QuickWinCategory.HIGH_VALUE_QUICK_WIN
    # (9, 9) is only high-value
    assert categorize_action(9, 9) == QuickWinCategory.HIGH_VALUE
    # (2, 2) is only low-effort
    assert categorize_action(2, 2) == QuickWinCategory.LOW_EFFORT


def test_action_scores_are_bounded():
    with pytest.raises(ValueError):
        Action(content="x", value=11, effort=1)
    with pytest.raises(ValueError):
        Action(content="x", value=5, effort=0)


def test_build_corpus_emits_one_document_per_insight_and_action(corpus):
    assert len(corpus.insight_docs) == 3
    assert len(corpus.action_docs) == 8
    assert all(isinstance(d, InsightDocument) for d in corpus.insight_docs)
    assert all(isinstance(d, ActionDocument) for d in corpus.action_docs)
    assert [d.id for d in corpus.documents] == list(range(11))


def test_action_document_carries_parent_insight(corpus):
    doc = corpus.action_docs[0]
    assert doc.company == "Zscaler"
    assert doc.insight_title == "Zero Trust Push"
    assert doc.value == 8 and doc.effort == 2
    assert doc.value_to_effort_ratio == 4.0
    assert doc.quick_win_category == QuickWinCategory.HIGH_VALUE_QUICK_WIN
    assert doc.action_index == 0
    assert doc.links == corpus.insight_docs[0].links


def test_action_text_formats_ratio_with_two_decimals():
    corpus = build_corpus([make_insight("Zscaler", "Thirds", [(7, 3)])])
    text = corpus.action_docs[0].page_content
    assert "Value-to-Effort Ratio: 2.33" in text
    assert "Quick Win Category: high-value-quick-win" in text
    assert "Insight Summary: Zscaler summary for Thirds" in text


def test_insight_text_lists_actions(corpus):
    text = corpus.insight_docs[0].page_content
    assert "Company: Zscaler" in text
    assert "1. Zero Trust Push action 0 (Value: 8, Effort: 2)" in text
    assert "Impact: high" in text


def test_build_corpus_is_deterministic():
    insights = [make_insight("Zscaler", "A", [(8, 2), (3, 9)]), make_insight("Forcepoint", "B", [(6, 3)])]
    assert build_corpus(insights) == build_corpus(insights)


def test_companies_in_first_seen_order(corpus):
    assert corpus.companies == ("Zscaler", "Forcepoint")


def test_build_corpus_empty():
    corpus = build_corpus([])
    assert corpus.documents == ()
    assert corpus.companies == ()


def test_bundled_dataset_loads():
    insights = load_insights()
    corpus = get_corpus()

    assert len(insights) == 10
    assert len(corpus.insight_docs) == 10
    assert len(corpus.action_docs) == sum(len(i.proposed_actions) for i in insights)
    assert set(corpus.companies) == {"Digital Guardian", "Zscaler", "Forcepoint"}


def test_document_serializes_with_camel_case(corpus):
    data = corpus.action_docs[0].model_dump(by_alias=True, mode="json")
    assert data["documentType"] == "action"
    assert data["valueToEffortRatio"] == 4.0
    assert data["quickWinCategory"] == "high-value-quick-win"
