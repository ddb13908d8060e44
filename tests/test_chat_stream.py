"""Tests for the response streamer state machine."""

import asyncio

import pytest

from insight_assistant.chains.generate_cards import CardGenerator, StructuredCall
from insight_assistant.context.query_classifier import DefaultClassifier, KeywordClassifier, QueryClassifier
from insight_assistant.core.chat_stream import ChatStreamConfig, ResponseStreamer
from insight_assistant.core.conversation_store import ConversationMessage, ConversationStore
from insight_assistant.core.exceptions import CompletionServiceFailure, RetrievalUnavailable
from insight_assistant.core.retrieval import QUICK_WINS_QUERY, RetrievalEngine
from insight_assistant.core.stream_framing import METADATA_CLOSE, METADATA_OPEN, parse_stream
from tests.fakes.fake_services import FakeCompletion, FakeIndex, FakeToolCaller

SUGGESTIONS = StructuredCall("suggest_next_steps", {"suggestions": ["Build a 30-day plan"]})


def _streamer(corpus, completion=None, calls=(), index=None, store=None):
    return ResponseStreamer(
        store=store if store is not None else ConversationStore(),
        classifier=QueryClassifier([KeywordClassifier(corpus.companies)], DefaultClassifier(3)),
        engine=RetrievalEngine(index or FakeIndex(corpus.documents)),
        completion=completion or FakeCompletion(),
        cards=CardGenerator(FakeToolCaller(list(calls)) if calls else None),
    )


async def _collect(streamer, conversation_id="c1", message="give me quick wins"):
    return [chunk async for chunk in streamer.stream(ChatStreamConfig(conversation_id, message))]


@pytest.mark.asyncio
async def test_tokens_then_metadata_frame(corpus):
    completion = FakeCompletion(["Quick", " wins", " ahead."])
    chunks = await _collect(_streamer(corpus, completion, calls=[SUGGESTIONS]))

    assert chunks[:3] == ["Quick", " wins", " ahead."]
    assert chunks[-1].startswith(METADATA_OPEN) and chunks[-1].endswith(METADATA_CLOSE)

    parsed = parse_stream(chunks)
    assert parsed.text == "Quick wins ahead."
    assert parsed.metadata["replaceText"] is False
    assert parsed.metadata["cards"][0]["type"] == "assistance-suggestions"
    assert "timestamp" in parsed.metadata


@pytest.mark.asyncio
async def test_no_cards_still_emits_empty_frame(corpus):
    chunks = await _collect(_streamer(corpus))

    assert chunks[-1] == f"{METADATA_OPEN}{{}}{METADATA_CLOSE}"
    assert parse_stream(chunks).metadata == {}


@pytest.mark.asyncio
async def test_tokens_are_yielded_before_completion_finishes(corpus):
    gate = asyncio.Event()

    class GatedCompletion:
        async def stream_text(self, system, messages):
            yield "first"
            await gate.wait()
            yield "second"

    body = _streamer(corpus, GatedCompletion()).stream(ChatStreamConfig("c1", "hello"))

    assert await asyncio.wait_for(body.__anext__(), timeout=1) == "first"
    gate.set()
    rest = [chunk async for chunk in body]
    assert rest[0] == "second"


@pytest.mark.asyncio
async def test_prompt_uses_classified_strategy_and_history(corpus):
    store = ConversationStore()
    store.append("c1", ConversationMessage(role="user", content="earlier question"))
    store.append("c1", ConversationMessage(role="assistant", content="earlier answer"))
    completion = FakeCompletion(["ok"])
    index = FakeIndex(corpus.documents)

    await _collect(_streamer(corpus, completion, index=index, store=store), message="give me quick wins")

    system, messages = completion.calls[0]
    assert index.calls == [(QUICK_WINS_QUERY, 20)]
    assert "QUICK WINS" in system
    assert "--- Action 1 ---" in system
    assert messages == [
        {"role": "user", "content": "earlier question"},
        {"role": "assistant", "content": "earlier answer"},
        {"role": "user", "content": "give me quick wins"},
    ]


@pytest.mark.asyncio
async def test_conversation_records_user_and_assistant(corpus):
    store = ConversationStore()
    completion = FakeCompletion(["Use ", "__METADATA__", " wisely"])

    chunks = await _collect(_streamer(corpus, completion, store=store))

    history = store.snapshot("c1")
    assert [(m.role, m.content) for m in history] == [
        ("user", "give me quick wins"),
        ("assistant", "Use __METADATA__ wisely"),
    ]
    # The marker never reaches the wire as prose
    parsed = parse_stream(chunks)
    assert parsed.metadata == {}
    assert parsed.text == "Use \\_\\_METADATA\\_\\_ wisely"


@pytest.mark.asyncio
async def test_mid_stream_failure_closes_without_metadata(corpus):
    store = ConversationStore()
    completion = FakeCompletion(["partial", " answer", " lost"], fail_after=2)

    chunks = await _collect(_streamer(corpus, completion, calls=[SUGGESTIONS], store=store))

    assert chunks == ["partial", " answer"]
    assert METADATA_OPEN not in "".join(chunks)
    assert [m.role for m in store.snapshot("c1")] == ["user"]


@pytest.mark.asyncio
async def test_failure_before_first_token_raises(corpus):
    completion = FakeCompletion(["never"], fail_after=0)

    with pytest.raises(CompletionServiceFailure):
        await _collect(_streamer(corpus, completion))


@pytest.mark.asyncio
async def test_retrieval_unavailable_raises_before_output(corpus):
    completion = FakeCompletion()
    streamer = _streamer(corpus, completion, index=FakeIndex(corpus.documents, fail=True))

    with pytest.raises(RetrievalUnavailable):
        await _collect(streamer)
    assert completion.calls == []


@pytest.mark.asyncio
async def test_client_close_stops_completion(corpus):
    store = ConversationStore()
    completion = FakeCompletion(["a", "b", "c", "d"])
    body = _streamer(corpus, completion, store=store).stream(ChatStreamConfig("c1", "hello"))

    assert await body.__anext__() == "a"
    await body.aclose()

    assert completion.closed
    assert [m.role for m in store.snapshot("c1")] == ["user"]


@pytest.mark.asyncio
async def test_card_failure_does_not_fail_response(corpus):
    streamer = _streamer(corpus, FakeCompletion(["fine"]))
    streamer.cards = CardGenerator(FakeToolCaller(error=RuntimeError("tool crash")))

    chunks = await _collect(streamer)

    assert parse_stream(chunks).metadata == {}
    assert parse_stream(chunks).text == "fine"


@pytest.mark.asyncio
@pytest.mark.parametrize("tail", ["__METADATA", "__METADATA_"])
async def test_answer_ending_in_marker_prefix_keeps_frame_intact(corpus, tail):
    store = ConversationStore()
    chunks = await _collect(_streamer(corpus, FakeCompletion(["See ", tail]), store=store))

    wire = "".join(chunks)
    assert wire.count(METADATA_OPEN) == 1
    parsed = parse_stream(chunks)
    assert parsed.metadata == {}
    assert parsed.text == "See " + tail.replace("_", "\\_")
    assert store.snapshot("c1")[-1].content == "See " + tail


@pytest.mark.asyncio
async def test_mid_stream_failure_releases_held_fragment(corpus):
    store = ConversationStore()
    completion = FakeCompletion(["partial", " __META", "x"], fail_after=2)

    chunks = await _collect(_streamer(corpus, completion, store=store))

    assert chunks == ["partial", " ", "\\_\\_META"]
    assert [m.role for m in store.snapshot("c1")] == ["user"]


@pytest.mark.asyncio
@pytest.mark.parametrize("window, expected", [(0, 1), (2, 3), (10, 5)])
async def test_history_window_bounds_prior_messages(corpus, window, expected):
    store = ConversationStore()
    for i in range(4):
        store.append("c1", ConversationMessage(role="user" if i % 2 == 0 else "assistant", content=f"m{i}"))
    completion = FakeCompletion(["ok"])
    streamer = _streamer(corpus, completion, store=store)

    [_ async for _ in streamer.stream(ChatStreamConfig("c1", "hello", history_window=window))]

    _, messages = completion.calls[0]
    assert len(messages) == expected
    assert messages[-1] == {"role": "user", "content": "hello"}
