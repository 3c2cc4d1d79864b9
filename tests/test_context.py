"""Tests for conversation context building."""

from __future__ import annotations

from chatcontent.context import SUMMARY_ACKNOWLEDGEMENT, build_context, build_upstream_contents
from chatcontent.models import ConversationSummary

from conftest import make_conversation


def test_window_keeps_last_six_in_order():
    conv = make_conversation(10)
    context = build_context(conv)
    assert [m.content for m in context.relevant_messages] == ["m4", "m5", "m6", "m7", "m8", "m9"]
    assert context.meta.total_message_count == 10
    assert context.meta.conversation_id == "conv-1"
    assert context.meta.last_summary_at == 0
    assert context.summary is None


def test_short_conversation_is_sent_whole():
    context = build_context(make_conversation(3))
    assert [m.content for m in context.relevant_messages] == ["m0", "m1", "m2"]
    assert context.meta.total_message_count == 3


def test_empty_conversation():
    context = build_context(make_conversation(0))
    assert context.relevant_messages == []
    assert context.meta.total_message_count == 0


def test_error_messages_are_never_counted_or_sent():
    conv = make_conversation(9, errors_at=(3, 8))
    context = build_context(conv)
    contents = [m.content for m in context.relevant_messages]
    assert "err3" not in contents
    assert "err8" not in contents
    assert contents == ["m1", "m2", "m4", "m5", "m6", "m7"]
    assert context.meta.total_message_count == 7


def test_custom_window():
    conv = make_conversation(10)
    assert [m.content for m in build_context(conv, 2).relevant_messages] == ["m8", "m9"]
    assert build_context(conv, 0).relevant_messages == []
    assert len(build_context(conv, 50).relevant_messages) == 10


def test_summary_is_carried():
    conv = make_conversation(8, summary=ConversationSummary(text="We talked.", message_count_at_update=6))
    context = build_context(conv)
    assert context.summary == "We talked."
    assert context.meta.last_summary_at == 6


def test_empty_summary_text_is_omitted():
    conv = make_conversation(8, summary=ConversationSummary(text="", message_count_at_update=6))
    context = build_context(conv)
    assert context.summary is None
    assert context.meta.last_summary_at == 6


def test_building_does_not_touch_the_conversation():
    conv = make_conversation(10)
    before = conv.model_dump()
    first = build_context(conv)
    second = build_context(conv)
    assert first == second
    assert conv.model_dump() == before


def test_context_wire_shape():
    wire = build_context(make_conversation(2)).to_wire()
    assert set(wire) == {"summary", "relevantMessages", "meta"}
    assert wire["relevantMessages"][0] == {"role": "user", "content": "m0"}
    assert wire["meta"] == {"totalMessageCount": 2, "conversationId": "conv-1", "lastSummaryAt": 0}


def test_upstream_contents_with_summary():
    conv = make_conversation(2, summary=ConversationSummary(text="Earlier stuff.", message_count_at_update=6))
    contents = build_upstream_contents(build_context(conv), "next?")
    assert contents == [
        {"role": "user", "text": "[Previous conversation summary: Earlier stuff.]"},
        {"role": "model", "text": SUMMARY_ACKNOWLEDGEMENT},
        {"role": "user", "text": "m0"},
        {"role": "model", "text": "m1"},
        {"role": "user", "text": "next?"},
    ]


def test_upstream_contents_without_context():
    assert build_upstream_contents(None, "hello") == [{"role": "user", "text": "hello"}]
