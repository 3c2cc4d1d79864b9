"""Shared test fixtures."""

from __future__ import annotations

import pytest

from chatcontent.models import Conversation, ConversationSummary, Message
from chatcontent.storage import ConversationStore


def make_conversation(
    count: int,
    errors_at: tuple[int, ...] = (),
    summary: ConversationSummary | None = None,
) -> Conversation:
    """Conversation alternating user/assistant messages named m0, m1, ...

    Indices in ``errors_at`` become error messages instead.
    """
    messages = []
    for i in range(count):
        if i in errors_at:
            messages.append(Message(role="assistant", content=f"err{i}", status="error", is_error=True))
        else:
            role = "user" if i % 2 == 0 else "assistant"
            messages.append(Message(role=role, content=f"m{i}"))
    return Conversation(id="conv-1", title="Test", messages=messages, summary=summary)


class RecordingModel:
    """Summary model stand-in that records prompts and returns a canned reply."""

    def __init__(self, reply: str = "  A short summary.  "):
        self.reply = reply
        self.prompts: list[str] = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.reply


@pytest.fixture
def store():
    s = ConversationStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def recording_model():
    return RecordingModel()
