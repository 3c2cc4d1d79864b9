"""Build the bounded conversation context sent with every new message."""

from __future__ import annotations

from typing import Literal, TypedDict

from .config import RECENT_MESSAGE_COUNT
from .models import ContextMessage, ContextMeta, Conversation, ConversationContext

SUMMARY_ACKNOWLEDGEMENT = "I understand the context from our previous conversation. How can I help you?"


class UpstreamTurn(TypedDict):
    role: Literal["user", "model"]
    text: str


def build_context(conversation: Conversation, recent_count: int = RECENT_MESSAGE_COUNT) -> ConversationContext:
    """Derive the context for the next request from a conversation snapshot.

    Error messages are shown to the user but never replayed upstream, so they
    are dropped before anything is counted or windowed. The window keeps the
    last ``recent_count`` remaining messages in their original order.
    """
    messages = [msg for msg in conversation.messages if not msg.is_error]
    recent = messages[-recent_count:] if recent_count > 0 else []

    summary = conversation.summary
    return ConversationContext(
        summary=summary.text if summary and summary.text else None,
        relevant_messages=[ContextMessage(role=msg.role, content=msg.content) for msg in recent],
        meta=ContextMeta(
            total_message_count=len(messages),
            conversation_id=conversation.id,
            last_summary_at=summary.message_count_at_update if summary else 0,
        ),
    )


def build_upstream_contents(context: ConversationContext | None, current_message: str) -> list[UpstreamTurn]:
    """Order the turns sent to the model: summary preamble, recent messages, new message."""
    contents: list[UpstreamTurn] = []

    if context is not None:
        if context.summary:
            contents.append({"role": "user", "text": f"[Previous conversation summary: {context.summary}]"})
            contents.append({"role": "model", "text": SUMMARY_ACKNOWLEDGEMENT})

        for msg in context.relevant_messages:
            contents.append({"role": "model" if msg.role == "assistant" else "user", "text": msg.content})

    contents.append({"role": "user", "text": current_message})
    return contents
