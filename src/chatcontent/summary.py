"""Rolling conversation summary: when to refresh it and how to ask for it."""

from __future__ import annotations

import logging
from typing import Callable

from .config import SUMMARY_MESSAGE_CHARS, SUMMARY_UPDATE_THRESHOLD
from .models import ConversationContext, ConversationSummary

logger = logging.getLogger(__name__)

SUMMARY_INSTRUCTION = (
    "Summarize this conversation concisely (2-3 sentences max), capturing key topics, "
    "decisions, and any important context needed for future messages. "
    "Focus on what was discussed and any conclusions reached."
)

# Messages added by one exchange: the user message and the assistant reply
EXCHANGE_SIZE = 2


def should_update_summary(total_message_count: int, last_summary_at: int) -> bool:
    return total_message_count - last_summary_at >= SUMMARY_UPDATE_THRESHOLD


def next_summary_checkpoint(context: ConversationContext) -> int:
    """Message count once the in-flight exchange has landed.

    The context is built before the user message is added, so the count it
    carries lags the conversation by one full exchange.
    """
    return context.meta.total_message_count + EXCHANGE_SIZE


def _format_line(role: str, content: str) -> str:
    label = "User" if role == "user" else "Assistant"
    return f"{label}: {content[:SUMMARY_MESSAGE_CHARS]}"


def build_summary_prompt(context: ConversationContext, current_message: str, assistant_response: str) -> str:
    """Assemble the summarization prompt for the upstream model."""
    lines: list[str] = []

    if context.summary:
        lines.append(f"Previous summary: {context.summary}")

    for msg in context.relevant_messages:
        lines.append(_format_line(msg.role, msg.content))

    lines.append(_format_line("user", current_message))
    lines.append(_format_line("assistant", assistant_response))

    conversation = "\n\n".join(lines)
    return f"{SUMMARY_INSTRUCTION}\n\nConversation:\n{conversation}\n\nSummary:"


def generate_summary(
    context: ConversationContext,
    current_message: str,
    assistant_response: str,
    generate: Callable[[str], str],
) -> str:
    """Ask the model (any prompt -> text callable) for a fresh summary."""
    prompt = build_summary_prompt(context, current_message, assistant_response)
    return generate(prompt).strip()


def refresh_summary(
    context: ConversationContext,
    current_message: str,
    assistant_response: str,
    generate: Callable[[str], str],
) -> ConversationSummary | None:
    """Regenerate the summary after an exchange if enough messages have accumulated.

    Returns the update to store on the conversation, or None when no refresh
    was due or generation failed. A failed summary never fails the exchange.
    """
    checkpoint = next_summary_checkpoint(context)
    if not should_update_summary(checkpoint, context.meta.last_summary_at):
        return None

    try:
        text = generate_summary(context, current_message, assistant_response, generate)
    except Exception:
        logger.warning(
            "Failed to generate summary for conversation %s",
            context.meta.conversation_id,
            exc_info=True,
        )
        return None

    logger.debug("Summary refreshed at %d messages", checkpoint)
    return ConversationSummary(text=text, message_count_at_update=checkpoint)
