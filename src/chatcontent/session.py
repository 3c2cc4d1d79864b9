"""Conversation state owned by one chat client.

ChatState replaces a module-level store: it is constructed explicitly, passed
to whoever needs it, and persists through an optional ConversationStore.
"""

from __future__ import annotations

import logging
from typing import Any

from .config import TITLE_MAX_CHARS
from .errors import ChatContentError, ConversationNotFoundError
from .models import Conversation, ConversationSummary, Message, now_ms
from .storage import ConversationStore

logger = logging.getLogger(__name__)


def title_from_message(content: str) -> str:
    """Conversation title derived from its first user message."""
    if len(content) > TITLE_MAX_CHARS:
        return content[:TITLE_MAX_CHARS] + "..."
    return content


class ChatState:
    """Conversations (newest first), the active selection, and request status."""

    def __init__(self, store: ConversationStore | None = None):
        self.store = store
        self.conversations: list[Conversation] = []
        self.active_conversation_id: str | None = None
        self.is_loading = False
        self.error: str | None = None

        if store is not None:
            self.conversations = store.load_conversations()
            self.active_conversation_id = store.get_active_conversation_id()

        if not self.conversations:
            self.create_conversation()
        elif self._find(self.active_conversation_id) is None:
            self.active_conversation_id = self.conversations[0].id

    # -- lookup --

    def _find(self, conversation_id: str | None) -> Conversation | None:
        for conv in self.conversations:
            if conv.id == conversation_id:
                return conv
        return None

    def get(self, conversation_id: str) -> Conversation:
        conv = self._find(conversation_id)
        if conv is None:
            raise ConversationNotFoundError(conversation_id)
        return conv

    @property
    def active_conversation(self) -> Conversation | None:
        return self._find(self.active_conversation_id)

    def _target(self, conversation_id: str | None) -> Conversation:
        if conversation_id is not None:
            return self.get(conversation_id)
        conv = self.active_conversation
        if conv is None:
            raise ChatContentError("No active conversation")
        return conv

    def snapshot(self, conversation_id: str | None = None) -> Conversation:
        """Deep copy of a conversation, safe to build context from while state changes."""
        return self._target(conversation_id).model_copy(deep=True)

    # -- persistence --

    def save(self, conv: Conversation):
        if self.store is not None:
            self.store.upsert_conversation(conv)

    def _save_selection(self):
        if self.store is not None:
            self.store.set_active_conversation_id(self.active_conversation_id)

    # -- conversations --

    def create_conversation(self) -> Conversation:
        conv = Conversation()
        self.conversations.insert(0, conv)
        self.active_conversation_id = conv.id
        self.save(conv)
        self._save_selection()
        logger.debug("Created conversation %s", conv.id)
        return conv

    def select_conversation(self, conversation_id: str):
        self.get(conversation_id)
        self.active_conversation_id = conversation_id
        self._save_selection()

    def delete_conversation(self, conversation_id: str):
        conv = self.get(conversation_id)
        self.conversations.remove(conv)
        if self.store is not None:
            self.store.delete_conversation(conversation_id)

        if self.active_conversation_id == conversation_id:
            self.active_conversation_id = self.conversations[0].id if self.conversations else None
            self._save_selection()

    def rename_conversation(self, conversation_id: str, title: str):
        conv = self.get(conversation_id)
        conv.title = title
        self.save(conv)

    def toggle_privacy(self, conversation_id: str) -> bool:
        conv = self.get(conversation_id)
        conv.is_private = not conv.is_private
        self.save(conv)
        return conv.is_private

    def update_summary(self, conversation_id: str, summary: ConversationSummary):
        conv = self.get(conversation_id)
        conv.summary = summary
        self.save(conv)

    # -- messages --

    def add_message(self, message: Message, conversation_id: str | None = None) -> Message:
        conv = self._target(conversation_id)
        if not conv.messages and message.role == "user":
            conv.title = title_from_message(message.content)
        conv.messages.append(message)
        conv.updated_at = now_ms()
        self.save(conv)
        return message

    def update_message(
        self,
        message_id: str,
        conversation_id: str | None = None,
        persist: bool = True,
        **changes: Any,
    ) -> Message:
        """Apply field changes to a message; pass persist=False for streaming deltas."""
        conv = self._target(conversation_id)
        for idx, msg in enumerate(conv.messages):
            if msg.id == message_id:
                updated = msg.model_copy(update=changes)
                conv.messages[idx] = updated
                conv.updated_at = now_ms()
                if persist:
                    self.save(conv)
                return updated
        raise ChatContentError(f"Message not found: {message_id}")

    def delete_message(self, message_id: str, conversation_id: str | None = None):
        conv = self._target(conversation_id)
        conv.messages = [msg for msg in conv.messages if msg.id != message_id]
        conv.updated_at = now_ms()
        self.save(conv)
