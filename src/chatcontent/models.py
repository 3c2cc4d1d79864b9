"""Data models for conversations, classified content and upstream context."""

from __future__ import annotations

import time
import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .config import DEFAULT_TITLE

Role = Literal["user", "assistant"]
MessageStatus = Literal["streaming", "complete", "stopped", "error"]
ContentFormat = Literal["text", "json", "table", "number"]
SegmentType = Literal["text", "code", "json", "table", "heading", "list", "blockquote"]


def _new_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


class WireModel(BaseModel):
    """Base for records exchanged with the browser and the transport (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ContentSegment(WireModel):
    type: SegmentType
    content: str
    language: str | None = None
    level: int | None = None
    parsed: Any = None


class ParsedContent(WireModel):
    segments: list[ContentSegment] = []
    has_code: bool = False
    has_json: bool = False
    has_table: bool = False
    has_list: bool = False
    has_blockquote: bool = False
    languages: list[str] = []


class Message(WireModel):
    id: str = Field(default_factory=_new_id)
    role: Role
    content: str = ""
    status: MessageStatus = "complete"
    format: ContentFormat = "text"
    parsed_content: ParsedContent | None = None
    timestamp: int = Field(default_factory=now_ms)
    is_error: bool = False


class ConversationSummary(WireModel):
    text: str
    message_count_at_update: int


class Conversation(WireModel):
    id: str = Field(default_factory=_new_id)
    title: str = DEFAULT_TITLE
    messages: list[Message] = []
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    summary: ConversationSummary | None = None
    is_private: bool = False


class ContextMessage(WireModel):
    role: Role
    content: str


class ContextMeta(WireModel):
    total_message_count: int
    conversation_id: str
    last_summary_at: int = 0


class ConversationContext(WireModel):
    summary: str | None = None
    relevant_messages: list[ContextMessage] = []
    meta: ContextMeta


class ChatRequest(WireModel):
    """Request body sent to the chat endpoint: the new message plus its context."""

    message: str
    context: ConversationContext | None = None
