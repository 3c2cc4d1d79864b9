"""FastMCP server exposing content classification and conversation context tools."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from mcp.server.fastmcp import FastMCP

from .config import DATA_DIR, RECENT_MESSAGE_COUNT, SQLITE_PATH
from .content import analyze_content, get_content_summary
from .context import build_context
from .markdown import parse_markdown as _parse_markdown
from .storage import ConversationStore
from .summary import next_summary_checkpoint, should_update_summary

# Logging to stderr only; stdout is the MCP JSON-RPC transport
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)

mcp = FastMCP(
    "chatcontent",
    instructions=(
        "Classify chat replies and inspect stored conversations. "
        "Use classify_content to detect whether text is JSON, a table, a number or prose. "
        "Use parse_markdown to get the block structure of a markdown reply. "
        "Use list_conversations and get_conversation to browse stored chats. "
        "Use build_conversation_context to see exactly what history would be sent upstream."
    ),
)

# Singleton store, reused across tool calls
_store: ConversationStore | None = None


def _get_store() -> ConversationStore:
    global _store
    if _store is None:
        _store = ConversationStore(SQLITE_PATH)
    return _store


def _format_ts(ts_ms: int | None) -> str:
    if ts_ms is None:
        return "Unknown date"
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


def _check_data_exists() -> str | None:
    """Return an error message if no data has been imported."""
    if not SQLITE_PATH.exists():
        return (
            "No conversation data found. Please import an export first:\n"
            "  chatcontent import ~/Downloads/chat-conversations.json"
        )
    return None


@mcp.tool()
def classify_content(text: str, include_segments: bool = False) -> str:
    """Detect the primary format of a chat reply (json, table, number or text).

    Args:
        text: The complete reply text
        include_segments: Also return the classified segments as JSON
    """
    parsed, fmt = analyze_content(text)
    lines = [
        f"Format: {fmt}",
        f"Contains: {get_content_summary(parsed) or 'nothing'}",
    ]
    if parsed.languages:
        lines.append(f"Languages: {', '.join(parsed.languages)}")
    if include_segments:
        lines.append("")
        lines.append(json.dumps(parsed.to_wire(), indent=2))
    return "\n".join(lines)


@mcp.tool()
def parse_markdown(text: str) -> str:
    """Parse markdown into its block tree (headings, code, tables, lists, quotes, paragraphs).

    Args:
        text: Markdown source
    """
    blocks = _parse_markdown(text)
    return json.dumps([block.model_dump(mode="json") for block in blocks], indent=2)


@mcp.tool()
def list_conversations(
    limit: int = 20,
    offset: int = 0,
    keyword: str | None = None,
) -> str:
    """Browse and filter stored conversations.

    Args:
        limit: Maximum results (default 20)
        offset: Skip this many results (for pagination)
        keyword: Optional keyword to filter by (searches titles and content)
    """
    err = _check_data_exists()
    if err:
        return err

    store = _get_store()
    conversations = store.list_conversations(limit=limit, offset=offset, keyword=keyword)

    if not conversations:
        if keyword:
            return f"No conversations found matching '{keyword}'."
        return "No conversations found."

    lines = []
    if keyword:
        lines.append(f"Conversations matching '{keyword}':\n")
    else:
        lines.append(f"Conversations (showing {offset + 1}–{offset + len(conversations)}):\n")

    for i, c in enumerate(conversations, offset + 1):
        date = _format_ts(c["updated_at"])
        private = " | private" if c["is_private"] else ""
        lines.append(f"{i}. **{c['title']}** ({date})")
        lines.append(f"   ID: `{c['id']}` | {c['message_count']} msgs{private}")

    if len(conversations) == limit:
        lines.append(f"\nMore available; use offset={offset + limit} to see the next page.")

    return "\n".join(lines)


@mcp.tool()
def get_conversation(conversation_id: str) -> str:
    """Retrieve a stored conversation transcript with the detected format of each reply.

    Args:
        conversation_id: The conversation UUID (from list_conversations)
    """
    err = _check_data_exists()
    if err:
        return err

    conv = _get_store().get_conversation(conversation_id)
    if not conv:
        return f"Conversation not found: {conversation_id}"

    lines = [
        f"# {conv.title}",
        f"Created: {_format_ts(conv.created_at)}",
        f"Messages: {len(conv.messages)}",
        "",
        "---",
        "",
    ]

    for msg in conv.messages:
        role = "**User**" if msg.role == "user" else "**Assistant**"
        tags = []
        if msg.is_error:
            tags.append("error")
        elif msg.role == "assistant":
            tags.append(msg.format)
            if msg.status != "complete":
                tags.append(msg.status)
        header = role + (f" [{', '.join(tags)}]" if tags else "")
        lines.append(f"{header}:")
        lines.append(msg.content)
        lines.append("")

    return "\n".join(lines)


@mcp.tool()
def build_conversation_context(conversation_id: str, recent_count: int = RECENT_MESSAGE_COUNT) -> str:
    """Show the bounded context that would accompany the next message in a conversation.

    Args:
        conversation_id: The conversation UUID
        recent_count: Number of recent non-error messages to include (default 6)
    """
    err = _check_data_exists()
    if err:
        return err

    conv = _get_store().get_conversation(conversation_id)
    if not conv:
        return f"Conversation not found: {conversation_id}"

    context = build_context(conv, recent_count)
    due = should_update_summary(next_summary_checkpoint(context), context.meta.last_summary_at)

    lines = [
        json.dumps(context.to_wire(), indent=2),
        "",
        f"Summary refresh due after next exchange: {'yes' if due else 'no'}",
    ]
    return "\n".join(lines)


@mcp.tool()
def get_stats() -> str:
    """Get statistics about stored conversations and reply formats."""
    err = _check_data_exists()
    if err:
        return err

    stats = _get_store().get_stats()
    size_mb = SQLITE_PATH.stat().st_size / (1024 * 1024)

    lines = [
        "# Conversation Statistics",
        "",
        f"- **Conversations**: {stats['total_conversations']:,}",
        f"- **Messages**: {stats['total_messages']:,}",
        f"- **Error messages**: {stats['error_messages']:,}",
        f"- **Avg messages/conversation**: {stats['avg_messages_per_conversation']}",
        f"- **Summarized conversations**: {stats['summarized_conversations']:,}",
        f"- **Storage used**: {size_mb:.1f} MB",
        "",
    ]

    if stats["date_range_start"]:
        lines.append(f"- **Date range**: {stats['date_range_start']} → {stats['date_range_end']}")
        lines.append("")

    if stats["formats"]:
        lines.append("## Reply formats:")
        for f in stats["formats"]:
            lines.append(f"- {f['format']}: {f['count']:,}")

    lines.append(f"\n*Data stored in: {DATA_DIR}*")
    return "\n".join(lines)
