"""Import pipeline: export JSON → validation → classification → storage."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from .config import SQLITE_PATH
from .content import analyze_content
from .errors import ExportFormatError
from .models import Conversation
from .storage import ConversationStore

logger = logging.getLogger(__name__)


def _finalize_messages(conv: Conversation) -> int:
    """Classify finished assistant replies that were saved without parsed content.

    A reply still marked as streaming was interrupted mid-stream; it becomes
    stopped. Returns the number of messages classified.
    """
    classified = 0
    for msg in conv.messages:
        if msg.status == "streaming":
            msg.status = "stopped"
        if msg.role != "assistant" or msg.is_error or msg.status != "complete":
            continue
        if msg.parsed_content is None:
            msg.parsed_content, msg.format = analyze_content(msg.content)
            classified += 1
    return classified


def parse_export(data: Any) -> tuple[list[Conversation], str | None]:
    """Validate an export payload into conversations plus the active conversation id.

    Accepts the browser dump ``{"conversations": [...], "activeConversationId": ...}``
    or a bare list of conversations. Conversations that fail validation are
    skipped with a warning.
    """
    if isinstance(data, dict):
        items = data.get("conversations")
        active_id = data.get("activeConversationId")
    else:
        items = data
        active_id = None

    if not isinstance(items, list):
        raise ExportFormatError("Export must contain a list of conversations.")

    conversations: list[Conversation] = []
    for item in items:
        try:
            conv = Conversation.model_validate(item)
        except ValidationError:
            title = item.get("title", "unknown") if isinstance(item, dict) else "unknown"
            logger.warning("Failed to parse conversation '%s'", title, exc_info=True)
            continue
        _finalize_messages(conv)
        conversations.append(conv)

    return conversations, active_id


def import_export(export_path: str, force: bool = False, db_path: Path = SQLITE_PATH) -> dict:
    """Import a conversation export file into the local store.

    Returns a summary dict with import statistics.
    """
    export_file = Path(export_path)

    if not export_file.exists():
        raise click.ClickException(f"File not found: {export_path}")

    click.echo("Reading export file...")
    try:
        with export_file.open(encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Not a valid JSON file: {e}")

    try:
        conversations, active_id = parse_export(data)
    except ExportFormatError as e:
        raise click.ClickException(e.message)

    click.echo(f"Found {len(conversations)} valid conversations in export.")

    if not conversations:
        click.echo("No conversations to import.")
        return {"imported": 0, "skipped": 0, "messages": 0}

    store = ConversationStore(db_path)

    imported = 0
    skipped = 0
    total_messages = 0

    with click.progressbar(
        conversations,
        label="Importing conversations",
        show_pos=True,
    ) as progress:
        for conv in progress:
            # Skip existing unless force re-import
            if not force and store.conversation_exists(conv.id):
                skipped += 1
                continue

            store.upsert_conversation(conv)
            imported += 1
            total_messages += len(conv.messages)

    if active_id and store.conversation_exists(active_id) and store.get_active_conversation_id() is None:
        store.set_active_conversation_id(active_id)

    store.record_import(
        file_path=str(export_file),
        conversations=imported,
        messages=total_messages,
    )
    store.close()

    summary = {
        "imported": imported,
        "skipped": skipped,
        "messages": total_messages,
    }

    click.echo()
    click.echo(click.style("Import complete!", fg="green", bold=True))
    click.echo(f"  Imported: {imported} conversations ({total_messages} messages)")
    if skipped:
        click.echo(f"  Skipped:  {skipped} (already imported, use --force to re-import)")

    return summary
