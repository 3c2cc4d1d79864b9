"""CLI interface for chatcontent."""

from __future__ import annotations

import json
import shutil
import sys

import click

from . import __version__
from .config import DATA_DIR, RECENT_MESSAGE_COUNT, SQLITE_PATH


def _read_input(path: str | None) -> str:
    if path is None or path == "-":
        return sys.stdin.read()
    with open(path, encoding="utf-8") as f:
        return f.read()


@click.group()
@click.version_option(version=__version__, prog_name="chatcontent")
def cli():
    """chatcontent: classify and parse chat replies, and build conversation context.

    Detects whether an assistant reply is JSON, a table, a number or prose,
    parses markdown into a block/inline tree, and assembles the bounded
    history that is sent upstream with each new message.
    """
    pass


@cli.command()
@click.argument("file", required=False, type=click.Path(exists=True, dir_okay=False, allow_dash=True))
@click.option("--json", "as_json", is_flag=True, help="Print the full parsed content as JSON")
def classify(file: str | None, as_json: bool):
    """Classify a message read from FILE (or stdin).

    Example:
        echo '| A | B |\\n|---|---|\\n| 1 | 2 |' | chatcontent classify
    """
    from .content import analyze_content, get_content_summary

    text = _read_input(file)
    parsed, fmt = analyze_content(text)

    if as_json:
        click.echo(json.dumps({"format": fmt, "parsedContent": parsed.to_wire()}, indent=2))
        return

    click.echo(f"Format:   {click.style(fmt, bold=True)}")
    click.echo(f"Contains: {get_content_summary(parsed) or 'nothing'}")
    click.echo(f"Segments: {len(parsed.segments)}")
    for segment in parsed.segments:
        label = segment.type
        if segment.language:
            label += f" ({segment.language})"
        elif segment.level:
            label += f" (h{segment.level})"
        preview = segment.content.replace("\n", " ")[:60]
        click.echo(f"  - {label}: {preview}")


@cli.command()
@click.argument("file", required=False, type=click.Path(exists=True, dir_okay=False, allow_dash=True))
def markdown(file: str | None):
    """Print the markdown block tree of FILE (or stdin) as JSON."""
    from .markdown import parse_markdown

    blocks = parse_markdown(_read_input(file))
    click.echo(json.dumps([block.model_dump(mode="json") for block in blocks], indent=2))


@cli.command("import")
@click.argument("export_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--force", is_flag=True, help="Re-import conversations that already exist")
def import_cmd(export_path: str, force: bool):
    """Import conversations from a JSON export.

    The export is the browser-local dump: {"conversations": [...],
    "activeConversationId": ...}. Finished replies are classified on import.

    Example:
        chatcontent import ~/Downloads/chat-conversations.json
    """
    from .importer import import_export

    import_export(export_path, force=force, db_path=SQLITE_PATH)


@cli.command()
@click.argument("conversation_id")
@click.option("--recent", default=RECENT_MESSAGE_COUNT, show_default=True, help="Recent messages to include")
@click.option("--message", "message", default=None, help="Wrap the context in a request body for this message")
def context(conversation_id: str, recent: int, message: str | None):
    """Print the upstream context for a stored conversation as JSON."""
    if not SQLITE_PATH.exists():
        raise click.ClickException("No data found. Import a conversation export first.")

    from .context import build_context
    from .models import ChatRequest
    from .storage import ConversationStore

    store = ConversationStore(SQLITE_PATH)
    conv = store.get_conversation(conversation_id)
    store.close()

    if conv is None:
        raise click.ClickException(f"Conversation not found: {conversation_id}")

    ctx = build_context(conv, recent)
    payload = ChatRequest(message=message, context=ctx).to_wire() if message is not None else ctx.to_wire()
    click.echo(json.dumps(payload, indent=2))


@cli.command()
def serve():
    """Start the MCP server (stdio transport)."""
    from .server import mcp

    mcp.run(transport="stdio")


@cli.command()
def stats():
    """Show statistics about stored conversations."""
    if not SQLITE_PATH.exists():
        click.echo("No data found. Import a conversation export first:")
        click.echo("  chatcontent import ~/Downloads/chat-conversations.json")
        return

    from .storage import ConversationStore

    store = ConversationStore(SQLITE_PATH)
    s = store.get_stats()
    store.close()

    click.echo()
    click.echo(click.style("Conversation Statistics", bold=True))
    click.echo(f"  Conversations:  {s['total_conversations']:,}")
    click.echo(f"  Messages:       {s['total_messages']:,} ({s['error_messages']:,} errors)")
    click.echo(f"  Avg msgs/conv:  {s['avg_messages_per_conversation']}")
    click.echo(f"  Summarized:     {s['summarized_conversations']:,}")
    if s["date_range_start"]:
        click.echo(f"  Date range:     {s['date_range_start']} → {s['date_range_end']}")
    if s["formats"]:
        click.echo("  Reply formats:")
        for f in s["formats"]:
            click.echo(f"    {f['format']}: {f['count']:,}")

    db_size = SQLITE_PATH.stat().st_size
    click.echo(f"  Storage:        {db_size / (1024 * 1024):.1f} MB")
    click.echo(f"  Location:       {DATA_DIR}")
    click.echo()


@cli.command()
@click.confirmation_option(prompt="This will delete all stored conversations. Are you sure?")
def reset():
    """Delete all stored data and start fresh."""
    if DATA_DIR.exists():
        shutil.rmtree(DATA_DIR)
        click.echo(f"Deleted {DATA_DIR}")
    else:
        click.echo("No data to delete.")
