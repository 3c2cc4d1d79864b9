"""Parse markdown text into a block/inline AST for rendering.

A small dialect: headings, fenced code, tables, blockquotes, flat lists,
horizontal rules and paragraphs at block level; code spans, links, bold,
italic and strikethrough inline. Every function here is total: any string
parses, unmatched syntax degrades to literal text.
"""

from __future__ import annotations

import re

from .config import MAX_NESTING_DEPTH
from .nodes import (
    Alignment,
    BlockNode,
    BlockquoteNode,
    BoldNode,
    CodeBlockNode,
    CodeNode,
    HeadingNode,
    HorizontalRuleNode,
    InlineNode,
    ItalicNode,
    LinkNode,
    ListItemNode,
    ListNode,
    ParagraphNode,
    StrikethroughNode,
    TableData,
    TableNode,
    TextNode,
)

# Inline patterns, tried in this order at every position
_CODE_SPAN = re.compile(r"`([^`]+)`")
_LINK = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_BOLD = re.compile(r"(\*\*|__)(.+?)\1")
_ITALIC = re.compile(r"(\*|_)(.+?)\1")
_STRIKE = re.compile(r"~~(.+?)~~")
_PLAIN = re.compile(r"[^`\[\]*_~]+")

# Block patterns, matched against stripped lines
_HR = re.compile(r"^([-*_]){3,}$")
_HEADING = re.compile(r"^(#{1,6})\s+(.+)$")
_TABLE_SEPARATOR = re.compile(r"^\|[-:\s|]+\|$")
_UNORDERED_ITEM = re.compile(r"^[-*+]\s+")
_ORDERED_ITEM = re.compile(r"^\d+\.\s+")
_QUOTE_MARKER = re.compile(r"^>\s?")
_LEADING_SPACE = re.compile(r"^\s+")


def parse_inline(text: str, _depth: int = 0) -> list[InlineNode]:
    """Tokenize a run of text into inline nodes.

    Leftmost match wins: at each position the patterns are tried as code span,
    link, bold, italic, strikethrough. Anything else is plain text, and a
    special character that opens nothing becomes a one-character text node.
    """
    if _depth >= MAX_NESTING_DEPTH:
        return [TextNode(content=text)] if text else []

    nodes: list[InlineNode] = []
    pos = 0
    end = len(text)

    while pos < end:
        m = _CODE_SPAN.match(text, pos)
        if m:
            nodes.append(CodeNode(content=m.group(1)))
            pos = m.end()
            continue

        m = _LINK.match(text, pos)
        if m:
            nodes.append(
                LinkNode(href=m.group(2), children=parse_inline(m.group(1), _depth + 1))
            )
            pos = m.end()
            continue

        m = _BOLD.match(text, pos)
        if m:
            nodes.append(BoldNode(children=parse_inline(m.group(2), _depth + 1)))
            pos = m.end()
            continue

        m = _ITALIC.match(text, pos)
        if m:
            nodes.append(ItalicNode(children=parse_inline(m.group(2), _depth + 1)))
            pos = m.end()
            continue

        m = _STRIKE.match(text, pos)
        if m:
            nodes.append(StrikethroughNode(children=parse_inline(m.group(1), _depth + 1)))
            pos = m.end()
            continue

        m = _PLAIN.match(text, pos)
        if m:
            nodes.append(TextNode(content=m.group(0)))
            pos = m.end()
            continue

        nodes.append(TextNode(content=text[pos]))
        pos += 1

    return nodes


def _split_row(line: str) -> list[str]:
    """Split a pipe-bounded row, dropping the empty outer fragments."""
    return [cell.strip() for cell in line.strip().split("|")[1:-1]]


def cell_alignment(cell: str) -> Alignment:
    """Column alignment from a separator cell: `:-:` center, `-:` right, `:-` left."""
    cell = cell.strip()
    if cell.startswith(":") and cell.endswith(":"):
        return "center"
    if cell.endswith(":"):
        return "right"
    if cell.startswith(":"):
        return "left"
    return "none"


def parse_table_lines(lines: list[str]) -> TableData | None:
    """Build TableData from a header line, a separator line and data rows."""
    if len(lines) < 2:
        return None

    headers = _split_row(lines[0])
    alignments = [cell_alignment(cell) for cell in _split_row(lines[1])]
    rows = [_split_row(line) for line in lines[2:]]
    return TableData(headers=headers, alignments=alignments, rows=rows)


def _is_pipe_row(stripped: str) -> bool:
    return stripped.startswith("|") and stripped.endswith("|")


def _starts_block(stripped: str) -> bool:
    """Whether a stripped line opens a block construct (ends a paragraph)."""
    return bool(
        _HEADING.match(stripped)
        or stripped.startswith("```")
        or _UNORDERED_ITEM.match(stripped)
        or _ORDERED_ITEM.match(stripped)
        or stripped.startswith(">")
        or _HR.match(stripped)
        or _is_pipe_row(stripped)
    )


def _consume_list(lines: list[str], i: int, marker: re.Pattern[str]) -> tuple[list[ListItemNode], int]:
    """Collect list items starting at line i; returns (items, next index)."""
    items: list[ListItemNode] = []

    while i < len(lines):
        line = lines[i]
        stripped = line.strip()

        if marker.match(stripped):
            items.append(ListItemNode(children=parse_inline(marker.sub("", stripped, count=1))))
            i += 1
        elif stripped == "":
            i += 1
            # A blank line only continues the list if another item follows
            if i < len(lines) and marker.match(lines[i].strip()):
                continue
            break
        elif _LEADING_SPACE.match(line):
            # Indented continuation lines are not kept (items are inline-only)
            i += 1
        else:
            break

    return items, i


def parse_markdown(text: str, _depth: int = 0) -> list[BlockNode]:
    """Parse a full markdown string into block nodes in document order."""
    blocks: list[BlockNode] = []
    lines = text.split("\n")
    i = 0

    while i < len(lines):
        line = lines[i]
        stripped = line.strip()

        if stripped == "":
            i += 1
            continue

        if _HR.match(stripped):
            blocks.append(HorizontalRuleNode())
            i += 1
            continue

        m = _HEADING.match(stripped)
        if m:
            blocks.append(HeadingNode(level=len(m.group(1)), children=parse_inline(m.group(2))))
            i += 1
            continue

        if stripped.startswith("```"):
            language = stripped[3:].strip() or "text"
            code_lines: list[str] = []
            i += 1
            while i < len(lines) and not lines[i].strip().startswith("```"):
                code_lines.append(lines[i])
                i += 1
            blocks.append(CodeBlockNode(language=language, content="\n".join(code_lines)))
            i += 1  # closing fence (or past the end)
            continue

        if _is_pipe_row(stripped) and i + 1 < len(lines) and _TABLE_SEPARATOR.match(lines[i + 1].strip()):
            table_lines = [line, lines[i + 1]]
            i += 2
            while i < len(lines) and _is_pipe_row(lines[i].strip()):
                table_lines.append(lines[i])
                i += 1
            blocks.append(TableNode(table=parse_table_lines(table_lines)))
            continue

        if stripped.startswith(">"):
            quote_lines: list[str] = []
            while i < len(lines):
                q = lines[i].strip()
                if q.startswith(">"):
                    quote_lines.append(_QUOTE_MARKER.sub("", q, count=1))
                elif q == "" and i + 1 < len(lines) and lines[i + 1].strip().startswith(">"):
                    quote_lines.append("")
                else:
                    break
                i += 1

            if _depth + 1 >= MAX_NESTING_DEPTH:
                nested: list[BlockNode] = [ParagraphNode(children=[TextNode(content="\n".join(quote_lines))])]
            else:
                nested = parse_markdown("\n".join(quote_lines), _depth + 1)
            blocks.append(BlockquoteNode(nested=nested))
            continue

        if _UNORDERED_ITEM.match(stripped):
            items, i = _consume_list(lines, i, _UNORDERED_ITEM)
            blocks.append(ListNode(ordered=False, items=items))
            continue

        if _ORDERED_ITEM.match(stripped):
            items, i = _consume_list(lines, i, _ORDERED_ITEM)
            blocks.append(ListNode(ordered=True, items=items))
            continue

        # Paragraph. The first line is always taken, so a pipe row that failed
        # the table lookahead still lands here instead of stalling the cursor.
        paragraph_lines = [line]
        i += 1
        while i < len(lines):
            p = lines[i].strip()
            if p == "" or _starts_block(p):
                break
            paragraph_lines.append(lines[i])
            i += 1

        blocks.append(ParagraphNode(children=parse_inline("\n".join(paragraph_lines))))

    return blocks
