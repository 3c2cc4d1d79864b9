"""Classify raw assistant output as JSON, table, number or text.

parse_content() runs once per message, on the complete text after streaming
has finished. It splits the text into position-ordered segments: fenced code
(promoted to JSON when a json/jsonc body parses), pipe tables, headings and
the leftover prose. Code and table ranges are claimed so that nothing is
reported twice; headings are tags only and do not claim their range.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any

from .markdown import cell_alignment
from .models import ContentFormat, ContentSegment, ParsedContent
from .nodes import TableData

_CODE_FENCE = re.compile(r"```(\w+)?\n([\s\S]*?)```")
_HEADING_LINE = re.compile(r"^(#{1,6})[ \t]+(.+)$", re.MULTILINE)
_ORDERED_LIST_LINE = re.compile(r"^\d+\.\s+.+$", re.MULTILINE)
_UNORDERED_LIST_LINE = re.compile(r"^[-*+]\s+.+$", re.MULTILINE)
_BLOCKQUOTE_LINE = re.compile(r"^>\s+.+$", re.MULTILINE)
_SEPARATOR_LINE = re.compile(r"^\|[-:\s|]+\|$")
_LOOSE_SEPARATOR = re.compile(r"^[-|:\s]+$")
_NUMBER = re.compile(r"^-?\d+(\.\d*)?$", re.ASCII)

JSON_LANGUAGES = ("json", "jsonc")


@dataclass
class _Region:
    start: int
    end: int
    text: str


@dataclass
class _CodeBlock(_Region):
    language: str
    code: str


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant: {name}")


def parse_json(text: str) -> Any | None:
    """Strictly parse JSON after trimming; None on any failure.

    NaN and Infinity are rejected so that only standard JSON is accepted.
    """
    try:
        return json.loads(text.strip(), parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return None


def _extract_code_blocks(content: str) -> list[_CodeBlock]:
    blocks: list[_CodeBlock] = []
    for m in _CODE_FENCE.finditer(content):
        blocks.append(
            _CodeBlock(
                start=m.start(),
                end=m.end(),
                text=m.group(0),
                language=(m.group(1) or "text").lower(),
                code=m.group(2),
            )
        )
    return blocks


def _is_pipe_row(stripped: str) -> bool:
    return stripped.startswith("|") and stripped.endswith("|")


def _is_table_block(lines: list[str]) -> bool:
    if len(lines) < 2:
        return False
    return _is_pipe_row(lines[0].strip()) and bool(_SEPARATOR_LINE.match(lines[1].strip()))


def _extract_table_blocks(content: str) -> list[_Region]:
    """Find runs of pipe-delimited lines that start with a header and separator."""
    tables: list[_Region] = []
    run: list[str] = []
    run_start = 0
    run_end = 0
    offset = 0

    def flush() -> None:
        if _is_table_block(run):
            tables.append(_Region(start=run_start, end=run_end, text="\n".join(run)))

    for line in content.split("\n"):
        line_start = offset
        offset += len(line) + 1
        stripped = line.strip()

        if _is_pipe_row(stripped) or _SEPARATOR_LINE.match(stripped):
            if not run:
                run_start = line_start
            run.append(line)
            run_end = line_start + len(line)
        else:
            flush()
            run = []

    flush()
    return tables


def _overlaps(region: _Region, claimed: list[_Region]) -> bool:
    return any(region.start < other.end and other.start < region.end for other in claimed)


def parse_content(content: str) -> ParsedContent:
    """Split raw message text into classified segments with presence flags."""
    positioned: list[tuple[int, ContentSegment]] = []
    claimed: list[_Region] = []
    languages: list[str] = []
    has_code = False
    has_json = False
    has_table = False

    for block in _extract_code_blocks(content):
        has_code = True
        if block.language != "text" and block.language not in languages:
            languages.append(block.language)

        parsed = parse_json(block.code) if block.language in JSON_LANGUAGES else None
        if parsed is not None:
            has_json = True
            segment = ContentSegment(type="json", content=block.code, language=block.language, parsed=parsed)
        else:
            segment = ContentSegment(type="code", content=block.code, language=block.language)

        positioned.append((block.start, segment))
        claimed.append(block)

    # Tables inside code fences are not tables
    for table in _extract_table_blocks(content):
        if _overlaps(table, claimed):
            continue
        has_table = True
        positioned.append((table.start, ContentSegment(type="table", content=table.text)))
        claimed.append(table)

    for m in _HEADING_LINE.finditer(content):
        index = m.start()
        if any(region.start <= index < region.end for region in claimed):
            continue
        positioned.append(
            (index, ContentSegment(type="heading", content=m.group(2), level=len(m.group(1))))
        )

    has_list = bool(_ORDERED_LIST_LINE.search(content) or _UNORDERED_LIST_LINE.search(content))
    has_blockquote = bool(_BLOCKQUOTE_LINE.search(content))

    last_end = 0
    for region in sorted(claimed, key=lambda r: r.start):
        if region.start > last_end:
            text = content[last_end:region.start].strip()
            if text:
                positioned.append((last_end, ContentSegment(type="text", content=text)))
        last_end = max(last_end, region.end)

    if last_end < len(content):
        text = content[last_end:].strip()
        if text:
            positioned.append((last_end, ContentSegment(type="text", content=text)))

    positioned.sort(key=lambda item: item[0])
    segments = [segment for _, segment in positioned]

    if not segments:
        segments.append(ContentSegment(type="text", content=content))

    return ParsedContent(
        segments=segments,
        has_code=has_code,
        has_json=has_json,
        has_table=has_table,
        has_list=has_list,
        has_blockquote=has_blockquote,
        languages=languages,
    )


def detect_primary_format(parsed: ParsedContent) -> ContentFormat:
    """Pick the display format. Priority: json > table > number > text."""
    if parsed.has_json:
        return "json"

    if parsed.has_table:
        return "table"

    if len(parsed.segments) == 1 and parsed.segments[0].type == "text":
        text = parsed.segments[0].content.strip()
        if _NUMBER.match(text):
            return "number"

    return "text"


def get_content_summary(parsed: ParsedContent) -> str:
    """Human-readable list of what a message contains, e.g. 'code (python), text'."""
    parts: list[str] = []

    if parsed.has_code:
        if parsed.languages:
            parts.append(f"code ({', '.join(parsed.languages)})")
        else:
            parts.append("code")

    if parsed.has_json:
        parts.append("JSON")

    if parsed.has_table:
        parts.append("table")

    if parsed.has_list:
        parts.append("list")

    if any(segment.type == "text" for segment in parsed.segments):
        parts.append("text")

    return ", ".join(parts)


def analyze_content(content: str) -> tuple[ParsedContent, ContentFormat]:
    """Parse content and return both the segments and the primary format."""
    parsed = parse_content(content)
    return parsed, detect_primary_format(parsed)


def detect_format(content: str) -> ContentFormat:
    _, fmt = analyze_content(content)
    return fmt


def _split_loose_row(line: str) -> list[str]:
    cells = [cell.strip() for cell in line.split("|")]
    if len(cells) == 1:
        return cells
    return cells[1:-1]


def parse_table(content: str) -> TableData | None:
    """Parse a pipe table leniently: the separator line is optional.

    Needs at least two non-blank lines. When the second line is a separator it
    supplies column alignments; otherwise it is treated as a data row.
    """
    lines = [line for line in content.strip().split("\n") if line.strip()]
    if len(lines) < 2:
        return None

    headers = _split_loose_row(lines[0])
    if _LOOSE_SEPARATOR.match(lines[1]):
        alignments = [cell_alignment(cell) for cell in _split_loose_row(lines[1])]
        rows = [_split_loose_row(line) for line in lines[2:]]
    else:
        alignments = []
        rows = [_split_loose_row(line) for line in lines[1:]]

    return TableData(headers=headers, alignments=alignments, rows=rows)


def format_number(value: str) -> str:
    """Group digits for display ('1234567.5' -> '1,234,567.5'); non-numbers pass through."""
    text = value.strip()
    # Decimal also takes underscores and non-ASCII digits; plain numerals only
    if not text or not text.isascii() or "_" in text:
        return value

    try:
        number = Decimal(text)
        if not number.is_finite():
            return value
        with localcontext() as ctx:
            # Room for every integer digit plus three fraction digits
            ctx.prec = max(ctx.prec, number.adjusted() + 5)
            rounded = number.quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return value

    return f"{rounded:,.3f}".rstrip("0").rstrip(".")
