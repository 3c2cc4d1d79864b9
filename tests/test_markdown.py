"""Tests for the markdown block and inline parsers."""

from __future__ import annotations

import pytest

from chatcontent.markdown import parse_inline, parse_markdown, parse_table_lines
from chatcontent.nodes import (
    BlockquoteNode,
    BoldNode,
    CodeBlockNode,
    CodeNode,
    HeadingNode,
    HorizontalRuleNode,
    ItalicNode,
    LinkNode,
    ListNode,
    ParagraphNode,
    StrikethroughNode,
    TableNode,
    TextNode,
    inline_text,
)


# ---- Inline ----

def test_inline_plain_text_is_single_node():
    assert parse_inline("just words") == [TextNode(content="just words")]


def test_inline_empty_string():
    assert parse_inline("") == []


def test_inline_bold_and_italic():
    nodes = parse_inline("hello **bold** and *it*")
    assert nodes == [
        TextNode(content="hello "),
        BoldNode(children=[TextNode(content="bold")]),
        TextNode(content=" and "),
        ItalicNode(children=[TextNode(content="it")]),
    ]


def test_inline_underscore_bold_beats_italic():
    assert parse_inline("__b__") == [BoldNode(children=[TextNode(content="b")])]


def test_inline_code_span_wins_over_emphasis():
    assert parse_inline("`**x**`") == [CodeNode(content="**x**")]


def test_inline_link_label_is_parsed():
    nodes = parse_inline("[**a**](http://example.com)")
    assert nodes == [
        LinkNode(href="http://example.com", children=[BoldNode(children=[TextNode(content="a")])])
    ]


def test_inline_nested_italic_inside_bold():
    nodes = parse_inline("**bold _it_**")
    assert nodes == [
        BoldNode(children=[TextNode(content="bold "), ItalicNode(children=[TextNode(content="it")])])
    ]


def test_inline_strikethrough():
    assert parse_inline("~~gone~~") == [StrikethroughNode(children=[TextNode(content="gone")])]


def test_inline_mismatched_delimiters_degrade_to_text():
    nodes = parse_inline("**a__")
    assert all(isinstance(n, TextNode) for n in nodes)
    assert inline_text(nodes) == "**a__"


def test_inline_lone_asterisk_is_literal():
    nodes = parse_inline("a * b")
    assert nodes == [TextNode(content="a "), TextNode(content="*"), TextNode(content=" b")]


def _render(nodes, bold: str, italic: str) -> str:
    """Write inline nodes back as markdown using the given emphasis delimiters."""
    parts = []
    for node in nodes:
        if isinstance(node, TextNode):
            parts.append(node.content)
        elif isinstance(node, CodeNode):
            parts.append(f"`{node.content}`")
        elif isinstance(node, LinkNode):
            parts.append(f"[{_render(node.children, bold, italic)}]({node.href})")
        elif isinstance(node, BoldNode):
            parts.append(f"{bold}{_render(node.children, bold, italic)}{bold}")
        elif isinstance(node, ItalicNode):
            parts.append(f"{italic}{_render(node.children, bold, italic)}{italic}")
        elif isinstance(node, StrikethroughNode):
            parts.append(f"~~{_render(node.children, bold, italic)}~~")
    return "".join(parts)


@pytest.mark.parametrize(
    "text",
    [
        "*", "[", "]", "~", "`", "[x](", "a]b[c", "~~~", "``", "**", "**a__", "x * y * z",
        "***b***", "a **b** `c` [d *e*](u) ~~f~~", "[**a** `b`](http://x) tail*",
    ],
)
def test_inline_covers_every_character_star_style(text):
    nodes = parse_inline(text)
    assert nodes
    assert _render(nodes, "**", "*") == text


@pytest.mark.parametrize(
    "text",
    ["_", "__", "__init__.py", "snake_case_name", "a __b__ _c_", "[_x_](y)", "_a ~~b~~_"],
)
def test_inline_covers_every_character_underscore_style(text):
    nodes = parse_inline(text)
    assert nodes
    assert _render(nodes, "__", "_") == text


@pytest.mark.parametrize("text", ["*", "[", "]", "~", "`", "[x](", "a]b[c", "**"])
def test_inline_unmatched_specials_stay_text(text):
    nodes = parse_inline(text)
    assert all(isinstance(n, TextNode) for n in nodes)
    assert inline_text(nodes) == text


def test_inline_deep_nesting_terminates():
    text = "[" * 200 + "x" + "](u)" * 200
    assert parse_inline(text)


# ---- Headings, rules, code ----

def test_heading_levels():
    blocks = parse_markdown("# One\n### Three")
    assert blocks == [
        HeadingNode(level=1, children=[TextNode(content="One")]),
        HeadingNode(level=3, children=[TextNode(content="Three")]),
    ]


def test_seven_hashes_is_a_paragraph():
    blocks = parse_markdown("####### too deep")
    assert isinstance(blocks[0], ParagraphNode)


@pytest.mark.parametrize("rule", ["---", "***", "___", "  -----  "])
def test_horizontal_rules(rule):
    assert parse_markdown(rule) == [HorizontalRuleNode()]


def test_fenced_code_block_with_language():
    blocks = parse_markdown("```python\nprint(1)\n```")
    assert blocks == [CodeBlockNode(language="python", content="print(1)")]


def test_fenced_code_defaults_to_text():
    blocks = parse_markdown("```\nx\n```")
    assert blocks == [CodeBlockNode(language="text", content="x")]


def test_code_body_is_not_reparsed():
    blocks = parse_markdown("```md\n# not a heading\n- nor a list\n```")
    assert len(blocks) == 1
    assert blocks[0].content == "# not a heading\n- nor a list"


def test_unterminated_fence_runs_to_end():
    blocks = parse_markdown("```\na\nb")
    assert blocks == [CodeBlockNode(language="text", content="a\nb")]


def test_text_after_code_block():
    blocks = parse_markdown("```\ncode\n```\nafter")
    assert isinstance(blocks[0], CodeBlockNode)
    assert isinstance(blocks[1], ParagraphNode)
    assert inline_text(blocks[1].children) == "after"


# ---- Tables ----

def test_table_with_alignments():
    blocks = parse_markdown("| A | B | C | D |\n|:--|--:|:-:|---|\n| 1 | 2 | 3 | 4 |")
    assert len(blocks) == 1
    table = blocks[0]
    assert isinstance(table, TableNode)
    assert table.table.headers == ["A", "B", "C", "D"]
    assert table.table.alignments == ["left", "right", "center", "none"]
    assert table.table.rows == [["1", "2", "3", "4"]]


def test_table_rows_may_be_ragged():
    blocks = parse_markdown("| A | B |\n|---|---|\n| 1 |\n| 1 | 2 | 3 |")
    assert blocks[0].table.rows == [["1"], ["1", "2", "3"]]


def test_table_stops_at_non_pipe_line():
    blocks = parse_markdown("| A |\n|---|\n| 1 |\nafter")
    assert isinstance(blocks[0], TableNode)
    assert isinstance(blocks[1], ParagraphNode)


def test_pipe_line_without_separator_is_paragraph():
    blocks = parse_markdown("| just | text |\nmore")
    assert len(blocks) == 1
    assert isinstance(blocks[0], ParagraphNode)
    assert inline_text(blocks[0].children) == "| just | text |\nmore"


def test_consecutive_pipe_lines_without_separator():
    blocks = parse_markdown("| a |\n| b |")
    assert [type(b) for b in blocks] == [ParagraphNode, ParagraphNode]


def test_parse_table_lines_needs_two_lines():
    assert parse_table_lines(["| A |"]) is None


# ---- Blockquotes ----

def test_blockquote_nested_content_is_parsed():
    blocks = parse_markdown("> quote **b**\n> more")
    assert len(blocks) == 1
    quote = blocks[0]
    assert isinstance(quote, BlockquoteNode)
    assert isinstance(quote.nested[0], ParagraphNode)
    assert inline_text(quote.nested[0].children) == "quote b\nmore"


def test_nested_blockquote():
    blocks = parse_markdown("> > deep")
    inner = blocks[0].nested[0]
    assert isinstance(inner, BlockquoteNode)
    assert inline_text(inner.nested[0].children) == "deep"


def test_blockquote_continues_over_blank_line_before_quote():
    blocks = parse_markdown("> a\n\n> b")
    assert len(blocks) == 1
    assert [type(b) for b in blocks[0].nested] == [ParagraphNode, ParagraphNode]


def test_blockquote_ends_at_blank_line_before_text():
    blocks = parse_markdown("> a\n\nplain")
    assert [type(b) for b in blocks] == [BlockquoteNode, ParagraphNode]


def test_blockquote_can_hold_other_blocks():
    blocks = parse_markdown("> # Title\n> - item")
    nested = blocks[0].nested
    assert isinstance(nested[0], HeadingNode)
    assert isinstance(nested[1], ListNode)


def test_pathological_quote_depth_terminates():
    blocks = parse_markdown(">" * 100 + " x")
    assert isinstance(blocks[0], BlockquoteNode)


# ---- Lists ----

def test_unordered_list_mixed_markers():
    blocks = parse_markdown("- one\n- two\n* three\n+ four")
    assert len(blocks) == 1
    lst = blocks[0]
    assert isinstance(lst, ListNode)
    assert lst.ordered is False
    assert [inline_text(item.children) for item in lst.items] == ["one", "two", "three", "four"]


def test_ordered_list_discards_numerals():
    blocks = parse_markdown("1. first\n5. second")
    lst = blocks[0]
    assert lst.ordered is True
    assert [inline_text(item.children) for item in lst.items] == ["first", "second"]


def test_list_items_are_inline_parsed():
    blocks = parse_markdown("- **bold** item")
    item = blocks[0].items[0]
    assert isinstance(item.children[0], BoldNode)


def test_list_continues_over_blank_line():
    blocks = parse_markdown("- a\n\n- b")
    assert len(blocks) == 1
    assert len(blocks[0].items) == 2


def test_list_ends_at_blank_line_before_text():
    blocks = parse_markdown("- a\n\nafter")
    assert [type(b) for b in blocks] == [ListNode, ParagraphNode]


def test_list_ends_at_unindented_text():
    blocks = parse_markdown("- a\nplain")
    assert [type(b) for b in blocks] == [ListNode, ParagraphNode]


def test_indented_continuation_lines_are_skipped():
    blocks = parse_markdown("- a\n  continued\n- b")
    assert len(blocks) == 1
    assert len(blocks[0].items) == 2


def test_unordered_then_ordered_are_separate_lists():
    blocks = parse_markdown("- a\n1. b")
    assert [b.ordered for b in blocks] == [False, True]


# ---- Paragraphs and document order ----

def test_paragraph_joins_lines():
    blocks = parse_markdown("line one\nline two")
    assert len(blocks) == 1
    assert inline_text(blocks[0].children) == "line one\nline two"


def test_paragraph_ends_at_block_start():
    blocks = parse_markdown("text\n# H\nmore\n> q")
    assert [type(b) for b in blocks] == [ParagraphNode, HeadingNode, ParagraphNode, BlockquoteNode]


def test_blank_lines_are_not_emitted():
    assert parse_markdown("\n\n   \n") == []
    assert parse_markdown("") == []


def test_document_order():
    text = "# Title\n\nIntro text.\n\n```js\nx\n```\n\n| A |\n|---|\n| 1 |\n\n---\n\n1. one"
    blocks = parse_markdown(text)
    assert [b.type for b in blocks] == ["heading", "paragraph", "code_block", "table", "hr", "list"]


@pytest.mark.parametrize(
    "text",
    ["x", "|", "| |", ">", "```", "-", "1.", "#", "***bold***", "> ```\n> code", "|a|\n|-|", "\r\n\r\n"],
)
def test_block_parser_is_total(text):
    blocks = parse_markdown(text)
    if text.strip():
        assert blocks
