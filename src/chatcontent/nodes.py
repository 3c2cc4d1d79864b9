"""Markdown AST produced by the block and inline parsers."""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel

Alignment = Literal["left", "center", "right", "none"]


# Inline nodes


class TextNode(BaseModel):
    type: Literal["text"] = "text"
    content: str


class CodeNode(BaseModel):
    type: Literal["code"] = "code"
    content: str


class BoldNode(BaseModel):
    type: Literal["bold"] = "bold"
    children: list[InlineNode] = []


class ItalicNode(BaseModel):
    type: Literal["italic"] = "italic"
    children: list[InlineNode] = []


class StrikethroughNode(BaseModel):
    type: Literal["strikethrough"] = "strikethrough"
    children: list[InlineNode] = []


class LinkNode(BaseModel):
    type: Literal["link"] = "link"
    href: str
    children: list[InlineNode] = []


InlineNode = Union[TextNode, CodeNode, BoldNode, ItalicNode, StrikethroughNode, LinkNode]


# Block nodes


class TableData(BaseModel):
    headers: list[str] = []
    alignments: list[Alignment] = []
    rows: list[list[str]] = []


class ParagraphNode(BaseModel):
    type: Literal["paragraph"] = "paragraph"
    children: list[InlineNode] = []


class HeadingNode(BaseModel):
    type: Literal["heading"] = "heading"
    level: int
    children: list[InlineNode] = []


class CodeBlockNode(BaseModel):
    type: Literal["code_block"] = "code_block"
    language: str = "text"
    content: str = ""


class ListItemNode(BaseModel):
    type: Literal["list_item"] = "list_item"
    children: list[InlineNode] = []


class ListNode(BaseModel):
    type: Literal["list"] = "list"
    ordered: bool = False
    items: list[ListItemNode] = []


class TableNode(BaseModel):
    type: Literal["table"] = "table"
    table: TableData


class HorizontalRuleNode(BaseModel):
    type: Literal["hr"] = "hr"


class BlockquoteNode(BaseModel):
    type: Literal["blockquote"] = "blockquote"
    nested: list[BlockNode] = []


BlockNode = Union[
    ParagraphNode,
    HeadingNode,
    CodeBlockNode,
    BlockquoteNode,
    ListNode,
    ListItemNode,
    TableNode,
    HorizontalRuleNode,
]

for _model in (BoldNode, ItalicNode, StrikethroughNode, LinkNode, ParagraphNode,
               HeadingNode, ListItemNode, ListNode, BlockquoteNode):
    _model.model_rebuild()


def inline_text(nodes: list[InlineNode]) -> str:
    """Flatten inline nodes back to their text, without delimiter syntax."""
    parts: list[str] = []
    for node in nodes:
        if isinstance(node, (TextNode, CodeNode)):
            parts.append(node.content)
        else:
            parts.append(inline_text(node.children))
    return "".join(parts)
