"""Declaration signature rendering."""

import re
from typing import List, Tuple

from tree_sitter import Node

from extraction.config import COMMENT_NODES

_SPACE_RE = re.compile(r"\s+")

# Bodies dropped from the signature (tuple struct fields are kept)
_BODY_TYPES = {
    "block",
    "declaration_list",
    "field_declaration_list",
    "enum_variant_list",
}


def _signature_end(node: Node) -> int:
    if node.type == "macro_definition":
        name = node.child_by_field_name("name")
        return name.end_byte if name is not None else node.end_byte
    if node.type in ("const_item", "static_item"):
        value = node.child_by_field_name("value")
        if value is not None:
            return value.start_byte
        return node.end_byte
    body = node.child_by_field_name("body")
    if body is not None and body.type in _BODY_TYPES:
        return body.start_byte
    return node.end_byte


def _comment_spans(node: Node, end: int) -> List[Tuple[int, int]]:
    """Byte spans of the comments inside ``node`` that start before ``end``."""
    spans: List[Tuple[int, int]] = []
    stack = [node]
    while stack:
        current = stack.pop()
        for child in current.children:
            if child.start_byte >= end:
                break
            if child.type in COMMENT_NODES:
                spans.append((child.start_byte, min(child.end_byte, end)))
            else:
                stack.append(child)
    return sorted(spans)


def render_signature(node: Node, source_bytes: bytes) -> str:
    """Render the declaration text of ``node`` without its body.

    Whitespace runs collapse to a single space and a trailing ``;`` or ``=``
    is dropped, so ``pub fn add(a: i32,\\n b: i32) -> i32 { a + b }`` renders
    as ``pub fn add(a: i32, b: i32) -> i32``. Comments inside the header are
    left out.
    """
    end = _signature_end(node)
    pieces = []
    position = node.start_byte
    for start, stop in _comment_spans(node, end):
        pieces.append(source_bytes[position:start])
        position = max(position, stop)
    pieces.append(source_bytes[position:end])
    text = b" ".join(pieces).decode("utf-8", errors="replace")
    text = _SPACE_RE.sub(" ", text).strip()
    while text and text[-1] in ";=":
        text = text[:-1].rstrip()
    return text
