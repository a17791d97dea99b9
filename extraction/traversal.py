"""
AST traversal and element extraction logic.

This module walks a tree-sitter-rust tree in a single pre-order pass and
emits one ``Element`` per declaration (functions, structs, unions, enums,
traits, impl blocks, modules, constants, statics, type aliases and macros),
along with its doc comments, attributes, visibility and complexity.
"""

import logging
import re
from typing import List, Optional, Tuple

from tree_sitter import Node, Tree

from core.element_id import normalize_rust_path
from core.extractor_config import ExtractorConfig
from extraction.complexity import compute_complexity
from extraction.config import (
    ATTRIBUTE_NODE,
    COMMENT_NODES,
    INNER_ATTRIBUTE_NODE,
    INNER_DOC_PREFIXES,
    ITEM_KIND_MAP,
    MACRO_EXPORT_ATTRIBUTE,
    NON_DOC_PREFIXES,
    OUTER_DOC_PREFIXES,
    SCOPE_KINDS,
    TRANSPARENT_WRAPPERS,
    VISIBILITY_NODE,
)
from extraction.hierarchy import HierarchyResolver
from extraction.models import CrossReference, Element, ElementKind, Visibility
from extraction.references import ReferenceCollector, collect_import_references, node_location
from extraction.signature import render_signature

logger = logging.getLogger(__name__)
_SPACE_RE = re.compile(r"\s+")
_DOC_ATTRIBUTE_RE = re.compile(
    r'^#!?\[\s*doc\s*=\s*r?#*"(?P<body>.*)"#*\s*\]$',
    re.DOTALL,
)
_MACRO_EXPORT_RE = re.compile(r"^#\[\s*" + MACRO_EXPORT_ATTRIBUTE + r"\b")


def _node_text(node: Node, source_bytes: bytes) -> str:
    return source_bytes[node.start_byte:node.end_byte].decode("utf-8")


def is_doc_comment(comment_text: str, prefixes: Tuple[str, ...] = OUTER_DOC_PREFIXES) -> bool:
    """Check if a comment is a Rust documentation comment.

    Args:
        comment_text: The text content of the comment.
        prefixes: Doc prefixes to accept (outer by default, ``//!`` and
            ``/*!`` for inner docs).

    Returns:
        True for ``///`` and ``/** */`` comments (or the inner forms), False
        for ordinary comments such as ``////`` or ``/**/``.
    """
    stripped = comment_text.strip()
    if any(stripped.startswith(prefix) for prefix in NON_DOC_PREFIXES):
        return False
    return any(stripped.startswith(prefix) for prefix in prefixes)


def clean_doc_comment(comment_text: str) -> List[str]:
    """Strip doc comment delimiters and leading asterisks.

    Removes:
    - /// and //! at the start of each line
    - /** or /*! and the closing */
    - Leading * on block comment continuation lines

    Args:
        comment_text: Raw comment text with delimiters.

    Returns:
        Cleaned, non-empty lines.
    """
    lines = comment_text.split("\n")
    cleaned_lines = []

    for idx, line in enumerate(lines):
        stripped = line.strip()

        if stripped.startswith("///") or stripped.startswith("//!"):
            stripped = stripped[3:]
        elif idx == 0 and (stripped.startswith("/**") or stripped.startswith("/*!")):
            stripped = stripped[3:]

        stripped = stripped.strip()

        # Trailing block marker regardless of line position
        if stripped.endswith("*/"):
            stripped = stripped[:-2].rstrip()

        # Continuation '*' in multiline block comments
        if stripped.startswith("*"):
            stripped = stripped[1:].lstrip()

        if stripped:
            cleaned_lines.append(stripped)

    return cleaned_lines


def doc_attribute_lines(attribute_text: str) -> Optional[List[str]]:
    """Return the doc lines of a ``#[doc = "..."]`` attribute, None for other attributes."""
    match = _DOC_ATTRIBUTE_RE.match(attribute_text.strip())
    if match is None:
        return None
    body = match.group("body").replace('\\"', '"').replace("\\n", "\n")
    return [line.strip() for line in body.split("\n") if line.strip()]


def _end_row(node: Node) -> int:
    # Line comments may include their newline, ending at column 0 of the next row
    row = node.end_point.row
    if node.end_point.column == 0 and row > node.start_point.row:
        row -= 1
    return row


def get_preceding_docs_and_attributes(
    node: Node,
    source_bytes: bytes,
) -> Tuple[List[str], List[str]]:
    """Collect the doc comments and attributes immediately preceding an item.

    This function walks backward through siblings to find comments and
    attributes that directly precede the given node (with at most 1 blank
    line gap).

    Args:
        node: The item node to find docs for.
        source_bytes: The raw source file bytes.

    Returns:
        A tuple of (doc_lines, attributes), both in source order.
    """
    doc_blocks: List[List[str]] = []
    attributes: List[str] = []
    sibling = node.prev_named_sibling
    expected_end_row = node.start_point.row

    while sibling is not None and (
        sibling.type in COMMENT_NODES or sibling.type == ATTRIBUTE_NODE
    ):
        # Check adjacency: allow at most 1 line gap
        gap = expected_end_row - _end_row(sibling)
        if gap > 1:
            break

        text = _node_text(sibling, source_bytes)
        if sibling.type == ATTRIBUTE_NODE:
            doc_lines = doc_attribute_lines(text)
            if doc_lines is not None:
                doc_blocks.append(doc_lines)
            else:
                attributes.append(_SPACE_RE.sub(" ", text).strip())
        elif is_doc_comment(text):
            doc_blocks.append(clean_doc_comment(text))

        expected_end_row = sibling.start_point.row
        sibling = sibling.prev_named_sibling

    # Reverse to get source order
    doc_blocks.reverse()
    attributes.reverse()
    docs = [line for block in doc_blocks for line in block]
    return docs, attributes


def get_inner_docs(body: Node, source_bytes: bytes) -> List[str]:
    """Collect the leading ``//!`` / ``/*!`` docs of a module body."""
    docs: List[str] = []
    for child in body.named_children:
        text = _node_text(child, source_bytes)
        if child.type in COMMENT_NODES:
            if is_doc_comment(text, INNER_DOC_PREFIXES):
                docs.extend(clean_doc_comment(text))
        elif child.type == INNER_ATTRIBUTE_NODE:
            doc_lines = doc_attribute_lines(text)
            if doc_lines is not None:
                docs.extend(doc_lines)
        else:
            break
    return docs


def extract_visibility(node: Node, source_bytes: bytes) -> Visibility:
    """Resolve the visibility modifier of an item.

    ``pub`` is public, ``pub(crate)``, ``pub(super)``, ``pub(in path)`` (and
    the legacy ``crate`` modifier) are restricted, no modifier is private.
    """
    for child in node.children:
        if child.type != VISIBILITY_NODE:
            continue
        text = _SPACE_RE.sub(" ", _node_text(child, source_bytes)).strip()
        if text == "pub":
            return Visibility.public()
        restriction = text.replace("pub (", "pub(").replace("( ", "(").replace(" )", ")")
        return Visibility.restricted(restriction)
    return Visibility.private()


def extract_generic_params(node: Node, source_bytes: bytes) -> Tuple[str, ...]:
    type_parameters = node.child_by_field_name("type_parameters")
    if type_parameters is None:
        return ()
    return tuple(
        normalize_rust_path(_node_text(child, source_bytes))
        for child in type_parameters.named_children
        if child.type not in COMMENT_NODES and child.type != ATTRIBUTE_NODE
    )


def extract_item_name(node: Node, kind: ElementKind, source_bytes: bytes) -> Optional[str]:
    """Extract the name of a declaration node.

    Impl blocks are named after their self type, or ``Trait for Type`` for
    trait implementations.
    """
    if kind is ElementKind.IMPL:
        self_type = node.child_by_field_name("type")
        if self_type is None:
            return None
        type_name = normalize_rust_path(_node_text(self_type, source_bytes))
        trait = node.child_by_field_name("trait")
        if trait is None:
            return type_name
        return f"{normalize_rust_path(_node_text(trait, source_bytes))} for {type_name}"

    name_node = node.child_by_field_name("name")
    if name_node is None:
        logger.debug("Skipping unnamed %s at line %d", node.type, node.start_point.row + 1)
        return None
    return _node_text(name_node, source_bytes)


def impl_scope_segment(node: Node, source_bytes: bytes) -> str:
    """Scope segment of an impl body: ``Foo<T>`` or ``<Foo as Display>``."""
    self_type = node.child_by_field_name("type")
    type_name = normalize_rust_path(_node_text(self_type, source_bytes)) if self_type else "_"
    trait = node.child_by_field_name("trait")
    if trait is None:
        return type_name
    return f"<{type_name} as {normalize_rust_path(_node_text(trait, source_bytes))}>"


class ElementVisitor:
    """Pre-order visitor emitting the elements of one file.

    Visibility filtering happens before an element is placed in the
    hierarchy, so a dropped item takes its whole subtree with it and leaves
    no gap in ordinals or parent links.
    """

    def __init__(self, source_bytes: bytes, file_path: str, config: ExtractorConfig):
        self.source_bytes = source_bytes
        self.file_path = file_path
        self.config = config
        self.resolver = HierarchyResolver(file_path)
        self.elements: List[Element] = []
        self.references: List[CrossReference] = []
        self.collector = ReferenceCollector(source_bytes, file_path)
        self.skipped_private = 0

    def visit_container(self, container: Node, member_visibility: Optional[Visibility] = None) -> None:
        """Visit the items of a source file or declaration list.

        Args:
            container: ``source_file`` or ``declaration_list`` node.
            member_visibility: Visibility forced on the members (trait
                members, trait impl members); None to resolve each item's own.
        """
        for child in container.named_children:
            if child.type in TRANSPARENT_WRAPPERS:
                body = child.child_by_field_name("body")
                if body is not None:
                    self.visit_container(body, member_visibility)
                continue
            kind = ITEM_KIND_MAP.get(child.type)
            if kind is not None:
                self.visit_item(child, kind, member_visibility)

    def _resolve_visibility(
        self,
        node: Node,
        kind: ElementKind,
        attributes: List[str],
        member_visibility: Optional[Visibility],
    ) -> Visibility:
        if kind is ElementKind.IMPL:
            return Visibility.inherited()
        if member_visibility is not None:
            return member_visibility
        if kind is ElementKind.MACRO:
            if any(_MACRO_EXPORT_RE.match(attribute) for attribute in attributes):
                return Visibility.public()
            return Visibility.private()
        return extract_visibility(node, self.source_bytes)

    def visit_item(
        self,
        node: Node,
        kind: ElementKind,
        member_visibility: Optional[Visibility] = None,
    ) -> Optional[Element]:
        name = extract_item_name(node, kind, self.source_bytes)
        if not name:
            return None

        docs, attributes = get_preceding_docs_and_attributes(node, self.source_bytes)
        visibility = self._resolve_visibility(node, kind, attributes, member_visibility)
        if visibility.is_private and not self.config.include_private:
            self.skipped_private += 1
            logger.debug("Skipping private %s %s at line %d", kind.value, name, node.start_point.row + 1)
            return None

        body = node.child_by_field_name("body")
        if kind is ElementKind.MODULE and body is not None:
            docs.extend(get_inner_docs(body, self.source_bytes))
        if not self.config.include_docs:
            docs = []

        placement = self.resolver.place(kind, name)
        complexity, complexity_metrics = compute_complexity(node, kind, self.source_bytes)

        element = Element(
            id=placement.element_id,
            kind=kind,
            name=name,
            signature=render_signature(node, self.source_bytes),
            visibility=visibility,
            doc_comments=tuple(docs),
            attributes=tuple(attributes),
            location=node_location(node, self.file_path),
            hierarchy=placement.to_hierarchy(),
            complexity=complexity,
            complexity_metrics=complexity_metrics,
            generic_params=extract_generic_params(node, self.source_bytes),
        )
        self.elements.append(element)
        self.references.extend(self.collector.collect(node, element))
        logger.debug("Extracted %s: %s at %s:%d", kind.value, placement.qualified_name,
                     self.file_path, element.location.line_start)

        if kind in SCOPE_KINDS and body is not None:
            if kind is ElementKind.MODULE:
                segment, members = name, None
            elif kind is ElementKind.TRAIT:
                segment, members = name, visibility
            elif node.child_by_field_name("trait") is not None:
                segment, members = impl_scope_segment(node, self.source_bytes), Visibility.inherited()
            else:
                segment, members = impl_scope_segment(node, self.source_bytes), None
            with self.resolver.scope(segment, element.id):
                self.visit_container(body, members)

        return element


def extract_elements_from_tree(
    tree: Tree,
    source_bytes: bytes,
    file_path: str,
    config: Optional[ExtractorConfig] = None,
) -> Tuple[Element, ...]:
    """Extract all elements from a parsed Rust AST.

    This is the main entry point for element extraction.

    Args:
        tree: The parsed AST tree.
        source_bytes: The raw source file bytes.
        file_path: File path relative to the project root.
        config: Extraction settings; defaults when omitted.

    Returns:
        Elements in source (pre-order) order with hierarchy links completed.
    """
    visitor = ElementVisitor(source_bytes, file_path, config or ExtractorConfig())
    visitor.visit_container(tree.root_node)
    elements = visitor.resolver.finalize(visitor.elements)
    logger.debug(
        "Extracted %d elements from %s (%d private skipped)",
        len(elements),
        file_path,
        visitor.skipped_private,
    )
    return elements


def extract_elements_and_references(
    tree: Tree,
    source_bytes: bytes,
    file_path: str,
    config: Optional[ExtractorConfig] = None,
) -> Tuple[Tuple[Element, ...], Tuple[CrossReference, ...]]:
    """Extract elements plus their unresolved outgoing references.

    Import references come first, then element references in source order.
    """
    visitor = ElementVisitor(source_bytes, file_path, config or ExtractorConfig())
    visitor.visit_container(tree.root_node)
    elements = visitor.resolver.finalize(visitor.elements)
    references = collect_import_references(tree, source_bytes, file_path) + visitor.references
    logger.debug(
        "Extracted %d elements and %d references from %s",
        len(elements),
        len(references),
        file_path,
    )
    return elements, tuple(references)
