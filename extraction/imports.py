"""
Import extraction from top-level ``use`` declarations.

Grouped imports expand into one record per member::

    use std::{fmt, io::Read as R, collections::*};

yields ``std`` / ``[fmt]``, ``std::io`` / ``[Read]`` aliased ``R`` and a glob
record for ``std::collections``.
"""

import logging
from typing import Iterator, List, Optional, Tuple

from tree_sitter import Node, Tree

from core.element_id import ELEMENT_ID_SEPARATOR, join_scope, normalize_rust_path
from extraction.config import COMMENT_NODES, USE_DECLARATION, VISIBILITY_NODE
from extraction.models import ImportRecord

logger = logging.getLogger(__name__)

_PATH_LEAF_TYPES = {"identifier", "self", "crate", "super", "metavariable"}


def _text(node: Node, source_bytes: bytes) -> str:
    return normalize_rust_path(source_bytes[node.start_byte:node.end_byte].decode("utf-8"))


def _split_path(full_path: str) -> Tuple[str, str]:
    """Split ``a::b::C`` into ``("a::b", "C")``."""
    if ELEMENT_ID_SEPARATOR not in full_path:
        return "", full_path
    module_path, name = full_path.rsplit(ELEMENT_ID_SEPARATOR, 1)
    return module_path, name


class _UseTreeExpander:
    """Flatten one ``use`` tree into import records."""

    def __init__(self, source_bytes: bytes, line: int, is_reexport: bool):
        self.source_bytes = source_bytes
        self.line = line
        self.is_reexport = is_reexport
        self.records: List[ImportRecord] = []

    def _emit_path(self, prefix: str, path_text: str, alias: Optional[str] = None) -> None:
        if path_text == "self" and prefix:
            # `self` in a group names the group path itself
            full_path = prefix
        else:
            full_path = join_scope(prefix, path_text)
        module_path, name = _split_path(full_path)
        self.records.append(
            ImportRecord(
                module_path=module_path,
                imported_names=(name,),
                alias=alias,
                is_reexport=self.is_reexport,
                line=self.line,
            )
        )

    def expand(self, node: Node, prefix: str = "") -> None:
        node_type = node.type
        if node_type in COMMENT_NODES:
            return
        if node_type in _PATH_LEAF_TYPES or node_type == "scoped_identifier":
            self._emit_path(prefix, _text(node, self.source_bytes))
        elif node_type == "use_as_clause":
            path = node.child_by_field_name("path")
            alias = node.child_by_field_name("alias")
            if path is None:
                return
            self._emit_path(
                prefix,
                _text(path, self.source_bytes),
                alias=_text(alias, self.source_bytes) if alias is not None else None,
            )
        elif node_type == "use_wildcard":
            named = [child for child in node.named_children if child.type not in COMMENT_NODES]
            module_path = prefix
            if named:
                module_path = join_scope(prefix, _text(named[0], self.source_bytes))
            self.records.append(
                ImportRecord(
                    module_path=module_path,
                    is_glob=True,
                    is_reexport=self.is_reexport,
                    line=self.line,
                )
            )
        elif node_type == "scoped_use_list":
            path = node.child_by_field_name("path")
            use_list = node.child_by_field_name("list")
            group_prefix = prefix
            if path is not None:
                group_prefix = join_scope(prefix, _text(path, self.source_bytes))
            if use_list is not None:
                self.expand(use_list, group_prefix)
        elif node_type == "use_list":
            for child in node.named_children:
                self.expand(child, prefix)
        else:
            logger.debug("Unhandled use tree node %s at line %d", node_type, self.line)


def iter_use_declarations(tree: Tree, source_bytes: bytes) -> Iterator[Tuple[Node, List[ImportRecord]]]:
    """Yield each top-level ``use`` declaration with the records it expands to."""
    for node in tree.root_node.named_children:
        if node.type != USE_DECLARATION:
            continue
        argument = node.child_by_field_name("argument")
        if argument is None:
            continue
        is_reexport = any(child.type == VISIBILITY_NODE for child in node.named_children)
        expander = _UseTreeExpander(source_bytes, node.start_point.row + 1, is_reexport)
        expander.expand(argument)
        yield node, expander.records


def extract_imports(tree: Tree, source_bytes: bytes) -> Tuple[ImportRecord, ...]:
    """Extract import records from the top-level ``use`` declarations of a file.

    ``use`` declarations nested in modules or function bodies are ignored.
    """
    records: List[ImportRecord] = []
    for _, declaration_records in iter_use_declarations(tree, source_bytes):
        records.extend(declaration_records)
    return tuple(records)
