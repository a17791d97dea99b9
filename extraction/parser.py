"""
Tree-sitter parser initialization and file parsing utilities.

This module provides functions to initialize the Rust parser, parse source
bytes, and read/size-check/parse files from disk. tree-sitter never raises on
malformed input; a tree whose root carries ERROR or MISSING nodes is reported
as a ``ParseError``.
"""

import errno
import logging
import os
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

import tree_sitter_rust as tsrust
from tree_sitter import Language, Node, Parser, Tree

from core.errors import AccessDenied, FileReadError, MaxFileSizeExceeded, ParseError

# Configure logging
logger = logging.getLogger(__name__)

# Module-level language constant
RUST_LANGUAGE = Language(tsrust.language())


@dataclass(frozen=True)
class ParsedFile:
    """A file that was read and parsed without syntax errors."""

    path: str
    tree: Tree
    source_bytes: bytes
    text: str

    @property
    def size(self) -> int:
        return len(self.source_bytes)


def create_parser() -> Parser:
    """Create and configure a tree-sitter parser for Rust.

    Parsers are cheap and not thread-safe, so every parse gets its own.

    Returns:
        A Parser instance configured with the Rust language.

    Example:
        >>> parser = create_parser()
        >>> tree = parser.parse(b"fn main() {}")
    """
    parser = Parser(RUST_LANGUAGE)
    logger.debug("Created tree-sitter Rust parser")
    return parser


def parse_bytes(source: bytes) -> Tree:
    """Parse raw bytes of Rust source code.

    Args:
        source: UTF-8 encoded bytes of Rust source code.

    Returns:
        A Tree object representing the parsed AST. The tree may contain
        ERROR nodes; use ``count_error_nodes`` to check.

    Raises:
        TypeError: If source is not bytes.

    Example:
        >>> tree = parse_bytes(b"fn foo() {}")
        >>> tree.root_node.type
        'source_file'
    """
    if not isinstance(source, bytes):
        raise TypeError(f"Source must be bytes, got {type(source).__name__}")

    parser = create_parser()
    tree = parser.parse(source)

    logger.debug("Parsed %d bytes of Rust code", len(source))
    return tree


def _iter_error_nodes(node: Node) -> Iterator[Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.is_error or current.is_missing:
            yield current
            continue
        if current.has_error:
            stack.extend(reversed(current.children))


def count_error_nodes(tree: Tree) -> int:
    """Count ERROR and MISSING nodes in a tree (0 for a clean parse)."""
    if not tree.root_node.has_error:
        return 0
    return sum(1 for _ in _iter_error_nodes(tree.root_node))


def first_error_point(tree: Tree) -> Optional[Tuple[int, int]]:
    """Return the 1-based line and 0-based column of the first syntax error."""
    if not tree.root_node.has_error:
        return None
    for node in _iter_error_nodes(tree.root_node):
        return node.start_point.row + 1, node.start_point.column
    return None


def read_source(file_path: str, max_file_size: int) -> bytes:
    """Read a file, enforcing the size limit before loading its content.

    Raises:
        MaxFileSizeExceeded: If the file is larger than ``max_file_size``.
        AccessDenied: If the file is not readable.
        FileReadError: For any other I/O failure.
    """
    try:
        size = os.path.getsize(file_path)
        if size > max_file_size:
            raise MaxFileSizeExceeded(file_path, size, max_file_size)
        with open(file_path, "rb") as f:
            source_bytes = f.read()
    except PermissionError as e:
        logger.error("Permission denied reading %s", file_path)
        raise AccessDenied(file_path) from e
    except OSError as e:
        if e.errno == errno.EACCES:
            raise AccessDenied(file_path) from e
        logger.error("Error reading file %s: %s", file_path, e)
        raise FileReadError(file_path, e.strerror or str(e)) from e

    # The file may have grown between stat and read
    if len(source_bytes) > max_file_size:
        raise MaxFileSizeExceeded(file_path, len(source_bytes), max_file_size)
    return source_bytes


def parse_file(file_path: str, max_file_size: int) -> ParsedFile:
    """Read, size-check and parse a Rust source file.

    Args:
        file_path: Path to the .rs file.
        max_file_size: Largest accepted file size in bytes.

    Returns:
        The parsed file.

    Raises:
        MaxFileSizeExceeded: If the file is too large.
        FileReadError: If the file cannot be read or is not valid UTF-8.
        ParseError: If the source contains syntax errors.
    """
    source_bytes = read_source(file_path, max_file_size)

    try:
        text = source_bytes.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FileReadError(file_path, f"not valid UTF-8 ({e.reason} at byte {e.start})") from e

    tree = parse_bytes(source_bytes)

    if tree.root_node.has_error:
        error_count = count_error_nodes(tree)
        point = first_error_point(tree)
        line, column = point if point is not None else (None, None)
        logger.warning("File %s contains %d syntax error node(s)", file_path, error_count)
        raise ParseError(
            file_path,
            f"{error_count} syntax error node(s)",
            line=line,
            column=column,
        )

    logger.debug("Successfully parsed file: %s", file_path)
    return ParsedFile(path=file_path, tree=tree, source_bytes=source_bytes, text=text)
