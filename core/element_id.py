"""Element identity contract shared by the extraction layers."""

from __future__ import annotations

import hashlib
import re
from typing import TypedDict

ELEMENT_ID_SEPARATOR = "::"


class ParsedElementId(TypedDict):
    """Parsed element id payload."""

    file_path: str
    kind: str
    qualified_name: str
    ordinal: int


_WHITESPACE_RE = re.compile(r"\s+")
_SCOPE_SEPARATOR_RE = re.compile(r"\s*::\s*")
_ANGLE_OPEN_RE = re.compile(r"\s*<\s*")
_ANGLE_CLOSE_RE = re.compile(r"\s*>")
_COMMA_RE = re.compile(r"\s*,\s*")


def normalize_rust_path(path_text: str) -> str:
    """Normalize a Rust path or type into a canonical, whitespace-stable form.

    ``std :: collections :: HashMap < K , V >`` becomes
    ``std::collections::HashMap<K, V>``.
    """
    normalized = _WHITESPACE_RE.sub(" ", path_text.strip())
    normalized = _SCOPE_SEPARATOR_RE.sub("::", normalized)
    normalized = _ANGLE_OPEN_RE.sub("<", normalized)
    normalized = _ANGLE_CLOSE_RE.sub(">", normalized)
    normalized = _COMMA_RE.sub(", ", normalized)
    return normalized.strip()


def join_scope(*segments: str) -> str:
    """Join scope segments with the scope separator, skipping empty ones."""
    return ELEMENT_ID_SEPARATOR.join(segment for segment in segments if segment)


def create_element_id(
    file_path: str,
    kind: str,
    qualified_name: str,
    ordinal: int,
) -> str:
    """Create a stable element id.

    Args:
        file_path: Path relative to the project root (POSIX separators).
        kind: Element kind label (e.g. ``Function``).
        qualified_name: Scope-qualified element name.
        ordinal: 1-based emission index of the element within its file.

    Returns:
        Id in format ``FilePath::Kind::QualifiedName::Ordinal``.
    """
    if ordinal < 1:
        raise ValueError(f"ordinal must be >= 1, got {ordinal}")
    return (
        f"{file_path}{ELEMENT_ID_SEPARATOR}{kind}"
        f"{ELEMENT_ID_SEPARATOR}{qualified_name}{ELEMENT_ID_SEPARATOR}{ordinal}"
    )


def parse_element_id(element_id: str) -> ParsedElementId:
    """Parse an element id into its components.

    The qualified name may itself contain ``::``; the file path never does
    and the ordinal is always the last segment.

    Raises:
        ValueError: If the id does not contain the required components.
    """
    parts = element_id.split(ELEMENT_ID_SEPARATOR)
    if len(parts) < 4 or not parts[-1].isdigit():
        raise ValueError(f"Malformed element id: {element_id}")

    return ParsedElementId(
        file_path=parts[0],
        kind=parts[1],
        qualified_name=ELEMENT_ID_SEPARATOR.join(parts[2:-1]),
        ordinal=int(parts[-1]),
    )


def content_hash(source: bytes) -> str:
    """Return the SHA-256 hex digest of raw file content."""
    return hashlib.sha256(source).hexdigest()
