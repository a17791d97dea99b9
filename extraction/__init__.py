"""
Layer 1: Extraction Engine

Tree-sitter-based Rust source parser and declaration extractor.
Extracts functions, types, traits, impl blocks, modules and macros with their
doc comments, visibility, hierarchy and complexity.
"""

from extraction.models import (
    CrossReference,
    Element,
    ElementKind,
    ElementNamespace,
    FileModel,
    ImportRecord,
    ProjectModel,
    ReferenceType,
    Visibility,
)
from extraction.parser import create_parser, parse_file, parse_bytes, count_error_nodes
from extraction.discovery import FileDiscoverer, discover_rust_files
from extraction.traversal import extract_elements_from_tree
from extraction.imports import extract_imports
from extraction.references import CrossReferenceResolver
from extraction.extractor import extract_file, extract_project

__all__ = [
    # Data models
    "CrossReference",
    "Element",
    "ElementKind",
    "ElementNamespace",
    "FileModel",
    "ImportRecord",
    "ProjectModel",
    "ReferenceType",
    "Visibility",
    # Low-level parsing
    "create_parser",
    "parse_file",
    "parse_bytes",
    "count_error_nodes",
    # Mid-level extraction
    "FileDiscoverer",
    "discover_rust_files",
    "extract_elements_from_tree",
    "extract_imports",
    "CrossReferenceResolver",
    # High-level orchestration
    "extract_file",
    "extract_project",
]
