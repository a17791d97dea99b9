"""
Configuration constants for Rust AST extraction.

Defines the tree-sitter-rust node type strings used for element extraction
and complexity analysis.
"""

from typing import Dict, FrozenSet, Set, Tuple

from extraction.models import ElementKind

# Rust file extensions
RUST_EXTENSIONS: Set[str] = {".rs"}

# Declaration node type -> element kind (closed set; anything else is skipped)
ITEM_KIND_MAP: Dict[str, ElementKind] = {
    "function_item": ElementKind.FUNCTION,
    "function_signature_item": ElementKind.FUNCTION,
    "struct_item": ElementKind.STRUCT,
    "union_item": ElementKind.UNION,
    "enum_item": ElementKind.ENUM,
    "trait_item": ElementKind.TRAIT,
    "impl_item": ElementKind.IMPL,
    "mod_item": ElementKind.MODULE,
    "const_item": ElementKind.CONSTANT,
    "static_item": ElementKind.STATIC,
    "type_item": ElementKind.TYPE_ALIAS,
    "associated_type": ElementKind.TYPE_ALIAS,
    "macro_definition": ElementKind.MACRO,
}

# Kinds whose body opens a new hierarchy scope
SCOPE_KINDS: FrozenSet[ElementKind] = frozenset(
    {ElementKind.MODULE, ElementKind.IMPL, ElementKind.TRAIT}
)

# Containers scanned without opening a scope (extern "C" { ... })
TRANSPARENT_WRAPPERS: Set[str] = {
    "foreign_mod_item",
}

# Attributes and comments that precede an item as siblings
ATTRIBUTE_NODE: str = "attribute_item"
INNER_ATTRIBUTE_NODE: str = "inner_attribute_item"
COMMENT_NODES: Set[str] = {"line_comment", "block_comment"}

# Outer doc comment prefixes (attach to the following item)
OUTER_DOC_PREFIXES: Tuple[str, ...] = ("///", "/**")

# Inner doc comment prefixes (attach to the enclosing module)
INNER_DOC_PREFIXES: Tuple[str, ...] = ("//!", "/*!")

# Prefixes that look like doc comments but are ordinary comments
NON_DOC_PREFIXES: Tuple[str, ...] = ("////", "/***", "/**/")

VISIBILITY_NODE: str = "visibility_modifier"

# Attribute that makes a macro_rules! definition visible outside its crate
MACRO_EXPORT_ATTRIBUTE: str = "macro_export"

# Members counted for the structural complexity of a trait
TRAIT_MEMBER_TYPES: Set[str] = {
    "function_item",
    "function_signature_item",
    "associated_type",
    "const_item",
    "macro_invocation",
}

# Associated items counted for the structural complexity of an impl block
IMPL_MEMBER_TYPES: Set[str] = {
    "function_item",
    "type_item",
    "const_item",
    "macro_invocation",
}

PARAMETER_TYPES: Set[str] = {
    "parameter",
    "self_parameter",
    "variadic_parameter",
}

# --- Complexity -------------------------------------------------------------

IF_NODES: Set[str] = {"if_expression", "if_let_expression"}

LOOP_NODES: Set[str] = {
    "while_expression",
    "while_let_expression",
    "loop_expression",
    "for_expression",
}

MATCH_NODE: str = "match_expression"
MATCH_ARM_NODE: str = "match_arm"
CLOSURE_NODE: str = "closure_expression"
BINARY_NODE: str = "binary_expression"
RETURN_NODE: str = "return_expression"

SHORT_CIRCUIT_OPERATORS: Set[str] = {"&&", "||"}

# Item nodes that may appear inside a function body and are analyzed on their own
NESTED_ITEM_TYPES: Set[str] = set(ITEM_KIND_MAP) | {"use_declaration", "extern_crate_declaration"}

# Halstead operand node types, each counted as one token by source text
OPERAND_TYPES: Set[str] = {
    "identifier",
    "field_identifier",
    "type_identifier",
    "primitive_type",
    "shorthand_field_identifier",
    "self",
    "crate",
    "super",
    "metavariable",
    "integer_literal",
    "float_literal",
    "string_literal",
    "raw_string_literal",
    "char_literal",
    "boolean_literal",
}

# Leaf tokens that are not counted as Halstead operators
IGNORED_OPERATOR_TOKENS: Set[str] = {",", ";", ")", "]", "}"}

# --- Imports ----------------------------------------------------------------

USE_DECLARATION: str = "use_declaration"

# --- Cross-references -------------------------------------------------------

CALL_NODE: str = "call_expression"
MACRO_INVOCATION_NODE: str = "macro_invocation"
GENERIC_FUNCTION_NODE: str = "generic_function"
FIELD_EXPRESSION_NODE: str = "field_expression"

# Callee forms that name a function by path
CALLEE_PATH_TYPES: Set[str] = {"identifier", "scoped_identifier"}

TYPE_REFERENCE_TYPES: Set[str] = {"type_identifier", "scoped_type_identifier"}

# Declarations of generic names (skipped when collecting type usages)
GENERIC_PARAMETER_TYPES: Set[str] = {
    "type_parameter",
    "constrained_type_parameter",
    "optional_type_parameter",
}

# Type names never resolved to an element
IGNORED_TYPE_NAMES: Set[str] = {"Self"}

# File stems that form the root module of their directory
MODULE_ROOT_STEMS: Set[str] = {"lib", "main", "mod"}
CRATE_ROOT: str = "crate"
