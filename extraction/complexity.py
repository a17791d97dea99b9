"""
Complexity metrics for extracted elements.

Function-like elements get a full walk of their body:

- cyclomatic: 1 + ``if`` (including ``else if`` and ``if let``) + loops
  + ``&&``/``||`` + (arms - 1) per ``match``. The ``?`` operator is not a
  branch.
- cognitive: every cyclomatic contributor weighted by ``1 + nesting``, where
  nesting rises inside if/else bodies, loop bodies, match arms and closures.
  An ``else if`` is scored at the level of the ``if`` it continues.
- Halstead: operands are identifier-like nodes and literals, operators are all
  other leaf tokens except separators and closing brackets.

Type declarations get a structural baseline instead (see
``structural_complexity``).
"""

import logging
from collections import Counter
from typing import Optional, Tuple

from tree_sitter import Node

from extraction.config import (
    BINARY_NODE,
    CLOSURE_NODE,
    COMMENT_NODES,
    IF_NODES,
    IGNORED_OPERATOR_TOKENS,
    IMPL_MEMBER_TYPES,
    LOOP_NODES,
    MATCH_ARM_NODE,
    MATCH_NODE,
    NESTED_ITEM_TYPES,
    OPERAND_TYPES,
    PARAMETER_TYPES,
    RETURN_NODE,
    SHORT_CIRCUIT_OPERATORS,
    TRAIT_MEMBER_TYPES,
)
from extraction.models import ComplexityMetrics, ElementKind, HalsteadMetrics

logger = logging.getLogger(__name__)

LET_CHAIN_NODE = "let_chain"


def _same_node(a: Optional[Node], b: Optional[Node]) -> bool:
    if a is None or b is None:
        return False
    return (a.start_byte, a.end_byte, a.type) == (b.start_byte, b.end_byte, b.type)


def _node_text(node: Node, source_bytes: bytes) -> str:
    return source_bytes[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def count_parameters(node: Node) -> int:
    parameters = node.child_by_field_name("parameters")
    if parameters is None:
        return 0
    return sum(1 for child in parameters.named_children if child.type in PARAMETER_TYPES)


def count_code_lines(node: Node, source_bytes: bytes) -> int:
    """Count non-blank lines of a node that are not pure ``//`` comments."""
    count = 0
    for line in _node_text(node, source_bytes).splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("//"):
            count += 1
    return count


class ComplexityCalculator:
    """Single-pass complexity walk over one function body.

    Example:
        >>> metrics = ComplexityCalculator(source_bytes).calculate(fn_node)
        >>> metrics.cyclomatic
        1
    """

    def __init__(self, source_bytes: bytes):
        self.source_bytes = source_bytes
        self.cyclomatic = 1
        self.cognitive = 0
        self.max_nesting = 0
        self.return_count = 0
        self.operators: Counter = Counter()
        self.operands: Counter = Counter()

    def calculate(self, node: Node) -> ComplexityMetrics:
        body = node.child_by_field_name("body")
        if body is not None:
            self._walk(body, 0)
            self._tally_tokens(body)
        return ComplexityMetrics(
            cyclomatic=self.cyclomatic,
            cognitive=self.cognitive,
            halstead=HalsteadMetrics(
                n1=len(self.operators),
                n2=len(self.operands),
                big_n1=sum(self.operators.values()),
                big_n2=sum(self.operands.values()),
            ),
            nesting_depth=self.max_nesting,
            parameter_count=count_parameters(node),
            return_count=self.return_count,
            lines_of_code=count_code_lines(node, self.source_bytes),
        )

    # --- branching --------------------------------------------------------

    def _add_branch(self, nesting: int, count: int = 1) -> None:
        self.cyclomatic += count
        self.cognitive += count * (1 + nesting)

    def _walk_nested(self, node: Node, nesting: int) -> None:
        self.max_nesting = max(self.max_nesting, nesting + 1)
        self._walk(node, nesting + 1)

    def _walk_children(self, node: Node, nesting: int, nested_field: str = "body") -> None:
        nested = node.child_by_field_name(nested_field)
        for child in node.named_children:
            if _same_node(child, nested):
                self._walk_nested(child, nesting)
            else:
                self._walk(child, nesting)

    def _visit_if(self, node: Node, nesting: int) -> None:
        self._add_branch(nesting)
        consequence = node.child_by_field_name("consequence")
        alternative = node.child_by_field_name("alternative")
        for child in node.named_children:
            if _same_node(child, consequence):
                self._walk_nested(child, nesting)
            elif _same_node(child, alternative):
                self._visit_else(child, nesting)
            else:
                # condition / pattern / value
                self._walk(child, nesting)

    def _visit_else(self, node: Node, nesting: int) -> None:
        for child in node.named_children:
            if child.type in IF_NODES:
                self._visit_if(child, nesting)
            elif child.type in COMMENT_NODES:
                continue
            else:
                self._walk_nested(child, nesting)

    def _visit_match(self, node: Node, nesting: int) -> None:
        block = node.child_by_field_name("body")
        arms = []
        if block is not None:
            arms = [child for child in block.named_children if child.type == MATCH_ARM_NODE]
        if len(arms) > 1:
            self._add_branch(nesting, len(arms) - 1)
        value = node.child_by_field_name("value")
        if value is not None:
            self._walk(value, nesting)
        for arm in arms:
            self._walk_nested(arm, nesting)

    def _walk(self, node: Node, nesting: int) -> None:
        node_type = node.type
        if node_type in NESTED_ITEM_TYPES or node_type in COMMENT_NODES:
            return
        if node_type in IF_NODES:
            self._visit_if(node, nesting)
            return
        if node_type in LOOP_NODES:
            self._add_branch(nesting)
            self._walk_children(node, nesting)
            return
        if node_type == MATCH_NODE:
            self._visit_match(node, nesting)
            return
        if node_type == CLOSURE_NODE:
            self._walk_children(node, nesting)
            return
        if node_type == BINARY_NODE:
            operator = node.child_by_field_name("operator")
            if operator is not None and operator.type in SHORT_CIRCUIT_OPERATORS:
                self._add_branch(nesting)
        elif node_type == LET_CHAIN_NODE:
            for child in node.children:
                if child.type in SHORT_CIRCUIT_OPERATORS:
                    self._add_branch(nesting)
        elif node_type == RETURN_NODE:
            self.return_count += 1

        for child in node.named_children:
            self._walk(child, nesting)

    # --- Halstead ---------------------------------------------------------

    def _tally_tokens(self, node: Node) -> None:
        stack = [node]
        while stack:
            current = stack.pop()
            node_type = current.type
            if node_type in COMMENT_NODES or node_type in NESTED_ITEM_TYPES:
                continue
            if node_type in OPERAND_TYPES:
                self.operands[_node_text(current, self.source_bytes)] += 1
                continue
            if current.child_count == 0:
                token = _node_text(current, self.source_bytes)
                if token and token not in IGNORED_OPERATOR_TOKENS:
                    self.operators[token] += 1
                continue
            stack.extend(reversed(current.children))


def _count_named(body: Optional[Node], types) -> int:
    if body is None:
        return 0
    return sum(1 for child in body.named_children if child.type in types)


def structural_complexity(node: Node, kind: ElementKind) -> Optional[int]:
    """Baseline complexity of a type declaration, or None for kinds without one.

    struct/union: 1; enum: number of variants; trait: number of members;
    impl: number of associated items. Never below 1.
    """
    if kind in (ElementKind.STRUCT, ElementKind.UNION):
        return 1
    body = node.child_by_field_name("body")
    if kind is ElementKind.ENUM:
        return max(1, _count_named(body, {"enum_variant"}))
    if kind is ElementKind.TRAIT:
        return max(1, _count_named(body, TRAIT_MEMBER_TYPES))
    if kind is ElementKind.IMPL:
        return max(1, _count_named(body, IMPL_MEMBER_TYPES))
    return None


def compute_complexity(
    node: Node,
    kind: ElementKind,
    source_bytes: bytes,
) -> Tuple[Optional[int], Optional[ComplexityMetrics]]:
    """Return ``(complexity, metrics)`` for an element node.

    Functions yield their cyclomatic count and full metrics; type
    declarations yield a structural baseline with no detailed metrics; all
    other kinds yield ``(None, None)``.
    """
    if kind is ElementKind.FUNCTION:
        metrics = ComplexityCalculator(source_bytes).calculate(node)
        logger.debug(
            "Complexity at line %d: cyclomatic=%d cognitive=%d",
            node.start_point.row + 1,
            metrics.cyclomatic,
            metrics.cognitive,
        )
        return metrics.cyclomatic, metrics
    return structural_complexity(node, kind), None
