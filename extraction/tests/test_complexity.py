"""Tests for complexity metrics."""

import unittest

from extraction.complexity import ComplexityCalculator, compute_complexity, structural_complexity
from extraction.models import ComplexityLevel, ComplexityMetrics, ElementKind
from extraction.parser import parse_bytes


def _function_metrics(source: bytes) -> ComplexityMetrics:
    tree = parse_bytes(source)
    node = [c for c in tree.root_node.named_children if c.type == "function_item"][0]
    return ComplexityCalculator(source).calculate(node)


def _structural(source: bytes, kind: ElementKind):
    tree = parse_bytes(source)
    return structural_complexity(tree.root_node.named_children[0], kind)


class TestCyclomatic(unittest.TestCase):
    def test_empty_body_floor(self):
        metrics = _function_metrics(b"fn main() {}")
        self.assertEqual(metrics.cyclomatic, 1)
        self.assertEqual(metrics.cognitive, 0)
        self.assertEqual(metrics.nesting_depth, 0)

    def test_one_more_if_adds_exactly_one(self):
        base = _function_metrics(b"fn f(a: bool) { if a { g(); } }")
        more = _function_metrics(b"fn f(a: bool, b: bool) { if a { g(); } if b { h(); } }")
        self.assertEqual(base.cyclomatic, 2)
        self.assertEqual(more.cyclomatic, base.cyclomatic + 1)

    def test_else_if_and_if_let(self):
        metrics = _function_metrics(
            b"fn f(x: Option<i32>) { if let Some(v) = x { g(v); } else if x.is_none() { h(); } else { i(); } }"
        )
        self.assertEqual(metrics.cyclomatic, 3)

    def test_short_circuit_operators(self):
        metrics = _function_metrics(b"fn f(a: bool, b: bool, c: bool) -> bool { a && b || c }")
        self.assertEqual(metrics.cyclomatic, 3)

    def test_other_binary_operators_do_not_count(self):
        metrics = _function_metrics(b"fn f(a: i32, b: i32) -> i32 { a + b * 2 - (a & b) }")
        self.assertEqual(metrics.cyclomatic, 1)

    def test_match_arms_beyond_first(self):
        metrics = _function_metrics(b"fn f(x: u8) -> u8 { match x { 0 => 1, 1 => 2, _ => 3 } }")
        self.assertEqual(metrics.cyclomatic, 3)

    def test_loops(self):
        metrics = _function_metrics(
            b"fn f(n: u32) { for i in 0..n { while i > 0 { loop { break; } } } }"
        )
        self.assertEqual(metrics.cyclomatic, 4)
        self.assertEqual(metrics.nesting_depth, 3)

    def test_question_mark_is_not_a_branch(self):
        metrics = _function_metrics(b"fn f() -> Result<(), E> { g()?; h()?; Ok(()) }")
        self.assertEqual(metrics.cyclomatic, 1)

    def test_nested_items_are_skipped(self):
        metrics = _function_metrics(b"fn outer() { fn inner(x: bool) { if x { g(); } } inner(true); }")
        self.assertEqual(metrics.cyclomatic, 1)


class TestCognitive(unittest.TestCase):
    def test_nesting_weights(self):
        flat = _function_metrics(b"fn f(a: bool, b: bool) { if a { g(); } if b { h(); } }")
        nested = _function_metrics(b"fn f(a: bool, b: bool) { if a { if b { h(); } } }")
        self.assertEqual(flat.cyclomatic, nested.cyclomatic)
        self.assertEqual(flat.cognitive, 2)
        self.assertEqual(nested.cognitive, 3)

    def test_else_if_stays_at_outer_level(self):
        metrics = _function_metrics(b"fn f(a: bool, b: bool) { if a { g(); } else if b { h(); } else { i(); } }")
        self.assertEqual(metrics.cognitive, 2)
        self.assertEqual(metrics.nesting_depth, 1)

    def test_loop_nesting(self):
        metrics = _function_metrics(
            b"fn f(n: u32) { for i in 0..n { while i > 0 { loop { break; } } } }"
        )
        self.assertEqual(metrics.cognitive, 1 + 2 + 3)

    def test_condition_scored_at_enclosing_level(self):
        metrics = _function_metrics(b"fn f(a: bool, b: bool) { if a && b { g(); } }")
        self.assertEqual(metrics.cyclomatic, 3)
        self.assertEqual(metrics.cognitive, 2)

    def test_closure_body_is_nested(self):
        metrics = _function_metrics(b"fn f() { let c = |x: i32| if x > 0 { 1 } else { 0 }; c(1); }")
        self.assertEqual(metrics.cyclomatic, 2)
        self.assertEqual(metrics.cognitive, 2)


class TestCounts(unittest.TestCase):
    def test_parameters_and_returns(self):
        source = b"""
struct S;
impl S {
    fn f(&self, a: i32, b: i32) -> i32 {
        if a > b {
            return a;
        }
        return b;
    }
}
"""
        tree = parse_bytes(source)
        impl_node = tree.root_node.named_children[1]
        fn_node = impl_node.child_by_field_name("body").named_children[0]
        metrics = ComplexityCalculator(source).calculate(fn_node)
        self.assertEqual(metrics.parameter_count, 3)
        self.assertEqual(metrics.return_count, 2)
        self.assertEqual(metrics.lines_of_code, 6)

    def test_halstead_classification(self):
        metrics = _function_metrics(b"fn f() { let x = 1; }")
        halstead = metrics.halstead
        # operators: { let =   operands: x 1
        self.assertEqual((halstead.n1, halstead.big_n1), (3, 3))
        self.assertEqual((halstead.n2, halstead.big_n2), (2, 2))
        self.assertEqual(halstead.vocabulary, 5)
        self.assertEqual(halstead.length, 5)
        self.assertGreater(halstead.volume, 0.0)

    def test_halstead_repeated_operands(self):
        metrics = _function_metrics(b"fn f(a: i32) -> i32 { a + a + a }")
        self.assertEqual(metrics.halstead.n2, 1)
        self.assertEqual(metrics.halstead.big_n2, 3)

    def test_signature_without_body(self):
        source = b"trait T { fn area(&self, scale: f64) -> f64; }"
        tree = parse_bytes(source)
        sig = tree.root_node.named_children[0].child_by_field_name("body").named_children[0]
        complexity, metrics = compute_complexity(sig, ElementKind.FUNCTION, source)
        self.assertEqual(complexity, 1)
        self.assertEqual(metrics.parameter_count, 2)
        self.assertEqual(metrics.halstead.length, 0)


class TestStructural(unittest.TestCase):
    def test_struct_and_union(self):
        self.assertEqual(_structural(b"struct S { a: u8, b: u8 }", ElementKind.STRUCT), 1)
        self.assertEqual(_structural(b"union U { a: u8 }", ElementKind.UNION), 1)

    def test_enum_variant_count(self):
        self.assertEqual(_structural(b"enum E { A, B, C(u8), D { x: u8 } }", ElementKind.ENUM), 4)
        self.assertEqual(_structural(b"enum Never {}", ElementKind.ENUM), 1)

    def test_trait_member_count(self):
        source = b"trait T { type A; const N: usize; fn f(&self); fn g(&self) {} }"
        self.assertEqual(_structural(source, ElementKind.TRAIT), 4)
        self.assertEqual(_structural(b"trait Marker {}", ElementKind.TRAIT), 1)

    def test_impl_item_count(self):
        self.assertEqual(_structural(b"impl S { fn a() {} fn b() {} }", ElementKind.IMPL), 2)

    def test_kinds_without_complexity(self):
        self.assertIsNone(_structural(b"mod m {}", ElementKind.MODULE))
        self.assertIsNone(_structural(b"const C: u8 = 1;", ElementKind.CONSTANT))
        self.assertIsNone(_structural(b"type A = u8;", ElementKind.TYPE_ALIAS))


class TestComplexityMetricsHelpers(unittest.TestCase):
    def test_overall_score_and_level(self):
        self.assertEqual(ComplexityMetrics().overall_score(), 2)
        self.assertEqual(ComplexityMetrics().complexity_level(), ComplexityLevel.LOW)
        busy = ComplexityMetrics(cyclomatic=8, cognitive=10, nesting_depth=3, return_count=2)
        self.assertEqual(busy.overall_score(), 31)
        self.assertEqual(busy.complexity_level(), ComplexityLevel.HIGH)
        self.assertEqual(
            ComplexityMetrics(cyclomatic=30).complexity_level(),
            ComplexityLevel.VERY_HIGH,
        )


if __name__ == "__main__":
    unittest.main()
