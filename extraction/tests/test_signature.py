"""Tests for declaration signature rendering."""

from extraction.parser import parse_bytes
from extraction.signature import render_signature


def _first_item_signature(source: bytes) -> str:
    tree = parse_bytes(source)
    node = tree.root_node.named_children[0]
    return render_signature(node, source)


def test_function_body_is_dropped_and_whitespace_collapsed() -> None:
    source = b"pub fn add(a: i32,\n           b: i32) -> i32 {\n    a + b\n}\n"
    assert _first_item_signature(source) == "pub fn add(a: i32, b: i32) -> i32"


def test_where_clause_is_kept() -> None:
    source = b"fn show<T>(value: T) -> String\nwhere\n    T: Display,\n{\n    value.to_string()\n}\n"
    assert _first_item_signature(source) == "fn show<T>(value: T) -> String where T: Display,"


def test_struct_variants() -> None:
    assert _first_item_signature(b"pub struct Point<T> {\n    x: T,\n}\n") == "pub struct Point<T>"
    assert _first_item_signature(b"pub struct Pair(pub u8, pub u8);") == "pub struct Pair(pub u8, pub u8)"
    assert _first_item_signature(b"struct Unit;") == "struct Unit"


def test_const_and_static_drop_value() -> None:
    assert _first_item_signature(b"pub const MAX: u32 = 3;") == "pub const MAX: u32"
    assert _first_item_signature(b"static mut COUNT: usize = 0;") == "static mut COUNT: usize"


def test_type_alias_keeps_target() -> None:
    assert _first_item_signature(b"pub type Map = HashMap<String, u32>;") == "pub type Map = HashMap<String, u32>"


def test_trait_impl_and_module_headers() -> None:
    assert _first_item_signature(b"pub trait Shape: Debug {\n    fn area(&self) -> f64;\n}\n") == (
        "pub trait Shape: Debug"
    )
    assert _first_item_signature(b"impl<T: Clone> From<T> for Wrapper<T> {\n}\n") == (
        "impl<T: Clone> From<T> for Wrapper<T>"
    )
    assert _first_item_signature(b"pub mod net {\n    pub fn f() {}\n}\n") == "pub mod net"
    assert _first_item_signature(b"mod outer;") == "mod outer"


def test_enum_and_macro() -> None:
    assert _first_item_signature(b"pub enum Color { Red, Green }") == "pub enum Color"
    assert _first_item_signature(b"macro_rules! square {\n    ($x:expr) => { $x * $x };\n}\n") == (
        "macro_rules! square"
    )


def test_rendering_is_deterministic() -> None:
    source = b"pub async fn fetch(url: &str) -> Result<String, Error> { todo!() }"
    assert _first_item_signature(source) == _first_item_signature(source)


def test_comments_in_header_are_dropped() -> None:
    assert _first_item_signature(b"pub fn g() // note\n{}\n") == "pub fn g()"
    assert _first_item_signature(b"pub fn h(a: u8, /* first */ b: u8) -> u8 /* sum */ { a + b }") == (
        "pub fn h(a: u8, b: u8) -> u8"
    )
    assert _first_item_signature(b"pub struct S // unit\n;\n") == "pub struct S"
