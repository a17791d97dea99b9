"""Tests for use-declaration import extraction."""

from pathlib import Path

import pytest

from extraction.imports import extract_imports
from extraction.models import ImportRecord
from extraction.parser import parse_bytes

FIXTURES = Path(__file__).parent / "fixtures"


def _imports(source: bytes):
    return extract_imports(parse_bytes(source), source)


def test_simple_path():
    records = _imports(b"use std::collections::HashMap;\n")
    assert records == (
        ImportRecord(module_path="std::collections", imported_names=("HashMap",), line=1),
    )


def test_single_segment():
    (record,) = _imports(b"use serde;\n")
    assert record.module_path == ""
    assert record.imported_names == ("serde",)


def test_group_expands_per_member():
    records = _imports(b"use std::{fmt, io::Write};\n")
    assert [(r.module_path, r.imported_names) for r in records] == [
        ("std", ("fmt",)),
        ("std::io", ("Write",)),
    ]


def test_self_in_group_names_the_group_path():
    records = _imports(b"use std::io::{self, Read};\n")
    assert [(r.module_path, r.imported_names) for r in records] == [
        ("std", ("io",)),
        ("std::io", ("Read",)),
    ]


def test_alias():
    (record,) = _imports(b"use std::fmt::Result as FmtResult;\n")
    assert record.module_path == "std::fmt"
    assert record.imported_names == ("Result",)
    assert record.alias == "FmtResult"


def test_glob():
    (record,) = _imports(b"use crate::prelude::*;\n")
    assert record.is_glob
    assert record.module_path == "crate::prelude"
    assert record.imported_names == ()


def test_nested_groups():
    records = _imports(b"use a::{b::{c, d as e}, f::*};\n")
    assert [(r.module_path, r.imported_names, r.alias, r.is_glob) for r in records] == [
        ("a::b", ("c",), None, False),
        ("a::b", ("d",), "e", False),
        ("a::f", (), None, True),
    ]


def test_visibility_marks_reexport():
    records = _imports(b"pub use inner::Thing;\npub(crate) use inner::Other;\nuse inner::Private;\n")
    assert [r.is_reexport for r in records] == [True, True, False]


def test_line_numbers_are_one_based():
    records = _imports(b"// header\n\nuse a::b;\nuse c::{d,\n    e};\n")
    assert [r.line for r in records] == [3, 4, 4]


def test_relative_prefixes_are_kept():
    records = _imports(b"use super::connect;\nuse self::inner::run;\nuse crate::Config;\n")
    assert [r.module_path for r in records] == ["super", "self::inner", "crate"]


def test_nested_use_declarations_are_ignored():
    source = b"""
use top::Level;

mod inner {
    use hidden::Thing;
}

fn body() {
    use also::Hidden;
}
"""
    records = _imports(source)
    assert len(records) == 1
    assert records[0].imported_names == ("Level",)


def test_sample_crate_lib_imports():
    source = (FIXTURES / "sample_crate" / "src" / "lib.rs").read_bytes()
    records = _imports(source)
    assert records == (
        ImportRecord(module_path="std::collections", imported_names=("HashMap",), line=3),
        ImportRecord(module_path="std", imported_names=("io",), line=4),
        ImportRecord(module_path="std::io", imported_names=("Read",), alias="IoRead", line=4),
        ImportRecord(module_path="std::io", imported_names=("Write",), line=4),
        ImportRecord(module_path="crate::shapes", is_glob=True, is_reexport=True, line=5),
    )


def test_glob_record_rejects_names():
    with pytest.raises(ValueError):
        ImportRecord(module_path="a", imported_names=("b",), is_glob=True)
