"""
Integration tests for extractor.py

Tests the high-level orchestration functions.
"""

import json
import os
import tempfile
import threading
import unittest
from pathlib import Path
from unittest import mock

from core.errors import (
    ExtractionCancelled,
    FileReadError,
    InvalidProjectRoot,
    NoFilesDiscovered,
    NoFilesParsed,
    ParseError,
)
from core.extractor_config import ExtractorConfig
from extraction import extractor
from extraction.extractor import extract_file, extract_project, process_file, resolve_max_workers
from extraction.models import ElementKind, FileFailure, FileModel

FIXTURES = Path(__file__).parent / "fixtures"
SAMPLE_CRATE = FIXTURES / "sample_crate"
PRIVATE = ExtractorConfig(include_private=True)


def _write(root: Path, relative: str, content) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


class _TempCrate(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        self.root = Path(self._tmpdir.name)


class TestExtractFile(_TempCrate):
    """Test extracting from a single file."""

    def test_minimal_function(self):
        path = _write(self.root, "src/main.rs", "fn main() {}\n")
        model = extract_file(str(path), PRIVATE, root=str(self.root))

        self.assertEqual(model.relative_path, "src/main.rs")
        self.assertEqual(len(model.elements), 1)
        main = model.elements[0]
        self.assertEqual(main.kind, ElementKind.FUNCTION)
        self.assertEqual(main.name, "main")
        self.assertEqual(main.complexity, 1)
        self.assertEqual(main.hierarchy.nesting_level, 0)
        self.assertEqual(main.qualified_name, "main")
        self.assertEqual(main.id, "src/main.rs::Function::main::1")

    def test_enum_with_four_variants(self):
        path = _write(self.root, "src/lib.rs", "pub enum Suit { Clubs, Diamonds, Hearts, Spades }\n")
        model = extract_file(str(path), root=str(self.root))
        (suit,) = model.elements
        self.assertEqual(suit.kind, ElementKind.ENUM)
        self.assertEqual(suit.complexity, 4)

    def test_default_root_is_file_directory(self):
        model = extract_file(str(FIXTURES / "simple_function.rs"), PRIVATE)
        self.assertEqual(model.relative_path, "simple_function.rs")
        self.assertEqual(model.elements[0].id, "simple_function.rs::Function::main::1")
        self.assertEqual(len(model.content_hash), 64)

    def test_errors_are_raised(self):
        broken = _write(self.root, "src/broken.rs", "fn broken( {\n")
        with self.assertRaises(ParseError):
            extract_file(str(broken), root=str(self.root))
        with self.assertRaises(FileReadError):
            extract_file(str(self.root / "src" / "missing.rs"), root=str(self.root))

    def test_process_file_converts_errors(self):
        big = _write(self.root, "src/big.rs", "pub fn f() {}\n" * 20)
        result = process_file(str(big), str(self.root), ExtractorConfig(max_file_size=64))
        self.assertIsInstance(result, FileFailure)
        self.assertEqual(result.path, "src/big.rs")
        self.assertEqual(result.kind, "max_file_size_exceeded")
        self.assertTrue(result.message.startswith("File too large: "))
        self.assertIn("big.rs (280 bytes, limit: 64 bytes)", result.message)

    def test_process_file_returns_model(self):
        ok = _write(self.root, "src/ok.rs", "pub fn f() {}\n")
        result = process_file(str(ok), str(self.root), ExtractorConfig())
        self.assertIsInstance(result, FileModel)


class TestWorkerCount(unittest.TestCase):
    def test_configured_value_wins(self):
        self.assertEqual(resolve_max_workers(ExtractorConfig(max_workers=3)), 3)

    def test_default_is_capped(self):
        workers = resolve_max_workers(ExtractorConfig())
        self.assertGreaterEqual(workers, 1)
        self.assertLessEqual(workers, 8)

    def test_capped_by_file_count(self):
        self.assertEqual(resolve_max_workers(ExtractorConfig(max_workers=6), file_count=2), 2)
        self.assertEqual(resolve_max_workers(ExtractorConfig(max_workers=6), file_count=0), 1)


class TestExtractProject(_TempCrate):
    """Test whole-project runs on generated crates."""

    def test_partial_failure_accounting(self):
        for i in range(7):
            _write(self.root, f"src/ok_{i}.rs", f"pub fn f{i}() {{}}\n")
        for i in range(3):
            _write(self.root, f"src/bad_{i}.rs", "pub fn broken( {\n")

        model = extract_project(str(self.root))
        report = model.failures
        self.assertEqual(report.successful_count, 7)
        self.assertEqual(report.failed_count, 3)
        self.assertEqual(report.total_count, 10)
        self.assertEqual(
            [failure.path for failure in report.failures],
            ["src/bad_0.rs", "src/bad_1.rs", "src/bad_2.rs"],
        )
        self.assertTrue(all(f.kind == "parse_error" for f in report.failures))
        self.assertEqual(len(report.error_messages), 3)

    def test_oversized_file_is_reported(self):
        _write(self.root, "src/small.rs", "pub fn a() {}\n")
        _write(self.root, "src/huge.rs", "pub fn b() {}\n" * 100)

        model = extract_project(str(self.root), ExtractorConfig(max_file_size=256))
        self.assertEqual([f.relative_path for f in model.files], ["src/small.rs"])
        (failure,) = model.failures.failures
        self.assertEqual(failure.path, "src/huge.rs")
        self.assertEqual(failure.kind, "max_file_size_exceeded")

    def test_non_utf8_file_is_io_error(self):
        _write(self.root, "src/ok.rs", "pub fn a() {}\n")
        _write(self.root, "src/latin1.rs", b"// caf\xe9\npub fn b() {}\n")
        model = extract_project(str(self.root))
        (failure,) = model.failures.failures
        self.assertEqual(failure.kind, "io_error")

    def test_all_files_broken(self):
        _write(self.root, "src/a.rs", "fn a( {\n")
        _write(self.root, "src/b.rs", "fn b( {\n")
        with self.assertRaises(NoFilesParsed) as ctx:
            extract_project(str(self.root))
        self.assertEqual(str(ctx.exception), "Failed to process 2 out of 2 files")
        self.assertEqual(ctx.exception.report.failed_count, 2)

    def test_no_files_discovered(self):
        _write(self.root, "tests/only_tests.rs", "fn t() {}\n")
        with self.assertRaises(NoFilesDiscovered):
            extract_project(str(self.root))

    def test_invalid_root(self):
        with self.assertRaises(InvalidProjectRoot):
            extract_project(str(self.root / "does-not-exist"))
        file_root = _write(self.root, "file.rs", "fn a() {}\n")
        with self.assertRaises(InvalidProjectRoot):
            extract_project(str(file_root))

    def test_cancel_before_start(self):
        _write(self.root, "src/lib.rs", "pub fn a() {}\n")
        event = threading.Event()
        event.set()
        with self.assertRaises(ExtractionCancelled) as ctx:
            extract_project(str(self.root), cancel_event=event)
        self.assertEqual(ctx.exception.completed, 0)

    def test_cancel_mid_run(self):
        for i in range(6):
            _write(self.root, f"src/m{i}.rs", f"pub fn f{i}() {{}}\n")
        event = threading.Event()
        calls = []

        def process_then_cancel(file_path, root, config):
            result = process_file(file_path, root, config)
            calls.append(file_path)
            if len(calls) == 2:
                event.set()
            return result

        with mock.patch.object(extractor, "process_file", side_effect=process_then_cancel):
            with self.assertRaises(ExtractionCancelled) as ctx:
                extract_project(str(self.root), ExtractorConfig(max_workers=1), cancel_event=event)

        self.assertGreater(ctx.exception.completed, 0)
        self.assertLess(ctx.exception.completed, 6)
        self.assertLess(len(calls), 6)

    def test_missing_manifest_uses_directory_name(self):
        _write(self.root, "src/lib.rs", "pub fn a() {}\n")
        model = extract_project(str(self.root))
        self.assertEqual(model.project.name, os.path.basename(self._tmpdir.name))
        self.assertEqual(model.project.version, "0.1.0")

    def test_single_worker(self):
        for i in range(4):
            _write(self.root, f"src/m{i}.rs", f"pub fn f{i}() {{}}\n")
        model = extract_project(str(self.root), ExtractorConfig(max_workers=1))
        self.assertEqual(model.failures.successful_count, 4)


class TestSampleCrate(unittest.TestCase):
    """End-to-end run over the sample crate fixture."""

    @classmethod
    def setUpClass(cls):
        cls.model = extract_project(str(SAMPLE_CRATE))

    def test_files_are_sorted_and_tests_excluded(self):
        self.assertEqual(
            [f.relative_path for f in self.model.files],
            ["src/lib.rs", "src/net/mod.rs", "src/net/tcp.rs"],
        )
        self.assertEqual([f.path for f in self.model.failures.failures], ["src/broken.rs"])
        self.assertEqual(self.model.failures.total_count, 4)

    def test_project_info(self):
        project = self.model.project
        self.assertEqual(project.name, "sample_crate")
        self.assertEqual(project.version, "0.3.1")
        self.assertEqual(project.edition, "2021")

    def test_dependencies_only_when_requested(self):
        self.assertEqual(self.model.dependencies.direct, ())
        model = extract_project(str(SAMPLE_CRATE), ExtractorConfig(parse_dependencies=True))
        self.assertEqual(model.dependencies.direct, ("regex", "serde"))
        self.assertEqual(model.dependencies.dev_dependencies, ("tempfile",))
        self.assertEqual(model.dependencies.build_dependencies, ("cc",))

    def test_ids_are_unique(self):
        ids = [element.id for element in self.model.iter_elements()]
        self.assertEqual(len(ids), len(set(ids)))

    def test_hierarchy_is_a_forest(self):
        for file_model in self.model.files:
            by_id = {element.id: element for element in file_model.elements}
            for element in file_model.elements:
                parent_id = element.hierarchy.parent_id
                if parent_id is None:
                    self.assertEqual(element.hierarchy.nesting_level, 0)
                    continue
                parent = by_id[parent_id]
                self.assertIn(element.id, parent.hierarchy.children_ids)
                self.assertEqual(
                    element.hierarchy.nesting_level,
                    parent.hierarchy.nesting_level + 1,
                )
                for child_id in element.hierarchy.children_ids:
                    self.assertEqual(by_id[child_id].hierarchy.parent_id, element.id)

    def test_element_lookup(self):
        tcp = self.model.get_file("src/net/tcp.rs")
        self.assertIsNotNone(tcp)
        open_fn = [e for e in tcp.elements if e.name == "open"][0]
        self.assertEqual(open_fn.complexity, 3)
        self.assertIs(self.model.find_element(open_fn.id), open_fn)
        self.assertEqual(tcp.imports[0].module_path, "super")

        net = self.model.get_file("src/net/mod.rs")
        connect = [e for e in net.elements if e.name == "connect"][0]
        self.assertEqual(connect.complexity, 4)
        self.assertEqual(connect.complexity_metrics.cognitive, 5)

    def test_project_metrics_are_file_sums(self):
        metrics = self.model.metrics
        files = self.model.files
        self.assertEqual(metrics.total_files, 3)
        self.assertEqual(metrics.total_lines, sum(f.metrics.total_lines for f in files))
        self.assertEqual(metrics.lines_of_code, sum(f.metrics.lines_of_code for f in files))
        self.assertEqual(metrics.total_elements, sum(len(f.elements) for f in files))
        self.assertEqual(
            metrics.complexity_total,
            sum(f.metrics.complexity_total for f in files),
        )

    def test_kind_counts_are_read_only(self):
        with self.assertRaises(TypeError):
            self.model.metrics.kind_counts["function"] = 999
        with self.assertRaises(AttributeError):
            self.model.files[0].metrics.kind_counts.clear()
        self.assertEqual(
            self.model.metrics.count(ElementKind.FUNCTION),
            sum(f.metrics.count(ElementKind.FUNCTION) for f in self.model.files),
        )
        self.assertIsInstance(self.model.to_dict()["metrics"]["kind_counts"], dict)

    def test_run_is_deterministic(self):
        again = extract_project(str(SAMPLE_CRATE), ExtractorConfig(max_workers=1))
        first = self.model.to_dict()
        second = again.to_dict()
        for payload in (first, second):
            payload.pop("extracted_at")
            payload.pop("run_id")
        self.assertEqual(first, second)
        self.assertNotEqual(self.model.run_id, "-")

    def test_model_is_json_serializable(self):
        payload = json.loads(json.dumps(self.model.to_dict()))
        self.assertEqual(payload["project"]["name"], "sample_crate")
        first_element = payload["files"][0]["elements"][0]
        self.assertEqual(first_element["kind"], "constant")
        self.assertEqual(first_element["id"], "src/lib.rs::Constant::MAX_RETRIES::1")


if __name__ == "__main__":
    unittest.main()
