"""
High-level orchestrator for Rust element extraction.

This module provides the main entry points for extracting elements from
single files or entire crates.
"""

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Union

from core.element_id import content_hash
from core.errors import ExtractionCancelled, FileError, InvalidProjectRoot, NoFilesDiscovered, NoFilesParsed
from core.extractor_config import ExtractorConfig
from core.structured_logging import phase_scope, run_scope, submit_with_context
from extraction.aggregator import aggregate, build_partial_failure, compute_file_metrics
from extraction.cargo_manifest import load_cargo_manifest, read_dependencies, read_project_info
from extraction.discovery import discover_rust_files, to_relative_posix
from extraction.imports import extract_imports
from extraction.models import DependencyInfo, FileFailure, FileModel, ProjectModel
from extraction.parser import ParsedFile, parse_file
from extraction.references import resolve_single_file
from extraction.traversal import extract_elements_and_references

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


def resolve_max_workers(config: ExtractorConfig, file_count: Optional[int] = None) -> int:
    """Worker pool size: the configured value, else the CPU count capped at 8."""
    workers = config.max_workers or min(os.cpu_count() or 4, DEFAULT_MAX_WORKERS)
    if file_count is not None:
        workers = min(workers, max(1, file_count))
    return workers


def build_file_model(parsed: ParsedFile, relative_path: str, config: ExtractorConfig) -> FileModel:
    """Run the per-file stages (visit, hierarchy, complexity, imports, references, metrics).

    References are resolved against the file's own elements here; the
    aggregator resolves them again across the whole project.
    """
    elements, references = extract_elements_and_references(
        tree=parsed.tree,
        source_bytes=parsed.source_bytes,
        file_path=relative_path,
        config=config,
    )
    imports = extract_imports(parsed.tree, parsed.source_bytes)
    file_model = FileModel(
        path=os.path.abspath(parsed.path),
        relative_path=relative_path,
        content_hash=content_hash(parsed.source_bytes),
        elements=elements,
        imports=imports,
        metrics=compute_file_metrics(parsed.text, elements),
        cross_references=references,
    )
    return resolve_single_file(file_model)


def extract_file(
    file_path: str,
    config: Optional[ExtractorConfig] = None,
    root: Optional[str] = None,
) -> FileModel:
    """Extract all elements from a single Rust source file.

    Args:
        file_path: Absolute or relative path to the .rs file.
        config: Extraction settings; defaults when omitted.
        root: Project root used for the relative path in ids. If None, uses
            the file's parent directory.

    Returns:
        The file model.

    Raises:
        MaxFileSizeExceeded: If the file is larger than ``max_file_size``.
        FileReadError: If the file cannot be read or decoded.
        ParseError: If the file contains syntax errors.

    Example:
        >>> model = extract_file("src/lib.rs", root="/path/to/crate")
        >>> for element in model.elements:
        ...     print(element.id)
    """
    config = config or ExtractorConfig()
    file_path = os.path.abspath(file_path)
    resolved_root = os.path.abspath(root) if root is not None else os.path.dirname(file_path)
    relative_path = to_relative_posix(file_path, resolved_root)

    parsed = parse_file(file_path, config.max_file_size)
    file_model = build_file_model(parsed, relative_path, config)
    logger.info("Extracted %d elements from %s", len(file_model.elements), relative_path)
    return file_model


def process_file(file_path: str, root: str, config: ExtractorConfig) -> Union[FileModel, FileFailure]:
    """Extract one file, converting any failure into a ``FileFailure`` record."""
    relative_path = to_relative_posix(file_path, root)
    try:
        return extract_file(file_path, config=config, root=root)
    except FileError as e:
        logger.warning("Skipping %s: %s", relative_path, e.describe())
        return FileFailure(path=relative_path, kind=e.kind, message=e.describe())
    except Exception as e:
        logger.error("Unexpected error processing %s: %s", relative_path, e, exc_info=True)
        return FileFailure(
            path=relative_path,
            kind="internal_error",
            message=f"Unexpected error processing {relative_path}: {e}",
        )


def _cancel_pending(futures: Dict[Future, str]) -> None:
    for future in futures:
        future.cancel()


def extract_project(
    root: str,
    config: Optional[ExtractorConfig] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ProjectModel:
    """Extract every matching Rust file under ``root`` into a project model.

    Files are processed by a bounded thread pool; a failing file is recorded
    in the model's failure report and never aborts the run.

    Args:
        root: Project root directory.
        config: Extraction settings; defaults when omitted.
        cancel_event: Optional event; once set, no further files are started
            and the run raises ``ExtractionCancelled``.

    Returns:
        The aggregated project model.

    Raises:
        InvalidProjectRoot: If ``root`` is not a directory.
        NoFilesDiscovered: If no file matches the filters.
        NoFilesParsed: If every discovered file failed.
        ExtractionCancelled: If ``cancel_event`` was set during the run.

    Example:
        >>> model = extract_project("/path/to/crate")
        >>> print(model.failures.success_rate)
    """
    config = config or ExtractorConfig()
    root = os.path.abspath(root)
    if not os.path.isdir(root):
        raise InvalidProjectRoot(root)

    with run_scope() as run_id:
        logger.info("Starting extraction of %s", root)

        with phase_scope("discover"):
            file_paths = discover_rust_files(root, config)
            if not file_paths:
                raise NoFilesDiscovered(root)
            manifest = load_cargo_manifest(root)
            project = read_project_info(root, manifest)
            dependencies = (
                read_dependencies(root, manifest) if config.parse_dependencies else DependencyInfo()
            )

        file_models: List[FileModel] = []
        failures: List[FileFailure] = []
        workers = resolve_max_workers(config, len(file_paths))

        with phase_scope("extract"):
            logger.info("Processing %d files with %d workers", len(file_paths), workers)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rsextract") as executor:
                futures: Dict[Future, str] = {}
                for path in file_paths:
                    if cancel_event is not None and cancel_event.is_set():
                        break
                    futures[submit_with_context(executor, process_file, path, root, config)] = path

                for future in as_completed(futures):
                    if future.cancelled():
                        continue
                    result = future.result()
                    if isinstance(result, FileModel):
                        file_models.append(result)
                    else:
                        failures.append(result)
                    if cancel_event is not None and cancel_event.is_set():
                        _cancel_pending(futures)
                        break

            if cancel_event is not None and cancel_event.is_set():
                completed = len(file_models) + len(failures)
                logger.warning("Extraction cancelled after %d of %d files", completed, len(file_paths))
                raise ExtractionCancelled(completed)

        with phase_scope("aggregate"):
            if not file_models:
                report = build_partial_failure(0, failures)
                logger.error("No files could be processed (%d failures)", report.failed_count)
                raise NoFilesParsed(report)

            model = aggregate(
                project=project,
                files=file_models,
                failures=failures,
                dependencies=dependencies,
                run_id=run_id,
            )

        logger.info(
            "Extraction complete: %d/%d files, %d elements",
            model.failures.successful_count,
            model.failures.total_count,
            model.metrics.total_elements,
        )
        return model
