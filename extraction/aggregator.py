"""
Per-file metrics and project-level aggregation.

The aggregator is the only step that sees more than one file. It runs after
every worker has finished, so it needs no locking.
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence, Tuple

from extraction.models import (
    CrossReference,
    DependencyInfo,
    Element,
    FileFailure,
    FileMetrics,
    FileModel,
    PartialFailure,
    ProjectInfo,
    ProjectMetrics,
    ProjectModel,
)
from extraction.references import CrossReferenceResolver

logger = logging.getLogger(__name__)

_LINE_COMMENT = "//"
_BLOCK_OPEN = "/*"
_BLOCK_CLOSE = "*/"


def _opens_block(text: str) -> bool:
    """True when ``text`` leaves a block comment open at its end."""
    return text.rfind(_BLOCK_OPEN) > text.rfind(_BLOCK_CLOSE)


def compute_file_metrics(text: str, elements: Sequence[Element]) -> FileMetrics:
    """Count lines and roll up element counts and complexity for one file.

    A line is blank when it is empty after stripping, a comment line when it
    starts with ``//`` or ``/*`` or lies inside an open ``/* */`` block,
    and code otherwise.
    """
    total = blank = comments = code = 0
    in_block = False
    for line in text.splitlines():
        total += 1
        stripped = line.strip()
        if not stripped:
            blank += 1
        elif in_block:
            comments += 1
            if _BLOCK_CLOSE in stripped:
                in_block = _opens_block(stripped[stripped.index(_BLOCK_CLOSE) + 2:])
        elif stripped.startswith(_LINE_COMMENT):
            comments += 1
        elif stripped.startswith(_BLOCK_OPEN):
            comments += 1
            in_block = _opens_block(stripped)
        else:
            code += 1
            in_block = _opens_block(stripped)

    kind_counts = Counter(element.kind.value for element in elements)
    complexities = [element.complexity for element in elements if element.complexity is not None]

    return FileMetrics(
        total_lines=total,
        lines_of_code=code,
        lines_of_comments=comments,
        blank_lines=blank,
        element_count=len(elements),
        kind_counts=dict(sorted(kind_counts.items())),
        complexity_total=sum(complexities),
        complexity_max=max(complexities, default=0),
        complexity_count=len(complexities),
    )


def compute_project_metrics(files: Sequence[FileModel]) -> ProjectMetrics:
    """Sum file metrics; the average is recomputed from the summed totals."""
    kind_counts: Counter = Counter()
    for file_model in files:
        kind_counts.update(file_model.metrics.kind_counts)

    return ProjectMetrics(
        total_files=len(files),
        total_lines=sum(f.metrics.total_lines for f in files),
        lines_of_code=sum(f.metrics.lines_of_code for f in files),
        lines_of_comments=sum(f.metrics.lines_of_comments for f in files),
        total_elements=sum(f.metrics.element_count for f in files),
        kind_counts=dict(sorted(kind_counts.items())),
        complexity_total=sum(f.metrics.complexity_total for f in files),
        complexity_max=max((f.metrics.complexity_max for f in files), default=0),
        complexity_count=sum(f.metrics.complexity_count for f in files),
    )


def build_partial_failure(
    successful_count: int,
    failures: Iterable[FileFailure],
) -> PartialFailure:
    ordered = tuple(sorted(failures, key=lambda failure: failure.path))
    return PartialFailure(
        successful_count=successful_count,
        failed_count=len(ordered),
        total_count=successful_count + len(ordered),
        failures=ordered,
    )


def aggregate(
    project: ProjectInfo,
    files: Iterable[FileModel],
    failures: Iterable[FileFailure],
    dependencies: Optional[DependencyInfo] = None,
    run_id: str = "-",
    extracted_at: Optional[datetime] = None,
) -> ProjectModel:
    """Combine per-file results into one ``ProjectModel``.

    Files are sorted by relative path so the model does not depend on worker
    completion order. Cross-references are resolved again against every
    file of the project.
    """
    ordered_files = tuple(sorted(files, key=lambda file_model: file_model.relative_path))
    resolver = CrossReferenceResolver(ordered_files)
    ordered_files = tuple(resolver.resolve_file(file_model) for file_model in ordered_files)
    cross_references: Tuple[CrossReference, ...] = tuple(
        reference for file_model in ordered_files for reference in file_model.cross_references
    )
    resolved = sum(1 for reference in cross_references if reference.is_resolved)
    report = build_partial_failure(len(ordered_files), failures)
    metrics = compute_project_metrics(ordered_files)

    logger.info(
        "Aggregated %d files (%d failed): %d elements, average complexity %.2f",
        report.successful_count,
        report.failed_count,
        metrics.total_elements,
        metrics.complexity_average,
    )
    logger.info("Resolved %d of %d cross-references", resolved, len(cross_references))

    return ProjectModel(
        project=project,
        files=ordered_files,
        metrics=metrics,
        failures=report,
        dependencies=dependencies or DependencyInfo(),
        extracted_at=extracted_at or datetime.now(timezone.utc),
        run_id=run_id,
        cross_references=cross_references,
        namespaces=resolver.build_namespaces(),
    )
