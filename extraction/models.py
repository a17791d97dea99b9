"""
Data models for extracted Rust declarations.

Every model is a frozen dataclass; collections are tuples so a produced
``ProjectModel`` cannot be mutated by downstream consumers.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field, fields
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from core.element_id import ELEMENT_ID_SEPARATOR


def _plain(value: Any) -> Any:
    """Convert model values into JSON-compatible primitives."""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, Mapping):
        return {str(_plain(k)): _plain(v) for k, v in value.items()}
    return value


def _fields_dict(obj: Any) -> Dict[str, Any]:
    return {f.name: _plain(getattr(obj, f.name)) for f in fields(obj)}


def _frozen_counts(counts: Mapping[str, int]) -> Mapping[str, int]:
    """Read-only view over a sorted copy of ``counts``."""
    return MappingProxyType(dict(sorted(counts.items())))


class ElementKind(str, enum.Enum):
    """Closed set of declaration kinds."""

    FUNCTION = "function"
    STRUCT = "struct"
    ENUM = "enum"
    TRAIT = "trait"
    IMPL = "impl"
    MODULE = "module"
    CONSTANT = "constant"
    STATIC = "static"
    TYPE_ALIAS = "type_alias"
    MACRO = "macro"
    UNION = "union"

    @property
    def label(self) -> str:
        """PascalCase label used in element ids (e.g. ``TypeAlias``)."""
        return "".join(part.capitalize() for part in self.value.split("_"))


class VisibilityKind(str, enum.Enum):
    PUBLIC = "public"
    RESTRICTED = "restricted"
    PRIVATE = "private"
    # No modifier of its own; visible wherever its owner is (impl blocks, trait impl members)
    INHERITED = "inherited"


@dataclass(frozen=True)
class Visibility:
    """Resolved visibility of a declaration.

    Attributes:
        kind: Visibility class.
        restriction: Free-text restriction for ``pub(...)`` forms,
            e.g. ``pub(crate)`` or ``pub(in crate::net)``.
    """

    kind: VisibilityKind
    restriction: Optional[str] = None

    @classmethod
    def public(cls) -> "Visibility":
        return cls(VisibilityKind.PUBLIC)

    @classmethod
    def private(cls) -> "Visibility":
        return cls(VisibilityKind.PRIVATE)

    @classmethod
    def inherited(cls) -> "Visibility":
        return cls(VisibilityKind.INHERITED)

    @classmethod
    def restricted(cls, restriction: str) -> "Visibility":
        return cls(VisibilityKind.RESTRICTED, restriction)

    @property
    def is_private(self) -> bool:
        return self.kind is VisibilityKind.PRIVATE

    def to_dict(self) -> Dict[str, Any]:
        return _fields_dict(self)


@dataclass(frozen=True)
class CodeLocation:
    """Source span of a declaration.

    Lines are 1-indexed, columns are 0-indexed byte columns as reported by
    tree-sitter, byte offsets are into the raw file content.
    """

    file_path: str
    line_start: int
    line_end: int
    column_start: int
    column_end: int
    byte_start: int
    byte_end: int

    def to_dict(self) -> Dict[str, Any]:
        return _fields_dict(self)


@dataclass(frozen=True)
class HalsteadMetrics:
    """Halstead operator/operand tallies and the measures derived from them."""

    n1: int = 0
    n2: int = 0
    big_n1: int = 0
    big_n2: int = 0

    @property
    def vocabulary(self) -> int:
        return self.n1 + self.n2

    @property
    def length(self) -> int:
        return self.big_n1 + self.big_n2

    @property
    def calculated_length(self) -> float:
        if self.n1 == 0 or self.n2 == 0:
            return 0.0
        return self.n1 * math.log2(self.n1) + self.n2 * math.log2(self.n2)

    @property
    def volume(self) -> float:
        if self.vocabulary == 0:
            return 0.0
        return self.length * math.log2(self.vocabulary)

    @property
    def difficulty(self) -> float:
        if self.n2 == 0:
            return 0.0
        return (self.n1 / 2.0) * (self.big_n2 / self.n2)

    @property
    def effort(self) -> float:
        return self.difficulty * self.volume

    def to_dict(self) -> Dict[str, Any]:
        payload = _fields_dict(self)
        payload.update(
            vocabulary=self.vocabulary,
            length=self.length,
            calculated_length=self.calculated_length,
            volume=self.volume,
            difficulty=self.difficulty,
            effort=self.effort,
        )
        return payload


class ComplexityLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


@dataclass(frozen=True)
class ComplexityMetrics:
    """Branching and structural cost of one element."""

    cyclomatic: int = 1
    cognitive: int = 0
    halstead: HalsteadMetrics = field(default_factory=HalsteadMetrics)
    nesting_depth: int = 0
    parameter_count: int = 0
    return_count: int = 0
    lines_of_code: int = 0

    def overall_score(self) -> int:
        """Weighted combination of the individual metrics, never below 1."""
        return max(
            1,
            self.cyclomatic * 2 + self.cognitive + self.nesting_depth + self.return_count,
        )

    def complexity_level(self) -> ComplexityLevel:
        score = self.overall_score()
        if score <= 10:
            return ComplexityLevel.LOW
        if score <= 20:
            return ComplexityLevel.MEDIUM
        if score <= 50:
            return ComplexityLevel.HIGH
        return ComplexityLevel.VERY_HIGH

    def to_dict(self) -> Dict[str, Any]:
        payload = _fields_dict(self)
        payload["overall_score"] = self.overall_score()
        payload["complexity_level"] = self.complexity_level().value
        return payload


@dataclass(frozen=True)
class ElementHierarchy:
    """Structural placement of an element within its file.

    Attributes:
        qualified_name: ``module_path::name``, or ``name`` at file scope.
        module_path: Enclosing scope segments joined with ``::``.
        parent_id: Id of the enclosing module/impl/trait element, if any.
        children_ids: Ids of directly enclosed elements, in source order.
        nesting_level: Number of enclosing scopes (0 at file scope).
    """

    qualified_name: str
    module_path: str
    parent_id: Optional[str]
    children_ids: Tuple[str, ...]
    nesting_level: int

    def to_dict(self) -> Dict[str, Any]:
        return _fields_dict(self)


@dataclass(frozen=True)
class Element:
    """One extracted declaration.

    Attributes:
        id: Stable id, unique within a project (see ``core.element_id``).
        kind: Declaration kind.
        name: Identifier as written (impl blocks use their self type).
        signature: Whitespace-normalized declaration text without its body.
        visibility: Resolved visibility.
        doc_comments: Cleaned documentation lines.
        attributes: Non-doc attributes, verbatim.
        location: Source span.
        hierarchy: Qualified name and parent/child links.
        complexity: Cyclomatic (or structural baseline) complexity, if any.
        complexity_metrics: Detailed metrics backing ``complexity``.
        generic_params: Generic parameters as written.
    """

    id: str
    kind: ElementKind
    name: str
    signature: str
    visibility: Visibility
    doc_comments: Tuple[str, ...]
    attributes: Tuple[str, ...]
    location: CodeLocation
    hierarchy: ElementHierarchy
    complexity: Optional[int] = None
    complexity_metrics: Optional[ComplexityMetrics] = None
    generic_params: Tuple[str, ...] = ()

    @property
    def qualified_name(self) -> str:
        return self.hierarchy.qualified_name

    def to_dict(self) -> Dict[str, Any]:
        return _fields_dict(self)


@dataclass(frozen=True)
class ImportRecord:
    """One ``use`` declaration member.

    A glob import never lists names.
    """

    module_path: str
    imported_names: Tuple[str, ...] = ()
    is_glob: bool = False
    alias: Optional[str] = None
    is_reexport: bool = False
    line: int = 0

    def __post_init__(self) -> None:
        if self.is_glob and self.imported_names:
            raise ValueError("glob imports cannot list imported names")

    def to_dict(self) -> Dict[str, Any]:
        return _fields_dict(self)


class ReferenceType(str, enum.Enum):
    """What a cross-reference points at."""

    FUNCTION_CALL = "function_call"
    TYPE_USAGE = "type_usage"
    TRAIT_IMPLEMENTATION = "trait_implementation"
    MACRO_INVOCATION = "macro_invocation"
    IMPORT_REFERENCE = "import_reference"


@dataclass(frozen=True)
class CrossReference:
    """A use of a name inside an element, or a top-level ``use`` path.

    Attributes:
        from_element_id: Referencing element; None for file-level imports.
        reference_type: Kind of use.
        reference_text: Path as written, whitespace normalized.
        location: Span of the referencing node.
        scope: Qualified name of the referencing element ("" at file scope).
        to_element_id: Target element once resolved, else None.
    """

    from_element_id: Optional[str]
    reference_type: ReferenceType
    reference_text: str
    location: CodeLocation
    scope: str = ""
    to_element_id: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.to_element_id is not None

    def to_dict(self) -> Dict[str, Any]:
        payload = _fields_dict(self)
        payload["is_resolved"] = self.is_resolved
        return payload


class VisibilityScope(str, enum.Enum):
    PUBLIC = "public"
    CRATE = "crate"
    SUPER = "super"
    MODULE = "module"
    PRIVATE = "private"


def _parent_path(path: str) -> str:
    if ELEMENT_ID_SEPARATOR not in path:
        return ""
    return path.rsplit(ELEMENT_ID_SEPARATOR, 1)[0]


def _within(path: str, root: str) -> bool:
    return path == root or path.startswith(root + ELEMENT_ID_SEPARATOR)


@dataclass(frozen=True)
class ElementNamespace:
    """Every name under which an element can be reached.

    Attributes:
        element_id: The element described.
        simple_name: Name as declared.
        canonical_path: ``crate::...`` path of the declaration.
        module_path: ``crate::...`` path of the enclosing module.
        aliases: ``use ... as X`` names that import it.
        import_paths: Paths of the modules that import or re-export it,
            joined with the local name.
        is_public: True when declared ``pub``.
        visibility_scope: Where the element is visible.
        restriction: Path of a ``pub(in path)`` restriction.
    """

    element_id: str
    simple_name: str
    canonical_path: str
    module_path: str = "crate"
    aliases: Tuple[str, ...] = ()
    import_paths: Tuple[str, ...] = ()
    is_public: bool = False
    visibility_scope: VisibilityScope = VisibilityScope.PRIVATE
    restriction: Optional[str] = None

    @property
    def reference_names(self) -> Tuple[str, ...]:
        return (self.simple_name, self.canonical_path) + self.aliases + self.import_paths

    def is_accessible_from(self, module_path: str) -> bool:
        """Check visibility from code in ``module_path`` (a ``crate::...`` path)."""
        if self.visibility_scope in (VisibilityScope.PUBLIC, VisibilityScope.CRATE):
            return True
        if self.visibility_scope is VisibilityScope.SUPER:
            return _within(module_path, _parent_path(self.module_path) or self.module_path)
        if self.visibility_scope is VisibilityScope.MODULE and self.restriction:
            return _within(module_path, self.restriction)
        return _within(module_path, self.module_path)

    def to_dict(self) -> Dict[str, Any]:
        payload = _fields_dict(self)
        payload["reference_names"] = list(self.reference_names)
        return payload


@dataclass(frozen=True)
class FileMetrics:
    """Per-file rollup counters.

    ``complexity_average`` is taken only over elements that carry a
    complexity value (``complexity_count`` of them).
    """

    total_lines: int = 0
    lines_of_code: int = 0
    lines_of_comments: int = 0
    blank_lines: int = 0
    element_count: int = 0
    kind_counts: Mapping[str, int] = field(default_factory=dict)
    complexity_total: int = 0
    complexity_max: int = 0
    complexity_count: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind_counts", _frozen_counts(self.kind_counts))

    @property
    def complexity_average(self) -> float:
        if self.complexity_count == 0:
            return 0.0
        return self.complexity_total / self.complexity_count

    def count(self, kind: ElementKind) -> int:
        return self.kind_counts.get(kind.value, 0)

    @property
    def function_count(self) -> int:
        return self.count(ElementKind.FUNCTION)

    @property
    def struct_count(self) -> int:
        return self.count(ElementKind.STRUCT)

    @property
    def enum_count(self) -> int:
        return self.count(ElementKind.ENUM)

    @property
    def trait_count(self) -> int:
        return self.count(ElementKind.TRAIT)

    def to_dict(self) -> Dict[str, Any]:
        payload = _fields_dict(self)
        payload["complexity_average"] = self.complexity_average
        return payload


@dataclass(frozen=True)
class ProjectMetrics:
    """Project rollup; every total is the sum of the file totals."""

    total_files: int = 0
    total_lines: int = 0
    lines_of_code: int = 0
    lines_of_comments: int = 0
    total_elements: int = 0
    kind_counts: Mapping[str, int] = field(default_factory=dict)
    complexity_total: int = 0
    complexity_max: int = 0
    complexity_count: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind_counts", _frozen_counts(self.kind_counts))

    @property
    def complexity_average(self) -> float:
        if self.complexity_count == 0:
            return 0.0
        return self.complexity_total / self.complexity_count

    def count(self, kind: ElementKind) -> int:
        return self.kind_counts.get(kind.value, 0)

    @property
    def total_functions(self) -> int:
        return self.count(ElementKind.FUNCTION)

    @property
    def total_structs(self) -> int:
        return self.count(ElementKind.STRUCT)

    @property
    def total_enums(self) -> int:
        return self.count(ElementKind.ENUM)

    @property
    def total_traits(self) -> int:
        return self.count(ElementKind.TRAIT)

    def to_dict(self) -> Dict[str, Any]:
        payload = _fields_dict(self)
        payload["complexity_average"] = self.complexity_average
        return payload


@dataclass(frozen=True)
class ProjectInfo:
    name: str
    version: str
    edition: str
    root_path: str

    def to_dict(self) -> Dict[str, Any]:
        return _fields_dict(self)


@dataclass(frozen=True)
class DependencyInfo:
    """Dependency names declared in ``Cargo.toml``."""

    direct: Tuple[str, ...] = ()
    dev_dependencies: Tuple[str, ...] = ()
    build_dependencies: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return _fields_dict(self)


@dataclass(frozen=True)
class FileFailure:
    """A per-file error converted to data."""

    path: str
    kind: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return _fields_dict(self)


@dataclass(frozen=True)
class PartialFailure:
    """Success/failure summary of a project run."""

    successful_count: int
    failed_count: int
    total_count: int
    failures: Tuple[FileFailure, ...] = ()

    @property
    def error_messages(self) -> Tuple[str, ...]:
        return tuple(failure.message for failure in self.failures)

    @property
    def has_failures(self) -> bool:
        return self.failed_count > 0

    @property
    def success_rate(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self.successful_count / self.total_count

    def to_dict(self) -> Dict[str, Any]:
        payload = _fields_dict(self)
        payload["error_messages"] = list(self.error_messages)
        return payload


@dataclass(frozen=True)
class FileModel:
    """One successfully parsed source file."""

    path: str
    relative_path: str
    content_hash: str
    elements: Tuple[Element, ...]
    imports: Tuple[ImportRecord, ...]
    metrics: FileMetrics
    cross_references: Tuple[CrossReference, ...] = ()

    def elements_of_kind(self, kind: ElementKind) -> Tuple[Element, ...]:
        return tuple(element for element in self.elements if element.kind is kind)

    def resolved_references(self) -> Tuple[CrossReference, ...]:
        return tuple(reference for reference in self.cross_references if reference.is_resolved)

    def to_dict(self) -> Dict[str, Any]:
        return _fields_dict(self)


@dataclass(frozen=True)
class ProjectModel:
    """Full result of one extraction run. Files are sorted by relative path."""

    project: ProjectInfo
    files: Tuple[FileModel, ...]
    metrics: ProjectMetrics
    failures: PartialFailure
    dependencies: DependencyInfo
    extracted_at: datetime
    run_id: str = "-"
    cross_references: Tuple[CrossReference, ...] = ()
    namespaces: Tuple[ElementNamespace, ...] = ()

    def iter_elements(self) -> Iterator[Element]:
        for file_model in self.files:
            yield from file_model.elements

    def find_element(self, element_id: str) -> Optional[Element]:
        for element in self.iter_elements():
            if element.id == element_id:
                return element
        return None

    def get_file(self, relative_path: str) -> Optional[FileModel]:
        for file_model in self.files:
            if file_model.relative_path == relative_path:
                return file_model
        return None

    def references_from(self, element_id: str) -> Tuple[CrossReference, ...]:
        return tuple(r for r in self.cross_references if r.from_element_id == element_id)

    def references_to(self, element_id: str) -> Tuple[CrossReference, ...]:
        return tuple(r for r in self.cross_references if r.to_element_id == element_id)

    def namespace_of(self, element_id: str) -> Optional[ElementNamespace]:
        for namespace in self.namespaces:
            if namespace.element_id == element_id:
                return namespace
        return None

    def to_dict(self) -> Dict[str, Any]:
        return _fields_dict(self)
