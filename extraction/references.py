"""
Cross-reference collection and name resolution.

Each extracted element is walked for the names it uses: call targets, macro
invocations, type names and the trait of an impl block. Top-level ``use``
paths become import references. Names are then resolved against the
elements of the run, trying in turn:

1. the file's import aliases (``use a::b::C as D``),
2. the plain name within the file,
3. the name qualified by each enclosing scope of the referencing element,
4. ``crate::``/``self::``/``super::`` paths and module-relative paths,
5. the file's glob imports.

A name whose import points outside the crate stays unresolved.
"""

import logging
from dataclasses import replace
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Set, Tuple

from tree_sitter import Node, Tree

from core.element_id import join_scope, normalize_rust_path
from extraction.config import (
    ATTRIBUTE_NODE,
    CALL_NODE,
    CALLEE_PATH_TYPES,
    COMMENT_NODES,
    CRATE_ROOT,
    FIELD_EXPRESSION_NODE,
    GENERIC_FUNCTION_NODE,
    GENERIC_PARAMETER_TYPES,
    IGNORED_TYPE_NAMES,
    MACRO_INVOCATION_NODE,
    MODULE_ROOT_STEMS,
    NESTED_ITEM_TYPES,
    TYPE_REFERENCE_TYPES,
)
from extraction.imports import iter_use_declarations
from extraction.models import (
    CodeLocation,
    CrossReference,
    Element,
    ElementKind,
    ElementNamespace,
    FileModel,
    ReferenceType,
    VisibilityKind,
    VisibilityScope,
)

logger = logging.getLogger(__name__)

_RELATIVE_HEADS = ("self", "super")
_SELF_TYPE = "Self"


def node_location(node: Node, file_path: str) -> CodeLocation:
    return CodeLocation(
        file_path=file_path,
        line_start=node.start_point.row + 1,
        line_end=node.end_point.row + 1,
        column_start=node.start_point.column,
        column_end=node.end_point.column,
        byte_start=node.start_byte,
        byte_end=node.end_byte,
    )


def module_path_for_file(relative_path: str) -> str:
    """Crate module path of a source file.

    ``src/lib.rs`` is ``crate``, ``src/net/mod.rs`` is ``crate::net`` and
    ``src/net/tcp.rs`` is ``crate::net::tcp``.
    """
    parts = list(PurePosixPath(relative_path).with_suffix("").parts)
    if parts and parts[0] == "src":
        parts = parts[1:]
    if parts and parts[-1] in MODULE_ROOT_STEMS:
        parts = parts[:-1]
    return join_scope(CRATE_ROOT, *parts)


def split_path(path: str) -> List[str]:
    """Split on ``::`` outside angle brackets.

    ``<Point<f64> as Shape>::area`` gives ``["<Point<f64> as Shape>", "area"]``.
    """
    parts: List[str] = []
    depth = start = index = 0
    while index < len(path):
        char = path[index]
        if char == "<":
            depth += 1
        elif char == ">" and depth and path[index - 1] != "-":
            depth -= 1
        elif depth == 0 and path.startswith("::", index):
            parts.append(path[start:index])
            index += 2
            start = index
            continue
        index += 1
    parts.append(path[start:])
    return [part for part in parts if part]


def strip_generic_arguments(path: str) -> str:
    """Drop ``<...>`` groups: ``Vec::<u8>::new`` becomes ``Vec::new``."""
    kept: List[str] = []
    depth = 0
    for index, char in enumerate(path):
        if char == "<":
            depth += 1
        elif char == ">" and depth and path[index - 1] != "-":
            depth -= 1
        elif depth == 0:
            kept.append(char)
    return join_scope(*(segment.strip() for segment in "".join(kept).split("::")))


def strip_segment_generics(path: str) -> str:
    """Drop generic arguments per segment, keeping ``<T as Trait>`` segments."""
    return join_scope(
        *(
            segment if segment.startswith("<") else strip_generic_arguments(segment)
            for segment in split_path(path)
        )
    )


def _lookup_order(elements: Iterable[Element]) -> List[Element]:
    # Impl blocks share their type's name; the type itself wins lookups
    return sorted(elements, key=lambda element: element.kind is ElementKind.IMPL)


def _lookup_names(qualified_name: str) -> Tuple[str, ...]:
    stripped = strip_segment_generics(qualified_name)
    if stripped == qualified_name:
        return (qualified_name,)
    return (qualified_name, stripped)


def _parent_module(module_path: str) -> str:
    segments = split_path(module_path)
    if len(segments) <= 1:
        return CRATE_ROOT
    return join_scope(*segments[:-1])


def path_candidates(path: str, module_path: str) -> List[str]:
    """Absolute ``crate::...`` paths a path written in ``module_path`` may denote."""
    segments = split_path(path)
    if not segments:
        return []
    if segments[0] == CRATE_ROOT:
        return [join_scope(*segments)]
    if segments[0] in _RELATIVE_HEADS:
        base = module_path
        while segments and segments[0] in _RELATIVE_HEADS:
            if segments.pop(0) == "super":
                base = _parent_module(base)
        return [join_scope(base, *segments)]
    candidates = [join_scope(module_path, *segments)]
    if module_path != CRATE_ROOT:
        candidates.append(join_scope(CRATE_ROOT, *segments))
    return candidates


def _node_text(node: Node, source_bytes: bytes) -> str:
    return normalize_rust_path(source_bytes[node.start_byte:node.end_byte].decode("utf-8"))


def _type_parameter_name(node: Node, source_bytes: bytes) -> Optional[str]:
    if node.type == "type_identifier":
        return _node_text(node, source_bytes)
    if node.type not in GENERIC_PARAMETER_TYPES:
        return None
    name = node.child_by_field_name("name") or node.child_by_field_name("left")
    if name is None:
        return None
    return _type_parameter_name(name, source_bytes)


def generic_names(node: Node, source_bytes: bytes) -> Set[str]:
    """Type parameter names declared by ``node`` and its ancestors."""
    names: Set[str] = set()
    current: Optional[Node] = node
    while current is not None:
        type_parameters = current.child_by_field_name("type_parameters")
        if type_parameters is not None:
            for child in type_parameters.named_children:
                name = _type_parameter_name(child, source_bytes)
                if name:
                    names.add(name)
        current = current.parent
    return names


class ReferenceCollector:
    """Collect the outgoing references of single elements of one file."""

    def __init__(self, source_bytes: bytes, file_path: str):
        self.source_bytes = source_bytes
        self.file_path = file_path
        self._element: Optional[Element] = None
        self._generics: Set[str] = set()
        self._references: List[CrossReference] = []

    def collect(self, node: Node, element: Element) -> List[CrossReference]:
        """References made by ``element`` outside its nested items.

        Functions contribute their parameters, return type and body, type
        declarations their field and variant types, traits their bounds and
        impl blocks their trait and self type. Modules and macros make none.
        """
        if element.kind in (ElementKind.MODULE, ElementKind.MACRO):
            return []
        self._element = element
        self._generics = generic_names(node, self.source_bytes)
        self._references = []

        skipped = {"name"}
        if element.kind in (ElementKind.TRAIT, ElementKind.IMPL):
            skipped.add("body")
        if element.kind is ElementKind.IMPL:
            skipped.add("trait")
            trait = node.child_by_field_name("trait")
            if trait is not None:
                self._add(
                    trait,
                    ReferenceType.TRAIT_IMPLEMENTATION,
                    strip_generic_arguments(_node_text(trait, self.source_bytes)),
                )

        skipped_ids = {
            child.id
            for child in (node.child_by_field_name(field) for field in skipped)
            if child is not None
        }
        for child in node.named_children:
            if child.id not in skipped_ids:
                self._walk(child)
        return self._references

    def _add(self, node: Node, reference_type: ReferenceType, text: str) -> None:
        if not text:
            return
        self._references.append(
            CrossReference(
                from_element_id=self._element.id,
                reference_type=reference_type,
                reference_text=text,
                location=node_location(node, self.file_path),
                scope=self._element.qualified_name,
            )
        )

    def _walk(self, node: Node) -> None:
        node_type = node.type
        if node_type in COMMENT_NODES or node_type in NESTED_ITEM_TYPES or node_type == ATTRIBUTE_NODE:
            return
        if node_type == CALL_NODE:
            self._visit_callee(node.child_by_field_name("function"))
            arguments = node.child_by_field_name("arguments")
            if arguments is not None:
                self._walk(arguments)
            return
        if node_type == MACRO_INVOCATION_NODE:
            macro = node.child_by_field_name("macro")
            if macro is not None:
                self._add(macro, ReferenceType.MACRO_INVOCATION, _node_text(macro, self.source_bytes))
            return
        if node_type in TYPE_REFERENCE_TYPES:
            self._add_type(node)
            return
        for child in node.named_children:
            self._walk(child)

    def _add_type(self, node: Node) -> None:
        text = strip_generic_arguments(_node_text(node, self.source_bytes))
        segments = split_path(text)
        if not segments or segments[0] in IGNORED_TYPE_NAMES or segments[0] in self._generics:
            return
        self._add(node, ReferenceType.TYPE_USAGE, text)

    def _visit_callee(self, function: Optional[Node]) -> None:
        if function is None:
            return
        if function.type == GENERIC_FUNCTION_NODE:
            type_arguments = function.child_by_field_name("type_arguments")
            if type_arguments is not None:
                self._walk(type_arguments)
            self._visit_callee(function.child_by_field_name("function"))
        elif function.type in CALLEE_PATH_TYPES:
            text = strip_generic_arguments(_node_text(function, self.source_bytes))
            self._add(function, ReferenceType.FUNCTION_CALL, text)
        elif function.type == FIELD_EXPRESSION_NODE:
            # Method call: only the method name is known without type inference
            field = function.child_by_field_name("field")
            if field is not None:
                self._add(field, ReferenceType.FUNCTION_CALL, _node_text(field, self.source_bytes))
            value = function.child_by_field_name("value")
            if value is not None:
                self._walk(value)
        else:
            self._walk(function)


def collect_import_references(tree: Tree, source_bytes: bytes, file_path: str) -> List[CrossReference]:
    """One import reference per named member of each top-level ``use``."""
    references: List[CrossReference] = []
    for node, records in iter_use_declarations(tree, source_bytes):
        location = node_location(node, file_path)
        for record in records:
            if record.is_glob:
                continue
            for name in record.imported_names:
                references.append(
                    CrossReference(
                        from_element_id=None,
                        reference_type=ReferenceType.IMPORT_REFERENCE,
                        reference_text=join_scope(record.module_path, name),
                        location=location,
                    )
                )
    return references


class _FileScope:
    """Lookup tables for one file."""

    def __init__(self, file_model: FileModel):
        self.file_model = file_model
        self.module_path = module_path_for_file(file_model.relative_path)
        self.by_id: Dict[str, Element] = {element.id: element for element in file_model.elements}
        self.by_name: Dict[str, str] = {}
        for element in _lookup_order(file_model.elements):
            for name in _lookup_names(element.qualified_name):
                self.by_name.setdefault(name, element.id)

        # local name -> imported path
        self.aliases: Dict[str, str] = {}
        self.globs: List[str] = []
        for record in file_model.imports:
            if record.is_glob:
                self.globs.append(record.module_path)
                continue
            for name in record.imported_names:
                local_name = record.alias or name
                if local_name != "_":
                    self.aliases[local_name] = join_scope(record.module_path, name)

    def lookup(self, name: str) -> Optional[str]:
        return self.by_name.get(name) or self.by_name.get(strip_segment_generics(name))

    def lookup_scoped(self, scope: str, name: str) -> Optional[str]:
        prefixes = split_path(scope)
        while prefixes:
            target = self.lookup(join_scope(*prefixes, name))
            if target is not None:
                return target
            prefixes.pop()
        return None

    def enclosing_module(self, element: Element) -> str:
        """Module path of ``element``, counting inline ``mod`` blocks."""
        names: List[str] = []
        parent_id = element.hierarchy.parent_id
        while parent_id is not None:
            parent = self.by_id.get(parent_id)
            if parent is None:
                break
            if parent.kind is ElementKind.MODULE:
                names.append(parent.name)
            parent_id = parent.hierarchy.parent_id
        return join_scope(self.module_path, *reversed(names))


class CrossReferenceResolver:
    """Resolve references across a set of files.

    Files are registered in the order given; when two elements share a
    canonical path the first one wins.
    """

    def __init__(self, files: Iterable[FileModel]):
        self._scopes: Dict[str, _FileScope] = {}
        self._canonical: Dict[str, str] = {}
        for file_model in files:
            scope = _FileScope(file_model)
            self._scopes[file_model.relative_path] = scope
            for element in _lookup_order(file_model.elements):
                for name in _lookup_names(element.qualified_name):
                    self._canonical.setdefault(join_scope(scope.module_path, name), element.id)

    def _scope_for(self, file_model: FileModel) -> _FileScope:
        scope = self._scopes.get(file_model.relative_path)
        if scope is None or scope.file_model is not file_model:
            scope = _FileScope(file_model)
        return scope

    def lookup_path(self, path: str, module_path: str) -> Optional[str]:
        for candidate in path_candidates(path, module_path):
            target = self._canonical.get(candidate) or self._canonical.get(strip_segment_generics(candidate))
            if target is not None:
                return target
        return None

    def resolve_reference(self, reference: CrossReference, file_model: FileModel) -> Optional[str]:
        """Target element id of ``reference`` made in ``file_model``, or None."""
        return self._resolve(reference, self._scope_for(file_model))

    def _resolve(self, reference: CrossReference, scope: _FileScope) -> Optional[str]:
        text = reference.reference_text
        if reference.reference_type is ReferenceType.IMPORT_REFERENCE:
            return self.lookup_path(text, scope.module_path)

        segments = split_path(text)
        if not segments:
            return None
        element = scope.by_id.get(reference.from_element_id) if reference.from_element_id else None
        element_scope = element.hierarchy.module_path if element is not None else ""
        module_path = scope.enclosing_module(element) if element is not None else scope.module_path

        head = segments[0]
        if head == _SELF_TYPE:
            return scope.lookup_scoped(element_scope, join_scope(*segments[1:]))
        if head in scope.aliases:
            return self.lookup_path(join_scope(scope.aliases[head], *segments[1:]), scope.module_path)

        target = scope.lookup(text) or scope.lookup_scoped(element_scope, text)
        if target is not None:
            return target
        target = self.lookup_path(text, module_path)
        if target is not None or head == CRATE_ROOT or head in _RELATIVE_HEADS:
            return target
        for glob in scope.globs:
            target = self.lookup_path(join_scope(glob, text), scope.module_path)
            if target is not None:
                return target
        return None

    def resolve_file(self, file_model: FileModel) -> FileModel:
        """Copy of ``file_model`` with every reference re-resolved."""
        scope = self._scope_for(file_model)
        references = tuple(
            replace(reference, to_element_id=self._resolve(reference, scope))
            for reference in file_model.cross_references
        )
        resolved = sum(1 for reference in references if reference.is_resolved)
        logger.debug(
            "Resolved %d of %d references in %s",
            resolved,
            len(references),
            file_model.relative_path,
        )
        return replace(file_model, cross_references=references)

    def _visibility_scope(self, element: Element, scope: _FileScope) -> Tuple[VisibilityScope, Optional[str], bool]:
        current = element
        while current.visibility.kind is VisibilityKind.INHERITED:
            parent = scope.by_id.get(current.hierarchy.parent_id) if current.hierarchy.parent_id else None
            if parent is None:
                return VisibilityScope.PUBLIC, None, True
            current = parent

        visibility = current.visibility
        if visibility.kind is VisibilityKind.PUBLIC:
            return VisibilityScope.PUBLIC, None, True
        if visibility.kind is VisibilityKind.PRIVATE:
            return VisibilityScope.PRIVATE, None, False

        restriction = visibility.restriction or ""
        inner = restriction[restriction.find("(") + 1:restriction.rfind(")")].strip() if "(" in restriction else restriction
        if inner.startswith("in "):
            candidates = path_candidates(inner[3:].strip(), scope.enclosing_module(current))
            return VisibilityScope.MODULE, candidates[0] if candidates else None, False
        if inner == "self":
            return VisibilityScope.PRIVATE, None, False
        if "crate" in inner:
            return VisibilityScope.CRATE, None, False
        if "super" in inner:
            return VisibilityScope.SUPER, None, False
        return VisibilityScope.PRIVATE, None, False

    def build_namespaces(self) -> Tuple[ElementNamespace, ...]:
        """Namespace entries for every element, in file then source order."""
        aliases: Dict[str, List[str]] = {}
        import_paths: Dict[str, List[str]] = {}
        for scope in self._scopes.values():
            for record in scope.file_model.imports:
                if record.is_glob:
                    continue
                for name in record.imported_names:
                    target = self.lookup_path(join_scope(record.module_path, name), scope.module_path)
                    if target is None:
                        continue
                    local_name = record.alias or name
                    if record.alias and record.alias not in aliases.setdefault(target, []):
                        aliases[target].append(record.alias)
                    import_path = join_scope(scope.module_path, local_name)
                    if import_path not in import_paths.setdefault(target, []):
                        import_paths[target].append(import_path)

        namespaces: List[ElementNamespace] = []
        for scope in self._scopes.values():
            for element in scope.file_model.elements:
                visibility_scope, restriction, is_public = self._visibility_scope(element, scope)
                namespaces.append(
                    ElementNamespace(
                        element_id=element.id,
                        simple_name=element.name,
                        canonical_path=join_scope(scope.module_path, element.qualified_name),
                        module_path=scope.enclosing_module(element),
                        aliases=tuple(aliases.get(element.id, ())),
                        import_paths=tuple(import_paths.get(element.id, ())),
                        is_public=is_public,
                        visibility_scope=visibility_scope,
                        restriction=restriction,
                    )
                )
        return tuple(namespaces)


def resolve_single_file(file_model: FileModel) -> FileModel:
    """Resolve a file's references against its own elements only."""
    return CrossReferenceResolver([file_model]).resolve_file(file_model)
