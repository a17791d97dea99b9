"""
Hierarchy resolution for extracted elements.

The resolver tracks the chain of enclosing modules, impl blocks and traits
while a file is traversed. It hands out ids, qualified names and parent links
as elements are emitted, records child ids per parent, and completes the
``children_ids`` of every element once traversal of the file has finished.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from core.element_id import create_element_id, join_scope
from extraction.models import Element, ElementHierarchy, ElementKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Placement:
    """Where a newly emitted element sits in its file."""

    element_id: str
    qualified_name: str
    module_path: str
    parent_id: Optional[str]
    nesting_level: int

    def to_hierarchy(self) -> ElementHierarchy:
        return ElementHierarchy(
            qualified_name=self.qualified_name,
            module_path=self.module_path,
            parent_id=self.parent_id,
            children_ids=(),
            nesting_level=self.nesting_level,
        )


class HierarchyResolver:
    """Assign ids and scope links for the elements of one file.

    Example:
        >>> resolver = HierarchyResolver("src/lib.rs")
        >>> mod = resolver.place(ElementKind.MODULE, "net")
        >>> with resolver.scope("net", mod.element_id):
        ...     fn = resolver.place(ElementKind.FUNCTION, "connect")
        >>> fn.qualified_name
        'net::connect'
    """

    def __init__(self, file_path: str):
        self.file_path = file_path
        self._frames: List[Tuple[str, str]] = []
        self._ordinal = 0
        self._children: Dict[str, List[str]] = {}

    @property
    def module_path(self) -> str:
        return join_scope(*(segment for segment, _ in self._frames))

    @property
    def depth(self) -> int:
        return len(self._frames)

    @property
    def current_parent_id(self) -> Optional[str]:
        return self._frames[-1][1] if self._frames else None

    def place(self, kind: ElementKind, name: str) -> Placement:
        """Allocate the id and scope links for the next element in source order."""
        self._ordinal += 1
        module_path = self.module_path
        qualified_name = join_scope(module_path, name)
        element_id = create_element_id(self.file_path, kind.label, qualified_name, self._ordinal)
        parent_id = self.current_parent_id
        if parent_id is not None:
            self._children.setdefault(parent_id, []).append(element_id)
        return Placement(
            element_id=element_id,
            qualified_name=qualified_name,
            module_path=module_path,
            parent_id=parent_id,
            nesting_level=len(self._frames),
        )

    def enter_scope(self, segment: str, element_id: str) -> None:
        self._frames.append((segment, element_id))

    def exit_scope(self) -> None:
        if not self._frames:
            raise RuntimeError("exit_scope called without a matching enter_scope")
        self._frames.pop()

    @contextmanager
    def scope(self, segment: str, element_id: str) -> Iterator[None]:
        """Open a named scope owned by ``element_id`` for the enclosed block."""
        self.enter_scope(segment, element_id)
        try:
            yield
        finally:
            self.exit_scope()

    def children_of(self, element_id: str) -> Tuple[str, ...]:
        return tuple(self._children.get(element_id, ()))

    def finalize(self, elements: Sequence[Element]) -> Tuple[Element, ...]:
        """Return ``elements`` with their ``children_ids`` filled in."""
        if self._frames:
            raise RuntimeError(f"{len(self._frames)} scope(s) still open in {self.file_path}")
        finalized = []
        for element in elements:
            children = self.children_of(element.id)
            if children:
                element = replace(
                    element,
                    hierarchy=replace(element.hierarchy, children_ids=children),
                )
            finalized.append(element)
        logger.debug("Resolved hierarchy for %d elements in %s", len(finalized), self.file_path)
        return tuple(finalized)
