"""Schema dependency graph.

Two traversals live here. ``dependencies_of`` is a memoized depth-first walk
that also flags circular schemas. ``collect_all_dependencies`` is the
work-list closure used to decide which schemas each output module needs.
"""

from __future__ import annotations

from typing import Iterable

from ..shared.errors import SchemaError, SchemaNotFoundError, UnsupportedReferenceError
from ..shared.log import get_logger
from .model import SpecModel, iter_refs

logger = get_logger(__name__)


class DependencyGraph:
    """Per-run dependency information for the schemas of one spec."""

    def __init__(self, model: SpecModel) -> None:
        self.model = model
        self.circular: set[str] = set()
        self._memo: dict[str, tuple[str, ...]] = {}
        self._refs: dict[str, tuple[tuple[str | None, str], ...]] = {}

    def direct_dependencies(self, name: str, *, strict: bool = True) -> list[str]:
        """Return the schema names referenced directly by ``name``.

        Args:
            name: Schema to inspect.
            strict: Raise on unsupported reference pointers instead of
                skipping them.

        Raises:
            SchemaNotFoundError: If ``name`` is not a known schema.
            UnsupportedReferenceError: For a non-schema pointer when strict.
        """
        refs = self._refs.get(name)
        if refs is None:
            node = self.model.schema(name)
            seen: dict[tuple[str | None, str], None] = {}
            for ref in iter_refs(node):
                seen.setdefault((ref.target, ref.ref), None)
            refs = tuple(seen)
            self._refs[name] = refs

        result: dict[str, None] = {}
        for target, raw in refs:
            if target is None:
                if strict:
                    raise UnsupportedReferenceError(raw, name)
                logger.debug("Skipping unsupported reference '%s' in %s", raw, name)
                continue
            result.setdefault(target, None)
        return list(result)

    def dependencies_of(self, name: str) -> list[str]:
        """Return every schema ``name`` transitively references.

        The result only contains ``name`` itself when it sits on a cycle.

        Raises:
            SchemaError: If a reference cannot be resolved. Memoized results
                for other schemas are left untouched.
        """
        cached = self._memo.get(name)
        if cached is not None:
            return list(cached)

        result: dict[str, None] = {}
        self._walk(name, path={name}, expanded={name}, result=result)
        self._memo[name] = tuple(result)
        return list(result)

    def _walk(
        self,
        name: str,
        *,
        path: set[str],
        expanded: set[str],
        result: dict[str, None],
    ) -> None:
        for dep in self.direct_dependencies(name):
            result.setdefault(dep, None)
            if dep in path:
                self.circular.add(dep)
                continue
            if dep in expanded:
                continue
            expanded.add(dep)

            memo = self._memo.get(dep)
            if memo is not None:
                for transitive in memo:
                    result.setdefault(transitive, None)
                    if transitive in path:
                        self.circular.add(transitive)
                continue

            if dep not in self.model.schemas:
                raise SchemaNotFoundError(dep, name)
            path.add(dep)
            try:
                self._walk(dep, path=path, expanded=expanded, result=result)
            finally:
                path.discard(dep)

    def is_circular(self, name: str) -> bool:
        return name in self.circular

    def build(self) -> None:
        """Resolve every schema, logging the ones that cannot be resolved."""
        for name in self.model.schemas:
            try:
                self.dependencies_of(name)
            except SchemaError as e:
                logger.warning("Skipping dependencies of %s: %s", name, e)

    def collect_all_dependencies(
        self,
        roots: Iterable[str],
        *,
        skip_missing: bool = False,
    ) -> list[str]:
        """Close a set of schema names over their transitive references.

        Work-list traversal: each name is expanded exactly once.

        Args:
            roots: Schema names referenced by operations.
            skip_missing: Log and drop unknown names instead of raising.

        Returns:
            The roots and all their dependencies in discovery order.
        """
        processed: dict[str, None] = {}
        work = list(roots)
        work.reverse()
        while work:
            name = work.pop()
            if name in processed:
                continue
            if name not in self.model.schemas:
                if skip_missing:
                    logger.warning("Referenced schema '%s' does not exist", name)
                    continue
                raise SchemaNotFoundError(name, self.model.source)
            processed[name] = None
            deps = self.direct_dependencies(name, strict=not skip_missing)
            for dep in reversed(deps):
                if dep not in processed:
                    work.append(dep)
        return list(processed)

    def detect_cycles(self) -> list[list[str]]:
        """Find reference cycles, each reported once starting at its smallest name."""
        cycles: dict[tuple[str, ...], None] = {}
        state: dict[str, int] = {}
        stack: list[str] = []

        def visit(name: str) -> None:
            state[name] = 1
            stack.append(name)
            for dep in self.direct_dependencies(name, strict=False):
                if dep not in self.model.schemas:
                    continue
                if state.get(dep) == 1:
                    cycle = stack[stack.index(dep):]
                    pivot = cycle.index(min(cycle))
                    cycles.setdefault(tuple(cycle[pivot:] + cycle[:pivot]), None)
                elif dep not in state:
                    visit(dep)
            stack.pop()
            state[name] = 2

        for name in self.model.schemas:
            if name not in state:
                visit(name)
        for cycle in cycles:
            self.circular.update(cycle)
        return [list(cycle) for cycle in cycles]

    def topological_order(self, names: Iterable[str]) -> list[str]:
        """Order names so dependencies precede dependents; cycles are ignored."""
        wanted = list(dict.fromkeys(names))
        members = set(wanted)
        ordered: list[str] = []
        temporary: set[str] = set()
        permanent: set[str] = set()

        def visit(n: str) -> None:
            if n in permanent or n in temporary:
                return
            temporary.add(n)
            if n in self.model.schemas:
                for d in self.direct_dependencies(n, strict=False):
                    if d in members:
                        visit(d)
            temporary.discard(n)
            permanent.add(n)
            ordered.append(n)

        for n in wanted:
            visit(n)
        return ordered
