"""Assign schemas to output modules and factor out the shared ones."""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from ..shared.errors import ModuleSelectionError
from ..shared.log import get_logger
from .model import SpecModel
from .resolver import DependencyGraph

logger = get_logger(__name__)

ModuleSchemaMap = dict[str, list[str]]


def build_module_schema_map(model: SpecModel, graph: DependencyGraph) -> ModuleSchemaMap:
    """Map every module to the closure of the schemas its operations reference."""
    module_map: ModuleSchemaMap = {}
    for module in model.modules:
        roots: dict[str, None] = {}
        for op in model.operations_for(module):
            for name in op.referenced_schemas:
                roots.setdefault(name, None)
        module_map[module] = graph.collect_all_dependencies(roots, skip_missing=True)
    return module_map


def partition(
    module_schema_map: Mapping[str, Sequence[str]],
    selected_modules: Iterable[str],
) -> tuple[ModuleSchemaMap, list[str]]:
    """Split schemas used by two or more selected modules into a common set.

    Args:
        module_schema_map: Closed schema lists per module.
        selected_modules: Modules taking part in this run. Order and
            duplicates do not matter.

    Returns:
        A filtered copy of the map and the sorted common schema names. With
        fewer than two selected modules the copy equals the input and the
        common list is empty.
    """
    filtered: ModuleSchemaMap = {module: list(names) for module, names in module_schema_map.items()}
    selected = {module for module in selected_modules if module in module_schema_map}
    if len(selected) < 2:
        return filtered, []

    usage: dict[str, int] = {}
    for module in selected:
        for name in set(module_schema_map[module]):
            usage[name] = usage.get(name, 0) + 1
    common = sorted(name for name, count in usage.items() if count >= 2)

    common_set = set(common)
    for module in selected:
        filtered[module] = [name for name in filtered[module] if name not in common_set]
    return filtered, common


def select_modules(
    available: Sequence[str],
    selected: Sequence[str] = (),
    ignore: Sequence[str] = (),
) -> list[str]:
    """Resolve the configured module selection against the spec's modules.

    Raises:
        ModuleSelectionError: If nothing is left to generate.
    """
    ignored = set(ignore)
    remaining = [module for module in available if module not in ignored]
    if not remaining:
        raise ModuleSelectionError("No modules available after applying the ignore list")
    if not selected:
        return remaining

    valid = [module for module in dict.fromkeys(selected) if module in remaining]
    unknown = [module for module in selected if module not in remaining]
    if unknown:
        logger.warning("Ignoring unknown or ignored modules: %s", ", ".join(unknown))
    if not valid:
        raise ModuleSelectionError(
            f"None of the selected modules exist (available: {', '.join(remaining)})"
        )
    return valid
