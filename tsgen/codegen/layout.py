"""Where generated files go and how they import each other."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Final

from ..shared.naming import sanitize_module_name, to_identifier

COMMON_MODULE: Final[str] = "common"
COMMON_NAMESPACE: Final[str] = "Common"
HTTP_CLIENT_FILE: Final[str] = "http.ts"
BANNER: Final[str] = "// This file is generated by tsgen. Do not edit it by hand."


def module_dir_name(module: str) -> str:
    """Directory segment for a module; never collides with the common module."""
    name = sanitize_module_name(module)
    return f"{name}-module" if name == COMMON_MODULE else name


def module_namespace(module: str) -> str:
    """Namespace identifier a module's schemas are imported under."""
    name = to_identifier(module, fallback="Default")
    return f"{name}Module" if name == COMMON_NAMESPACE else name


def relative_import(from_dir: str, target: str) -> str:
    """Relative import specifier from a directory to a file or directory (no extension)."""
    if target.endswith(".ts"):
        target = target[:-3]
    rel = posixpath.relpath(target, from_dir)
    if not rel.startswith("."):
        rel = f"./{rel}"
    return rel


@dataclass(frozen=True, slots=True)
class OutputLayout:
    """Output roots for one spec.

    ``spec_name`` is only set in multi-spec runs; it adds a directory segment
    under every root.
    """

    schemas_dir: str = "src/schemas"
    apis_dir: str = "src/apis"
    hooks_dir: str = "src/hooks"
    query_keys_dir: str = "src/query-keys"
    spec_name: str | None = None

    def _nest(self, root: str, *parts: str) -> str:
        segments = [root]
        if self.spec_name:
            segments.append(sanitize_module_name(self.spec_name))
        segments.extend(parts)
        return posixpath.normpath(posixpath.join(*segments))

    def common_dir(self) -> str:
        return self._nest(self.schemas_dir, COMMON_MODULE)

    def schemas_module_dir(self, module: str) -> str:
        return self._nest(self.schemas_dir, module_dir_name(module))

    def apis_module_dir(self, module: str) -> str:
        return self._nest(self.apis_dir, module_dir_name(module))

    def hooks_module_dir(self, module: str) -> str:
        return self._nest(self.hooks_dir, module_dir_name(module))

    def query_keys_file(self, module: str) -> str:
        return self._nest(self.query_keys_dir, f"{module_dir_name(module)}.ts")

    def http_client_file(self) -> str:
        return posixpath.normpath(posixpath.join(self.apis_dir, HTTP_CLIENT_FILE))


def schema_import_path(current_dir: str, target_module: str | None, layout: OutputLayout) -> str:
    """Import specifier for a module's schemas, or the common schemas when
    ``target_module`` is None.

    Examples:
        >>> schema_import_path("src/schemas/users", None, OutputLayout())
        '../common'
        >>> schema_import_path("src/apis/shop/users", "users", OutputLayout(spec_name="shop"))
        '../../../schemas/shop/users'
    """
    if target_module is None:
        return relative_import(current_dir, layout.common_dir())
    return relative_import(current_dir, layout.schemas_module_dir(target_module))
