"""Client functions, query-parameter types, cache keys and hooks for operations."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, field
from typing import Any, Final, Iterable

from ..shared.errors import SchemaError
from ..shared.log import get_logger
from ..shared.naming import (
    property_key,
    sanitize_field_name,
    singularize,
    to_camel_case,
    to_pascal_case,
)
from .enums import EnumRegistry
from .layout import (
    BANNER,
    COMMON_NAMESPACE,
    OutputLayout,
    module_namespace,
    relative_import,
    schema_import_path,
)
from .model import OperationDescriptor, Parameter, Primitive, PrimitiveKind, SchemaNode, SpecModel
from .rendering import ArtifactKind, GeneratedArtifact, TemplateId, TemplateRenderer
from .ts_types import ESCAPE_TYPE, TypeEmitter
from .zod import ESCAPE_VALIDATOR, ValidatorEmitter

logger = get_logger(__name__)

QUERY_METHODS: Final[frozenset[str]] = frozenset({"GET", "HEAD"})
BODY_METHODS: Final[frozenset[str]] = frozenset({"POST", "PUT", "PATCH", "DELETE"})

METHOD_PREFIXES: Final[dict[str, str]] = {
    "GET": "get",
    "POST": "create",
    "PUT": "update",
    "PATCH": "patch",
    "DELETE": "delete",
}

HOOK_LIBRARIES: Final[tuple[str, ...]] = ("react-query", "swr")

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")
_RESERVED_ARGUMENTS: Final[frozenset[str]] = frozenset({"body", "query", "options", "config"})


def operation_function_name(descriptor: OperationDescriptor) -> str:
    """Derive a camelCase function name for an operation.

    Examples:
        >>> operation_function_name(OperationDescriptor(method="GET", path="/products/{id}"))
        'getProductById'
        >>> operation_function_name(OperationDescriptor(method="POST", path="/users"))
        'createUsers'
    """
    if descriptor.operation_id:
        name = to_camel_case(descriptor.operation_id)
        if name:
            return sanitize_field_name(name)

    segments = [s for s in descriptor.path.strip("/").split("/") if s]
    resources = [s for s in segments if not _PLACEHOLDER.fullmatch(s)]
    prefix = METHOD_PREFIXES.get(descriptor.method, descriptor.method.lower())
    if not resources:
        return prefix

    resource = to_pascal_case(resources[-1])
    if "{" in descriptor.path:
        return to_camel_case(f"{prefix}{singularize(resource)}ById")
    return to_camel_case(f"{prefix}{resource}")


def _ensure_unique(base: str, used: dict[str, int]) -> str:
    """Make a function name unique within a module by appending a counter."""
    if base not in used:
        used[base] = 1
        return base
    used[base] += 1
    return f"{base}{used[base]}"


def preferred_response(responses: dict[str, SchemaNode | None]) -> SchemaNode | None:
    """Pick the success response: 200, then 201, then the first other 2xx."""
    for status in ("200", "201"):
        if responses.get(status) is not None:
            return responses[status]
    for status, node in responses.items():
        if len(status) == 3 and status.startswith("2") and node is not None:
            return node
    return None


def _escape_template_literal(value: str) -> str:
    return value.replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${")


@dataclass(frozen=True, slots=True)
class Argument:
    name: str
    type: str
    required: bool = True
    location: str = "path"

    @property
    def declaration(self) -> str:
        return f"{self.name}{'' if self.required else '?'}: {self.type}"


@dataclass(slots=True)
class EmittedOperation:
    """Everything produced for one operation."""

    function_name: str
    hook_name: str
    method: str
    path: str
    is_query: bool
    function: GeneratedArtifact
    response_types: list[GeneratedArtifact]
    response_type: str
    arguments: list[Argument]
    key_entry: dict[str, Any]
    uses_query: bool = False
    namespaces: set[str] = field(default_factory=set)
    key_namespaces: set[str] = field(default_factory=set)
    hook: GeneratedArtifact | None = None


class OperationEmitter:
    """Emits the API surface of one module.

    Types that operations need (query-parameter interfaces, inline enums) are
    declared through the module's type and validator emitters, so they land in
    the module's schema files and are referenced here through its namespace.
    """

    def __init__(
        self,
        model: SpecModel,
        registry: EnumRegistry,
        renderer: TemplateRenderer,
        *,
        module: str,
        layout: OutputLayout,
        type_emitter: TypeEmitter,
        validator_emitter: ValidatorEmitter,
        common_schemas: Iterable[str] = (),
        hook_library: str | None = None,
        base_url: str = "",
    ) -> None:
        if hook_library is not None and hook_library not in HOOK_LIBRARIES:
            raise ValueError(f"Unsupported hook library '{hook_library}'")
        self.model = model
        self.registry = registry
        self.renderer = renderer
        self.module = module
        self.layout = layout
        self.types = type_emitter
        self.validators = validator_emitter
        self.common_schemas = frozenset(common_schemas)
        self.hook_library = hook_library
        self.base_url = base_url.rstrip("/")
        self.namespace = module_namespace(module)
        self._used_names: dict[str, int] = {}

    @property
    def keys_name(self) -> str:
        return f"{to_camel_case(self.namespace)}Keys"

    def emit_operation(self, descriptor: OperationDescriptor) -> EmittedOperation:
        """Emit the client function (and derived artifacts) for one operation.

        A field that cannot be resolved degrades to ``any`` with a warning;
        the operation itself is always emitted.
        """
        function_name = _ensure_unique(operation_function_name(descriptor), self._used_names)
        pascal = to_pascal_case(function_name)
        is_query = descriptor.method in QUERY_METHODS

        # Namespaces used by cache-key parameters are a subset of the rest
        key_namespaces: set[str] = set()
        path_args = self._path_arguments(descriptor, pascal, key_namespaces)
        namespaces = set(key_namespaces)
        arguments = list(path_args)

        body_arg: Argument | None = None
        if descriptor.method in BODY_METHODS and descriptor.request_body is not None:
            body_type = self._api_type(descriptor.request_body, f"{pascal}Request", namespaces, descriptor)
            body_arg = Argument("body", body_type, required=True, location="body")
            arguments.append(body_arg)

        query_arg: Argument | None = None
        if is_query and descriptor.query_params:
            query_arg = self._query_argument(descriptor, pascal)
            arguments.append(query_arg)
            namespaces.add(self.namespace)
            key_namespaces.add(self.namespace)

        response_node = preferred_response(descriptor.responses)
        if response_node is None:
            response_type = ESCAPE_TYPE
        else:
            response_type = self._api_type(response_node, f"{pascal}Response", namespaces, descriptor)

        alias = GeneratedArtifact(
            name=f"{pascal}Response",
            content=self.renderer.render(TemplateId.TYPE_ALIAS, {
                "name": f"{pascal}Response",
                "type": response_type,
                "description": None,
            }).rstrip("\n"),
        )

        call_args = ["url"] if body_arg is None else ["url", body_arg.name]
        call = f"http.{descriptor.method.lower()}<{response_type}>({', '.join(call_args)})"

        function = GeneratedArtifact(
            name=function_name,
            content=self.renderer.render(TemplateId.API_CLIENT_FETCH, {
                "name": function_name,
                "summary": descriptor.summary,
                "deprecated": descriptor.deprecated,
                "arguments": [arg.declaration for arg in arguments],
                "response_type": response_type,
                "url": self._url(descriptor, path_args),
                "has_query": query_arg is not None,
                "call": call,
            }).rstrip("\n"),
            kind=ArtifactKind.FUNCTION,
        )

        key_params = [arg.declaration for arg in path_args]
        key_args = [arg.name for arg in path_args]
        if query_arg is not None:
            key_params.append(query_arg.declaration)
            key_args.append(query_arg.name)

        emitted = EmittedOperation(
            function_name=function_name,
            hook_name=f"use{pascal}",
            method=descriptor.method,
            path=descriptor.path,
            is_query=is_query,
            function=function,
            response_types=[alias],
            response_type=response_type,
            arguments=arguments,
            key_entry={"name": function_name, "params": key_params, "args": key_args},
            uses_query=query_arg is not None,
            namespaces=namespaces,
            key_namespaces=key_namespaces,
        )
        if self.hook_library is not None:
            emitted.hook = self._hook(emitted, path_args, body_arg, query_arg)
        return emitted

    def _api_type(
        self,
        node: SchemaNode,
        parent: str,
        namespaces: set[str],
        descriptor: OperationDescriptor,
        prop: str | None = None,
    ) -> str:
        try:
            expression, used = self.types.qualified_expression(
                node, namespace=self.namespace, parent=parent, prop=prop,
            )
        except SchemaError as exc:
            logger.warning("%s %s: %s, using %s", descriptor.method, descriptor.path, exc, ESCAPE_TYPE)
            return ESCAPE_TYPE
        # Declares the validator side of anything the type needed (inline enums).
        # The expression itself is unused, so it must not pull in the common import.
        uses_common = self.validators.uses_common
        try:
            self.validators.expression(node, parent=parent, prop=prop)
        except SchemaError as exc:
            logger.warning("%s %s: validator for %s: %s", descriptor.method, descriptor.path, parent, exc)
        finally:
            self.validators.uses_common = uses_common
        namespaces.update(used)
        return expression

    def _path_arguments(
        self,
        descriptor: OperationDescriptor,
        pascal: str,
        namespaces: set[str],
    ) -> list[Argument]:
        declared = {param.name: param for param in descriptor.path_params}
        arguments: list[Argument] = []
        for placeholder in dict.fromkeys(_PLACEHOLDER.findall(descriptor.path)):
            param = declared.get(placeholder)
            if param is None:
                param = Parameter(name=placeholder, location="path", required=True,
                                  schema=Primitive(PrimitiveKind.STRING))
            arg_type = self._api_type(param.schema, pascal, namespaces, descriptor, prop=param.name)
            arguments.append(Argument(self._argument_name(param.name), arg_type))
        return arguments

    @staticmethod
    def _argument_name(raw: str) -> str:
        name = sanitize_field_name(raw)
        return f"{name}Param" if name in _RESERVED_ARGUMENTS else name

    def _url(self, descriptor: OperationDescriptor, path_args: list[Argument]) -> str:
        names = iter(arg.name for arg in path_args)
        mapping = {p: next(names) for p in dict.fromkeys(_PLACEHOLDER.findall(descriptor.path))}
        parts = []
        last = 0
        for match in _PLACEHOLDER.finditer(descriptor.path):
            parts.append(_escape_template_literal(descriptor.path[last:match.start()]))
            parts.append(f"${{encodeURIComponent(String({mapping[match.group(1)]}))}}")
            last = match.end()
        parts.append(_escape_template_literal(descriptor.path[last:]))
        return _escape_template_literal(self.base_url) + "".join(parts)

    def _query_argument(self, descriptor: OperationDescriptor, pascal: str) -> Argument:
        """Declare ``<Op>QueryParams`` and its schema, and return the query argument."""
        type_fields = []
        validator_fields = []
        for param in descriptor.query_params:
            try:
                type_field = self.types.field(param.name, param.schema, required=param.required, parent=pascal)
            except SchemaError as exc:
                logger.warning("%s %s: query parameter '%s': %s", descriptor.method, descriptor.path, param.name, exc)
                type_field = {
                    "key": property_key(param.name),
                    "type": ESCAPE_TYPE,
                    "optional": not param.required,
                    "description": param.description,
                }
            if param.description and not type_field["description"]:
                type_field["description"] = param.description
            type_fields.append(type_field)

            try:
                expression = self.validators.expression(param.schema, parent=pascal, prop=param.name)
            except SchemaError:
                expression = ESCAPE_VALIDATOR
            validator_fields.append({
                "key": property_key(param.name),
                "expression": expression,
                "optional": not param.required,
            })

        type_name = f"{pascal}QueryParams"
        self.types.declare_interface(type_name, type_fields)
        self.validators.declare_object(f"{type_name}Schema", validator_fields)
        required = any(param.required for param in descriptor.query_params)
        return Argument("query", f"{self.namespace}.{type_name}", required=required, location="query")

    def _imports(self, current_dir: str, namespaces: set[str]) -> list[dict[str, str]]:
        imports = []
        if COMMON_NAMESPACE in namespaces:
            imports.append({
                "namespace": COMMON_NAMESPACE,
                "path": schema_import_path(current_dir, None, self.layout),
            })
        if self.namespace in namespaces:
            imports.append({
                "namespace": self.namespace,
                "path": schema_import_path(current_dir, self.module, self.layout),
            })
        return imports

    def _hook(
        self,
        emitted: EmittedOperation,
        path_args: list[Argument],
        body_arg: Argument | None,
        query_arg: Argument | None,
    ) -> GeneratedArtifact:
        hooks_dir = self.layout.hooks_module_dir(self.module)
        context: dict[str, Any] = {
            "banner": BANNER,
            "function_name": emitted.function_name,
            "hook_name": emitted.hook_name,
            "api_import": relative_import(hooks_dir, self.layout.apis_module_dir(self.module)),
            "keys_name": self.keys_name,
            "keys_import": relative_import(hooks_dir, self.layout.query_keys_file(self.module)),
            "imports": self._imports(hooks_dir, emitted.namespaces),
            "response_type": emitted.response_type,
        }
        path_names = [arg.name for arg in path_args]

        if emitted.is_query:
            params = [arg.declaration for arg in path_args]
            args = list(path_names)
            if query_arg is not None:
                params.append(query_arg.declaration)
                args.append(query_arg.name)
            context.update(params=params, args=args)
            template = (
                TemplateId.HOOK_REACT_QUERY_QUERY
                if self.hook_library == "react-query"
                else TemplateId.HOOK_SWR_QUERY
            )
        else:
            variables_type = body_arg.type if body_arg is not None else "void"
            context.update(params=[arg.declaration for arg in path_args], variables_type=variables_type)
            if self.hook_library == "react-query":
                template = TemplateId.HOOK_REACT_QUERY_MUTATION
                context["variables_param"] = body_arg.name if body_arg is not None else ""
                context["args"] = path_names + ([body_arg.name] if body_arg is not None else [])
            else:
                template = TemplateId.HOOK_SWR_MUTATION
                context["key_args"] = path_names
                context["swr_variables_param"] = "_key, { arg }" if body_arg is not None else ""
                context["args"] = path_names + (["arg"] if body_arg is not None else [])

        return GeneratedArtifact(
            name=emitted.hook_name,
            content=self.renderer.render(template, context),
            kind=ArtifactKind.HOOK,
        )

    def query_keys_file(self, operations: list[EmittedOperation]) -> str:
        """Render the module's cache-key factory file."""
        keys_dir = posixpath.dirname(self.layout.query_keys_file(self.module)) or "."
        namespaces: set[str] = set()
        for op in operations:
            namespaces.update(op.key_namespaces)
        return self.renderer.render(TemplateId.QUERY_KEYS, {
            "banner": BANNER,
            "imports": self._imports(keys_dir, namespaces),
            "keys_name": self.keys_name,
            "module_key": self.module,
            "entries": [op.key_entry for op in operations],
        })

    def api_file(self, operations: list[EmittedOperation]) -> str:
        """Render the module's API client file."""
        apis_dir = self.layout.apis_module_dir(self.module)
        namespaces: set[str] = set()
        for op in operations:
            namespaces.update(op.namespaces)
        return self.renderer.render(TemplateId.FILE_API, {
            "banner": BANNER,
            "uses_query": any(op.uses_query for op in operations),
            "http_import": relative_import(apis_dir, self.layout.http_client_file()),
            "imports": self._imports(apis_dir, namespaces),
            "response_types": [a.content for op in operations for a in op.response_types],
            "functions": [op.function.content for op in operations],
        })

    def hooks_index_file(self, operations: list[EmittedOperation]) -> str:
        return self.renderer.render(TemplateId.FILE_HOOKS_INDEX, {
            "banner": BANNER,
            "hooks": [op.hook_name for op in operations if op.hook is not None],
        })


