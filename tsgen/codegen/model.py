"""In-memory model of a parsed OpenAPI document.

Schemas are lowered into a closed set of node variants so every emitter can
dispatch on them exhaustively and degrade anything else to the escape type.
References stay unresolved in the tree; they are resolved lazily through
``SpecModel.resolve_ref`` so a broken reference only affects the schema that
contains it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final, Iterator, Union
from urllib.parse import unquote

from ..shared.errors import SchemaNotFoundError, UnsupportedReferenceError
from ..shared.log import get_logger

logger = get_logger(__name__)

HTTP_METHODS: Final[tuple[str, ...]] = (
    "get", "post", "put", "patch", "delete", "head", "options",
)

SCHEMA_REF_PREFIXES: Final[tuple[str, ...]] = (
    "#/components/schemas/",
    "#/definitions/",
)

JSON_MEDIA_TYPES: Final[tuple[str, ...]] = ("application/json", "*/*")

DEFAULT_MODULE: Final[str] = "default"


class PrimitiveKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"


@dataclass(frozen=True, slots=True)
class Constraints:
    """Validation keywords carried by leaf and array schemas."""

    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    format: str | None = None
    minimum: float | None = None
    maximum: float | None = None
    exclusive_minimum: float | None = None
    exclusive_maximum: float | None = None
    multiple_of: float | None = None
    min_items: int | None = None
    max_items: int | None = None


@dataclass(frozen=True, slots=True)
class Primitive:
    kind: PrimitiveKind
    constraints: Constraints = field(default_factory=Constraints)
    nullable: bool = False
    description: str | None = None


@dataclass(frozen=True, slots=True)
class ArrayNode:
    items: SchemaNode
    constraints: Constraints = field(default_factory=Constraints)
    nullable: bool = False
    description: str | None = None


@dataclass(frozen=True, slots=True)
class Property:
    name: str
    schema: SchemaNode
    required: bool = False
    nullable: bool = False


@dataclass(frozen=True, slots=True)
class ObjectNode:
    """Object schema.

    ``additional`` holds the ``additionalProperties`` schema when one is
    declared (``UnknownNode`` for ``true``), otherwise None.
    """

    properties: tuple[Property, ...] = ()
    additional: SchemaNode | None = None
    nullable: bool = False
    description: str | None = None


@dataclass(frozen=True, slots=True)
class EnumNode:
    values: tuple[str, ...]
    nullable: bool = False
    description: str | None = None


@dataclass(frozen=True, slots=True)
class OneOfNode:
    variants: tuple[SchemaNode, ...]
    nullable: bool = False
    description: str | None = None


@dataclass(frozen=True, slots=True)
class AnyOfNode:
    variants: tuple[SchemaNode, ...]
    nullable: bool = False
    description: str | None = None


@dataclass(frozen=True, slots=True)
class AllOfNode:
    members: tuple[SchemaNode, ...]
    nullable: bool = False
    description: str | None = None


@dataclass(frozen=True, slots=True)
class RefNode:
    ref: str
    nullable: bool = False
    description: str | None = None

    @property
    def target(self) -> str | None:
        """Schema name the reference points at, or None for unsupported pointers."""
        return ref_name(self.ref)


@dataclass(frozen=True, slots=True)
class UnknownNode:
    """Shape that cannot be modeled; every emitter lowers it to ``any``."""

    nullable: bool = False
    description: str | None = None


SchemaNode = Union[
    Primitive,
    ArrayNode,
    ObjectNode,
    EnumNode,
    OneOfNode,
    AnyOfNode,
    AllOfNode,
    RefNode,
    UnknownNode,
]


def ref_name(ref: str) -> str | None:
    """Return the schema name of a local schema pointer.

    Examples:
        >>> ref_name("#/components/schemas/User")
        'User'
        >>> ref_name("#/components/parameters/Limit") is None
        True
    """
    for prefix in SCHEMA_REF_PREFIXES:
        if ref.startswith(prefix):
            name = ref[len(prefix):]
            if not name or "/" in name:
                return None
            return unquote(name).replace("~1", "/").replace("~0", "~")
    return None


def iter_refs(node: SchemaNode) -> Iterator[RefNode]:
    """Yield every reference reachable inside a node without following refs."""
    if isinstance(node, RefNode):
        yield node
    elif isinstance(node, ArrayNode):
        yield from iter_refs(node.items)
    elif isinstance(node, ObjectNode):
        for prop in node.properties:
            yield from iter_refs(prop.schema)
        if node.additional is not None:
            yield from iter_refs(node.additional)
    elif isinstance(node, (OneOfNode, AnyOfNode)):
        for variant in node.variants:
            yield from iter_refs(variant)
    elif isinstance(node, AllOfNode):
        for member in node.members:
            yield from iter_refs(member)


def _is_nullable(data: dict[str, Any]) -> bool:
    if data.get("nullable") is True or data.get("x-nullable") is True:
        return True
    type_ = data.get("type")
    if isinstance(type_, list) and "null" in type_:
        return True
    enum = data.get("enum")
    return isinstance(enum, list) and None in enum


def _schema_type(data: dict[str, Any]) -> str | None:
    type_ = data.get("type")
    if isinstance(type_, list):
        non_null = [t for t in type_ if t != "null"]
        return non_null[0] if len(non_null) == 1 else None
    return type_ if isinstance(type_, str) else None


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _integer(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _constraints(data: dict[str, Any]) -> Constraints:
    minimum = _number(data.get("minimum"))
    maximum = _number(data.get("maximum"))
    exclusive_minimum = _number(data.get("exclusiveMinimum"))
    exclusive_maximum = _number(data.get("exclusiveMaximum"))
    # OpenAPI 3.0 spells exclusivity as a flag on minimum/maximum
    if data.get("exclusiveMinimum") is True and minimum is not None:
        exclusive_minimum, minimum = minimum, None
    if data.get("exclusiveMaximum") is True and maximum is not None:
        exclusive_maximum, maximum = maximum, None
    pattern = data.get("pattern")
    fmt = data.get("format")
    return Constraints(
        min_length=_integer(data.get("minLength")),
        max_length=_integer(data.get("maxLength")),
        pattern=pattern if isinstance(pattern, str) else None,
        format=fmt if isinstance(fmt, str) else None,
        minimum=minimum,
        maximum=maximum,
        exclusive_minimum=exclusive_minimum,
        exclusive_maximum=exclusive_maximum,
        multiple_of=_number(data.get("multipleOf")),
        min_items=_integer(data.get("minItems")),
        max_items=_integer(data.get("maxItems")),
    )


def parse_schema(data: Any) -> SchemaNode:
    """Lower a raw schema mapping into a SchemaNode."""
    if not isinstance(data, dict):
        return UnknownNode()

    nullable = _is_nullable(data)
    description = data.get("description") if isinstance(data.get("description"), str) else None

    if "$ref" in data:
        return RefNode(ref=str(data["$ref"]), nullable=nullable, description=description)

    for keyword, node_type in (("allOf", AllOfNode), ("oneOf", OneOfNode), ("anyOf", AnyOfNode)):
        members = data.get(keyword)
        if isinstance(members, list) and members:
            parsed = tuple(parse_schema(member) for member in members)
            return node_type(parsed, nullable=nullable, description=description)

    type_ = _schema_type(data)

    enum = data.get("enum")
    if isinstance(enum, list):
        values = [v for v in enum if v is not None]
        if values and all(isinstance(v, str) for v in values):
            return EnumNode(tuple(values), nullable=nullable, description=description)

    if type_ == "array" or (type_ is None and "items" in data):
        return ArrayNode(
            items=parse_schema(data.get("items")),
            constraints=_constraints(data),
            nullable=nullable,
            description=description,
        )

    if type_ == "object" or (
        type_ is None and ("properties" in data or "additionalProperties" in data)
    ):
        raw_required = data.get("required")
        required = set(raw_required) if isinstance(raw_required, list) else set()
        raw_props = data.get("properties")
        properties: list[Property] = []
        if isinstance(raw_props, dict):
            for prop_name, prop_data in raw_props.items():
                node = parse_schema(prop_data)
                properties.append(Property(
                    name=str(prop_name),
                    schema=node,
                    required=prop_name in required,
                    nullable=node.nullable,
                ))
        raw_additional = data.get("additionalProperties")
        additional: SchemaNode | None = None
        if isinstance(raw_additional, dict):
            additional = parse_schema(raw_additional)
        elif raw_additional is True:
            additional = UnknownNode()
        return ObjectNode(
            properties=tuple(properties),
            additional=additional,
            nullable=nullable,
            description=description,
        )

    if type_ in {kind.value for kind in PrimitiveKind}:
        return Primitive(
            kind=PrimitiveKind(type_),
            constraints=_constraints(data),
            nullable=nullable,
            description=description,
        )

    return UnknownNode(nullable=nullable, description=description)


@dataclass(frozen=True, slots=True)
class Parameter:
    name: str
    location: str
    required: bool = False
    schema: SchemaNode = field(default_factory=UnknownNode)
    description: str | None = None


@dataclass(frozen=True, slots=True)
class OperationDescriptor:
    """One HTTP operation, derived once at parse time."""

    method: str
    path: str
    tags: tuple[str, ...] = ()
    operation_id: str | None = None
    summary: str | None = None
    description: str | None = None
    parameters: tuple[Parameter, ...] = ()
    request_body: SchemaNode | None = None
    request_body_required: bool = False
    responses: dict[str, SchemaNode | None] = field(default_factory=dict, hash=False)
    deprecated: bool = False
    referenced_schemas: tuple[str, ...] = ()

    @property
    def modules(self) -> tuple[str, ...]:
        return self.tags or (DEFAULT_MODULE,)

    @property
    def path_params(self) -> tuple[Parameter, ...]:
        return tuple(p for p in self.parameters if p.location == "path")

    @property
    def query_params(self) -> tuple[Parameter, ...]:
        return tuple(p for p in self.parameters if p.location == "query")


@dataclass
class SpecModel:
    """Schemas by name plus operations grouped by tag."""

    title: str = ""
    version: str = ""
    schemas: dict[str, SchemaNode] = field(default_factory=dict)
    operations: list[OperationDescriptor] = field(default_factory=list)
    declared_tags: list[str] = field(default_factory=list)
    source: str | None = None

    @property
    def modules(self) -> list[str]:
        """Modules that own at least one operation, declared tags first."""
        used: dict[str, None] = {}
        for op in self.operations:
            for module in op.modules:
                used.setdefault(module, None)
        ordered = [tag for tag in self.declared_tags if tag in used]
        ordered.extend(module for module in used if module not in ordered)
        return ordered

    def operations_for(self, module: str) -> list[OperationDescriptor]:
        return [op for op in self.operations if module in op.modules]

    def schema(self, name: str) -> SchemaNode:
        """Look up a schema by name.

        Raises:
            SchemaNotFoundError: If no schema has that name.
        """
        try:
            return self.schemas[name]
        except KeyError:
            raise SchemaNotFoundError(name, self.source) from None

    def resolve_ref(self, node: RefNode) -> tuple[str, SchemaNode]:
        """Resolve a reference to its schema name and node.

        Raises:
            UnsupportedReferenceError: For pointers outside the schema table.
            SchemaNotFoundError: If the named schema does not exist.
        """
        name = node.target
        if name is None:
            raise UnsupportedReferenceError(node.ref, self.source)
        return name, self.schema(name)

    @classmethod
    def from_dict(cls, document: dict[str, Any], source: str | None = None) -> SpecModel:
        """Build a model from a parsed OpenAPI 3.x or Swagger 2.0 document."""
        info = document.get("info") if isinstance(document.get("info"), dict) else {}
        components = document.get("components")
        components = components if isinstance(components, dict) else {}

        raw_schemas: dict[str, Any] = {}
        for table in (document.get("definitions"), components.get("schemas")):
            if isinstance(table, dict):
                raw_schemas.update(table)
        schemas = {str(name): parse_schema(data) for name, data in raw_schemas.items()}

        declared_tags: list[str] = []
        raw_tags = document.get("tags")
        if isinstance(raw_tags, list):
            declared_tags = [
                str(tag["name"])
                for tag in raw_tags
                if isinstance(tag, dict) and tag.get("name")
            ]

        parser = _OperationParser(document, components, source)
        return cls(
            title=str(info.get("title", "")),
            version=str(info.get("version", "")),
            schemas=schemas,
            operations=parser.parse_all(),
            declared_tags=declared_tags,
            source=source,
        )


class _OperationParser:
    """Extracts OperationDescriptors from the ``paths`` table."""

    def __init__(self, document: dict[str, Any], components: dict[str, Any], source: str | None) -> None:
        self.document = document
        self.components = components
        self.source = source

    def _follow(self, data: Any, section: str) -> dict[str, Any] | None:
        """Follow one level of ``#/components/<section>/<name>`` indirection."""
        if not isinstance(data, dict):
            return None
        ref = data.get("$ref")
        if not isinstance(ref, str):
            return data
        tables = (
            (f"#/components/{section}/", self.components.get(section)),
            (f"#/{section}/", self.document.get(section)),
        )
        for prefix, table in tables:
            if ref.startswith(prefix) and isinstance(table, dict):
                target = table.get(ref[len(prefix):])
                if isinstance(target, dict):
                    return target
        logger.warning("Could not resolve %s reference '%s'", section, ref)
        return None

    @staticmethod
    def _json_schema(content: Any) -> SchemaNode | None:
        if not isinstance(content, dict):
            return None
        for media_type, media in content.items():
            if not isinstance(media, dict):
                continue
            if media_type in JSON_MEDIA_TYPES or str(media_type).endswith("+json"):
                if "schema" in media:
                    return parse_schema(media["schema"])
        return None

    def _parameters(self, raw_params: list[Any]) -> tuple[list[Parameter], SchemaNode | None, bool]:
        params: dict[tuple[str, str], Parameter] = {}
        body: SchemaNode | None = None
        body_required = False
        for raw in raw_params:
            data = self._follow(raw, "parameters")
            if data is None or not data.get("name") or not data.get("in"):
                continue
            location = str(data["in"])
            if location == "body":
                # Swagger 2.0 request body
                body = parse_schema(data.get("schema"))
                body_required = bool(data.get("required"))
                continue
            schema_data = data.get("schema")
            if schema_data is None and "type" in data:
                # Swagger 2.0 puts the type on the parameter itself
                schema_data = {
                    key: value
                    for key, value in data.items()
                    if key not in {"name", "in", "required", "description"}
                }
            param = Parameter(
                name=str(data["name"]),
                location=location,
                required=bool(data.get("required")) or location == "path",
                schema=parse_schema(schema_data),
                description=data.get("description") if isinstance(data.get("description"), str) else None,
            )
            params[(param.name, param.location)] = param
        return list(params.values()), body, body_required

    def _responses(self, raw: Any) -> dict[str, SchemaNode | None]:
        responses: dict[str, SchemaNode | None] = {}
        if not isinstance(raw, dict):
            return responses
        for status, response in raw.items():
            data = self._follow(response, "responses")
            if data is None:
                responses[str(status)] = None
                continue
            schema = self._json_schema(data.get("content"))
            if schema is None and "schema" in data:
                schema = parse_schema(data["schema"])
            responses[str(status)] = schema
        return responses

    def parse_all(self) -> list[OperationDescriptor]:
        operations: list[OperationDescriptor] = []
        paths = self.document.get("paths")
        if not isinstance(paths, dict):
            return operations

        for path, path_item in paths.items():
            if not isinstance(path_item, dict):
                continue
            path_level = path_item.get("parameters")
            path_level = path_level if isinstance(path_level, list) else []
            for method in HTTP_METHODS:
                details = path_item.get(method)
                if not isinstance(details, dict):
                    continue
                operations.append(self._operation(str(path), method, details, path_level))
        return operations

    def _operation(
        self,
        path: str,
        method: str,
        details: dict[str, Any],
        path_level: list[Any],
    ) -> OperationDescriptor:
        op_level = details.get("parameters")
        op_level = op_level if isinstance(op_level, list) else []
        parameters, body, body_required = self._parameters(path_level + op_level)

        request_body = self._follow(details.get("requestBody"), "requestBodies")
        if request_body is not None:
            body = self._json_schema(request_body.get("content"))
            body_required = bool(request_body.get("required"))

        responses = self._responses(details.get("responses"))

        referenced: dict[str, None] = {}
        nodes = [body, *responses.values(), *(p.schema for p in parameters)]
        for node in nodes:
            if node is None:
                continue
            for ref in iter_refs(node):
                if ref.target is not None:
                    referenced.setdefault(ref.target, None)

        tags = details.get("tags")
        operation_id = details.get("operationId")
        return OperationDescriptor(
            method=method.upper(),
            path=path,
            tags=tuple(str(t) for t in tags) if isinstance(tags, list) else (),
            operation_id=str(operation_id) if operation_id else None,
            summary=details.get("summary") if isinstance(details.get("summary"), str) else None,
            description=details.get("description") if isinstance(details.get("description"), str) else None,
            parameters=tuple(parameters),
            request_body=body,
            request_body_required=body_required,
            responses=responses,
            deprecated=bool(details.get("deprecated")),
            referenced_schemas=tuple(referenced),
        )
