"""Lower schemas into zod validator declarations.

Mirrors the type emitter's traversal. Circular references are broken with
``z.lazy``; a schema that is the target of a lazy reference gets an explicit
``z.ZodType<any>`` annotation so TypeScript can type its initializer.
"""

from __future__ import annotations

from typing import Any, Final, Iterable, Sequence

from ..shared.errors import SchemaError
from ..shared.log import get_logger
from ..shared.naming import property_key
from .enums import EnumContext, EnumRegistry
from .layout import COMMON_NAMESPACE
from .model import (
    AllOfNode,
    AnyOfNode,
    ArrayNode,
    Constraints,
    EnumNode,
    ObjectNode,
    OneOfNode,
    Primitive,
    PrimitiveKind,
    RefNode,
    SchemaNode,
    SpecModel,
    UnknownNode,
)
from .rendering import ArtifactKind, GeneratedArtifact, TemplateId, TemplateRenderer, json_literal
from .ts_types import MAX_DEPTH, type_name_for

logger = get_logger(__name__)

ESCAPE_VALIDATOR: Final[str] = "z.any()"
SCHEMA_SUFFIX: Final[str] = "Schema"

STRING_FORMATS: Final[dict[str, str]] = {
    "email": ".email()",
    "uri": ".url()",
    "url": ".url()",
    "uuid": ".uuid()",
    "date-time": ".datetime()",
}


def number_literal(value: float) -> str:
    if isinstance(value, int) or float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def string_constraints(constraints: Constraints) -> str:
    calls = []
    if constraints.min_length is not None:
        calls.append(f".min({constraints.min_length})")
    if constraints.max_length is not None:
        calls.append(f".max({constraints.max_length})")
    if constraints.format in STRING_FORMATS:
        calls.append(STRING_FORMATS[constraints.format])
    if constraints.pattern is not None:
        calls.append(f".regex(new RegExp({json_literal(constraints.pattern)}))")
    return "".join(calls)


def number_constraints(constraints: Constraints) -> str:
    calls = []
    if constraints.minimum is not None:
        calls.append(f".min({number_literal(constraints.minimum)})")
    if constraints.exclusive_minimum is not None:
        calls.append(f".gt({number_literal(constraints.exclusive_minimum)})")
    if constraints.maximum is not None:
        calls.append(f".max({number_literal(constraints.maximum)})")
    if constraints.exclusive_maximum is not None:
        calls.append(f".lt({number_literal(constraints.exclusive_maximum)})")
    if constraints.multiple_of is not None:
        calls.append(f".multipleOf({number_literal(constraints.multiple_of)})")
    return "".join(calls)


def primitive_validator(node: Primitive) -> str:
    if node.kind is PrimitiveKind.STRING:
        if node.constraints.format == "binary":
            return "z.instanceof(Blob)"
        return "z.string()" + string_constraints(node.constraints)
    if node.kind is PrimitiveKind.INTEGER:
        return "z.number().int()" + number_constraints(node.constraints)
    if node.kind is PrimitiveKind.NUMBER:
        return "z.number()" + number_constraints(node.constraints)
    return "z.boolean()"


def schema_const(identifier: str) -> str:
    return f"{identifier}{SCHEMA_SUFFIX}"


class ValidatorEmitter:
    """Emits zod declarations for one output file.

    ``processed`` holds schema names already handled, ``_processing`` the
    names on the current emission path, and ``emitted`` the declaration
    identifiers already written.
    """

    def __init__(
        self,
        model: SpecModel,
        registry: EnumRegistry,
        renderer: TemplateRenderer,
        *,
        common_schemas: Iterable[str] = (),
        common_declarations: Iterable[str] = (),
        max_depth: int = MAX_DEPTH,
    ) -> None:
        self.model = model
        self.registry = registry
        self.renderer = renderer
        self.common_schemas = frozenset(common_schemas)
        self.common_declarations = frozenset(common_declarations)
        self.max_depth = max_depth
        self.processed: set[str] = set()
        self.failed: set[str] = set()
        self.emitted: set[str] = set()
        self.artifacts: list[GeneratedArtifact] = []
        self.uses_common = False
        self._processing: set[str] = set()
        self._lazy_targets: set[str] = set()

    def const_name(self, schema_name: str) -> str:
        return schema_const(type_name_for(self.model, self.registry, schema_name))

    def emit_validator(self, schema_name: str, schema: SchemaNode | None = None) -> list[GeneratedArtifact]:
        """Declare the validator for a named schema (and anything it needs) once.

        Returns:
            The artifacts produced by this call, dependencies first.

        Raises:
            SchemaError: If the schema or one of its references cannot be resolved.
        """
        if schema_name in self.processed:
            return []
        start = len(self.artifacts)
        node = schema if schema is not None else self.model.schema(schema_name)
        self.processed.add(schema_name)
        self._processing.add(schema_name)
        try:
            if isinstance(node, EnumNode):
                identifier = type_name_for(self.model, self.registry, schema_name)
                self.ensure_enum(identifier, node.values)
            else:
                expression = self.expression(node, parent=schema_name)
                const = self.const_name(schema_name)
                self._append(
                    const,
                    self.renderer.render(TemplateId.ZOD_SCHEMA, {
                        "name": const,
                        "expression": expression,
                        "annotate": schema_name in self._lazy_targets,
                        "description": node.description,
                    }),
                )
        except SchemaError:
            self.failed.add(schema_name)
            raise
        finally:
            self._processing.discard(schema_name)
        return self.artifacts[start:]

    def declare_object(self, const: str, fields: Sequence[dict[str, Any]]) -> None:
        """Declare a ``z.object`` from prepared ``{key, expression, optional}`` fields."""
        body = self._object_body([(f["key"], f["expression"], f["optional"]) for f in fields], depth=1)
        self._append(
            const,
            self.renderer.render(TemplateId.ZOD_SCHEMA, {
                "name": const,
                "expression": body,
                "annotate": False,
                "description": None,
            }),
        )

    def ensure_enum(self, identifier: str, values: Sequence[str]) -> None:
        const = schema_const(identifier)
        if const in self.emitted:
            return
        self._append(
            const,
            self.renderer.render(TemplateId.ZOD_ENUM, {"name": const, "values": list(values)}),
            ArtifactKind.ENUM,
        )

    def _append(self, name: str, content: str, kind: ArtifactKind = ArtifactKind.VALIDATOR) -> None:
        if name in self.emitted:
            return
        self.emitted.add(name)
        self.artifacts.append(GeneratedArtifact(name=name, content=content.rstrip("\n"), kind=kind))

    def expression(
        self,
        node: SchemaNode,
        *,
        parent: str,
        prop: str | None = None,
        depth: int = 1,
    ) -> str:
        """zod expression for a node, declaring what it references."""
        if depth > self.max_depth:
            logger.debug("Depth guard tripped in %s, using %s", parent, ESCAPE_VALIDATOR)
            return ESCAPE_VALIDATOR
        result = self._lower(node, parent=parent, prop=prop, depth=depth)
        if node.nullable and result != ESCAPE_VALIDATOR:
            result = f"{result}.nullable()"
        return result

    def _lower(self, node: SchemaNode, *, parent: str, prop: str | None, depth: int) -> str:
        if isinstance(node, Primitive):
            return primitive_validator(node)
        if isinstance(node, EnumNode):
            return self._enum_reference(node, parent=parent, prop=prop)
        if isinstance(node, ArrayNode):
            item = self.expression(node.items, parent=parent, depth=depth + 1)
            result = f"z.array({item})"
            if node.constraints.min_items is not None:
                result += f".min({node.constraints.min_items})"
            if node.constraints.max_items is not None:
                result += f".max({node.constraints.max_items})"
            return result
        if isinstance(node, ObjectNode):
            return self._object(node, parent=parent, depth=depth)
        if isinstance(node, RefNode):
            return self._reference(node)
        if isinstance(node, AllOfNode):
            members = [self.expression(m, parent=parent, prop=prop, depth=depth + 1) for m in node.members]
            return members[0] + "".join(f".and({m})" for m in members[1:])
        if isinstance(node, (OneOfNode, AnyOfNode)):
            variants = [self.expression(v, parent=parent, prop=prop, depth=depth + 1) for v in node.variants]
            if len(variants) == 1:
                return variants[0]
            return f"z.union([{', '.join(variants)}])"
        if isinstance(node, UnknownNode):
            return ESCAPE_VALIDATOR
        return ESCAPE_VALIDATOR

    def _enum_reference(self, node: EnumNode, *, parent: str, prop: str | None) -> str:
        context = EnumContext(prop, parent) if prop else None
        identifier = self.registry.name_for(node.values, context)
        if identifier in self.common_declarations:
            self.uses_common = True
            return f"{COMMON_NAMESPACE}.{schema_const(identifier)}"
        self.ensure_enum(identifier, node.values)
        return schema_const(identifier)

    def _object(self, node: ObjectNode, *, parent: str, depth: int) -> str:
        if not node.properties:
            value = ESCAPE_VALIDATOR
            if node.additional is not None:
                value = self.expression(node.additional, parent=parent, depth=depth + 1)
            return f"z.record(z.string(), {value})"
        fields = [
            (
                property_key(prop.name),
                self.expression(prop.schema, parent=parent, prop=prop.name, depth=depth + 1),
                not prop.required,
            )
            for prop in node.properties
        ]
        return self._object_body(fields, depth=depth)

    @staticmethod
    def _object_body(fields: Sequence[tuple[str, str, bool]], *, depth: int) -> str:
        pad = "  " * (depth - 1)
        lines = ["z.object({"]
        for key, expression, optional in fields:
            suffix = ".optional()" if optional else ""
            lines.append(f"{pad}  {key}: {expression}{suffix},")
        lines.append(f"{pad}}})")
        return "\n".join(lines)

    def _reference(self, node: RefNode) -> str:
        name, target = self.model.resolve_ref(node)
        if name in self.failed:
            return ESCAPE_VALIDATOR
        if name in self.common_schemas:
            self.uses_common = True
            result = f"{COMMON_NAMESPACE}.{self.const_name(name)}"
        elif name in self._processing:
            self._lazy_targets.add(name)
            return f"z.lazy(() => {self.const_name(name)})"
        else:
            if name not in self.processed:
                self.emit_validator(name, target)
            result = self.const_name(name)
        if isinstance(target, EnumNode) and target.nullable and not node.nullable:
            result = f"{result}.nullable()"
        return result
