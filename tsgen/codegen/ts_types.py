"""Lower schemas into TypeScript type declarations.

Unions and intersections are not modeled at the type level; ``oneOf``,
``anyOf`` and ``allOf`` become ``any`` here while the zod validators model
them precisely.
"""

from __future__ import annotations

from typing import Any, Final, Iterable, Sequence

from ..shared.errors import SchemaError
from ..shared.log import get_logger
from ..shared.naming import property_key, to_identifier
from .enums import EnumContext, EnumRegistry
from .layout import COMMON_NAMESPACE
from .model import (
    AllOfNode,
    AnyOfNode,
    ArrayNode,
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

logger = get_logger(__name__)

MAX_DEPTH: Final[int] = 100
ESCAPE_TYPE: Final[str] = "any"


def primitive_type(node: Primitive) -> str:
    if node.kind is PrimitiveKind.STRING:
        return "Blob" if node.constraints.format == "binary" else "string"
    if node.kind in (PrimitiveKind.NUMBER, PrimitiveKind.INTEGER):
        return "number"
    return "boolean"


def array_of(item: str) -> str:
    if " | " in item or " & " in item:
        return f"({item})[]"
    return f"{item}[]"


def literal_union(values: Iterable[str]) -> str:
    return " | ".join(json_literal(v) for v in values)


def type_name_for(model: SpecModel, registry: EnumRegistry, schema_name: str) -> str:
    """Identifier a named schema is declared under.

    Enum schemas are named by the registry so types and validators agree.
    """
    node = model.schema(schema_name)
    if isinstance(node, EnumNode):
        return registry.name_for(node.values, schema_name=schema_name)
    return to_identifier(schema_name)


class TypeEmitter:
    """Emits TypeScript declarations for one output file.

    ``processed`` tracks schema names already handled; ``emitted`` tracks
    declaration identifiers already written. References to schemas in
    ``common_schemas`` (and enums in ``common_declarations``) are qualified
    with the common namespace instead of being declared here.
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
        # Set while lowering for another file that imports this one as a namespace
        self._namespace: str | None = None
        self._used: set[str] = set()

    def type_name(self, schema_name: str) -> str:
        return type_name_for(self.model, self.registry, schema_name)

    def emit_type(self, schema_name: str, schema: SchemaNode | None = None) -> list[GeneratedArtifact]:
        """Declare a named schema (and anything it needs) once.

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
        namespace, self._namespace = self._namespace, None
        try:
            self._declare(schema_name, node)
        except SchemaError:
            self.failed.add(schema_name)
            raise
        finally:
            self._namespace = namespace
        return self.artifacts[start:]

    def qualified_expression(
        self,
        node: SchemaNode,
        *,
        namespace: str,
        parent: str,
        prop: str | None = None,
    ) -> tuple[str, set[str]]:
        """Type expression for use in a file that imports this one as ``namespace``.

        Declarations the node needs are still written to this emitter's file;
        only the returned expression is qualified.

        Returns:
            The expression and the namespaces it refers to.
        """
        previous = self._namespace, self._used
        self._namespace, self._used = namespace, set()
        try:
            return self.expression(node, parent=parent, prop=prop), self._used
        finally:
            self._namespace, self._used = previous

    def _local(self, name: str) -> str:
        if self._namespace is None:
            return name
        self._used.add(self._namespace)
        return f"{self._namespace}.{name}"

    def _common(self, name: str) -> str:
        if self._namespace is None:
            self.uses_common = True
        else:
            self._used.add(COMMON_NAMESPACE)
        return f"{COMMON_NAMESPACE}.{name}"

    def _declare(self, schema_name: str, node: SchemaNode) -> None:
        ident = self.type_name(schema_name)
        if isinstance(node, EnumNode):
            self.ensure_enum(ident, node.values, node.description)
        elif isinstance(node, ObjectNode) and node.properties:
            fields = [
                self.field(prop.name, prop.schema, required=prop.required, parent=schema_name)
                for prop in node.properties
            ]
            self.declare_interface(ident, fields, node.description)
        else:
            expression = self.expression(node, parent=schema_name)
            self._append(
                ident,
                self.renderer.render(TemplateId.TYPE_ALIAS, {
                    "name": ident,
                    "type": expression,
                    "description": node.description,
                }),
            )

    def field(
        self,
        name: str,
        node: SchemaNode,
        *,
        required: bool,
        parent: str,
    ) -> dict[str, Any]:
        return {
            "key": property_key(name),
            "type": self.expression(node, parent=parent, prop=name),
            "optional": not required,
            "description": node.description,
        }

    def declare_interface(
        self,
        name: str,
        fields: Sequence[dict[str, Any]],
        description: str | None = None,
    ) -> None:
        self._append(
            name,
            self.renderer.render(TemplateId.TYPE_INTERFACE, {
                "name": name,
                "fields": list(fields),
                "description": description,
            }),
        )

    def ensure_enum(self, name: str, values: Sequence[str], description: str | None = None) -> None:
        if name in self.emitted:
            return
        self._append(
            name,
            self.renderer.render(TemplateId.TYPE_ENUM, {
                "name": name,
                "values": list(values),
                "description": description,
            }),
            ArtifactKind.ENUM,
        )

    def _append(self, name: str, content: str, kind: ArtifactKind = ArtifactKind.TYPE) -> None:
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
        """TypeScript type expression for a node, declaring what it references."""
        if depth > self.max_depth:
            logger.debug("Depth guard tripped in %s, using %s", parent, ESCAPE_TYPE)
            return ESCAPE_TYPE
        result = self._lower(node, parent=parent, prop=prop, depth=depth)
        if node.nullable and result != ESCAPE_TYPE:
            result = f"{result} | null"
        return result

    def _lower(self, node: SchemaNode, *, parent: str, prop: str | None, depth: int) -> str:
        if isinstance(node, Primitive):
            return primitive_type(node)
        if isinstance(node, EnumNode):
            return self._enum_reference(node, parent=parent, prop=prop)
        if isinstance(node, ArrayNode):
            return array_of(self.expression(node.items, parent=parent, depth=depth + 1))
        if isinstance(node, ObjectNode):
            return self._inline_object(node, parent=parent, depth=depth)
        if isinstance(node, RefNode):
            return self._reference(node)
        if isinstance(node, (OneOfNode, AnyOfNode, AllOfNode, UnknownNode)):
            return ESCAPE_TYPE
        return ESCAPE_TYPE

    def _enum_reference(self, node: EnumNode, *, parent: str, prop: str | None) -> str:
        context = EnumContext(prop, parent) if prop else None
        name = self.registry.name_for(node.values, context)
        if name in self.common_declarations:
            return self._common(name)
        self.ensure_enum(name, node.values)
        return self._local(name)

    def _inline_object(self, node: ObjectNode, *, parent: str, depth: int) -> str:
        if node.properties:
            members = []
            for prop in node.properties:
                expr = self.expression(prop.schema, parent=parent, prop=prop.name, depth=depth + 1)
                optional = "" if prop.required else "?"
                members.append(f"{property_key(prop.name)}{optional}: {expr}")
            return "{ " + "; ".join(members) + " }"
        if node.additional is not None:
            value = self.expression(node.additional, parent=parent, depth=depth + 1)
            return f"Record<string, {value}>"
        return "Record<string, any>"

    def _reference(self, node: RefNode) -> str:
        name, target = self.model.resolve_ref(node)
        if name in self.failed:
            return ESCAPE_TYPE
        if name in self.common_schemas:
            result = self._common(self.type_name(name))
        else:
            if name not in self.processed:
                self.emit_type(name, target)
            result = self._local(self.type_name(name))
        # Enum declarations carry only their values; null lives on each reference
        if isinstance(target, EnumNode) and target.nullable and not node.nullable:
            result = f"{result} | null"
        return result
