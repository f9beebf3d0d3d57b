import pytest

from tsgen.codegen.model import ArrayNode, Primitive, PrimitiveKind, RefNode
from tsgen.codegen.rendering import ArtifactKind
from tsgen.codegen.ts_types import TypeEmitter, array_of, literal_union, primitive_type
from tsgen.shared.errors import SchemaNotFoundError


def ref(name):
    return {"$ref": f"#/components/schemas/{name}"}


@pytest.fixture
def emitter_for(registry, renderer):
    def factory(model, **kwargs):
        return TypeEmitter(model, registry, renderer, **kwargs)

    return factory


def contents(emitter):
    return {artifact.name: artifact.content for artifact in emitter.artifacts}


class TestHelpers:
    @pytest.mark.parametrize(
        "node,expected",
        [
            (Primitive(PrimitiveKind.STRING), "string"),
            (Primitive(PrimitiveKind.INTEGER), "number"),
            (Primitive(PrimitiveKind.NUMBER), "number"),
            (Primitive(PrimitiveKind.BOOLEAN), "boolean"),
        ],
    )
    def test_primitive_type(self, node, expected):
        assert primitive_type(node) == expected

    def test_binary_is_blob(self, make_model):
        model = make_model({"File": {"type": "string", "format": "binary"}})
        assert primitive_type(model.schema("File")) == "Blob"

    @pytest.mark.parametrize(
        "item,expected",
        [("string", "string[]"), ("string | null", "(string | null)[]"), ("A & B", "(A & B)[]")],
    )
    def test_array_of(self, item, expected):
        assert array_of(item) == expected

    def test_literal_union(self):
        assert literal_union(["a", 'b"c']) == '"a" | "b\\"c"'


class TestTypeEmitter:
    def test_interface(self, users_model, emitter_for):
        emitter = emitter_for(users_model)
        (artifact,) = emitter.emit_type("User")
        assert artifact.name == "User"
        assert artifact.kind is ArtifactKind.TYPE
        assert artifact.content == "export interface User {\n  id: string;\n  name: string;\n}"

    def test_emit_once(self, users_model, emitter_for):
        emitter = emitter_for(users_model)
        emitter.emit_type("User")
        assert emitter.emit_type("User") == []
        assert len(emitter.artifacts) == 1

    def test_dependencies_first(self, shop_model, emitter_for):
        emitter = emitter_for(shop_model)
        emitter.emit_type("User")
        assert [a.name for a in emitter.artifacts] == ["Address", "UserStatusEnum", "User"]
        types = contents(emitter)
        assert types["User"] == (
            "export interface User {\n"
            "  id: string;\n"
            "  address: Address;\n"
            "  status?: UserStatusEnum;\n"
            "}"
        )
        assert types["Address"] == "export interface Address {\n  city: string;\n  zip?: string | null;\n}"
        assert types["UserStatusEnum"] == 'export type UserStatusEnum =\n  "active" |\n  "banned";'

    def test_common_reference(self, shop_model, emitter_for):
        emitter = emitter_for(shop_model, common_schemas=["Address"])
        emitter.emit_type("Product")
        assert [a.name for a in emitter.artifacts] == ["Product"]
        assert "  origin?: Common.Address;" in emitter.artifacts[0].content
        assert emitter.uses_common is True

    def test_common_enum_reference(self, shop_model, emitter_for, registry):
        registry.name_for(["active", "banned"], schema_name="Status")
        emitter = emitter_for(shop_model, common_declarations=["StatusEnum"])
        emitter.emit_type("User")
        assert "  status?: Common.StatusEnum;" in contents(emitter)["User"]
        assert "StatusEnum" not in emitter.emitted

    def test_shared_enum_declared_once(self, make_model, emitter_for):
        model = make_model({
            "Order": {"type": "object", "properties": {"status": {"type": "string", "enum": ["x", "y"]}}},
            "Invoice": {"type": "object", "properties": {"status": {"type": "string", "enum": ["y", "x"]}}},
        })
        emitter = emitter_for(model)
        emitter.emit_type("Order")
        emitter.emit_type("Invoice")
        enums = [a for a in emitter.artifacts if a.kind is ArtifactKind.ENUM]
        assert [a.name for a in enums] == ["OrderStatusEnum"]
        assert "status?: OrderStatusEnum;" in contents(emitter)["Invoice"]

    def test_enum_schema(self, make_model, emitter_for):
        model = make_model({
            "Role": {"type": "string", "enum": ["admin", "member"], "description": "Access level"},
            "Member": {"type": "object", "required": ["role"], "properties": {"role": ref("Role")}},
        })
        emitter = emitter_for(model)
        emitter.emit_type("Member")
        types = contents(emitter)
        assert types["RoleEnum"] == '/** Access level */\nexport type RoleEnum =\n  "admin" |\n  "member";'
        assert "  role: RoleEnum;" in types["Member"]

    @pytest.mark.parametrize(
        "schema,expected",
        [
            ({"type": "array", "items": {"type": "string"}}, "export type Alias = string[];"),
            ({"oneOf": [{"type": "string"}, {"type": "integer"}]}, "export type Alias = any;"),
            ({"allOf": [{"type": "object"}]}, "export type Alias = any;"),
            ({"type": "object"}, "export type Alias = Record<string, any>;"),
            (
                {"type": "object", "additionalProperties": {"type": "integer"}},
                "export type Alias = Record<string, number>;",
            ),
            ({"type": "string", "nullable": True}, "export type Alias = string | null;"),
            ({"type": "file"}, "export type Alias = any;"),
        ],
    )
    def test_aliases(self, make_model, emitter_for, schema, expected):
        emitter = emitter_for(make_model({"Alias": schema}))
        emitter.emit_type("Alias")
        assert emitter.artifacts[0].content == expected

    def test_inline_object_and_quoted_keys(self, make_model, emitter_for):
        model = make_model({"Profile": {"type": "object", "properties": {
            "first-name": {"type": "string"},
            "meta": {"type": "object", "required": ["a"], "properties": {"a": {"type": "integer"}, "b": {}}},
        }}})
        emitter = emitter_for(model)
        emitter.emit_type("Profile")
        content = emitter.artifacts[0].content
        assert '  "first-name"?: string;' in content
        assert "  meta?: { a: number; b?: any };" in content

    def test_field_descriptions(self, make_model, emitter_for):
        model = make_model({"Note": {"type": "object", "properties": {
            "body": {"type": "string", "description": "Text */ with\n  breaks"},
        }}})
        emitter = emitter_for(model)
        emitter.emit_type("Note")
        assert "  /** Text *\\/ with breaks */\n  body?: string;" in emitter.artifacts[0].content

    def test_self_reference(self, make_model, emitter_for):
        model = make_model({"Node": {"type": "object", "properties": {
            "children": {"type": "array", "items": ref("Node")},
        }}})
        emitter = emitter_for(model)
        emitter.emit_type("Node")
        assert emitter.artifacts[0].content == "export interface Node {\n  children?: Node[];\n}"

    def test_nullable_reference(self, shop_model, emitter_for):
        emitter = emitter_for(shop_model)
        node = RefNode("#/components/schemas/Address", nullable=True)
        assert emitter.expression(node, parent="X") == "Address | null"

    def test_missing_reference_fails_only_that_schema(self, make_model, emitter_for):
        model = make_model({
            "Bad": {"type": "object", "properties": {"ghost": ref("Ghost")}},
            "Good": {"type": "object", "properties": {"bad": ref("Bad"), "ok": {"type": "string"}}},
        })
        emitter = emitter_for(model)
        with pytest.raises(SchemaNotFoundError):
            emitter.emit_type("Bad")
        assert "Bad" in emitter.failed
        emitter.emit_type("Good")
        assert emitter.artifacts[0].content == "export interface Good {\n  bad?: any;\n  ok?: string;\n}"

    def test_depth_guard(self, make_model, emitter_for):
        emitter = emitter_for(make_model({}), max_depth=1)
        node = ArrayNode(items=Primitive(PrimitiveKind.STRING))
        assert emitter.expression(node, parent="X") == "any[]"

    def test_nullable_enum_schema_reference(self, make_model, emitter_for):
        model = make_model({
            "Power": {"type": "string", "enum": ["on", "off", None]},
            "Device": {"type": "object", "required": ["power"], "properties": {"power": ref("Power")}},
        })
        emitter = emitter_for(model)
        emitter.emit_type("Device")
        assert contents(emitter) == {
            "PowerEnum": 'export type PowerEnum =\n  "on" |\n  "off";',
            "Device": "export interface Device {\n  power: PowerEnum | null;\n}",
        }
        node = RefNode("#/components/schemas/Power", nullable=True)
        assert emitter.expression(node, parent="X") == "PowerEnum | null"


class TestQualifiedExpression:
    def test_local_schema_is_namespaced(self, shop_model, emitter_for):
        emitter = emitter_for(shop_model)
        node = ArrayNode(items=RefNode("#/components/schemas/User"))
        expression, used = emitter.qualified_expression(node, namespace="Users", parent="GetUsers")
        assert expression == "Users.User[]"
        assert used == {"Users"}
        # Declarations themselves stay unqualified
        assert "  address: Address;" in contents(emitter)["User"]

    def test_common_schema(self, shop_model, emitter_for):
        emitter = emitter_for(shop_model, common_schemas=["Address"])
        expression, used = emitter.qualified_expression(
            RefNode("#/components/schemas/Address"), namespace="Users", parent="X",
        )
        assert expression == "Common.Address"
        assert used == {"Common"}
        assert emitter.uses_common is False

    def test_primitive_uses_no_namespace(self, shop_model, emitter_for):
        emitter = emitter_for(shop_model)
        expression, used = emitter.qualified_expression(
            Primitive(PrimitiveKind.INTEGER), namespace="Users", parent="X",
        )
        assert (expression, used) == ("number", set())
