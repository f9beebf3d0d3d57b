import copy
import logging

import pytest

from tsgen.codegen.enums import EnumRegistry
from tsgen.codegen.model import SpecModel
from tsgen.codegen.rendering import TemplateRenderer

USERS_SPEC = {
    "openapi": "3.0.3",
    "info": {"title": "Users API", "version": "1.0.0"},
    "tags": [{"name": "users"}],
    "paths": {
        "/users": {
            "get": {
                "tags": ["users"],
                "responses": {
                    "200": {
                        "description": "ok",
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "array",
                                    "items": {"$ref": "#/components/schemas/User"},
                                }
                            }
                        },
                    }
                },
            }
        }
    },
    "components": {
        "schemas": {
            "User": {
                "type": "object",
                "required": ["id", "name"],
                "properties": {
                    "id": {"type": "string"},
                    "name": {"type": "string"},
                },
            }
        }
    },
}


def _json_response(schema):
    return {"description": "ok", "content": {"application/json": {"schema": schema}}}


SHOP_SPEC = {
    "openapi": "3.0.3",
    "info": {"title": "Shop", "version": "2.1.0"},
    "tags": [{"name": "users"}, {"name": "products"}],
    "paths": {
        "/users": {
            "get": {
                "tags": ["users"],
                "parameters": [
                    {"name": "page", "in": "query", "schema": {"type": "integer"}},
                    {
                        "name": "status",
                        "in": "query",
                        "schema": {"type": "string", "enum": ["active", "banned"]},
                    },
                ],
                "responses": {
                    "200": _json_response({"type": "array", "items": {"$ref": "#/components/schemas/User"}})
                },
            },
            "post": {
                "tags": ["users"],
                "requestBody": {
                    "required": True,
                    "content": {"application/json": {"schema": {"$ref": "#/components/schemas/NewUser"}}},
                },
                "responses": {"201": _json_response({"$ref": "#/components/schemas/User"})},
            },
        },
        "/users/{userId}": {
            "parameters": [{"name": "userId", "in": "path", "required": True, "schema": {"type": "string"}}],
            "get": {
                "tags": ["users"],
                "responses": {"200": _json_response({"$ref": "#/components/schemas/User"})},
            },
            "delete": {
                "tags": ["users"],
                "responses": {"204": {"description": "deleted"}},
            },
        },
        "/products/{id}": {
            "get": {
                "tags": ["products"],
                "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}}],
                "responses": {"200": _json_response({"$ref": "#/components/schemas/Product"})},
            }
        },
    },
    "components": {
        "schemas": {
            "User": {
                "type": "object",
                "required": ["id", "address"],
                "properties": {
                    "id": {"type": "string", "format": "uuid"},
                    "address": {"$ref": "#/components/schemas/Address"},
                    "status": {"type": "string", "enum": ["active", "banned"]},
                },
            },
            "NewUser": {
                "type": "object",
                "required": ["email"],
                "properties": {"email": {"type": "string", "format": "email"}},
            },
            "Product": {
                "type": "object",
                "required": ["id"],
                "properties": {
                    "id": {"type": "integer"},
                    "origin": {"$ref": "#/components/schemas/Address"},
                },
            },
            "Address": {
                "type": "object",
                "required": ["city"],
                "properties": {
                    "city": {"type": "string"},
                    "zip": {"type": "string", "nullable": True},
                },
            },
        }
    },
}


@pytest.fixture(autouse=True)
def reset_tsgen_logger():
    """Undo configure_logging so records reach caplog again."""
    yield
    logger = logging.getLogger("tsgen")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def users_spec():
    return copy.deepcopy(USERS_SPEC)


@pytest.fixture
def shop_spec():
    return copy.deepcopy(SHOP_SPEC)


@pytest.fixture
def users_model(users_spec):
    return SpecModel.from_dict(users_spec, source="users.json")


@pytest.fixture
def shop_model(shop_spec):
    return SpecModel.from_dict(shop_spec, source="shop.json")


@pytest.fixture(scope="session")
def renderer():
    return TemplateRenderer()


@pytest.fixture
def registry():
    return EnumRegistry()


def model_from_schemas(schemas, **extra):
    document = {"openapi": "3.0.3", "info": {"title": "t", "version": "1"}, "paths": {}}
    document.update(extra)
    document["components"] = {"schemas": schemas}
    return SpecModel.from_dict(document, source="test.json")


@pytest.fixture
def make_model():
    return model_from_schemas
