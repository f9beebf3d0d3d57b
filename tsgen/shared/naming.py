"""Naming utilities for TypeScript code generation."""

from __future__ import annotations

import json
import re
from functools import lru_cache

TS_RESERVED_WORDS: frozenset[str] = frozenset({
    "break",
    "case",
    "catch",
    "class",
    "const",
    "continue",
    "debugger",
    "default",
    "delete",
    "do",
    "else",
    "enum",
    "export",
    "extends",
    "false",
    "finally",
    "for",
    "function",
    "if",
    "import",
    "in",
    "instanceof",
    "new",
    "null",
    "return",
    "super",
    "switch",
    "this",
    "throw",
    "true",
    "try",
    "typeof",
    "var",
    "void",
    "while",
    "with",
    "yield",
    "let",
    "static",
    "implements",
    "interface",
    "package",
    "private",
    "protected",
    "public",
    "await",
})

# Common irregular plurals
_IRREGULAR_PLURALS: dict[str, str] = {
    "children": "child",
    "people": "person",
    "men": "man",
    "women": "woman",
    "mice": "mouse",
    "geese": "goose",
    "teeth": "tooth",
    "feet": "foot",
    "criteria": "criterion",
    "analyses": "analysis",
    "indices": "index",
    "appendices": "appendix",
    "matrices": "matrix",
    "vertices": "vertex",
}

_WORD_SPLIT = re.compile(r"[^A-Za-z0-9]+")
_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


@lru_cache(maxsize=1024)
def singularize(name: str) -> str:
    """Convert a plural word to singular form.

    Uses caching for repeated calls with the same input.
    """
    lower = name.lower()
    if lower in _IRREGULAR_PLURALS:
        # Preserve original case pattern
        singular = _IRREGULAR_PLURALS[lower]
        if name[0].isupper():
            return singular.capitalize()
        return singular

    # Latin-looking singulars such as status, analysis
    if lower.endswith(("us", "is", "ss")):
        return name

    # Apply rules in order of specificity
    if name.endswith("ies") and len(name) > 3:
        return name[:-3] + "y"
    if name.endswith("ses") and len(name) > 3:
        return name[:-2]
    if name.endswith("xes") and len(name) > 3:
        return name[:-2]
    if name.endswith("zes") and len(name) > 3:
        return name[:-2]
    if name.endswith("ches") and len(name) > 4:
        return name[:-2]
    if name.endswith("shes") and len(name) > 4:
        return name[:-2]
    if name.endswith("s") and not name.endswith("ss") and len(name) > 1:
        return name[:-1]
    return name


@lru_cache(maxsize=1024)
def to_pascal_case(value: str) -> str:
    """Convert a string to PascalCase.

    Every run of non-alphanumeric characters starts a new word. Only the
    first letter of each word is changed, so acronyms survive.

    Examples:
        >>> to_pascal_case("hello_world")
        'HelloWorld'
        >>> to_pascal_case("user profile-dto")
        'UserProfileDto'
        >>> to_pascal_case("helloWorld")
        'HelloWorld'
        >>> to_pascal_case("UserDTO")
        'UserDTO'
    """
    parts = [part for part in _WORD_SPLIT.split(value) if part]
    return "".join(part[0].upper() + part[1:] for part in parts)


@lru_cache(maxsize=1024)
def to_camel_case(value: str) -> str:
    """Convert a string to camelCase.

    Examples:
        >>> to_camel_case("list_users")
        'listUsers'
        >>> to_camel_case("GetUserById")
        'getUserById'
    """
    pascal = to_pascal_case(value)
    if not pascal:
        return pascal
    return pascal[0].lower() + pascal[1:]


@lru_cache(maxsize=1024)
def to_identifier(value: str, fallback: str = "Unknown") -> str:
    """PascalCase a value into something usable as a type name."""
    ident = to_pascal_case(value)
    if not ident:
        return fallback
    if ident[0].isdigit():
        return f"Value{ident}"
    return ident


@lru_cache(maxsize=1024)
def sanitize_module_name(value: str) -> str:
    """Sanitize a tag for use as an output directory name.

    Uses caching for repeated calls with the same input.
    """
    cleaned = re.sub(r"([a-z0-9])([A-Z])", r"\1-\2", value.strip())
    cleaned = _WORD_SPLIT.sub("-", cleaned).strip("-").lower()
    return cleaned or "default"


@lru_cache(maxsize=1024)
def sanitize_field_name(value: str) -> str:
    """Sanitize a parameter name for use as a TypeScript argument.

    Uses caching for repeated calls with the same input.
    """
    name = value if _IDENTIFIER.match(value) else to_camel_case(value)
    if not name:
        name = "param"
    elif name[0].isdigit():
        name = f"_{name}"
    if name in TS_RESERVED_WORDS:
        return f"{name}_"
    return name


def is_identifier(value: str) -> bool:
    """Return True when value can be written as a bare TypeScript identifier."""
    return bool(_IDENTIFIER.match(value))


def property_key(value: str) -> str:
    """Render an object key, quoting it when it is not a plain identifier."""
    if is_identifier(value):
        return value
    return json.dumps(value)
