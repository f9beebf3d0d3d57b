"""Naming authority for generated enums.

One registry is created per generation run and shared by the type and
validator emitters, so a value set (or a property in a given parent schema)
always maps to the same identifier in both outputs.

Keys:
    ``a,b,c``            sorted values, for reuse across contexts
    ``schema:<Name>``    an enum that is itself a named schema
    ``a,b,c:<Parent>``   a generic property (status, type, ...) of <Parent>
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Iterable, Sequence

from ..shared.log import get_logger
from ..shared.naming import to_identifier, to_pascal_case

logger = get_logger(__name__)

GENERIC_PROPERTY_NAMES: Final[frozenset[str]] = frozenset({"status", "type", "state", "kind"})

# Stripped from parent schema names, in this order
PARENT_SUFFIXES: Final[tuple[str, ...]] = ("ResponseDto", "Dto", "Response")


@dataclass(frozen=True, slots=True)
class EnumContext:
    """Where an inline enum was found: the property and its parent schema."""

    property_name: str
    parent_schema: str = ""

    @property
    def is_generic(self) -> bool:
        return bool(self.parent_schema) and self.property_name.lower() in GENERIC_PROPERTY_NAMES


def value_key(values: Iterable[str]) -> str:
    return ",".join(sorted(values))


def strip_parent_suffixes(name: str) -> str:
    """Drop DTO/response suffixes from a parent schema name.

    Examples:
        >>> strip_parent_suffixes("OrderResponseDto")
        'Order'
        >>> strip_parent_suffixes("PaymentDto")
        'Payment'
    """
    for suffix in PARENT_SUFFIXES:
        while name.endswith(suffix) and len(name) > len(suffix):
            name = name[: -len(suffix)]
    return name


def enum_schema_identifier(schema_name: str) -> str:
    ident = to_identifier(schema_name)
    return ident if ident.endswith("Enum") else f"{ident}Enum"


class EnumRegistry:
    """Maps enum keys to generated identifiers; registration never overwrites."""

    def __init__(self) -> None:
        self._names: dict[str, str] = {}
        # identifier -> value key it was minted for
        self._owners: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, key: str) -> bool:
        return key in self._names

    def is_registered(self, key: str) -> bool:
        return key in self._names

    def lookup(self, key: str) -> str | None:
        return self._names.get(key)

    def identifiers(self) -> set[str]:
        return set(self._owners)

    def register(self, key: str, identifier: str) -> str:
        """Bind ``key`` to ``identifier`` unless it is already bound; return the binding."""
        return self._names.setdefault(key, identifier)

    def name_for(
        self,
        values: Sequence[str],
        context: EnumContext | None = None,
        *,
        schema_name: str | None = None,
    ) -> str:
        """Return the identifier for an enum, minting one on first use.

        Args:
            values: The enum's literal values.
            context: Property and parent schema of an inline enum.
            schema_name: Name of the schema when the enum is a top-level schema.
        """
        vkey = value_key(values)

        if schema_name is not None:
            schema_key = f"schema:{schema_name}"
            existing = self._names.get(schema_key)
            if existing is not None:
                return existing
            identifier = self._claim(enum_schema_identifier(schema_name), vkey)
            self.register(schema_key, identifier)
            self.register(vkey, identifier)
            return identifier

        context_key = f"{vkey}:{context.parent_schema}" if context and context.is_generic else None
        for key in (context_key, vkey):
            if key is not None and key in self._names:
                return self._names[key]

        identifier = self._claim(self._synthesize(values, context), vkey)
        if context_key is not None:
            self.register(context_key, identifier)
        self.register(vkey, identifier)
        logger.debug("Registered enum %s for [%s]", identifier, vkey)
        return identifier

    @staticmethod
    def _synthesize(values: Sequence[str], context: EnumContext | None) -> str:
        if context is not None and context.is_generic:
            parent = strip_parent_suffixes(to_identifier(context.parent_schema))
            prop = context.property_name
            prop_part = "" if prop.lower() in parent.lower() else to_pascal_case(prop)
            return f"{parent}{prop_part}Enum"
        if context is not None and context.property_name:
            return f"{to_identifier(context.property_name)}Enum"
        first = sorted(values)[0] if values else ""
        return f"{to_identifier(first)}Enum"

    def _claim(self, identifier: str, vkey: str) -> str:
        """Reserve an identifier for a value set, suffixing it on collision."""
        candidate = identifier
        counter = 2
        while self._owners.get(candidate, vkey) != vkey:
            candidate = f"{identifier}{counter}"
            counter += 1
        self._owners[candidate] = vkey
        return candidate
