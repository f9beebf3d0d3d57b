"""Shared utilities for tsgen."""

from .spec_loader import (
    SpecCache,
    UrlCache,
    load_spec,
    parse_spec_text,
)
from .naming import (
    to_pascal_case,
    to_camel_case,
    to_identifier,
    singularize,
    sanitize_module_name,
    sanitize_field_name,
    property_key,
    TS_RESERVED_WORDS,
)
from .errors import (
    SchemaError,
    SchemaNotFoundError,
    UnsupportedReferenceError,
    SpecLoadError,
    ConfigError,
    ModuleSelectionError,
)
from .log import configure_logging, get_logger

__all__ = [
    # Spec loading
    "SpecCache",
    "UrlCache",
    "load_spec",
    "parse_spec_text",
    # Naming utilities
    "to_pascal_case",
    "to_camel_case",
    "to_identifier",
    "singularize",
    "sanitize_module_name",
    "sanitize_field_name",
    "property_key",
    "TS_RESERVED_WORDS",
    # Errors
    "SchemaError",
    "SchemaNotFoundError",
    "UnsupportedReferenceError",
    "SpecLoadError",
    "ConfigError",
    "ModuleSelectionError",
    # Logging
    "configure_logging",
    "get_logger",
]
