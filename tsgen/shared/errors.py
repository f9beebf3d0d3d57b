"""Custom exceptions for tsgen."""

from __future__ import annotations


class SchemaError(Exception):
    """Base exception for schema-related errors."""

    def __init__(self, message: str, schema_path: str | None = None) -> None:
        self.schema_path = schema_path
        full_message = f"{message}" if not schema_path else f"[{schema_path}] {message}"
        super().__init__(full_message)


class SchemaNotFoundError(SchemaError):
    """Raised when a schema name or $ref target is missing from the schema table."""

    def __init__(self, schema_name: str, schema_path: str | None = None) -> None:
        self.schema_name = schema_name
        super().__init__(f"Schema '{schema_name}' not found", schema_path)


class UnsupportedReferenceError(SchemaError):
    """Raised for a $ref that does not point at a local schema definition."""

    def __init__(self, ref: str, schema_path: str | None = None) -> None:
        self.ref = ref
        super().__init__(f"Unsupported reference '{ref}'", schema_path)


class SpecLoadError(SchemaError):
    """Raised when an input document cannot be read or parsed."""


class ConfigError(Exception):
    """Raised when the configuration file is invalid."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        if field:
            message = f"Field '{field}': {message}"
        super().__init__(message)


class ModuleSelectionError(Exception):
    """Raised when no usable output module remains after selection."""
