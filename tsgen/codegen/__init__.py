"""OpenAPI to TypeScript code generation."""

from .model import SpecModel, parse_schema
from .resolver import DependencyGraph
from .partition import build_module_schema_map, partition, select_modules
from .enums import EnumContext, EnumRegistry
from .rendering import GeneratedArtifact, TemplateId, TemplateRenderer
from .ts_types import TypeEmitter
from .zod import ValidatorEmitter
from .operations import OperationEmitter, operation_function_name

__all__ = [
    # Spec model
    "SpecModel",
    "parse_schema",
    # Resolution and partitioning
    "DependencyGraph",
    "build_module_schema_map",
    "partition",
    "select_modules",
    # Emitters
    "EnumContext",
    "EnumRegistry",
    "TypeEmitter",
    "ValidatorEmitter",
    "OperationEmitter",
    "operation_function_name",
    # Rendering
    "GeneratedArtifact",
    "TemplateId",
    "TemplateRenderer",
]
