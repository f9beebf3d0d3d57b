"""Generate TypeScript types, zod schemas and API clients from OpenAPI specs."""

__version__ = "0.4.0"
