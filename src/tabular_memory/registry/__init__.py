"""Schema registry and its storage backends."""

from .schema_registry import DEFAULT_INDEX, SchemaRegistry, describe_schema
from .stores import InMemorySchemaStore, JsonDirectorySchemaStore, SchemaStore

__all__ = [
    "DEFAULT_INDEX",
    "SchemaRegistry",
    "describe_schema",
    "SchemaStore",
    "InMemorySchemaStore",
    "JsonDirectorySchemaStore",
]
