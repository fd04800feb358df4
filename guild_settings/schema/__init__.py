from guild_settings.schema.field import ColumnDefinition, FieldOptions, ParseResult, SchemaField, sql_literal
from guild_settings.schema.node import SchemaEntry, SchemaNode


__all__ = (
    "ColumnDefinition",
    "FieldOptions",
    "ParseResult",
    "SchemaEntry",
    "SchemaField",
    "SchemaNode",
    "sql_literal",
)
