from guild_settings import log


# loggers created from here on provide `trace`
log.setup_trace_level()


from guild_settings.gateway import Gateway  # noqa: E402
from guild_settings.schema import SchemaField, SchemaNode  # noqa: E402


__all__ = (
    "Gateway",
    "SchemaField",
    "SchemaNode",
)
