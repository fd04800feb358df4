"""The manager owning a settings schema and the collaborators it needs."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping, MutableMapping
from pathlib import Path
from typing import Any, Optional, Protocol

import attrs
import disnake

from guild_settings import constants
from guild_settings.constants import FOLDER_TYPE
from guild_settings.log import get_logger
from guild_settings.schema import SchemaNode
from guild_settings.utils.files import read_json, write_json_atomic


__all__ = ("Gateway", "RecordCache", "Resolver", "StorageProvider")

log = get_logger(__name__)

# (raw value, guild, key name, {"min": ..., "max": ...}) -> resolved value
Resolver = Callable[[Any, Optional[disnake.Guild], str, Mapping[str, Any]], Awaitable[Any]]


class StorageProvider(Protocol):
    """The backend persisting entries, able to change one path across a whole dataset."""

    async def update_value(self, table: str, path: str, value: Any, options: Mapping[str, Any]) -> Any: ...

    async def remove_value(self, table: str, path: str, options: Mapping[str, Any]) -> Any: ...


class RecordCache(Protocol):
    """The in-memory copies of stored entries."""

    def get_values(self, table: str) -> Iterable[MutableMapping[str, Any]]: ...


def _lower_types(types: Iterable[str]) -> frozenset[str]:
    return frozenset(t.lower() for t in types)


@attrs.define(slots=False)
class Gateway:
    """
    Owns the schema of one kind of entry, such as guild settings.

    The schema is read from `file_path` once by `init_schema`, after which the schema's own
    mutation methods keep the file up to date. `provider` and `cache` are used to propagate
    schema changes to entries already stored, and `resolver` to parse raw values per type.
    """

    type: str
    provider: StorageProvider
    cache: RecordCache
    resolver: Mapping[str, Resolver] = attrs.field(factory=dict)
    types: frozenset[str] = attrs.field(default=constants.SUPPORTED_TYPES, converter=_lower_types)
    sql: bool = attrs.field(factory=lambda: constants.Gateway.sql)
    options: Mapping[str, Any] = attrs.field(factory=lambda: {"nice": constants.Gateway.nice})
    file_path: Path = attrs.field(converter=Path)
    _schema: Optional[SchemaNode] = attrs.field(init=False, default=None)

    @file_path.default
    def _default_file_path(self) -> Path:
        return constants.Gateway.schema_directory / self.type / "schema.json"

    @property
    def schema(self) -> SchemaNode:
        """The root folder of the schema."""
        if self._schema is None:
            msg = f"The schema of {self.type} has not been loaded, call init_schema first."
            raise RuntimeError(msg)
        return self._schema

    async def init_schema(self, default: Optional[Mapping[str, Any]] = None) -> SchemaNode:
        """
        Load the schema from its file.

        If the file does not exist yet, the schema is built from `default` (an empty
        folder if not given) and written out.
        """
        loop = asyncio.get_running_loop()
        exists = await loop.run_in_executor(None, self.file_path.exists)
        if exists:
            definition = await loop.run_in_executor(None, read_json, self.file_path)
        else:
            definition = default if default is not None else {"type": FOLDER_TYPE}

        schema = SchemaNode(self, definition)
        if not exists:
            await loop.run_in_executor(None, write_json_atomic, self.file_path, schema.to_json())
            log.info("Created the schema file for %s at %s", self.type, self.file_path)

        self._schema = schema
        log.info("Loaded the schema for %s with %d keys", self.type, len(schema.get_keys()))
        return schema
