from __future__ import annotations

import asyncio
import bisect
from collections.abc import Iterator, Mapping, MutableMapping
from typing import TYPE_CHECKING, Any, Final, Literal, Optional, Union

import disnake
import sqlalchemy as sa

from guild_settings.constants import FOLDER_TYPE, RESERVED_KEYS
from guild_settings.errors import (
    InvalidActionError,
    InvalidKeyError,
    InvalidOptionError,
    KeyExistsError,
    KeyNotFoundError,
    KeyTypeMismatchError,
    PropagationError,
    SchemaDefinitionError,
    SchemaMutationError,
    UnsupportedOperationError,
    UnsupportedTypeError,
)
from guild_settings.log import get_logger
from guild_settings.schema.field import ColumnDefinition, FieldOptions, SchemaField
from guild_settings.utils.files import write_json_atomic


if TYPE_CHECKING:
    from guild_settings.gateway import Gateway


__all__ = ("SchemaEntry", "SchemaNode")

log = get_logger(__name__)

FORCE_ACTIONS: Final[tuple[str, ...]] = ("add", "edit", "delete")
FORCE_MANY_ACTIONS: Final[tuple[str, ...]] = ("add", "delete")

SchemaEntry = Union["SchemaNode", SchemaField]


def _walk(entry: MutableMapping[str, Any], segments: list[str], *, create: bool) -> Optional[MutableMapping[str, Any]]:
    """
    Follow `segments` into a stored entry, returning the container of the final key.

    Missing containers are created when `create` is set. None is returned when a container
    is missing otherwise, or when a segment holds a value which is not a mapping.
    """
    container = entry
    for segment in segments:
        if segment not in container:
            if not create:
                return None
            container[segment] = {}
        nested = container[segment]
        if not isinstance(nested, MutableMapping):
            return None
        container = nested
    return container


class SchemaNode:
    """
    A folder of the schema, holding nested folders and keys.

    Children are kept in a mapping from name to entry, which is the only record of which
    children exist. `key_order` lists the same names sorted, and is the order every
    traversal, listing and serialisation follows.

    Structural changes (`add_folder`, `add_key`, `remove_folder`, `remove_key`) are validated
    before anything is modified, then applied in memory, then the whole schema is written to
    the manager's schema file. Only once the file is written are stored entries updated.
    Changes to one schema must be issued one at a time, nothing here serialises them.
    """

    type: Final[str] = FOLDER_TYPE

    def __init__(self, manager: Gateway, definition: Optional[Mapping[str, Any]] = None, path: str = "") -> None:
        self.manager = manager
        self.path = path
        self.defaults: dict[str, Any] = {}
        self.key_order: list[str] = []
        self._children: dict[str, SchemaEntry] = {}

        if definition is None:
            definition = {}
        elif not isinstance(definition, Mapping):
            raise SchemaDefinitionError(path or "<root>", "definition", "must be a mapping.")
        self._patch(definition)

    def __repr__(self) -> str:
        return f"<SchemaNode path={self.path!r} keys={self.key_order!r}>"

    def __str__(self) -> str:
        return "[ Folder" if self.configurable_keys else "[ Empty Folder"

    def __contains__(self, name: object) -> bool:
        return name in self._children

    def __getitem__(self, name: str) -> SchemaEntry:
        return self._children[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.key_order)

    def __len__(self) -> int:
        return len(self._children)

    @property
    def keys(self) -> frozenset[str]:
        """The names of every direct child."""
        return frozenset(self._children)

    def has_key(self, name: str) -> bool:
        """Check if the key exists in this folder."""
        return name in self._children

    def get(self, path: str) -> SchemaEntry:
        """Walk a dotted path down from this folder."""
        entry: SchemaEntry = self
        for segment in path.split("."):
            if not isinstance(entry, SchemaNode) or segment not in entry._children:
                raise KeyNotFoundError(path)
            entry = entry._children[segment]
        return entry

    def _child_path(self, name: str) -> str:
        return f"{self.path}.{name}" if self.path else name

    def _patch(self, definition: Mapping[str, Any]) -> None:
        """Populate this folder from its persisted representation."""
        for name, raw in definition.items():
            # skips the folder's own type tag
            if not isinstance(raw, Mapping):
                continue
            if not isinstance(name, str) or not name or "." in name or name in RESERVED_KEYS:
                raise SchemaDefinitionError(
                    self._child_path(str(name)), "name", "must be a non-empty string without '.' and not 'type'."
                )
            # schema files written before keys were tagged only stored folders untagged
            tag = raw.get("type", FOLDER_TYPE)
            child: SchemaEntry
            if tag == FOLDER_TYPE:
                child = SchemaNode(self.manager, raw, self._child_path(name))
            else:
                child = SchemaField(self.manager, raw, self._child_path(name), name)
            self._children[name] = child
            self.key_order.append(name)
            self.defaults[name] = child.defaults if isinstance(child, SchemaNode) else child.default
        self.key_order.sort()

    def _register(self, name: str, child: SchemaEntry) -> None:
        self._children[name] = child
        bisect.insort(self.key_order, name)
        self.defaults[name] = child.defaults if isinstance(child, SchemaNode) else child.default

    def _unregister(self, name: str) -> SchemaEntry:
        child = self._children.pop(name)
        self.key_order.remove(name)
        del self.defaults[name]
        return child

    def _check_name(self, name: str) -> None:
        if not isinstance(name, str) or not name:
            raise InvalidKeyError(str(name), "Key names must be non-empty strings.")
        if "." in name:
            raise InvalidKeyError(name, f"The key {name} cannot contain a '.'.")
        if name in RESERVED_KEYS:
            raise InvalidKeyError(name, f"The key {name} is reserved by the schema.")
        if name in self._children:
            raise KeyExistsError(name)

    async def _persist(self) -> None:
        """Rewrite the manager's schema file from the root of the tree."""
        data = self.manager.schema.to_json()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, write_json_atomic, self.manager.file_path, data)

    async def _commit_add(self, name: str, child: SchemaEntry) -> None:
        self._register(name, child)
        try:
            await self._persist()
        except Exception:
            self._unregister(name)
            log.warning("Could not write the schema file, reverted the addition of %s", child.path)
            raise

    async def _commit_remove(self, name: str) -> SchemaEntry:
        child = self._unregister(name)
        try:
            await self._persist()
        except Exception:
            self._register(name, child)
            log.warning("Could not write the schema file, reverted the removal of %s", child.path)
            raise
        return child

    async def add_folder(
        self,
        name: str,
        definition: Optional[Mapping[str, Any]] = None,
        propagate: bool = True,
    ) -> SchemaNode:
        """
        Create a nested folder, optionally populated from a persisted definition.

        Propagating a new folder to stored entries is not supported yet, so `propagate`
        must be False for the call to succeed; the folder is added and saved either way.
        """
        self._check_name(name)
        folder = SchemaNode(self.manager, definition, self._child_path(name))
        await self._commit_add(name, folder)
        log.info("Added the folder %s", folder.path)

        if propagate:
            await self.force_many("add", folder)
        return self.manager.schema

    async def remove_folder(self, name: str, propagate: bool = True) -> SchemaNode:
        """Remove a nested folder with everything it contains."""
        child = self._children.get(name)
        if child is None:
            raise KeyNotFoundError(name)
        if not isinstance(child, SchemaNode):
            raise KeyTypeMismatchError(name, FOLDER_TYPE)

        await self._commit_remove(name)
        log.info("Removed the folder %s", child.path)

        if propagate:
            await self.force_many("delete", child)
        return self.manager.schema

    def _parse_key_options(self, name: str, options: Optional[Mapping[str, Any]]) -> FieldOptions:
        if not isinstance(options, Mapping):
            raise SchemaMutationError(name, "You must pass an options mapping to this method.")
        type_name = options.get("type")
        if not isinstance(type_name, str):
            raise InvalidOptionError(name, "type", "The option type is required and must be a string.")
        if type_name.lower() not in self.manager.types:
            raise UnsupportedTypeError(name, type_name.lower())

        try:
            opts = FieldOptions.parse(options, path=self._child_path(name))
        except SchemaDefinitionError as e:
            raise InvalidOptionError(name, e.parameter, f"The option {e.parameter} {e.problem}") from None

        if opts.array and "default" in opts.model_fields_set and not isinstance(opts.default, list):
            msg = "The option default must be an array if the array option is set to true."
            raise InvalidOptionError(name, "default", msg)
        return opts

    async def add_key(
        self,
        name: str,
        options: Optional[Mapping[str, Any]] = None,
        propagate: bool = True,
    ) -> SchemaNode:
        """
        Add a new key to this folder.

        When `propagate` is set, the key's default is written into every stored entry
        before returning.
        """
        self._check_name(name)
        opts = self._parse_key_options(name, options)
        field = SchemaField(self.manager, opts, self._child_path(name), name)
        await self._commit_add(name, field)
        log.info("Added the key %s of type %s", field.path, field.type)

        if propagate:
            await self.force("add", field)
        return self.manager.schema

    async def remove_key(self, name: str, propagate: bool = True) -> SchemaNode:
        """Remove a key from this folder, and from every stored entry when `propagate` is set."""
        child = self._children.get(name)
        if child is None:
            raise KeyNotFoundError(name)
        if not isinstance(child, SchemaField):
            raise KeyTypeMismatchError(name, "Key")

        await self._commit_remove(name)
        log.info("Removed the key %s", child.path)

        if propagate:
            await self.force("delete", child)
        return self.manager.schema

    async def force(self, action: Literal["add", "edit", "delete"], field: SchemaField) -> None:
        """
        Bring every stored entry in line with a single key.

        "add" and "edit" set the key's default in each cached entry, "delete" removes the key
        from them. The storage provider is then asked to apply the same change to the whole
        dataset in one call; its failure is raised as a PropagationError.
        """
        if not isinstance(field, SchemaField):
            msg = "'field' must be an instance of 'SchemaField'."
            raise TypeError(msg)
        if action not in FORCE_ACTIONS:
            raise InvalidActionError(action, FORCE_ACTIONS)

        manager = self.manager
        entries = manager.cache.get_values(manager.type)
        *parents, last = field.path.split(".")
        count = skipped = 0
        for entry in entries:
            container = _walk(entry, parents, create=action != "delete")
            if container is None:
                if action != "delete":
                    skipped += 1
                continue
            if action == "delete":
                container.pop(last, None)
            else:
                container[last] = field.get_defaults()
            count += 1
        log.trace("Applied %s of %s to %d cached entries", action, field.path, count)
        if skipped:
            # a parent segment holds a non-mapping value, which is never overwritten
            log.warning("Skipped %d cached %s entries with no folder at %s", skipped, manager.type, field.path)

        try:
            if action == "delete":
                await manager.provider.remove_value(manager.type, field.path, manager.options)
            else:
                await manager.provider.update_value(manager.type, field.path, field.get_defaults(), manager.options)
        except Exception as e:
            log.warning("Failed to %s the key %s on stored %s entries", action, field.path, manager.type, exc_info=e)
            raise PropagationError(action, field.path) from e

    async def force_many(self, action: Literal["add", "delete"], folder: SchemaNode) -> None:
        """Bring every stored entry in line with a whole folder. Not supported yet."""
        if not isinstance(folder, SchemaNode):
            msg = "'folder' must be an instance of 'SchemaNode'."
            raise TypeError(msg)
        if action not in FORCE_MANY_ACTIONS:
            raise InvalidActionError(action, FORCE_MANY_ACTIONS)
        raise UnsupportedOperationError(f"Propagating the folder {folder.path} to stored entries")

    def get_defaults(self) -> dict[str, Any]:
        """Get a nested mapping of every default value below this folder."""
        return {name: self._children[name].get_defaults() for name in self.key_order}

    def get_keys(self, keys: Optional[list[str]] = None) -> list[str]:
        """Get the path of every key below this folder, depth first."""
        if keys is None:
            keys = []
        for name in self.key_order:
            self._children[name].get_keys(keys)
        return keys

    def get_columns(self, columns: Optional[list[ColumnDefinition]] = None) -> list[ColumnDefinition]:
        """Get the column definition of every key below this folder, depth first."""
        if columns is None:
            columns = []
        for name in self.key_order:
            self._children[name].get_columns(columns)
        return columns

    def get_values(self, fields: Optional[list[SchemaField]] = None) -> list[SchemaField]:
        """Get every key below this folder, depth first."""
        if fields is None:
            fields = []
        for name in self.key_order:
            self._children[name].get_values(fields)
        return fields

    def to_table(self, metadata: sa.MetaData, name: str) -> sa.Table:
        """Build a table storing one entry per row, with a column for each key below this folder."""
        return sa.Table(
            name,
            metadata,
            sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=False),
            *(field.to_column() for field in self.get_values()),
        )

    @property
    def configurable_keys(self) -> list[str]:
        """Names of the children shown by configuration surfaces: every folder, and configurable keys."""
        return [
            name
            for name in self.key_order
            if isinstance(self._children[name], SchemaNode) or self._children[name].configurable
        ]

    def resolve_string(self) -> str:
        return str(self)

    def render_list(self, guild: Optional[disnake.Guild], values: Mapping[str, Any]) -> str:
        """List each configurable child next to its current value from `values`, one per line."""
        keys = self.configurable_keys
        if not keys:
            return ""

        longest = max(len(name) for name in keys)
        lines = []
        for name in keys:
            child = self._children[name]
            if isinstance(child, SchemaNode):
                rendered = child.resolve_string()
            else:
                value = child.resolve_display(values.get(name, disnake.utils.MISSING), guild)
                rendered = child.format(value)
            lines.append(f"{name.ljust(longest)} :: {rendered}")
        return "\n".join(lines)

    def to_json(self) -> dict[str, Any]:
        """Return the persisted representation of this folder and everything below it."""
        data: dict[str, Any] = {"type": FOLDER_TYPE}
        for name in self.key_order:
            data[name] = self._children[name].to_json()
        return data
