from __future__ import annotations

import copy
import json
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, NamedTuple, Optional, Union

import attrs
import disnake
import pydantic
import sqlalchemy as sa
from pydantic import ConfigDict, ValidationInfo, field_validator

from guild_settings.errors import SchemaDefinitionError
from guild_settings.log import get_logger


if TYPE_CHECKING:
    from guild_settings.gateway import Gateway


__all__ = (
    "ColumnDefinition",
    "FieldOptions",
    "ParseResult",
    "SchemaField",
    "sql_literal",
)

log = get_logger(__name__)

Number = Union[int, float]

CHANNEL_TYPES = frozenset({"channel", "textchannel", "voicechannel"})
REFERENCE_TYPES = CHANNEL_TYPES | {"guild", "role", "user"}

# the problem reported for each option when it has the wrong primitive type
_OPTION_PROBLEMS = {
    "type": "must be a string.",
    "array": "must be a boolean.",
    "min": "must be a number or null.",
    "max": "must be a number or null.",
    "configurable": "must be a boolean.",
}


class FieldOptions(pydantic.BaseModel):
    """The options a key is declared with, as stored in the schema file or passed to `add_key`."""

    model_config = ConfigDict(strict=True, frozen=True, extra="ignore", allow_inf_nan=False)

    type: str
    array: bool = False
    default: Any = None
    min: Optional[Number] = None
    max: Optional[Number] = None
    configurable: Optional[bool] = None

    @field_validator("type")
    @classmethod
    def lower_type(cls, v: str) -> str:
        """Type names are case insensitive."""
        return v.lower()

    @field_validator("max")
    @classmethod
    def check_bounds(cls, v: Optional[Number], info: ValidationInfo) -> Optional[Number]:
        """Ensure the bounds are not inverted."""
        low = info.data.get("min")
        if v is not None and low is not None and low > v:
            msg = "must contain a value higher than the parameter min."
            raise ValueError(msg)
        return v

    @classmethod
    def parse(cls, options: Mapping[str, Any] | FieldOptions, *, path: str) -> FieldOptions:
        """Validate raw options, raising a SchemaDefinitionError naming the first offending parameter."""
        if isinstance(options, FieldOptions):
            return options
        try:
            return cls.model_validate(dict(options) if isinstance(options, Mapping) else options)
        except pydantic.ValidationError as e:
            error = e.errors()[0]
            parameter = str(error["loc"][0]) if error["loc"] else "options"
            if error["type"] == "value_error":
                problem = str(error["ctx"]["error"])
            elif parameter == "options":
                problem = "must be a mapping."
            else:
                problem = _OPTION_PROBLEMS.get(parameter, error["msg"])
            raise SchemaDefinitionError(path, parameter, problem) from None


class ColumnDefinition(NamedTuple):
    """A column name paired with the DDL that declares it."""

    name: str
    definition: str


@attrs.define(frozen=True)
class ParseResult:
    data: Any
    sql: Optional[str] = None


def _quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def _json_default(value: Any) -> Any:
    name = getattr(value, "name", None)
    return name if isinstance(name, str) else str(value)


def sql_literal(value: Any) -> str:
    """
    Render a value as an SQL literal for a dialect delimiting strings with single quotes.

    Booleans, numbers and None render as their literal text, strings are quoted with
    embedded quotes doubled, and anything else is serialised to JSON and quoted the same way.
    This only escapes literals, use bound parameters for queries built from user input.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return _quote(value)
    return _quote(json.dumps(value, default=_json_default))


def _unwrap(value: Any) -> Any:
    """Replace domain objects with their ids (users, channels, roles...) or names (commands)."""
    if isinstance(value, (list, tuple)):
        return [_unwrap(v) for v in value]
    if isinstance(value, (str, int, float, dict)) or value is None:
        return value
    snowflake = getattr(value, "id", None)
    if snowflake is not None:
        return snowflake
    name = getattr(value, "name", None)
    return name if isinstance(name, str) else value


class SchemaField:
    """
    A key of the schema: a single setting with its type, default value and bounds.

    Keys validate their options when constructed, so an instance always satisfies its
    invariants. The path and key name are given by the containing folder and are not
    part of the persisted representation.
    """

    def __init__(
        self,
        manager: Gateway,
        options: Mapping[str, Any] | FieldOptions,
        path: str,
        key: str,
    ) -> None:
        self.manager = manager
        self.path = path
        self.key = key

        opts = FieldOptions.parse(options, path=path)
        self.type: str = opts.type
        self.array: bool = opts.array
        if "default" in opts.model_fields_set:
            self.default: Any = opts.default
        elif self.array:
            self.default = []
        else:
            self.default = False if self.type == "boolean" else None
        self.min: Optional[Number] = opts.min
        self.max: Optional[Number] = opts.max
        # keys of type any hold arbitrary data and are hidden from the config surfaces unless asked
        self.configurable: bool = opts.configurable if opts.configurable is not None else self.type != "any"

        self.column = ColumnDefinition(self.key, self._column_definition())
        log.trace("Created key %s of type %s", self.path, self.type)

    def __repr__(self) -> str:
        return f"<SchemaField path={self.path!r} type={self.type!r} array={self.array}>"

    def _column_definition(self) -> str:
        definition = "INTEGER" if self.type in ("integer", "float") else "TEXT"
        if self.default is not None:
            definition += f" DEFAULT {sql_literal(self.default)}"
        return definition

    def sql(self, value: Any = None) -> str:
        """Build the SQL assignment of `value` to this key's column."""
        return f"'{self.path}' = {sql_literal(_unwrap(value))}"

    async def parse(self, value: Any, guild: Optional[disnake.Guild] = None) -> ParseResult:
        """Resolve a raw value with the resolver registered for this key's type."""
        resolve = self.manager.resolver[self.type]
        data = await resolve(value, guild, self.key, {"min": self.min, "max": self.max})
        return ParseResult(data, self.sql(data) if self.manager.sql else None)

    def get_default(self) -> ParseResult:
        """Get the default value as a parse result."""
        return ParseResult(self.get_defaults(), self.sql(self.default) if self.manager.sql else None)

    def get_defaults(self) -> Any:
        """Return a copy of the default value, so stored entries never share a mutable default."""
        return copy.deepcopy(self.default)

    def get_keys(self, keys: Optional[list[str]] = None) -> list[str]:
        if keys is None:
            keys = []
        keys.append(self.path)
        return keys

    def get_columns(self, columns: Optional[list[ColumnDefinition]] = None) -> list[ColumnDefinition]:
        if columns is None:
            columns = []
        columns.append(self.column)
        return columns

    def get_values(self, fields: Optional[list[SchemaField]] = None) -> list[SchemaField]:
        if fields is None:
            fields = []
        fields.append(self)
        return fields

    def to_column(self) -> sa.Column[Any]:
        """Build an SQLAlchemy column storing this key, named after its path."""
        column_type: Any
        if self.array:
            column_type = sa.JSON
        elif self.type == "integer":
            column_type = sa.Integer
        elif self.type == "float":
            column_type = sa.Float
        elif self.type == "boolean":
            column_type = sa.Boolean
        else:
            column_type = sa.Text
        server_default = sa.text(sql_literal(self.default)) if self.default is not None else None
        return sa.Column(self.path, column_type, nullable=True, server_default=server_default)

    def to_json(self) -> dict[str, Any]:
        """Return the persisted representation of this key."""
        return {
            "type": self.type,
            "array": self.array,
            "default": copy.deepcopy(self.default),
            "min": self.min,
            "max": self.max,
            "configurable": self.configurable,
        }

    def resolve_display(self, value: Any, guild: Optional[disnake.Guild]) -> Any:
        """Look up stored ids of users, channels and roles in the guild, returning the value if not found."""
        if guild is None or value is None or value is disnake.utils.MISSING:
            return value
        if isinstance(value, (list, tuple)):
            return [self.resolve_display(v, guild) for v in value]

        if isinstance(value, str) and value.isdigit():
            snowflake = int(value)
        elif isinstance(value, int) and not isinstance(value, bool):
            snowflake = value
        else:
            return value

        resolved: Any = None
        if self.type == "user":
            resolved = guild.get_member(snowflake)
        elif self.type in CHANNEL_TYPES:
            resolved = guild.get_channel(snowflake)
        elif self.type == "role":
            resolved = guild.get_role(snowflake)
        return value if resolved is None else resolved

    def format(self, value: Any = disnake.utils.MISSING) -> str:
        """Render a resolved value of this key for display."""
        if value is disnake.utils.MISSING:
            return f"{{SchemaPiece:{self.type}}}"
        if value is None:
            return "Not set"
        if self.array and isinstance(value, (list, tuple)):
            return ", ".join(self._format_one(v) for v in value) or "None"
        return self._format_one(value)

    def _format_one(self, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if self.type in REFERENCE_TYPES and isinstance(value, (int, str)):
            # an id that could not be resolved
            return str(value)
        if self.type == "user":
            return f"@{value.name}"
        if self.type in CHANNEL_TYPES:
            return f"#{value.name}"
        if self.type == "role":
            return f"@{value.name}"
        if self.type == "guild":
            return value.name
        return str(value)
