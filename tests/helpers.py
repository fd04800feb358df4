"""In-memory stand-ins for the collaborators of a gateway."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Mapping, MutableMapping, Optional


class MemoryProvider:
    """Storage provider recording every call, optionally failing them."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.fail: Optional[Exception] = None

    async def update_value(self, table: str, path: str, value: Any, options: Mapping[str, Any]) -> None:
        self.calls.append(("update", table, path, value, dict(options)))
        if self.fail is not None:
            raise self.fail

    async def remove_value(self, table: str, path: str, options: Mapping[str, Any]) -> None:
        self.calls.append(("remove", table, path, dict(options)))
        if self.fail is not None:
            raise self.fail


class MemoryCache:
    def __init__(self) -> None:
        self.entries: dict[str, list[MutableMapping[str, Any]]] = {}

    def get_values(self, table: str) -> list[MutableMapping[str, Any]]:
        return self.entries.setdefault(table, [])


def _check_bounds(number: float, key: str, bounds: Mapping[str, Any]) -> None:
    if bounds["min"] is not None and number < bounds["min"]:
        msg = f"{key} must be at least {bounds['min']}"
        raise ValueError(msg)
    if bounds["max"] is not None and number > bounds["max"]:
        msg = f"{key} must be at most {bounds['max']}"
        raise ValueError(msg)


async def resolve_integer(value: Any, guild: Any, key: str, bounds: Mapping[str, Any]) -> int:
    number = int(value)
    _check_bounds(number, key, bounds)
    return number


async def resolve_string(value: Any, guild: Any, key: str, bounds: Mapping[str, Any]) -> str:
    text = str(value)
    _check_bounds(len(text), key, bounds)
    return text


async def resolve_user(value: Any, guild: Any, key: str, bounds: Mapping[str, Any]) -> Any:
    member = guild.get_member(int(value))
    if member is None:
        msg = f"{key} must be a member of the guild"
        raise ValueError(msg)
    return member


RESOLVERS = {
    "integer": resolve_integer,
    "string": resolve_string,
    "user": resolve_user,
}


def make_guild(
    members: Optional[dict[int, Any]] = None,
    channels: Optional[dict[int, Any]] = None,
    roles: Optional[dict[int, Any]] = None,
) -> SimpleNamespace:
    members = members or {}
    channels = channels or {}
    roles = roles or {}
    return SimpleNamespace(
        name="Python Discord",
        get_member=members.get,
        get_channel=channels.get,
        get_role=roles.get,
    )
