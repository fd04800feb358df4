from __future__ import annotations

from pathlib import Path

import pytest

from guild_settings import Gateway, SchemaNode
from tests.helpers import RESOLVERS, MemoryCache, MemoryProvider


@pytest.fixture()
def provider() -> MemoryProvider:
    return MemoryProvider()


@pytest.fixture()
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture()
def schema_file(tmp_path: Path) -> Path:
    return tmp_path / "guilds" / "schema.json"


@pytest.fixture()
def gateway(provider: MemoryProvider, cache: MemoryCache, schema_file: Path) -> Gateway:
    return Gateway(
        "guilds",
        provider=provider,
        cache=cache,
        resolver=RESOLVERS,
        sql=False,
        options={"nice": False},
        file_path=schema_file,
    )


@pytest.fixture()
async def schema(gateway: Gateway) -> SchemaNode:
    return await gateway.init_schema()
