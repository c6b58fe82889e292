from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack

import pytest

from mcp_client.errors import UnsupportedTransportError
from mcp_client.transport import LineBuffer, build_env, client_name, drain_stderr, open_transport
from mcp_client.types import StdioServerConfig


def test_line_buffer_keeps_partial_line() -> None:
    buf = LineBuffer()

    assert buf.feed("hel") == []
    assert buf.feed("lo\nwor") == ["hello"]
    assert buf.feed("ld\n\n") == ["world", ""]
    assert buf.flush() is None

    buf.feed("tail")
    assert buf.flush() == "tail"


def test_drain_stderr_emits_lines_and_flushes_tail() -> None:
    lines: list[str] = []

    async def chunks():
        for c in ("warn: a\n", "\n  ", "info: b\npartial", " end"):
            yield c

    asyncio.run(drain_stderr(chunks(), "fs", emit=lines.append))

    assert lines == ["warn: a", "info: b", "partial end"]


def test_build_env_layers_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BRIDGE_TEST_BASE", "1")
    monkeypatch.setenv("BRIDGE_TEST_OVERRIDE", "old")

    env = build_env(StdioServerConfig(name="fs", command="node", env={"BRIDGE_TEST_OVERRIDE": "new"}))

    assert env["BRIDGE_TEST_BASE"] == "1"
    assert env["BRIDGE_TEST_OVERRIDE"] == "new"


def test_client_name() -> None:
    assert client_name(StdioServerConfig(name="fs", command="node")) == "mcp-bridge-fs"


def test_unknown_config_variant_is_rejected() -> None:
    class Bogus:
        name = "odd"
        type = "carrier-pigeon"

    async def scenario() -> None:
        async with AsyncExitStack() as stack:
            await open_transport(Bogus(), stack)  # type: ignore[arg-type]

    with pytest.raises(UnsupportedTransportError) as ei:
        asyncio.run(scenario())

    assert ei.value.details["transport"] == "carrier-pigeon"
