from __future__ import annotations

import asyncio

from fakes import FakeConnection, init_result, text_tool
from mcp import types
from mcp_client.types import ServerCapabilities, StdioServerConfig, StreamServerConfig
from tools.capability_loader import load_server_capabilities

FS = StdioServerConfig(name="fs", command="/usr/bin/node", args=["server.js"])


def _all_caps() -> ServerCapabilities:
    return ServerCapabilities(tools=True, prompts=True, resources=True)


def test_unadvertised_catalogs_are_not_requested() -> None:
    conn = FakeConnection(tools=[text_tool("read")])

    catalog = asyncio.run(load_server_capabilities(init_result(FS, conn)))

    assert list(catalog.tools) == ["fs_read"]
    assert catalog.prompts == []
    assert catalog.resources == []
    assert conn.count("list_prompts") == 0
    assert conn.count("list_resources") == 0


def test_tools_are_requested_even_when_not_advertised() -> None:
    conn = FakeConnection(tools=[text_tool("read")], capabilities=ServerCapabilities())
    catalog = asyncio.run(load_server_capabilities(init_result(FS, conn)))
    assert list(catalog.tools) == ["fs_read"]


def test_advertised_catalogs_are_loaded() -> None:
    conn = FakeConnection(
        tools=[text_tool("read")],
        prompts=[types.Prompt(name="review", arguments=[types.PromptArgument(name="diff", required=True)])],
        resources=[types.Resource(uri="file:///notes/a.txt", name="a")],
        capabilities=_all_caps(),
    )

    catalog = asyncio.run(load_server_capabilities(init_result(FS, conn)))

    assert [p.name for p in catalog.prompts] == ["review"]
    assert catalog.prompts[0].arguments[0].required is True
    assert [r.uri for r in catalog.resources] == ["file:///notes/a.txt"]


def test_failing_category_does_not_affect_the_others() -> None:
    conn = FakeConnection(
        tools=[text_tool("read")],
        resources=[types.Resource(uri="file:///notes/a.txt", name="a")],
        failures={"list_prompts": RuntimeError("Method not found")},
        capabilities=_all_caps(),
    )

    catalog = asyncio.run(load_server_capabilities(init_result(FS, conn)))

    assert list(catalog.tools) == ["fs_read"]
    assert catalog.prompts == []
    assert len(catalog.resources) == 1


def test_failing_tool_catalog_is_empty() -> None:
    conn = FakeConnection(failures={"list_tools": RuntimeError("boom")}, capabilities=_all_caps())
    catalog = asyncio.run(load_server_capabilities(init_result(FS, conn)))
    assert catalog.tools == {}


def test_same_server_duplicates_last_one_wins() -> None:
    conn = FakeConnection(tools=[text_tool("dup", description="first"), text_tool("dup", description="second")])

    catalog = asyncio.run(load_server_capabilities(init_result(FS, conn)))

    assert list(catalog.tools) == ["fs_dup"]
    assert catalog.tools["fs_dup"].description == "second"


def test_tool_calls_use_the_global_timeout_not_the_server_timeout() -> None:
    conn = FakeConnection(tools=[text_tool("crawl")], delays={"crawl": 0.3})
    remote = StreamServerConfig(name="remote", url="http://127.0.0.1:9/mcp", timeout_s=0.1)

    async def scenario() -> str:
        catalog = await load_server_capabilities(init_result(remote, conn), 60.0)
        return await catalog.tools["remote_crawl"]({})

    assert asyncio.run(scenario()) == "crawl ok"
