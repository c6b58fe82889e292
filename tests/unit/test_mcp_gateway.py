from __future__ import annotations

import asyncio

from core.config import ToolsConfig
from fakes import FakeConnection, FakeProcess, make_connector, text_result, text_tool
from mcp_client.process_manager import ProcessManager
from mcp_client.types import ServerCapabilities, StdioServerConfig, StreamServerConfig
from tools.mcp_gateway import LoadError, McpGateway, load_mcp_servers_with_clients, load_mcp_tools


def _stdio(name: str, **kw) -> StdioServerConfig:
    return StdioServerConfig(name=name, command="/usr/bin/node", args=["server.js"], **kw)


def _load(configs, servers, tools_cfg=None, **kw):
    return asyncio.run(
        load_mcp_servers_with_clients(
            configs,
            tools_cfg,
            connector=make_connector(servers, processes=kw.pop("processes", None)),
            manager=kw.pop("manager", ProcessManager()),
        )
    )


def test_single_server_scenario() -> None:
    conn = FakeConnection(
        tools=[text_tool("read", schema={"type": "object", "properties": {"path": {"type": "string"}}})],
        results={"read": text_result("file contents")},
    )
    result = _load([_stdio("fs")], {"fs": conn})

    assert list(result.tools) == ["fs_read"]
    assert result.errors == []
    assert asyncio.run(result.tools["fs_read"]({"path": "a.txt"})) == "file contents"

    conn.results["read"] = text_result("ENOENT", is_error=True)
    assert asyncio.run(result.tools["fs_read"]({"path": "b.txt"})).startswith("Error:")


def test_failed_servers_produce_one_error_each() -> None:
    configs = [_stdio("a"), _stdio("broken"), StreamServerConfig(name="down", url="http://127.0.0.1:9/mcp"), _stdio("b")]
    servers = {
        "a": FakeConnection(tools=[text_tool("x")]),
        "broken": FileNotFoundError("No such file or directory: 'nonexistent-cmd'"),
        "down": ConnectionRefusedError("connection refused"),
        "b": FakeConnection(tools=[text_tool("y")]),
    }

    result = _load(configs, servers)

    assert sorted(result.tools) == ["a_x", "b_y"]
    assert [(e.server_name, e.error) for e in result.errors] == [
        ("broken", "Failed to initialize: No such file or directory: 'nonexistent-cmd'"),
        ("down", "Failed to initialize: connection refused"),
    ]
    assert [c.server_name for c in result.clients] == ["a", "broken", "down", "b"]
    failed = [c for c in result.clients if not c.connected]
    assert [c.server_name for c in failed] == ["broken", "down"]
    assert all(c.tools == {} and c.prompts == {} and c.resources == {} for c in failed)


def test_same_tool_name_on_two_servers() -> None:
    servers = {"a": FakeConnection(tools=[text_tool("dup")]), "b": FakeConnection(tools=[text_tool("dup")])}

    result = _load([_stdio("a"), _stdio("b")], servers)

    assert sorted(result.tools) == ["a_dup", "b_dup"]
    assert result.errors == []
    assert result.tools["a_dup"].server_name == "a"
    assert result.tools["b_dup"].server_name == "b"


def test_cross_server_key_collision_keeps_first_and_records_conflict() -> None:
    servers = {"a_b": FakeConnection(tools=[text_tool("c")]), "a": FakeConnection(tools=[text_tool("b_c")])}

    result = _load([_stdio("a_b"), _stdio("a")], servers)

    assert list(result.tools) == ["a_b_c"]
    assert result.tools["a_b_c"].server_name == "a_b"
    assert result.errors == [LoadError(server_name="a", error="Tool name conflict: a_b_c already exists")]
    assert all(c.connected for c in result.clients)


def test_prompt_capability_yields_bridge_tools_with_empty_catalog() -> None:
    conn = FakeConnection(capabilities=ServerCapabilities(tools=True, prompts=True))

    result = _load([_stdio("docs")], {"docs": conn})

    assert sorted(result.tools) == ["docs_get_prompt", "docs_list_prompts"]


def test_resource_capability_yields_bridge_tools() -> None:
    conn = FakeConnection(tools=[text_tool("search")], capabilities=ServerCapabilities(tools=True, resources=True))

    result = _load([_stdio("kb")], {"kb": conn})

    assert sorted(result.tools) == ["kb_list_resources", "kb_read_resource", "kb_search"]


def test_globally_disabled_bare_name_removed_from_every_server() -> None:
    servers = {
        "a": FakeConnection(tools=[text_tool("delete"), text_tool("read")]),
        "b": FakeConnection(tools=[text_tool("delete")]),
    }
    cfg = ToolsConfig(disabled_internal_tools=["delete"])

    result = _load([_stdio("a"), _stdio("b")], servers, cfg)

    assert list(result.tools) == ["a_read"]


def test_server_disabled_tools_and_bridge_tools() -> None:
    conn = FakeConnection(tools=[text_tool("read")], capabilities=ServerCapabilities(tools=True, resources=True))

    result = _load([_stdio("kb", disabled_tools=["read_resource", "read"])], {"kb": conn})

    assert list(result.tools) == ["kb_list_resources"]
    assert list(result.clients[0].tools) == ["kb_list_resources"]


def test_owned_processes_are_registered() -> None:
    manager = ProcessManager()
    proc = FakeProcess()

    _load([_stdio("fs")], {"fs": FakeConnection()}, processes={"fs": proc}, manager=manager)

    assert manager.get("fs") is proc
    assert proc.signals == []


def test_load_mcp_tools_returns_tools_and_errors() -> None:
    result = asyncio.run(
        load_mcp_tools(
            [_stdio("a"), _stdio("b")],
            connector=make_connector({"a": FakeConnection(tools=[text_tool("x")]), "b": TimeoutError("timed out")}),
            manager=ProcessManager(),
        )
    )

    assert list(result.tools) == ["a_x"]
    assert [e.server_name for e in result.errors] == ["b"]


def test_gateway_routes_calls_and_closes() -> None:
    conn = FakeConnection(tools=[text_tool("read")])
    proc = FakeProcess()
    manager = ProcessManager(grace_s=0.05, poll_s=0.01)
    gateway = McpGateway(
        servers=[_stdio("fs")],
        connector=make_connector({"fs": conn}, processes={"fs": proc}),
        manager=manager,
    )

    async def scenario() -> tuple[str, str]:
        await gateway.load()
        await gateway.load()
        ok = await gateway.call_tool("fs_read", {})
        missing = await gateway.call_tool("fs_nope", {})
        await gateway.aclose()
        return ok, missing

    ok, missing = asyncio.run(scenario())

    assert ok == "read ok"
    assert missing == "Error: Unknown tool: fs_nope"
    assert conn.count("list_tools") == 1
    assert conn.closed is True
    assert proc.signals == ["terminate"]
    assert manager.active_count() == 0
