from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from mcp import types

from mcp_client.client import ServerInitResult
from mcp_client.types import ServerCapabilities, ServerConfig, ServerInfo


def text_tool(name: str, *, description: str | None = None, schema: dict[str, Any] | None = None) -> types.Tool:
    return types.Tool(
        name=name,
        description=description,
        inputSchema=schema if schema is not None else {"type": "object", "properties": {}},
    )


def text_result(text: str, *, is_error: bool = False) -> types.CallToolResult:
    return types.CallToolResult(content=[types.TextContent(type="text", text=text)], isError=is_error)


@dataclass
class FakeConnection:
    """In-memory stand-in for a live MCP session."""

    tools: list[types.Tool] = field(default_factory=list)
    prompts: list[types.Prompt] = field(default_factory=list)
    resources: list[types.Resource] = field(default_factory=list)
    results: dict[str, types.CallToolResult] = field(default_factory=dict)
    failures: dict[str, Exception] = field(default_factory=dict)
    hang: set[str] = field(default_factory=set)
    delays: dict[str, float] = field(default_factory=dict)
    capabilities: ServerCapabilities = field(default_factory=lambda: ServerCapabilities(tools=True))

    calls: list[tuple[str, Any]] = field(default_factory=list)
    closed: bool = False

    def _check(self, method: str) -> None:
        self.calls.append((method, None))
        exc = self.failures.get(method)
        if exc is not None:
            raise exc

    async def list_tools(self) -> list[types.Tool]:
        self._check("list_tools")
        return list(self.tools)

    async def list_prompts(self) -> list[types.Prompt]:
        self._check("list_prompts")
        return list(self.prompts)

    async def list_resources(self) -> list[types.Resource]:
        self._check("list_resources")
        return list(self.resources)

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        self.calls.append(("call_tool", (name, arguments)))
        if name in self.hang:
            await asyncio.Event().wait()
        if name in self.delays:
            await asyncio.sleep(self.delays[name])
        exc = self.failures.get("call_tool")
        if exc is not None:
            raise exc
        return self.results.get(name) or text_result(f"{name} ok")

    async def get_prompt(self, name: str, arguments: dict[str, Any] | None = None) -> types.GetPromptResult:
        self._check("get_prompt")
        return types.GetPromptResult(
            description=f"prompt {name}",
            messages=[
                types.PromptMessage(
                    role="user",
                    content=types.TextContent(type="text", text=f"{name}:{sorted((arguments or {}).items())}"),
                )
            ],
        )

    async def read_resource(self, uri: str) -> types.ReadResourceResult:
        self._check("read_resource")
        return types.ReadResourceResult(
            contents=[types.TextResourceContents(uri=uri, mimeType="text/plain", text="hello")]
        )

    async def aclose(self) -> None:
        self.closed = True

    def count(self, method: str) -> int:
        return sum(1 for m, _ in self.calls if m == method)


@dataclass
class FakeProcess:
    """Process handle that exits on terminate() unless `stubborn`."""

    pid: int = 4242
    stubborn: bool = False
    returncode: int | None = None
    signals: list[str] = field(default_factory=list)

    def terminate(self) -> None:
        self.signals.append("terminate")
        if not self.stubborn:
            self.returncode = -15

    def kill(self) -> None:
        self.signals.append("kill")
        self.returncode = -9


def init_result(config: ServerConfig, connection: FakeConnection, *, process: Any | None = None) -> ServerInitResult:
    return ServerInitResult(
        connection=connection,
        capabilities=connection.capabilities,
        server_info=ServerInfo(name=config.name, version="0.0.1"),
        config=config,
        process=process,
    )


def make_connector(servers: dict[str, FakeConnection | Exception], *, processes: dict[str, Any] | None = None):
    """Build an `initialize_server` stand-in keyed by server name."""

    processes = processes or {}

    async def connector(config: ServerConfig, *, resolver: Any = None) -> ServerInitResult:
        entry = servers[config.name]
        if isinstance(entry, Exception):
            raise entry
        return init_result(config, entry, process=processes.get(config.name))

    return connector
