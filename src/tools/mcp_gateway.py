from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Sequence

from core.config import ToolsConfig
from mcp_client.client import error_message, initialize_server
from mcp_client.process_manager import ProcessManager, process_manager
from mcp_client.resolver import CommandResolver
from mcp_client.types import ServerConfig
from observability.logging import get_logger

from .client_wrapper import ClientWrapper, Connector, create_client_wrapper
from .mcp_tool_wrapper import WrappedTool
from .tool_result_codec import ToolOutcome

_log = get_logger("bridge.mcp")


@dataclass(frozen=True, slots=True)
class LoadError:
    server_name: str
    error: str


@dataclass(slots=True)
class LoadResult:
    tools: dict[str, WrappedTool] = field(default_factory=dict)
    errors: list[LoadError] = field(default_factory=list)


@dataclass(slots=True)
class McpLoadResult:
    """The aggregate handed to an agent session."""

    tools: dict[str, WrappedTool] = field(default_factory=dict)
    clients: list[ClientWrapper] = field(default_factory=list)
    errors: list[LoadError] = field(default_factory=list)


def merge_tools(clients: Sequence[ClientWrapper]) -> tuple[dict[str, WrappedTool], list[LoadError]]:
    """Merge per-server tool maps in config order.

    Keys are already namespaced, so a collision means two servers produced the
    same `{server}_{tool}` string; the earlier server keeps the key and the
    later one gets a conflict error.
    """

    merged: dict[str, WrappedTool] = {}
    conflicts: list[LoadError] = []
    for client in clients:
        if not client.connected:
            continue
        for key, tool in client.tools.items():
            existing = merged.get(key)
            if existing is not None:
                _log.warning(
                    "mcp_tool_name_conflict",
                    tool=key,
                    kept_server=existing.server_name,
                    dropped_server=tool.server_name,
                )
                conflicts.append(
                    LoadError(server_name=tool.server_name, error=f"Tool name conflict: {key} already exists")
                )
                continue
            merged[key] = tool
    return merged, conflicts


async def load_mcp_servers_with_clients(
    configs: Sequence[ServerConfig],
    tools_cfg: ToolsConfig | None = None,
    *,
    resolver: CommandResolver | None = None,
    connector: Connector = initialize_server,
    manager: ProcessManager | None = None,
) -> McpLoadResult:
    """Connect every server concurrently and merge what they offer.

    A server that fails to connect yields one LoadError and a disconnected
    wrapper; it never stops the others from loading.
    """

    tools_cfg = tools_cfg or ToolsConfig()
    _log.debug("mcp_servers_loading", servers=len(configs))

    clients = list(
        await asyncio.gather(
            *(
                create_client_wrapper(
                    config,
                    tools_cfg,
                    resolver=resolver,
                    connector=connector,
                    manager=manager,
                )
                for config in configs
            )
        )
    )

    failures = [
        LoadError(server_name=c.server_name, error=c.error or "Failed to initialize")
        for c in clients
        if not c.connected
    ]
    tools, conflicts = merge_tools(clients)
    errors = failures + conflicts

    _log.info(
        "mcp_servers_loaded",
        servers=len(configs),
        connected=len(configs) - len(failures),
        failed=[e.server_name for e in failures],
        conflicts=len(conflicts),
        tools=len(tools),
    )
    return McpLoadResult(tools=tools, clients=clients, errors=errors)


async def load_mcp_tools(
    configs: Sequence[ServerConfig],
    tools_cfg: ToolsConfig | None = None,
    **kwargs: Any,
) -> LoadResult:
    result = await load_mcp_servers_with_clients(configs, tools_cfg, **kwargs)
    return LoadResult(tools=result.tools, errors=result.errors)


class McpGateway:
    """Session-scoped owner of the bridged MCP servers.

    Responsibilities:
    - Load all configured servers once, in parallel.
    - Route model tool calls by namespaced key; calls always return a string.
    - Close sessions and hand subprocess teardown to the process manager.
    """

    def __init__(
        self,
        *,
        servers: Sequence[ServerConfig],
        tools_cfg: ToolsConfig | None = None,
        resolver: CommandResolver | None = None,
        connector: Connector | None = None,
        manager: ProcessManager | None = None,
    ) -> None:
        self._servers = list(servers)
        self._tools_cfg = tools_cfg or ToolsConfig()
        self._resolver = resolver
        self._connector = connector or initialize_server
        self._manager = manager if manager is not None else process_manager

        self._result: McpLoadResult | None = None
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> McpLoadResult:
        if self._result is None:
            raise RuntimeError("McpGateway not loaded")
        return self._result

    @property
    def tools(self) -> dict[str, WrappedTool]:
        return self.result.tools

    @property
    def clients(self) -> list[ClientWrapper]:
        return self.result.clients

    @property
    def errors(self) -> list[LoadError]:
        return self.result.errors

    def client(self, server_name: str) -> ClientWrapper | None:
        for c in self.result.clients:
            if c.server_name == server_name:
                return c
        return None

    async def load(self) -> McpLoadResult:
        async with self._lock:
            if self._result is None:
                self._result = await load_mcp_servers_with_clients(
                    self._servers,
                    self._tools_cfg,
                    resolver=self._resolver,
                    connector=self._connector,
                    manager=self._manager,
                )
        return self._result

    async def run_tool(self, name: str, arguments: dict[str, Any] | None = None) -> ToolOutcome:
        await self.load()

        tool = self.result.tools.get(name)
        if tool is None:
            return ToolOutcome.failure(f"Unknown tool: {name}")
        return await tool.run(arguments)

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        outcome = await self.run_tool(name, arguments)
        return outcome.to_text()

    async def aclose(self) -> None:
        result = self._result
        if result is not None:
            for client in result.clients:
                if not client.connected:
                    continue
                try:
                    await client.aclose()
                except Exception as e:  # noqa: BLE001
                    _log.warning("mcp_client_close_failed", server=client.server_name, error=error_message(e))
        await self._manager.cleanup_all()
