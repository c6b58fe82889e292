from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from core.config import ToolsConfig
from mcp_client.client import McpSession, ServerInitResult, error_message, initialize_server
from mcp_client.errors import McpNotConnectedError
from mcp_client.process_manager import ProcessManager, process_manager
from mcp_client.resolver import CommandResolver
from mcp_client.types import (
    PromptDeclaration,
    PromptResult,
    ResourceContent,
    ResourceDeclaration,
    ServerCapabilities,
    ServerConfig,
    ServerInfo,
)
from observability.logging import get_logger

from .capability_loader import ServerCatalog, load_server_capabilities
from .capability_tools import execute_prompt, prompt_tools, read_resource_content, resource_tools
from .mcp_tool_wrapper import WrappedTool
from .tool_filter import filter_tools

_log = get_logger("bridge.clients")

Connector = Callable[..., Awaitable[ServerInitResult]]


@dataclass(slots=True)
class ClientWrapper:
    """Everything the agent session holds for one configured server.

    A disconnected wrapper has empty stores; its list accessors return [] and
    its fetch accessors raise McpNotConnectedError. Accessors on a connected
    wrapper go to the live connection, not to the catalogs cached at load.
    """

    server_name: str
    server_config: ServerConfig
    connection: McpSession | None = None
    capabilities: ServerCapabilities = field(default_factory=ServerCapabilities)
    server_info: ServerInfo | None = None
    tools: dict[str, WrappedTool] = field(default_factory=dict)
    prompts: dict[str, PromptDeclaration] = field(default_factory=dict)
    resources: dict[str, ResourceDeclaration] = field(default_factory=dict)
    connected: bool = False
    process: Any | None = None
    error: str | None = None

    def _require_connection(self) -> McpSession:
        if not self.connected or self.connection is None:
            raise McpNotConnectedError(self.server_name)
        return self.connection

    async def list_prompts(self) -> list[PromptDeclaration]:
        if not self.connected or self.connection is None or not self.capabilities.prompts:
            return []
        return [PromptDeclaration.from_mcp(p) for p in await self.connection.list_prompts()]

    async def get_prompt(self, name: str, arguments: dict[str, Any] | None = None) -> PromptResult:
        return await execute_prompt(self._require_connection(), name, arguments)

    async def list_resources(self) -> list[ResourceDeclaration]:
        if not self.connected or self.connection is None or not self.capabilities.resources:
            return []
        return [ResourceDeclaration.from_mcp(r) for r in await self.connection.list_resources()]

    async def read_resource(self, uri: str) -> ResourceContent:
        return await read_resource_content(self._require_connection(), uri)

    async def aclose(self) -> None:
        connection = self.connection
        self.connected = False
        if connection is not None:
            await connection.aclose()


def build_client_wrapper(
    init: ServerInitResult,
    catalog: ServerCatalog,
    tools_cfg: ToolsConfig | None = None,
    manager: ProcessManager | None = None,
) -> ClientWrapper:
    config = init.config
    tools: dict[str, WrappedTool] = dict(catalog.tools)

    # Bridge tools override same-named server tools.
    if init.capabilities.prompts:
        tools.update(prompt_tools(init.connection, config.name, catalog.prompts))
    if init.capabilities.resources:
        tools.update(resource_tools(init.connection, config.name, catalog.resources))

    published = filter_tools(tools, config, tools_cfg)
    if len(published) != len(tools):
        _log.debug(
            "mcp_tools_disabled",
            server=config.name,
            disabled=sorted(set(tools) - set(published)),
        )

    if init.process is not None:
        (manager if manager is not None else process_manager).register(config.name, init.process)

    return ClientWrapper(
        server_name=config.name,
        server_config=config,
        connection=init.connection,
        capabilities=init.capabilities,
        server_info=init.server_info,
        tools=published,
        prompts={p.name: p for p in catalog.prompts},
        resources={r.uri: r for r in catalog.resources},
        connected=True,
        process=init.process,
    )


def failed_client_wrapper(config: ServerConfig, error: str | None = None) -> ClientWrapper:
    return ClientWrapper(server_name=config.name, server_config=config, connected=False, error=error)


async def create_client_wrapper(
    config: ServerConfig,
    tools_cfg: ToolsConfig | None = None,
    *,
    resolver: CommandResolver | None = None,
    connector: Connector = initialize_server,
    manager: ProcessManager | None = None,
) -> ClientWrapper:
    """Connect one server and build its wrapper. Never raises on connection failure."""

    tools_cfg = tools_cfg or ToolsConfig()
    try:
        init = await connector(config, resolver=resolver)
    except Exception as e:  # noqa: BLE001
        return failed_client_wrapper(config, error=f"Failed to initialize: {error_message(e)}")

    catalog = await load_server_capabilities(init, tools_cfg.tool_timeout_s)
    return build_client_wrapper(init, catalog, tools_cfg, manager)
