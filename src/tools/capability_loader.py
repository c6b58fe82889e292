from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from core.config import DEFAULT_TOOL_TIMEOUT_S
from mcp_client.client import ServerInitResult, error_message
from mcp_client.types import PromptDeclaration, ResourceDeclaration
from observability.logging import get_logger

from .mcp_tool_wrapper import WrappedTool, wrap_tool

_log = get_logger("bridge.capabilities")

T = TypeVar("T")


@dataclass(slots=True)
class ServerCatalog:
    """What one connected server offers. Every category defaults to empty."""

    tools: dict[str, WrappedTool] = field(default_factory=dict)
    prompts: list[PromptDeclaration] = field(default_factory=list)
    resources: list[ResourceDeclaration] = field(default_factory=list)


async def _isolated(server_name: str, category: str, fetch: Callable[[], Awaitable[T]], empty: T) -> T:
    try:
        return await fetch()
    except Exception as e:  # noqa: BLE001
        _log.warning("mcp_catalog_fetch_failed", server=server_name, category=category, error=error_message(e))
        return empty


async def _empty(value: T) -> T:
    return value


async def load_server_capabilities(
    init: ServerInitResult,
    tool_timeout_s: float = DEFAULT_TOOL_TIMEOUT_S,
) -> ServerCatalog:
    """Fetch the catalogs of one connected server.

    The tool catalog is always requested; prompts and resources only when the
    handshake advertised them. A failing category is logged and comes back
    empty without affecting the others.
    """

    server_name = init.config.name
    connection = init.connection

    async def fetch_tools() -> dict[str, WrappedTool]:
        declared = await connection.list_tools()
        tools: dict[str, WrappedTool] = {}
        for tool in declared:
            wrapped = wrap_tool(tool, connection, server_name=server_name, timeout_s=tool_timeout_s)
            if wrapped.name in tools:
                _log.warning("mcp_duplicate_tool", server=server_name, tool=wrapped.tool_name)
            # Last declaration wins.
            tools[wrapped.name] = wrapped
        return tools

    async def fetch_prompts() -> list[PromptDeclaration]:
        return [PromptDeclaration.from_mcp(p) for p in await connection.list_prompts()]

    async def fetch_resources() -> list[ResourceDeclaration]:
        return [ResourceDeclaration.from_mcp(r) for r in await connection.list_resources()]

    caps = init.capabilities
    empty_prompts: list[PromptDeclaration] = []
    empty_resources: list[ResourceDeclaration] = []
    tools, prompts, resources = await asyncio.gather(
        _isolated(server_name, "tools", fetch_tools, {}),
        _isolated(server_name, "prompts", fetch_prompts, empty_prompts) if caps.prompts else _empty(empty_prompts),
        _isolated(server_name, "resources", fetch_resources, empty_resources)
        if caps.resources
        else _empty(empty_resources),
    )

    _log.info(
        "mcp_capabilities_loaded",
        server=server_name,
        tools=len(tools),
        prompts=len(prompts),
        resources=len(resources),
    )
    return ServerCatalog(tools=tools, prompts=prompts, resources=resources)

