"""Model-facing tools bridged from MCP servers."""

from __future__ import annotations

from .client_wrapper import ClientWrapper, create_client_wrapper
from .mcp_gateway import LoadError, LoadResult, McpGateway, McpLoadResult, load_mcp_servers_with_clients, load_mcp_tools
from .mcp_tool_wrapper import WrappedTool, wrap_tool
from .tool_filter import is_tool_disabled
from .tool_result_codec import ToolOutcome

__all__ = [
    "ClientWrapper",
    "LoadError",
    "LoadResult",
    "McpGateway",
    "McpLoadResult",
    "ToolOutcome",
    "WrappedTool",
    "create_client_wrapper",
    "is_tool_disabled",
    "load_mcp_servers_with_clients",
    "load_mcp_tools",
    "wrap_tool",
]
