"""MCP (Model Context Protocol) client-side integration.

This package intentionally avoids the top-level name `mcp` to prevent shadowing
the upstream MCP Python SDK module (`import mcp`).
"""

from __future__ import annotations

from .client import McpConnection, McpSession, ServerInitResult, initialize_server
from .errors import McpClientError, McpNotConnectedError, McpTimeoutError, UnsupportedTransportError
from .process_manager import ProcessManager, process_manager
from .resolver import CommandResolver, ShellCommandResolver, StaticCommandResolver
from .types import (
    PromptArgument,
    PromptDeclaration,
    PromptResult,
    ResourceContent,
    ResourceDeclaration,
    ServerCapabilities,
    ServerConfig,
    ServerInfo,
    StdioServerConfig,
    StreamServerConfig,
)

__all__ = [
    "CommandResolver",
    "McpClientError",
    "McpConnection",
    "McpNotConnectedError",
    "McpSession",
    "McpTimeoutError",
    "ProcessManager",
    "PromptArgument",
    "PromptDeclaration",
    "PromptResult",
    "ResourceContent",
    "ResourceDeclaration",
    "ServerCapabilities",
    "ServerConfig",
    "ServerInfo",
    "ServerInitResult",
    "ShellCommandResolver",
    "StaticCommandResolver",
    "StdioServerConfig",
    "StreamServerConfig",
    "UnsupportedTransportError",
    "initialize_server",
    "process_manager",
]
