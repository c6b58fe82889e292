from __future__ import annotations

from core.config import ToolsConfig
from mcp_client.types import ServerConfig

from .mcp_naming import matches_suffix
from .mcp_tool_wrapper import WrappedTool


def is_tool_disabled(
    tool_key: str,
    tool: WrappedTool,
    server_config: ServerConfig,
    tools_cfg: ToolsConfig | None = None,
) -> bool:
    """Decide whether a tool is withheld from the model.

    Priority:
    1. the server's own `disabled_tools` (bare tool names) wins outright;
    2. the global `disabled_internal_tools` list, matched against the full key,
       the bare name, or the key's tail after a "_" separator;
    3. otherwise enabled.
    """

    if tool.tool_name in (server_config.disabled_tools or ()):
        return True

    patterns = tools_cfg.disabled_internal_tools if tools_cfg is not None else []
    for pattern in patterns:
        if pattern == tool_key or pattern == tool.tool_name or matches_suffix(tool_key, pattern):
            return True
    return False


def filter_tools(
    tools: dict[str, WrappedTool],
    server_config: ServerConfig,
    tools_cfg: ToolsConfig | None = None,
) -> dict[str, WrappedTool]:
    return {key: tool for key, tool in tools.items() if not is_tool_disabled(key, tool, server_config, tools_cfg)}
