from __future__ import annotations

import pytest

from core.config import ToolsConfig
from fakes import FakeConnection, text_tool
from mcp_client.types import StdioServerConfig
from tools.mcp_tool_wrapper import wrap_tool
from tools.tool_filter import filter_tools, is_tool_disabled


def _tool(server: str, name: str):
    return wrap_tool(text_tool(name), FakeConnection(), server_name=server, timeout_s=1.0)


def _server(name: str, disabled: list[str] | None = None) -> StdioServerConfig:
    return StdioServerConfig(name=name, command="node", disabled_tools=disabled or [])


@pytest.mark.parametrize(
    "patterns, disabled",
    [
        ([], False),
        (["fs_write_file"], True),  # full key
        (["write_file"], True),  # bare name / key tail
        (["file"], True),  # key tail after "_"
        (["ite_file"], False),  # not at a separator
        (["other_write_file"], False),
    ],
)
def test_global_policy(patterns: list[str], disabled: bool) -> None:
    tool = _tool("fs", "write_file")
    cfg = ToolsConfig(disabled_internal_tools=patterns)
    assert is_tool_disabled("fs_write_file", tool, _server("fs"), cfg) is disabled


def test_server_policy_uses_bare_name() -> None:
    tool = _tool("fs", "write_file")
    assert is_tool_disabled("fs_write_file", tool, _server("fs", ["write_file"]), ToolsConfig()) is True
    assert is_tool_disabled("fs_write_file", tool, _server("fs", ["fs_write_file"]), ToolsConfig()) is False


def test_server_policy_applies_without_global_config() -> None:
    tool = _tool("fs", "write_file")
    assert is_tool_disabled("fs_write_file", tool, _server("fs", ["write_file"]), None) is True
    assert is_tool_disabled("fs_write_file", tool, _server("fs"), None) is False


def test_filter_tools_keeps_enabled_only() -> None:
    tools = {t.name: t for t in (_tool("fs", "read"), _tool("fs", "write"), _tool("fs", "delete"))}

    kept = filter_tools(tools, _server("fs", ["delete"]), ToolsConfig(disabled_internal_tools=["write"]))

    assert sorted(kept) == ["fs_read"]
