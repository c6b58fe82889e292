"""Adapters from wrapped MCP tools to agent-framework tool formats."""

from __future__ import annotations

from typing import Any, Iterable

from langchain_core.tools import StructuredTool

from .mcp_tool_wrapper import WrappedTool


def to_langchain_tool(tool: WrappedTool) -> StructuredTool:
    """Expose a wrapped tool as an async LangChain StructuredTool.

    The JSON schema is handed to LangChain as-is; validation happens in the
    wrapped tool, which also guarantees a string result.
    """

    async def _call(**kwargs: Any) -> str:
        return await tool(kwargs)

    return StructuredTool(
        name=tool.name,
        description=tool.description,
        args_schema=tool.input_schema,
        coroutine=_call,
        metadata={"server_name": tool.server_name, "tool_name": tool.tool_name},
    )


def to_langchain_tools(tools: dict[str, WrappedTool]) -> list[StructuredTool]:
    return [to_langchain_tool(t) for t in tools.values()]


def to_openai_tool_spec(tool: WrappedTool) -> dict[str, Any]:
    """OpenAI-compatible function spec:

    {"type": "function", "function": {"name", "description", "parameters"}}
    """

    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": dict(tool.input_schema),
        },
    }


def to_openai_tool_specs(tools: Iterable[WrappedTool]) -> list[dict[str, Any]]:
    return [to_openai_tool_spec(t) for t in tools]
