"""Bridge tools exposing a server's prompts and resources to the model.

Creation is gated on the advertised capability, not on catalog size: a server
advertising `prompts` always gets both prompt tools, even with no prompts.
"""

from __future__ import annotations

from typing import Any

from mcp_client.client import McpSession, error_message
from mcp_client.types import PromptDeclaration, PromptResult, ResourceContent, ResourceDeclaration
from observability.logging import log_mcp_tool

from .mcp_naming import GET_PROMPT, LIST_PROMPTS, LIST_RESOURCES, READ_RESOURCE
from .mcp_tool_wrapper import WrappedTool, make_tool
from .tool_result_codec import ToolOutcome, dumps_json

_NO_ARGS: dict[str, Any] = {"type": "object", "properties": {}}

GET_PROMPT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "description": "Name of the prompt to execute"},
        "arguments": {"type": "object", "description": "Arguments for the prompt"},
    },
    "required": ["name"],
}

READ_RESOURCE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "uri": {"type": "string", "description": "URI of the resource to read"},
    },
    "required": ["uri"],
}


async def execute_prompt(connection: McpSession, name: str, arguments: dict[str, Any] | None = None) -> PromptResult:
    result = await connection.get_prompt(name, arguments or None)
    return PromptResult.from_mcp(result)


async def read_resource_content(connection: McpSession, uri: str) -> ResourceContent:
    result = await connection.read_resource(uri)
    return ResourceContent.from_mcp(result)


def prompt_tools(
    connection: McpSession,
    server_name: str,
    prompts: list[PromptDeclaration],
) -> dict[str, WrappedTool]:
    catalog = [p.to_dict() for p in prompts]

    async def list_prompts(_: dict[str, Any]) -> ToolOutcome:
        return ToolOutcome.success(dumps_json(catalog))

    async def get_prompt(arguments: dict[str, Any]) -> ToolOutcome:
        name = arguments["name"]
        try:
            result = await execute_prompt(connection, name, arguments.get("arguments"))
        except Exception as e:  # noqa: BLE001
            message = error_message(e)
            log_mcp_tool(server_name, GET_PROMPT, "error", "prompt_failed", prompt=name, error=message)
            return ToolOutcome.failure(message or "Failed to execute prompt")
        return ToolOutcome.success(dumps_json(result.to_dict()))

    tools = [
        make_tool(
            server_name=server_name,
            tool_name=LIST_PROMPTS,
            description=f"List available prompts from {server_name}",
            input_schema=_NO_ARGS,
            executor=list_prompts,
        ),
        make_tool(
            server_name=server_name,
            tool_name=GET_PROMPT,
            description=f"Get and execute a prompt from {server_name}",
            input_schema=GET_PROMPT_SCHEMA,
            executor=get_prompt,
        ),
    ]
    return {t.name: t for t in tools}


def resource_tools(
    connection: McpSession,
    server_name: str,
    resources: list[ResourceDeclaration],
) -> dict[str, WrappedTool]:
    catalog = [r.to_dict() for r in resources]

    async def list_resources(_: dict[str, Any]) -> ToolOutcome:
        return ToolOutcome.success(dumps_json(catalog))

    async def read_resource(arguments: dict[str, Any]) -> ToolOutcome:
        uri = arguments["uri"]
        try:
            content = await read_resource_content(connection, uri)
        except Exception as e:  # noqa: BLE001
            message = error_message(e)
            log_mcp_tool(server_name, READ_RESOURCE, "error", "resource_read_failed", uri=uri, error=message)
            return ToolOutcome.failure(message or "Failed to read resource")
        return ToolOutcome.success(dumps_json(content.to_dict()))

    tools = [
        make_tool(
            server_name=server_name,
            tool_name=LIST_RESOURCES,
            description=f"List available resources from {server_name}",
            input_schema=_NO_ARGS,
            executor=list_resources,
        ),
        make_tool(
            server_name=server_name,
            tool_name=READ_RESOURCE,
            description=f"Read content from a resource in {server_name}",
            input_schema=READ_RESOURCE_SCHEMA,
            executor=read_resource,
        ),
    ]
    return {t.name: t for t in tools}
