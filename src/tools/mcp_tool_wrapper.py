from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from mcp import types
from pydantic import BaseModel, ValidationError

from mcp_client.client import McpSession, error_message
from observability.logging import log_mcp_tool

from .mcp_naming import namespaced_name
from .schema import json_schema_to_model, normalize_input_schema, validate_arguments
from .tool_result_codec import ToolOutcome, first_text, flatten_content

Executor = Callable[[dict[str, Any]], Awaitable[ToolOutcome]]


def describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        problems.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(problems)


@dataclass(frozen=True, slots=True)
class WrappedTool:
    """A namespaced, validated, time-bounded callable for one remote tool.

    `name` is the model-facing key; `tool_name` is what the server knows the
    tool as. Calls never raise: every failure comes back as an error outcome.
    """

    name: str
    tool_name: str
    server_name: str
    description: str
    input_schema: dict[str, Any]
    args_model: type[BaseModel]
    executor: Executor = field(repr=False, compare=False)

    async def run(self, arguments: dict[str, Any] | None = None) -> ToolOutcome:
        try:
            validated = validate_arguments(self.args_model, arguments)
        except ValidationError as e:
            message = describe_validation_error(e)
            log_mcp_tool(self.server_name, self.tool_name, "warning", "tool_arguments_invalid", error=message)
            return ToolOutcome.failure(f"Invalid arguments for {self.tool_name}: {message}")
        return await self.executor(validated)

    async def __call__(self, arguments: dict[str, Any] | None = None) -> str:
        outcome = await self.run(arguments)
        return outcome.to_text()


def make_tool(
    *,
    server_name: str,
    tool_name: str,
    description: str,
    input_schema: Any,
    executor: Executor,
) -> WrappedTool:
    key = namespaced_name(server_name, tool_name)
    schema = normalize_input_schema(input_schema)
    return WrappedTool(
        name=key,
        tool_name=tool_name,
        server_name=server_name,
        description=description,
        input_schema=schema,
        args_model=json_schema_to_model(schema, name=key),
        executor=executor,
    )


def wrap_tool(tool: types.Tool, connection: McpSession, *, server_name: str, timeout_s: float) -> WrappedTool:
    """Wrap a remote tool declaration.

    The remote call is raced against `timeout_s`; on expiry the pending call is
    cancelled and the outcome is "Tool execution timeout".
    """

    tool_name = str(tool.name)

    async def execute(arguments: dict[str, Any]) -> ToolOutcome:
        log_mcp_tool(server_name, tool_name, "info", "tool_called", arguments=arguments)
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(connection.call_tool(tool_name, arguments), timeout=timeout_s)
        except TimeoutError:
            log_mcp_tool(server_name, tool_name, "error", "tool_timeout", timeout_s=timeout_s)
            return ToolOutcome.timeout()
        except Exception as e:  # noqa: BLE001
            message = error_message(e)
            log_mcp_tool(server_name, tool_name, "error", "tool_exception", error=message, arguments=arguments)
            return ToolOutcome.failure(message)

        parts = list(getattr(result, "content", None) or [])
        if getattr(result, "isError", False):
            message = first_text(parts) or "Tool execution failed"
            log_mcp_tool(server_name, tool_name, "error", "tool_failed", error=message, arguments=arguments)
            return ToolOutcome.failure(message)

        text = flatten_content(parts)
        log_mcp_tool(
            server_name,
            tool_name,
            "info",
            "tool_succeeded",
            duration_ms=int((time.monotonic() - started) * 1000),
            result_length=len(text),
        )
        return ToolOutcome.success(text)

    return make_tool(
        server_name=server_name,
        tool_name=tool_name,
        description=tool.description or f"Tool {tool_name} from {server_name}",
        input_schema=tool.inputSchema,
        executor=execute,
    )
