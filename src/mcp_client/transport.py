"""Transport construction for MCP servers.

Two variants, matched exhaustively on the config type:

- stdio: the server is spawned here (not via `mcp.client.stdio.stdio_client`)
  so the bridge keeps the process handle for external cleanup and can drain
  stderr into the log. Messages are still decoded/encoded with the SDK's
  `types.JSONRPCMessage`, one JSON document per line.
- stream: `streamablehttp_client` or `sse_client` from the SDK.

The transport lives inside an AsyncExitStack owned by the caller.
"""

from __future__ import annotations

import os
import subprocess
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Callable

import anyio
import anyio.lowlevel
from anyio.abc import Process
from anyio.streams.text import TextReceiveStream
from mcp import types
from mcp.client.sse import sse_client
from mcp.client.streamable_http import streamablehttp_client
from mcp.shared.message import SessionMessage

from observability.logging import log_mcp_tool

from .errors import UnsupportedTransportError
from .resolver import CommandResolver, ShellCommandResolver
from .types import ServerConfig, StdioServerConfig, StreamServerConfig

# Requested from every server regardless of transport. What a server actually
# supports is read from its initialize response.
REQUESTED_CAPABILITIES: tuple[str, ...] = ("tools", "prompts", "resources")

CLIENT_VERSION = "1.0.0"


def client_name(config: ServerConfig) -> str:
    return f"mcp-bridge-{config.name}"


@dataclass(slots=True)
class TransportHandle:
    read: Any
    write: Any
    process: Process | None = None


class LineBuffer:
    """Split a chunked text stream into complete lines."""

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, chunk: str) -> list[str]:
        lines = (self._buffer + chunk).split("\n")
        self._buffer = lines.pop()
        return lines

    def flush(self) -> str | None:
        rest, self._buffer = self._buffer, ""
        return rest if rest.strip() else None


async def drain_stderr(
    chunks: AsyncIterable[str],
    server_name: str,
    *,
    emit: Callable[[str], None] | None = None,
) -> None:
    """Log a server's stderr line by line; the trailing partial line is flushed at EOF."""

    def _emit(line: str) -> None:
        if emit is not None:
            emit(line)
        else:
            log_mcp_tool(server_name, "stderr", "info", line)

    buf = LineBuffer()
    try:
        async for chunk in chunks:
            for line in buf.feed(chunk):
                if line.strip():
                    _emit(line.strip())
    except (anyio.ClosedResourceError, anyio.BrokenResourceError):
        pass

    rest = buf.flush()
    if rest is not None:
        _emit(rest.strip())


def build_env(config: StdioServerConfig) -> dict[str, str]:
    env = dict(os.environ)
    env.update({str(k): str(v) for k, v in (config.env or {}).items()})
    return env


@asynccontextmanager
async def stdio_transport(config: StdioServerConfig, command: str) -> AsyncIterator[TransportHandle]:
    process = await anyio.open_process(
        [command, *config.args],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=config.cwd,
        env=build_env(config),
    )

    read_writer, read_stream = anyio.create_memory_object_stream[SessionMessage | Exception](0)
    write_stream, write_reader = anyio.create_memory_object_stream[SessionMessage](0)

    async def stdout_reader() -> None:
        assert process.stdout is not None
        buf = LineBuffer()
        try:
            async with read_writer:
                async for chunk in TextReceiveStream(process.stdout, encoding="utf-8", errors="replace"):
                    for line in buf.feed(chunk):
                        if not line.strip():
                            continue
                        try:
                            message = types.JSONRPCMessage.model_validate_json(line)
                        except Exception as exc:  # noqa: BLE001
                            await read_writer.send(exc)
                            continue
                        await read_writer.send(SessionMessage(message))
        except anyio.ClosedResourceError:
            await anyio.lowlevel.checkpoint()

    async def stdin_writer() -> None:
        assert process.stdin is not None
        try:
            async with write_reader:
                async for session_message in write_reader:
                    payload = session_message.message.model_dump_json(by_alias=True, exclude_none=True)
                    await process.stdin.send((payload + "\n").encode("utf-8"))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            await anyio.lowlevel.checkpoint()

    async with anyio.create_task_group() as tg:
        tg.start_soon(stdout_reader)
        tg.start_soon(stdin_writer)
        if process.stderr is not None:
            tg.start_soon(
                drain_stderr,
                TextReceiveStream(process.stderr, encoding="utf-8", errors="replace"),
                config.name,
            )
        try:
            yield TransportHandle(read=read_stream, write=write_stream, process=process)
        finally:
            # Closing stdin lets a well-behaved server exit on its own; the
            # process itself is terminated by the ProcessManager.
            if process.stdin is not None:
                await process.stdin.aclose()
            tg.cancel_scope.cancel()


async def open_transport(
    config: ServerConfig,
    stack: AsyncExitStack,
    *,
    resolver: CommandResolver | None = None,
) -> TransportHandle:
    """Open the transport for `config` inside `stack`."""

    if isinstance(config, StdioServerConfig):
        command = await (resolver or ShellCommandResolver()).resolve(config.command)
        return await stack.enter_async_context(stdio_transport(config, command))

    if isinstance(config, StreamServerConfig):
        if config.transport == "streamable_http":
            read, write, _get_session_id = await stack.enter_async_context(
                streamablehttp_client(config.url, headers=config.headers)
            )
            return TransportHandle(read=read, write=write)
        if config.transport == "sse":
            read, write = await stack.enter_async_context(sse_client(config.url, headers=config.headers))
            return TransportHandle(read=read, write=write)
        raise UnsupportedTransportError(server_name=config.name, transport=config.transport)

    raise UnsupportedTransportError(
        server_name=str(getattr(config, "name", "?")),
        transport=str(getattr(config, "type", type(config).__name__)),
    )
