from __future__ import annotations

import asyncio
import json
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Protocol

from mcp import ClientSession, types
from pydantic import AnyUrl

from observability.logging import get_logger

from .errors import McpNotConnectedError, McpTimeoutError
from .process_manager import ProcessManager
from .resolver import CommandResolver
from .transport import CLIENT_VERSION, REQUESTED_CAPABILITIES, client_name, open_transport
from .types import ServerCapabilities, ServerConfig, ServerInfo

_log = get_logger("bridge.mcp")

_CLOSE_GRACE_S = 5.0


class McpSession(Protocol):
    """Connection surface the bridge needs from a live MCP server."""

    async def list_tools(self) -> list[types.Tool]:
        ...

    async def list_prompts(self) -> list[types.Prompt]:
        ...

    async def list_resources(self) -> list[types.Resource]:
        ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        ...

    async def get_prompt(self, name: str, arguments: dict[str, Any] | None = None) -> types.GetPromptResult:
        ...

    async def read_resource(self, uri: str) -> types.ReadResourceResult:
        ...

    async def aclose(self) -> None:
        ...


@dataclass(slots=True)
class ServerInitResult:
    connection: McpSession
    capabilities: ServerCapabilities
    server_info: ServerInfo
    config: ServerConfig
    process: Any | None = None
    init_ms: int = 0


def error_message(exc: BaseException) -> str:
    exc = unwrap_exception(exc)
    return str(exc) or type(exc).__name__


def unwrap_exception(exc: BaseException) -> BaseException:
    """Peel single-member exception groups raised by anyio task groups."""

    while isinstance(exc, BaseExceptionGroup) and len(exc.exceptions) == 1:
        exc = exc.exceptions[0]
    return exc


def is_operational_failure(message: str) -> bool:
    """Timeouts and refused connections are expected in normal operation."""

    lowered = message.lower()
    return any(
        marker in lowered
        for marker in ("timeout", "timed out", "econnrefused", "connection refused")
    )


class McpConnection:
    """A live MCP client session for one server.

    The transport and `ClientSession` are entered by a dedicated owner task and
    exited by the same task when `aclose()` is called, since the SDK's anyio
    task groups must not be exited from a different task.
    """

    def __init__(self, config: ServerConfig, *, resolver: CommandResolver | None = None) -> None:
        self._config = config
        self._resolver = resolver
        self._session: ClientSession | None = None
        self._task: asyncio.Task[None] | None = None
        self._closing = asyncio.Event()
        self.process: Any | None = None
        self.initialize_result: types.InitializeResult | None = None

    @property
    def server_name(self) -> str:
        return self._config.name

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def open(self) -> types.InitializeResult:
        loop = asyncio.get_running_loop()
        ready: asyncio.Future[types.InitializeResult] = loop.create_future()
        self._task = asyncio.create_task(self._run(ready), name=f"mcp-connection:{self.server_name}")

        timeout_s = self._config.init_timeout_s
        try:
            if timeout_s:
                result = await asyncio.wait_for(asyncio.shield(ready), timeout=timeout_s)
            else:
                result = await ready
        except TimeoutError as e:
            await self._discard()
            raise McpTimeoutError(operation="initialize", timeout_s=float(timeout_s or 0)) from e
        except BaseException:
            await self._discard()
            raise

        self.initialize_result = result
        return result

    async def _run(self, ready: asyncio.Future[types.InitializeResult]) -> None:
        try:
            async with AsyncExitStack() as stack:
                handle = await open_transport(self._config, stack, resolver=self._resolver)
                self.process = handle.process

                session = await stack.enter_async_context(
                    ClientSession(
                        handle.read,
                        handle.write,
                        client_info=types.Implementation(
                            name=client_name(self._config),
                            version=CLIENT_VERSION,
                        ),
                    )
                )
                result = await session.initialize()

                self._session = session
                if not ready.done():
                    ready.set_result(result)

                await self._closing.wait()
        except asyncio.CancelledError:
            if not ready.done():
                ready.cancel()
            raise
        except Exception as e:  # noqa: BLE001
            err = unwrap_exception(e)
            if not ready.done():
                ready.set_exception(err)
            else:
                _log.warning("mcp_connection_lost", server=self.server_name, error=error_message(err))
        finally:
            self._session = None

    async def _abort(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.wait({task})

    async def _discard(self) -> None:
        # A failed open has no registered owner for its process yet.
        await self._abort()
        process = self.process
        if process is not None:
            await ProcessManager(grace_s=_CLOSE_GRACE_S).terminate(self.server_name, process)

    async def aclose(self) -> None:
        self._closing.set()
        task = self._task
        if task is None or task.done():
            return

        await asyncio.wait({task}, timeout=_CLOSE_GRACE_S)
        if not task.done():
            await self._abort()

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise McpNotConnectedError(self.server_name)
        return self._session

    async def list_tools(self) -> list[types.Tool]:
        result = await self._require_session().list_tools()
        return list(result.tools or [])

    async def list_prompts(self) -> list[types.Prompt]:
        result = await self._require_session().list_prompts()
        return list(result.prompts or [])

    async def list_resources(self) -> list[types.Resource]:
        result = await self._require_session().list_resources()
        return list(result.resources or [])

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        return await self._require_session().call_tool(name, arguments=arguments)

    async def get_prompt(self, name: str, arguments: dict[str, Any] | None = None) -> types.GetPromptResult:
        # Prompt arguments are string-valued on the wire.
        str_args = (
            {k: v if isinstance(v, str) else json.dumps(v, ensure_ascii=False) for k, v in arguments.items()}
            if arguments
            else None
        )
        return await self._require_session().get_prompt(name, arguments=str_args)

    async def read_resource(self, uri: str) -> types.ReadResourceResult:
        return await self._require_session().read_resource(AnyUrl(uri))


async def initialize_server(
    config: ServerConfig,
    *,
    resolver: CommandResolver | None = None,
) -> ServerInitResult:
    """Connect to one server and read its capabilities from the handshake.

    Failures are logged (warning for timeouts/refused connections, error
    otherwise) and re-raised unchanged.
    """

    started = time.monotonic()
    _log.debug("mcp_server_initializing", server=config.name, transport=config.type)

    connection = McpConnection(config, resolver=resolver)
    try:
        result = await connection.open()
    except Exception as e:
        elapsed_ms = int((time.monotonic() - started) * 1000)
        message = error_message(e)
        if is_operational_failure(message):
            _log.warning("mcp_server_connection_failed", server=config.name, init_ms=elapsed_ms, error=message)
        else:
            _log.error("mcp_server_initialization_failed", server=config.name, init_ms=elapsed_ms, error=message)
        raise

    elapsed_ms = int((time.monotonic() - started) * 1000)
    capabilities = ServerCapabilities.from_mcp(result.capabilities)
    info = result.serverInfo
    server_info = ServerInfo(
        name=str(getattr(info, "name", None) or config.name),
        version=str(getattr(info, "version", None) or CLIENT_VERSION),
    )

    _log.info(
        "mcp_server_initialized",
        server=config.name,
        init_ms=elapsed_ms,
        requested=list(REQUESTED_CAPABILITIES),
        capabilities=capabilities.names() or "none",
    )

    return ServerInitResult(
        connection=connection,
        capabilities=capabilities,
        server_info=server_info,
        config=config,
        process=connection.process,
        init_ms=elapsed_ms,
    )
