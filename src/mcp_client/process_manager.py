"""Central cleanup of MCP server subprocesses.

Client wrappers register the processes they own here; teardown happens in
bulk at session end instead of per wrapper, so a process is never signalled
twice by competing owners.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

from observability.logging import get_logger

_log = get_logger("bridge.processes")


def _is_running(process: Any) -> bool:
    return getattr(process, "returncode", None) is None


class ProcessManager:
    def __init__(self, *, grace_s: float = 3.0, poll_s: float = 0.1) -> None:
        self._processes: dict[str, Any] = {}
        self._grace_s = float(grace_s)
        self._poll_s = float(poll_s)
        self._cleanup_in_progress = False

    def register(self, server_name: str, process: Any) -> None:
        self._processes[server_name] = process
        _log.debug("mcp_process_registered", server=server_name, pid=getattr(process, "pid", None))

    def active_count(self) -> int:
        return len(self._processes)

    def get(self, server_name: str) -> Any | None:
        return self._processes.get(server_name)

    async def cleanup_process(self, server_name: str) -> None:
        process = self._processes.pop(server_name, None)
        if process is None:
            return
        await self._terminate([(server_name, process)])

    async def terminate(self, server_name: str, process: Any) -> None:
        """Terminate a process that was never registered, with the same grace period."""

        await self._terminate([(server_name, process)])

    async def cleanup_all(self) -> None:
        if self._cleanup_in_progress:
            return
        self._cleanup_in_progress = True
        try:
            entries = list(self._processes.items())
            self._processes.clear()
            _log.info("mcp_process_cleanup", count=len(entries))
            await self._terminate(entries)
        finally:
            self._cleanup_in_progress = False

    async def _terminate(self, entries: list[tuple[str, Any]]) -> None:
        for server_name, process in entries:
            self._send(server_name, process, "terminate")

        deadline = time.monotonic() + self._grace_s
        remaining = [(n, p) for n, p in entries if _is_running(p)]
        while remaining and time.monotonic() < deadline:
            await asyncio.sleep(self._poll_s)
            remaining = [(n, p) for n, p in remaining if _is_running(p)]

        if not remaining:
            return

        for server_name, process in remaining:
            self._send(server_name, process, "kill")
        _log.warning("mcp_process_force_killed", count=len(remaining), servers=[n for n, _ in remaining])

    def _send(self, server_name: str, process: Any, action: str) -> None:
        if not _is_running(process):
            return
        try:
            getattr(process, action)()
            _log.debug("mcp_process_signalled", server=server_name, action=action, pid=getattr(process, "pid", None))
        except ProcessLookupError:
            _log.debug("mcp_process_already_exited", server=server_name)
        except PermissionError:
            _log.warning("mcp_process_permission_denied", server=server_name)
        except OSError as e:
            _log.error("mcp_process_signal_failed", server=server_name, action=action, error=str(e))

    def reset(self) -> None:
        self._processes.clear()
        self._cleanup_in_progress = False


process_manager = ProcessManager()
