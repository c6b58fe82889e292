"""Command resolution for stdio MCP servers.

Server configs usually name a logical executable ("npx", "uvx", "node").
Resolution goes through the user's shell so aliases, shell functions and PATH
tweaks from shell profiles are honoured.

Resolution never fails: when lookup is impossible the command is
returned and spawning is left to produce a clearer transport-level error.
"""

from __future__ import annotations

import asyncio
import os
import shlex
import subprocess
from typing import Mapping, Protocol

from observability.logging import get_logger

_DEFAULT_SHELL = "/bin/bash"

_log = get_logger("bridge.resolver")


class CommandResolver(Protocol):
    async def resolve(self, command: str) -> str:
        ...


class ShellCommandResolver:
    """Resolve commands with `$SHELL -c 'command -v ...'`, then `which`.

    This is the only place in the bridge that spawns a shell.
    """

    def __init__(self, *, shell: str | None = None, env: Mapping[str, str] | None = None) -> None:
        self._shell = shell
        self._env = dict(env) if env is not None else None

    async def resolve(self, command: str) -> str:
        if os.path.isabs(command):
            return command

        env = self._env if self._env is not None else dict(os.environ)
        shell = self._shell or env.get("SHELL") or _DEFAULT_SHELL

        path = await self._lookup([shell, "-c", f"command -v {shlex.quote(command)}"], env=env)
        if path:
            return path

        path = await self._lookup(["which", command], env=env)
        if path:
            return path

        _log.warning("command_unresolved", command=command)
        return command

    async def _lookup(self, argv: list[str], *, env: dict[str, str]) -> str | None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                env=env,
            )
        except OSError as e:
            _log.warning("command_lookup_failed", argv=argv, error=str(e))
            return None

        stdout, _ = await proc.communicate()
        if proc.returncode != 0:
            return None

        out = stdout.decode("utf-8", errors="replace").strip()
        if not out:
            return None
        return out.splitlines()[0].strip()


class StaticCommandResolver:
    """In-memory resolver for tests and fixed deployments.

    Unknown commands are returned unchanged, mirroring the shell resolver's
    fallback.
    """

    def __init__(self, mapping: Mapping[str, str] | None = None) -> None:
        self._mapping = dict(mapping or {})
        self.calls: list[str] = []

    async def resolve(self, command: str) -> str:
        self.calls.append(command)
        if os.path.isabs(command):
            return command
        return self._mapping.get(command, command)
