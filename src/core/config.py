from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from mcp_client.types import ServerConfig, StdioServerConfig, StreamServerConfig

from .errors import ConfigError

# re-export for contract/tests
__all__ = [
    "AppConfig",
    "ConfigError",
    "DEFAULT_TOOL_TIMEOUT_S",
    "McpConfig",
    "ToolsConfig",
    "load_config",
    "parse_server_config",
]

DEFAULT_TOOL_TIMEOUT_S = 1800.0

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

_STDIO_TYPES = {"stdio"}
_STREAM_TYPES = {"stream", "streamable_http", "http", "sse"}


def _expand_env_in_str(value: str, *, path: str) -> str:
    def repl(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in os.environ or os.environ[key] == "":
            raise ConfigError(f"environment variable {key!r} is not set", path=path)
        return os.environ[key]

    return _ENV_PATTERN.sub(repl, value)


def _expand_env(obj: Any, *, path: str) -> Any:
    if isinstance(obj, str):
        return _expand_env_in_str(obj, path=path)
    if isinstance(obj, list):
        return [_expand_env(v, path=path) for v in obj]
    if isinstance(obj, dict):
        return {k: _expand_env(v, path=f"{path}.{k}" if path else str(k)) for k, v in obj.items()}
    return obj


@dataclass(frozen=True)
class ToolsConfig:
    """Global tool policy.

    `disabled_internal_tools` entries match a namespaced key exactly, a bare
    tool name, or the tail of a key (see tools.tool_filter).
    """

    tool_timeout_s: float = DEFAULT_TOOL_TIMEOUT_S
    disabled_internal_tools: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class McpConfig:
    servers: list[ServerConfig] = field(default_factory=list)


@dataclass(frozen=True)
class AppConfig:
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    mcp: McpConfig = field(default_factory=McpConfig)
    log_level: str = "INFO"


def _str_list(raw: dict[str, Any], *keys: str, path: str) -> list[str]:
    for key in keys:
        if key in raw and raw[key] is not None:
            value = raw[key]
            if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
                raise ConfigError("must be a list of strings", path=f"{path}.{key}")
            return list(value)
    return []


def _str_map(raw: dict[str, Any], key: str, *, path: str) -> dict[str, str] | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConfigError("must be a mapping", path=f"{path}.{key}")
    return {str(k): str(v) for k, v in value.items()}


def _seconds(raw: dict[str, Any], seconds_key: str, millis_key: str, *, path: str) -> float | None:
    """Read a timeout given either in seconds or, camelCase style, in milliseconds."""

    if raw.get(seconds_key) is not None:
        key, scale = seconds_key, 1.0
    elif raw.get(millis_key) is not None:
        key, scale = millis_key, 1000.0
    else:
        return None

    value = raw[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError("must be a positive number", path=f"{path}.{key}")
    return float(value) / scale


def _server_kind(raw: dict[str, Any], *, path: str) -> str:
    declared = raw.get("type") or raw.get("transport")
    if declared is not None:
        kind = str(declared)
        if kind not in _STDIO_TYPES | _STREAM_TYPES:
            raise ConfigError(f"unsupported transport: {kind!r}", path=f"{path}.type")
        return kind
    if "command" in raw:
        return "stdio"
    if "url" in raw:
        return "streamable_http"
    raise ConfigError("needs a 'type', a 'command' or a 'url'", path=path)


def parse_server_config(name: str, raw: dict[str, Any], *, path: str | None = None) -> ServerConfig:
    path = path or f"mcp.servers.{name}"
    if not isinstance(raw, dict):
        raise ConfigError("server config must be a mapping", path=path)

    kind = _server_kind(raw, path=path)
    timeout_s = _seconds(raw, "timeout_s", "timeout", path=path)
    init_timeout_s = _seconds(raw, "init_timeout_s", "initTimeout", path=path)
    disabled_tools = _str_list(raw, "disabled_tools", "disabledTools", path=path)
    auto_approve = _str_list(raw, "auto_approve", "autoApprove", path=path)
    description = raw.get("description")
    description = str(description) if description is not None else None

    if kind in _STDIO_TYPES:
        command = raw.get("command")
        if not isinstance(command, str) or not command.strip():
            raise ConfigError("stdio needs a command", path=f"{path}.command")
        args = _str_list(raw, "args", path=path)
        cwd = raw.get("cwd")
        return StdioServerConfig(
            name=name,
            command=command,
            args=args,
            env=_str_map(raw, "env", path=path),
            cwd=str(cwd) if cwd is not None else None,
            timeout_s=timeout_s,
            init_timeout_s=init_timeout_s,
            disabled_tools=disabled_tools,
            auto_approve=auto_approve,
            description=description,
        )

    url = raw.get("url")
    if not isinstance(url, str) or not url.strip():
        raise ConfigError("stream servers need a url", path=f"{path}.url")
    return StreamServerConfig(
        name=name,
        url=url,
        headers=_str_map(raw, "headers", path=path),
        timeout_s=timeout_s,
        init_timeout_s=init_timeout_s,
        disabled_tools=disabled_tools,
        auto_approve=auto_approve,
        transport="sse" if kind == "sse" else "streamable_http",
        description=description,
    )


def parse_servers(servers_raw: Any, *, path: str = "mcp.servers") -> list[ServerConfig]:
    if servers_raw is None:
        return []
    if not isinstance(servers_raw, dict):
        raise ConfigError("must be a mapping of server name -> config", path=path)

    servers: list[ServerConfig] = []
    for name, raw in servers_raw.items():
        if not isinstance(name, str) or not name:
            raise ConfigError("server name must be a non-empty string", path=path)
        if isinstance(raw, dict) and raw.get("disabled") is True:
            continue
        servers.append(parse_server_config(name, raw, path=f"{path}.{name}"))
    return servers


def parse_tools_config(tools_raw: Any) -> ToolsConfig:
    if tools_raw is None:
        return ToolsConfig()
    if not isinstance(tools_raw, dict):
        raise ConfigError("must be a mapping", path="tools")

    timeout = tools_raw.get("tool_timeout_s", DEFAULT_TOOL_TIMEOUT_S)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError("must be a positive number", path="tools.tool_timeout_s")

    return ToolsConfig(
        tool_timeout_s=float(timeout),
        disabled_internal_tools=_str_list(
            tools_raw, "disabled_internal_tools", "disabledInternalTools", path="tools"
        ),
    )


def load_config(path: str | Path) -> AppConfig:
    """Load YAML config and expand ${ENV_VAR}."""

    # Local dev: allow injecting secrets (server tokens, API keys) from .env.
    load_dotenv(override=False)

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError("config file does not exist", path=str(config_path))

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML: {e}", path=str(config_path)) from e

    if not isinstance(raw, dict):
        raise ConfigError("top level must be a YAML mapping", path=str(config_path))

    expanded = _expand_env(raw, path="")

    log_level = "INFO"
    logging_raw = expanded.get("logging")
    if isinstance(logging_raw, dict) and logging_raw.get("level"):
        log_level = str(logging_raw["level"]).upper()

    tools = parse_tools_config(expanded.get("tools"))

    mcp_raw = expanded.get("mcp")
    if mcp_raw is None:
        mcp_raw = {}
    if not isinstance(mcp_raw, dict):
        raise ConfigError("must be a mapping", path="mcp")
    # Top-level "mcpServers" (the usual MCP client layout) is accepted too.
    servers_raw = mcp_raw.get("servers", expanded.get("mcpServers"))

    return AppConfig(tools=tools, mcp=McpConfig(servers=parse_servers(servers_raw)), log_level=log_level)
