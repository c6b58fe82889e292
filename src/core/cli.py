from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from observability.logging import configure_logging, get_logger
from tools.langchain_tools import to_openai_tool_specs
from tools.mcp_gateway import McpGateway
from tools.tool_result_codec import dumps_json, is_error_text

from .config import AppConfig, load_config
from .errors import ConfigError


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="MCP tool bridge")
    p.add_argument("--config", default="configs/bridge.yaml", help="YAML config path")
    p.add_argument("--log-level", default=None, help="log level (overrides logging.level)")

    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("tools", help="print the merged tool map as OpenAI-style function specs")
    sub.add_parser("prompts", help="list prompts per connected server")
    sub.add_parser("resources", help="list resources per connected server")

    call = sub.add_parser("call", help="call one tool by its namespaced name")
    call.add_argument("tool", help="namespaced tool name, e.g. fs_read")
    call.add_argument("--args", default="{}", help="tool arguments as a JSON object")
    return p


async def _catalogs(gateway: McpGateway, kind: str) -> dict[str, list[dict[str, Any]]]:
    log = get_logger("bridge.cli")
    out: dict[str, list[dict[str, Any]]] = {}
    for client in gateway.clients:
        if not client.connected:
            continue
        try:
            items = await (client.list_prompts() if kind == "prompts" else client.list_resources())
        except Exception as e:  # noqa: BLE001
            log.warning("cli_catalog_failed", server=client.server_name, kind=kind, error=str(e))
            items = []
        out[client.server_name] = [item.to_dict() for item in items]
    return out


async def run(args: argparse.Namespace, cfg: AppConfig) -> int:
    arguments: dict[str, Any] = {}
    if args.command == "call":
        try:
            arguments = json.loads(args.args)
        except json.JSONDecodeError as e:
            print(f"--args is not valid JSON: {e}", file=sys.stderr)
            return 2
        if not isinstance(arguments, dict):
            print("--args must be a JSON object", file=sys.stderr)
            return 2

    gateway = McpGateway(servers=cfg.mcp.servers, tools_cfg=cfg.tools)
    try:
        result = await gateway.load()
        for err in result.errors:
            print(f"{err.server_name}: {err.error}", file=sys.stderr)

        if args.command == "tools":
            print(dumps_json(to_openai_tool_specs(result.tools.values())))
            return 0
        if args.command in ("prompts", "resources"):
            print(dumps_json(await _catalogs(gateway, args.command)))
            return 0

        text = await gateway.call_tool(args.tool, arguments)
        print(text)
        return 1 if is_error_text(text) else 0
    finally:
        await gateway.aclose()


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(level=args.log_level or "INFO")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return 2

    configure_logging(level=args.log_level or cfg.log_level)
    get_logger("bridge.cli").debug("config_loaded", path=str(args.config), servers=len(cfg.mcp.servers))
    return asyncio.run(run(args, cfg))
