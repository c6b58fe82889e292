from __future__ import annotations

from .logging import configure_logging, get_logger, log_mcp_tool

__all__ = ["configure_logging", "get_logger", "log_mcp_tool"]
