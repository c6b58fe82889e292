from __future__ import annotations

from core.errors import BridgeError


class McpClientError(BridgeError):
    """Base exception for MCP client failures.

    The goal is to normalize transport and protocol failures into a small set of
    stable error types that can be logged and recorded per server.
    """

    def __init__(self, error_type: str, message: str, *, details: dict[str, str] | None = None):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.details = details or {}


class McpTimeoutError(McpClientError):
    def __init__(self, *, operation: str, timeout_s: float):
        super().__init__(
            "timeout",
            f"MCP {operation} timeout after {timeout_s}s",
            details={"operation": operation, "timeout_s": str(timeout_s)},
        )


class McpNotConnectedError(McpClientError):
    def __init__(self, server_name: str):
        super().__init__(
            "not_connected",
            "Client not connected",
            details={"server": server_name},
        )


class UnsupportedTransportError(McpClientError):
    def __init__(self, *, server_name: str, transport: str):
        super().__init__(
            "unsupported_transport",
            f"Unsupported MCP server type for '{server_name}': {transport!r}",
            details={"server": server_name, "transport": transport},
        )
