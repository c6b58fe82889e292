from __future__ import annotations


class BridgeError(Exception):
    """Root of every exception the bridge raises on purpose.

    Tool calls never raise; these surface from configuration loading and from
    connection/accessor paths of the MCP client.
    """


class ConfigError(BridgeError):
    """Invalid or incomplete configuration; `path` is the dotted key at fault."""

    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(f"{path}: {message}" if path else message)
        self.message = message
        self.path = path
