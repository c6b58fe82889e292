from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal


@dataclass(frozen=True, slots=True)
class StdioServerConfig:
    """Configuration for launching an MCP server over stdio."""

    name: str
    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] | None = None
    cwd: str | None = None
    timeout_s: float | None = None
    init_timeout_s: float | None = None
    disabled_tools: list[str] = field(default_factory=list)
    auto_approve: list[str] = field(default_factory=list)
    description: str | None = None

    type: Literal["stdio"] = "stdio"


@dataclass(frozen=True, slots=True)
class StreamServerConfig:
    """Configuration for connecting to a remote MCP server.

    `transport` selects the upstream client: "streamable_http" (the SDK's
    StreamableHTTP transport) or "sse".
    """

    name: str
    url: str
    headers: dict[str, str] | None = None
    timeout_s: float | None = None
    init_timeout_s: float | None = None
    disabled_tools: list[str] = field(default_factory=list)
    auto_approve: list[str] = field(default_factory=list)
    transport: Literal["streamable_http", "sse"] = "streamable_http"
    description: str | None = None

    type: Literal["stream"] = "stream"


ServerConfig = StdioServerConfig | StreamServerConfig


@dataclass(frozen=True, slots=True)
class ServerCapabilities:
    """Capabilities a server advertised in its initialize response."""

    tools: bool = False
    prompts: bool = False
    resources: bool = False
    logging: bool = False

    @classmethod
    def from_mcp(cls, caps: Any) -> "ServerCapabilities":
        if caps is None:
            return cls()
        return cls(
            tools=getattr(caps, "tools", None) is not None,
            prompts=getattr(caps, "prompts", None) is not None,
            resources=getattr(caps, "resources", None) is not None,
            logging=getattr(caps, "logging", None) is not None,
        )

    def names(self) -> list[str]:
        return [k for k in ("tools", "prompts", "resources", "logging") if getattr(self, k)]


@dataclass(frozen=True, slots=True)
class ServerInfo:
    name: str
    version: str


@dataclass(frozen=True, slots=True)
class PromptArgument:
    name: str
    description: str | None = None
    required: bool = False


@dataclass(frozen=True, slots=True)
class PromptDeclaration:
    name: str
    description: str | None = None
    arguments: list[PromptArgument] = field(default_factory=list)

    @classmethod
    def from_mcp(cls, prompt: Any) -> "PromptDeclaration":
        return cls(
            name=str(prompt.name),
            description=getattr(prompt, "description", None),
            arguments=[
                PromptArgument(
                    name=str(a.name),
                    description=getattr(a, "description", None),
                    required=bool(getattr(a, "required", False)),
                )
                for a in (getattr(prompt, "arguments", None) or [])
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class PromptMessage:
    role: str
    content: dict[str, Any]


@dataclass(frozen=True, slots=True)
class PromptResult:
    description: str | None
    messages: list[PromptMessage]

    @classmethod
    def from_mcp(cls, result: Any) -> "PromptResult":
        return cls(
            description=getattr(result, "description", None),
            messages=[
                PromptMessage(role=str(m.role), content=_dump(m.content))
                for m in (getattr(result, "messages", None) or [])
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ResourceDeclaration:
    uri: str
    name: str
    description: str | None = None
    mime_type: str | None = None

    @classmethod
    def from_mcp(cls, resource: Any) -> "ResourceDeclaration":
        return cls(
            uri=str(resource.uri),
            name=str(getattr(resource, "name", "") or ""),
            description=getattr(resource, "description", None),
            mime_type=getattr(resource, "mimeType", None),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "uri": self.uri,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
        }


@dataclass(frozen=True, slots=True)
class ResourceContent:
    """Contents returned by a resource read.

    Each entry keeps the wire shape: uri, mimeType and either text or a
    base64 blob.
    """

    contents: list[dict[str, Any]]

    @classmethod
    def from_mcp(cls, result: Any) -> "ResourceContent":
        return cls(contents=[_dump(c) for c in (getattr(result, "contents", None) or [])])

    def to_dict(self) -> dict[str, Any]:
        return {"contents": list(self.contents)}


def _dump(obj: Any) -> dict[str, Any]:
    dump = getattr(obj, "model_dump", None)
    if callable(dump):
        out = dump(mode="json", by_alias=True, exclude_none=True)
        if isinstance(out, dict):
            return out
    if isinstance(obj, dict):
        return dict(obj)
    return {"value": repr(obj)}
