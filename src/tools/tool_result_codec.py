from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable

ERROR_PREFIX = "Error: "

TIMEOUT_MESSAGE = "Tool execution timeout"


@dataclass(frozen=True, slots=True)
class ToolOutcome:
    """Result of one tool invocation.

    Contract:
    - Tool calls never raise; failures are carried as `ok=False`.
    - `to_text()` is the only place the result becomes a string. Failures are
      rendered as "Error: <message>", which callers downstream string-match on.
    """

    ok: bool
    text: str = ""
    error: str | None = None

    @classmethod
    def success(cls, text: str) -> "ToolOutcome":
        return cls(ok=True, text=str(text or ""))

    @classmethod
    def failure(cls, message: str) -> "ToolOutcome":
        return cls(ok=False, error=str(message or "Unknown error"))

    @classmethod
    def timeout(cls) -> "ToolOutcome":
        return cls.failure(TIMEOUT_MESSAGE)

    def to_text(self) -> str:
        if self.ok:
            return self.text
        return ERROR_PREFIX + (self.error or "Unknown error")


def is_error_text(text: str) -> bool:
    return isinstance(text, str) and text.startswith(ERROR_PREFIX.rstrip())


def flatten_content(parts: Iterable[Any]) -> str:
    """Render heterogeneous MCP content parts as one string.

    text -> verbatim; image -> "[Image: <data>]"; embedded resource ->
    "[Resource: <uri>]"; anything else -> "[Unknown content type]".
    """

    rendered: list[str] = []
    for part in parts or []:
        kind = getattr(part, "type", None)
        if kind == "text":
            rendered.append(str(getattr(part, "text", "") or ""))
        elif kind == "image":
            rendered.append(f"[Image: {getattr(part, 'data', '')}]")
        elif kind == "resource":
            resource = getattr(part, "resource", None)
            rendered.append(f"[Resource: {getattr(resource, 'uri', None)}]")
        else:
            rendered.append("[Unknown content type]")
    return "\n".join(rendered)


def first_text(parts: Iterable[Any]) -> str | None:
    """Text of the first content part, if it has any."""

    items = list(parts or [])
    if not items:
        return None
    text = getattr(items[0], "text", None)
    return text if isinstance(text, str) and text else None


def dumps_json(obj: Any) -> str:
    """Serialize catalogs/results for a tool's string output."""

    return json.dumps(obj, ensure_ascii=False, indent=2)
