from __future__ import annotations

LIST_PROMPTS = "list_prompts"
GET_PROMPT = "get_prompt"
LIST_RESOURCES = "list_resources"
READ_RESOURCE = "read_resource"

BRIDGE_TOOL_NAMES = (LIST_PROMPTS, GET_PROMPT, LIST_RESOURCES, READ_RESOURCE)


def namespaced_name(server_name: str, tool_name: str) -> str:
    """Model-facing key for a server's tool: `{server}_{tool}`.

    Not reversible: server "a_b" + tool "c" and server "a" + tool "b_c" share a
    key, so callers keep the server/tool pair alongside it.
    """

    return f"{server_name}_{tool_name}"


def matches_suffix(tool_key: str, pattern: str) -> bool:
    """True when `pattern` names the tail of `tool_key` after a separator."""

    if not pattern:
        return False
    return tool_key.endswith("_" + pattern)
