"""Runtime validators for MCP tool input schemas.

Remote schemas are untrusted input. The conversion is deliberately shallow:

- string / number / integer / boolean map to strict scalar types
- array maps to a list of its item type (unconstrained when `items` is absent)
- object maps to a nested pydantic model; `required` is enforced, other
  fields may be omitted but not sent as null
- anything else (unknown or union type tags) is passed through unchecked

Property names are attached as aliases, so names that are not Python
identifiers ("_meta", "from", "max-depth") are accepted as-is.
"""

from __future__ import annotations

import re
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, create_model

EMPTY_OBJECT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}

_SCALARS: dict[str, Any] = {
    "string": StrictStr,
    "number": Union[StrictInt, StrictFloat],
    "integer": StrictInt,
    "boolean": StrictBool,
}

_NON_IDENT = re.compile(r"[^0-9A-Za-z_]+")


def _model_name(name: str) -> str:
    cleaned = "".join(part[:1].upper() + part[1:] for part in _NON_IDENT.split(name) if part)
    if not cleaned or cleaned[0].isdigit():
        cleaned = f"Model{cleaned}"
    return cleaned


def _annotation_for(schema: Any, *, name: str) -> Any:
    if not isinstance(schema, dict):
        return Any

    kind = schema.get("type")
    if kind == "object":
        return json_schema_to_model(schema, name=name)
    if kind == "array":
        items = schema.get("items")
        if isinstance(items, dict):
            return list[_annotation_for(items, name=f"{name}Item")]  # type: ignore[misc]
        return list[Any]
    if isinstance(kind, str) and kind in _SCALARS:
        return _SCALARS[kind]
    return Any


def json_schema_to_model(schema: dict[str, Any] | None, *, name: str = "ToolInput") -> type[BaseModel]:
    """Build a pydantic model validating arguments against an object schema.

    A missing schema yields a model with no constraints.
    """

    model_name = _model_name(name)
    if not isinstance(schema, dict):
        return create_model(model_name, __config__=ConfigDict(extra="allow"))

    properties = schema.get("properties")
    if not isinstance(properties, dict):
        properties = {}
    required = schema.get("required")
    required_keys = {k for k in required if isinstance(k, str)} if isinstance(required, list) else set()

    # additionalProperties: false strips unknown keys; otherwise they are forwarded.
    extra = "ignore" if schema.get("additionalProperties") is False else "allow"

    fields: dict[str, Any] = {}
    for index, (key, prop) in enumerate(properties.items()):
        annotation = _annotation_for(prop, name=f"{model_name}_{key}")
        description = prop.get("description") if isinstance(prop, dict) else None
        if not isinstance(description, str):
            description = None

        if key in required_keys:
            fields[f"field_{index}"] = (annotation, Field(..., alias=str(key), description=description))
        else:
            # The None default is never validated, so omission passes but an explicit null does not.
            fields[f"field_{index}"] = (annotation, Field(None, alias=str(key), description=description))

    return create_model(model_name, __config__=ConfigDict(extra=extra), **fields)


def validate_arguments(model: type[BaseModel], arguments: dict[str, Any] | None) -> dict[str, Any]:
    """Validate `arguments`; returns the wire-named dict without omitted optionals.

    Raises pydantic.ValidationError on mismatch.
    """

    instance = model.model_validate(arguments or {})
    return instance.model_dump(by_alias=True, exclude_unset=True)


def normalize_input_schema(schema: Any) -> dict[str, Any]:
    """Input schema as exposed to the model; missing schemas become an empty object."""

    if isinstance(schema, dict) and schema:
        return dict(schema)
    return dict(EMPTY_OBJECT_SCHEMA)
