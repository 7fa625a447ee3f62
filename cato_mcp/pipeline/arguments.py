"""Argument normalization: schema defaults merged with caller arguments."""

from __future__ import annotations

import json
from typing import Any, Mapping

from ..errors import ArgumentParseError
from ..models import ToolDescriptor


def looks_like_json(value: Any) -> bool:
    """True for strings whose trimmed form starts with '{' or '['."""
    if not isinstance(value, str):
        return False
    stripped = value.strip()
    return stripped.startswith("{") or stripped.startswith("[")


def coerce_argument(tool_name: str, arg_name: str, value: Any) -> Any:
    """JSON-parse a brace/bracket-prefixed string argument, leave anything else as is.

    Raises:
        ArgumentParseError: if the string is not valid JSON
    """
    if not looks_like_json(value):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise ArgumentParseError(tool_name, arg_name, value, str(e)) from e


def normalize(descriptor: ToolDescriptor, caller_args: Mapping[str, Any] | None) -> dict[str, Any]:
    """Build the effective arguments of one invocation.

    Declared defaults are applied first, then every caller value that is not
    None overwrites them. A None from the caller therefore never unsets a
    default. Keys the schema does not declare are passed through.

    Args:
        descriptor: The invoked tool
        caller_args: Raw arguments from the transport (may be None)

    Returns:
        A fresh dict owned by this invocation
    """
    effective = descriptor.defaults()
    for name, value in (caller_args or {}).items():
        if value is None:
            continue
        effective[name] = coerce_argument(descriptor.name, name, value)
    return effective
