"""Exception types raised by the tool invocation pipeline.

Every per-invocation failure is a subclass of CatoMCPError so the MCP
call_tool handler can turn it into an error text payload. Configuration and
catalog errors are raised at startup, before any tool is served.
"""

from __future__ import annotations

from typing import Any


class CatoMCPError(Exception):
    """Base class for all cato-mcp errors."""


class ConfigurationError(CatoMCPError):
    """Raised when required settings are missing or invalid at startup."""


class CatalogError(CatoMCPError):
    """Raised when a tool descriptor file cannot be loaded."""


class NotFoundError(CatoMCPError):
    """Raised when a tool name is not in the registry."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool {tool_name} not found")


class ArgumentParseError(CatoMCPError):
    """Raised when a JSON-looking string argument is not valid JSON."""

    def __init__(self, tool_name: str, arg_name: str, raw_value: Any, detail: str = ""):
        self.tool_name = tool_name
        self.arg_name = arg_name
        self.raw_value = raw_value
        msg = f"Error parsing {tool_name} tool argument {arg_name} with value {raw_value}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class MissingRequiredInputError(CatoMCPError):
    """Raised by an input policy when a required input is absent.

    The message is shown to the caller verbatim and tells them how to
    obtain the missing input (usually by calling entity_lookup first).
    """


UserGuidanceError = MissingRequiredInputError


class InvalidArgumentError(CatoMCPError):
    """Raised when an argument has a value the tool cannot use."""

    def __init__(self, arg_name: str, raw_value: Any, expected: str):
        self.arg_name = arg_name
        self.raw_value = raw_value
        super().__init__(f"Invalid value for argument {arg_name}: {raw_value!r} (expected {expected})")


class UpstreamHttpError(CatoMCPError):
    """Raised when the GraphQL endpoint answers with a non-success status."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"GraphQL request failed with status: {status}. Response: {body}")


class UpstreamError(CatoMCPError):
    """Raised when the GraphQL reply carries no usable data."""

    def __init__(self, message: str):
        self.remote_message = message
        super().__init__(f"GraphQL errors: {message}")
