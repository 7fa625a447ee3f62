"""MCP server for the Cato Networks GraphQL API.

Exposes a fixed catalog of account snapshot, metrics and entity lookup
tools. Each invocation merges the caller's arguments over the tool defaults,
runs one GraphQL query and reshapes the reply into a summary an LLM can
read within its context window.

Usage:
    from cato_mcp import ToolRegistry, ToolInvoker, GraphQLClient, load_settings

    settings = load_settings()
    registry = ToolRegistry.from_catalog(settings.account_id)

    async with GraphQLClient(settings.graphql_url, settings.api_key) as client:
        invoker = ToolInvoker(registry, client, settings.max_response_length)
        text = await invoker.invoke("site_types", {})
"""

from .config import Settings, load_settings
from .errors import (
    ArgumentParseError,
    CatalogError,
    CatoMCPError,
    ConfigurationError,
    InvalidArgumentError,
    MissingRequiredInputError,
    NotFoundError,
    UpstreamError,
    UpstreamHttpError,
    UserGuidanceError,
)
from .graphql import GraphQLClient
from .models import DownstreamEnvelope, PolicySpec, ToolDescriptor
from .pipeline import ToolInvoker
from .registry import ToolRegistry

__version__ = "1.0.0"

__all__ = [
    "Settings",
    "load_settings",
    "CatoMCPError",
    "ArgumentParseError",
    "CatalogError",
    "ConfigurationError",
    "InvalidArgumentError",
    "MissingRequiredInputError",
    "NotFoundError",
    "UpstreamError",
    "UpstreamHttpError",
    "UserGuidanceError",
    "GraphQLClient",
    "DownstreamEnvelope",
    "PolicySpec",
    "ToolDescriptor",
    "ToolInvoker",
    "ToolRegistry",
]
