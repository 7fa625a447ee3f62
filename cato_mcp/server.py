"""MCP server exposing the tool catalog over stdio.

Run via an MCP client config (stdio transport):
  cato-mcp serve

Every tool of the registry is listed with its input schema; a call is
handed to the ToolInvoker and its serialized result returned as a single
text content item.
"""

from __future__ import annotations

import logging
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .config import Settings
from .graphql.client import GraphQLClient
from .pipeline.invoker import ToolInvoker
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

SERVER_NAME = "cato-mcp-server"


def _text(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


def to_mcp_tool(descriptor: Any) -> Tool:
    return Tool(
        name=descriptor.name,
        description=descriptor.description,
        inputSchema=descriptor.input_schema,
    )


async def handle_call(invoker: ToolInvoker, name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
    """Invoke a tool, turning any failure into an error text result."""
    try:
        result = await invoker.invoke(name, arguments)
    except Exception as e:
        logger.error("Error executing tool %s: %s", name, e)
        return _text(f"Error executing tool: {e}")
    return _text(result)


def create_server(registry: ToolRegistry, invoker: ToolInvoker) -> Server:
    """Build the low-level MCP server for a registry.

    Input validation against the tool schemas is left to the pipeline:
    schemas list accountID as required although it has a default.
    """
    app = Server(SERVER_NAME)

    @app.list_tools()
    async def list_tools() -> list[Tool]:
        return [to_mcp_tool(descriptor) for descriptor in registry.list_all()]

    @app.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        return await handle_call(invoker, name, arguments)

    return app


async def serve(settings: Settings, registry: ToolRegistry | None = None) -> None:
    """Run the server on stdin/stdout until the client disconnects."""
    if registry is None:
        registry = ToolRegistry.from_catalog(settings.account_id)
    logger.info("Loaded %d tools", len(registry))

    async with GraphQLClient(settings.graphql_url, settings.api_key) as client:
        invoker = ToolInvoker(registry, client, settings.max_response_length)
        app = create_server(registry, invoker)
        logger.info("Cato MCP Server running on stdio")
        async with stdio_server() as (read_stream, write_stream):
            await app.run(read_stream, write_stream, app.create_initialization_options())
