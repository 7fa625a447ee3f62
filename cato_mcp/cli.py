"""CLI commands for cato-mcp."""

import asyncio
import json
import os

import click
import yaml
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .errors import CatoMCPError, ConfigurationError
from .graphql.client import GraphQLClient
from .logging_utils import configure_logging
from .pipeline.invoker import ToolInvoker
from .registry import ToolRegistry
from .server import serve as serve_stdio

console = Console()
err_console = Console(stderr=True)


def _load_registry(ctx: click.Context, account_id: str) -> ToolRegistry:
    try:
        return ToolRegistry.from_catalog(account_id, ctx.obj["catalog_dir"])
    except CatoMCPError as e:
        err_console.print(f"[red]{e}[/red]")
        raise SystemExit(1)


def _print_raw(text: str) -> None:
    console.print(text, markup=False, soft_wrap=True)


def _settings_or_exit():
    try:
        return load_settings()
    except ConfigurationError as e:
        err_console.print(f"[red]{e}[/red]")
        raise SystemExit(1)


@click.group()
@click.option("--catalog-dir", default=None, help="Tool descriptor directory (default: packaged catalog)")
@click.pass_context
def main(ctx: click.Context, catalog_dir: str | None) -> None:
    """Cato MCP - GraphQL account snapshot and metrics tools for MCP clients."""
    ctx.ensure_object(dict)
    ctx.obj["catalog_dir"] = catalog_dir


@main.command("serve")
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run the MCP server on stdio."""
    settings = _settings_or_exit()
    configure_logging(settings.log_level)
    registry = _load_registry(ctx, settings.account_id)
    asyncio.run(serve_stdio(settings, registry))


@main.command("tools")
@click.option("-f", "--format", "fmt", default="table", help="Output format (table, json, yaml)")
@click.pass_context
def list_tools(ctx: click.Context, fmt: str) -> None:
    """List the tools of the catalog."""
    registry = _load_registry(ctx, os.environ.get("CATO_ACCOUNT_ID", ""))
    descriptors = registry.list_all()

    if fmt == "json":
        data = [
            {
                "name": d.name,
                "arguments": list(d.properties),
                "required": d.input_schema.get("required", []),
                "response_policy": d.response_policy.name if d.response_policy else None,
            }
            for d in descriptors
        ]
        _print_raw(json.dumps(data, indent=2))

    elif fmt == "yaml":
        data = [
            {
                "name": d.name,
                "description": d.description.strip().splitlines()[0],
                "arguments": list(d.properties),
            }
            for d in descriptors
        ]
        _print_raw(yaml.dump(data, default_flow_style=False, sort_keys=False))

    else:  # table
        table = Table(title=f"Tools ({len(descriptors)} total)")
        table.add_column("Name", style="cyan")
        table.add_column("Arguments", max_width=50)
        table.add_column("Input policy", max_width=30)
        table.add_column("Response policy")

        for d in descriptors:
            table.add_row(
                d.name,
                ", ".join(d.properties),
                ", ".join(spec.name for spec in d.input_policy) or "-",
                d.response_policy.name if d.response_policy else "[dim]pass-through[/dim]",
            )

        console.print(table)


@main.command("show")
@click.argument("tool_name")
@click.option("-f", "--format", "fmt", default="yaml", help="Output format (yaml, json)")
@click.pass_context
def show_tool(ctx: click.Context, tool_name: str, fmt: str) -> None:
    """Show the descriptor of a tool."""
    registry = _load_registry(ctx, os.environ.get("CATO_ACCOUNT_ID", ""))
    if tool_name not in registry:
        console.print(f"[red]Tool not found: {tool_name}[/red]")
        raise SystemExit(1)

    descriptor = registry.lookup(tool_name)
    if fmt == "json":
        _print_raw(json.dumps(descriptor.model_dump(), indent=2))
    else:
        _print_raw(descriptor.to_yaml())


@main.command("invoke")
@click.argument("tool_name")
@click.option("-a", "--args", "raw_args", default="{}", help="Tool arguments as a JSON object")
@click.pass_context
def invoke(ctx: click.Context, tool_name: str, raw_args: str) -> None:
    """Invoke a tool once against the API and print its result."""
    try:
        arguments = json.loads(raw_args)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid --args JSON: {e}[/red]")
        raise SystemExit(1)
    if not isinstance(arguments, dict):
        console.print("[red]--args must be a JSON object[/red]")
        raise SystemExit(1)

    settings = _settings_or_exit()
    configure_logging(settings.log_level)
    registry = _load_registry(ctx, settings.account_id)

    async def run() -> str:
        async with GraphQLClient(settings.graphql_url, settings.api_key) as client:
            invoker = ToolInvoker(registry, client, settings.max_response_length)
            return await invoker.invoke(tool_name, arguments)

    try:
        result = asyncio.run(run())
    except CatoMCPError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)

    click.echo(result)


if __name__ == "__main__":
    main()
