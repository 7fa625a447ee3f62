"""Logging setup for the server process.

stdout carries the MCP stdio protocol, so all log output goes to stderr
through a rich handler.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

MCP_TO_PYTHON_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "notice": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "alert": logging.CRITICAL,
    "emergency": logging.CRITICAL,
}


class StderrRichHandler(RichHandler):
    """RichHandler bound to stderr; configure_logging installs at most one."""

    def __init__(self) -> None:
        super().__init__(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
        self.setFormatter(logging.Formatter("%(name)s: %(message)s"))


def to_python_level(level: str) -> int:
    """Map an MCP logging level name to a stdlib logging level (info on unknown names)."""
    return MCP_TO_PYTHON_LEVELS.get(level.lower(), logging.INFO)


def configure_logging(level: str = "info") -> None:
    """Install a stderr RichHandler on the package logger."""
    logger = logging.getLogger("cato_mcp")
    logger.setLevel(to_python_level(level))

    for handler in list(logger.handlers):
        if isinstance(handler, StderrRichHandler):
            logger.removeHandler(handler)

    logger.addHandler(StderrRichHandler())
    logger.propagate = False

    # Quiet chatty dependencies
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("mcp.server.lowlevel.server").setLevel(logging.WARNING)
