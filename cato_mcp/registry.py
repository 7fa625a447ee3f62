"""Registry of the tools served by the MCP server.

Built once at startup from the descriptor catalog and read-only afterwards.
Each entry pairs a ToolDescriptor with its compiled input and response
policies, so an unknown policy name fails at load time rather than on the
first call.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .errors import CatalogError, NotFoundError
from .models import ToolDescriptor, load_tool_descriptors
from .pipeline.inputs import InputPolicy, build_input_policy
from .responses import EnvelopePolicy, ResponsePolicy, build_response_policy


@dataclass(frozen=True)
class ToolEntry:
    """A descriptor together with its compiled policies."""

    descriptor: ToolDescriptor
    input_policy: InputPolicy
    response_policy: ResponsePolicy | EnvelopePolicy | None

    @property
    def name(self) -> str:
        return self.descriptor.name


class ToolRegistry:
    """Name to tool lookup for the invoker and the MCP list_tools handler.

    Example:
        registry = ToolRegistry.from_catalog(account_id="12345")

        descriptor = registry.lookup("site_types")
        for descriptor in registry.list_all():
            print(descriptor.name)
    """

    def __init__(self, descriptors: Iterable[ToolDescriptor]):
        """Compile the policies of every descriptor.

        Args:
            descriptors: Tool descriptors; names must be unique

        Raises:
            CatalogError: on a duplicate name or an unknown policy name
        """
        self._entries: dict[str, ToolEntry] = {}
        for descriptor in descriptors:
            if descriptor.name in self._entries:
                raise CatalogError(f"Duplicate tool name: {descriptor.name}")
            try:
                entry = ToolEntry(
                    descriptor=descriptor,
                    input_policy=build_input_policy(descriptor.input_policy),
                    response_policy=build_response_policy(descriptor.response_policy),
                )
            except (KeyError, TypeError, ValueError) as e:
                raise CatalogError(f"Invalid policy in tool {descriptor.name}: {e}") from e
            self._entries[descriptor.name] = entry

    @classmethod
    def from_catalog(cls, account_id: str, directory: str | Path | None = None) -> ToolRegistry:
        """Build the registry from a descriptor catalog directory."""
        return cls(load_tool_descriptors(account_id, directory))

    def lookup(self, name: str) -> ToolDescriptor:
        """Get a descriptor by name, raising NotFoundError if absent."""
        return self.resolve(name).descriptor

    def resolve(self, name: str) -> ToolEntry:
        """Get a descriptor with its compiled policies."""
        entry = self._entries.get(name)
        if entry is None:
            raise NotFoundError(name)
        return entry

    def list_all(self) -> list[ToolDescriptor]:
        """All descriptors in registration order."""
        return [entry.descriptor for entry in self._entries.values()]

    def names(self) -> list[str]:
        return list(self._entries.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)
