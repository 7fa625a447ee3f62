"""Base class and registry for response policies.

A response policy reshapes the raw GraphQL envelope into the tool's output.
Each policy reads one collection (sites or users) under one root field
(accountMetrics or accountSnapshot). When that collection is missing from an
otherwise valid reply the policy returns the root's empty result instead of
failing.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

from ..models import DownstreamEnvelope

logger = logging.getLogger(__name__)

METRICS_ROOT = "accountMetrics"
SNAPSHOT_ROOT = "accountSnapshot"


@dataclass(frozen=True)
class Scope:
    """The root field and collection a response policy reads."""

    root: str = METRICS_ROOT
    collection: str = "sites"

    def node(self, envelope: DownstreamEnvelope) -> dict[str, Any] | None:
        node = (envelope.data or {}).get(self.root)
        return node if isinstance(node, dict) else None

    def items(self, node: dict[str, Any] | None) -> list[Any] | None:
        if node is None:
            return None
        items = node.get(self.collection)
        return items if isinstance(items, list) else None

    def empty_result(self, node: dict[str, Any] | None) -> dict[str, Any]:
        node = node or {}
        if self.root == SNAPSHOT_ROOT:
            return {
                "data": {
                    "accountSnapshotTimestamp": node.get("timestamp"),
                    self.collection: [],
                }
            }
        return {"data": {"timeFrame": time_frame(node), self.collection: []}}


def time_frame(node: dict[str, Any]) -> dict[str, Any]:
    """Echo of the metrics time frame."""
    return {"from": node.get("from"), "to": node.get("to")}


class ResponsePolicy(ABC):
    """Maps (arguments, envelope) to the final result of a tool.

    Subclasses implement reshape(); transform() handles the soft miss.
    """

    name: ClassVar[str] = ""
    default_root: ClassVar[str] = METRICS_ROOT
    default_collection: ClassVar[str] = "sites"

    def __init__(self, root: str | None = None, collection: str | None = None):
        self.scope = Scope(
            root=root or self.default_root,
            collection=collection or self.default_collection,
        )

    def scope_for(self, args: dict[str, Any]) -> Scope:
        return self.scope

    def transform(self, args: dict[str, Any], envelope: DownstreamEnvelope) -> dict[str, Any]:
        scope = self.scope_for(args)
        node = scope.node(envelope)
        items = scope.items(node)
        if items is None:
            logger.debug(
                "No %s found in %s for account ID: %s",
                scope.collection,
                scope.root,
                args.get("accountID"),
            )
            return scope.empty_result(node)
        return self.reshape(args, node, items)

    @abstractmethod
    def reshape(self, args: dict[str, Any], node: dict[str, Any], items: list[Any]) -> dict[str, Any]:
        """Build the tool result from the root node and its collection."""


class EnvelopePolicy(ABC):
    """A policy that annotates the whole envelope rather than one collection."""

    name: ClassVar[str] = ""

    @abstractmethod
    def transform(self, args: dict[str, Any], envelope: DownstreamEnvelope) -> dict[str, Any]:
        ...


RESPONSE_POLICIES: dict[str, type] = {}


def register_policy(cls: type) -> type:
    """Class decorator adding a policy to RESPONSE_POLICIES under its name."""
    RESPONSE_POLICIES[cls.name] = cls
    return cls


def build_response_policy(spec: Any) -> ResponsePolicy | EnvelopePolicy | None:
    """Instantiate the policy a descriptor names (None when it names none).

    Raises:
        KeyError: on an unknown policy name
        TypeError: on options the policy does not accept
    """
    if spec is None:
        return None
    cls = RESPONSE_POLICIES.get(spec.name)
    if cls is None:
        raise KeyError(f"unknown response policy '{spec.name}'")
    return cls(**spec.options)
