"""Runs one tool invocation end to end."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Mapping

from ..config import DEFAULT_MAX_RESPONSE_LENGTH
from ..graphql.client import GraphQLClient
from ..graphql.serializer import finalize
from .arguments import normalize

if TYPE_CHECKING:
    from ..registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolInvoker:
    """Normalize, apply the input policy, query, reshape, serialize.

    Holds no per-call state, so concurrent invocations on one event loop
    are independent.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        client: GraphQLClient,
        max_response_length: int = DEFAULT_MAX_RESPONSE_LENGTH,
    ):
        self.registry = registry
        self.client = client
        self.max_response_length = max_response_length

    async def invoke(self, name: str, raw_args: Mapping[str, Any] | None = None) -> str:
        """Invoke a tool and return its serialized result.

        Raises:
            CatoMCPError: any typed pipeline error (not found, bad argument,
                missing input, upstream failure)
        """
        entry = self.registry.resolve(name)
        logger.info("Executing %s query with args: %s", name, json.dumps(raw_args, default=str))

        args = normalize(entry.descriptor, raw_args)
        args = entry.input_policy.apply(args)
        logger.debug("GraphQL request variables: %s", json.dumps(args, default=str))

        envelope = await self.client.execute(entry.descriptor.query, args)

        if entry.response_policy is None:
            result: Any = envelope.to_dict()
        else:
            result = entry.response_policy.transform(args, envelope)

        return finalize(result, self.max_response_length)
