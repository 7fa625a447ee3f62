"""Async GraphQL client for the Cato API.

One POST per tool invocation, no retries and no timeout beyond httpx's
default. The API key travels in the x-api-key header and is masked in logs.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..errors import UpstreamError, UpstreamHttpError
from ..models import DownstreamEnvelope

logger = logging.getLogger(__name__)

USER_AGENT = "Cato MCP Server"
TRACE_ID_HEADER = "Trace_id"


class GraphQLClient:
    """Executes GraphQL documents against a single endpoint.

    Example:
        async with GraphQLClient(settings.graphql_url, settings.api_key) as client:
            envelope = await client.execute(query, {"accountID": "12345"})
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the client.

        Args:
            url: Full GraphQL endpoint URL
            api_key: Static credential sent with every request
            http_client: Optional preconfigured AsyncClient (owned by the caller)
        """
        self.url = url
        self._api_key = api_key
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()

    @property
    def headers(self) -> dict[str, str]:
        return {
            "User-Agent": USER_AGENT,
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
        }

    def build_body(self, query: str, variables: dict[str, Any]) -> str:
        body = json.dumps({"query": query, "variables": variables}, ensure_ascii=False)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("GraphQL request: %s", self._mask(body))
        return body

    def _mask(self, text: str) -> str:
        if not self._api_key:
            return text
        return text.replace(self._api_key, "***")

    async def execute(self, query: str, variables: dict[str, Any]) -> DownstreamEnvelope:
        """Send one query and return the validated envelope.

        Errors reported next to usable data are logged and the data is
        returned; only an unusable envelope is fatal.

        Raises:
            UpstreamHttpError: on a non-2xx status
            UpstreamError: when the reply holds no usable data
        """
        response = await self._http.post(
            self.url,
            content=self.build_body(query, variables).encode("utf-8"),
            headers=self.headers,
        )

        trace_id = response.headers.get(TRACE_ID_HEADER)
        if trace_id:
            logger.info("trace-id: %s", trace_id)

        if not response.is_success:
            raise UpstreamHttpError(response.status_code, response.text)

        try:
            envelope = DownstreamEnvelope.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise UpstreamError(f"invalid response body: {e}") from e

        if envelope.errors:
            logger.error("GraphQL response errors: %s", json.dumps(envelope.errors))

        if not envelope.is_usable():
            raise UpstreamError(", ".join(envelope.error_messages()))

        return envelope

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> GraphQLClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
