"""Concrete implementation of the Transport interface using httpx.

Hides the specifics of the HTTP client library and translates status
codes and transport failures into the toolkit's error taxonomy.
"""

import asyncio
import logging
from typing import Optional

import httpx

from linearkit.domain.errors import (
    AuthError,
    HttpError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
)
from linearkit.domain.interfaces.transport import Transport
from linearkit.domain.models.graphql import GraphQLRequest, GraphQLResponse

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.linear.app/graphql"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRY_AFTER_SECONDS = 60
USER_AGENT = "linearkit/1.0"


def parse_retry_after(header_value: Optional[str]) -> float:
    """Seconds to wait according to a Retry-After header (default 60)."""
    if not header_value:
        return DEFAULT_RETRY_AFTER_SECONDS
    try:
        seconds = float(header_value.strip())
    except ValueError:
        # HTTP-date form is not used by the API; fall back to the default
        logger.debug(f"Unparseable Retry-After header: {header_value!r}")
        return DEFAULT_RETRY_AFTER_SECONDS
    return max(seconds, 0.0)


class HttpTransport(Transport):
    """POSTs GraphQL envelopes to a single endpoint with a bearer token."""

    def __init__(
        self,
        api_key: str,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initializes the transport.

        Args:
            api_key: Token sent as `Authorization: Bearer <api_key>`.
            endpoint: GraphQL endpoint URL.
            timeout: Deadline in seconds for one request.
            client: Optional pre-built AsyncClient (tests pass one backed by
                httpx.MockTransport). Owned by the caller when supplied.
        """
        if not api_key:
            raise ValueError("API key not provided.")
        self.endpoint = endpoint
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
            "User-Agent": USER_AGENT,
        }
        logger.debug(f"HttpTransport initialized for endpoint: {endpoint}")

    async def send(self, request: GraphQLRequest) -> GraphQLResponse:
        try:
            response = await asyncio.wait_for(
                self._client.post(self.endpoint, json=request.to_payload(), headers=self._headers),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(f"Request timeout after {self.timeout}s") from e
        except httpx.TransportError as e:
            # ConnectError, DNS resolution failures, dropped connections...
            raise NetworkError(f"Network error: unable to reach {self.endpoint}: {e}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # Undecodable content encodings, redirect loops, malformed endpoints
            raise HttpError(None, message=f"Request to {self.endpoint} failed: {type(e).__name__}: {e}") from e

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitError(retry_after)

        if response.status_code == 401:
            raise AuthError("Unauthorized: Invalid API key")

        if not response.is_success:
            raise HttpError(response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as e:
            raise HttpError(response.status_code, response.text, message=f"Invalid JSON in response: {e}") from e

        if not isinstance(payload, dict):
            raise HttpError(response.status_code, response.text, message="Response is not a GraphQL envelope")

        return GraphQLResponse.from_payload(payload)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
