"""Interface for the GraphQL transport boundary."""

import abc

from ..models.graphql import GraphQLRequest, GraphQLResponse


class Transport(abc.ABC):
    """Sends exactly one request to the remote endpoint."""

    @abc.abstractmethod
    async def send(self, request: GraphQLRequest) -> GraphQLResponse:
        """Performs a single request under the configured deadline.

        Args:
            request: The GraphQL document and variables to send.

        Returns:
            The parsed response envelope (which may still carry `errors`).

        Raises:
            RateLimitError: On HTTP 429.
            AuthError: On HTTP 401.
            HttpError: On any other non-2xx status or an undecodable body.
            NetworkError: When the endpoint cannot be reached.
            RequestTimeoutError: When the deadline expires.
        """
        pass

    async def close(self) -> None:
        """Releases any underlying connections."""
        return None
