"""Error taxonomy shared by every layer of the toolkit.

Transport failures, remote business errors and local configuration
problems all derive from LinearKitError so callers can catch the whole
family at once. The `retryable` flag is what the executor consults when
deciding whether a failed attempt is worth repeating.
"""

from typing import Any, Dict, List, Optional


class LinearKitError(Exception):
    """Base class for all toolkit errors."""

    code = "LINEARKIT_ERROR"
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NetworkError(LinearKitError):
    """Remote endpoint could not be reached (connection refused, DNS failure...)."""

    code = "NETWORK_ERROR"
    retryable = True


class RequestTimeoutError(LinearKitError):
    """A single request exceeded its deadline."""

    code = "TIMEOUT_ERROR"
    retryable = True


class RateLimitError(LinearKitError):
    """Server answered 429. Carries the number of seconds to wait."""

    code = "RATE_LIMITED"

    def __init__(self, retry_after: float, message: Optional[str] = None):
        super().__init__(message or f"Rate limited, retry after {retry_after}s")
        self.retry_after = retry_after


class AuthError(LinearKitError):
    """Server rejected the credentials (401). Never retried."""

    code = "AUTH_ERROR"


class HttpError(LinearKitError):
    """Any other non-2xx answer, or a body that is not a GraphQL envelope."""

    code = "HTTP_ERROR"

    def __init__(self, status_code: Optional[int], body: str = "", message: Optional[str] = None):
        super().__init__(message or f"HTTP {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class GraphQLError(LinearKitError):
    """Business-level errors returned inside a 200 envelope."""

    code = "GRAPHQL_ERROR"

    def __init__(self, errors: List[Dict[str, Any]]):
        messages = "; ".join(str(e.get("message", "Unknown error")) for e in errors)
        super().__init__(f"GraphQL Error: {messages}", details={"errors": errors})
        self.errors = errors


class ConfigError(LinearKitError):
    """Invalid configuration: bad settings, missing factory, cyclic module graph."""

    code = "CONFIG_ERROR"


class InternalError(LinearKitError):
    """The executor reached a state that should be impossible."""

    code = "INTERNAL_ERROR"
