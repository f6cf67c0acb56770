"""Service for executing GraphQL calls with automatic retries.

Implements exponential backoff for transient transport errors, honours
server-driven rate limiting (429 + Retry-After) and serves cacheable
reads from the ResponseCache.
"""

import asyncio
import hashlib
import json
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from linearkit.domain.errors import GraphQLError, InternalError, LinearKitError, RateLimitError
from linearkit.domain.events.api_events import (
    DomainEvent, EventSink, QueryFailed, QueryInitiated, QuerySucceeded,
    RateLimitDeferred, RetryScheduled,
)
from linearkit.domain.interfaces.cache import CacheService
from linearkit.domain.interfaces.operation_recorder import OperationRecorder
from linearkit.domain.interfaces.transport import Transport
from linearkit.domain.models.common import CacheKey, OperationName
from linearkit.domain.models.graphql import ANONYMOUS_OPERATION, GraphQLRequest, GraphQLResponse

logger = logging.getLogger(__name__)

MAX_RETRY_DELAY_SECONDS = 30.0
JITTER_RATIO = 0.1

Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class ExecutorConfig:
    """Settings consumed by the executor (and the transport it wraps)."""
    api_key: str
    endpoint: str = "https://api.linear.app/graphql"
    timeout: float = 30.0        # seconds per request
    retry_attempts: int = 3      # bounded retries after the first attempt
    retry_delay: float = 1.0     # base backoff in seconds


def make_cache_key(request: GraphQLRequest) -> CacheKey:
    """Canonical cache key: operation name plus sorted-key JSON of the variables."""
    name = request.operation_name
    variables = json.dumps(request.variables, sort_keys=True, default=str) if request.variables else ""
    if name == ANONYMOUS_OPERATION:
        # Unnamed documents would otherwise collide on identical variables
        digest = hashlib.sha256(request.query.encode("utf-8")).hexdigest()[:12]
        name = f"{name}#{digest}"
    return CacheKey(f"graphql:{name}:{variables}")


def _log_event(event: DomainEvent) -> None:
    logger.debug(f"EVENT: {event}")


class ResilientQueryExecutor:
    """Runs GraphQL requests with caching, retries and rate-limit handling."""

    def __init__(
        self,
        transport: Transport,
        config: ExecutorConfig,
        cache: Optional[CacheService] = None,
        recorder: Optional[OperationRecorder] = None,
        sleep: Sleeper = asyncio.sleep,
        event_sink: EventSink = _log_event,
    ):
        """Initializes the executor.

        Args:
            transport: Sends one request per attempt.
            config: Retry budget, base delay and timeout.
            cache: Optional response cache for cacheable reads.
            recorder: Optional SessionManager receiving every outcome.
            sleep: Awaitable sleep used for backoff and rate-limit waits.
            event_sink: Receives domain events; defaults to debug logging.
        """
        self.transport = transport
        self.config = config
        self.cache = cache
        self.recorder = recorder
        self._sleep = sleep
        self._dispatch = event_sink

        logger.info(
            f"ResilientQueryExecutor initialized: retry_attempts={config.retry_attempts}, "
            f"retry_delay={config.retry_delay}s, timeout={config.timeout}s, "
            f"cache={'on' if cache else 'off'}"
        )

    def get_retry_delay(self, attempt: int) -> float:
        """Backoff before the retry that follows bounded attempt `attempt` (0-based)."""
        exponential = self.config.retry_delay * (2 ** attempt)
        jitter = random.uniform(0, exponential * JITTER_RATIO)
        return min(exponential + jitter, MAX_RETRY_DELAY_SECONDS)

    def _record(self, name: OperationName, success: bool, started: float) -> None:
        if self.recorder is not None:
            self.recorder.record_operation(name, success, (time.perf_counter() - started) * 1000)

    async def execute(self, request: GraphQLRequest, cacheable: Optional[bool] = None) -> GraphQLResponse:
        """Executes a request, serving it from cache when allowed.

        Args:
            request: The GraphQL document to run.
            cacheable: Overrides `request.cacheable` when given.

        Returns:
            The successful response envelope (no `errors`).

        Raises:
            GraphQLError: The server answered with business errors.
            AuthError: Credentials were rejected.
            HttpError: Any other non-2xx answer.
            NetworkError, RequestTimeoutError: After the retry budget is spent.
            InternalError: The loop ended without a result or an error.

        Any other exception raised by the transport is recorded as a failure
        and re-raised without retrying.
        """
        use_cache = request.cacheable if cacheable is None else cacheable
        operation = OperationName(request.operation_name)
        started = time.perf_counter()

        cache_key: Optional[CacheKey] = None
        if use_cache and self.cache is not None:
            cache_key = make_cache_key(request)
            cached = await self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit for query: {operation}")
                self._dispatch(QuerySucceeded(operation=operation, latency_ms=0.0, from_cache=True))
                self._record(operation, True, started)
                return cached

        last_error: Optional[Exception] = None
        attempt = 0
        max_attempts = self.config.retry_attempts + 1

        while attempt < max_attempts:
            try:
                self._dispatch(QueryInitiated(operation=operation, attempt_number=attempt + 1))
                response = await self.transport.send(request)

                if response.has_errors:
                    raise GraphQLError(response.errors)

                if cache_key is not None and response.data is not None:
                    await self.cache.set(cache_key, response)

                latency_ms = (time.perf_counter() - started) * 1000
                logger.debug(f"Query completed: {operation} ({latency_ms:.0f}ms)")
                self._dispatch(QuerySucceeded(operation=operation, latency_ms=latency_ms))
                self._record(operation, True, started)
                return response

            except RateLimitError as e:
                # Server-directed wait; does not consume a bounded attempt
                last_error = e
                logger.warning(f"Rate limited on {operation}, waiting {e.retry_after}s before retrying")
                self._dispatch(RateLimitDeferred(operation=operation, wait_time_seconds=e.retry_after))
                await self._sleep(e.retry_after)
                continue

            except LinearKitError as e:
                last_error = e
                if not e.retryable:
                    logger.error(f"Non-retryable error on {operation} (attempt {attempt + 1}): {e}")
                    break

                if attempt + 1 < max_attempts:
                    delay = self.get_retry_delay(attempt)
                    logger.warning(
                        f"Retryable error on {operation} (attempt {attempt + 1}/{max_attempts}): "
                        f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s..."
                    )
                    self._dispatch(RetryScheduled(
                        operation=operation, attempt_number=attempt + 1,
                        delay_seconds=delay, error_type=type(e).__name__,
                    ))
                    await self._sleep(delay)
                else:
                    logger.error(f"Max retries ({self.config.retry_attempts}) reached for {operation}. Last error: {e}")
                attempt += 1

            except Exception as e:
                last_error = e
                logger.error(f"Unexpected error on {operation} (attempt {attempt + 1}): {type(e).__name__}: {e}")
                break

        self._record(operation, False, started)
        if last_error is not None:
            self._dispatch(QueryFailed(operation=operation, error_type=type(last_error).__name__, error_message=str(last_error)))
            raise last_error

        raise InternalError(f"Unknown error occurred while executing {operation}: no response and no error")

    async def query(self, request: GraphQLRequest, use_cache: bool = False) -> Any:
        """Runs a read and returns only its `data`."""
        response = await self.execute(request, cacheable=use_cache)
        return response.data

    async def mutate(self, request: GraphQLRequest) -> Any:
        """Runs a mutation (never cached) and returns only its `data`."""
        response = await self.execute(request, cacheable=False)
        return response.data
