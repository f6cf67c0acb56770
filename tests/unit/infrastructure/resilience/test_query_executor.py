import httpx
import pytest
from unittest.mock import MagicMock

from linearkit.domain.errors import (
    AuthError,
    GraphQLError,
    HttpError,
    InternalError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
)
from linearkit.domain.events.api_events import (
    QueryFailed, QuerySucceeded, RateLimitDeferred, RetryScheduled,
)
from linearkit.domain.interfaces.operation_recorder import OperationRecorder
from linearkit.domain.models.graphql import GraphQLRequest, GraphQLResponse
from linearkit.infrastructure.cache.response_cache import ResponseCache
from linearkit.infrastructure.resilience.query_executor import (
    MAX_RETRY_DELAY_SECONDS,
    ExecutorConfig,
    ResilientQueryExecutor,
    make_cache_key,
)
from linearkit.infrastructure.transport.http_transport import HttpTransport

GET_ISSUE = GraphQLRequest(query="query GetIssue($id: String!) { issue(id: $id) { id title } }", variables={"id": "A"})
UPDATE_ISSUE = GraphQLRequest(
    query="mutation UpdateIssue($id: String!) { issueUpdate(id: $id) { success } }", variables={"id": "A"}
)


@pytest.fixture
def recorder():
    return MagicMock(spec=OperationRecorder)


@pytest.fixture
def events():
    return []


def build_executor(transport, config, sleep, cache=None, recorder=None, events=None):
    return ResilientQueryExecutor(
        transport=transport,
        config=config,
        cache=cache,
        recorder=recorder,
        sleep=sleep,
        event_sink=events.append if events is not None else (lambda event: None),
    )


@pytest.mark.asyncio
async def test_success_returns_response_and_records(make_transport, executor_config, recording_sleep, recorder):
    transport = make_transport([GraphQLResponse(data={"issue": {"id": "A"}})])
    executor = build_executor(transport, executor_config, recording_sleep, recorder=recorder)

    response = await executor.execute(GET_ISSUE)

    assert response.data == {"issue": {"id": "A"}}
    assert transport.calls == 1
    assert recording_sleep.delays == []
    recorder.record_operation.assert_called_once()
    name, success, duration_ms = recorder.record_operation.call_args.args
    assert (name, success) == ("GetIssue", True)
    assert duration_ms >= 0


@pytest.mark.asyncio
async def test_cacheable_read_hits_network_once(make_transport, executor_config, recording_sleep, recorder, events):
    transport = make_transport(default=GraphQLResponse(data={"issue": {"id": "A"}}))
    executor = build_executor(
        transport, executor_config, recording_sleep, cache=ResponseCache(), recorder=recorder, events=events
    )

    first = await executor.query(GET_ISSUE, use_cache=True)
    second = await executor.query(GET_ISSUE, use_cache=True)

    assert first == second == {"issue": {"id": "A"}}
    assert transport.calls == 1
    assert recorder.record_operation.call_count == 2
    assert any(isinstance(e, QuerySucceeded) and e.from_cache for e in events)


@pytest.mark.asyncio
async def test_cacheable_flag_on_request_is_honoured(make_transport, executor_config, recording_sleep):
    transport = make_transport(default=GraphQLResponse(data={"n": 1}))
    executor = build_executor(transport, executor_config, recording_sleep, cache=ResponseCache())
    request = GraphQLRequest(query=GET_ISSUE.query, variables={"id": "A"}, cacheable=True)

    await executor.execute(request)
    await executor.execute(request)

    assert transport.calls == 1


@pytest.mark.asyncio
async def test_non_cacheable_read_always_hits_network(make_transport, executor_config, recording_sleep):
    transport = make_transport(default=GraphQLResponse(data={"n": 1}))
    executor = build_executor(transport, executor_config, recording_sleep, cache=ResponseCache())

    await executor.query(GET_ISSUE)
    await executor.query(GET_ISSUE)

    assert transport.calls == 2


@pytest.mark.asyncio
async def test_mutations_are_never_cached(make_transport, executor_config, recording_sleep):
    transport = make_transport(default=GraphQLResponse(data={"issueUpdate": {"success": True}}))
    cache = ResponseCache()
    executor = build_executor(transport, executor_config, recording_sleep, cache=cache)

    await executor.mutate(UPDATE_ISSUE)
    await executor.mutate(UPDATE_ISSUE)

    assert transport.calls == 2
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_null_data_is_not_cached(make_transport, executor_config, recording_sleep):
    transport = make_transport(default=GraphQLResponse(data=None))
    cache = ResponseCache()
    executor = build_executor(transport, executor_config, recording_sleep, cache=cache)

    await executor.query(GET_ISSUE, use_cache=True)

    assert len(cache) == 0


@pytest.mark.asyncio
async def test_retryable_errors_exhaust_bounded_attempts(
    make_transport, executor_config, recording_sleep, recorder, events
):
    transport = make_transport(default=NetworkError("unreachable"))
    executor = build_executor(transport, executor_config, recording_sleep, recorder=recorder, events=events)

    with pytest.raises(NetworkError):
        await executor.execute(GET_ISSUE)

    assert transport.calls == executor_config.retry_attempts + 1 == 4
    # One backoff between each pair of attempts, none after the last
    assert len(recording_sleep.delays) == 3
    assert len([e for e in events if isinstance(e, RetryScheduled)]) == 3
    assert isinstance(events[-1], QueryFailed)
    recorder.record_operation.assert_called_once()
    assert recorder.record_operation.call_args.args[1] is False


@pytest.mark.asyncio
async def test_backoff_grows_exponentially_with_bounded_jitter(make_transport, executor_config, recording_sleep):
    transport = make_transport(default=RequestTimeoutError("slow"))
    executor = build_executor(transport, executor_config, recording_sleep)

    with pytest.raises(RequestTimeoutError):
        await executor.execute(GET_ISSUE)

    for attempt, delay in enumerate(recording_sleep.delays):
        base = executor_config.retry_delay * (2 ** attempt)
        assert base <= delay <= base * 1.1


def test_retry_delay_is_capped(executor_config, recording_sleep, fake_transport):
    executor = build_executor(fake_transport, executor_config, recording_sleep)
    assert executor.get_retry_delay(10) == MAX_RETRY_DELAY_SECONDS


@pytest.mark.asyncio
async def test_transient_failure_then_success(make_transport, executor_config, recording_sleep):
    transport = make_transport([NetworkError("blip"), GraphQLResponse(data={"ok": True})])
    executor = build_executor(transport, executor_config, recording_sleep)

    assert await executor.query(GET_ISSUE) == {"ok": True}
    assert transport.calls == 2
    assert len(recording_sleep.delays) == 1


@pytest.mark.asyncio
async def test_rate_limit_waits_without_consuming_attempts(make_transport, recording_sleep, events):
    config = ExecutorConfig(api_key="k", retry_attempts=1, retry_delay=1.0)
    transport = make_transport([
        RateLimitError(60),
        RateLimitError(60),
        RateLimitError(60),
        GraphQLResponse(data={"ok": True}),
    ])
    executor = build_executor(transport, config, recording_sleep, events=events)

    assert await executor.query(GET_ISSUE) == {"ok": True}
    # Three 429s with a budget of one retry: only possible if waits are free
    assert transport.calls == 4
    assert recording_sleep.delays == [60, 60, 60]
    assert len([e for e in events if isinstance(e, RateLimitDeferred)]) == 3


@pytest.mark.asyncio
async def test_rate_limit_then_network_errors_still_bounded(make_transport, recording_sleep):
    config = ExecutorConfig(api_key="k", retry_attempts=1, retry_delay=1.0)
    transport = make_transport([RateLimitError(5)], default=NetworkError("down"))
    executor = build_executor(transport, config, recording_sleep)

    with pytest.raises(NetworkError):
        await executor.execute(GET_ISSUE)

    assert transport.calls == 3
    assert recording_sleep.delays[0] == 5


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    AuthError("Unauthorized: Invalid API key"),
    HttpError(500, "boom"),
])
async def test_non_retryable_errors_abort_immediately(make_transport, executor_config, recording_sleep, error):
    transport = make_transport(default=error)
    executor = build_executor(transport, executor_config, recording_sleep)

    with pytest.raises(type(error)):
        await executor.execute(GET_ISSUE)

    assert transport.calls == 1
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_graphql_errors_are_aggregated_and_not_retried(make_transport, executor_config, recording_sleep):
    envelope = GraphQLResponse(data=None, errors=[
        {"message": "Issue not found", "extensions": {"code": "NOT_FOUND"}},
        {"message": "Team archived", "extensions": None},
    ])
    transport = make_transport(default=envelope)
    cache = ResponseCache()
    executor = build_executor(transport, executor_config, recording_sleep, cache=cache)

    with pytest.raises(GraphQLError) as exc_info:
        await executor.query(GET_ISSUE, use_cache=True)

    assert str(exc_info.value) == "GraphQL Error: Issue not found; Team archived"
    assert exc_info.value.errors == envelope.errors
    assert transport.calls == 1
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_zero_retry_attempts_means_single_attempt(make_transport, recording_sleep):
    config = ExecutorConfig(api_key="k", retry_attempts=0)
    transport = make_transport(default=NetworkError("down"))
    executor = build_executor(transport, config, recording_sleep)

    with pytest.raises(NetworkError):
        await executor.execute(GET_ISSUE)

    assert transport.calls == 1
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_empty_loop_raises_internal_error(fake_transport, recording_sleep, recorder):
    config = ExecutorConfig(api_key="k", retry_attempts=-1)
    executor = build_executor(fake_transport, config, recording_sleep, recorder=recorder)

    with pytest.raises(InternalError):
        await executor.execute(GET_ISSUE)

    assert fake_transport.calls == 0
    assert recorder.record_operation.call_args.args[1] is False


def test_cache_key_is_canonical():
    a = GraphQLRequest(query=GET_ISSUE.query, variables={"id": "A", "team": "T"})
    b = GraphQLRequest(query=GET_ISSUE.query, variables={"team": "T", "id": "A"})

    assert make_cache_key(a) == make_cache_key(b)
    assert make_cache_key(a) == 'graphql:GetIssue:{"id": "A", "team": "T"}'
    assert make_cache_key(GraphQLRequest(query=GET_ISSUE.query)) == "graphql:GetIssue:"


def test_anonymous_documents_do_not_share_cache_keys():
    first = GraphQLRequest(query="{ viewer { id } }")
    second = GraphQLRequest(query="{ teams { nodes { id } } }")

    assert make_cache_key(first) != make_cache_key(second)
    assert make_cache_key(first).startswith("graphql:Anonymous#")


@pytest.mark.asyncio
async def test_cached_read_expires_after_ttl(make_transport, executor_config, recording_sleep, fake_clock):
    transport = make_transport(default=GraphQLResponse(data={"issue": {"id": "A"}}))
    cache = ResponseCache(ttl=300, clock=fake_clock)
    executor = build_executor(transport, executor_config, recording_sleep, cache=cache)

    await executor.query(GET_ISSUE, use_cache=True)
    fake_clock.now = 100
    await executor.query(GET_ISSUE, use_cache=True)
    assert transport.calls == 1

    fake_clock.now = 400
    await executor.query(GET_ISSUE, use_cache=True)
    assert transport.calls == 2


@pytest.mark.asyncio
async def test_single_rate_limit_then_success(make_transport, executor_config, recording_sleep):
    transport = make_transport([RateLimitError(60), GraphQLResponse(data={"ok": True})])
    executor = build_executor(transport, executor_config, recording_sleep)

    assert await executor.query(GET_ISSUE) == {"ok": True}
    assert transport.calls == 2
    assert sum(recording_sleep.delays) >= 60


@pytest.mark.asyncio
async def test_unexpected_exception_is_recorded_and_reraised(
    make_transport, executor_config, recording_sleep, recorder, events
):
    transport = make_transport(default=RuntimeError("transport bug"))
    executor = build_executor(transport, executor_config, recording_sleep, recorder=recorder, events=events)

    with pytest.raises(RuntimeError, match="transport bug"):
        await executor.execute(GET_ISSUE)

    assert transport.calls == 1
    assert recording_sleep.delays == []
    recorder.record_operation.assert_called_once()
    assert recorder.record_operation.call_args.args[:2] == ("GetIssue", False)
    assert isinstance(events[-1], QueryFailed)
    assert events[-1].error_type == "RuntimeError"


@pytest.mark.asyncio
async def test_corrupt_http_body_is_recorded_as_failure(executor_config, recording_sleep, recorder, events):
    def handler(request):
        return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip at all")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    transport = HttpTransport(api_key="lin_test_key", endpoint="https://tracker.test/graphql", client=client)
    executor = build_executor(transport, executor_config, recording_sleep, recorder=recorder, events=events)

    with pytest.raises(HttpError):
        await executor.execute(GET_ISSUE)

    assert recording_sleep.delays == []
    assert recorder.record_operation.call_args.args[1] is False
    assert isinstance(events[-1], QueryFailed)
    assert events[-1].error_type == "HttpError"
    await client.aclose()
