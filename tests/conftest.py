import pytest
from typer.testing import CliRunner
from typing import Any, Callable, List, Optional, Union

from linearkit.domain.interfaces.transport import Transport
from linearkit.domain.models.graphql import GraphQLRequest, GraphQLResponse
from linearkit.infrastructure.config import settings
from linearkit.infrastructure.resilience.query_executor import ExecutorConfig

# A scripted reply is either a response, an exception to raise, or a callable
# taking the request and returning one of those.
ScriptedReply = Union[GraphQLResponse, Exception, Callable[[GraphQLRequest], Any]]


class FakeTransport(Transport):
    """Transport double that replays scripted replies and records every request."""

    def __init__(self, replies: Optional[List[ScriptedReply]] = None, default: Optional[ScriptedReply] = None):
        self.replies = list(replies or [])
        self.default = default if default is not None else GraphQLResponse(data={"ok": True})
        self.requests: List[GraphQLRequest] = []
        self.closed = False

    async def send(self, request: GraphQLRequest) -> GraphQLResponse:
        self.requests.append(request)
        reply = self.replies.pop(0) if self.replies else self.default
        if callable(reply) and not isinstance(reply, (GraphQLResponse, Exception)):
            reply = reply(request)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def close(self) -> None:
        self.closed = True

    @property
    def calls(self) -> int:
        return len(self.requests)


class RecordingSleep:
    """Async sleep replacement that records requested delays and returns at once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def make_transport():
    """Factory for FakeTransport instances with scripted replies."""
    return FakeTransport


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def executor_config():
    return ExecutorConfig(api_key="lin_test_key", retry_attempts=3, retry_delay=1.0)


@pytest.fixture(autouse=True)
def isolated_configuration(monkeypatch, tmp_path):
    """Keep tests away from the developer's real config, .env and env vars."""
    for key in (
        "LINEAR_API_KEY", "LINEAR_API_ENDPOINT", "REQUEST_TIMEOUT", "RETRY_ATTEMPTS", "RETRY_DELAY",
        "CACHE_ENABLED", "CACHE_TTL", "CACHE_MAX_SIZE", "SESSION_PERSISTENCE", "SESSION_CACHE_TTL",
        "SESSION_DIR", "BATCH_SIZE", "LOG_LEVEL", "LOG_FILE",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(settings, "DEFAULT_CONFIG_FILE", tmp_path / "missing-config.yaml")
    monkeypatch.setattr(settings, "find_dotenv_path", lambda: None)
    settings.reset_configuration()
    settings.clear_test_config()
    yield
    settings.reset_configuration()
    settings.clear_test_config()
