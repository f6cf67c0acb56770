"""Domain Events related to GraphQL calls and resilience.

Emitted by the executor and the batch engine when calls are served from
cache, deferred by rate limiting, retried, fail, or succeed.
"""

from dataclasses import dataclass, field
import time
from typing import Callable, Optional

# Base Event Class
@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass

EventSink = Callable[[DomainEvent], None]

# --- Specific API Events ---

@dataclass
class QueryInitiated(DomainEvent):
    """Event triggered when a request is about to be sent."""
    operation: str
    attempt_number: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class QuerySucceeded(DomainEvent):
    """Event triggered when a request succeeds."""
    operation: str
    latency_ms: float
    from_cache: bool = False
    timestamp: float = field(default_factory=time.time)

@dataclass
class QueryFailed(DomainEvent):
    """Event triggered when a request fails definitively (after retries)."""
    operation: str
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class RateLimitDeferred(DomainEvent):
    """Event triggered when a request is deferred by a 429 answer."""
    operation: str
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed request."""
    operation: str
    attempt_number: int
    delay_seconds: float
    error_type: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class BatchCompleted(DomainEvent):
    """Event triggered when a batch finishes, whether or not it was aborted."""
    batch_id: str
    total: int
    successful: int
    failed: int
    aborted: bool = False
    timestamp: float = field(default_factory=time.time)
