"""Domain models for session tracking."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

from .common import OperationName, SessionID


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parses an ISO-8601 timestamp into an aware UTC-comparable datetime.

    Accepts the "Z" suffix written by other clients; naive values are taken as UTC.
    """
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class OperationRecord:
    """One recorded call outcome."""
    name: OperationName
    timestamp: datetime
    success: bool
    duration_ms: float


@dataclass
class SessionState:
    """Durable snapshot of a session, as written by a SessionStore."""
    session_id: SessionID
    context: Dict[str, Any] = field(default_factory=dict)
    last_activity: datetime = field(default_factory=_utc_now)
    created_at: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        # Field names follow the on-disk format shared with other clients
        return {
            "sessionId": self.session_id,
            "context": self.context,
            "lastActivity": self.last_activity.isoformat(),
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "SessionState":
        return cls(
            session_id=SessionID(raw["sessionId"]),
            context=dict(raw.get("context") or {}),
            last_activity=parse_timestamp(raw["lastActivity"]),
            created_at=parse_timestamp(raw.get("createdAt") or raw["lastActivity"]),
        )
