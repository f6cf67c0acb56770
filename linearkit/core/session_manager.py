"""Session state, context preservation and operation tracking.

A session outlives individual calls: it remembers the last 100 outcomes,
holds arbitrary caller context and can be saved to / restored from a
SessionStore.
"""

import logging
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional

from linearkit.domain.interfaces.operation_recorder import OperationRecorder
from linearkit.domain.interfaces.session_store import SessionStore
from linearkit.domain.models.common import OperationName, OperationStats, SessionID
from linearkit.domain.models.session import OperationRecord, SessionState
from linearkit.infrastructure.persistence.session_store import DEFAULT_SESSION_DIR, JsonFileSessionStore

logger = logging.getLogger(__name__)

MAX_RECORDED_OPERATIONS = 100

PERSISTENCE_MEMORY = "memory"
PERSISTENCE_DISK = "disk"


@dataclass
class SessionConfig:
    cache_ttl: float = 3600                    # seconds of inactivity before expiry checks fail
    persistence_type: str = PERSISTENCE_MEMORY  # 'memory' or 'disk'
    persistence_dir: Path = DEFAULT_SESSION_DIR


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager(OperationRecorder):
    """Tracks operations and context for one caller session."""

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        session_id: Optional[str] = None,
        store: Optional[SessionStore] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initializes the session.

        Args:
            config: Session settings; defaults to in-memory, no persistence.
            session_id: Reuse an existing id instead of generating one.
            store: Explicit persistence backend. When omitted, a
                JsonFileSessionStore is created for `persistence_type='disk'`
                and persistence is disabled for `'memory'`.
            clock: Returns the current time; injectable for tests.
        """
        self.config = config or SessionConfig()
        self.session_id = SessionID(session_id or self._generate_session_id())
        self._clock = clock
        self._context: Dict[str, Any] = {}
        self._operations: Deque[OperationRecord] = deque(maxlen=MAX_RECORDED_OPERATIONS)
        self.created_at = clock()
        self.last_activity = self.created_at

        if store is None and self.config.persistence_type == PERSISTENCE_DISK:
            store = JsonFileSessionStore(self.config.persistence_dir)
        self.store = store

        logger.debug(f"Session created: {self.session_id}")

    @staticmethod
    def _generate_session_id() -> str:
        return f"session-{uuid.uuid4().hex[:12]}"

    def _touch(self) -> None:
        self.last_activity = self._clock()

    # --- Context ---

    def get_context(self, key: str, default: Any = None) -> Any:
        return self._context.get(key, default)

    def set_context(self, key: str, value: Any) -> None:
        self._context[key] = value
        self._touch()
        logger.debug(f"Context set: {key}")

    def update_context(self, updates: Dict[str, Any]) -> None:
        self._context.update(updates)
        self._touch()
        logger.debug(f"Context updated with {len(updates)} entries")

    def delete_context(self, key: str) -> None:
        self._context.pop(key, None)
        self._touch()
        logger.debug(f"Context deleted: {key}")

    def clear_context(self) -> None:
        self._context.clear()
        self._touch()
        logger.info("All context cleared")

    def get_all_context(self) -> Dict[str, Any]:
        return dict(self._context)

    # --- Operation tracking ---

    def record_operation(self, name: OperationName, success: bool, duration_ms: float) -> None:
        """Appends an outcome; the oldest record is dropped past 100 entries."""
        self._operations.append(OperationRecord(
            name=name,
            timestamp=self._clock(),
            success=success,
            duration_ms=duration_ms,
        ))
        self._touch()
        logger.debug(f"Operation recorded: {name} ({'success' if success else 'failed'}, {duration_ms:.0f}ms)")

    def get_recent_operations(self, limit: int = 10) -> List[OperationRecord]:
        if limit <= 0:
            return []
        return list(self._operations)[-limit:]

    def get_operation_stats(self) -> OperationStats:
        total = len(self._operations)
        successful = sum(1 for op in self._operations if op.success)
        avg_duration = sum(op.duration_ms for op in self._operations) / total if total else 0.0
        return OperationStats(
            total=total,
            successful=successful,
            failed=total - successful,
            success_rate=(successful / total * 100) if total else 0.0,
            avg_duration_ms=avg_duration,
        )

    # --- Lifecycle ---

    def is_expired(self, max_age: Optional[float] = None) -> bool:
        """True if more than `max_age` seconds passed since the last activity.

        Falls back to `config.cache_ttl` when `max_age` is not given.
        """
        limit = self.config.cache_ttl if max_age is None else max_age
        return (self._clock() - self.last_activity).total_seconds() > limit

    def get_summary(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "created_at": self.created_at,
            "last_activity": self.last_activity,
            "context_size": len(self._context),
            "operation_count": len(self._operations),
        }

    def dispose(self) -> None:
        self._context.clear()
        self._operations.clear()
        logger.info(f"Session disposed: {self.session_id}")

    # --- Persistence ---

    def to_state(self) -> SessionState:
        return SessionState(
            session_id=self.session_id,
            context=dict(self._context),
            last_activity=self.last_activity,
            created_at=self.created_at,
        )

    async def save_state(self) -> bool:
        """Writes the session through the store. Returns False when persistence is off."""
        if self.store is None:
            logger.debug("Session persistence disabled, skipping save")
            return False
        try:
            await self.store.save(self.to_state())
        except Exception as e:
            logger.error(f"Failed to save session state for {self.session_id}: {e}")
            raise
        return True

    async def restore_state(self, session_id: str) -> bool:
        """Replaces the in-memory id, context and timestamps with a stored snapshot.

        Returns:
            True if a snapshot was found and applied, False if none exists.
        """
        if self.store is None:
            logger.warning("Session persistence disabled, nothing to restore")
            return False
        try:
            state = await self.store.load(SessionID(session_id))
        except Exception as e:
            logger.error(f"Failed to restore session state for {session_id}: {e}")
            raise
        if state is None:
            logger.warning(f"Session not found in store: {session_id}")
            return False

        self.session_id = state.session_id
        self._context = dict(state.context)
        self.last_activity = state.last_activity
        self.created_at = state.created_at
        logger.debug(f"Session state restored: {self.session_id}")
        return True
