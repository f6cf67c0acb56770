"""Interface for durable session persistence."""

import abc
from typing import Optional

from ..models.common import SessionID
from ..models.session import SessionState


class SessionStore(abc.ABC):
    """Saves and loads SessionState snapshots keyed by session id."""

    @abc.abstractmethod
    async def save(self, state: SessionState) -> None:
        """Persists the snapshot, replacing any previous one for the same id.

        Raises:
            OSError: If the underlying storage cannot be written.
        """
        pass

    @abc.abstractmethod
    async def load(self, session_id: SessionID) -> Optional[SessionState]:
        """Returns the stored snapshot or None if nothing is stored for the id."""
        pass
