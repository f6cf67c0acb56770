"""SessionStore implementations.

`JsonFileSessionStore` writes one `session-<id>.json` file per session
using `aiofiles` for async I/O. `MemorySessionStore` keeps snapshots in a
dict, for tests and short-lived processes.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Union

import aiofiles

from linearkit.domain.interfaces.session_store import SessionStore
from linearkit.domain.models.common import SessionID
from linearkit.domain.models.session import SessionState

logger = logging.getLogger(__name__)

DEFAULT_SESSION_DIR = Path(".linear")


class MemorySessionStore(SessionStore):
    """Keeps deep copies of snapshots in memory."""

    def __init__(self):
        self._states: Dict[SessionID, SessionState] = {}

    async def save(self, state: SessionState) -> None:
        self._states[state.session_id] = copy.deepcopy(state)

    async def load(self, session_id: SessionID) -> Optional[SessionState]:
        state = self._states.get(session_id)
        return copy.deepcopy(state) if state is not None else None


class JsonFileSessionStore(SessionStore):
    """One JSON document per session under a directory."""

    def __init__(self, directory: Union[str, Path] = DEFAULT_SESSION_DIR):
        self.directory = Path(directory)

    def path_for(self, session_id: SessionID) -> Path:
        return self.directory / f"session-{session_id}.json"

    async def save(self, state: SessionState) -> None:
        path = self.path_for(state.session_id)
        self.directory.mkdir(parents=True, exist_ok=True)
        # Context values must be JSON serialisable; a TypeError here propagates
        content = json.dumps(state.to_dict(), indent=2)
        temp_path = path.with_suffix(".tmp")
        async with aiofiles.open(temp_path, mode="w", encoding="utf-8") as f:
            await f.write(content)
        os.replace(temp_path, path)
        logger.debug(f"Session state saved to {path}")

    async def load(self, session_id: SessionID) -> Optional[SessionState]:
        path = self.path_for(session_id)
        if not path.is_file():
            return None
        async with aiofiles.open(path, mode="r", encoding="utf-8") as f:
            raw = json.loads(await f.read())
        logger.debug(f"Session state read from {path}")
        return SessionState.from_dict(raw)
