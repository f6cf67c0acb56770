"""Toolkit: the composition root for long-running callers.

Builds the transport, cache, session, executor, batch engine and module
loader from one ToolkitConfig and wires them together explicitly. Each
Toolkit owns its components; nothing is shared through module globals.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from linearkit.core.batch_executor import BatchExecutor
from linearkit.core.module_loader import ModuleLoader
from linearkit.core.modules.base_module import ModuleContext
from linearkit.core.modules.batch_module import BatchModule
from linearkit.core.modules.comments_module import CommentsModule
from linearkit.core.modules.issues_module import IssuesModule
from linearkit.core.session_manager import SessionManager
from linearkit.domain.errors import ConfigError
from linearkit.domain.interfaces.module import Module
from linearkit.domain.interfaces.session_store import SessionStore
from linearkit.domain.interfaces.transport import Transport
from linearkit.domain.models.common import ModuleName
from linearkit.infrastructure.cache.response_cache import ResponseCache
from linearkit.infrastructure.config.settings import ToolkitConfig
from linearkit.infrastructure.resilience.query_executor import ResilientQueryExecutor, Sleeper
from linearkit.infrastructure.transport.http_transport import HttpTransport

logger = logging.getLogger(__name__)

# name -> (factory, dependencies)
DEFAULT_MODULES = {
    "issues": (IssuesModule, []),
    "comments": (CommentsModule, ["issues"]),
    "batch": (BatchModule, ["issues"]),
}


def register_default_modules(loader: ModuleLoader) -> None:
    for name, (factory, dependencies) in DEFAULT_MODULES.items():
        loader.register_module_factory(ModuleName(name), factory, [ModuleName(dep) for dep in dependencies])


class Toolkit:
    """Owns one fully wired set of components."""

    def __init__(
        self,
        config: ToolkitConfig,
        transport: Optional[Transport] = None,
        session_store: Optional[SessionStore] = None,
        session_id: Optional[str] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.config = config
        self.transport = transport or HttpTransport(
            api_key=config.executor.api_key,
            endpoint=config.executor.endpoint,
            timeout=config.executor.timeout,
        )
        self.cache = ResponseCache(ttl=config.cache.ttl, max_items=config.cache.max_size) if config.cache.enabled else None
        self.session = SessionManager(config.session, session_id=session_id, store=session_store)
        self.executor = ResilientQueryExecutor(
            transport=self.transport,
            config=config.executor,
            cache=self.cache,
            recorder=self.session,
            sleep=sleep,
        )
        self.batch = BatchExecutor(self.executor, batch_size=config.batch_size)
        self.loader = ModuleLoader(ModuleContext(
            executor=self.executor, session=self.session, batch_executor=self.batch,
        ))
        register_default_modules(self.loader)

        report = self.loader.validate_dependencies()
        if not report["valid"]:
            raise ConfigError("Invalid module graph:\n" + "\n".join(report["errors"]), details=dict(report))
        logger.info(f"Toolkit created (session={self.session.session_id})")

    async def get_module(self, name: str) -> Module:
        return await self.loader.load_module(name)

    async def execute_operation(self, module_name: str, operation_name: str, **params: Any) -> Any:
        """Loads `module_name` if needed and runs one of its operations."""
        module = await self.loader.load_module(module_name)
        return await module.execute(operation_name, params)

    def get_status(self) -> Dict[str, Any]:
        return {
            "session": self.session.get_summary(),
            "operations": self.session.get_operation_stats(),
            "modules": self.loader.get_status(),
            "cache": self.cache.get_stats() if self.cache else None,
        }

    async def close(self) -> None:
        """Unloads modules, persists the session (if enabled) and closes the transport."""
        try:
            await self.loader.unload_all()
            await self.session.save_state()
        finally:
            await self.transport.close()

    async def __aenter__(self) -> "Toolkit":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
