"""Base class for capability modules.

Subclasses declare their operations in `setup_operations`; the base class
handles initialization state, dispatch and status reporting.
"""

import abc
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from linearkit.core.batch_executor import BatchExecutor
from linearkit.core.session_manager import SessionManager
from linearkit.domain.errors import ConfigError
from linearkit.domain.interfaces.module import Module
from linearkit.infrastructure.resilience.query_executor import ResilientQueryExecutor

OperationHandler = Callable[..., Awaitable[Any]]


@dataclass
class ModuleContext:
    """Dependencies handed to every module factory."""
    executor: ResilientQueryExecutor
    session: SessionManager
    batch_executor: Optional[BatchExecutor] = None


@dataclass
class Operation:
    name: str
    description: str
    handler: OperationHandler
    params: List[str] = field(default_factory=list)


class BaseModule(Module, abc.ABC):
    """Common behaviour for all bundled modules."""

    def __init__(self, name: str, context: ModuleContext):
        self.name = name
        self.context = context
        self.executor = context.executor
        self.session = context.session
        self.operations: Dict[str, Operation] = {}
        self.initialized = False
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")
        self.logger.debug(f"Module created: {name}")

    def register_operation(
        self, name: str, description: str, handler: OperationHandler, params: Optional[List[str]] = None
    ) -> None:
        self.operations[name] = Operation(name, description, handler, list(params or []))
        self.logger.debug(f"Operation registered: {name}")

    @abc.abstractmethod
    def setup_operations(self) -> None:
        """Registers this module's operations."""

    async def initialize(self) -> None:
        if self.initialized:
            self.logger.debug(f"Module already initialized: {self.name}")
            return
        self.setup_operations()
        self.initialized = True
        self.logger.info(f"Module initialized: {self.name}")

    async def dispose(self) -> None:
        self.operations.clear()
        self.initialized = False
        self.logger.info(f"Module disposed: {self.name}")

    def list_operations(self) -> List[str]:
        return list(self.operations)

    async def execute(self, operation_name: str, params: Dict[str, Any]) -> Any:
        operation = self.operations.get(operation_name)
        if operation is None:
            raise ConfigError(f"Operation not found: {self.name}.{operation_name}")
        try:
            return await operation.handler(**params)
        except Exception as e:
            self.logger.error(f"Operation failed: {self.name}.{operation_name}: {e}")
            raise

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "initialized": self.initialized,
            "operation_count": len(self.operations),
            "operations": self.list_operations(),
        }
