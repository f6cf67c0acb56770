"""Interface for lazily loaded capability modules."""

import abc
from typing import Any, Dict, List


class Module(abc.ABC):
    """A named capability unit managed by the ModuleLoader."""

    name: str

    @abc.abstractmethod
    async def initialize(self) -> None:
        """Called once after construction, after all dependencies are loaded."""
        pass

    @abc.abstractmethod
    async def dispose(self) -> None:
        """Releases resources. Called on unload."""
        pass

    def list_operations(self) -> List[str]:
        return []

    def has_operation(self, operation_name: str) -> bool:
        return operation_name in self.list_operations()

    async def execute(self, operation_name: str, params: Dict[str, Any]) -> Any:
        raise NotImplementedError(f"Module {self.name} does not expose operation {operation_name}")

    def get_status(self) -> Dict[str, Any]:
        return {"name": self.name}
