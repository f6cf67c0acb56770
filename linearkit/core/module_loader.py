"""Module Loader: lazy, dependency-aware construction of capability modules.

Factories are registered up front under a name together with the names
they depend on. Nothing is built until `load_module` asks for it; then the
dependencies are loaded depth-first in declaration order, the module is
constructed and initialized, and the instance is memoized.
"""

import asyncio
import enum
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Pattern, Set, Tuple, Union

from linearkit.domain.errors import ConfigError
from linearkit.domain.interfaces.module import Module
from linearkit.domain.models.common import LoaderStatus, ModuleName, ValidationReport

logger = logging.getLogger(__name__)

ModuleFactory = Callable[[Any], Module]


class ModuleState(str, enum.Enum):
    REGISTERED = "registered"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"
    DISPOSED = "disposed"


@dataclass(frozen=True)
class ModuleDescriptor:
    name: ModuleName
    factory: ModuleFactory
    dependencies: Tuple[ModuleName, ...] = ()


class ModuleLoader:
    """Registry of module factories plus the cache of loaded instances."""

    def __init__(self, context: Any = None):
        """Initializes the loader.

        Args:
            context: Passed to every factory; typically a ModuleContext with
                the executor, batch executor and session to inject.
        """
        self.context = context
        self._descriptors: Dict[str, ModuleDescriptor] = {}
        self._loaded: Dict[str, Module] = {}
        self._states: Dict[str, ModuleState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        logger.debug("ModuleLoader initialized")

    # --- Registration ---

    def register_module_factory(
        self,
        name: ModuleName,
        factory: ModuleFactory,
        dependencies: Optional[Iterable[ModuleName]] = None,
    ) -> None:
        """Registers a factory. A name can only be registered once."""
        if name in self._descriptors:
            raise ConfigError(f"Module factory already registered: {name}")
        self._descriptors[name] = ModuleDescriptor(name, factory, tuple(dependencies or ()))
        self._states[name] = ModuleState.REGISTERED
        logger.debug(f"Module factory registered: {name} (deps: {list(dependencies or [])})")

    def is_registered(self, name: str) -> bool:
        return name in self._descriptors

    # --- Loading ---

    def _lock_for(self, name: str) -> asyncio.Lock:
        lock = self._locks.get(name)
        if lock is None:
            lock = self._locks[name] = asyncio.Lock()
        return lock

    async def load_module(self, name: str) -> Module:
        """Returns the memoized instance, building it (and its deps) on first use.

        Raises:
            ConfigError: Unknown module, or a dependency chain that loops.
        """
        return await self._load(name, ())

    async def _load(self, name: str, chain: Tuple[str, ...]) -> Module:
        if name in chain:
            cycle = " -> ".join(chain + (name,))
            raise ConfigError(f"Circular dependency detected involving module: {name} ({cycle})")

        module = self._loaded.get(name)
        if module is not None:
            logger.debug(f"Module already loaded: {name}")
            return module

        descriptor = self._descriptors.get(name)
        if descriptor is None:
            raise ConfigError(f"Module factory not found: {name}")

        # Single flight: concurrent loads of the same name wait for the first
        async with self._lock_for(name):
            module = self._loaded.get(name)
            if module is not None:
                return module

            logger.info(f"Loading module: {name}")
            for dependency in descriptor.dependencies:
                await self._load(dependency, chain + (name,))

            self._states[name] = ModuleState.INITIALIZING
            try:
                module = descriptor.factory(self.context)
                await module.initialize()
            except Exception:
                self._states[name] = ModuleState.REGISTERED
                logger.error(f"Failed to initialize module: {name}", exc_info=True)
                raise

            self._loaded[name] = module
            self._states[name] = ModuleState.INITIALIZED
            logger.info(f"Module loaded: {name}")
            return module

    async def load_modules(self, names: Iterable[str]) -> Dict[str, Module]:
        return {name: await self.load_module(name) for name in names}

    def get_module(self, name: str) -> Optional[Module]:
        return self._loaded.get(name)

    def is_module_loaded(self, name: str) -> bool:
        return name in self._loaded

    def get_loaded_modules(self) -> Dict[str, Module]:
        return dict(self._loaded)

    def get_module_state(self, name: str) -> Optional[ModuleState]:
        return self._states.get(name)

    # --- Operation dispatch ---

    async def execute_operation(self, operation_name: str, params: Dict[str, Any]) -> Any:
        """Runs an operation on the first loaded module that exposes it."""
        for module_name, module in self._loaded.items():
            if module.has_operation(operation_name):
                logger.debug(f"Executing operation: {module_name}.{operation_name}")
                return await module.execute(operation_name, params)
        raise ConfigError(f"Operation not found in any loaded module: {operation_name}")

    def find_operations(self, pattern: Union[str, Pattern[str]]) -> List[Dict[str, Any]]:
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
        results = []
        for module_name, module in self._loaded.items():
            matching = [op for op in module.list_operations() if compiled.search(op)]
            if matching:
                results.append({"module": module_name, "operations": matching})
        return results

    # --- Unloading ---

    def _loaded_dependents(self, name: str) -> List[str]:
        return [
            other for other in self._loaded
            if other != name and name in self._descriptors[other].dependencies
        ]

    async def unload_module(self, name: str) -> None:
        """Disposes and forgets a loaded module.

        Raises:
            ConfigError: Another loaded module still depends on it.
        """
        module = self._loaded.get(name)
        if module is None:
            logger.warning(f"Module not loaded: {name}")
            return

        dependents = self._loaded_dependents(name)
        if dependents:
            raise ConfigError(
                f'Cannot unload module "{name}" because it is a dependency of: {", ".join(dependents)}'
            )

        await module.dispose()
        del self._loaded[name]
        self._states[name] = ModuleState.DISPOSED
        logger.info(f"Module unloaded: {name}")

    async def unload_all(self) -> None:
        """Disposes every loaded module in reverse registration order."""
        for name in reversed(list(self._descriptors)):
            module = self._loaded.pop(name, None)
            if module is None:
                continue
            await module.dispose()
            self._states[name] = ModuleState.DISPOSED
        logger.info("All modules unloaded")

    # --- Introspection ---

    def get_dependency_graph(self) -> Dict[str, List[str]]:
        return {name: list(d.dependencies) for name, d in self._descriptors.items()}

    def get_status(self) -> LoaderStatus:
        return LoaderStatus(
            loaded_modules=list(self._loaded),
            registered_modules=list(self._descriptors),
            module_statuses=[m.get_status() for m in self._loaded.values()],
        )

    def validate_dependencies(self) -> ValidationReport:
        """Checks the registered graph for cycles and unknown dependencies.

        Meant to run once at startup, before any lazy load.
        """
        errors: List[str] = []

        for name, descriptor in self._descriptors.items():
            for dependency in descriptor.dependencies:
                if dependency not in self._descriptors:
                    errors.append(f"Module {name} depends on unregistered module: {dependency}")

        def has_cycle(module: str, visited: Set[str], stack: Set[str]) -> bool:
            visited.add(module)
            stack.add(module)
            descriptor = self._descriptors.get(module)
            for dependency in descriptor.dependencies if descriptor else ():
                if dependency not in visited:
                    if has_cycle(dependency, visited, stack):
                        return True
                elif dependency in stack:
                    return True
            stack.discard(module)
            return False

        for name in self._descriptors:
            if has_cycle(name, set(), set()):
                errors.append(f"Circular dependency detected involving module: {name}")

        if errors:
            for error in errors:
                logger.error(error)
        return ValidationReport(valid=not errors, errors=errors)
