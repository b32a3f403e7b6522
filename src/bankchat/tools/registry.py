"""Function registration, discovery and lookup.

This module provides:
- FunctionRegistration: one entry of an explicit registration table
- FunctionRegistry: the name -> function mapping built once at startup
- ToolDiscoveryService: enumerates built-in registrations and plugin files,
  instantiates the enabled ones and fills the registry

Plugin files are ``*.py`` modules in the functions directory that define a
``register_functions()`` callable returning FunctionRegistration objects.
A plugin or candidate that fails is logged and skipped; discovery as a whole
never fails because of one bad candidate.
"""

import importlib.util
import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from bankchat.tools.base import BankingFunction
from bankchat.tools.types import FunctionContext, FunctionDescriptor

logger = logging.getLogger(__name__)

DuplicatePolicy = Literal["replace", "error"]

PLUGIN_ENTRY_POINT = "register_functions"


class DuplicateFunctionError(ValueError):
    """Raised when two functions register the same name under the "error" policy."""


@dataclass
class FunctionRegistration:
    """A named factory producing a function instance from the shared context."""

    name: str
    description: str
    factory: Callable[[FunctionContext], BankingFunction]
    enabled: bool = True

    @classmethod
    def for_class(cls, function_cls: type[BankingFunction]) -> "FunctionRegistration":
        """Build a registration from a BankingFunction subclass."""
        return cls(
            name=function_cls.name,
            description=function_cls.description,
            factory=function_cls,
            enabled=function_cls.enabled,
        )


class FunctionRegistry:
    """Lookup table of callable functions and their descriptors.

    Read-only once discovery has finished.
    """

    def __init__(self, duplicate_policy: DuplicatePolicy = "replace") -> None:
        self.duplicate_policy = duplicate_policy
        self._functions: dict[str, BankingFunction] = {}
        self._descriptors: dict[str, FunctionDescriptor] = {}

    def register(
        self, function: BankingFunction, descriptor: FunctionDescriptor | None = None
    ) -> None:
        """Add a function under its descriptor name.

        Raises:
            DuplicateFunctionError: If the name is taken and the policy is "error"
        """
        descriptor = descriptor or function.describe()
        name = descriptor.name

        if name in self._functions:
            if self.duplicate_policy == "error":
                raise DuplicateFunctionError(f"Duplicate function name: {name}")
            logger.warning(f"Function {name} registered twice; keeping the later one")

        self._functions[name] = function
        self._descriptors[name] = descriptor

    def get(self, name: str) -> BankingFunction | None:
        return self._functions.get(name)

    def descriptors(self) -> list[FunctionDescriptor]:
        return list(self._descriptors.values())

    def tools(self) -> list[dict[str, Any]]:
        """Tool declarations for every registered function."""
        return [descriptor.to_tool() for descriptor in self._descriptors.values()]

    def names(self) -> list[str]:
        return list(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)

    def __iter__(self) -> Iterator[BankingFunction]:
        return iter(list(self._functions.values()))


def load_plugin_registrations(functions_dir: Path) -> list[FunctionRegistration]:
    """Import plugin files and collect their registrations.

    Files that fail to import, lack the entry point, or whose entry point
    raises are logged and skipped.

    Args:
        functions_dir: Directory containing plugin ``*.py`` files

    Returns:
        Registrations from all plugins that loaded, in file-name order
    """
    if not functions_dir.is_dir():
        logger.debug(f"No functions directory at {functions_dir}")
        return []

    registrations: list[FunctionRegistration] = []

    for file_path in sorted(functions_dir.glob("*.py")):
        if file_path.name.startswith("_"):
            continue

        module_name = f"bankchat_plugin_{file_path.stem}"
        try:
            spec = importlib.util.spec_from_file_location(module_name, file_path)
            if spec is None or spec.loader is None:
                raise ImportError(f"cannot load {file_path}")
            module = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(module)

            entry_point = getattr(module, PLUGIN_ENTRY_POINT, None)
            if entry_point is None:
                logger.warning(
                    f"Plugin {file_path.name} has no {PLUGIN_ENTRY_POINT}(); skipped"
                )
                continue

            loaded = list(entry_point())
            registrations.extend(loaded)
            logger.info(f"Loaded {len(loaded)} function(s) from plugin {file_path.name}")

        except Exception as e:
            logger.warning(f"Failed to load plugin {file_path.name}: {e}")
            continue

    return registrations


class ToolDiscoveryService:
    """Builds the function registry from built-in and plugin registrations."""

    def __init__(
        self,
        context: FunctionContext,
        registrations: Iterable[FunctionRegistration] = (),
        functions_dir: Path | None = None,
        duplicate_policy: DuplicatePolicy = "replace",
    ) -> None:
        """Initialize the discovery service.

        Args:
            context: Shared dependencies handed to every function factory
            registrations: Statically known registrations (built-ins)
            functions_dir: Optional directory of plugin files
            duplicate_policy: "replace" (last one wins) or "error"
        """
        self.context = context
        self.registrations = list(registrations)
        self.functions_dir = functions_dir
        self.duplicate_policy = duplicate_policy

    def candidates(self) -> list[FunctionRegistration]:
        """All registrations, built-ins first, then plugins."""
        candidates = list(self.registrations)
        if self.functions_dir is not None:
            candidates.extend(load_plugin_registrations(self.functions_dir))
        return candidates

    def discover(self) -> list[BankingFunction]:
        """Instantiate every enabled candidate whose descriptor can be derived.

        Returns:
            Function instances in discovery order
        """
        functions: list[BankingFunction] = []

        for registration in self.candidates():
            if not registration.enabled:
                logger.debug(f"Skipping disabled function {registration.name}")
                continue
            try:
                function = registration.factory(self.context)
                function.describe()
            except Exception as e:
                logger.warning(f"Failed to load function {registration.name}: {e}")
                continue
            functions.append(function)

        return functions

    def build_registry(self) -> FunctionRegistry:
        """Discover functions and register them.

        Raises:
            DuplicateFunctionError: On a name clash under the "error" policy
        """
        registry = FunctionRegistry(duplicate_policy=self.duplicate_policy)
        for function in self.discover():
            registry.register(function)

        logger.info(
            f"Registered {len(registry)} functions: {', '.join(registry.names())}"
        )
        return registry
