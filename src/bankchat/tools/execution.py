"""Dispatching named function calls.

This module provides the ToolExecutionService which looks up a function in
the registry and invokes it with raw JSON argument text. It always returns a
string: unknown names and faults that escape a function become result text.
"""

import logging

from bankchat.tools.registry import FunctionRegistry
from bankchat.tools.types import FunctionDescriptor

logger = logging.getLogger(__name__)


class ToolExecutionService:
    """Executes function calls requested by the model."""

    def __init__(self, registry: FunctionRegistry) -> None:
        self.registry = registry

    def available_functions(self) -> list[FunctionDescriptor]:
        """Descriptors of all registered functions."""
        return self.registry.descriptors()

    def execute(self, name: str, raw_arguments: str) -> str:
        """Invoke a function by name. Never raises.

        Calls that reach a mutating function may have changed the ledger
        even if the result text reports an error afterwards.

        Args:
            name: Function name as requested by the model
            raw_arguments: JSON argument text, passed through unparsed

        Returns:
            The function's result text, or an error/not-found message
        """
        function = self.registry.get(name)
        if function is None:
            logger.warning(f"Requested unknown function {name}")
            return f"Function {name} not found"

        logger.debug(f"Executing function {name} with arguments: {raw_arguments}")
        try:
            result = function.invoke(raw_arguments)
        except Exception as e:
            logger.error(f"Function {name} raised out of invoke(): {e}", exc_info=True)
            return f"Error executing function {name}: {e}"

        logger.debug(f"Function {name} returned {len(result)} characters")
        return result
