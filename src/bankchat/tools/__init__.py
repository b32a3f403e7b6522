"""Tool discovery, schema conversion, and execution layer.

This package turns typed function implementations into descriptors the model
can consume, builds the function registry at startup, and executes function
calls requested during chat.
"""

from pathlib import Path

from bankchat.tools.banking import BUILTIN_FUNCTIONS, builtin_registrations
from bankchat.tools.base import BankingFunction, FunctionArgs
from bankchat.tools.execution import ToolExecutionService
from bankchat.tools.registry import (
    DuplicateFunctionError,
    DuplicatePolicy,
    FunctionRegistration,
    FunctionRegistry,
    ToolDiscoveryService,
)
from bankchat.tools.schema import ToolSchemaService
from bankchat.tools.types import (
    ErrorKind,
    FunctionContext,
    FunctionDescriptor,
    ParameterSchema,
    PropertySchema,
    ToolFailure,
    ToolResult,
    ToolSuccess,
)


def discover_functions(
    context: FunctionContext,
    functions_dir: Path | None = None,
    duplicate_policy: DuplicatePolicy = "replace",
) -> FunctionRegistry:
    """Build the registry from the built-in table plus optional plugins."""
    discovery = ToolDiscoveryService(
        context,
        registrations=builtin_registrations(),
        functions_dir=functions_dir,
        duplicate_policy=duplicate_policy,
    )
    return discovery.build_registry()


__all__ = [
    "BUILTIN_FUNCTIONS",
    "BankingFunction",
    "DuplicateFunctionError",
    "ErrorKind",
    "FunctionArgs",
    "FunctionContext",
    "FunctionDescriptor",
    "FunctionRegistration",
    "FunctionRegistry",
    "ParameterSchema",
    "PropertySchema",
    "ToolDiscoveryService",
    "ToolExecutionService",
    "ToolFailure",
    "ToolResult",
    "ToolSchemaService",
    "ToolSuccess",
    "builtin_registrations",
    "discover_functions",
]
