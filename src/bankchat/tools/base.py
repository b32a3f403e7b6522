"""Base class for functions the model can call.

A function declares its name, description and argument model as class
attributes and implements ``run()``, returning a ToolSuccess or ToolFailure.
``invoke()`` wraps ``run()`` with argument parsing and turns every outcome,
including unexpected exceptions, into the text handed back to the model.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError

from bankchat.tools.schema import ToolSchemaService
from bankchat.tools.types import (
    ErrorKind,
    FunctionContext,
    FunctionDescriptor,
    ToolFailure,
    ToolResult,
    ToolSuccess,
)

logger = logging.getLogger(__name__)

_schema_service = ToolSchemaService()


class FunctionArgs(BaseModel):
    """Base for argument models. Unknown keys from the model are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def render_result(data: dict[str, Any]) -> str:
    """Render a success payload as indented JSON text."""
    return json.dumps(data, indent=2, default=_json_default)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(loc) for loc in item.get("loc", ())) or "arguments"
        parts.append(f"{location}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


class BankingFunction(ABC):
    """A callable function exposed to the model.

    Attributes:
        name: Unique, stable function name advertised to the model
        description: What the function does and when to use it
        enabled: Disabled functions are skipped during discovery
        error_label: Operation wording used in error results ("making payment")
        Args: Pydantic model describing the arguments (None for no arguments)
    """

    name: ClassVar[str]
    description: ClassVar[str]
    enabled: ClassVar[bool] = True
    error_label: ClassVar[str] = "executing function"
    Args: ClassVar[type[BaseModel] | None] = None

    def __init__(self, context: FunctionContext) -> None:
        self.context = context

    @property
    def store(self):
        return self.context.store

    def describe(self) -> FunctionDescriptor:
        """Derive this function's descriptor from its argument model."""
        return _schema_service.describe(self.name, self.description, self.Args)

    @abstractmethod
    def run(self, args: Any) -> ToolResult:
        """Execute the business logic with validated arguments."""
        raise NotImplementedError

    def parse_arguments(self, raw_arguments: str) -> Any:
        """Parse raw JSON argument text into the argument model.

        Raises:
            ValueError: If the text is not a JSON object
            ValidationError: If the object does not match the argument model
        """
        text = (raw_arguments or "").strip()
        payload = json.loads(text) if text else {}
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValueError("arguments must be a JSON object")
        if self.Args is None:
            return None
        return self.Args.model_validate(payload)

    def invoke(self, raw_arguments: str) -> str:
        """Run the function against raw JSON arguments. Never raises.

        Returns:
            JSON text on success, otherwise a human-readable error message
        """
        label = self.name.replace("_", " ")
        try:
            args = self.parse_arguments(raw_arguments)
        except ValidationError as e:
            logger.info(f"Invalid arguments for {self.name}: {e.error_count()} errors")
            return self._render(
                ToolFailure(
                    f"Invalid arguments for {label} function: "
                    f"{_format_validation_error(e)}",
                    ErrorKind.ARGUMENT,
                )
            )
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            logger.info(f"Unparseable arguments for {self.name}: {e}")
            return self._render(
                ToolFailure(
                    f"Invalid arguments for {label} function: {e}", ErrorKind.ARGUMENT
                )
            )

        try:
            result = self.run(args)
            return self._render(result)
        except Exception as e:
            logger.error(f"Function {self.name} failed: {e}", exc_info=True)
            return self._render(
                ToolFailure(f"Error {self.error_label}: {e}", ErrorKind.INTERNAL)
            )

    def _render(self, result: ToolResult) -> str:
        if isinstance(result, ToolSuccess):
            return render_result(result.data)
        logger.debug(f"Function {self.name} returned {result.kind.value} failure")
        return result.message
