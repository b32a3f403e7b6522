"""Data types for function descriptors and function results.

This module defines the schema structures advertised to the model
(FunctionDescriptor, ParameterSchema, PropertySchema), the explicit
success/failure results returned by function implementations, and the
context object handed to every function at construction time.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bankchat.banking import BankingStore

JSON_TYPES = ("string", "number", "boolean", "array", "object")


@dataclass(frozen=True)
class PropertySchema:
    """Schema of a single function parameter."""

    type: str
    description: str = ""
    enum: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            data["enum"] = list(self.enum)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PropertySchema":
        enum = data.get("enum")
        return cls(
            type=data.get("type", "object"),
            description=data.get("description", ""),
            enum=tuple(enum) if enum else None,
        )


@dataclass(frozen=True)
class ParameterSchema:
    """Object schema describing all parameters of a function.

    Raises:
        ValueError: If a required name is not one of the properties
    """

    properties: dict[str, PropertySchema] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    type: str = "object"

    def __post_init__(self) -> None:
        missing = [name for name in self.required if name not in self.properties]
        if missing:
            raise ValueError(
                f"Required parameters not declared as properties: {', '.join(missing)}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "properties": {
                name: prop.to_dict() for name, prop in self.properties.items()
            },
            "required": list(self.required),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParameterSchema":
        return cls(
            type=data.get("type", "object"),
            properties={
                name: PropertySchema.from_dict(prop)
                for name, prop in data.get("properties", {}).items()
            },
            required=tuple(data.get("required", [])),
        )


@dataclass(frozen=True)
class FunctionDescriptor:
    """Name, purpose and parameters of a callable function."""

    name: str
    description: str
    parameters: ParameterSchema = field(default_factory=ParameterSchema)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters.to_dict(),
        }

    def to_tool(self) -> dict[str, Any]:
        """Wrap the descriptor as a tool declaration for the chat API."""
        return {"type": "function", "function": self.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FunctionDescriptor":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            parameters=ParameterSchema.from_dict(data.get("parameters", {})),
        )


class ErrorKind(str, Enum):
    """Category of a failed function call."""

    ARGUMENT = "argument"
    NOT_FOUND = "not_found"
    DOMAIN = "domain"
    INTERNAL = "internal"


@dataclass
class ToolSuccess:
    """Successful function outcome; ``data`` is rendered as JSON."""

    data: dict[str, Any]


@dataclass
class ToolFailure:
    """Failed function outcome; ``message`` is shown to the model verbatim."""

    message: str
    kind: ErrorKind = ErrorKind.DOMAIN


ToolResult = ToolSuccess | ToolFailure


@dataclass
class FunctionContext:
    """Dependencies shared by every function instance.

    Built once by the composition root and passed to each function factory.
    """

    store: BankingStore
