"""Conversion of function argument models into parameter schemas.

This module provides the ToolSchemaService which inspects a pydantic model
describing a function's arguments and produces the ParameterSchema that is
advertised to the model.
"""

import logging
import types
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, Union, get_args, get_origin

from pydantic import BaseModel
from pydantic.fields import FieldInfo

from bankchat.tools.types import FunctionDescriptor, ParameterSchema, PropertySchema

logger = logging.getLogger(__name__)

_NUMBER_TYPES = (int, float, Decimal)
_ARRAY_TYPES = (list, tuple, set, frozenset)


def _unwrap_optional(annotation: Any) -> Any:
    """Strip ``None`` from ``X | None`` / ``Optional[X]`` annotations.

    Unions of several concrete types are returned unchanged.
    """
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def json_type_for(annotation: Any) -> str:
    """Map a Python annotation to a JSON schema type name.

    Args:
        annotation: The field annotation

    Returns:
        One of "string", "number", "boolean", "array", "object"
    """
    annotation = _unwrap_optional(annotation)
    origin = get_origin(annotation)

    if origin is Literal:
        values = get_args(annotation)
        if values and all(isinstance(v, str) for v in values):
            return "string"
        if values and all(isinstance(v, bool) for v in values):
            return "boolean"
        if values and all(isinstance(v, _NUMBER_TYPES) for v in values):
            return "number"
        return "object"

    if origin is not None:
        return "array" if origin in _ARRAY_TYPES else "object"

    if not isinstance(annotation, type):
        return "object"

    # bool is a subclass of int, so it must be checked first
    if issubclass(annotation, bool):
        return "boolean"
    if issubclass(annotation, Enum):
        return "string"
    if issubclass(annotation, str):
        return "string"
    if issubclass(annotation, _NUMBER_TYPES):
        return "number"
    if issubclass(annotation, _ARRAY_TYPES):
        return "array"
    return "object"


def _enum_values(field: FieldInfo) -> tuple[str, ...] | None:
    """Collect the allowed string values of a field, if it declares any."""
    extra = field.json_schema_extra
    if isinstance(extra, dict) and extra.get("enum"):
        return tuple(str(v) for v in extra["enum"])  # type: ignore[union-attr]

    annotation = _unwrap_optional(field.annotation)
    if get_origin(annotation) is Literal:
        values = get_args(annotation)
        if values and all(isinstance(v, str) for v in values):
            return tuple(values)
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return tuple(str(member.value) for member in annotation)
    return None


class ToolSchemaService:
    """Derives parameter schemas and descriptors from argument models."""

    def derive(self, args_model: type[BaseModel] | None) -> ParameterSchema:
        """Build the parameter schema for an argument model.

        The externally visible property name is the field alias when one is
        set, otherwise the field name. A missing model or a model without
        fields yields an empty schema.

        Args:
            args_model: Pydantic model class describing the arguments

        Returns:
            ParameterSchema with one property per field
        """
        if args_model is None:
            return ParameterSchema()

        properties: dict[str, PropertySchema] = {}
        required: list[str] = []

        for field_name, field in args_model.model_fields.items():
            external_name = field.alias or field_name
            properties[external_name] = PropertySchema(
                type=json_type_for(field.annotation),
                description=field.description or "",
                enum=_enum_values(field),
            )
            if field.is_required():
                required.append(external_name)

        logger.debug(
            f"Derived schema for {args_model.__name__}: "
            f"{len(properties)} properties, {len(required)} required"
        )
        return ParameterSchema(properties=properties, required=tuple(required))

    def describe(
        self, name: str, description: str, args_model: type[BaseModel] | None
    ) -> FunctionDescriptor:
        """Build the full descriptor for a function."""
        return FunctionDescriptor(
            name=name,
            description=description,
            parameters=self.derive(args_model),
        )
