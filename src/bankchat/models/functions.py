"""Pydantic models for the function catalogue endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class PropertyResponse(BaseModel):
    type: str
    description: str = ""
    enum: list[str] | None = None


class ParametersResponse(BaseModel):
    type: str = "object"
    properties: dict[str, PropertyResponse] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)


class FunctionResponse(BaseModel):
    """A function the model may call, as sent in tool declarations."""

    name: str
    description: str
    parameters: ParametersResponse


class FunctionListResponse(BaseModel):
    functions: list[FunctionResponse]


class InvokeFunctionRequest(BaseModel):
    """Request body for invoking a function directly."""

    arguments: dict[str, Any] = Field(
        default_factory=dict, description="Arguments as a JSON object"
    )


class InvokeFunctionResponse(BaseModel):
    name: str
    result: str = Field(description="Result text exactly as the model would see it")
