"""Function catalogue endpoints.

Lists the functions offered to the model and lets a client invoke one
directly through the same dispatcher the conversation engine uses.
"""

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from bankchat.dependencies import get_function_registry, get_tool_executor
from bankchat.models.functions import (
    FunctionListResponse,
    FunctionResponse,
    InvokeFunctionRequest,
    InvokeFunctionResponse,
)
from bankchat.tools import FunctionRegistry, ToolExecutionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/functions", tags=["functions"])


@router.get("", response_model=FunctionListResponse, summary="List functions")
async def list_functions(
    registry: Annotated[FunctionRegistry, Depends(get_function_registry)],
) -> FunctionListResponse:
    """List every registered function with its parameter schema."""
    return FunctionListResponse(
        functions=[
            FunctionResponse.model_validate(descriptor.to_dict())
            for descriptor in registry.descriptors()
        ]
    )


@router.post(
    "/{name}/invoke",
    response_model=InvokeFunctionResponse,
    summary="Invoke a function",
)
async def invoke_function(
    name: str,
    request: InvokeFunctionRequest,
    executor: Annotated[ToolExecutionService, Depends(get_tool_executor)],
) -> InvokeFunctionResponse:
    """Run a function with JSON arguments and return its result text.

    Argument and domain failures are part of the result text, exactly as the
    model would receive them; only an unknown name is an HTTP error.

    Raises:
        HTTPException: 404 if no function has that name
    """
    if name not in executor.registry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": {
                    "code": "function_not_found",
                    "message": f"Function {name} not found",
                    "details": {"name": name},
                }
            },
        )

    logger.info(f"Direct invocation of function {name}")
    result = executor.execute(name, json.dumps(request.arguments))
    return InvokeFunctionResponse(name=name, result=result)
