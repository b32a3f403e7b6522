"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint.

    Attributes:
        status: Health status indicator ("ok" or "error").
        version: The version of bankchat.
        ollama_connected: Whether the Ollama server answered.
        ollama_host: The Ollama host URL.
        function_count: Number of functions the model can call.
    """

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of bankchat")
    ollama_connected: bool | None = Field(
        default=None, description="Whether Ollama is connected"
    )
    ollama_host: str | None = Field(default=None, description="Ollama host URL")
    function_count: int = Field(
        default=0, description="Number of registered functions"
    )
