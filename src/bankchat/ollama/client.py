"""Async Ollama client wrapper.

This module provides an async wrapper around ollama.AsyncClient for the
chat calls the conversation engine needs: a non-streaming call that may
return tool-call requests, and a tool-free streaming call yielding text
chunks. Every failure is raised as ModelTransportError.
"""

import asyncio
import logging
from typing import Any, AsyncIterator

import httpx
import ollama

from bankchat.ollama.types import ModelReply, ModelTransportError

logger = logging.getLogger(__name__)


def as_transport_error(error: BaseException) -> ModelTransportError:
    """Classify a failure raised while talking to Ollama.

    Timeouts, connection failures, HTTP 429 and 5xx are marked retryable;
    other HTTP statuses and unexpected errors are not.
    """
    if isinstance(error, ModelTransportError):
        return error
    if isinstance(error, ollama.ResponseError):
        status = error.status_code
        retryable = status is not None and (status == 429 or status >= 500)
        return ModelTransportError(
            f"Ollama API error {status}: {error.error}",
            status_code=status,
            retryable=retryable,
        )
    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        return ModelTransportError("Model request timed out", retryable=True)
    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return ModelTransportError(f"Could not reach Ollama: {error}", retryable=True)
    return ModelTransportError(f"Model request failed: {error}")


class OllamaClient:
    """Async client for interacting with the Ollama chat API.

    Attributes:
        host: The Ollama server URL (e.g., "http://localhost:11434")
        request_timeout: Seconds allowed for one non-streaming call
        _client: The underlying ollama.AsyncClient instance
    """

    def __init__(self, host: str, request_timeout: float | None = None) -> None:
        """Initialize the Ollama client.

        Args:
            host: The Ollama server URL
            request_timeout: Per-request timeout in seconds (None waits forever)
        """
        self.host = host
        self.request_timeout = request_timeout
        self._client = ollama.AsyncClient(host=host, timeout=request_timeout)
        logger.info(f"OllamaClient initialized with host: {host}")

    async def check_connection(self) -> bool:
        """Check if the Ollama server is reachable.

        Returns:
            bool: True if connection is successful, False otherwise
        """
        try:
            await self._client.list()
            logger.debug("Ollama connection check: successful")
            return True
        except Exception as e:
            logger.warning(f"Ollama connection check failed: {e}")
            return False

    async def chat(
        self,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        options: dict[str, Any] | None = None,
    ) -> ModelReply:
        """Send a non-streaming chat request.

        Args:
            model: The model name to use for the chat
            messages: Messages in Ollama format
            tools: Optional tool declarations the model may call
            options: Optional model parameters (temperature, num_predict, ...)

        Returns:
            ModelReply with the reply text and any tool-call requests

        Raises:
            ModelTransportError: If the request fails or times out
        """
        logger.debug(
            f"Chat request to {model}: {len(messages)} messages, "
            f"{len(tools or [])} tools"
        )
        try:
            response = await asyncio.wait_for(
                self._client.chat(
                    model=model,
                    messages=messages,
                    tools=tools or None,
                    stream=False,
                    options=options,
                ),
                timeout=self.request_timeout,
            )
            reply = ModelReply.from_ollama_response(response)
        except Exception as e:
            error = as_transport_error(e)
            logger.error(f"Chat request failed: {error} (retryable={error.retryable})")
            raise error from e

        logger.debug(
            f"Chat reply: {len(reply.content)} characters, "
            f"{len(reply.tool_calls)} tool calls"
        )
        return reply

    async def chat_stream(
        self,
        model: str,
        messages: list[dict[str, Any]],
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[str]:
        """Stream a tool-free chat response as text chunks.

        The underlying stream is closed when iteration finishes, fails, or
        the caller stops early.

        Args:
            model: The model name to use for the chat
            messages: Messages in Ollama format
            options: Optional model parameters

        Yields:
            str: Non-empty content chunks as they arrive

        Raises:
            ModelTransportError: If the request or the stream fails

        Example:
            >>> async for text in client.chat_stream(
            ...     model="llama3.1:8b",
            ...     messages=[{"role": "user", "content": "Hello"}]
            ... ):
            ...     print(text, end="")
        """
        logger.debug(f"Starting chat stream with model: {model}")
        try:
            stream = await self._client.chat(
                model=model,
                messages=messages,
                stream=True,
                options=options,
            )
        except Exception as e:
            error = as_transport_error(e)
            logger.error(f"Chat stream failed to start: {error}")
            raise error from e

        try:
            async for chunk in stream:
                message = (
                    chunk.get("message", {})
                    if isinstance(chunk, dict)
                    else getattr(chunk, "message", None)
                )
                if isinstance(message, dict):
                    content = message.get("content") or ""
                else:
                    content = getattr(message, "content", None) or ""
                if content:
                    yield content
            logger.debug("Chat stream completed")
        except Exception as e:
            error = as_transport_error(e)
            logger.error(f"Chat stream failed: {error}")
            raise error from e
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def close(self) -> None:
        """Close the client and clean up resources.

        ollama.AsyncClient uses httpx internally which handles cleanup;
        this is kept so the lifespan can release the client symmetrically.
        """
        logger.debug("OllamaClient closed")
