"""Ollama client wrapper and integration layer.

This package provides the async client used to talk to the Ollama chat API,
with and without tool declarations.
"""

from bankchat.ollama.client import OllamaClient, as_transport_error
from bankchat.ollama.types import ModelReply, ModelTransportError

__all__ = ["OllamaClient", "ModelReply", "ModelTransportError", "as_transport_error"]
