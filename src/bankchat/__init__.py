"""bankchat: banking assistant driven by model function calling.

This package exposes a mock banking ledger to a language model served by
Ollama, through a REST API with SSE streaming and an interactive CLI.
"""

from bankchat.app import create_app

__version__ = "0.1.0"

__all__ = ["create_app", "__version__"]
