"""Configuration module for bankchat using pydantic-settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BankChatSettings(BaseSettings):
    """Main configuration settings for bankchat.

    All settings can be overridden via environment variables with the BANKCHAT_ prefix.
    For example, BANKCHAT_OLLAMA_HOST will override the ollama_host setting.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Ollama
    ollama_host: str = "http://localhost:11434"
    model: str = "llama3.1:8b"
    temperature: float = 0.7
    max_tokens: int = 4000
    request_timeout: float = 60.0

    # Data directories (relative to data_dir)
    data_dir: str = "."
    sessions_dir: str = "chat_sessions"
    functions_dir: str = "functions"

    # Transcript persistence
    max_sessions: int = 50
    auto_save_history: bool = True

    # Conversation
    system_prompt: str | None = None

    # Function discovery: what to do when two functions share a name
    duplicate_function_policy: Literal["replace", "error"] = "replace"

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="BANKCHAT_")

    # --- Resolved paths (computed from data_dir + relative dirs) ---

    @property
    def resolved_sessions_dir(self) -> Path:
        """Get the full path to the sessions directory."""
        return Path(self.data_dir) / self.sessions_dir

    @property
    def resolved_functions_dir(self) -> Path:
        """Get the full path to the plugin functions directory."""
        return Path(self.data_dir) / self.functions_dir

    @property
    def model_options(self) -> dict[str, float | int]:
        """Generation options passed with every chat request."""
        return {"temperature": self.temperature, "num_predict": self.max_tokens}
