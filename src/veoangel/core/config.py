"""
Configuration management.

Loads settings from environment variables and an env file.
Prefix: VEOANGEL_

VEOANGEL_ENV_FILE_PATH picks the env file; credentials saved at runtime go
to the same file so they are read back on the next start.
"""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="VEOANGEL_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # LLM Providers
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")
    ollama_host: str = Field(
        default="http://127.0.0.1:11434",
        description="Ollama daemon endpoint",
    )

    # Model defaults
    anthropic_model: str = Field(
        default="claude-3-5-sonnet-20241022", description="Default Anthropic model"
    )
    openrouter_model: str = Field(
        default="anthropic/claude-3.5-sonnet", description="Default OpenRouter model"
    )
    ollama_model: str = Field(default="llama3.2:1b", description="Default Ollama model")
    ollama_preferred_families: list[str] = Field(
        default_factory=lambda: ["llama"],
        description="Name fragments preferred when picking an Ollama default model",
    )

    # Routing
    preferred_provider: str = Field(default="anthropic", description="Preferred provider")
    enable_fallback: bool = Field(default=True, description="Retry on another provider")

    # Catalog cache lifetimes (seconds)
    openrouter_models_ttl: float = Field(default=3600.0, description="OpenRouter catalog TTL")
    ollama_models_ttl: float = Field(default=300.0, description="Ollama catalog TTL")

    # Transport
    request_timeout: float = Field(default=120.0, description="Cloud request timeout")
    ollama_timeout: float = Field(default=300.0, description="Local daemon timeout")

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Data storage directory")
    system_prompt_path: Path | None = Field(
        default=None, description="Markdown/text file with base system instructions"
    )
    examples_path: Path | None = Field(
        default=None, description="YAML file with named example prompt sets"
    )
    env_file_path: Path = Field(
        default=Path(".env"), description="File credentials are persisted to"
    )

    @property
    def log_path(self) -> Path:
        return self.data_dir / "veoangel.log"


ENV_FILE_VAR = "VEOANGEL_ENV_FILE_PATH"


def get_settings() -> Settings:
    """Get settings instance, reading the env file credentials are saved to."""
    env_file = Path(os.environ.get(ENV_FILE_VAR, ".env"))
    return Settings(_env_file=env_file, env_file_path=env_file)
