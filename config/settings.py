"""Application settings."""

import os
from typing import Optional
from pydantic import BaseModel


class Settings(BaseModel):
    """Application configuration settings."""

    # Coaching catalog (YAML)
    catalog_path: Optional[str] = None  # Defaults to config/coaching_options.yaml

    # LLM Provider settings
    llm_provider: str = "openrouter"  # "openrouter", "openai" or "anthropic"
    llm_model: Optional[str] = None  # Override default model for the provider
    llm_base_url: Optional[str] = None  # Override OpenAI-compatible endpoint

    # API Keys
    openrouter_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # Generation parameters
    temperature: float = 0.5
    max_tokens: int = 400
    presence_penalty: float = 0.8
    frequency_penalty: float = 0.7

    # Request pipeline
    request_timeout_s: float = 20.0
    max_attempts: int = 3
    backoff_base_s: float = 1.5
    context_window: int = 5
    similarity_threshold: float = 0.7

    # Request cache
    cache_max_size: int = 50
    cache_ttl_s: float = 30.0

    # Conversation buffer
    max_messages: int = 50

    # Speech capture
    silence_threshold_s: float = 8.0
    silence_check_interval_s: float = 1.0
    restart_delay_s: float = 0.3
    error_backoff_step_s: float = 0.3
    error_backoff_cap_s: float = 2.0
    reinit_after_errors: int = 3
    max_reinit_failures: int = 3
    status_display_s: float = 5.0

    # Session
    resume_cooldown_s: float = 0.8

    # Persistence
    db_path: str = "data/coaching_sessions.db"

    # Logging
    verbose: bool = False

    def __init__(self, **data):
        # Auto-load API keys from environment if not provided
        if "openrouter_api_key" not in data or data["openrouter_api_key"] is None:
            data["openrouter_api_key"] = os.environ.get("OPENROUTER_API_KEY")

        if "openai_api_key" not in data or data["openai_api_key"] is None:
            data["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

        if "anthropic_api_key" not in data or data["anthropic_api_key"] is None:
            data["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")

        super().__init__(**data)

    def get_llm_api_key(self) -> Optional[str]:
        """Get the API key for the configured LLM provider."""
        if self.llm_provider == "openrouter":
            return self.openrouter_api_key
        elif self.llm_provider == "openai":
            return self.openai_api_key
        elif self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return None
