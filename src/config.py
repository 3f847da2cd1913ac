"""
Centralized Configuration System
Environment-aware settings for the intelligence pipeline and its services.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal, Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )
    """
    Production-grade configuration management.
    Loads from environment variables with sensible defaults.
    """

    # ============================================
    # OPENAI CONFIGURATION
    # ============================================
    openai_api_key: Optional[str] = None

    # ============================================
    # MODEL SELECTION (by role)
    # ============================================
    chat_model: str = "openai:gpt-4o-mini"
    research_model: str = "openai:gpt-4o-mini"
    chat_provider: Literal["agent", "echo"] = "echo"
    research_provider: Literal["agent", "domain"] = "domain"

    # ============================================
    # PERSISTENCE
    # ============================================
    context_store_backend: Literal["memory", "mongodb"] = "memory"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "lead_intelligence"
    mongodb_max_pool_size: int = 50
    mongodb_min_pool_size: int = 5
    mongodb_server_selection_timeout_ms: int = 5000

    # ============================================
    # SESSIONS & ENRICHMENT
    # ============================================
    session_header: str = "X-Intelligence-Session-Id"
    session_echo_header: str = "X-Session-Id"
    enrichment_timeout_seconds: Optional[float] = 30.0

    # ============================================
    # STREAMING
    # ============================================
    echo_token_delay_seconds: float = 0.05
    chat_max_messages: int = 50
    chat_max_content_length: int = 10000

    # ============================================
    # RESILIENCE
    # ============================================
    circuit_breaker_failure_threshold: int = 5
    circuit_breaker_recovery_timeout: float = 60.0
    circuit_breaker_half_open_max_calls: int = 1

    # ============================================
    # LOGGING
    # ============================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    enable_structured_logging: bool = False  # Set to True for production JSON logs

    # ============================================
    # ENVIRONMENT
    # ============================================
    environment: Literal["development", "test", "staging", "production"] = "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Singleton pattern for settings.
    Uses LRU cache to ensure only one Settings instance exists.
    """
    return Settings()


# Convenience accessor for common use
settings = get_settings()
