"""
Configuration management via environment variables.

This module loads configuration from a .env file using python-dotenv.
All configuration values are accessed through the Settings class.

Store and collaborator timeouts, the write retry budget and the
assistant mention token all live here so that every component receives
them explicitly at construction time instead of reading the environment.
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Load .env file from project root
# This must happen before accessing os.environ
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(env_path)


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    frozen=True makes the dataclass immutable, preventing accidental
    modification of settings at runtime.

    Attributes:
        app_name: Application identifier for logging
        app_env: Environment name (development, staging, production, test)
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for daily log files (empty = project logs/)
        database_url: SQLAlchemy URL used by the SQL document store
        store_backend: 'memory' or 'sql'
        groq_api_key: API key for Groq LLM service (may be empty)
        google_api_key: API key for Google Gemini service (may be empty)
        llm_model: Primary model used for assistant turns
        llm_model_fast: Small model used for intent classification
        llm_model_fallback: Gemini model tried when Groq fails
        llm_temperature: LLM creativity (0.0 = deterministic, 1.0 = creative)
        llm_max_tokens: Maximum response length
        classifier_backend: 'keyword' or 'llm'
        enabled_agents: Comma-separated agents in the dispatch table (empty = all)
        max_write_retries: Optimistic-concurrency attempts per write
        store_timeout_seconds: Deadline for a single store call
        collaborator_timeout_seconds: Deadline for a single LLM/agent call
        assistant_mention: Token that summons the assistant in a session
        enable_audit_logging: Toggle for the request audit middleware
    """
    # Application settings
    app_name: str
    app_env: str
    log_level: str
    log_dir: str

    # Storage settings
    database_url: str
    store_backend: str

    # LLM settings
    groq_api_key: str
    google_api_key: str
    llm_model: str
    llm_model_fast: str
    llm_model_fallback: str
    llm_temperature: float
    llm_max_tokens: int

    # Routing settings
    classifier_backend: str
    enabled_agents: str

    # Consistency settings
    max_write_retries: int
    store_timeout_seconds: float
    collaborator_timeout_seconds: float

    # Session settings
    assistant_mention: str

    # Observability
    enable_audit_logging: bool

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env.lower() == "development"

    def uses_sql_store(self) -> bool:
        """Check whether documents are persisted through SQLAlchemy."""
        return self.store_backend.lower() == "sql"

    def has_llm_credentials(self) -> bool:
        """At least one completion provider is configured."""
        return bool(self.groq_api_key or self.google_api_key)


def _get_env(key: str, default: Optional[str] = None) -> str:
    """
    Get environment variable with optional default.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value

    Raises:
        ValueError: If required variable is not set and no default provided
    """
    value = os.environ.get(key, default)
    if value is None:
        raise ValueError(
            f"Required environment variable '{key}' is not set. "
            f"Please check your .env file."
        )
    return value


def _get_bool(key: str, default: str) -> bool:
    return _get_env(key, default).strip().lower() in ("1", "true", "yes", "on")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are read once at startup; tests that change the environment
    call ``get_settings.cache_clear()`` first.

    Returns:
        Settings instance with all configuration values

    Raises:
        ValueError: If a value cannot be parsed or a backend name is unknown
    """
    database_url = _get_env("DATABASE_URL", "sqlite:///./twinlink.db")

    # SQLAlchemy 2 no longer accepts the legacy postgres:// scheme
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    store_backend = _get_env("STORE_BACKEND", "memory").lower()
    if store_backend not in ("memory", "sql"):
        raise ValueError(f"STORE_BACKEND must be 'memory' or 'sql', got '{store_backend}'")

    classifier_backend = _get_env("CLASSIFIER_BACKEND", "keyword").lower()
    if classifier_backend not in ("keyword", "llm"):
        raise ValueError(
            f"CLASSIFIER_BACKEND must be 'keyword' or 'llm', got '{classifier_backend}'"
        )

    max_write_retries = int(_get_env("MAX_WRITE_RETRIES", "5"))
    if max_write_retries < 1:
        raise ValueError("MAX_WRITE_RETRIES must be at least 1")

    return Settings(
        # Application
        app_name=_get_env("APP_NAME", "TwinLink"),
        app_env=_get_env("APP_ENV", "development"),
        log_level=_get_env("LOG_LEVEL", "INFO"),
        log_dir=_get_env("LOG_DIR", ""),

        # Storage
        database_url=database_url,
        store_backend=store_backend,

        # LLM
        groq_api_key=_get_env("GROQ_API_KEY", ""),
        google_api_key=_get_env("GOOGLE_API_KEY", ""),
        llm_model=_get_env("LLM_MODEL", "llama-3.3-70b-versatile"),
        llm_model_fast=_get_env("LLM_MODEL_FAST", "llama-3.1-8b-instant"),
        llm_model_fallback=_get_env("LLM_MODEL_FALLBACK", "gemini-2.0-flash"),
        llm_temperature=float(_get_env("LLM_TEMPERATURE", "0.3")),
        llm_max_tokens=int(_get_env("LLM_MAX_TOKENS", "1024")),

        # Routing
        classifier_backend=classifier_backend,
        enabled_agents=_get_env("ENABLED_AGENTS", ""),

        # Consistency
        max_write_retries=max_write_retries,
        store_timeout_seconds=float(_get_env("STORE_TIMEOUT_SECONDS", "10")),
        collaborator_timeout_seconds=float(_get_env("COLLABORATOR_TIMEOUT_SECONDS", "60")),

        # Sessions
        assistant_mention=_get_env("ASSISTANT_MENTION", "@assistant"),

        # Observability
        enable_audit_logging=_get_bool("ENABLE_AUDIT_LOGGING", "true"),
    )
