"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "WhatsBI Assistant"
    app_version: str = "1.0.0"
    debug: bool = False

    # Storage
    local_storage_path: str = "./data"

    # LLM Provider settings
    llm_provider: str = "anthropic"  # "anthropic" or "openai"
    llm_api_key: Optional[str] = None
    llm_model: Optional[str] = None  # uses provider default if not set
    llm_base_url: Optional[str] = None  # uses provider default if not set
    llm_max_retries: int = 4
    llm_timeout_seconds: float = 45.0
    llm_max_tool_rounds: int = 2

    # Analytical backend (Power BI REST)
    analytics_api_url: str = "https://api.powerbi.com/v1.0/myorg"
    identity_authority_url: str = "https://login.microsoftonline.com"
    identity_scope: str = "https://analysis.windows.net/powerbi/api/.default"
    query_timeout_seconds: float = 20.0
    token_refresh_margin_minutes: int = 5
    token_cache_minutes: int = 50

    # Sessions
    session_ttl_hours: int = 24
    history_messages_limit: int = 10

    # WhatsApp gateway (Evolution API)
    evolution_api_url: Optional[str] = None
    evolution_api_key: Optional[str] = None
    evolution_instance_name: Optional[str] = None

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/whatsbi.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True  # Log all API requests/responses

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
