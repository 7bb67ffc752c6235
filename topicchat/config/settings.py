"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Dict, Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "Topic Chat"
    app_version: str = "1.0.0"
    debug: bool = True

    # Security (token verification only, issuance lives with the identity provider)
    secret_key: str = "your-secret-key-change-this-in-production"
    algorithm: str = "HS256"
    token_issuer: str = "topicchat-identity"
    token_audience: str = "topicchat-clients"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Storage
    storage_type: str = "local"
    local_storage_path: str = "./data"

    # Chat limits
    max_messages_per_chat: int = 1000
    max_message_length: int = 5000
    default_history_limit: int = 50
    default_chat_list_limit: int = 20

    # AI backends (keys left empty mark a backend as unconfigured)
    default_backend: str = "gpt-4"
    topic_backend_preferences: Dict[str, str] = {}
    backend_timeout_seconds: float = 30.0
    ai_max_tokens: int = 1000
    ai_temperature: float = 0.7

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4"
    openai_base_url: Optional[str] = None

    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-3-sonnet-20240229"
    anthropic_base_url: Optional[str] = None

    mistral_api_key: Optional[str] = None
    mistral_model: str = "mistral-large-latest"
    mistral_base_url: str = "https://api.mistral.ai/v1"

    composio_api_key: Optional[str] = None
    composio_model: str = "composio-default"
    composio_base_url: Optional[str] = None

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
        "http://127.0.0.1:3000",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/topicchat.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True  # Log all API requests/responses

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
