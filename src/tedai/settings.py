from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    host: str = "0.0.0.0"
    port: int = 5001
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_dir: str = "logs"

    groq_api_key: str | None = None
    groq_base_url: str = "https://api.groq.com/openai/v1"
    model: str = "llama-3.1-8b-instant"
    temperature: float = 0.7
    max_tokens: int = 512
    max_attempts: int = 5

    tavily_api_key: str | None = None
    search_max_results: int = 5
    search_depth: Literal["basic", "advanced"] = "basic"

    frontend_url: str | None = None

    default_session_id: str = "default"
    history_limit: int = 10
    session_ttl_seconds: int = 86400  # 24 hours
    max_sessions: int = 1000
    redis_url: str | None = None

    system_prompt: str = (
        "You are a helpful AI assistant. You can use tools to get more "
        "information when needed. When users ask about current events, news, "
        "or information that requires up-to-date data, use the search_web "
        "tool. Provide clear, accurate, and helpful responses to user queries."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )

    def cors_origins(self) -> list[str]:
        """Browser origins allowed to call the API."""
        origins = ["http://localhost:5173", "http://localhost:3000"]
        if self.frontend_url and self.frontend_url.strip():
            origins.append(self.frontend_url.strip())
        return origins


def get_settings() -> Settings:
    """Return the application settings singleton (loaded from env / .env)."""
    global _SETTINGS
    try:
        return _SETTINGS
    except NameError:
        _SETTINGS = Settings()
        return _SETTINGS
