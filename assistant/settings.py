from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read from OS env and optional .env file in project root.
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Redis connection string
    redis_url: str = Field(
        "redis://localhost:6379/0",
        alias="REDIS_URL",
        description="Redis connection URL, e.g. 'redis://redis:6379/0'",
    )

    # Gemini Developer API
    gemini_api_key: str = Field(
        "",
        alias="GEMINI_API_KEY",
        description="API key passed to the google-genai client",
    )
    gemini_model: str = Field(
        "models/gemini-2.0-flash",
        alias="GEMINI_MODEL",
        description="Model used for every streamed turn",
    )
    temperature: float = Field(0.5, alias="MODEL_TEMPERATURE", ge=0.0, le=2.0)

    # Tools are only offered for the first N rounds of a session.
    max_tool_iterations: int = Field(
        10,
        alias="MAX_TOOL_ITERATIONS",
        ge=0,
        description="Number of rounds during which the tool catalog is offered",
    )

    # Persisted threads expire after this many seconds.
    thread_ttl_seconds: int = Field(600, alias="THREAD_TTL_SECONDS", gt=0)

    # Outbound HTTP used by tools.
    weather_api_base_url: str = Field(
        "https://api.open-meteo.com",
        alias="WEATHER_API_BASE_URL",
    )
    http_timeout: float = Field(10.0, alias="HTTP_TIMEOUT", gt=0)

    # Application log level for our assistant logger.
    # Can be overridden via LOG_LEVEL env var, e.g. "DEBUG" while debugging.
    log_level: str = Field(
        "INFO",
        alias="LOG_LEVEL",
        description="Application log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_timezone: Optional[str] = Field(
        default=None,
        alias="LOG_TIMEZONE",
        description="Timezone name for log timestamps, e.g. 'Europe/London'. Defaults to system local time.",
    )
    log_dir: str = Field("logs", alias="LOG_DIR")


settings = Settings()  # Reads from environment if available


__all__ = ["Settings", "settings"]
