"""
Configuration management using Pydantic Settings.
All environment variables are loaded and validated here.
"""

from typing import List, Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ================================
    # Application Configuration
    # ================================
    APP_NAME: str = "ThumbsUp Insights"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = True

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:8000"

    @field_validator("ALLOWED_ORIGINS")
    @classmethod
    def parse_origins(cls, v: str) -> List[str]:
        """Parse comma-separated origins into list."""
        return [origin.strip() for origin in v.split(",")]

    # ================================
    # Database Configuration
    # ================================
    DATABASE_URL: str = Field(..., description="Async SQLAlchemy connection string")
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # ================================
    # File Storage
    # ================================
    UPLOAD_ROOT: str = "wwwroot/uploads"

    # ================================
    # AI Service Configuration
    # ================================
    # Anthropic Claude (text generation + vision)
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_TEXT_MODEL: str = "claude-3-5-haiku-20241022"
    ANTHROPIC_VISION_MODEL: str = "claude-3-5-sonnet-20241022"
    ANTHROPIC_MAX_TOKENS: int = 1024
    AI_REQUEST_TIMEOUT_SECONDS: float = 60.0
    AI_MAX_RETRIES: int = 2

    # Which backend answers OCR / theme calls
    VISION_PROVIDER: Literal["anthropic", "local"] = "anthropic"

    # Local vision model (Ollama-compatible /api/generate endpoint)
    LOCAL_VISION_URL: Optional[str] = None
    LOCAL_VISION_MODEL: str = "llava"

    # ================================
    # Analysis Pipeline
    # ================================
    ANALYSIS_WORKER_ENABLED: bool = True
    ANALYSIS_QUEUE_MAXSIZE: int = Field(default=0, ge=0)  # 0 = unbounded
    BACKFILL_ENABLED: bool = True
    BACKFILL_STARTUP_DELAY_SECONDS: float = 10.0
    BACKFILL_STALE_AFTER_MINUTES: int = 5

    # ================================
    # Approval Predictor
    # ================================
    PREDICTOR_TAG_WEIGHT: float = Field(default=0.05, ge=0.0, le=1.0)
    PREDICTOR_SUMMARY_ALIGNMENT_WEIGHT: float = Field(default=0.04, ge=0.0, le=1.0)
    PREDICTOR_SUMMARY_PENALTY_WEIGHT: float = Field(default=0.06, ge=0.0, le=1.0)

    # ================================
    # Client Summary
    # ================================
    # Development aid: ignore the cached summary and rebuild on every call
    SUMMARY_ALWAYS_REFRESH: bool = False
    SUMMARY_TOP_TAGS: int = 10

    # ================================
    # Logging Configuration
    # ================================
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.APP_ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.APP_ENV == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


# Global settings instance
settings = Settings()
