"""
Centralized configuration for ToolTip Companion backend
All environment variables and settings are defined here
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Provides centralized configuration with validation and defaults.
    """

    # ======================
    # Server Configuration
    # ======================
    PORT: int = Field(default=3001, description="HTTP port for the API")
    FRONTEND_URL: str = Field(
        default="http://localhost:8080",
        description="Frontend origin (logged at startup)"
    )
    ENVIRONMENT: str = Field(
        default="development",
        description="development exposes error messages in 500 responses"
    )

    # ======================
    # Chat Configuration
    # ======================
    ANTHROPIC_API_KEY: str = Field(default="", description="Anthropic API key")
    ANTHROPIC_MODEL: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used by the chat endpoint"
    )
    CHAT_MAX_TOKENS: int = Field(default=500, description="Max tokens for a chat reply")
    CHAT_TEMPERATURE: float = Field(default=0.7, description="Chat sampling temperature")

    # ======================
    # Redis Configuration
    # ======================
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (artifact and scrape caches)"
    )

    # ======================
    # Celery Configuration
    # ======================
    CELERY_BROKER_URL: Optional[str] = Field(
        default=None,
        description="Celery broker URL (defaults to REDIS_URL if not set)"
    )
    CELERY_RESULT_BACKEND: str = Field(
        default="redis://localhost:6379/1",
        description="Celery result backend URL"
    )
    CELERY_RESULT_EXPIRES: int = Field(
        default=86400,  # 24 hours
        description="Time in seconds before task results expire"
    )
    TASK_TIME_LIMIT: int = Field(
        default=900,  # 15 minutes
        description="Hard time limit for tasks in seconds"
    )
    TASK_SOFT_TIME_LIMIT: int = Field(
        default=840,
        description="Soft time limit for tasks in seconds"
    )
    WORKER_PREFETCH_MULTIPLIER: int = Field(
        default=1,
        description="Tasks to prefetch per worker"
    )
    WORKER_MAX_TASKS_PER_CHILD: int = Field(
        default=10,
        description="Max tasks before worker restart"
    )

    # ======================
    # Browser Pool Configuration
    # ======================
    BROWSER_POOL_SIZE: int = Field(
        default=1,
        description="Number of browser instances kept alive"
    )
    BROWSER_MAX_CONCURRENT_PAGES: int = Field(
        default=4,
        description="Max pages open at once across the pool"
    )
    BROWSER_MAX_PAGES: int = Field(
        default=50,
        description="Pages served before an idle browser is recycled"
    )
    BROWSER_TIMEOUT: int = Field(
        default=1800,
        description="Max browser age in seconds before an idle browser is recycled"
    )
    BROWSER_ACQUIRE_TIMEOUT: int = Field(
        default=30,
        description="Seconds to wait for a free page slot"
    )
    VIEWPORT_WIDTH: int = Field(default=1920, description="Browser viewport width")
    VIEWPORT_HEIGHT: int = Field(default=1080, description="Browser viewport height")

    # ======================
    # Crawl Configuration
    # ======================
    NAVIGATION_TIMEOUT_MS: int = Field(
        default=30000,
        description="Timeout for page navigation in milliseconds"
    )
    CLICK_TIMEOUT_MS: int = Field(
        default=5000,
        description="Timeout for each click strategy in milliseconds"
    )
    DEFAULT_WAIT_TIME: float = Field(
        default=2.0,
        description="Seconds to wait for the page to respond after a click"
    )
    SYNTHETIC_CLICK_ATTEMPTS: int = Field(
        default=2,
        description="Synthetic click retries when no visible change is detected"
    )
    MAX_ELEMENTS_PER_SCRAPE: int = Field(
        default=50,
        description="Max elements processed by one proactive scrape"
    )
    WRITE_DEBUG_IMAGES: bool = Field(
        default=True,
        description="Write before/after PNGs when a crawl detects no change"
    )

    # ======================
    # Artifact Configuration
    # ======================
    ARTIFACT_DIR: str = Field(default="gifs", description="Crawl artifact directory")
    PREVIEW_DIR: str = Field(
        default="proactive-previews",
        description="Proactive preview directory"
    )
    ARTIFACT_RENDERER: str = Field(
        default="composite",
        description="Artifact renderer: lite, composite or animated"
    )
    ARTIFACT_WIDTH: int = Field(default=800, description="Artifact width in pixels")
    ARTIFACT_HEIGHT: int = Field(default=600, description="Artifact height in pixels")
    ARTIFACT_QUALITY: int = Field(default=80, description="Artifact quality (1-100)")
    ARTIFACT_FRAME_DELAY_MS: int = Field(
        default=1000,
        description="Delay between frames of animated artifacts"
    )
    ARTIFACT_RETENTION_SECONDS: int = Field(
        default=604800,  # 7 days
        description="Age after which artifact files are deleted by cleanup"
    )

    # ======================
    # Cache Configuration
    # ======================
    CACHE_TTL: int = Field(
        default=3600,  # 1 hour
        description="Cache time-to-live in seconds"
    )

    # ======================
    # Logging Configuration
    # ======================
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level"
    )

    @property
    def celery_broker(self) -> str:
        """Get Celery broker URL, defaulting to REDIS_URL if not set"""
        return self.CELERY_BROKER_URL or self.REDIS_URL

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Allow extra env vars in .env file
    )


# Global settings instance
settings = Settings()


# ======================
# Convenience Functions
# ======================

def is_chat_configured() -> bool:
    """Check whether a usable LLM key is present"""
    key = settings.ANTHROPIC_API_KEY.strip()
    return bool(key) and key != "your_anthropic_api_key_here"
