"""
Application configuration management.

This module defines a ``Settings`` dataclass that reads its values from
environment variables at instantiation time.  Each configuration option
has a reasonable default which can be overridden by setting the
corresponding environment variable.  The source catalog itself is static
data and lives in ``core.sources``; nothing here is reloaded while a
refresh cycle is running.
"""

from dataclasses import dataclass, field
import os
from typing import List, Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Configuration values loaded from environment variables with defaults."""

    # Application settings
    ENVIRONMENT: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))
    PORT: int = field(default_factory=lambda: int(os.getenv("PORT", "8080")))
    DEBUG: bool = field(init=False)
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Refresh cycle.  The scheduler runs one cycle at startup and then one
    # every REFRESH_INTERVAL_MINUTES while it is not paused.
    AUTO_REFRESH: bool = field(default_factory=lambda: _env_bool("AUTO_REFRESH", "true"))
    REFRESH_INTERVAL_MINUTES: float = field(default_factory=lambda: float(os.getenv("REFRESH_INTERVAL_MINUTES", "15")))

    # Per-source limits
    FEED_ITEM_LIMIT: int = field(default_factory=lambda: int(os.getenv("FEED_ITEM_LIMIT", "25")))
    MAX_RENDER: int = field(default_factory=lambda: int(os.getenv("MAX_RENDER", "200")))

    # Fetching.  When RSS_PROXY_URL is set, every feed request is sent as
    # ``GET {RSS_PROXY_URL}?url=<target>`` instead of going to the target
    # directly.
    REQUEST_TIMEOUT_SECONDS: float = field(default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT_SECONDS", "15")))
    CANDIDATE_RETRY_DELAY_SECONDS: float = field(default_factory=lambda: float(os.getenv("CANDIDATE_RETRY_DELAY_SECONDS", "0")))
    RSS_PROXY_URL: Optional[str] = field(default_factory=lambda: os.getenv("RSS_PROXY_URL") or None)
    USER_AGENT: str = field(default_factory=lambda: os.getenv("USER_AGENT", "Mozilla/5.0 (NewsDash)"))

    # CORS
    CORS_ORIGINS: List[str] = field(default_factory=lambda: [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://localhost:8080",
    ])

    def __post_init__(self) -> None:
        """Derive additional configuration settings after initialization."""
        self.DEBUG = self.ENVIRONMENT.lower() == "development"

    @property
    def is_development(self) -> bool:
        """Return True if the environment is set to development."""
        return self.ENVIRONMENT.lower() == "development"

    @property
    def refresh_interval_seconds(self) -> float:
        return max(1.0, self.REFRESH_INTERVAL_MINUTES * 60)


# Instantiate a single settings object that can be imported across the
# application.
settings = Settings()
