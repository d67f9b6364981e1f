"""
Application Configuration
Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    api_debug: bool = False

    # CORS Configuration - "*" for development
    cors_origins: List[str] = ["*"]

    # Scraper Configuration (seconds)
    samurai_timeout: float = 60.0
    lords_timeout: float = 240.0  # many country pages
    country_batch_size: int = 5
    navigation_timeout: float = 20.0
    scraper_headless: bool = True

    # Response cache, 0 disables
    cache_ttl_seconds: int = 300

    # Session logs
    session_log_limit: int = 1000
    session_history: int = 50  # kept in memory
    session_log_files: bool = True  # also written as session-<id>.log
    session_log_max_age_days: int = 7
    session_log_dir: Optional[Path] = None  # defaults to log_dir

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Paths
    @property
    def log_dir(self) -> Path:
        """Get the log directory path."""
        return Path(__file__).parent.parent.parent / "logs"

    @property
    def log_file(self) -> Path:
        """Get the log file path."""
        return self.log_dir / "backend.log"

    @property
    def session_logs_path(self) -> Path:
        """Directory holding session-<id>.log files."""
        return self.session_log_dir or self.log_dir

    @property
    def source_timeouts(self) -> dict:
        """Per-source deadlines keyed by source key."""
        return {'samurai': self.samurai_timeout, 'lords': self.lords_timeout}

    class Config:
        # Only load .env if it exists to avoid permission errors
        env_file = ".env" if __import__("pathlib").Path(".env").exists() else None
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables


# Global settings instance
settings = Settings()
