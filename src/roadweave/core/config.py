"""
Configuration settings for the Roadweave package.
"""

from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process-wide settings with environment variable support.

    Attributes:
        environment: Deployment environment, selects the console log format
        log_level: Default log level when setup_logging() is called without one
        log_file: Optional path of a rotating log file
        json_logs: Whether file logs are written as JSON lines
        max_growth_iterations: Upper bound accepted for a growth iteration budget
        max_terrain_samples: Upper bound accepted for a terrain sample count
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="ROADWEAVE_",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"

    # Logging
    log_level: Optional[str] = None
    log_file: Optional[Path] = None
    json_logs: bool = False

    # Safety limits
    max_growth_iterations: int = 5_000_000
    max_terrain_samples: int = 1_000_000

    @property
    def effective_log_level(self) -> str:
        """Get the log level, defaulting by environment."""
        if self.log_level:
            return self.log_level.upper()
        return "DEBUG" if self.environment == "development" else "INFO"


# Global settings instance
settings = Settings()
