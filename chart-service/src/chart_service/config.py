"""
Configuration and logging setup for the chart service.

This module provides:
- Environment-based settings via Pydantic Settings
- Logging configuration
- Centralized configuration access
"""

import logging
import logging.config
import sys
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Service configuration
    service_name: str = Field(default="chart-service", description="Name of the service")
    service_port: int = Field(default=8001, alias="CHART_SERVICE_PORT")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )

    # Storage - the service role key is never logged
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_service_role_key: str = Field(default="", alias="SUPABASE_SERVICE_ROLE_KEY")

    # Upstream services
    lstm_backend_url: str = Field(default="http://localhost:8000", alias="LSTM_BACKEND_URL")
    coingecko_api_url: str = Field(
        default="https://api.coingecko.com/api/v3", alias="COINGECKO_API_URL"
    )
    request_timeout_seconds: float = Field(default=15.0, alias="REQUEST_TIMEOUT_SECONDS")

    # Live chart
    refresh_interval_seconds: float = Field(
        default=30.0,
        alias="REFRESH_INTERVAL_SECONDS",
        description="Delay between reconciliation passes",
    )

    # CORS configuration
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
        description="Allowed CORS origins",
    )

    @property
    def store_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


def configure_logging(settings: Settings) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        settings: Application settings containing log level

    Returns:
        Logger: Configured service logger
    """
    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "module": "%(module)s", "function": "%(funcName)s", "message": "%(message)s"}',
                "datefmt": "%Y-%m-%dT%H:%M:%S%z",
            },
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s.%(funcName)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.log_level,
                "formatter": "standard",  # Use standard for dev, json for prod
                "stream": sys.stdout,
            },
        },
        "root": {
            "level": settings.log_level,
            "handlers": ["console"],
        },
        "loggers": {
            "chart_service": {
                "level": settings.log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            "uvicorn": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
            "urllib3": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(log_config)
    logger = logging.getLogger("chart_service")
    logger.info(
        "Logging configured",
        extra={"log_level": settings.log_level, "service": settings.service_name},
    )
    if not settings.store_configured:
        logger.error("Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY in environment variables.")

    return logger


def get_logger(name: str = "chart_service") -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name (default: chart_service)

    Returns:
        Logger: Logger instance
    """
    return logging.getLogger(name)
