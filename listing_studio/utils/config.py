"""Configuration management for the listing studio."""

import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from .errors import ConfigurationError
from .logger import get_logger

logger = get_logger(__name__)

# Load environment variables
load_dotenv()

DEFAULT_CONFIG_PATH = Path("config/studio.yaml")


class ModelsConfig(BaseModel):
    """Model names used for each capability."""
    editing: str = "gemini-2.5-flash-image"
    vision: str = "gemini-3-pro-preview"
    video: str = "veo-3.1-fast-generate-preview"


class CreditsConfig(BaseModel):
    """Starting balance and per-category costs."""
    initial_balance: int = 50
    costs: Dict[str, int] = Field(
        default_factory=lambda: {"batch": 5, "video": 10, "default": 1}
    )


class CacheConfig(BaseModel):
    """Result cache settings."""
    ttl_seconds: float = 300.0


class RetryConfig(BaseModel):
    """Retry policy for transient capability failures."""
    max_retries: int = 2
    initial_delay_seconds: float = 1.0
    backoff_factor: float = 2.0


class VideoConfig(BaseModel):
    """Polling behaviour for long-running video jobs."""
    poll_interval_seconds: float = 5.0
    max_wait_seconds: float = 600.0


class Config(BaseModel):
    """Main application configuration."""

    # API Keys
    gemini_api_key: str = Field(..., alias="GEMINI_API_KEY")

    # Application Settings
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Timeout Settings
    timeout_gemini_seconds: float = Field(default=120.0, alias="TIMEOUT_GEMINI_SECONDS")

    # Storage (None keeps everything in memory)
    storage_path: Optional[Path] = Field(default=None, alias="STORAGE_PATH")

    models: ModelsConfig = Field(default_factory=ModelsConfig)
    credits: CreditsConfig = Field(default_factory=CreditsConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    video: VideoConfig = Field(default_factory=VideoConfig)

    class Config:
        populate_by_name = True


# Global config instance
_config: Optional[Config] = None


def load_config(path: Optional[Path] = None) -> Config:
    """
    Load configuration from environment and YAML file.

    Args:
        path: YAML file; defaults to ``STUDIO_CONFIG`` or config/studio.yaml

    Returns:
        Config instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config

    config_path = Path(path or os.getenv("STUDIO_CONFIG", DEFAULT_CONFIG_PATH))

    try:
        if not config_path.exists():
            raise ConfigurationError(f"studio.yaml not found at {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            file_config = yaml.safe_load(f) or {}

        # Environment variables first, YAML sections on top
        config_data = {
            **os.environ,
            **file_config,
        }

        _config = Config(**config_data)

        logger.info(
            "Configuration loaded successfully",
            extra={
                "config_path": str(config_path),
                "environment": _config.app_env,
                "editing_model": _config.models.editing,
            }
        )

        return _config

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Failed to load configuration: {e}")


def get_config() -> Config:
    """
    Get the current configuration instance.

    Raises:
        ConfigurationError: If config not loaded
    """
    if _config is None:
        raise ConfigurationError("Configuration not loaded. Call load_config() first.")
    return _config
