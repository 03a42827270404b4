"""Configuration management."""

import os
from pathlib import Path

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env for local/dev environments only where the environment has no value
BASE_DIR = Path(__file__).resolve().parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    for k, v in file_env.items():
        if k not in os.environ and v is not None:
            os.environ[k] = v


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (plain or json)")

    # Data loading
    overpass_url: str = Field(
        default="https://overpass-api.de/api/interpreter",
        description="Overpass API interpreter endpoint",
    )
    request_timeout_seconds: float = Field(
        default=60.0, description="Timeout for Overpass requests"
    )

    # World behaviour
    max_recenter_distance: float = Field(
        default=0.083291353581523,
        description="Unscaled distance between offsets above which the world is recentred",
    )
    vertices_per_agent: int = Field(
        default=100, description="New graph vertices needed per spawned agent"
    )
    car_share: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Share of spawned agents that are cars"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "CITYVIZ_"
        extra = "ignore"


settings = Settings()
