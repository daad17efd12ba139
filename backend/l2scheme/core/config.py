"""Application configuration."""
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (SQLite for development, PostgreSQL for production)
    database_url: str = "sqlite:///./l2scheme.db"

    # Topology analysis: "none" leaves transit hop_count NULL,
    # "population" ranks transit sightings by port MAC population
    hop_count_policy: str = "none"

    # D-Link ports synthesized when a config does not mention them
    dlink_default_port_count: int = 28

    # Bulk import (configs/ and macs/ subdirectories)
    data_dir: str = "./data"

    # Logging
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
