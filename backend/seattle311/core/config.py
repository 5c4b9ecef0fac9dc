"""
Application configuration using Pydantic Settings.
"""

from typing import List
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="allow"
    )

    # Environment
    ENVIRONMENT: str = "development"
    API_V1_PREFIX: str = "/api/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    # External APIs - Socrata (Seattle Open Data)
    SOCRATA_BASE_URL: str = "https://data.seattle.gov/resource"
    SOCRATA_APP_TOKEN: str = ""
    SOCRATA_REQUESTS_DATASET: str = "5ngg-rpne"  # Customer Service Requests
    SOCRATA_TRACKING_DATASET: str = "43nw-pkdq"  # Request Tracking
    SOCRATA_REQUESTS_LIMIT: int = 50000  # enough for a full year of requests
    SOCRATA_TRACKING_LIMIT: int = 10000
    SOCRATA_TIMEOUT: float = 20.0  # seconds, per query
    SOCRATA_MAX_ATTEMPTS: int = 1  # 1 = no retries
    SOCRATA_RETRY_BACKOFF: float = 0.5

    # Ingestion
    TARGET_YEAR: int = 2025
    SAMPLE_REQUEST_COUNT: int = 600

    # Observability
    LOG_LEVEL: str = "INFO"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",")]
        return v


settings = Settings()
