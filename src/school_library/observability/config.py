"""Configuration for Logfire observability."""

import os

from pydantic import BaseModel, Field


class ObservabilityConfig(BaseModel):
    """Configuration for Logfire observability, read from ``LOGFIRE_*`` variables."""

    # Connection
    token: str = Field(default_factory=lambda: os.getenv("LOGFIRE_TOKEN", ""))
    service_name: str = "school-library"
    environment: str = Field(
        default_factory=lambda: os.getenv("SCHOOL_LIBRARY_ENVIRONMENT", "development")
    )

    # Behavior
    enabled: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_ENABLED", "true").lower() == "true"
    )
    console_output: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_CONSOLE", "false").lower() == "true"
    )
    instrument_fastapi: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_INSTRUMENT_FASTAPI", "true").lower() == "true"
    )
    instrument_sqlalchemy: bool = Field(
        default_factory=lambda: os.getenv("LOGFIRE_INSTRUMENT_SQLALCHEMY", "false").lower()
        == "true"
    )
