"""Configuration management for the School Library backend.

Settings are read from the environment (``SCHOOL_LIBRARY_`` prefix) and an
optional ``.env`` file, validated with Pydantic v2:
1. Identity - Application name, version and environment
2. Persistence - SQLite path or an explicit SQLAlchemy URL
3. HTTP - API prefix, bind address and CORS origins
4. Security - Bearer token verification secrets and bootstrap admin
5. Loan policy - Limits applied by the loan service
"""

from pathlib import Path

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LibrarySettings(BaseSettings):
    """School library backend configuration.

    Every field can be overridden with an environment variable, e.g.
    ``SCHOOL_LIBRARY_LOAN_DAYS=21`` or ``SCHOOL_LIBRARY_DATABASE_URL``.
    """

    model_config = SettingsConfigDict(
        # Use SCHOOL_LIBRARY_ prefix for all env vars
        env_prefix="SCHOOL_LIBRARY_",
        # Load from .env file if present
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application Identity ===

    app_name: str = Field(
        default="school-library",
        description="Application name reported by the API root endpoint",
        pattern=r"^[a-z0-9-]+$",
    )

    app_version: str = Field(
        default="0.1.0",
        description="Application version",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    environment: str = Field(
        default="development",
        description="Deployment environment",
        pattern=r"^(development|test|production)$",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/library.db"),
        description="SQLite database file path",
    )

    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy database URL, takes precedence over database_path",
    )

    # === HTTP Configuration ===

    api_prefix: str = Field(
        default="/api",
        description="Prefix mounted in front of every router",
    )

    http_host: str = Field(
        default="127.0.0.1",
        description="Host the API server binds to",
    )

    http_port: int = Field(
        default=3000,
        description="Port the API server binds to",
        ge=1024,  # Avoid privileged ports
        le=65535,
    )

    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        description="Origins allowed by the CORS middleware",
    )

    # === Security Configuration ===

    jwt_secret: str = Field(
        default="change-me-in-production",
        description="Secret used to verify bearer tokens",
        repr=False,
    )

    jwt_algorithm: str = Field(
        default="HS256",
        description="Algorithm used to verify bearer tokens",
        pattern=r"^(HS256|HS384|HS512)$",
    )

    admin_email: str | None = Field(
        default=None,
        description="Email of the administrator created by the seed command",
    )

    admin_password: str | None = Field(
        default=None,
        description="Password of the administrator created by the seed command",
        repr=False,
    )

    # === Logging Configuration ===

    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    # === Loan Policy ===

    max_loans_per_person: int = Field(
        default=3,
        description="Maximum number of simultaneous active loans per person",
        ge=1,
        le=50,
    )

    loan_days: int = Field(
        default=15,
        description="Default loan period in days",
        ge=1,
        le=365,
    )

    min_loan_quantity: int = Field(
        default=1,
        description="Minimum units per loan",
        ge=1,
    )

    max_loan_quantity: int = Field(
        default=5,
        description="Maximum units per loan",
        ge=1,
        le=100,
    )

    low_stock_threshold: int = Field(
        default=2,
        description="Available units at or below which a low stock warning is raised",
        ge=0,
    )

    history_limit: int = Field(
        default=50,
        description="Default number of records returned by loan history queries",
        ge=1,
        le=500,
    )

    # === Validation Methods ===

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Ensure the database directory exists."""
        abs_path = v.absolute()
        abs_path.parent.mkdir(parents=True, exist_ok=True)

        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")

        return abs_path

    @field_validator("api_prefix")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        """Normalize the API prefix to ``/name`` without a trailing slash."""
        v = v.strip().strip("/")
        return f"/{v}" if v else ""

    @field_validator("http_port")
    @classmethod
    def validate_http_port(cls, v: int) -> int:
        """Reject ports commonly reserved by other services."""
        reserved_ports = {3306, 5432, 6379, 27017}
        if v in reserved_ports:
            raise ValueError(f"Port {v} is commonly reserved, choose another")
        return v

    @field_validator("max_loan_quantity")
    @classmethod
    def validate_max_loan_quantity(cls, v: int, info: ValidationInfo) -> int:
        """Maximum quantity per loan must not be below the minimum."""
        minimum = info.data.get("min_loan_quantity", 1)
        if v < minimum:
            raise ValueError("max_loan_quantity must be >= min_loan_quantity")
        return v

    # === Computed Properties ===

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Development mode enables sample data seeding and verbose errors."""
        return self.environment == "development" or self.debug or self.log_level == "DEBUG"

    @property
    def loan_limits(self) -> dict[str, int]:
        """Loan limits exposed to clients."""
        return {
            "max_loans_per_person": self.max_loans_per_person,
            "max_loan_days": self.loan_days,
            "min_quantity": self.min_loan_quantity,
            "max_quantity": self.max_loan_quantity,
        }

    def get_database_url(self) -> str:
        """Get the SQLAlchemy database URL."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.database_path}"


# === Global Configuration Instance ===


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: LibrarySettings | None = None


def get_config() -> LibrarySettings:
    """Get or create the global configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = LibrarySettings()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def set_config(config: LibrarySettings) -> None:
    """Install an explicit configuration instance (used by tests and the CLI)."""
    _ConfigStore._instance = config  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
