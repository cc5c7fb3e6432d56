"""Logfire observability for the School Library backend."""

import logging

import logfire

from .config import ObservabilityConfig
from .decorators import traced

logger = logging.getLogger(__name__)

_config: ObservabilityConfig | None = None


def initialize_observability(config: ObservabilityConfig | None = None, app=None) -> bool:
    """
    Configure Logfire and instrument the FastAPI app.

    Spans are only exported when a Logfire token is present.

    Returns:
        True when Logfire was configured
    """
    global _config  # noqa: PLW0603
    _config = config or ObservabilityConfig()

    if not _config.enabled:
        logger.debug("Observability disabled via configuration")
        return False

    logfire.configure(
        token=_config.token or None,
        service_name=_config.service_name,
        environment=_config.environment,
        send_to_logfire="if-token-present",
        console=None if _config.console_output else False,
    )

    if app is not None and _config.instrument_fastapi:
        logfire.instrument_fastapi(app)
    if _config.instrument_sqlalchemy:
        logfire.instrument_sqlalchemy()

    logger.info("Observability initialized for environment %s", _config.environment)
    return True


def get_config() -> ObservabilityConfig:
    """Get current observability configuration."""
    global _config  # noqa: PLW0603
    if _config is None:
        _config = ObservabilityConfig()
    return _config


__all__ = [
    "ObservabilityConfig",
    "get_config",
    "initialize_observability",
    "traced",
]
