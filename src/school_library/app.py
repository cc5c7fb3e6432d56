"""
FastAPI application for the School Library backend.

This module:
- Configures logging from the library settings
- Creates the tables and the default system configuration on startup
- Sets up Logfire observability and CORS
- Mounts every router under the configured API prefix
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.errors import register_exception_handlers
from .api.routes import ROUTERS
from .config import LibrarySettings, get_config
from .database.session import get_db_manager
from .observability import initialize_observability
from .services.system_config_service import SystemConfigService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(config: LibrarySettings) -> None:
    """Log to stderr at the configured level; ``debug`` forces DEBUG."""
    level = logging.DEBUG if config.debug else getattr(logging, config.log_level)
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[logging.StreamHandler(sys.stderr)])
    logging.getLogger().setLevel(level)
    if not config.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Creates missing tables and makes sure an active system configuration
    exists before the first request.
    """
    config = get_config()
    logger.info("Starting %s %s (%s)", config.app_name, config.app_version, config.environment)

    db_manager = get_db_manager(config.get_database_url())
    db_manager.init_database()
    with db_manager.session_scope() as session:
        SystemConfigService(session).initialize_default_config()

    logger.info("%s startup complete", config.app_name)
    yield

    logger.info("Shutting down %s", config.app_name)


def create_app(config: LibrarySettings | None = None, observability: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Settings to use; the global settings when None
        observability: Configure Logfire and instrument the app
    """
    config = config or get_config()
    configure_logging(config)

    app = FastAPI(
        title="School Library API",
        description="Backend for a school library: people, inventory, loans and reports",
        version=config.app_version,
        lifespan=lifespan,
        debug=config.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    for router in ROUTERS:
        app.include_router(router, prefix=config.api_prefix)

    @app.get("/health", tags=["Health"])
    def health_check() -> dict[str, str]:
        connected = get_db_manager().verify_connection()
        return {
            "status": "healthy" if connected else "degraded",
            "service": config.app_name,
            "version": __version__,
            "database": "connected" if connected else "disconnected",
            "environment": config.environment,
        }

    @app.get("/", tags=["Root"])
    def root() -> dict[str, str]:
        return {
            "name": config.app_name,
            "version": config.app_version,
            "docs": "/docs",
            "health": "/health",
        }

    if observability:
        initialize_observability(app=app)

    return app
