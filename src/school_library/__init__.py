"""
School Library backend package.

Backend for a school library: staff users with roles, the people who borrow
(students and teachers), the resource inventory with stock counters, the loan
lifecycle, reports and the sidebar system configuration.

Key Components:
- config: Settings management with pydantic-settings
- database: SQLAlchemy schema, session management and repositories
- models: Pydantic models returned by repositories and services
- services: Business rules layered over the repositories
- api: FastAPI routers, dependencies and error handlers
- cli: Administrative commands (init-db, seed, sync-stock, ...)
"""

__version__ = "0.1.0"

from . import database

__all__ = [
    "__version__",
    "database",
]
