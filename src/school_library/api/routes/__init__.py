"""API routes module."""

from .auth import router as auth_router
from .can_borrow import router as can_borrow_router
from .catalog import router as catalog_router
from .loans import router as loans_router
from .people import router as people_router
from .reports import router as reports_router
from .resources import router as resources_router
from .system_config import router as system_config_router
from .users import router as users_router

ROUTERS = [
    auth_router,
    users_router,
    people_router,
    catalog_router,
    resources_router,
    loans_router,
    can_borrow_router,
    reports_router,
    system_config_router,
]

__all__ = [
    "ROUTERS",
    "auth_router",
    "can_borrow_router",
    "catalog_router",
    "loans_router",
    "people_router",
    "reports_router",
    "resources_router",
    "system_config_router",
    "users_router",
]
