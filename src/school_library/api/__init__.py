"""REST layer: FastAPI routers, request dependencies and error handlers."""

from .dependencies import get_current_user, get_db, require_roles
from .errors import register_exception_handlers

__all__ = [
    "get_current_user",
    "get_db",
    "register_exception_handlers",
    "require_roles",
]
