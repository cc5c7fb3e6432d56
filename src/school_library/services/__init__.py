"""
Service layer for the School Library backend.

Services own the business rules and transactions; routes and the CLI call
them, and they call the repositories.
"""

from .catalog_service import CatalogService
from .loan_service import LoanService
from .person_service import PersonService
from .report_service import ReportService
from .resource_service import ResourceService
from .system_config_service import SystemConfigService
from .user_service import UserService

__all__ = [
    "CatalogService",
    "LoanService",
    "PersonService",
    "ReportService",
    "ResourceService",
    "SystemConfigService",
    "UserService",
]
