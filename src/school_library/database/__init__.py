"""
Database package for the School Library backend.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- One repository per domain, built on BaseRepository (repository.py)
- Domain exceptions shared by every layer (errors.py)

In the backend architecture, the database layer is responsible for:
1. Persisting people, inventory and loans
2. Keeping stock counters consistent under concurrent requests
3. Translating database failures into domain errors
"""

from .catalog_repository import (
    LOOKUP_REPOSITORIES,
    AuthorRepository,
    CategoryRepository,
    LocationRepository,
    PublisherRepository,
    ResourceStateRepository,
    ResourceTypeRepository,
)
from .loan_repository import LoanRepository
from .person_repository import PersonRepository, PersonTypeRepository
from .repository import (
    AuthenticationError,
    BaseRepository,
    BusinessRuleError,
    DuplicateError,
    NotFoundError,
    PaginatedResponse,
    PaginationParams,
    PermissionDeniedError,
    RepositoryException,
    ValidationError,
)
from .resource_repository import ResourceRepository
from .schema import (
    Base,
    Loan,
    LoanStatusEnum,
    Person,
    PersonType,
    Resource,
    SystemConfig,
    User,
    UserRoleEnum,
)
from .session import (
    DatabaseManager,
    get_db_manager,
    reset_db_manager,
    safe_commit,
    safe_query,
)
from .system_config_repository import SystemConfigRepository
from .user_repository import UserRepository

__all__ = [
    "LOOKUP_REPOSITORIES",
    "AuthenticationError",
    "AuthorRepository",
    "Base",
    "BaseRepository",
    "BusinessRuleError",
    "CategoryRepository",
    "DatabaseManager",
    "DuplicateError",
    "Loan",
    "LoanRepository",
    "LoanStatusEnum",
    "LocationRepository",
    "NotFoundError",
    "PaginatedResponse",
    "PaginationParams",
    "PermissionDeniedError",
    "Person",
    "PersonRepository",
    "PersonType",
    "PersonTypeRepository",
    "PublisherRepository",
    "RepositoryException",
    "Resource",
    "ResourceRepository",
    "ResourceStateRepository",
    "ResourceTypeRepository",
    "SystemConfig",
    "SystemConfigRepository",
    "User",
    "UserRepository",
    "UserRoleEnum",
    "ValidationError",
    "get_db_manager",
    "reset_db_manager",
    "safe_commit",
    "safe_query",
]
