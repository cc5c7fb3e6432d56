"""
Repository pattern implementation for the School Library backend.

This module provides the data access layer under the services:

1. **Separation**: Services focus on library rules, not SQL
2. **Testability**: Repositories work against any SQLAlchemy session
3. **Consistency**: All data access follows the same patterns
4. **Serialization**: Methods return Pydantic models that serialize cleanly
   to JSON for the REST layer

The base repository provides common CRUD operations, while specialized
repositories add the filtered queries and counters each domain needs.
"""

import re
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, asc, desc, func, select
from sqlalchemy.orm import Session

from ..database.schema import Base
from ..database.session import safe_commit, safe_query
from .errors import (
    AuthenticationError,
    BusinessRuleError,
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    RepositoryException,
    ValidationError,
)

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)

ID_PATTERN = re.compile(r"^(?P<prefix>[a-z]+)_(?P<suffix>[A-Za-z0-9]{6,40})$")


def generate_id(prefix: str) -> str:
    """Generate a new entity id such as ``loan_3f2a9c0d1b7e4a55``."""
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def validate_id(value: str, prefix: str) -> str:
    """
    Check that ``value`` is a well formed id for the given prefix.

    Raises:
        ValidationError: If the id is malformed or belongs to another entity
    """
    match = ID_PATTERN.match(str(value or ""))
    if match is None or match.group("prefix") != prefix:
        raise ValidationError(f"Invalid {prefix} id: {value!r}")
    return str(value)


class PaginationParams(BaseModel):
    """Standard pagination parameters for list operations."""

    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        """Calculate offset for SQL queries."""
        return (self.page - 1) * self.page_size

    def validate_params(self) -> None:
        """Validate pagination parameters."""
        if self.page < 1:
            raise ValidationError("Page must be >= 1")
        if self.page_size < 1 or self.page_size > 100:
            raise ValidationError("Page size must be between 1 and 100")


class PaginatedResponse(BaseModel, Generic[ResponseSchemaType]):
    """
    Standard paginated response for list operations.

    Every list endpoint returns this structure.
    """

    items: list[ResponseSchemaType]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class BaseRepository(
    ABC, Generic[ModelType, CreateSchemaType, UpdateSchemaType, ResponseSchemaType]
):
    """
    Abstract base repository providing common CRUD operations.

    All methods use safe_query and safe_commit so database failures
    surface as RepositoryException subclasses.
    """

    #: Prefix of the generated ids, e.g. ``person`` for ``person_...``
    id_prefix: str = ""

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the Pydantic response schema."""

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        """Convert database model to Pydantic response model."""
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def _generate_id(self) -> str:
        return generate_id(self.id_prefix)

    def validate_id(self, id: str) -> str:
        """Reject ids that cannot belong to this repository's entity."""
        return validate_id(id, self.id_prefix)

    def get_db_object(self, id: str, for_update: bool = False) -> ModelType | None:
        """
        Get the SQLAlchemy row for an id.

        Args:
            id: Entity id
            for_update: Lock the row for the rest of the transaction

        Raises:
            ValidationError: If the id is malformed
        """
        self.validate_id(id)
        query = select(self.model_class).where(self.model_class.id == str(id))
        if for_update:
            query = query.with_for_update()
        return safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"Failed to get {self.model_class.__name__} by ID",
        )

    def get_db_object_or_raise(self, id: str, for_update: bool = False) -> ModelType:
        """Like get_db_object but raises NotFoundError when missing."""
        db_obj = self.get_db_object(id, for_update=for_update)
        if db_obj is None:
            raise NotFoundError(f"{self.model_class.__name__} {id} not found")
        return db_obj

    def get_by_id(self, id: str) -> ResponseSchemaType | None:
        """
        Get entity by ID.

        Returns:
            Pydantic model or None if not found

        Raises:
            ValidationError: If the id is malformed
            RepositoryException: On database errors
        """
        db_obj = self.get_db_object(id)
        if db_obj is None:
            return None
        return self._to_response_model(db_obj)

    def get_or_raise(self, id: str) -> ResponseSchemaType:
        """Get entity by ID or raise NotFoundError."""
        return self._to_response_model(self.get_db_object_or_raise(id))

    def get_all(
        self,
        pagination: PaginationParams | None = None,
        order_by: str | None = None,
        order_desc: bool = False,
    ) -> list[ResponseSchemaType] | PaginatedResponse[ResponseSchemaType]:
        """
        Get all entities with optional pagination and sorting.

        Args:
            pagination: Pagination parameters
            order_by: Field name to order by
            order_desc: Whether to order descending

        Returns:
            List of entities or paginated response
        """
        query = select(self.model_class)

        if order_by and hasattr(self.model_class, order_by):
            order_field = getattr(self.model_class, order_by)
            query = query.order_by(desc(order_field) if order_desc else asc(order_field))

        if pagination:
            return self._paginate(query, pagination)

        results = safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to get all results"
        )
        return [self._to_response_model(item) for item in results]

    def create(self, data: CreateSchemaType) -> ResponseSchemaType:
        """
        Create new entity with a generated id.

        Raises:
            DuplicateError: If a unique column already holds the value
            RepositoryException: On other database errors
        """
        db_obj = self.model_class(id=self._generate_id(), **data.model_dump())
        self.session.add(db_obj)
        safe_commit(self.session, f"create {self.model_class.__name__}")
        self.session.refresh(db_obj)
        return self._to_response_model(db_obj)

    def update(self, id: str, data: UpdateSchemaType) -> ResponseSchemaType | None:
        """
        Update existing entity with the fields explicitly set on ``data``.

        Returns:
            Updated entity or None if not found

        Raises:
            ValidationError: If the id is malformed
        """
        db_obj = self.get_db_object(id)
        if db_obj is None:
            return None

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(db_obj, field, value)

        safe_commit(self.session, f"update {self.model_class.__name__}")
        self.session.refresh(db_obj)
        return self._to_response_model(db_obj)

    def delete(self, id: str) -> bool:
        """
        Delete entity by ID.

        Returns:
            True if deleted, False if not found
        """
        db_obj = self.get_db_object(id)
        if db_obj is None:
            return False

        self.session.delete(db_obj)
        safe_commit(self.session, f"delete {self.model_class.__name__}")
        return True

    def exists(self, id: str) -> bool:
        """Check if entity exists by ID."""
        query = (
            select(func.count()).select_from(self.model_class).where(self.model_class.id == str(id))
        )
        count = safe_query(
            self.session, lambda s: s.execute(query).scalar(), "Failed to check existence"
        )
        return count > 0

    def _count(self, query: Select) -> int:
        count_query = select(func.count()).select_from(query.subquery())
        return (
            safe_query(
                self.session,
                lambda s: s.execute(count_query).scalar(),
                "Failed to count total for pagination",
            )
            or 0
        )

    def _paginate(
        self,
        query: Select,
        pagination: PaginationParams | None,
        converter: Callable[[Any], BaseModel] | None = None,
    ) -> PaginatedResponse:
        """Helper to paginate a select over ``model_class``."""
        if not pagination:
            pagination = PaginationParams()

        pagination.validate_params()
        total = self._count(query)

        query = query.offset(pagination.offset).limit(pagination.page_size)
        results = safe_query(
            self.session,
            lambda s: s.execute(query).unique().scalars().all(),
            f"Failed to get paginated {self.model_class.__name__} results",
        )

        convert = converter or self._to_response_model
        items = [convert(item) for item in results]

        return PaginatedResponse(
            items=items,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=(total + pagination.page_size - 1) // pagination.page_size,
            has_next=pagination.page * pagination.page_size < total,
            has_previous=pagination.page > 1,
        )


__all__ = [
    "AuthenticationError",
    "BaseRepository",
    "BusinessRuleError",
    "DuplicateError",
    "NotFoundError",
    "PaginatedResponse",
    "PaginationParams",
    "PermissionDeniedError",
    "RepositoryException",
    "ValidationError",
    "generate_id",
    "validate_id",
]
