"""
Resource repository implementation for the School Library backend.

This repository manages the inventory and its stock counters:

1. **Catalog**: CRUD, ISBN lookup and filtered search
2. **Stock Accounting**: Loan, lost, damaged and maintenance counters that
   never go negative and never exceed the total quantity
3. **Statistics**: Inventory wide stock totals

Stock methods lock the resource row (``SELECT ... FOR UPDATE``) and accept
``commit=False`` so the loan repository can fold them into its own
transaction.
"""

import logging
import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.orm import selectinload

from ..database.schema import Author as AuthorDB
from ..database.schema import Loan as LoanDB
from ..database.schema import LoanStatusEnum
from ..database.schema import Resource as ResourceDB
from ..database.schema import resource_authors
from ..database.session import safe_commit, safe_query
from ..models.resource import Resource as ResourceModel
from ..models.resource import StockInfo, StockStatistics
from .repository import (
    BaseRepository,
    BusinessRuleError,
    DuplicateError,
    PaginatedResponse,
    PaginationParams,
)

logger = logging.getLogger(__name__)

# ISBN-10 or ISBN-13, optionally prefixed with "ISBN", "ISBN-10:" or "ISBN-13:".
# The lookaheads need Python's re, so the check runs in a validator.
ISBN_PATTERN = re.compile(
    r"^(?:ISBN(?:-1[03])?:? )?"
    r"(?=[0-9X]{10}$|(?=(?:[0-9]+[- ]){3})[- 0-9X]{13}$|97[89][0-9]{10}$|(?=(?:[0-9]+[- ]){4})[- 0-9]{17}$)"
    r"(?:97[89][- ]?)?[0-9]{1,5}[- ]?[0-9]+[- ]?[0-9]+[- ]?[0-9X]$"
)
ISBN_PREFIX = re.compile(r"^ISBN(?:-1[03])?:? ")


def normalize_isbn(value: str | None) -> str | None:
    """Validate an ISBN and drop the optional ``ISBN-13:`` style prefix."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not ISBN_PATTERN.match(value):
        raise ValueError("ISBN must be a valid ISBN-10 or ISBN-13")
    return ISBN_PREFIX.sub("", value)


class ResourceCreateSchema(BaseModel):
    """Schema for creating a resource."""

    title: str = Field(..., min_length=2, max_length=300)
    type_id: str
    category_id: str
    state_id: str
    location_id: str
    publisher_id: str | None = None
    author_ids: list[str] = Field(default_factory=list)
    isbn: str | None = None
    volumes: int | None = Field(None, ge=1, le=100)
    notes: str | None = Field(None, max_length=500)
    cover_image_url: str | None = Field(None, max_length=500)
    total_quantity: int = Field(default=1, ge=1, le=10000)
    available: bool = True

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return v.strip()

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: str | None) -> str | None:
        return normalize_isbn(v)


class ResourceUpdateSchema(BaseModel):
    """Schema for updating a resource - all fields optional.

    Stock counters are not updatable here; see update_total_quantity and
    the stock operations.
    """

    title: str | None = Field(None, min_length=2, max_length=300)
    category_id: str | None = None
    state_id: str | None = None
    location_id: str | None = None
    publisher_id: str | None = None
    author_ids: list[str] | None = None
    volumes: int | None = Field(None, ge=1, le=100)
    notes: str | None = Field(None, max_length=500)
    cover_image_url: str | None = Field(None, max_length=500)
    available: bool | None = None


class ResourceSearchParams(BaseModel):
    """Search parameters for finding resources."""

    query: str | None = None  # Title, ISBN or author name contains
    type_id: str | None = None
    category_id: str | None = None
    state_id: str | None = None
    location_id: str | None = None
    author_id: str | None = None
    publisher_id: str | None = None
    available: bool | None = None
    has_stock: bool | None = None


def available_quantity_expr():
    """SQL expression mirroring Resource.available_quantity (before the clamp at zero)."""
    return (
        ResourceDB.total_quantity
        - ResourceDB.current_loans_count
        - ResourceDB.lost_quantity
        - ResourceDB.damaged_quantity
        - ResourceDB.maintenance_quantity
    )


class ResourceRepository(
    BaseRepository[ResourceDB, ResourceCreateSchema, ResourceUpdateSchema, ResourceModel]
):
    """
    Repository for inventory items.

    All list operations are ordered by title.
    """

    id_prefix = "resource"

    @property
    def model_class(self):
        return ResourceDB

    @property
    def response_schema(self):
        return ResourceModel

    def _to_response_model(self, db_obj: ResourceDB) -> ResourceModel:
        """Convert database resource to Pydantic model with derived stock values."""
        return ResourceModel(
            id=db_obj.id,
            title=db_obj.title,
            type_id=db_obj.type_id,
            type_name=db_obj.resource_type.name if db_obj.resource_type else None,
            category_id=db_obj.category_id,
            state_id=db_obj.state_id,
            location_id=db_obj.location_id,
            publisher_id=db_obj.publisher_id,
            author_ids=[a.id for a in db_obj.authors],
            author_names=[a.name for a in db_obj.authors],
            isbn=db_obj.isbn,
            volumes=db_obj.volumes,
            notes=db_obj.notes,
            cover_image_url=db_obj.cover_image_url,
            available=db_obj.available,
            total_quantity=db_obj.total_quantity,
            current_loans_count=db_obj.current_loans_count,
            lost_quantity=db_obj.lost_quantity,
            damaged_quantity=db_obj.damaged_quantity,
            maintenance_quantity=db_obj.maintenance_quantity,
            available_quantity=db_obj.available_quantity,
            has_stock=db_obj.has_stock,
            total_loans=db_obj.total_loans,
            last_loan_date=db_obj.last_loan_date,
            created_at=db_obj.created_at,
            updated_at=db_obj.updated_at,
        )

    def _ordered(self, query):
        return query.options(
            selectinload(ResourceDB.authors), selectinload(ResourceDB.resource_type)
        ).order_by(ResourceDB.title)

    def create(self, data: ResourceCreateSchema, authors: list[AuthorDB] | None = None) -> ResourceModel:  # type: ignore[override]
        """
        Create a resource with its authors.

        Args:
            data: Validated resource fields
            authors: Author rows already checked by the caller

        Raises:
            DuplicateError: If the ISBN is already registered
        """
        if data.isbn and self.find_db_by_isbn(data.isbn) is not None:
            raise DuplicateError(f"Resource with ISBN {data.isbn} already exists")

        db_resource = ResourceDB(
            id=self._generate_id(),
            **data.model_dump(exclude={"author_ids"}),
            current_loans_count=0,
            lost_quantity=0,
            damaged_quantity=0,
            maintenance_quantity=0,
            total_loans=0,
        )
        db_resource.authors = list(authors or [])
        self.session.add(db_resource)
        safe_commit(self.session, "create resource")
        self.session.refresh(db_resource)
        return self._to_response_model(db_resource)

    def update(  # type: ignore[override]
        self,
        id: str,
        data: ResourceUpdateSchema,
        authors: list[AuthorDB] | None = None,
    ) -> ResourceModel | None:
        """Update descriptive fields; ``authors`` replaces the author list when given."""
        db_resource = self.get_db_object(id, for_update=True)
        if db_resource is None:
            return None

        for field, value in data.model_dump(exclude_unset=True, exclude={"author_ids"}).items():
            setattr(db_resource, field, value)
        if authors is not None:
            db_resource.authors = list(authors)

        db_resource.updated_at = datetime.now()
        safe_commit(self.session, "update resource")
        self.session.refresh(db_resource)
        return self._to_response_model(db_resource)

    def delete(self, id: str) -> bool:
        """
        Delete a resource that has no unreturned loans.

        Returned loans go with it; their history has no meaning without
        the resource.

        Raises:
            BusinessRuleError: If the resource still has active loans
        """
        db_resource = self.get_db_object(id, for_update=True)
        if db_resource is None:
            return False

        if self.count_unreturned_loans(id) > 0:
            raise BusinessRuleError(
                f"Resource '{db_resource.title}' has active loans and cannot be deleted"
            )

        for loan in list(db_resource.loans):
            self.session.delete(loan)
        self.session.delete(db_resource)
        safe_commit(self.session, "delete resource")
        return True

    def count_unreturned_loans(self, id: str) -> int:
        return (
            safe_query(
                self.session,
                lambda s: s.execute(
                    select(func.count())
                    .select_from(LoanDB)
                    .where(
                        and_(
                            LoanDB.resource_id == id,
                            LoanDB.status.in_([LoanStatusEnum.ACTIVE, LoanStatusEnum.OVERDUE]),
                        )
                    )
                ).scalar(),
                "Failed to count loans of resource",
            )
            or 0
        )

    def find_db_by_isbn(self, isbn: str) -> ResourceDB | None:
        normalized = normalize_isbn(isbn)
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(ResourceDB).where(ResourceDB.isbn == normalized)
            ).scalar_one_or_none(),
            "Failed to get resource by ISBN",
        )

    def find_by_isbn(self, isbn: str) -> ResourceModel | None:
        db_resource = self.find_db_by_isbn(isbn)
        return self._to_response_model(db_resource) if db_resource else None

    def search(
        self,
        search_params: ResourceSearchParams,
        pagination: PaginationParams | None = None,
    ) -> PaginatedResponse[ResourceModel]:
        """
        Search resources with filters.

        Args:
            search_params: Free text and field filters
            pagination: Pagination parameters

        Returns:
            Paginated resources sorted by title
        """
        filters = []

        if search_params.query:
            term = f"%{search_params.query.strip()}%"
            author_match = exists().where(
                and_(
                    resource_authors.c.resource_id == ResourceDB.id,
                    resource_authors.c.author_id == AuthorDB.id,
                    AuthorDB.name.ilike(term),
                )
            )
            filters.append(
                or_(ResourceDB.title.ilike(term), ResourceDB.isbn.ilike(term), author_match)
            )
        if search_params.type_id:
            filters.append(ResourceDB.type_id == search_params.type_id)
        if search_params.category_id:
            filters.append(ResourceDB.category_id == search_params.category_id)
        if search_params.state_id:
            filters.append(ResourceDB.state_id == search_params.state_id)
        if search_params.location_id:
            filters.append(ResourceDB.location_id == search_params.location_id)
        if search_params.publisher_id:
            filters.append(ResourceDB.publisher_id == search_params.publisher_id)
        if search_params.author_id:
            filters.append(
                exists().where(
                    and_(
                        resource_authors.c.resource_id == ResourceDB.id,
                        resource_authors.c.author_id == search_params.author_id,
                    )
                )
            )
        if search_params.available is not None:
            filters.append(ResourceDB.available.is_(search_params.available))
        if search_params.has_stock is not None:
            in_stock = and_(ResourceDB.available.is_(True), available_quantity_expr() > 0)
            filters.append(in_stock if search_params.has_stock else ~in_stock)

        query = select(ResourceDB)
        if filters:
            query = query.where(and_(*filters))

        return self._paginate(self._ordered(query), pagination)

    # ------------------------------------------------------------------
    # Stock operations
    # ------------------------------------------------------------------

    def lock(self, id: str) -> ResourceDB:
        """Get the resource row locked for a stock change."""
        return self.get_db_object_or_raise(id, for_update=True)

    def _save_stock(self, db_resource: ResourceDB, operation: str, commit: bool) -> ResourceModel:
        db_resource.updated_at = datetime.now()
        if commit:
            safe_commit(self.session, operation)
            self.session.refresh(db_resource)
        else:
            self.session.flush()
        return self._to_response_model(db_resource)

    @staticmethod
    def _check_quantity(quantity: int) -> None:
        if quantity < 1:
            raise BusinessRuleError("Quantity must be at least 1")

    def update_availability(self, id: str, available: bool) -> ResourceModel:
        db_resource = self.lock(id)
        db_resource.available = available
        return self._save_stock(db_resource, "update resource availability", commit=True)

    def update_total_quantity(self, id: str, total_quantity: int) -> ResourceModel:
        """
        Change the number of units owned.

        Raises:
            BusinessRuleError: If the total drops below 1 or below the units on loan
        """
        db_resource = self.lock(id)
        if total_quantity < 1:
            raise BusinessRuleError("Total quantity must be at least 1")
        if total_quantity < db_resource.current_loans_count:
            raise BusinessRuleError(
                f"Total quantity ({total_quantity}) cannot be lower than the units "
                f"currently on loan ({db_resource.current_loans_count})"
            )
        db_resource.total_quantity = total_quantity
        return self._save_stock(db_resource, "update resource total quantity", commit=True)

    def increment_current_loans(self, id: str, quantity: int = 1, commit: bool = True) -> ResourceModel:
        """
        Register ``quantity`` units going out on loan.

        Also bumps ``total_loans`` and ``last_loan_date``.

        Raises:
            BusinessRuleError: If fewer than ``quantity`` units are available
        """
        self._check_quantity(quantity)
        db_resource = self.lock(id)
        if db_resource.available_quantity < quantity:
            raise BusinessRuleError(
                f"Not enough stock for '{db_resource.title}': "
                f"{db_resource.available_quantity} available, {quantity} requested"
            )
        db_resource.current_loans_count += quantity
        db_resource.total_loans += quantity
        db_resource.last_loan_date = datetime.now()
        return self._save_stock(db_resource, "increment resource loans", commit)

    def decrement_current_loans(self, id: str, quantity: int = 1, commit: bool = True) -> ResourceModel:
        """Register ``quantity`` units coming back; the counter is clamped at zero."""
        self._check_quantity(quantity)
        db_resource = self.lock(id)
        if db_resource.current_loans_count < quantity:
            logger.warning(
                "Clamping loan counter of resource %s: %d on loan, %d returned",
                id,
                db_resource.current_loans_count,
                quantity,
            )
        db_resource.current_loans_count = max(0, db_resource.current_loans_count - quantity)
        return self._save_stock(db_resource, "decrement resource loans", commit)

    def sync_current_loans_count(self, id: str, real_count: int, commit: bool = True) -> ResourceModel:
        """Overwrite the loan counter with a recomputed value (never negative)."""
        db_resource = self.lock(id)
        db_resource.current_loans_count = max(0, real_count)
        return self._save_stock(db_resource, "sync resource loans", commit)

    def _move_out_of_stock(
        self, id: str, field: str, quantity: int, label: str, commit: bool
    ) -> ResourceModel:
        self._check_quantity(quantity)
        db_resource = self.lock(id)
        if db_resource.available_quantity < quantity:
            raise BusinessRuleError(
                f"Cannot mark {quantity} unit(s) of '{db_resource.title}' as {label}: "
                f"only {db_resource.available_quantity} available"
            )
        setattr(db_resource, field, getattr(db_resource, field) + quantity)
        return self._save_stock(db_resource, f"mark resource as {label}", commit)

    def _move_back_to_stock(
        self, id: str, field: str, quantity: int, label: str, commit: bool
    ) -> ResourceModel:
        self._check_quantity(quantity)
        db_resource = self.lock(id)
        current = getattr(db_resource, field)
        if current < quantity:
            raise BusinessRuleError(
                f"Cannot restore {quantity} {label} unit(s) of '{db_resource.title}': "
                f"only {current} registered"
            )
        setattr(db_resource, field, current - quantity)
        return self._save_stock(db_resource, f"restore {label} resource units", commit)

    def mark_as_lost(self, id: str, quantity: int = 1, commit: bool = True) -> ResourceModel:
        return self._move_out_of_stock(id, "lost_quantity", quantity, "lost", commit)

    def mark_as_damaged(self, id: str, quantity: int = 1, commit: bool = True) -> ResourceModel:
        return self._move_out_of_stock(id, "damaged_quantity", quantity, "damaged", commit)

    def send_to_maintenance(self, id: str, quantity: int = 1, commit: bool = True) -> ResourceModel:
        return self._move_out_of_stock(id, "maintenance_quantity", quantity, "maintenance", commit)

    def restore_lost(self, id: str, quantity: int = 1, commit: bool = True) -> ResourceModel:
        return self._move_back_to_stock(id, "lost_quantity", quantity, "lost", commit)

    def repair_damaged(self, id: str, quantity: int = 1, commit: bool = True) -> ResourceModel:
        return self._move_back_to_stock(id, "damaged_quantity", quantity, "damaged", commit)

    def return_from_maintenance(self, id: str, quantity: int = 1, commit: bool = True) -> ResourceModel:
        return self._move_back_to_stock(id, "maintenance_quantity", quantity, "maintenance", commit)

    def move_loaned_to_lost(self, id: str, quantity: int = 1, commit: bool = True) -> ResourceModel:
        """Units on loan that will not come back: loan counter down, lost counter up."""
        self._check_quantity(quantity)
        db_resource = self.lock(id)
        if db_resource.current_loans_count < quantity:
            logger.warning(
                "Clamping loan counter of resource %s while marking %d unit(s) lost",
                id,
                quantity,
            )
        db_resource.current_loans_count = max(0, db_resource.current_loans_count - quantity)
        db_resource.lost_quantity += quantity
        return self._save_stock(db_resource, "mark loaned resource units as lost", commit)

    def stock_info(self, id: str) -> StockInfo:
        db_resource = self.get_db_object_or_raise(id)
        return StockInfo(
            resource_id=db_resource.id,
            title=db_resource.title,
            total_quantity=db_resource.total_quantity,
            current_loans=db_resource.current_loans_count,
            lost_quantity=db_resource.lost_quantity,
            damaged_quantity=db_resource.damaged_quantity,
            maintenance_quantity=db_resource.maintenance_quantity,
            available_quantity=db_resource.available_quantity,
            has_stock=db_resource.has_stock,
            available=db_resource.available,
        )

    def stock_statistics(self) -> StockStatistics:
        """Inventory wide totals; available units are clamped per resource."""
        resources = safe_query(
            self.session,
            lambda s: s.execute(select(ResourceDB)).scalars().all(),
            "Failed to load resources for stock statistics",
        )

        stats = StockStatistics(total_resources=len(resources))
        for resource in resources:
            if resource.has_stock:
                stats.resources_with_stock += 1
            else:
                stats.resources_without_stock += 1
            stats.total_units += resource.total_quantity
            stats.loaned_units += resource.current_loans_count
            stats.available_units += resource.available_quantity
            stats.lost_units += resource.lost_quantity
            stats.damaged_units += resource.damaged_quantity
            stats.maintenance_units += resource.maintenance_quantity
        return stats

    def list_db_resources(self, ids: list[str] | None = None) -> list[ResourceDB]:
        query = select(ResourceDB).order_by(ResourceDB.title)
        if ids is not None:
            query = query.where(ResourceDB.id.in_(ids))
        return list(
            safe_query(
                self.session,
                lambda s: s.execute(query).scalars().all(),
                "Failed to list resources",
            )
        )
