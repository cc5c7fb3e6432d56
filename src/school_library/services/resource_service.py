"""
Inventory management.

The resource service checks every reference a resource carries (type,
category, state, location, publisher, authors) before writing, and exposes
the stock operations of the resource repository with their guards.
"""

import logging

from sqlalchemy.orm import Session

from ..database.catalog_repository import (
    AuthorRepository,
    CategoryRepository,
    LocationRepository,
    LookupRepository,
    PublisherRepository,
    ResourceStateRepository,
    ResourceTypeRepository,
)
from ..database.errors import NotFoundError, ValidationError
from ..database.repository import PaginatedResponse, PaginationParams
from ..database.resource_repository import (
    ResourceCreateSchema,
    ResourceRepository,
    ResourceSearchParams,
    ResourceUpdateSchema,
)
from ..database.schema import Author as AuthorDB
from ..models.resource import Resource, ResourceAvailability, StockInfo, StockStatistics
from ..observability import traced

logger = logging.getLogger(__name__)


class ResourceService:
    """Business rules for resources and their stock."""

    def __init__(self, session: Session):
        self.session = session
        self.resources = ResourceRepository(session)
        self.types = ResourceTypeRepository(session)
        self.categories = CategoryRepository(session)
        self.states = ResourceStateRepository(session)
        self.locations = LocationRepository(session)
        self.publishers = PublisherRepository(session)
        self.authors = AuthorRepository(session)

    def _check_lookup(self, repo: LookupRepository, item_id: str, label: str) -> None:
        db_obj = repo.get_db_object(item_id)
        if db_obj is None:
            raise NotFoundError(f"{label} {item_id} not found")
        if not db_obj.active:
            raise ValidationError(f"{label} '{db_obj.name}' is not active")

    def _load_authors(self, author_ids: list[str]) -> list[AuthorDB]:
        unique_ids = list(dict.fromkeys(author_ids))
        authors = self.authors.get_many(unique_ids)
        found = {a.id for a in authors}
        missing = [a for a in unique_ids if a not in found]
        if missing:
            raise NotFoundError(f"Author(s) not found: {', '.join(missing)}")
        inactive = [a.name for a in authors if not a.active]
        if inactive:
            raise ValidationError(f"Author(s) not active: {', '.join(inactive)}")
        return authors

    @traced("resources.create")
    def create(self, data: ResourceCreateSchema) -> Resource:
        """
        Add a resource to the inventory.

        Raises:
            NotFoundError: If a referenced lookup or author does not exist
            ValidationError: If a referenced lookup or author is inactive
            DuplicateError: If the ISBN is already registered
        """
        self._check_lookup(self.types, data.type_id, "Resource type")
        self._check_lookup(self.categories, data.category_id, "Category")
        self._check_lookup(self.states, data.state_id, "Resource state")
        self._check_lookup(self.locations, data.location_id, "Location")
        if data.publisher_id:
            self._check_lookup(self.publishers, data.publisher_id, "Publisher")
        authors = self._load_authors(data.author_ids)

        resource = self.resources.create(data, authors=authors)
        logger.info(
            "Resource %s created: '%s' (%d unit(s))",
            resource.id,
            resource.title,
            resource.total_quantity,
        )
        return resource

    def get(self, resource_id: str) -> Resource:
        return self.resources.get_or_raise(resource_id)

    def find_by_isbn(self, isbn: str) -> Resource:
        try:
            resource = self.resources.find_by_isbn(isbn)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if resource is None:
            raise NotFoundError(f"No resource with ISBN {isbn}")
        return resource

    @traced("resources.update")
    def update(self, resource_id: str, data: ResourceUpdateSchema) -> Resource:
        changes = data.model_dump(exclude_unset=True)
        if changes.get("category_id"):
            self._check_lookup(self.categories, data.category_id, "Category")
        if changes.get("state_id"):
            self._check_lookup(self.states, data.state_id, "Resource state")
        if changes.get("location_id"):
            self._check_lookup(self.locations, data.location_id, "Location")
        if changes.get("publisher_id"):
            self._check_lookup(self.publishers, data.publisher_id, "Publisher")
        authors = self._load_authors(data.author_ids) if data.author_ids is not None else None

        resource = self.resources.update(resource_id, data, authors=authors)
        if resource is None:
            raise NotFoundError(f"Resource {resource_id} not found")
        return resource

    def update_availability(self, resource_id: str, available: bool) -> Resource:
        resource = self.resources.update_availability(resource_id, available)
        logger.info("Resource %s marked %s", resource_id, "available" if available else "unavailable")
        return resource

    @traced("resources.update_total_quantity")
    def update_total_quantity(self, resource_id: str, total_quantity: int) -> Resource:
        resource = self.resources.update_total_quantity(resource_id, total_quantity)
        logger.info("Resource %s total quantity set to %d", resource_id, total_quantity)
        return resource

    @traced("resources.delete")
    def delete(self, resource_id: str) -> None:
        """
        Delete a resource without active loans.

        Raises:
            NotFoundError: If the resource does not exist (including a second delete)
            BusinessRuleError: If loans are still out
        """
        if not self.resources.delete(resource_id):
            raise NotFoundError(f"Resource {resource_id} not found")
        logger.info("Resource %s deleted", resource_id)

    def search(
        self, search_params: ResourceSearchParams, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[Resource]:
        return self.resources.search(search_params, pagination)

    def check_availability(self, resource_id: str) -> ResourceAvailability:
        db_resource = self.resources.get_db_object_or_raise(resource_id)
        return ResourceAvailability(
            resource_id=db_resource.id,
            can_loan=db_resource.has_stock,
            available_quantity=db_resource.available_quantity,
        )

    # Stock operations

    def stock_info(self, resource_id: str) -> StockInfo:
        return self.resources.stock_info(resource_id)

    def stock_statistics(self) -> StockStatistics:
        return self.resources.stock_statistics()

    @traced("resources.mark_as_lost")
    def mark_as_lost(self, resource_id: str, quantity: int = 1) -> Resource:
        resource = self.resources.mark_as_lost(resource_id, quantity)
        logger.info("%d unit(s) of resource %s marked lost", quantity, resource_id)
        return resource

    @traced("resources.mark_as_damaged")
    def mark_as_damaged(self, resource_id: str, quantity: int = 1) -> Resource:
        resource = self.resources.mark_as_damaged(resource_id, quantity)
        logger.info("%d unit(s) of resource %s marked damaged", quantity, resource_id)
        return resource

    @traced("resources.send_to_maintenance")
    def send_to_maintenance(self, resource_id: str, quantity: int = 1) -> Resource:
        resource = self.resources.send_to_maintenance(resource_id, quantity)
        logger.info("%d unit(s) of resource %s sent to maintenance", quantity, resource_id)
        return resource

    @traced("resources.restore_lost")
    def restore_lost(self, resource_id: str, quantity: int = 1) -> Resource:
        resource = self.resources.restore_lost(resource_id, quantity)
        logger.info("%d lost unit(s) of resource %s restored", quantity, resource_id)
        return resource

    @traced("resources.repair_damaged")
    def repair_damaged(self, resource_id: str, quantity: int = 1) -> Resource:
        resource = self.resources.repair_damaged(resource_id, quantity)
        logger.info("%d damaged unit(s) of resource %s repaired", quantity, resource_id)
        return resource

    @traced("resources.return_from_maintenance")
    def return_from_maintenance(self, resource_id: str, quantity: int = 1) -> Resource:
        resource = self.resources.return_from_maintenance(resource_id, quantity)
        logger.info("%d unit(s) of resource %s back from maintenance", quantity, resource_id)
        return resource
