"""Catalog lookups: resource types, categories, locations, authors, publishers, states."""

import logging

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database.catalog_repository import (
    LOOKUP_REPOSITORIES,
    ColoredLookupCreateSchema,
    ColoredLookupUpdateSchema,
    LocationCreateSchema,
    LocationUpdateSchema,
    LookupCreateSchema,
    LookupRepository,
    LookupUpdateSchema,
    ResourceTypeCreateSchema,
    ResourceTypeRepository,
)
from ..database.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

#: Create and update schemas per lookup kind
LOOKUP_SCHEMAS: dict[str, tuple[type[BaseModel], type[BaseModel]]] = {
    "resource-types": (ResourceTypeCreateSchema, LookupUpdateSchema),
    "categories": (ColoredLookupCreateSchema, ColoredLookupUpdateSchema),
    "locations": (LocationCreateSchema, LocationUpdateSchema),
    "authors": (LookupCreateSchema, LookupUpdateSchema),
    "publishers": (LookupCreateSchema, LookupUpdateSchema),
    "resource-states": (ColoredLookupCreateSchema, ColoredLookupUpdateSchema),
}


class CatalogService:
    """CRUD over one lookup table, selected by ``kind`` (e.g. ``categories``)."""

    def __init__(self, session: Session, kind: str):
        if kind not in LOOKUP_REPOSITORIES:
            raise ValidationError(f"Unknown catalog: {kind}")
        self.session = session
        self.kind = kind
        self.repo: LookupRepository = LOOKUP_REPOSITORIES[kind](session)

    @property
    def create_schema(self) -> type[BaseModel]:
        return LOOKUP_SCHEMAS[self.kind][0]

    @property
    def update_schema(self) -> type[BaseModel]:
        return LOOKUP_SCHEMAS[self.kind][1]

    def create(self, payload: dict):
        data = self.create_schema.model_validate(payload)
        item = self.repo.create(data)
        logger.info("%s %s created: %s", self.kind, item.id, item.name)
        return item

    def get(self, item_id: str):
        return self.repo.get_or_raise(item_id)

    def list_all(self) -> list:
        return self.repo.get_all(order_by="name")

    def find_all_active(self) -> list:
        return self.repo.find_all_active()

    def find_by_name(self, name: str):
        item = self.repo.find_by_name(name)
        if item is None:
            raise NotFoundError(f"No active {self.kind} entry named '{name}'")
        return item

    def update(self, item_id: str, payload: dict):
        data = self.update_schema.model_validate(payload)
        item = self.repo.update(item_id, data)
        if item is None:
            raise NotFoundError(f"{self.kind} entry {item_id} not found")
        return item

    def delete(self, item_id: str) -> None:
        """
        Delete an unused lookup row.

        Raises:
            NotFoundError: If the row does not exist
            BusinessRuleError: If resources reference it or it is a system type
        """
        if not self.repo.delete(item_id):
            raise NotFoundError(f"{self.kind} entry {item_id} not found")
        logger.info("%s %s deleted", self.kind, item_id)

    def system_types(self) -> list:
        return self._resource_types().system_types()

    def custom_types(self) -> list:
        return self._resource_types().custom_types()

    def _resource_types(self) -> ResourceTypeRepository:
        if not isinstance(self.repo, ResourceTypeRepository):
            raise ValidationError("Only resource types distinguish system and custom entries")
        return self.repo
