"""
Catalog lookup repositories.

Resource types, categories, locations, authors, publishers and resource
states are small named tables that resources point to. They share one
implementation: CRUD, case-insensitive lookup by name, active listing and a
reference check so a row in use cannot be deleted.
"""

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func, select

from ..database.schema import Author as AuthorDB
from ..database.schema import Category as CategoryDB
from ..database.schema import Location as LocationDB
from ..database.schema import Publisher as PublisherDB
from ..database.schema import Resource as ResourceDB
from ..database.schema import ResourceState as ResourceStateDB
from ..database.schema import ResourceType as ResourceTypeDB
from ..database.schema import resource_authors
from ..database.session import safe_query
from ..models.catalog import Author, Category, Location, Publisher, ResourceState, ResourceType
from .repository import BaseRepository, BusinessRuleError, DuplicateError


class LookupCreateSchema(BaseModel):
    """Fields every lookup accepts on creation."""

    name: str = Field(..., min_length=2, max_length=100)
    description: str | None = Field(None, max_length=200)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class LookupUpdateSchema(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=100)
    description: str | None = Field(None, max_length=200)
    active: bool | None = None


class ResourceTypeCreateSchema(LookupCreateSchema):
    name: str = Field(..., min_length=2, max_length=50)
    is_system: bool = False

    @field_validator("name")
    @classmethod
    def lowercase_name(cls, v: str) -> str:
        return v.strip().lower()


class ColoredLookupCreateSchema(LookupCreateSchema):
    color: str = Field("#6c757d", pattern=r"^#[0-9A-Fa-f]{6}$")


class ColoredLookupUpdateSchema(LookupUpdateSchema):
    color: str | None = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")


class LocationCreateSchema(LookupCreateSchema):
    code: str | None = Field(None, max_length=20)


class LocationUpdateSchema(LookupUpdateSchema):
    code: str | None = Field(None, max_length=20)


class LookupRepository(BaseRepository):
    """
    Shared implementation for the lookup tables.

    Subclasses set ``id_prefix``, ``db_model``, ``schema`` and the resource
    column that references them (``reference_column``).
    """

    db_model: type = None  # type: ignore[assignment]
    schema: type[BaseModel] = None  # type: ignore[assignment]
    reference_column = None

    @property
    def model_class(self):
        return self.db_model

    @property
    def response_schema(self):
        return self.schema

    def create(self, data: LookupCreateSchema):
        """
        Create a lookup row.

        Raises:
            DuplicateError: If the name is already taken (case-insensitive)
        """
        if self.find_db_by_name(data.name, active_only=False) is not None:
            raise DuplicateError(f"{self.db_model.__name__} '{data.name}' already exists")
        return super().create(data)

    def update(self, id: str, data: LookupUpdateSchema):
        if data.name:
            other = self.find_db_by_name(data.name, active_only=False)
            if other is not None and other.id != id:
                raise DuplicateError(f"{self.db_model.__name__} '{data.name}' already exists")
        return super().update(id, data)

    def find_db_by_name(self, name: str, active_only: bool = True):
        query = select(self.db_model).where(func.lower(self.db_model.name) == name.strip().lower())
        if active_only:
            query = query.where(self.db_model.active.is_(True))
        return safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"Failed to get {self.db_model.__name__} by name",
        )

    def find_by_name(self, name: str):
        """Active row whose name matches case-insensitively."""
        db_obj = self.find_db_by_name(name)
        return self._to_response_model(db_obj) if db_obj else None

    def find_all_active(self) -> list:
        results = safe_query(
            self.session,
            lambda s: s.execute(
                select(self.db_model)
                .where(self.db_model.active.is_(True))
                .order_by(self.db_model.name)
            )
            .scalars()
            .all(),
            f"Failed to list {self.db_model.__name__}",
        )
        return [self._to_response_model(r) for r in results]

    def is_active(self, id: str) -> bool:
        db_obj = self.get_db_object(id)
        return db_obj is not None and bool(db_obj.active)

    def count_references(self, id: str) -> int:
        """Number of resources pointing at this row."""
        if self.reference_column is None:
            return 0
        return (
            safe_query(
                self.session,
                lambda s: s.execute(
                    select(func.count()).select_from(ResourceDB).where(self.reference_column == id)
                ).scalar(),
                f"Failed to count resources using {self.db_model.__name__}",
            )
            or 0
        )

    def delete(self, id: str) -> bool:
        """
        Delete a lookup row that no resource references.

        Raises:
            BusinessRuleError: If resources still reference the row
        """
        db_obj = self.get_db_object(id)
        if db_obj is None:
            return False
        in_use = self.count_references(id)
        if in_use:
            raise BusinessRuleError(
                f"{self.db_model.__name__} '{db_obj.name}' is used by {in_use} resource(s)"
            )
        return super().delete(id)


class ResourceTypeRepository(LookupRepository):
    """Resource types; the seeded system types (book, game, map, bible) are protected."""

    id_prefix = "rtype"
    db_model = ResourceTypeDB
    schema = ResourceType
    reference_column = ResourceDB.type_id

    def system_types(self) -> list[ResourceType]:
        return [t for t in self.find_all_active() if t.is_system]

    def custom_types(self) -> list[ResourceType]:
        return [t for t in self.find_all_active() if not t.is_system]

    def delete(self, id: str) -> bool:
        db_obj = self.get_db_object(id)
        if db_obj is not None and db_obj.is_system:
            raise BusinessRuleError(f"System resource type '{db_obj.name}' cannot be deleted")
        return super().delete(id)


class CategoryRepository(LookupRepository):
    id_prefix = "category"
    db_model = CategoryDB
    schema = Category
    reference_column = ResourceDB.category_id


class LocationRepository(LookupRepository):
    id_prefix = "location"
    db_model = LocationDB
    schema = Location
    reference_column = ResourceDB.location_id


class PublisherRepository(LookupRepository):
    id_prefix = "publisher"
    db_model = PublisherDB
    schema = Publisher
    reference_column = ResourceDB.publisher_id


class ResourceStateRepository(LookupRepository):
    id_prefix = "rstate"
    db_model = ResourceStateDB
    schema = ResourceState
    reference_column = ResourceDB.state_id


class AuthorRepository(LookupRepository):
    """Authors are linked through the resource_authors association table."""

    id_prefix = "author"
    db_model = AuthorDB
    schema = Author

    def count_references(self, id: str) -> int:
        return (
            safe_query(
                self.session,
                lambda s: s.execute(
                    select(func.count())
                    .select_from(resource_authors)
                    .where(resource_authors.c.author_id == id)
                ).scalar(),
                "Failed to count resources by author",
            )
            or 0
        )

    def get_many(self, ids: list[str]) -> list[AuthorDB]:
        for author_id in ids:
            self.validate_id(author_id)
        if not ids:
            return []
        return list(
            safe_query(
                self.session,
                lambda s: s.execute(select(AuthorDB).where(AuthorDB.id.in_(ids))).scalars().all(),
                "Failed to get authors",
            )
        )


LOOKUP_REPOSITORIES: dict[str, type[LookupRepository]] = {
    "resource-types": ResourceTypeRepository,
    "categories": CategoryRepository,
    "locations": LocationRepository,
    "authors": AuthorRepository,
    "publishers": PublisherRepository,
    "resource-states": ResourceStateRepository,
}


