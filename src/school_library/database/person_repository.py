"""
Person repository implementation for the School Library backend.

This repository manages borrowers (students and teachers):

1. **People Management**: CRUD with unique document numbers
2. **Soft Delete**: Deactivate/activate instead of removing loan history
3. **Lookups**: By document, type and grade, always sorted by name
4. **Statistics**: Head counts by type and grade
"""

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import joinedload

from ..database.schema import Person as PersonDB
from ..database.schema import PersonType as PersonTypeDB
from ..database.session import safe_commit, safe_query
from ..models.person import GradeCount, PersonStatistics, PersonTypeName
from ..models.person import Person as PersonModel
from ..models.person import PersonType as PersonTypeModel
from .repository import (
    BaseRepository,
    DuplicateError,
    PaginatedResponse,
    PaginationParams,
)


class PersonCreateSchema(BaseModel):
    """Schema for creating a person."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    document_number: str | None = Field(None, min_length=3, max_length=20, pattern=r"^[A-Za-z0-9-]+$")
    grade: str | None = Field(None, max_length=50)
    person_type_id: str

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v


class PersonUpdateSchema(BaseModel):
    """Schema for updating a person - all fields optional."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    document_number: str | None = Field(None, min_length=3, max_length=20, pattern=r"^[A-Za-z0-9-]+$")
    grade: str | None = Field(None, max_length=50)
    person_type_id: str | None = None
    active: bool | None = None


class PersonSearchParams(BaseModel):
    """Search parameters for finding people."""

    query: str | None = None  # First/last name, document or grade contains
    person_type: PersonTypeName | None = None
    grade: str | None = None
    document_number: str | None = None
    active: bool | None = None


class PersonTypeRepository(BaseRepository[PersonTypeDB, BaseModel, BaseModel, PersonTypeModel]):
    """Repository for person types (student, teacher)."""

    id_prefix = "ptype"

    @property
    def model_class(self):
        return PersonTypeDB

    @property
    def response_schema(self):
        return PersonTypeModel

    def find_by_name(self, name: str) -> PersonTypeModel | None:
        db_obj = safe_query(
            self.session,
            lambda s: s.execute(
                select(PersonTypeDB).where(PersonTypeDB.name == name.strip().lower())
            ).scalar_one_or_none(),
            "Failed to get person type by name",
        )
        return self._to_response_model(db_obj) if db_obj else None

    def create_type(self, name: str, description: str | None = None) -> PersonTypeModel:
        db_obj = PersonTypeDB(
            id=self._generate_id(), name=name.strip().lower(), description=description
        )
        self.session.add(db_obj)
        safe_commit(self.session, "create person type")
        self.session.refresh(db_obj)
        return self._to_response_model(db_obj)

    def find_all_active(self) -> list[PersonTypeModel]:
        results = safe_query(
            self.session,
            lambda s: s.execute(
                select(PersonTypeDB).where(PersonTypeDB.active.is_(True)).order_by(PersonTypeDB.name)
            )
            .scalars()
            .all(),
            "Failed to list person types",
        )
        return [self._to_response_model(r) for r in results]


class PersonRepository(BaseRepository[PersonDB, PersonCreateSchema, PersonUpdateSchema, PersonModel]):
    """
    Repository for borrowers.

    Every list is ordered by first name then last name.
    """

    id_prefix = "person"

    @property
    def model_class(self):
        return PersonDB

    @property
    def response_schema(self):
        return PersonModel

    def _to_response_model(self, db_obj: PersonDB) -> PersonModel:
        """Convert database person to Pydantic model with the type name resolved."""
        return PersonModel(
            id=db_obj.id,
            first_name=db_obj.first_name,
            last_name=db_obj.last_name,
            document_number=db_obj.document_number,
            grade=db_obj.grade,
            person_type_id=db_obj.person_type_id,
            person_type=db_obj.person_type.name if db_obj.person_type else None,
            active=db_obj.active,
            created_at=db_obj.created_at,
            updated_at=db_obj.updated_at,
        )

    def _ordered(self, query):
        return query.options(joinedload(PersonDB.person_type)).order_by(
            PersonDB.first_name, PersonDB.last_name
        )

    def _list(self, query, error_msg: str) -> list[PersonModel]:
        results = safe_query(
            self.session,
            lambda s: s.execute(self._ordered(query)).unique().scalars().all(),
            error_msg,
        )
        return [self._to_response_model(r) for r in results]

    def create(self, data: PersonCreateSchema) -> PersonModel:
        """
        Create a person.

        Raises:
            DuplicateError: If the document number is already registered
        """
        if data.document_number and self.find_db_by_document_number(data.document_number):
            raise DuplicateError(
                f"Person with document number {data.document_number} already exists"
            )

        db_person = PersonDB(id=self._generate_id(), **data.model_dump())
        self.session.add(db_person)
        safe_commit(self.session, "create person")
        self.session.refresh(db_person)
        return self._to_response_model(db_person)

    def update(self, id: str, data: PersonUpdateSchema) -> PersonModel | None:
        db_person = self.get_db_object(id)
        if db_person is None:
            return None

        changes = data.model_dump(exclude_unset=True)
        document = changes.get("document_number")
        if document:
            other = self.find_db_by_document_number(document, active_only=False)
            if other is not None and other.id != db_person.id:
                raise DuplicateError(f"Person with document number {document} already exists")

        for field, value in changes.items():
            setattr(db_person, field, value)

        safe_commit(self.session, "update person")
        self.session.refresh(db_person)
        return self._to_response_model(db_person)

    def find_db_by_document_number(
        self, document_number: str, active_only: bool = False
    ) -> PersonDB | None:
        query = select(PersonDB).where(PersonDB.document_number == document_number.strip())
        if active_only:
            query = query.where(PersonDB.active.is_(True))
        return safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to get person by document number",
        )

    def find_by_document_number(self, document_number: str) -> PersonModel | None:
        """Active person holding the document number, if any."""
        db_person = self.find_db_by_document_number(document_number, active_only=True)
        return self._to_response_model(db_person) if db_person else None

    def find_by_person_type(self, person_type: PersonTypeName | str) -> list[PersonModel]:
        name = PersonTypeName(person_type).value
        query = (
            select(PersonDB)
            .join(PersonTypeDB)
            .where(and_(PersonTypeDB.name == name, PersonDB.active.is_(True)))
        )
        return self._list(query, "Failed to get people by type")

    def find_by_grade(self, grade: str) -> list[PersonModel]:
        query = select(PersonDB).where(and_(PersonDB.grade == grade, PersonDB.active.is_(True)))
        return self._list(query, "Failed to get people by grade")

    def find_active(self) -> list[PersonModel]:
        return self._list(select(PersonDB).where(PersonDB.active.is_(True)), "Failed to get active people")

    def search(
        self,
        search_params: PersonSearchParams,
        pagination: PaginationParams | None = None,
    ) -> PaginatedResponse[PersonModel]:
        """
        Search people with filters.

        Args:
            search_params: Free text and field filters
            pagination: Pagination parameters

        Returns:
            Paginated people sorted by name
        """
        filters = []

        if search_params.query:
            term = f"%{search_params.query.strip()}%"
            filters.append(
                or_(
                    PersonDB.first_name.ilike(term),
                    PersonDB.last_name.ilike(term),
                    PersonDB.document_number.ilike(term),
                    PersonDB.grade.ilike(term),
                )
            )
        if search_params.grade:
            filters.append(PersonDB.grade == search_params.grade)
        if search_params.document_number:
            filters.append(PersonDB.document_number == search_params.document_number)
        if search_params.active is not None:
            filters.append(PersonDB.active.is_(search_params.active))

        query = select(PersonDB)
        if search_params.person_type:
            query = query.join(PersonTypeDB).where(
                PersonTypeDB.name == PersonTypeName(search_params.person_type).value
            )
        if filters:
            query = query.where(and_(*filters))

        return self._paginate(self._ordered(query), pagination)

    def count_by_person_type(self, person_type: PersonTypeName | str) -> int:
        name = PersonTypeName(person_type).value
        return (
            safe_query(
                self.session,
                lambda s: s.execute(
                    select(func.count())
                    .select_from(PersonDB)
                    .join(PersonTypeDB)
                    .where(and_(PersonTypeDB.name == name, PersonDB.active.is_(True)))
                ).scalar(),
                "Failed to count people by type",
            )
            or 0
        )

    def count_by_grade(self) -> list[GradeCount]:
        rows = safe_query(
            self.session,
            lambda s: s.execute(
                select(PersonDB.grade, func.count())
                .where(and_(PersonDB.active.is_(True), PersonDB.grade.is_not(None)))
                .group_by(PersonDB.grade)
                .order_by(PersonDB.grade)
            ).all(),
            "Failed to count people by grade",
        )
        return [GradeCount(grade=grade, count=count) for grade, count in rows]

    def get_statistics(self) -> PersonStatistics:
        total = (
            safe_query(
                self.session,
                lambda s: s.execute(
                    select(func.count()).select_from(PersonDB).where(PersonDB.active.is_(True))
                ).scalar(),
                "Failed to count people",
            )
            or 0
        )
        return PersonStatistics(
            total=total,
            students=self.count_by_person_type(PersonTypeName.STUDENT),
            teachers=self.count_by_person_type(PersonTypeName.TEACHER),
            by_grade=self.count_by_grade(),
        )

    def set_active(self, id: str, active: bool) -> PersonModel:
        """Soft delete (active=False) or restore a person."""
        db_person = self.get_db_object_or_raise(id)
        db_person.active = active
        safe_commit(self.session, "activate person" if active else "deactivate person")
        self.session.refresh(db_person)
        return self._to_response_model(db_person)
