"""Borrower management: students and teachers."""

import logging

from sqlalchemy.orm import Session

from ..database.errors import BusinessRuleError, NotFoundError, ValidationError
from ..database.person_repository import (
    PersonCreateSchema,
    PersonRepository,
    PersonSearchParams,
    PersonTypeRepository,
    PersonUpdateSchema,
)
from ..database.repository import PaginatedResponse, PaginationParams
from ..models.person import GradeCount, Person, PersonStatistics, PersonType, PersonTypeName
from ..observability import traced

logger = logging.getLogger(__name__)


class PersonService:
    """Business rules for people on top of the person repositories."""

    def __init__(self, session: Session):
        self.session = session
        self.people = PersonRepository(session)
        self.person_types = PersonTypeRepository(session)

    def _check_person_type(self, person_type_id: str) -> None:
        db_type = self.person_types.get_db_object(person_type_id)
        if db_type is None:
            raise NotFoundError(f"Person type {person_type_id} not found")
        if not db_type.active:
            raise ValidationError(f"Person type '{db_type.name}' is not active")

    @traced("people.create")
    def create(self, data: PersonCreateSchema) -> Person:
        """
        Register a person.

        Raises:
            NotFoundError: If the person type does not exist
            ValidationError: If the person type is inactive
            DuplicateError: If the document number is already registered
        """
        self._check_person_type(data.person_type_id)
        person = self.people.create(data)
        logger.info("Person %s created (%s)", person.id, person.person_type)
        return person

    def get(self, person_id: str) -> Person:
        return self.people.get_or_raise(person_id)

    def update(self, person_id: str, data: PersonUpdateSchema) -> Person:
        if data.person_type_id is not None:
            self._check_person_type(data.person_type_id)
        person = self.people.update(person_id, data)
        if person is None:
            raise NotFoundError(f"Person {person_id} not found")
        return person

    def delete(self, person_id: str) -> None:
        """
        Remove a person with no loan history.

        People with loans are deactivated instead, so history stays intact.

        Raises:
            BusinessRuleError: If the person has loans
        """
        db_person = self.people.get_db_object_or_raise(person_id)
        if db_person.loans:
            raise BusinessRuleError(
                f"{db_person.full_name} has loan history; deactivate the person instead"
            )
        self.people.delete(person_id)
        logger.info("Person %s deleted", person_id)

    def deactivate(self, person_id: str) -> Person:
        person = self.people.set_active(person_id, False)
        logger.info("Person %s deactivated", person_id)
        return person

    def activate(self, person_id: str) -> Person:
        person = self.people.set_active(person_id, True)
        logger.info("Person %s activated", person_id)
        return person

    def find_by_document_number(self, document_number: str) -> Person:
        person = self.people.find_by_document_number(document_number)
        if person is None:
            raise NotFoundError(f"No active person with document number {document_number}")
        return person

    def find_by_type(self, person_type: PersonTypeName | str) -> list[Person]:
        return self.people.find_by_person_type(self._type_name(person_type))

    def find_by_grade(self, grade: str) -> list[Person]:
        return self.people.find_by_grade(grade)

    def find_active(self) -> list[Person]:
        return self.people.find_active()

    def search(
        self, search_params: PersonSearchParams, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[Person]:
        return self.people.search(search_params, pagination)

    def statistics(self) -> PersonStatistics:
        return self.people.get_statistics()

    def count_by_type(self, person_type: PersonTypeName | str) -> int:
        return self.people.count_by_person_type(self._type_name(person_type))

    def count_by_grade(self) -> list[GradeCount]:
        return self.people.count_by_grade()

    def person_types_list(self) -> list[PersonType]:
        return self.person_types.find_all_active()

    @staticmethod
    def _type_name(person_type: PersonTypeName | str) -> PersonTypeName:
        try:
            return PersonTypeName(person_type)
        except ValueError as e:
            raise ValidationError(f"Unknown person type: {person_type}") from e
