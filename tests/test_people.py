"""Tests for borrower management."""

import pytest

from school_library.database import (
    BusinessRuleError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from school_library.database.loan_repository import LoanCreateSchema
from school_library.database.person_repository import PersonCreateSchema, PersonUpdateSchema
from school_library.database.repository import generate_id
from school_library.services.person_service import PersonService


@pytest.fixture
def people(session) -> PersonService:
    return PersonService(session)


class TestPersonLifecycle:
    def test_create(self, make_person):
        person = make_person(first_name="  Juan ", last_name="Perez", document_number="1000123456")

        assert person.id.startswith("person_")
        assert person.first_name == "Juan"
        assert person.full_name == "Juan Perez"
        assert person.person_type == "student"
        assert person.active is True

    def test_create_with_unknown_type(self, people):
        with pytest.raises(NotFoundError):
            people.create(
                PersonCreateSchema(
                    first_name="Ana", last_name="Ruiz", person_type_id=generate_id("ptype")
                )
            )

    def test_update(self, people, person, reference):
        updated = people.update(
            person.id, PersonUpdateSchema(grade=None, person_type_id=reference["teacher"])
        )

        assert updated.grade is None
        assert updated.person_type == "teacher"
        assert updated.first_name == person.first_name

    def test_update_missing(self, people):
        with pytest.raises(NotFoundError):
            people.update(generate_id("person"), PersonUpdateSchema(grade="3A"))

    def test_deactivate_and_activate(self, people, person):
        assert people.deactivate(person.id).active is False
        with pytest.raises(NotFoundError):
            people.find_by_document_number(person.document_number)

        assert people.activate(person.id).active is True
        assert people.find_by_document_number(person.document_number).id == person.id

    def test_delete_without_loans(self, people, person):
        people.delete(person.id)

        with pytest.raises(NotFoundError):
            people.get(person.id)

    def test_delete_with_loans_refused(self, people, loan_service, person, resource):
        loan = loan_service.create(LoanCreateSchema(person_id=person.id, resource_id=resource.id))
        loan_service.return_loan(loan.id)

        with pytest.raises(BusinessRuleError, match="deactivate"):
            people.delete(person.id)


class TestPersonQueries:
    def test_find_by_type_and_grade(self, people, make_person):
        make_person(first_name="Ana", grade="3A")
        make_person(first_name="Bruno", grade="4B")
        make_person(first_name="Carla", teacher=True)

        assert [p.first_name for p in people.find_by_type("student")] == ["Ana", "Bruno"]
        assert [p.first_name for p in people.find_by_type("teacher")] == ["Carla"]
        assert [p.first_name for p in people.find_by_grade("4B")] == ["Bruno"]
        assert people.count_by_type("student") == 2

    def test_unknown_type(self, people):
        with pytest.raises(ValidationError):
            people.find_by_type("parent")

    def test_inactive_people_hidden(self, people, make_person):
        active = make_person(first_name="Ana")
        hidden = make_person(first_name="Beto")
        people.deactivate(hidden.id)

        assert [p.id for p in people.find_active()] == [active.id]
        assert people.statistics().total == 1

    def test_person_types(self, people, reference):
        assert [t.name for t in people.person_types_list()] == ["student", "teacher"]

    def test_document_numbers_unique_across_inactive(self, people, make_person):
        person = make_person(document_number="ABC-123")
        people.deactivate(person.id)

        with pytest.raises(DuplicateError):
            make_person(document_number="ABC-123")

        reactivated = people.activate(person.id)
        assert reactivated.active is True
        assert people.find_by_document_number("ABC-123").id == person.id
