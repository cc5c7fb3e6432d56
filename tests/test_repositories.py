"""
Tests for the repository layer.

These cover the contracts every repository shares (generated ids, id
validation, None/False on missing rows) and the rules specific to the
lookup, person and resource repositories.
"""

import pytest

from school_library.database import (
    AuthorRepository,
    BusinessRuleError,
    CategoryRepository,
    DuplicateError,
    NotFoundError,
    PaginationParams,
    PersonRepository,
    ResourceRepository,
    ResourceTypeRepository,
    ValidationError,
)
from school_library.database.catalog_repository import (
    ColoredLookupCreateSchema,
    ColoredLookupUpdateSchema,
    LookupCreateSchema,
    ResourceTypeCreateSchema,
)
from school_library.database.person_repository import PersonSearchParams, PersonUpdateSchema
from school_library.database.repository import generate_id, validate_id
from school_library.database.resource_repository import (
    ResourceCreateSchema,
    ResourceSearchParams,
    normalize_isbn,
)


class TestIds:
    def test_generate_id(self):
        new_id = generate_id("loan")
        assert new_id.startswith("loan_")
        assert len(new_id) == len("loan_") + 16
        assert validate_id(new_id, "loan") == new_id

    @pytest.mark.parametrize(
        "value",
        ["", "loan", "loan_", "loan_abc", "Loan_0123456789abcdef", "person_0123456789abcdef", "loan_01234-6789"],
    )
    def test_malformed_ids_rejected(self, value):
        with pytest.raises(ValidationError):
            validate_id(value, "loan")


class TestBaseContracts:
    """Shared CRUD behavior, exercised through the category repository."""

    def test_create_generates_prefixed_id(self, session):
        repo = CategoryRepository(session)
        category = repo.create(ColoredLookupCreateSchema(name="Ciencias", color="#00ff00"))

        assert category.id.startswith("category_")
        assert category.name == "Ciencias"
        assert category.active is True

    def test_get_by_id_missing_returns_none(self, session):
        repo = CategoryRepository(session)
        assert repo.get_by_id(generate_id("category")) is None

    def test_get_or_raise_missing(self, session):
        with pytest.raises(NotFoundError):
            CategoryRepository(session).get_or_raise(generate_id("category"))

    def test_malformed_id_is_a_validation_error(self, session):
        repo = CategoryRepository(session)
        with pytest.raises(ValidationError):
            repo.get_by_id("not-an-id")
        with pytest.raises(ValidationError):
            repo.update("category_$$$", ColoredLookupUpdateSchema(name="Otra"))
        with pytest.raises(ValidationError):
            repo.delete("person_0123456789abcdef")

    def test_update_missing_returns_none(self, session):
        repo = CategoryRepository(session)
        assert repo.update(generate_id("category"), ColoredLookupUpdateSchema(name="Otra")) is None

    def test_update_only_touches_set_fields(self, session):
        repo = CategoryRepository(session)
        category = repo.create(
            ColoredLookupCreateSchema(name="Historia", description="Libros de historia")
        )

        updated = repo.update(category.id, ColoredLookupUpdateSchema(color="#112233"))

        assert updated.color == "#112233"
        assert updated.name == "Historia"
        assert updated.description == "Libros de historia"

    def test_delete_twice(self, session):
        repo = CategoryRepository(session)
        category = repo.create(ColoredLookupCreateSchema(name="Arte"))

        assert repo.delete(category.id) is True
        assert repo.delete(category.id) is False
        assert repo.exists(category.id) is False

    def test_get_all_paginated(self, session):
        repo = CategoryRepository(session)
        for name in ["Arte", "Biologia", "Cuentos", "Deportes", "Economia"]:
            repo.create(ColoredLookupCreateSchema(name=name))

        page = repo.get_all(PaginationParams(page=2, page_size=2), order_by="name")

        assert page.total == 5
        assert page.total_pages == 3
        assert [c.name for c in page.items] == ["Cuentos", "Deportes"]
        assert page.has_next is True
        assert page.has_previous is True

    def test_invalid_pagination(self, session):
        with pytest.raises(ValidationError):
            CategoryRepository(session).get_all(PaginationParams(page=0))
        with pytest.raises(ValidationError):
            CategoryRepository(session).get_all(PaginationParams(page_size=101))


class TestLookupRepositories:
    def test_names_are_unique_case_insensitive(self, session):
        repo = CategoryRepository(session)
        repo.create(ColoredLookupCreateSchema(name="Poesia"))

        with pytest.raises(DuplicateError):
            repo.create(ColoredLookupCreateSchema(name="POESIA"))

    def test_find_by_name_ignores_inactive(self, session):
        repo = CategoryRepository(session)
        category = repo.create(ColoredLookupCreateSchema(name="Teatro"))
        assert repo.find_by_name("teatro").id == category.id

        repo.update(category.id, ColoredLookupUpdateSchema(active=False))

        assert repo.find_by_name("teatro") is None
        assert category.id not in [c.id for c in repo.find_all_active()]

    def test_referenced_category_cannot_be_deleted(self, session, reference, make_resource):
        make_resource()

        with pytest.raises(BusinessRuleError, match="used by 1 resource"):
            CategoryRepository(session).delete(reference["category"])

    def test_system_resource_type_is_protected(self, session, reference):
        repo = ResourceTypeRepository(session)

        with pytest.raises(BusinessRuleError, match="System resource type"):
            repo.delete(reference["book"])

    def test_custom_resource_type(self, session, reference):
        repo = ResourceTypeRepository(session)
        custom = repo.create(ResourceTypeCreateSchema(name="  Revista "))

        assert custom.name == "revista"
        assert custom.is_system is False
        assert [t.name for t in repo.custom_types()] == ["revista"]
        assert sorted(t.name for t in repo.system_types()) == ["bible", "book", "game", "map"]
        assert repo.delete(custom.id) is True

    def test_author_references_go_through_association(self, session, make_resource):
        authors = AuthorRepository(session)
        author = authors.create(LookupCreateSchema(name="Gabriel Garcia Marquez"))
        resource = make_resource(author_ids=[author.id])

        assert resource.author_names == ["Gabriel Garcia Marquez"]
        with pytest.raises(BusinessRuleError):
            authors.delete(author.id)

    def test_get_many_validates_ids(self, session):
        with pytest.raises(ValidationError):
            AuthorRepository(session).get_many(["author_0123456789abcdef", "bogus"])


class TestPersonRepository:
    def test_document_number_unique(self, session, reference, make_person):
        make_person(document_number="CC-100")

        with pytest.raises(DuplicateError):
            make_person(document_number="CC-100")

    def test_update_to_taken_document(self, session, make_person):
        first = make_person(document_number="CC-200")
        second = make_person(document_number="CC-201")

        with pytest.raises(DuplicateError):
            PersonRepository(session).update(
                second.id, PersonUpdateSchema(document_number=first.document_number)
            )

    def test_search_sorted_by_name(self, session, make_person):
        make_person(first_name="Zoe", last_name="Alvarez")
        make_person(first_name="Ana", last_name="Ruiz")
        make_person(first_name="Mario", last_name="Ruiz", teacher=True)

        page = PersonRepository(session).search(PersonSearchParams(query="ruiz"))
        assert [p.full_name for p in page.items] == ["Ana Ruiz", "Mario Ruiz"]

        teachers = PersonRepository(session).search(PersonSearchParams(person_type="teacher"))
        assert [p.first_name for p in teachers.items] == ["Mario"]

    def test_statistics(self, session, make_person):
        make_person(grade="5A")
        make_person(grade="5A")
        make_person(grade="6B")
        make_person(teacher=True)

        stats = PersonRepository(session).get_statistics()

        assert stats.total == 4
        assert stats.students == 3
        assert stats.teachers == 1
        assert [(g.grade, g.count) for g in stats.by_grade] == [("5A", 2), ("6B", 1)]


class TestResourceRepository:
    @pytest.mark.parametrize(
        ("raw", "normalized"),
        [
            ("9780307474728", "9780307474728"),
            ("ISBN-13: 978-0-306-40615-7", "978-0-306-40615-7"),
            ("0306406152", "0306406152"),
            ("ISBN 0-306-40615-2", "0-306-40615-2"),
            ("   ", None),
        ],
    )
    def test_normalize_isbn(self, raw, normalized):
        assert normalize_isbn(raw) == normalized

    @pytest.mark.parametrize("raw", ["12345", "978030647472X", "abc-def-ghij"])
    def test_invalid_isbn(self, raw):
        with pytest.raises(ValueError):
            normalize_isbn(raw)

    def test_duplicate_isbn(self, session, reference, resource):
        with pytest.raises(DuplicateError):
            ResourceRepository(session).create(
                ResourceCreateSchema(
                    title="Otra edicion",
                    isbn=resource.isbn,
                    type_id=reference["book"],
                    category_id=reference["category"],
                    state_id=reference["good"],
                    location_id=reference["location"],
                )
            )

    def test_new_resource_stock(self, resource):
        assert resource.total_quantity == 3
        assert resource.current_loans_count == 0
        assert resource.available_quantity == 3
        assert resource.has_stock is True
        assert resource.type_name == "book"

    def test_search(self, session, make_resource):
        make_resource(title="El principito")
        make_resource(title="Principios de fisica", available=False)
        make_resource(title="Atlas universal")

        repo = ResourceRepository(session)
        assert [r.title for r in repo.search(ResourceSearchParams(query="princip")).items] == [
            "El principito",
            "Principios de fisica",
        ]
        in_stock = repo.search(ResourceSearchParams(has_stock=True))
        assert [r.title for r in in_stock.items] == ["Atlas universal", "El principito"]

    def test_delete_missing(self, session):
        assert ResourceRepository(session).delete(generate_id("resource")) is False
