"""
Database seeding and maintenance.

Reference data (person types, system resource types, resource states and the
default system configuration) is required by every installation. Sample data
generated with Faker is for development databases only: people, inventory and
a loan history covering every loan status.
"""

import logging
import random
import re
from datetime import datetime, timedelta

from faker import Faker
from pydantic import BaseModel
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from ..database.catalog_repository import (
    AuthorRepository,
    CategoryRepository,
    ColoredLookupCreateSchema,
    LocationCreateSchema,
    LocationRepository,
    LookupCreateSchema,
    PublisherRepository,
    ResourceStateRepository,
    ResourceTypeCreateSchema,
    ResourceTypeRepository,
)
from ..database.errors import RepositoryException
from ..database.loan_repository import LoanCreateSchema, LoanRepository
from ..database.person_repository import PersonCreateSchema, PersonTypeRepository
from ..database.resource_repository import ResourceCreateSchema, ResourceRepository
from ..database.schema import (
    Author,
    Category,
    Loan,
    Location,
    Person,
    PersonType,
    Publisher,
    Resource,
    ResourceState,
    ResourceType,
    SystemConfig,
    User,
    resource_authors,
)
from ..database.session import safe_commit
from ..database.user_repository import UserCreateSchema
from ..models.catalog import ResourceStateName, SystemResourceType
from ..models.person import PersonTypeName
from ..models.user import User as UserModel
from ..models.user import UserRole
from .loan_service import LoanService
from .person_service import PersonService
from .resource_service import ResourceService
from .system_config_service import SystemConfigService
from .user_service import UserService

logger = logging.getLogger(__name__)

#: Characters not allowed in usernames
USERNAME_STRIP = re.compile(r"[^A-Za-z0-9_.-]")

PERSON_TYPES = {
    PersonTypeName.STUDENT: "Estudiante",
    PersonTypeName.TEACHER: "Docente",
}

SYSTEM_RESOURCE_TYPES = {
    SystemResourceType.BOOK: "Libros",
    SystemResourceType.GAME: "Juegos didácticos",
    SystemResourceType.MAP: "Mapas",
    SystemResourceType.BIBLE: "Biblias",
}

RESOURCE_STATES = {
    ResourceStateName.GOOD: ("Buen estado", "#28a745"),
    ResourceStateName.DETERIORATED: ("Deteriorado", "#ffc107"),
    ResourceStateName.DAMAGED: ("Dañado", "#fd7e14"),
    ResourceStateName.LOST: ("Perdido", "#dc3545"),
}

SAMPLE_CATEGORIES = [
    ("Literatura", "#007bff"),
    ("Ciencias", "#28a745"),
    ("Historia", "#6f42c1"),
    ("Matemáticas", "#fd7e14"),
    ("Geografía", "#20c997"),
    ("Arte", "#e83e8c"),
]

SAMPLE_LOCATIONS = [
    ("Estante A", "EST-A"),
    ("Estante B", "EST-B"),
    ("Estante C", "EST-C"),
    ("Sala de lectura", "SALA-1"),
]

SAMPLE_GRADES = ["1°", "2°", "3°", "4°", "5°", "6°", "7°", "8°", "9°", "10°", "11°"]

# Tables in the order they can be emptied without breaking foreign keys
CLEAR_ORDER = [
    Loan,
    resource_authors,
    Resource,
    Author,
    Publisher,
    Category,
    Location,
    ResourceState,
    ResourceType,
    Person,
    PersonType,
    SystemConfig,
    User,
]


class SeedSummary(BaseModel):
    person_types: int = 0
    resource_types: int = 0
    resource_states: int = 0
    system_config: bool = False
    admin_created: bool = False


class SampleDataSummary(BaseModel):
    categories: int = 0
    locations: int = 0
    authors: int = 0
    publishers: int = 0
    people: int = 0
    resources: int = 0
    loans: int = 0
    loans_by_status: dict[str, int] = {}


class IntegrityReport(BaseModel):
    """Result of ``verify_integrity``."""

    dangling_loans: list[str] = []
    out_of_sync_resources: list[str] = []

    @property
    def ok(self) -> bool:
        return not self.dangling_loans and not self.out_of_sync_resources


def generate_isbn13(rng: random.Random) -> str:
    """Generate a valid ISBN-13 number."""
    digits = f"978{rng.randint(0, 9)}{rng.randint(1000, 9999)}{rng.randint(1000, 9999)}"
    total = sum(int(d) * (3 if i % 2 else 1) for i, d in enumerate(digits))
    return f"{digits}{(10 - total % 10) % 10}"


# ----------------------------------------------------------------------
# Reference data
# ----------------------------------------------------------------------


def seed_reference_data(session: Session) -> SeedSummary:
    """
    Create the lookups every installation needs; existing rows are kept.

    Safe to run repeatedly.
    """
    summary = SeedSummary()

    person_types = PersonTypeRepository(session)
    for name, description in PERSON_TYPES.items():
        if person_types.find_by_name(name.value) is None:
            person_types.create_type(name.value, description)
            summary.person_types += 1

    resource_types = ResourceTypeRepository(session)
    for name, description in SYSTEM_RESOURCE_TYPES.items():
        if resource_types.find_db_by_name(name.value, active_only=False) is None:
            resource_types.create(
                ResourceTypeCreateSchema(name=name.value, description=description, is_system=True)
            )
            summary.resource_types += 1

    states = ResourceStateRepository(session)
    for name, (description, color) in RESOURCE_STATES.items():
        if states.find_db_by_name(name.value, active_only=False) is None:
            states.create(
                ColoredLookupCreateSchema(name=name.value, description=description, color=color)
            )
            summary.resource_states += 1

    SystemConfigService(session).initialize_default_config()
    summary.system_config = True

    logger.info(
        "Reference data seeded: %d person type(s), %d resource type(s), %d state(s)",
        summary.person_types,
        summary.resource_types,
        summary.resource_states,
    )
    return summary


def ensure_admin(session: Session, email: str | None, password: str | None) -> UserModel | None:
    """
    Create the bootstrap administrator when no admin exists yet.

    Returns:
        The new admin, or None when an admin already exists or no
        credentials were configured
    """
    users = UserService(session)
    if users.has_admin_user():
        logger.info("Admin user already present, skipping bootstrap")
        return None
    if not email or not password:
        logger.warning("No admin user exists and no admin credentials are configured")
        return None

    local_part = email.split("@", 1)[0].replace("+", ".")
    username = USERNAME_STRIP.sub("", local_part)[:50]
    if len(username) < 3:
        username = f"{username}_admin"
    admin = users.create(
        UserCreateSchema(
            email=email,
            username=username,
            password=password,
            first_name="Administrador",
            last_name="Sistema",
            role=UserRole.ADMIN,
        )
    )
    logger.info("Bootstrap admin %s created", admin.email)
    return admin


# ----------------------------------------------------------------------
# Sample data
# ----------------------------------------------------------------------


def generate_sample_data(
    session: Session,
    num_people: int = 40,
    num_resources: int = 60,
    num_loans: int = 80,
    seed: int = 42,
    loaned_by: str | None = None,
) -> SampleDataSummary:
    """
    Fill a development database with realistic data.

    Loans are created through the loan service so stock counters match the
    loans; a share of them is then returned, lost or pushed into the past
    to become overdue.
    """
    fake = Faker("es_ES")
    Faker.seed(seed)
    rng = random.Random(seed)
    summary = SampleDataSummary()

    categories = CategoryRepository(session)
    category_ids = []
    for name, color in SAMPLE_CATEGORIES:
        existing = categories.find_db_by_name(name, active_only=False)
        if existing is None:
            existing = categories.create(ColoredLookupCreateSchema(name=name, color=color))
            summary.categories += 1
        category_ids.append(existing.id)

    locations = LocationRepository(session)
    location_ids = []
    for name, code in SAMPLE_LOCATIONS:
        existing = locations.find_db_by_name(name, active_only=False)
        if existing is None:
            existing = locations.create(LocationCreateSchema(name=name, code=code))
            summary.locations += 1
        location_ids.append(existing.id)

    authors = AuthorRepository(session)
    author_ids = []
    for name in {fake.name() for _ in range(25)}:
        if authors.find_db_by_name(name, active_only=False) is None:
            author_ids.append(authors.create(LookupCreateSchema(name=name)).id)
            summary.authors += 1

    publishers = PublisherRepository(session)
    publisher_ids = []
    for name in {f"Editorial {fake.last_name()}" for _ in range(8)}:
        if publishers.find_db_by_name(name, active_only=False) is None:
            publisher_ids.append(publishers.create(LookupCreateSchema(name=name)).id)
            summary.publishers += 1

    person_types = PersonTypeRepository(session)
    student = person_types.find_by_name(PersonTypeName.STUDENT.value)
    teacher = person_types.find_by_name(PersonTypeName.TEACHER.value)
    if student is None or teacher is None:
        raise RepositoryException("Reference data missing, run the seed without sample data first")

    people_service = PersonService(session)
    person_ids = []
    for _ in range(num_people):
        is_teacher = rng.random() < 0.15
        person = people_service.create(
            PersonCreateSchema(
                first_name=fake.first_name(),
                last_name=fake.last_name(),
                document_number=str(fake.unique.random_number(digits=10, fix_len=True)),
                grade=None if is_teacher else rng.choice(SAMPLE_GRADES),
                person_type_id=teacher.id if is_teacher else student.id,
            )
        )
        person_ids.append(person.id)
        summary.people += 1

    resource_types = ResourceTypeRepository(session)
    states = ResourceStateRepository(session)
    book_type = resource_types.find_db_by_name(SystemResourceType.BOOK.value)
    other_types = [
        resource_types.find_db_by_name(t.value)
        for t in (SystemResourceType.GAME, SystemResourceType.MAP, SystemResourceType.BIBLE)
    ]
    good_state = states.find_db_by_name(ResourceStateName.GOOD.value)
    worn_state = states.find_db_by_name(ResourceStateName.DETERIORATED.value)

    resource_service = ResourceService(session)
    resource_ids = []
    for _ in range(num_resources):
        is_book = rng.random() < 0.8
        resource_type = book_type if is_book else rng.choice(other_types)
        resource = resource_service.create(
            ResourceCreateSchema(
                title=fake.sentence(nb_words=rng.randint(2, 6)).rstrip("."),
                type_id=resource_type.id,
                category_id=rng.choice(category_ids),
                state_id=good_state.id if rng.random() < 0.85 else worn_state.id,
                location_id=rng.choice(location_ids),
                publisher_id=rng.choice(publisher_ids) if is_book and publisher_ids else None,
                author_ids=rng.sample(author_ids, k=min(len(author_ids), rng.randint(1, 2)))
                if is_book
                else [],
                isbn=generate_isbn13(rng) if is_book else None,
                volumes=rng.randint(1, 3) if is_book and rng.random() < 0.1 else None,
                total_quantity=rng.randint(1, 6),
            )
        )
        resource_ids.append(resource.id)
        summary.resources += 1

    loan_service = LoanService(session)
    loan_repo = LoanRepository(session)
    created = []
    for _ in range(num_loans):
        person_id = rng.choice(person_ids)
        resource_id = rng.choice(resource_ids)
        if not loan_service.can_person_borrow(person_id).can_borrow:
            continue
        if not resource_service.check_availability(resource_id).can_loan:
            continue
        loan = loan_service.create(
            LoanCreateSchema(person_id=person_id, resource_id=resource_id), loaned_by=loaned_by
        )
        created.append(loan.id)

    for loan_id in created:
        roll = rng.random()
        if roll < 0.5:
            loan_service.return_loan(loan_id, returned_by=loaned_by)
        elif roll < 0.55:
            loan_service.mark_as_lost(loan_id, observations="No devuelto", user_id=loaned_by)
        elif roll < 0.75:
            db_loan = loan_repo.get_db_object_or_raise(loan_id)
            days_back = rng.randint(16, 60)
            db_loan.loan_date = datetime.now() - timedelta(days=days_back)
            db_loan.due_date = db_loan.loan_date + timedelta(days=loan_service.config.loan_days)
    safe_commit(session, "backdate sample loans")
    loan_service.update_overdue_statuses()

    summary.loans = len(created)
    rows = session.execute(select(Loan.status, func.count(Loan.id)).group_by(Loan.status)).all()
    summary.loans_by_status = {status.value: count for status, count in rows}
    logger.info(
        "Sample data generated: %d people, %d resources, %d loans",
        summary.people,
        summary.resources,
        summary.loans,
    )
    return summary


# ----------------------------------------------------------------------
# Maintenance
# ----------------------------------------------------------------------


def clear_all(session: Session) -> dict[str, int]:
    """Delete every row of every table. Returns the deleted row count per table."""
    deleted = {}
    try:
        for table in CLEAR_ORDER:
            name = getattr(table, "__tablename__", None) or table.name
            result = session.execute(delete(table))
            deleted[name] = result.rowcount
        safe_commit(session, "clear all data")
    except Exception:
        session.rollback()
        raise
    logger.warning("All data cleared: %d row(s)", sum(deleted.values()))
    return deleted


def verify_integrity(session: Session) -> IntegrityReport:
    """Report loans with missing references and resources whose loan counter is stale."""
    loans = LoanRepository(session)
    resources = ResourceRepository(session)

    report = IntegrityReport(dangling_loans=[loan.id for loan in loans.dangling_loans()])
    real_counts = loans.outstanding_quantity_by_resource()
    for db_resource in resources.list_db_resources():
        if db_resource.current_loans_count != real_counts.get(db_resource.id, 0):
            report.out_of_sync_resources.append(db_resource.id)

    if report.ok:
        logger.info("Integrity check passed")
    else:
        logger.warning(
            "Integrity check found %d dangling loan(s) and %d out-of-sync resource(s)",
            len(report.dangling_loans),
            len(report.out_of_sync_resources),
        )
    return report


__all__ = [
    "IntegrityReport",
    "SampleDataSummary",
    "SeedSummary",
    "clear_all",
    "ensure_admin",
    "generate_isbn13",
    "generate_sample_data",
    "seed_reference_data",
    "verify_integrity",
]
