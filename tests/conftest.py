"""Test configuration and fixtures for the School Library backend.

Fixtures are layered the same way as the application:
1. Configuration - an isolated LibrarySettings per test
2. Database - an in-memory SQLite engine shared through StaticPool
3. Reference data - person types, resource types, states, a category and a location
4. Factories - people, resources and users built through the services
5. API - a TestClient whose session and current user are overridden
"""

import itertools
from collections.abc import Generator
from pathlib import Path

import logfire
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from school_library.api.dependencies import get_current_user, get_db
from school_library.app import create_app
from school_library.config import LibrarySettings, reset_config, set_config
from school_library.database.catalog_repository import (
    CategoryRepository,
    ColoredLookupCreateSchema,
    LocationCreateSchema,
    LocationRepository,
    ResourceStateRepository,
    ResourceTypeRepository,
)
from school_library.database.person_repository import PersonCreateSchema, PersonTypeRepository
from school_library.database.resource_repository import ResourceCreateSchema
from school_library.database.schema import Base
from school_library.database.session import reset_db_manager
from school_library.database.user_repository import UserCreateSchema
from school_library.models.user import UserRole
from school_library.services.loan_service import LoanService
from school_library.services.person_service import PersonService
from school_library.services.resource_service import ResourceService
from school_library.services.seed import seed_reference_data
from school_library.services.user_service import UserService

TEST_JWT_SECRET = "test-secret-key-with-enough-length-for-hs256"


@pytest.fixture(scope="session", autouse=True)
def configure_logfire():
    """Spans are created by services; keep them local."""
    logfire.configure(send_to_logfire=False, console=False)


# === Configuration Fixtures ===


@pytest.fixture(autouse=True)
def test_config(tmp_path: Path) -> Generator[LibrarySettings, None, None]:
    """Install an isolated configuration for every test."""
    reset_config()
    reset_db_manager()

    config = LibrarySettings(
        environment="test",
        database_path=tmp_path / "library.db",
        jwt_secret=TEST_JWT_SECRET,
        log_level="DEBUG",
    )
    set_config(config)

    yield config

    reset_db_manager()
    reset_config()


# === Database Fixtures ===


@pytest.fixture
def engine():
    """In-memory SQLite engine; StaticPool keeps one connection for every session."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    session_local = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = session_local()
    try:
        yield session
    finally:
        session.close()


# === Reference Data ===


@pytest.fixture
def reference(session) -> dict[str, str]:
    """Seeded lookups plus one category and one location, keyed by role."""
    seed_reference_data(session)

    person_types = PersonTypeRepository(session)
    resource_types = ResourceTypeRepository(session)
    states = ResourceStateRepository(session)
    category = CategoryRepository(session).create(
        ColoredLookupCreateSchema(name="Literatura", color="#007bff")
    )
    location = LocationRepository(session).create(
        LocationCreateSchema(name="Estante A", code="EST-A")
    )

    return {
        "student": person_types.find_by_name("student").id,
        "teacher": person_types.find_by_name("teacher").id,
        "book": resource_types.find_by_name("book").id,
        "game": resource_types.find_by_name("game").id,
        "good": states.find_by_name("good").id,
        "damaged": states.find_by_name("damaged").id,
        "category": category.id,
        "location": location.id,
    }


# === Factories ===


@pytest.fixture
def make_user(session):
    counter = itertools.count(1)

    def _make(role: UserRole = UserRole.LIBRARIAN, password: str = "Secret123", **overrides):
        n = next(counter)
        data = {
            "email": f"staff{n}@school.edu",
            "username": f"staff{n}",
            "password": password,
            "first_name": "Staff",
            "last_name": f"Member {n}",
            "role": role,
        }
        data.update(overrides)
        return UserService(session).create(UserCreateSchema(**data))

    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user(
        role=UserRole.ADMIN,
        email="admin@school.edu",
        username="admin",
        first_name="Ada",
        last_name="Admin",
    )


@pytest.fixture
def librarian_user(make_user):
    return make_user(
        role=UserRole.LIBRARIAN,
        email="librarian@school.edu",
        username="librarian",
        first_name="Luis",
        last_name="Librarian",
    )


@pytest.fixture
def make_person(session, reference):
    counter = itertools.count(1)

    def _make(first_name: str = "Ana", last_name: str | None = None, teacher: bool = False, **overrides):
        n = next(counter)
        data = {
            "first_name": first_name,
            "last_name": last_name or f"Gomez {n}",
            "document_number": f"DOC{n:05d}",
            "grade": None if teacher else "5A",
            "person_type_id": reference["teacher"] if teacher else reference["student"],
        }
        data.update(overrides)
        return PersonService(session).create(PersonCreateSchema(**data))

    return _make


@pytest.fixture
def make_resource(session, reference):
    counter = itertools.count(1)

    def _make(title: str | None = None, total_quantity: int = 3, **overrides):
        n = next(counter)
        data = {
            "title": title or f"Resource {n}",
            "type_id": reference["book"],
            "category_id": reference["category"],
            "state_id": reference["good"],
            "location_id": reference["location"],
            "total_quantity": total_quantity,
        }
        data.update(overrides)
        return ResourceService(session).create(ResourceCreateSchema(**data))

    return _make


@pytest.fixture
def person(make_person):
    return make_person()


@pytest.fixture
def resource(make_resource):
    return make_resource(title="Cien años de soledad", isbn="9780307474728")


@pytest.fixture
def loan_service(session) -> LoanService:
    return LoanService(session)


@pytest.fixture
def resource_service(session) -> ResourceService:
    return ResourceService(session)


# === API Fixtures ===


@pytest.fixture
def auth_state(admin_user) -> dict:
    """Mutable holder for the user the API client acts as."""
    return {"user": admin_user}


@pytest.fixture
def app(session, test_config):
    app = create_app(test_config, observability=False)

    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app, auth_state) -> TestClient:
    """Client authenticated as ``auth_state["user"]`` without bearer tokens."""
    app.dependency_overrides[get_current_user] = lambda: auth_state["user"]
    return TestClient(app)


@pytest.fixture
def anonymous_client(app) -> TestClient:
    """Client going through real bearer token verification."""
    return TestClient(app)
