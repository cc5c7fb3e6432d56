"""
SQLAlchemy database schema for the School Library backend.

The tables mirror the Pydantic models in ``school_library.models``:
1. Staff users (admins and librarians) who operate the system
2. People (students and teachers) who borrow resources
3. The catalog: resources plus their lookup tables (types, categories,
   locations, authors, publishers, physical states)
4. Loans with the stock counters they move on each resource
5. The sidebar system configuration with its history
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship, validates
from sqlalchemy.sql import func

# Base class for all SQLAlchemy models
Base = declarative_base()


class UserRoleEnum(str, enum.Enum):
    """Database enum for staff roles."""

    ADMIN = "admin"
    LIBRARIAN = "librarian"


class LoanStatusEnum(str, enum.Enum):
    """Database enum for loan status."""

    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"
    LOST = "lost"


class User(Base):
    """
    Users table - staff accounts allowed to operate the library.

    Passwords are stored as passlib hashes; the role drives the
    route guards of the REST layer.
    """

    __tablename__ = "users"

    id = Column(String(50), primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    username = Column(String(50), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(Enum(UserRoleEnum), nullable=False, default=UserRoleEnum.LIBRARIAN)
    active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_user_role", "role"),
        CheckConstraint("id LIKE 'user_%'", name="check_user_id_format"),
    )

    @validates("email")
    def normalize_email(self, key, value):  # noqa: ARG002
        """Emails are stored lowercased."""
        return value.strip().lower() if value else value


class PersonType(Base):
    """Person types table - student or teacher."""

    __tablename__ = "person_types"

    id = Column(String(50), primary_key=True)
    name = Column(String(50), nullable=False, unique=True)
    description = Column(String(200), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    people = relationship("Person", back_populates="person_type")

    __table_args__ = (CheckConstraint("id LIKE 'ptype_%'", name="check_person_type_id_format"),)


class Person(Base):
    """
    People table - students and teachers who can borrow resources.

    People are soft deleted through the ``active`` flag so that loan
    history stays attached to them.
    """

    __tablename__ = "people"

    id = Column(String(50), primary_key=True)
    first_name = Column(String(100), nullable=False, index=True)
    last_name = Column(String(100), nullable=False, index=True)
    document_number = Column(String(20), nullable=True, unique=True)
    grade = Column(String(50), nullable=True)
    person_type_id = Column(String(50), ForeignKey("person_types.id"), nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    person_type = relationship("PersonType", back_populates="people")
    loans = relationship("Loan", back_populates="person")

    __table_args__ = (
        Index("idx_person_name", "first_name", "last_name"),
        Index("idx_person_grade", "grade"),
        Index("idx_person_type", "person_type_id"),
        CheckConstraint("id LIKE 'person_%'", name="check_person_id_format"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ResourceType(Base):
    """Resource types table - book, game, map, bible and custom types."""

    __tablename__ = "resource_types"

    id = Column(String(50), primary_key=True)
    name = Column(String(50), nullable=False, unique=True)
    description = Column(String(200), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    is_system = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (CheckConstraint("id LIKE 'rtype_%'", name="check_resource_type_id_format"),)

    @validates("name")
    def normalize_name(self, key, value):  # noqa: ARG002
        return value.strip().lower() if value else value


class Category(Base):
    """Categories table - thematic classification of resources."""

    __tablename__ = "categories"

    id = Column(String(50), primary_key=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(String(200), nullable=True)
    color = Column(String(20), nullable=False, default="#6c757d")
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (CheckConstraint("id LIKE 'category_%'", name="check_category_id_format"),)


class Location(Base):
    """Locations table - shelves and rooms where resources are kept."""

    __tablename__ = "locations"

    id = Column(String(50), primary_key=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(String(200), nullable=True)
    code = Column(String(20), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (CheckConstraint("id LIKE 'location_%'", name="check_location_id_format"),)


class Author(Base):
    """Authors table."""

    __tablename__ = "authors"

    id = Column(String(50), primary_key=True)
    name = Column(String(200), nullable=False, unique=True)
    description = Column(String(200), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    resources = relationship("Resource", secondary="resource_authors", back_populates="authors")

    __table_args__ = (CheckConstraint("id LIKE 'author_%'", name="check_author_id_format"),)


class Publisher(Base):
    """Publishers table."""

    __tablename__ = "publishers"

    id = Column(String(50), primary_key=True)
    name = Column(String(200), nullable=False, unique=True)
    description = Column(String(200), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (CheckConstraint("id LIKE 'publisher_%'", name="check_publisher_id_format"),)


class ResourceState(Base):
    """Resource states table - physical condition (good, deteriorated, damaged, lost)."""

    __tablename__ = "resource_states"

    id = Column(String(50), primary_key=True)
    name = Column(String(50), nullable=False, unique=True)
    description = Column(String(200), nullable=True)
    color = Column(String(20), nullable=False, default="#28a745")
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (CheckConstraint("id LIKE 'rstate_%'", name="check_resource_state_id_format"),)


resource_authors = Table(
    "resource_authors",
    Base.metadata,
    Column("resource_id", String(50), ForeignKey("resources.id", ondelete="CASCADE"), primary_key=True),
    Column("author_id", String(50), ForeignKey("authors.id"), primary_key=True),
)


class Resource(Base):
    """
    Resources table - the library inventory.

    Stock counters:
    - total_quantity: physical units owned
    - current_loans_count: units out on unreturned loans
    - lost/damaged/maintenance_quantity: units not lendable
    The constraints below keep every counter non-negative and the loaned
    units within the owned units.
    """

    __tablename__ = "resources"

    id = Column(String(50), primary_key=True)
    title = Column(String(300), nullable=False, index=True)
    type_id = Column(String(50), ForeignKey("resource_types.id"), nullable=False)
    category_id = Column(String(50), ForeignKey("categories.id"), nullable=False)
    state_id = Column(String(50), ForeignKey("resource_states.id"), nullable=False)
    location_id = Column(String(50), ForeignKey("locations.id"), nullable=False)
    publisher_id = Column(String(50), ForeignKey("publishers.id"), nullable=True)
    isbn = Column(String(17), nullable=True, unique=True)
    volumes = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    cover_image_url = Column(String(500), nullable=True)
    available = Column(Boolean, nullable=False, default=True)

    total_quantity = Column(Integer, nullable=False, default=1)
    current_loans_count = Column(Integer, nullable=False, default=0)
    lost_quantity = Column(Integer, nullable=False, default=0)
    damaged_quantity = Column(Integer, nullable=False, default=0)
    maintenance_quantity = Column(Integer, nullable=False, default=0)
    total_loans = Column(Integer, nullable=False, default=0)
    last_loan_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    resource_type = relationship("ResourceType")
    category = relationship("Category")
    state = relationship("ResourceState")
    location = relationship("Location")
    publisher = relationship("Publisher")
    authors = relationship("Author", secondary=resource_authors, back_populates="resources")
    loans = relationship("Loan", back_populates="resource")

    __table_args__ = (
        Index("idx_resource_title", "title"),
        Index("idx_resource_type", "type_id"),
        Index("idx_resource_category", "category_id"),
        Index("idx_resource_location", "location_id"),
        Index("idx_resource_available", "available"),
        CheckConstraint("id LIKE 'resource_%'", name="check_resource_id_format"),
        CheckConstraint("total_quantity >= 1", name="check_total_quantity_positive"),
        CheckConstraint("current_loans_count >= 0", name="check_current_loans_non_negative"),
        CheckConstraint(
            "current_loans_count <= total_quantity", name="check_current_loans_not_exceed_total"
        ),
        CheckConstraint("lost_quantity >= 0", name="check_lost_non_negative"),
        CheckConstraint("damaged_quantity >= 0", name="check_damaged_non_negative"),
        CheckConstraint("maintenance_quantity >= 0", name="check_maintenance_non_negative"),
        CheckConstraint("total_loans >= 0", name="check_total_loans_non_negative"),
        CheckConstraint("volumes IS NULL OR volumes >= 1", name="check_volumes_positive"),
    )

    @property
    def available_quantity(self) -> int:
        """Units that can be lent right now."""
        unavailable = (
            self.current_loans_count
            + self.lost_quantity
            + self.damaged_quantity
            + self.maintenance_quantity
        )
        return max(0, self.total_quantity - unavailable)

    @property
    def has_stock(self) -> bool:
        return bool(self.available) and self.available_quantity > 0


class Loan(Base):
    """
    Loans table - a resource lent to a person.

    Creating a loan moves ``quantity`` units into the resource's
    ``current_loans_count``; returning or losing it moves them back out.
    """

    __tablename__ = "loans"

    id = Column(String(50), primary_key=True)
    person_id = Column(String(50), ForeignKey("people.id"), nullable=False)
    resource_id = Column(String(50), ForeignKey("resources.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    loan_date = Column(DateTime, nullable=False, default=func.now())
    due_date = Column(DateTime, nullable=False)
    returned_date = Column(DateTime, nullable=True)
    status = Column(Enum(LoanStatusEnum), nullable=False, default=LoanStatusEnum.ACTIVE)
    observations = Column(Text, nullable=True)
    loaned_by = Column(String(50), ForeignKey("users.id"), nullable=True)
    returned_by = Column(String(50), ForeignKey("users.id"), nullable=True)
    renewed_by = Column(String(50), ForeignKey("users.id"), nullable=True)
    renewed_at = Column(DateTime, nullable=True)
    renewal_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    person = relationship("Person", back_populates="loans")
    resource = relationship("Resource", back_populates="loans")

    __table_args__ = (
        Index("idx_loan_person", "person_id"),
        Index("idx_loan_resource", "resource_id"),
        Index("idx_loan_status", "status"),
        Index("idx_loan_due_date", "due_date"),
        Index("idx_loan_date", "loan_date"),
        CheckConstraint("id LIKE 'loan_%'", name="check_loan_id_format"),
        CheckConstraint("quantity >= 1", name="check_loan_quantity_positive"),
        CheckConstraint("renewal_count >= 0", name="check_renewal_count_non_negative"),
    )


class SystemConfig(Base):
    """
    System configuration table - sidebar branding shown by the frontend.

    Exactly one row is active at a time; inactive rows form the history
    that ``restore`` can bring back.
    """

    __tablename__ = "system_configs"

    id = Column(String(50), primary_key=True)
    sidebar_title = Column(String(100), nullable=False, default="Biblioteca Escolar")
    sidebar_subtitle = Column(String(100), nullable=False, default="Sistema de Biblioteca")
    sidebar_icon = Column(String(50), nullable=False, default="FiBook")
    sidebar_icon_url = Column(String(500), nullable=True)
    sidebar_icon_image = Column(Text, nullable=True)
    version = Column(String(20), nullable=False, default="1.0.0")
    active = Column(Boolean, nullable=False, default=True)
    description = Column(String(200), nullable=True)
    last_updated = Column(DateTime, nullable=False, default=func.now())

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_system_config_active", "active"),
        CheckConstraint("id LIKE 'sysconfig_%'", name="check_system_config_id_format"),
    )


