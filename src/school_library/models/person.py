"""
Person models for the School Library backend.

People are the borrowers: students and teachers. Each person belongs to a
person type and may carry a document number and a grade (students).
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class PersonTypeName(str, Enum):
    """Built-in person types."""

    STUDENT = "student"
    TEACHER = "teacher"


class PersonType(BaseModel):
    """A person type (student or teacher)."""

    id: str
    name: str
    description: str | None = None
    active: bool = True

    model_config = ConfigDict(from_attributes=True)


class Person(BaseModel):
    """
    Represents a borrower.

    ``person_type`` is the type name resolved from ``person_type_id`` so that
    clients do not need a second request to label the person.
    """

    id: str = Field(
        ...,
        description="Unique identifier for the person",
        pattern=r"^person_[A-Za-z0-9]+$",
    )

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)

    document_number: str | None = Field(
        None,
        description="National id or school document number",
        max_length=20,
        examples=["1000123456"],
    )

    grade: str | None = Field(None, max_length=50, examples=["10A", "5B"])

    person_type_id: str
    person_type: str | None = Field(None, description="Resolved person type name")

    active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "person_0c1d2e3f4a5b6c7d",
                "first_name": "Juan",
                "last_name": "Perez",
                "document_number": "1000123456",
                "grade": "10A",
                "person_type_id": "ptype_8a7b6c5d4e3f2a1b",
                "person_type": "student",
                "active": True,
            }
        },
    )


class GradeCount(BaseModel):
    grade: str
    count: int


class PersonStatistics(BaseModel):
    """Head counts of active people."""

    total: int
    students: int
    teachers: int
    by_grade: list[GradeCount] = []
