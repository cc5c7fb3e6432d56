"""
User model for the School Library backend.

Users are the staff accounts (administrators and librarians) that operate
the system. People who borrow resources are modelled separately in
``school_library.models.person``.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserRole(str, Enum):
    """Roles understood by the route guards."""

    ADMIN = "admin"
    LIBRARIAN = "librarian"


class User(BaseModel):
    """
    Represents a staff account.

    The password hash never leaves the repository layer; this model is what
    services and the REST layer see.
    """

    id: str = Field(
        ...,
        description="Unique identifier for the user",
        pattern=r"^user_[A-Za-z0-9]+$",
        examples=["user_3f2a9c0d1b7e4a55"],
    )

    email: EmailStr = Field(
        ...,
        description="Login email, stored lowercased",
        examples=["admin@school.edu"],
    )

    username: str = Field(
        ...,
        description="Unique short handle",
        min_length=3,
        max_length=50,
    )

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)

    role: UserRole = Field(
        default=UserRole.LIBRARIAN,
        description="Role checked by the route guards",
    )

    active: bool = Field(default=True, description="Inactive users cannot authenticate")

    last_login: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    model_config = ConfigDict(
        from_attributes=True,
        use_enum_values=True,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "user_3f2a9c0d1b7e4a55",
                "email": "librarian@school.edu",
                "username": "mlopez",
                "first_name": "Maria",
                "last_name": "Lopez",
                "role": "librarian",
                "active": True,
            }
        },
    )
