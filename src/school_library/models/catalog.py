"""
Catalog lookup models.

Lookups classify resources: what they are (type), what they are about
(category), where they live (location), who wrote and published them and
what physical condition they are in (state).
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class SystemResourceType(str, Enum):
    """Resource types created by the seed command; they cannot be deleted."""

    BOOK = "book"
    GAME = "game"
    MAP = "map"
    BIBLE = "bible"


class ResourceStateName(str, Enum):
    GOOD = "good"
    DETERIORATED = "deteriorated"
    DAMAGED = "damaged"
    LOST = "lost"


class LookupBase(BaseModel):
    """Fields shared by every lookup table."""

    id: str
    name: str
    description: str | None = None
    active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ResourceType(LookupBase):
    is_system: bool = False


class Category(LookupBase):
    color: str = "#6c757d"


class Location(LookupBase):
    code: str | None = None


class Author(LookupBase):
    pass


class Publisher(LookupBase):
    pass


class ResourceState(LookupBase):
    color: str = "#28a745"
