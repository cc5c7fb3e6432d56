"""
Resource models for the School Library backend.

A resource is an item of the inventory (book, game, map, bible, ...) with a
set of stock counters. The response model carries the derived stock values
(``available_quantity`` and ``has_stock``) so clients never recompute them.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Resource(BaseModel):
    """
    Represents an inventory item with its stock counters.

    Stock arithmetic:
        available_quantity = max(0, total - loaned - lost - damaged - maintenance)
        has_stock = available and available_quantity > 0
    """

    id: str = Field(..., pattern=r"^resource_[A-Za-z0-9]+$")
    title: str = Field(..., min_length=2, max_length=300)

    type_id: str
    type_name: str | None = None
    category_id: str
    state_id: str
    location_id: str
    publisher_id: str | None = None

    author_ids: list[str] = Field(default_factory=list)
    author_names: list[str] = Field(default_factory=list)

    isbn: str | None = None
    volumes: int | None = Field(None, ge=1, le=100)
    notes: str | None = Field(None, max_length=500)
    cover_image_url: str | None = None
    available: bool = True

    total_quantity: int = Field(default=1, ge=1)
    current_loans_count: int = Field(default=0, ge=0)
    lost_quantity: int = Field(default=0, ge=0)
    damaged_quantity: int = Field(default=0, ge=0)
    maintenance_quantity: int = Field(default=0, ge=0)
    available_quantity: int = Field(default=0, ge=0)
    has_stock: bool = False

    total_loans: int = 0
    last_loan_date: datetime | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "resource_5e6f7a8b9c0d1e2f",
                "title": "Cien anos de soledad",
                "type_name": "book",
                "isbn": "9780307474728",
                "total_quantity": 3,
                "current_loans_count": 1,
                "available_quantity": 2,
                "has_stock": True,
            }
        },
    )


class StockInfo(BaseModel):
    """Complete stock breakdown of one resource."""

    resource_id: str
    title: str
    total_quantity: int
    current_loans: int
    lost_quantity: int
    damaged_quantity: int
    maintenance_quantity: int
    available_quantity: int
    has_stock: bool
    available: bool


class StockStatistics(BaseModel):
    """Inventory wide stock totals."""

    total_resources: int = 0
    resources_with_stock: int = 0
    resources_without_stock: int = 0
    total_units: int = 0
    loaned_units: int = 0
    available_units: int = 0
    lost_units: int = 0
    damaged_units: int = 0
    maintenance_units: int = 0


class ResourceAvailability(BaseModel):
    """Answer to "can this resource be lent right now?"."""

    resource_id: str
    can_loan: bool
    available_quantity: int
