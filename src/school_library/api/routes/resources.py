"""Inventory routes: resources, search and stock operations."""

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from ...database.repository import PaginatedResponse, PaginationParams
from ...database.resource_repository import (
    ResourceCreateSchema,
    ResourceSearchParams,
    ResourceUpdateSchema,
)
from ...models.resource import Resource, ResourceAvailability, StockInfo, StockStatistics
from ...services.resource_service import ResourceService
from ..dependencies import get_db, require_staff

router = APIRouter(prefix="/resources", tags=["Resources"], dependencies=[Depends(require_staff)])


@router.post("", response_model=Resource, status_code=status.HTTP_201_CREATED)
def create_resource(request: ResourceCreateSchema, db: Session = Depends(get_db)):
    return ResourceService(db).create(request)


@router.get("", response_model=PaginatedResponse[Resource])
def search_resources(
    search: str | None = None,
    type_id: str | None = None,
    category_id: str | None = None,
    state_id: str | None = None,
    location_id: str | None = None,
    author_id: str | None = None,
    publisher_id: str | None = None,
    available: bool | None = None,
    has_stock: bool | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ResourceService(db).search(
        ResourceSearchParams(
            query=search,
            type_id=type_id,
            category_id=category_id,
            state_id=state_id,
            location_id=location_id,
            author_id=author_id,
            publisher_id=publisher_id,
            available=available,
            has_stock=has_stock,
        ),
        PaginationParams(page=page, page_size=page_size),
    )


@router.get("/stock/statistics", response_model=StockStatistics)
def stock_statistics(db: Session = Depends(get_db)):
    return ResourceService(db).stock_statistics()


@router.get("/isbn/{isbn}", response_model=Resource)
def find_resource_by_isbn(isbn: str, db: Session = Depends(get_db)):
    return ResourceService(db).find_by_isbn(isbn)


@router.get("/{resource_id}", response_model=Resource)
def get_resource(resource_id: str, db: Session = Depends(get_db)):
    return ResourceService(db).get(resource_id)


@router.put("/{resource_id}", response_model=Resource)
def update_resource(resource_id: str, request: ResourceUpdateSchema, db: Session = Depends(get_db)):
    return ResourceService(db).update(resource_id, request)


@router.put("/{resource_id}/availability", response_model=Resource)
def update_availability(
    resource_id: str, available: bool = Body(..., embed=True), db: Session = Depends(get_db)
):
    return ResourceService(db).update_availability(resource_id, available)


@router.put("/{resource_id}/total-quantity", response_model=Resource)
def update_total_quantity(
    resource_id: str,
    total_quantity: int = Body(..., embed=True),
    db: Session = Depends(get_db),
):
    """New total must be at least 1 and at least the units currently on loan."""
    return ResourceService(db).update_total_quantity(resource_id, total_quantity)


@router.delete("/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_resource(resource_id: str, db: Session = Depends(get_db)):
    ResourceService(db).delete(resource_id)


@router.get("/{resource_id}/availability", response_model=ResourceAvailability)
def check_availability(resource_id: str, db: Session = Depends(get_db)):
    return ResourceService(db).check_availability(resource_id)


@router.get("/{resource_id}/stock", response_model=StockInfo)
def stock_info(resource_id: str, db: Session = Depends(get_db)):
    return ResourceService(db).stock_info(resource_id)


@router.post("/{resource_id}/stock/lost", response_model=Resource)
def mark_units_lost(
    resource_id: str, quantity: int = Body(1, embed=True, ge=1), db: Session = Depends(get_db)
):
    return ResourceService(db).mark_as_lost(resource_id, quantity)


@router.post("/{resource_id}/stock/damaged", response_model=Resource)
def mark_units_damaged(
    resource_id: str, quantity: int = Body(1, embed=True, ge=1), db: Session = Depends(get_db)
):
    return ResourceService(db).mark_as_damaged(resource_id, quantity)


@router.post("/{resource_id}/stock/maintenance", response_model=Resource)
def send_units_to_maintenance(
    resource_id: str, quantity: int = Body(1, embed=True, ge=1), db: Session = Depends(get_db)
):
    return ResourceService(db).send_to_maintenance(resource_id, quantity)


@router.post("/{resource_id}/stock/restore-lost", response_model=Resource)
def restore_lost_units(
    resource_id: str, quantity: int = Body(1, embed=True, ge=1), db: Session = Depends(get_db)
):
    return ResourceService(db).restore_lost(resource_id, quantity)


@router.post("/{resource_id}/stock/repair", response_model=Resource)
def repair_damaged_units(
    resource_id: str, quantity: int = Body(1, embed=True, ge=1), db: Session = Depends(get_db)
):
    return ResourceService(db).repair_damaged(resource_id, quantity)


@router.post("/{resource_id}/stock/return-maintenance", response_model=Resource)
def return_units_from_maintenance(
    resource_id: str, quantity: int = Body(1, embed=True, ge=1), db: Session = Depends(get_db)
):
    return ResourceService(db).return_from_maintenance(resource_id, quantity)
