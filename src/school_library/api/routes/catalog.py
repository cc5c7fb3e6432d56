"""
Catalog lookup routes.

One router serves every lookup table, selected by the ``kind`` path segment:
``resource-types``, ``categories``, ``locations``, ``authors``,
``publishers`` and ``resource-states``. Staff can read; only administrators
can write.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from ...services.catalog_service import CatalogService
from ..dependencies import get_db, require_admin, require_staff

router = APIRouter(prefix="/catalog", tags=["Catalog"], dependencies=[Depends(require_staff)])


@router.get("/resource-types/system")
def list_system_resource_types(db: Session = Depends(get_db)):
    return CatalogService(db, "resource-types").system_types()


@router.get("/resource-types/custom")
def list_custom_resource_types(db: Session = Depends(get_db)):
    return CatalogService(db, "resource-types").custom_types()


@router.get("/{kind}")
def list_entries(kind: str, db: Session = Depends(get_db)):
    return CatalogService(db, kind).list_all()


@router.get("/{kind}/active")
def list_active_entries(kind: str, db: Session = Depends(get_db)):
    return CatalogService(db, kind).find_all_active()


@router.get("/{kind}/name/{name}")
def find_entry_by_name(kind: str, name: str, db: Session = Depends(get_db)):
    return CatalogService(db, kind).find_by_name(name)


@router.get("/{kind}/{item_id}")
def get_entry(kind: str, item_id: str, db: Session = Depends(get_db)):
    return CatalogService(db, kind).get(item_id)


@router.post("/{kind}", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def create_entry(kind: str, payload: dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    return CatalogService(db, kind).create(payload)


@router.put("/{kind}/{item_id}", dependencies=[Depends(require_admin)])
def update_entry(
    kind: str, item_id: str, payload: dict[str, Any] = Body(...), db: Session = Depends(get_db)
):
    return CatalogService(db, kind).update(item_id, payload)


@router.delete(
    "/{kind}/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_entry(kind: str, item_id: str, db: Session = Depends(get_db)):
    CatalogService(db, kind).delete(item_id)
