"""
System configuration routes.

Reading the active configuration is public so the frontend can brand the
login screen; everything else requires an administrator.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database.system_config_repository import (
    SystemConfigCreateSchema,
    SystemConfigUpdateSchema,
)
from ...models.system_config import SystemConfig
from ...services.system_config_service import SystemConfigService
from ..dependencies import get_db, require_admin

router = APIRouter(prefix="/system-config", tags=["System Config"])


@router.get("", response_model=SystemConfig)
def get_active_config(db: Session = Depends(get_db)):
    return SystemConfigService(db).get_active_config()


@router.post("", response_model=SystemConfig, dependencies=[Depends(require_admin)])
def create_config(request: SystemConfigCreateSchema, db: Session = Depends(get_db)):
    return SystemConfigService(db).create_config(request)


@router.put("", response_model=SystemConfig, dependencies=[Depends(require_admin)])
def update_config(request: SystemConfigUpdateSchema, db: Session = Depends(get_db)):
    return SystemConfigService(db).update_config(request)


@router.get("/history", response_model=list[SystemConfig], dependencies=[Depends(require_admin)])
def get_config_history(limit: int = Query(10, ge=1, le=100), db: Session = Depends(get_db)):
    return SystemConfigService(db).get_config_history(limit)


@router.post("/cleanup", dependencies=[Depends(require_admin)])
def cleanup_duplicate_configs(db: Session = Depends(get_db)) -> dict[str, int]:
    return {"deactivated": SystemConfigService(db).cleanup_duplicate_configs()}


@router.post("/{config_id}/restore", response_model=SystemConfig, dependencies=[Depends(require_admin)])
def restore_config(config_id: str, db: Session = Depends(get_db)):
    return SystemConfigService(db).restore_config(config_id)
