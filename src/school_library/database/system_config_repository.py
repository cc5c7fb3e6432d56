"""
System configuration repository.

Exactly one configuration row is active at a time. Older rows stay in the
table as history and can be restored.
"""

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import desc, select, update

from ..database.schema import SystemConfig as SystemConfigDB
from ..database.session import safe_commit, safe_query
from ..models.system_config import SystemConfig as SystemConfigModel
from .repository import BaseRepository

logger = logging.getLogger(__name__)


def _check_icon_url(v: str | None) -> str | None:
    if v is None or v == "":
        return v
    if not v.startswith(("http://", "https://")):
        raise ValueError("Icon URL must start with http:// or https://")
    return v


class SystemConfigCreateSchema(BaseModel):
    """Schema for creating (or replacing) the active configuration."""

    sidebar_title: str = Field(..., min_length=1, max_length=100)
    sidebar_subtitle: str = Field(..., min_length=1, max_length=100)
    sidebar_icon: str | None = Field(None, max_length=50)
    sidebar_icon_url: str | None = Field(None, max_length=500)
    sidebar_icon_image: str | None = None
    version: str | None = Field(None, max_length=20)
    description: str | None = Field(None, max_length=200)

    @field_validator("sidebar_icon_url")
    @classmethod
    def validate_icon_url(cls, v: str | None) -> str | None:
        return _check_icon_url(v)


class SystemConfigUpdateSchema(BaseModel):
    """Partial update; unset fields are left untouched, empty icon fields are cleared."""

    sidebar_title: str | None = Field(None, min_length=1, max_length=100)
    sidebar_subtitle: str | None = Field(None, min_length=1, max_length=100)
    sidebar_icon: str | None = Field(None, max_length=50)
    sidebar_icon_url: str | None = Field(None, max_length=500)
    sidebar_icon_image: str | None = None
    version: str | None = Field(None, max_length=20)
    description: str | None = Field(None, max_length=200)

    @field_validator("sidebar_icon_url")
    @classmethod
    def validate_icon_url(cls, v: str | None) -> str | None:
        return _check_icon_url(v)


class SystemConfigRepository(
    BaseRepository[SystemConfigDB, SystemConfigCreateSchema, SystemConfigUpdateSchema, SystemConfigModel]
):
    """Repository for the sidebar configuration and its history."""

    id_prefix = "sysconfig"

    @property
    def model_class(self):
        return SystemConfigDB

    @property
    def response_schema(self):
        return SystemConfigModel

    def _active_query(self):
        return (
            select(SystemConfigDB)
            .where(SystemConfigDB.active.is_(True))
            .order_by(desc(SystemConfigDB.updated_at), desc(SystemConfigDB.created_at))
        )

    def find_active_db(self) -> SystemConfigDB | None:
        """Newest active configuration row."""
        return safe_query(
            self.session,
            lambda s: s.execute(self._active_query().limit(1)).scalar_one_or_none(),
            "Failed to get active system config",
        )

    def find_active(self) -> SystemConfigModel | None:
        db_config = self.find_active_db()
        return self._to_response_model(db_config) if db_config else None

    def has_active(self) -> bool:
        return self.find_active_db() is not None

    def create_or_update_active(self, values: dict[str, Any]) -> SystemConfigModel:
        """
        Write ``values`` into the active configuration, creating it when missing.

        ``last_updated`` is always bumped.
        """
        now = datetime.now()
        db_config = self.find_active_db()
        if db_config is None:
            db_config = SystemConfigDB(id=self._generate_id(), created_at=now)
            self.session.add(db_config)

        for field, value in values.items():
            setattr(db_config, field, value)
        db_config.active = True
        db_config.last_updated = now
        db_config.updated_at = now

        safe_commit(self.session, "save system config")
        self.session.refresh(db_config)
        return self._to_response_model(db_config)

    def history(self, limit: int = 10) -> list[SystemConfigModel]:
        results = safe_query(
            self.session,
            lambda s: s.execute(
                select(SystemConfigDB)
                .order_by(desc(SystemConfigDB.updated_at), desc(SystemConfigDB.created_at))
                .limit(limit)
            )
            .scalars()
            .all(),
            "Failed to get system config history",
        )
        return [self._to_response_model(r) for r in results]

    def restore(self, id: str) -> SystemConfigModel | None:
        """Deactivate every configuration and activate ``id``; None when it does not exist."""
        db_config = self.get_db_object(id)
        if db_config is None:
            return None

        now = datetime.now()
        safe_query(
            self.session,
            lambda s: s.execute(
                update(SystemConfigDB)
                .where(SystemConfigDB.active.is_(True))
                .values(active=False)
                .execution_options(synchronize_session="fetch")
            ),
            "Failed to deactivate system configs",
        )
        db_config.active = True
        db_config.last_updated = now
        db_config.updated_at = now

        safe_commit(self.session, "restore system config")
        self.session.refresh(db_config)
        return self._to_response_model(db_config)

    def cleanup_duplicates(self) -> int:
        """Keep only the newest active configuration; returns how many were deactivated."""
        active = safe_query(
            self.session,
            lambda s: s.execute(self._active_query()).scalars().all(),
            "Failed to list active system configs",
        )
        if len(active) <= 1:
            return 0

        latest, *older = active
        for db_config in older:
            db_config.active = False
        safe_commit(self.session, "cleanup duplicate system configs")
        logger.info(
            "Deactivated %d duplicate system config(s), kept %s active", len(older), latest.id
        )
        return len(older)
