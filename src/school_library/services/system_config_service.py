"""Sidebar branding configuration shown by the frontend."""

import logging

from sqlalchemy.orm import Session

from ..database.errors import NotFoundError
from ..database.system_config_repository import (
    SystemConfigCreateSchema,
    SystemConfigRepository,
    SystemConfigUpdateSchema,
)
from ..models.system_config import (
    DEFAULT_SIDEBAR_ICON,
    DEFAULT_SIDEBAR_SUBTITLE,
    DEFAULT_SIDEBAR_TITLE,
    DEFAULT_VERSION,
    IMAGE_SIDEBAR_ICON,
    SystemConfig,
)
from ..observability import traced

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Configuración por defecto del sistema"


class SystemConfigService:
    """Active configuration, history and restore."""

    def __init__(self, session: Session):
        self.session = session
        self.configs = SystemConfigRepository(session)

    def get_active_config(self) -> SystemConfig:
        """Active configuration; duplicates are cleaned and a default is created when missing."""
        self.configs.cleanup_duplicates()
        config = self.configs.find_active()
        if config is None:
            return self._create_default()
        return config

    @traced("system_config.create")
    def create_config(self, data: SystemConfigCreateSchema) -> SystemConfig:
        """Create the active configuration, or overwrite it when one exists."""
        values = data.model_dump()
        values["sidebar_icon_url"] = values["sidebar_icon_url"] or None
        values["sidebar_icon_image"] = values["sidebar_icon_image"] or None
        if values["sidebar_icon_url"] or values["sidebar_icon_image"]:
            values["sidebar_icon"] = values["sidebar_icon"] or IMAGE_SIDEBAR_ICON
        values["sidebar_icon"] = values["sidebar_icon"] or DEFAULT_SIDEBAR_ICON
        values["version"] = values["version"] or DEFAULT_VERSION

        config = self.configs.create_or_update_active(values)
        logger.info("System config %s saved", config.id)
        return config

    @traced("system_config.update")
    def update_config(self, data: SystemConfigUpdateSchema) -> SystemConfig:
        """
        Apply a partial update to the active configuration.

        Empty icon URL or image values clear the field. Setting one of them
        clears the other and switches the icon to the image icon.

        Raises:
            NotFoundError: If there is no active configuration
        """
        current = self.configs.find_active()
        if current is None:
            raise NotFoundError("No active system configuration")

        values = data.model_dump(exclude_unset=True)
        for key in ("sidebar_icon_url", "sidebar_icon_image"):
            if key in values and values[key] == "":
                values[key] = None

        if values.get("sidebar_icon_url"):
            values["sidebar_icon_image"] = None
            values["sidebar_icon"] = values.get("sidebar_icon") or IMAGE_SIDEBAR_ICON
        if values.get("sidebar_icon_image"):
            values["sidebar_icon_url"] = None
            values["sidebar_icon"] = values.get("sidebar_icon") or IMAGE_SIDEBAR_ICON

        if not (values.get("sidebar_icon") or "").strip():
            values["sidebar_icon"] = current.sidebar_icon or DEFAULT_SIDEBAR_ICON
        values["version"] = values.get("version") or current.version

        config = self.configs.create_or_update_active(values)
        logger.info("System config %s updated", config.id)
        return config

    def get_config_history(self, limit: int = 10) -> list[SystemConfig]:
        return self.configs.history(limit)

    @traced("system_config.restore")
    def restore_config(self, config_id: str) -> SystemConfig:
        config = self.configs.restore(config_id)
        if config is None:
            raise NotFoundError(f"System config {config_id} not found")
        logger.info("System config %s restored", config_id)
        return config

    def cleanup_duplicate_configs(self) -> int:
        return self.configs.cleanup_duplicates()

    def initialize_default_config(self) -> SystemConfig:
        """Make sure an active configuration exists; called on application startup."""
        config = self.get_active_config()
        logger.info("Active system config: %s (version %s)", config.id, config.version)
        return config

    def _create_default(self) -> SystemConfig:
        logger.info("Creating default system config")
        return self.configs.create_or_update_active(
            {
                "sidebar_title": DEFAULT_SIDEBAR_TITLE,
                "sidebar_subtitle": DEFAULT_SIDEBAR_SUBTITLE,
                "sidebar_icon": DEFAULT_SIDEBAR_ICON,
                "sidebar_icon_url": None,
                "sidebar_icon_image": None,
                "version": DEFAULT_VERSION,
                "description": DEFAULT_DESCRIPTION,
            }
        )
