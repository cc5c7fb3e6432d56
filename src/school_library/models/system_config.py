"""System configuration model: branding of the frontend sidebar."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SIDEBAR_TITLE = "Biblioteca Escolar"
DEFAULT_SIDEBAR_SUBTITLE = "Sistema de Biblioteca"
DEFAULT_SIDEBAR_ICON = "FiBook"
IMAGE_SIDEBAR_ICON = "FiImage"
DEFAULT_VERSION = "1.0.0"


class SystemConfig(BaseModel):
    id: str = Field(..., pattern=r"^sysconfig_[A-Za-z0-9]+$")
    sidebar_title: str = Field(default=DEFAULT_SIDEBAR_TITLE, max_length=100)
    sidebar_subtitle: str = Field(default=DEFAULT_SIDEBAR_SUBTITLE, max_length=100)
    sidebar_icon: str = Field(default=DEFAULT_SIDEBAR_ICON, max_length=50)
    sidebar_icon_url: str | None = Field(None, max_length=500)
    sidebar_icon_image: str | None = None
    version: str = Field(default=DEFAULT_VERSION, max_length=20)
    active: bool = True
    description: str | None = Field(None, max_length=200)
    last_updated: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
