"""Tests for the sidebar system configuration."""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError as SchemaValidationError

from school_library.database import NotFoundError
from school_library.database.repository import generate_id
from school_library.database.schema import SystemConfig as SystemConfigDB
from school_library.database.system_config_repository import (
    SystemConfigCreateSchema,
    SystemConfigUpdateSchema,
)
from school_library.services.system_config_service import DEFAULT_DESCRIPTION, SystemConfigService


@pytest.fixture
def config_service(session) -> SystemConfigService:
    return SystemConfigService(session)


def add_config(session, active: bool, age_days: int, title: str) -> SystemConfigDB:
    stamp = datetime.now() - timedelta(days=age_days)
    db_config = SystemConfigDB(
        id=generate_id("sysconfig"),
        sidebar_title=title,
        sidebar_subtitle="Sub",
        sidebar_icon="FiBook",
        version="1.0.0",
        active=active,
        last_updated=stamp,
        created_at=stamp,
        updated_at=stamp,
    )
    session.add(db_config)
    session.commit()
    return db_config


class TestActiveConfig:
    def test_default_created_on_first_read(self, config_service):
        config = config_service.get_active_config()

        assert config.id.startswith("sysconfig_")
        assert config.sidebar_title == "Biblioteca Escolar"
        assert config.sidebar_subtitle == "Sistema de Biblioteca"
        assert config.sidebar_icon == "FiBook"
        assert config.version == "1.0.0"
        assert config.description == DEFAULT_DESCRIPTION
        assert config.active is True

    def test_initialize_is_idempotent(self, config_service):
        first = config_service.initialize_default_config()
        second = config_service.initialize_default_config()

        assert first.id == second.id
        assert len(config_service.get_config_history()) == 1

    def test_duplicates_are_cleaned_on_read(self, session, config_service):
        add_config(session, active=True, age_days=3, title="Vieja")
        newest = add_config(session, active=True, age_days=0, title="Nueva")

        assert config_service.get_active_config().id == newest.id
        assert config_service.cleanup_duplicate_configs() == 0
        history = {c.sidebar_title: c.active for c in config_service.get_config_history()}
        assert history == {"Nueva": True, "Vieja": False}


class TestCreateAndUpdate:
    def test_create_with_image_url(self, config_service):
        config = config_service.create_config(
            SystemConfigCreateSchema(
                sidebar_title="Biblioteca San Jose",
                sidebar_subtitle="Colegio",
                sidebar_icon_url="https://school.edu/logo.png",
                sidebar_icon_image="",
            )
        )

        assert config.sidebar_icon == "FiImage"
        assert config.sidebar_icon_url == "https://school.edu/logo.png"
        assert config.sidebar_icon_image is None
        assert config.version == "1.0.0"

    def test_create_overwrites_active(self, config_service):
        first = config_service.get_active_config()
        second = config_service.create_config(
            SystemConfigCreateSchema(sidebar_title="Otra", sidebar_subtitle="Sub", version="2.0.0")
        )

        assert second.id == first.id
        assert second.sidebar_icon == "FiBook"
        assert second.version == "2.0.0"

    def test_icon_url_must_be_http(self):
        with pytest.raises(SchemaValidationError):
            SystemConfigUpdateSchema(sidebar_icon_url="ftp://school.edu/logo.png")

    def test_update_without_active_config(self, config_service):
        with pytest.raises(NotFoundError):
            config_service.update_config(SystemConfigUpdateSchema(sidebar_title="X"))

    def test_partial_update(self, config_service):
        config_service.get_active_config()

        updated = config_service.update_config(SystemConfigUpdateSchema(sidebar_title="Nueva"))

        assert updated.sidebar_title == "Nueva"
        assert updated.sidebar_subtitle == "Sistema de Biblioteca"
        assert updated.version == "1.0.0"

    def test_image_and_url_are_exclusive(self, config_service):
        config_service.get_active_config()
        with_url = config_service.update_config(
            SystemConfigUpdateSchema(sidebar_icon_url="https://school.edu/logo.png")
        )
        assert with_url.sidebar_icon == "FiImage"

        with_image = config_service.update_config(
            SystemConfigUpdateSchema(sidebar_icon_image="data:image/png;base64,AAAA")
        )

        assert with_image.sidebar_icon_image == "data:image/png;base64,AAAA"
        assert with_image.sidebar_icon_url is None
        assert with_image.sidebar_icon == "FiImage"

    def test_empty_values_clear_icon_fields(self, config_service):
        config_service.get_active_config()
        config_service.update_config(
            SystemConfigUpdateSchema(sidebar_icon_url="https://school.edu/logo.png")
        )

        cleared = config_service.update_config(
            SystemConfigUpdateSchema(sidebar_icon_url="", sidebar_icon="  ")
        )

        assert cleared.sidebar_icon_url is None
        assert cleared.sidebar_icon == "FiImage"


class TestHistory:
    def test_restore(self, session, config_service):
        old = add_config(session, active=False, age_days=5, title="Anterior")
        current = config_service.get_active_config()

        restored = config_service.restore_config(old.id)

        assert restored.id == old.id
        assert restored.active is True
        assert config_service.get_active_config().id == old.id
        history = {c.id: c.active for c in config_service.get_config_history()}
        assert history == {old.id: True, current.id: False}

    def test_restore_missing(self, config_service):
        with pytest.raises(NotFoundError):
            config_service.restore_config(generate_id("sysconfig"))

    def test_history_limit(self, session, config_service):
        for days in range(4):
            add_config(session, active=False, age_days=days + 1, title=f"Config {days}")

        assert len(config_service.get_config_history(limit=2)) == 2
