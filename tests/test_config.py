"""Tests for library settings.

These tests cover:
1. Default values and the loan policy
2. Environment variable loading
3. Field validation
4. The global configuration singleton
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from school_library.config import LibrarySettings, get_config, reset_config, set_config


class TestLibrarySettings:
    """Test library settings behavior."""

    def test_default_configuration(self, tmp_path):
        config = LibrarySettings(database_path=tmp_path / "library.db")

        assert config.app_name == "school-library"
        assert config.environment == "development"
        assert config.api_prefix == "/api"
        assert config.jwt_algorithm == "HS256"

        # Loan policy
        assert config.max_loans_per_person == 3
        assert config.loan_days == 15
        assert config.min_loan_quantity == 1
        assert config.max_loan_quantity == 5
        assert config.low_stock_threshold == 2
        assert config.history_limit == 50

    def test_loan_limits(self, tmp_path):
        config = LibrarySettings(database_path=tmp_path / "library.db")
        assert config.loan_limits == {
            "max_loans_per_person": 3,
            "max_loan_days": 15,
            "min_quantity": 1,
            "max_quantity": 5,
        }

    def test_environment_variable_loading(self, tmp_path):
        env_vars = {
            "SCHOOL_LIBRARY_ENVIRONMENT": "production",
            "SCHOOL_LIBRARY_DATABASE_PATH": str(tmp_path / "env.db"),
            "SCHOOL_LIBRARY_LOAN_DAYS": "21",
            "SCHOOL_LIBRARY_MAX_LOANS_PER_PERSON": "5",
            "SCHOOL_LIBRARY_LOG_LEVEL": "WARNING",
        }

        with patch.dict(os.environ, env_vars):
            config = LibrarySettings()

            assert config.environment == "production"
            assert config.is_production is True
            assert config.database_path == tmp_path / "env.db"
            assert config.loan_days == 21
            assert config.max_loans_per_person == 5
            assert config.log_level == "WARNING"

    def test_version_validation(self, tmp_path):
        for version in ["1.0.0", "0.1.0", "1.0.0-beta.1"]:
            config = LibrarySettings(app_version=version, database_path=tmp_path / "x.db")
            assert config.app_version == version

        for version in ["1.0", "v1.0.0", "latest"]:
            with pytest.raises(ValidationError):
                LibrarySettings(app_version=version, database_path=tmp_path / "x.db")

    def test_environment_validation(self, tmp_path):
        with pytest.raises(ValidationError):
            LibrarySettings(environment="staging", database_path=tmp_path / "x.db")

    def test_port_validation(self, tmp_path):
        config = LibrarySettings(http_port=8080, database_path=tmp_path / "x.db")
        assert config.http_port == 8080

        with pytest.raises(ValidationError, match="reserved"):
            LibrarySettings(http_port=5432, database_path=tmp_path / "x.db")
        with pytest.raises(ValidationError):
            LibrarySettings(http_port=80, database_path=tmp_path / "x.db")
        with pytest.raises(ValidationError):
            LibrarySettings(http_port=65536, database_path=tmp_path / "x.db")

    def test_database_path_creates_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "library.db"
        config = LibrarySettings(database_path=db_path)

        assert config.database_path.parent.is_dir()
        assert config.get_database_url() == f"sqlite:///{db_path.absolute()}"

    def test_database_url_overrides_path(self, tmp_path):
        config = LibrarySettings(
            database_path=tmp_path / "library.db", database_url="sqlite:///:memory:"
        )
        assert config.get_database_url() == "sqlite:///:memory:"

    def test_api_prefix_normalized(self, tmp_path):
        config = LibrarySettings(api_prefix="v1/", database_path=tmp_path / "x.db")
        assert config.api_prefix == "/v1"

    def test_loan_quantity_bounds(self, tmp_path):
        with pytest.raises(ValidationError, match="max_loan_quantity"):
            LibrarySettings(
                min_loan_quantity=3, max_loan_quantity=2, database_path=tmp_path / "x.db"
            )

    def test_secrets_hidden_from_repr(self, tmp_path):
        config = LibrarySettings(
            jwt_secret="super-secret-value",
            admin_password="Admin1234",
            database_path=tmp_path / "x.db",
        )
        assert "super-secret-value" not in repr(config)
        assert "Admin1234" not in repr(config)

    def test_development_flags(self, tmp_path):
        config = LibrarySettings(environment="test", database_path=tmp_path / "x.db")
        assert config.is_development is False
        assert config.is_production is False

        config = LibrarySettings(environment="test", debug=True, database_path=tmp_path / "x.db")
        assert config.is_development is True


class TestConfigSingleton:
    def test_set_and_reset(self, tmp_path):
        config = LibrarySettings(app_name="custom-name", database_path=tmp_path / "x.db")
        set_config(config)
        assert get_config() is config

        reset_config()
        with patch.dict(os.environ, {"SCHOOL_LIBRARY_DATABASE_PATH": str(tmp_path / "y.db")}):
            fresh = get_config()
        assert fresh is not config
        assert fresh.database_path == Path(tmp_path / "y.db")

    def test_installed_test_config(self, test_config):
        assert get_config() is test_config
        assert get_config().environment == "test"
